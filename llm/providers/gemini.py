"""Gemini provider implementation over the generateContent REST endpoint."""

import json
import re
import time
from typing import Optional

import requests

from config import DEFAULT_BASE_URL
from llm.errors import BatchTimeoutError, ClassifierError
from llm.prompts.loader import PromptManager
from llm.providers.base import LLMProvider
from logger import get_logger

logger = get_logger()

# If the selected model fails, the other one is tried once before the batch is skipped
MODEL_FALLBACK = {
    "gemini-2.5-flash-lite": "gemini-2.5-flash",
    "gemini-2.5-flash": "gemini-2.5-flash-lite",
}

_CODE_FENCE = re.compile(r"```(?:json)?\n?|\n?```")

# Small reads so the deadline is checked while a slow body is still arriving
_READ_SIZE = 1


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences the model sometimes wraps around JSON."""
    return _CODE_FENCE.sub("", text.strip()).strip()


def _timeout_message(timeout: float) -> str:
    return f"Batch timed out after {timeout:g}s. Try a smaller scope."


class GeminiProvider(LLMProvider):
    """Gemini implementation: one POST per call, bounded by a hard timeout."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[requests.Session] = None,
        prompt_manager: Optional[PromptManager] = None,
    ):
        """Initialize Gemini provider.

        Args:
            base_url: Service root, e.g. "https://generativelanguage.googleapis.com".
            session: Optional requests session (injected in tests).
            prompt_manager: Optional prompt manager override.
        """
        super().__init__(prompt_manager)
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()

    def fallback_model(self, model: str) -> Optional[str]:
        return MODEL_FALLBACK.get(model)

    def generate(self, prompt: str, *, model: str, api_key: str, timeout: float) -> str:
        url = f"{self.base_url}/v1beta/models/{model}:generateContent"
        body = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

        logger.debug(f"Calling {model} ({len(prompt)} prompt chars, timeout {timeout}s)")

        deadline = time.monotonic() + timeout

        try:
            response = self.session.post(
                url,
                params={"key": api_key},
                json=body,
                timeout=timeout,
                stream=True,
            )
        except requests.exceptions.Timeout as e:
            raise BatchTimeoutError(_timeout_message(timeout)) from e
        except requests.exceptions.RequestException as e:
            raise ClassifierError(f"Request to {model} failed: {e}") from e

        try:
            content = self._read_body(response, deadline, timeout)
        except requests.exceptions.RequestException as e:
            if isinstance(e, requests.exceptions.Timeout) or time.monotonic() >= deadline:
                raise BatchTimeoutError(_timeout_message(timeout)) from e
            raise ClassifierError(f"Reading response from {model} failed: {e}") from e
        finally:
            response.close()

        try:
            data = json.loads(content)
        except ValueError:
            data = {}

        if not response.ok:
            message = None
            if isinstance(data, dict) and isinstance(data.get("error"), dict):
                message = data["error"].get("message")
            raise ClassifierError(
                message or f"Gemini API error (HTTP {response.status_code})"
            )

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None

        if not isinstance(text, str):
            raise ClassifierError("Gemini returned no text")

        return strip_code_fences(text)

    def _read_body(self, response, deadline: float, timeout: float) -> bytes:
        """Read the streamed body, giving up once the deadline has passed.

        requests only bounds each socket read, so a server trickling bytes
        would otherwise hold the call open indefinitely.
        """
        chunks = []
        if time.monotonic() > deadline:
            raise BatchTimeoutError(_timeout_message(timeout))
        for chunk in response.iter_content(chunk_size=_READ_SIZE):
            chunks.append(chunk)
            if time.monotonic() > deadline:
                raise BatchTimeoutError(_timeout_message(timeout))
        return b"".join(chunks)
