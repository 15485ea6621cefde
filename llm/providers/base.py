"""Base provider interface for classifier implementations."""

import json
from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, List, Optional

from llm.prompts.loader import PromptManager
from llm.schemas import ValidationResult, validate_reclassification_response
from models.category import CATEGORIES
from models.reclassification import CONSERVATIVE, MerchantCount


class LLMProvider(ABC):
    """Abstract base class for classifier providers.

    Subclasses implement generate(), a single network call. Prompt
    rendering and response validation are shared here so every provider
    sends the same request text and applies the same checks.
    """

    def __init__(self, prompt_manager: Optional[PromptManager] = None):
        self.prompt_manager = prompt_manager or PromptManager()

    @abstractmethod
    def generate(self, prompt: str, *, model: str, api_key: str, timeout: float) -> str:
        """Send one prompt to the given model and return its text.

        Args:
            prompt: Rendered request text.
            model: Model name.
            api_key: Credential for the service.
            timeout: Hard limit in seconds for the whole call.

        Returns:
            Response text with any markdown code fences removed.

        Raises:
            BatchTimeoutError: If the call timed out.
            ClassifierError: On transport failure or a non-success status.
        """
        pass

    def fallback_model(self, model: str) -> Optional[str]:
        """Model to try once when a call to the given model fails, if any."""
        return None

    def build_reclassification_prompt(
        self,
        payload: List[Dict],
        subcategories: Dict[str, List[str]],
        merchant_frequency: List[MerchantCount],
        mode: str,
        threshold: float = 0.75,
    ) -> str:
        """Render the request text for one batch.

        Output depends only on the arguments, so identical batches always
        produce identical prompts.
        """
        mode_notes = self.prompt_manager.get_option("reclassification", "mode_notes", {})
        mode_note = mode_notes.get(mode) or mode_notes.get(CONSERVATIVE, "")

        return self.prompt_manager.render_prompt(
            "reclassification",
            {
                "mode_note": mode_note,
                "categories": ", ".join(CATEGORIES),
                "subcategories": self._format_subcategories(subcategories),
                "merchants": self._format_merchants(merchant_frequency),
                "expenses": json.dumps(payload, indent=2),
                "threshold": threshold,
            },
        )

    def reclassify_batch(
        self,
        payload: List[Dict],
        subcategories: Dict[str, List[str]],
        merchant_frequency: List[MerchantCount],
        mode: str,
        *,
        model: str,
        api_key: str,
        timeout: float,
        threshold: float = 0.75,
    ) -> ValidationResult:
        """Classify one batch and validate the response.

        Raises:
            ClassifierError: If the network call fails. Malformed output is
                reported through the returned ValidationResult instead.
        """
        prompt = self.build_reclassification_prompt(
            payload, subcategories, merchant_frequency, mode, threshold
        )
        raw = self.generate(prompt, model=model, api_key=api_key, timeout=timeout)
        return validate_reclassification_response(raw)

    def extract_expense(
        self, text: str, today: date, *, model: str, api_key: str, timeout: float
    ) -> str:
        """Ask the model to turn free text into a single expense object (raw JSON text)."""
        prompt = self.prompt_manager.render_prompt(
            "extraction",
            {
                "text": text,
                "today": today.isoformat(),
                "categories": " | ".join(CATEGORIES),
            },
        )
        return self.generate(prompt, model=model, api_key=api_key, timeout=timeout)

    def _format_subcategories(self, subcategories: Dict[str, List[str]]) -> str:
        lines = [
            f"  {cat}: {', '.join(subcategories[cat])}"
            for cat in CATEGORIES
            if subcategories.get(cat)
        ]
        return "\n".join(lines) if lines else "  (none)"

    def _format_merchants(self, merchant_frequency: List[MerchantCount]) -> str:
        if not merchant_frequency:
            return "  (none)"
        return "\n".join(
            f'  - "{m.merchant}" ({m.count}x)' for m in merchant_frequency
        )
