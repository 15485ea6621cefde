"""HTTP façade for single-expense AI extraction.

Run with: python -m cli serve
(or: uvicorn --factory api.server:create_app --port 3000)
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from config import Config, load_config
from extraction import ExtractionError, extract_expense
from llm.factory import get_llm_provider
from llm.providers.base import LLMProvider
from logger import get_logger

logger = get_logger()


class ExtractRequest(BaseModel):
    text: Optional[str] = None


def create_app(config: Optional[Config] = None, provider: Optional[LLMProvider] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Application configuration (loaded from disk if None).
        provider: Classifier provider (built from config if None).
    """
    config = config or load_config()
    provider = provider or get_llm_provider(config)

    app = FastAPI(
        title="Tally Extraction API",
        description="Turns free text into a structured expense",
        version="1.0.0",
    )

    # The mobile client uses a custom URL scheme, so any origin is allowed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.post("/extract")
    def extract(request: ExtractRequest):
        try:
            extracted = extract_expense(
                request.text or "",
                provider,
                model=config.llm_model,
                api_key=config.llm_api_key,
                timeout=config.timeout_seconds,
            )
        except ExtractionError as e:
            logger.warning(f"Extraction failed ({e.status_code}): {e}")
            return JSONResponse(status_code=e.status_code, content={"error": str(e)})

        return extracted.to_dict()

    return app
