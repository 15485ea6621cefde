"""Factory for creating classifier provider instances."""

from config import Config
from llm.providers.base import LLMProvider
from llm.providers.gemini import GeminiProvider
from logger import get_logger

logger = get_logger()


def get_llm_provider(config: Config) -> LLMProvider:
    """Create a classifier provider based on configuration.

    Credentials are not bound to the provider; they travel with each call.

    Args:
        config: Application configuration.

    Returns:
        LLMProvider instance.

    Raises:
        ValueError: If the configured provider is unknown.
    """
    provider_name = config.llm_provider

    if provider_name == "gemini":
        logger.debug(f"Initializing Gemini provider (base URL: {config.llm_base_url})")
        return GeminiProvider(base_url=config.llm_base_url)

    raise ValueError(f"Unknown LLM provider: {provider_name}")
