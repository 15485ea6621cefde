"""LLM integration module for expense classification and extraction."""

from llm.factory import get_llm_provider

__all__ = ["get_llm_provider"]
