from __future__ import annotations

from collections.abc import Callable

from langchain_core.language_models import BaseChatModel
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from buckled.base.settings import LLMProvider, Settings, load_settings
from buckled.extraction.client import LangChainExtractionClient
from buckled.extraction.interface import ExtractionEngine
from buckled.extraction.rate_limit import RateLimiter

__all__ = ["ExtractionEngine", "LangChainExtractionClient", "create_extraction_client"]


def _openrouter_model(settings: Settings, model: str, max_tokens: int) -> BaseChatModel:
    # Retries are handled by the client so the rate-limit gate sees every call.
    return ChatOpenAI(
        model=model,
        base_url=settings.openrouter_base_url,
        api_key=settings.openrouter_api_key,
        temperature=0.1,
        max_tokens=max_tokens,
        max_retries=0,
    )


def _gemini_model(settings: Settings, model: str, max_tokens: int) -> BaseChatModel:
    return ChatGoogleGenerativeAI(
        model=model,
        temperature=0.1,
        max_output_tokens=max_tokens,
        max_retries=0,
    )


_LLM_FACTORIES: dict[LLMProvider, Callable[[Settings, str, int], BaseChatModel]] = {
    LLMProvider.OPENROUTER: _openrouter_model,
    LLMProvider.GEMINI: _gemini_model,
}


def create_extraction_client(settings: Settings | None = None) -> ExtractionEngine:
    """Create the extraction client for the configured provider."""
    settings = settings or load_settings()
    factory = _LLM_FACTORIES[settings.llm_provider]
    return LangChainExtractionClient(
        text_llm=factory(settings, settings.text_model, 1000),
        vision_llm=factory(settings, settings.vision_model, 2000),
        rate_limiter=RateLimiter(settings.min_request_interval_seconds),
        timeout=settings.request_timeout_seconds,
        rate_limit_backoff=settings.rate_limit_backoff_seconds,
    )
