from __future__ import annotations

import enum
import os
from dataclasses import dataclass
from pathlib import Path


class LLMProvider(enum.Enum):
    OPENROUTER = "openrouter"
    GEMINI = "gemini"


@dataclass(frozen=True)
class Settings:
    database_uri: str
    cache_path: Path
    llm_provider: LLMProvider
    openrouter_base_url: str
    openrouter_api_key: str | None
    vision_model: str
    text_model: str
    request_timeout_seconds: float
    min_request_interval_seconds: float
    rate_limit_backoff_seconds: float


def load_settings() -> Settings:
    """Read configuration from the environment, falling back to defaults."""
    env = os.environ
    return Settings(
        database_uri=env.get("BUCKLED_DATABASE_URI", "sqlite+aiosqlite:///buckled.db"),
        cache_path=Path(env.get("BUCKLED_CACHE_PATH", ".buckled_cache.json")),
        llm_provider=LLMProvider(env.get("BUCKLED_LLM_PROVIDER", "openrouter")),
        openrouter_base_url=env.get(
            "OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"
        ),
        openrouter_api_key=env.get("OPENROUTER_API_KEY"),
        vision_model=env.get(
            "BUCKLED_VISION_MODEL", "meta-llama/llama-3.2-11b-vision-instruct:free"
        ),
        text_model=env.get("BUCKLED_TEXT_MODEL", "deepseek/deepseek-r1:free"),
        request_timeout_seconds=float(
            env.get("BUCKLED_REQUEST_TIMEOUT_SECONDS", "60")
        ),
        min_request_interval_seconds=float(
            env.get("BUCKLED_MIN_REQUEST_INTERVAL_SECONDS", "2")
        ),
        rate_limit_backoff_seconds=float(
            env.get("BUCKLED_RATE_LIMIT_BACKOFF_SECONDS", "5")
        ),
    )
