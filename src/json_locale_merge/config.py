"""Run configuration read from the environment (and a ``.env`` file)."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError

DEFAULT_MODEL = "gpt-4.1-mini"


@dataclass(frozen=True)
class Settings:
    api_key: str | None = None
    base_url: str | None = None
    model: str = DEFAULT_MODEL
    # Characters per chunk in incremental mode
    chunk_size: int = 3000
    # Keys per batch in bulk mode
    batch_size: int = 50
    parallel_batch_count: int = 1
    max_concurrent_requests: int = 10
    initial_retry_delay: float = 1.0
    max_backoff_resets: int = 5


def _env_number(name: str, default, cast):
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got '{raw}'") from None


def load_settings(**overrides) -> Settings:
    """
    Build settings from environment variables, then apply ``overrides``.

    ``None`` overrides are ignored so CLI options that were not given fall
    back to the environment.

    Raises:
        ConfigError: If a numeric variable cannot be parsed or a size is not positive
    """
    # Load environment variables from .env file in current working directory
    load_dotenv(find_dotenv(usecwd=True))

    settings = Settings(
        api_key=os.environ.get("OPENAI_API_KEY") or None,
        base_url=os.environ.get("OPENAI_BASE_URL") or None,
        model=os.environ.get("OPENAI_TRANSLATION_MODEL", DEFAULT_MODEL),
        chunk_size=_env_number("CHUNK_SIZE", 3000, int),
        batch_size=_env_number("BATCH_SIZE", 50, int),
        parallel_batch_count=_env_number("PARALLEL_BATCH_COUNT", 1, int),
        max_concurrent_requests=_env_number("MAX_CONCURRENT_REQUESTS", 10, int),
        initial_retry_delay=_env_number("INITIAL_RETRY_DELAY", 1.0, float),
        max_backoff_resets=_env_number("MAX_BACKOFF_RESETS", 5, int),
    )
    settings = replace(settings, **{k: v for k, v in overrides.items() if v is not None})

    for name in ("chunk_size", "batch_size", "parallel_batch_count", "max_concurrent_requests"):
        if getattr(settings, name) <= 0:
            raise ConfigError(f"{name} must be positive, got {getattr(settings, name)}")
    return settings
