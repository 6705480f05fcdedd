"""Runtime settings read from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

DEFAULT_FIRECRAWL_API_URL = "https://api.firecrawl.dev/v2"


def _float(environ: Mapping[str, str], key: str, default: float) -> float:
    value = environ.get(key)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {value!r}")


def _int(environ: Mapping[str, str], key: str, default: int) -> int:
    value = environ.get(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {value!r}")


@dataclass
class Settings:
    """Application settings.

    Intervals and timeouts are in seconds.
    """

    firecrawl_api_key: str = ""
    firecrawl_api_url: str = DEFAULT_FIRECRAWL_API_URL
    admin_secret_token: str = ""
    poll_interval: float = 2.0
    poll_timeout: float = 600.0
    ingest_timeout: float = 600.0
    request_timeout: float = 60.0
    extraction_config_path: str | None = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    price_refresh_hour: int = 6

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Create settings from environment variables, using defaults for missing values."""
        env = os.environ if environ is None else environ
        return cls(
            firecrawl_api_key=env.get("FIRECRAWL_API_KEY", ""),
            firecrawl_api_url=env.get("FIRECRAWL_API_URL", DEFAULT_FIRECRAWL_API_URL).rstrip("/"),
            admin_secret_token=env.get("ADMIN_SECRET_TOKEN", ""),
            poll_interval=_float(env, "FIRECRAWL_POLL_INTERVAL", 2.0),
            poll_timeout=_float(env, "FIRECRAWL_POLL_TIMEOUT", 600.0),
            ingest_timeout=_float(env, "INGEST_TIMEOUT", 600.0),
            request_timeout=_float(env, "FIRECRAWL_REQUEST_TIMEOUT", 60.0),
            extraction_config_path=env.get("EXTRACTION_CONFIG_PATH") or None,
            redis_host=env.get("REDIS_HOST", "localhost"),
            redis_port=_int(env, "REDIS_PORT", 6379),
            redis_db=_int(env, "REDIS_DB", 0),
            price_refresh_hour=_int(env, "PRICE_REFRESH_HOUR", 6),
        )

    @property
    def firecrawl_configured(self) -> bool:
        return bool(self.firecrawl_api_key)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the process-wide settings, reading the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings (useful for testing)."""
    global _settings
    _settings = None
