from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional


@dataclass(frozen=True)
class Settings:
    """
    Settings loaded from environment variables.

    Env vars:
    - TASK_CACHE_BATCH_WINDOW_MS: change event batching window in milliseconds (default 500)
    - TASK_CACHE_TEMP_ID_PREFIX: prefix of client-synthesized ids (default 'temp-')
    - TASK_CACHE_REQUEST_TIMEOUT: seconds before a gateway call counts as failed; 0 disables (default 10)
    - TASK_CACHE_API_URL: base URL of the task REST service (default 'http://localhost:8000')
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins for the service; '*' by default
    - LOG_LEVEL: console log level name (default 'INFO')
    - LOG_DIR: directory for the log file; unset disables file logging
    """

    batch_window_ms: int
    temp_id_prefix: str
    request_timeout: Optional[float]
    api_url: str
    cors_allow_origins: List[str]
    log_level: str
    log_dir: Optional[str]

    @property
    def batch_window(self) -> float:
        """Batching window in seconds."""
        return self.batch_window_ms / 1000.0


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_int(value: str, default: int, minimum: int = 0) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _parse_timeout(value: str, default: Optional[float]) -> Optional[float]:
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    if parsed <= 0:
        return None
    return parsed


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return settings loaded from environment variables."""
    log_level = _get_env("LOG_LEVEL", "INFO").strip().upper()
    if log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        log_level = "INFO"

    log_dir = os.getenv("LOG_DIR") or None

    return Settings(
        batch_window_ms=_parse_int(_get_env("TASK_CACHE_BATCH_WINDOW_MS", "500"), 500),
        temp_id_prefix=_get_env("TASK_CACHE_TEMP_ID_PREFIX", "temp-").strip() or "temp-",
        request_timeout=_parse_timeout(_get_env("TASK_CACHE_REQUEST_TIMEOUT", "10"), 10.0),
        api_url=_get_env("TASK_CACHE_API_URL", "http://localhost:8000").strip().rstrip("/"),
        cors_allow_origins=_parse_origins(_get_env("CORS_ALLOW_ORIGINS", "*")),
        log_level=log_level,
        log_dir=log_dir,
    )
