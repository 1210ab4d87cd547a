"""Environment driven settings for the canvas engine and its HTTP surface.

Every value has a safe default so the service and the tests start without
any environment configuration.  Components accept the same values as
constructor arguments; ``load_settings`` only provides the defaults.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field


def _parse_float(value: str | None, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        result = float(value)
    except ValueError:
        return default
    if result != result or result < 0:  # NaN or negative
        return default
    return result


def _parse_int(value: str | None, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        result = int(value)
    except ValueError:
        return default
    return result if result > 0 else default


def _parse_origins(value: str | None) -> list[str]:
    origins = [origin.strip() for origin in (value or "").split(",") if origin.strip()]
    if not origins:
        origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    return origins


@dataclass(slots=True)
class Settings:
    scrape_api_base: str | None = None
    workspace_api_base: str | None = None
    http_timeout: float = 30.0
    poll_interval: float = 1.0
    poll_ceiling_video: int = 120
    poll_ceiling_default: int = 60
    autosave_delay: float = 1.0
    save_error_display: float = 5.0
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=list)


def load_settings() -> Settings:
    """Read :class:`Settings` from the process environment."""

    return Settings(
        scrape_api_base=os.getenv("AICON_SCRAPE_API_BASE") or None,
        workspace_api_base=os.getenv("AICON_WORKSPACE_API_BASE") or None,
        http_timeout=_parse_float(os.getenv("AICON_HTTP_TIMEOUT"), 30.0),
        poll_interval=_parse_float(os.getenv("AICON_POLL_INTERVAL"), 1.0),
        poll_ceiling_video=_parse_int(os.getenv("AICON_POLL_CEILING_VIDEO"), 120),
        poll_ceiling_default=_parse_int(os.getenv("AICON_POLL_CEILING_DEFAULT"), 60),
        autosave_delay=_parse_float(os.getenv("AICON_AUTOSAVE_DELAY"), 1.0),
        save_error_display=_parse_float(os.getenv("AICON_SAVE_ERROR_DISPLAY"), 5.0),
        log_level=(os.getenv("AICON_LOG_LEVEL") or "INFO").upper(),
        cors_origins=_parse_origins(os.getenv("API_CORS_ORIGINS")),
    )
