"""Process-wide logging setup."""

from __future__ import annotations

import logging

from quota_engine.config import get_settings

_LOG_CONFIGURED = False


def configure_logging() -> None:
    """Configure the root logger once, from LOG_LEVEL."""
    global _LOG_CONFIGURED
    if _LOG_CONFIGURED:
        return

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    _LOG_CONFIGURED = True
