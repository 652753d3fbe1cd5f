"""
Environment-driven settings for the server and client CLIs.

Values are read from ``MECHLAB_*`` environment variables; anything missing or
unparseable falls back to the default. Command-line flags override these.
"""

import os
import sys
from dataclasses import dataclass

from loguru import logger

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_STREAM_LIMIT = 64 * 1024 * 1024


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={os.environ.get(name)!r}, using {default}")
        return default


@dataclass
class Settings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = DEFAULT_LOG_LEVEL
    stream_limit: int = DEFAULT_STREAM_LIMIT
    # 0 disables the guard
    max_steps: int = 0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            host=os.environ.get("MECHLAB_HOST", DEFAULT_HOST),
            port=_env_int("MECHLAB_PORT", DEFAULT_PORT),
            log_level=os.environ.get("MECHLAB_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
            stream_limit=max(1024, _env_int("MECHLAB_STREAM_LIMIT", DEFAULT_STREAM_LIMIT)),
            max_steps=max(0, _env_int("MECHLAB_MAX_STEPS", 0)),
        )


def configure_logging(level: str = DEFAULT_LOG_LEVEL) -> None:
    """Replace loguru's default sink with a single stderr sink at ``level``."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
