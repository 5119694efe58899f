"""Root logger setup for the CLI."""

from __future__ import annotations

import logging

from .env import optional_env_var
from .errors import ConfigurationError

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Request-level chatter from the feed client stack; raised to WARNING unless debugging.
NOISY_LOGGERS = ("httpx", "httpcore", "hishel", "httpx_retries")


def log_level_from_env(default: int = logging.INFO) -> int:
    """Resolve ``ATTRIBUTOR_LOG_LEVEL`` (a level name or number)."""

    value = optional_env_var("ATTRIBUTOR_LOG_LEVEL")
    if value is None:
        return default
    if value.isdigit():
        return int(value)
    level = logging.getLevelNamesMapping().get(value.upper())
    if level is None:
        raise ConfigurationError(f"Unknown log level: {value}")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once; ``force=True`` reconfigures it."""

    effective = level if level is not None else log_level_from_env()
    logging.basicConfig(level=effective, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    quiet = logging.DEBUG if effective <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)
