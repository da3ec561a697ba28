"""Logging setup for the relay.

Only the ``screenshot-relay`` logger owns a handler. Component loggers from
``get_logger`` are its children and propagate to it, so one call to
``configure_logging`` at start-up sets level and format for the whole
process.
"""

import sys
import logging
from typing import Optional

LOGGER_NAME = "screenshot-relay"
FORMAT_STRINGS = {
    "structured": (
        "%(asctime)s | %(name)s | %(levelname)-8s | "
        "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s"
    ),
    "simple": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(level: Optional[str]) -> int:
    """Map a level name to its number; unknown names mean INFO."""
    value = getattr(logging, str(level or "INFO").strip().upper(), None)
    return value if isinstance(value, int) else logging.INFO


def build_formatter(format_type: str = "structured") -> logging.Formatter:
    fmt = FORMAT_STRINGS.get(str(format_type).strip().lower(), FORMAT_STRINGS["structured"])
    return logging.Formatter(fmt, datefmt=DATE_FORMAT)


def setup_logger(
    level: Optional[str] = "INFO",
    format_type: str = "structured",
) -> logging.Logger:
    """
    (Re)configure the relay logger: one stdout handler, no propagation.

    Calling it again swaps level and format in place instead of stacking
    handlers.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(resolve_level(level))

    handler = next((h for h in logger.handlers if getattr(h, "_relay_handler", False)), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler._relay_handler = True
        logger.addHandler(handler)
    handler.setFormatter(build_formatter(format_type))

    logger.propagate = False
    return logger


def configure_logging(settings, level: Optional[str] = None) -> logging.Logger:
    """Apply ``settings.log_level``/``settings.log_format``; ``level`` wins if given."""
    return setup_logger(level or settings.log_level, settings.log_format)


def get_logger(name: str = LOGGER_NAME) -> logging.Logger:
    """
    Return a component logger under the relay logger.

    ``get_logger("fetcher")`` yields ``screenshot-relay.fetcher``.
    """
    if name != LOGGER_NAME and not name.startswith(LOGGER_NAME + "."):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)


# Defaults until configure_logging runs
logger = setup_logger()
