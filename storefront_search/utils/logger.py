"""
Logging for storefront-search.

Every module logs under the ``storefront_search`` hierarchy with one stdout
handler on the package logger. The level starts from ``LOG_LEVEL`` and is
re-applied from SearchConfig when the API starts.
"""
import logging
import os
import sys
from typing import Optional, Union

ROOT_LOGGER = "storefront_search"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_handler: Optional[logging.Handler] = None


def configure_logging(level: Union[str, int, None] = None) -> logging.Logger:
    """
    Attach the stdout handler to the package logger and set its level.

    Safe to call repeatedly; later calls only change the level.

    Args:
        level: Level name or number. Defaults to ``LOG_LEVEL`` (INFO).
    """
    global _handler
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = level.upper()

    root = logging.getLogger(ROOT_LOGGER)
    if _handler is None:
        _handler = logging.StreamHandler(sys.stdout)
        _handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(_handler)
        # No duplicate lines through the root logger
        root.propagate = False

    root.setLevel(level)
    _handler.setLevel(level)
    return root


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Logger for one area of the package.

    ``get_logger("cache")`` and ``get_logger("storefront_search.cache")``
    return the same logger.
    """
    if not name or name == ROOT_LOGGER:
        return logging.getLogger(ROOT_LOGGER)
    if name.startswith(ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


configure_logging()
