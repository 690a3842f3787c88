"""Logging setup for the HabitFlow backend."""

import logging

from habitflow.config import IS_PRODUCTION, LOG_LEVEL

_DEV_FORMAT = "[%(asctime)s] %(levelname)-8s [%(name)s.%(funcName)s:%(lineno)d] %(message)s"
_PROD_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure the ``habitflow`` logger with a single console handler.

    Safe to call more than once; existing handlers are replaced.
    """
    root_logger = logging.getLogger("habitflow")
    root_logger.setLevel(getattr(logging, (level or LOG_LEVEL), logging.INFO))
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        fmt=_PROD_FORMAT if IS_PRODUCTION else _DEV_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S" if IS_PRODUCTION else "%H:%M:%S",
    ))
    root_logger.addHandler(handler)
    root_logger.propagate = False

    root_logger.info("Logging initialized (level=%s)", logging.getLevelName(root_logger.level))
    return root_logger
