import logging
import sys
from typing import Optional

from newshub.config import CONFIG


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level(level: Optional[str]) -> int:
    return getattr(logging, (level or CONFIG.LOG_LEVEL).upper(), logging.INFO)


def configure_logger(name: str = "newshub", level: Optional[str] = None):
    """Configure and return a stdout logger. Calling it again for the same name reuses the handler."""
    log_level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(log_level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger


def create_logger(component: str):
    """Logger for one component under the newshub namespace, e.g. newshub.AggregationCache."""
    logger = configure_logger(f"newshub.{component}")
    # Component loggers never reach the newshub root handler
    logger.propagate = False
    return logger


def configure_access_logger(level: str = "INFO"):
    """Route aiohttp's request log through the same format as the service logs."""
    return configure_logger("aiohttp.access", level=level)


logger = configure_logger()

__all__ = ["logger", "configure_logger", "create_logger", "configure_access_logger"]
