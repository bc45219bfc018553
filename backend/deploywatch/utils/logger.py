"""
DeployWatch - Logging
Shared stream handler so every module logs with the same format.
"""
import logging
import sys

from deploywatch.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_handler = None


def _get_handler() -> logging.Handler:
    global _handler
    if _handler is None:
        _handler = logging.StreamHandler(sys.stdout)
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return _handler


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger wired to the shared handler.
    
    Level is DEBUG when settings.debug is set, INFO otherwise.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(_get_handler())
        logger.setLevel(logging.DEBUG if get_settings().debug else logging.INFO)
    return logger
