"""
Logging setup for the ToyWonder AI API.
Every module logs under the "toywonder" namespace; provider chatter from the
HTTP stack is kept at WARNING unless the service itself runs at DEBUG.
"""
import logging
import sys

from toywonder.core.config import get_settings

ROOT_LOGGER = "toywonder"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# httpx logs one INFO line per request, including full provider URLs
NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging() -> logging.Logger:
    """Configure the toywonder logger once and return it."""
    logger = logging.getLogger(ROOT_LOGGER)
    if logger.handlers:
        return logger

    level = get_settings().log_level.upper()
    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    if level != "DEBUG":
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger under the toywonder namespace, e.g. toywonder.services.broker."""
    setup_logging()
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
