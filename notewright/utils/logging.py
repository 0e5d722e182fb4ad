# notewright/utils/logging.py

import logging
import os
from pathlib import Path

from notewright.config.settings import BASE_DIR

LOG_DIR = Path(os.getenv("NOTEWRIGHT_LOG_DIR", "").strip() or BASE_DIR / "notewright" / "logs")
LOG_FILE = LOG_DIR / "notewright.log"

# File logging can be switched off (CI, read-only installs).
LOG_TO_FILE = os.getenv("NOTEWRIGHT_LOG_TO_FILE", "1").strip() != "0"

_LEVEL_NAME = os.getenv("NOTEWRIGHT_LOG_LEVEL", "INFO").strip().upper() or "INFO"
LOG_LEVEL = getattr(logging, _LEVEL_NAME, logging.INFO)


def get_logger(name: str = "notewright") -> logging.Logger:
    """
    Return a logger that logs to console and, unless disabled, to
    logs/notewright.log. Repeated calls reuse the configured handlers.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(LOG_LEVEL)

    fmt = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handlers: list = [logging.StreamHandler()]
    if LOG_TO_FILE:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(LOG_FILE, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(LOG_LEVEL)
        handler.setFormatter(fmt)
        logger.addHandler(handler)

    return logger
