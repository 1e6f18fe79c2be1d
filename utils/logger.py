import os
import sys
import logging
from logging.handlers import RotatingFileHandler

from config import LOG_LEVEL, LOG_DIR, LOG_TO_FILE

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"

_configured = set()


def get_logger(name: str) -> logging.Logger:
    """
    Named logger: console + data/logs/<name>.log

    Handlers are attached once per name, so modules can call this at import time.
    """
    logger = logging.getLogger(name)

    if name in _configured:
        return logger

    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if LOG_TO_FILE:
        try:
            os.makedirs(LOG_DIR, exist_ok=True)
            file_handler = RotatingFileHandler(
                os.path.join(LOG_DIR, f"{name.lower()}.log"),
                maxBytes=5 * 1024 * 1024,
                backupCount=3,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"File logging disabled for {name}: {e}")

    logger.propagate = False
    _configured.add(name)
    return logger
