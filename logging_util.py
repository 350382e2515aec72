"""Logging configuration for photoframe."""
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = "photoframe"


def setup_logging(level: str = "INFO", log_dir: Optional[Path] = None) -> logging.Logger:
    root_logger = logging.getLogger(LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)

    if root_logger.handlers:
        return root_logger

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(
            log_dir / "photoframe.log", maxBytes=5 * 1024 * 1024, backupCount=3
        )
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(fmt)
        root_logger.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setLevel(getattr(logging, level.upper(), logging.INFO))
    ch.setFormatter(fmt)
    root_logger.addHandler(ch)
    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Child logger under the photoframe namespace."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
