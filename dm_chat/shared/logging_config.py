"""Logging configuration shared by the client and the server."""
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path


def configure_logging(name: str, log_file: Path) -> logging.Logger:
    """Configure a named logger writing to a rotating file handler."""
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    if not logger.handlers:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3)
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger
