import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


LOGGER_NAME = "video_watermarker"
DEFAULT_LOG_DIR = os.path.join(os.path.expanduser("~"), ".video-watermarker")
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(log_level: str = "INFO", log_dir: Optional[str] = None) -> logging.Logger:
    """Log to <log_dir>/watermarker.log (rotated at 5MB) and to the terminal"""
    level = getattr(logging, log_level.upper(), logging.INFO)

    target_dir = Path(log_dir or DEFAULT_LOG_DIR)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_file = target_dir / "watermarker.log"

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # setup_logging may run once per service instance
    for old_handler in logger.handlers[:]:
        logger.removeHandler(old_handler)
        old_handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    # Batch progress goes to stderr; stdout is reserved for JSON results
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    logger.info(f"Logging initialized at {logging.getLevelName(level)}. Log file: {log_file}")
    return logger


def log_exception(logger: logging.Logger, message: str) -> None:
    """Log an error message together with the active exception traceback"""
    logger.error(message, exc_info=True)
