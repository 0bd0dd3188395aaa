import asyncio
import logging
import random
import re
from datetime import datetime
from typing import Dict, Optional, Tuple

from venue_scraper.config import LoggingSettings, settings


# --- Logger Setup ---
_loggers: Dict[str, logging.Logger] = {}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s"


def setup_logger(
    logger_name: str,
    log_file_prefix: str,
    level: int = logging.INFO,
    logging_settings: Optional[LoggingSettings] = None,
) -> logging.Logger:
    """Configures and returns a logger that outputs to console and a timestamped file."""
    if logger_name in _loggers:
        return _loggers[logger_name]

    log_settings = logging_settings or settings.logging

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.propagate = False  # Prevent duplicate logs if root logger is also configured

    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    # Console Handler
    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    # File Handler
    if log_settings.enable_file_logging:
        log_dir = log_settings.log_output_directory
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_file_path = log_dir / f"{log_file_prefix}_{timestamp}.log"
            fh = logging.FileHandler(log_file_path)
            fh.setLevel(level)
            fh.setFormatter(formatter)
            logger.addHandler(fh)
        except OSError as e:
            logger.error(f"Failed to create file handler for logger {logger_name} at {log_dir}: {e}", exc_info=True)

    _loggers[logger_name] = logger
    logger.info(f"Logger '{logger_name}' initialized.")
    return logger


# --- Delays ---

def get_random_delay(delay_range: Tuple[float, float], multiplier: float = 1.0) -> float:
    """Returns a random delay in seconds drawn uniformly from delay_range."""
    low, high = delay_range
    return random.uniform(low, high) * multiplier


async def random_delay(delay_range: Tuple[float, float], logger: Optional[logging.Logger] = None) -> float:
    """Sleeps for a random delay from delay_range and returns the slept seconds."""
    delay = get_random_delay(delay_range)
    if delay <= 0:
        return 0.0
    if logger:
        logger.debug(f"Sleeping {delay:.2f}s")
    await asyncio.sleep(delay)
    return delay


# --- Text helpers ---

def slugify(text: Optional[str]) -> str:
    """Lowercases, drops non-alphanumerics and turns whitespace runs into hyphens."""
    if not text:
        return ""
    text = text.lower()
    text = re.sub(r"[^a-z0-9\s-]", "", text)
    text = re.sub(r"[\s-]+", "-", text.strip())
    return text.strip("-")
