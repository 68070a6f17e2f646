"""
Logging configuration for the risk analytics engine
"""
import logging
import sys
from pathlib import Path


LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
FILE_LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s'


def setup_logger(name: str = "risk_analytics", log_file: str = None,
                 level: int = logging.INFO) -> logging.Logger:
    """Setup a logger with console and optional file output"""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear existing handlers
    logger.handlers = []

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    logger.addHandler(console_handler)

    # File handler (optional)
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        logger.addHandler(file_handler)

    return logger
