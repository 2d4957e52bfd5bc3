import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional

# Relative log directories are resolved against the project root
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _resolve_logs_dir(log_dir: Optional[str]) -> str:
    log_dir = log_dir or os.getenv('INTERVIEW_LOG_DIR') or 'logs'
    if not os.path.isabs(log_dir):
        log_dir = os.path.join(project_root, log_dir)
    return log_dir


def setup_logging(level: str = 'INFO', log_dir: Optional[str] = None) -> logging.Logger:
    """Configure logging with file and console handlers."""
    logs_dir = _resolve_logs_dir(log_dir)
    os.makedirs(logs_dir, exist_ok=True)
    log_filename = os.path.join(logs_dir, f'interview_{datetime.now().strftime("%Y%m%d")}.log')

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Clear any existing handlers
    logger.handlers.clear()

    # File handler with rotation
    file_handler = RotatingFileHandler(
        log_filename,
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    file_handler.setLevel(logging.DEBUG)
    logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    console_handler.setLevel(logging.INFO)
    logger.addHandler(console_handler)

    # Set third-party loggers to WARNING to reduce noise
    for noisy in ("httpx", "httpcore", "urllib3", "groq"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
