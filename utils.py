# utils.py
import logging
import sys

# Import the centralized settings object
from config import settings

def setup_logger():
    """Configures and returns a logger based on settings."""
    logger = logging.getLogger("PolicyExtractor")
    # Use LOG_LEVEL from settings, converting string to logging level
    log_level_int = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logger.setLevel(log_level_int)

    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(processName)s - %(threadName)s - %(message)s'
    )

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(log_level_int)
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    # Use LOG_FILE from settings; None means stdout only
    log_file_path = settings.LOG_FILE
    if log_file_path is not None:
        # Ensure log directory exists
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file_path, mode='a')
        file_handler.setLevel(log_level_int)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger

# Initialize logger (it will now use settings)
log = setup_logger()

def clean_filename(filename: str) -> str:
    """Removes problematic characters for file paths."""
    cleaned = "".join(c for c in filename if c.isalnum() or c in ('.', '-', '_')).strip('.')
    return cleaned or "upload"
