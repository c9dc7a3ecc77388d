# logging_config.py
import logging
import os
from logging.handlers import RotatingFileHandler
from dotenv import load_dotenv

load_dotenv()
# Use an environment variable for the log file, with a default
LOG_FILE = os.environ.get("ECOHERO_LOG_FILE", "/tmp/ecohero_progress.log")
LOG_LEVEL = os.environ.get("ECOHERO_LOG_LEVEL", "INFO").upper()

def setup_logging():
    """Configures a rotating file logger for the progress engine and its worker."""
    logger = logging.getLogger()

    # Avoid adding handlers multiple times
    if logger.hasHandlers() and any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        return

    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

    # 10MB per file, keep last 5 files
    handler = RotatingFileHandler(LOG_FILE, maxBytes=10*1024*1024, backupCount=5)

    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    handler.setFormatter(formatter)

    logger.addHandler(handler)
