import logging
import time
import os
from pathlib import Path
from logging.handlers import RotatingFileHandler
from functools import wraps

logger = logging.getLogger(__name__)


def _log_level():
    return getattr(logging, os.environ.get('LOG_LEVEL', 'INFO').upper(), logging.INFO)


def setup_file_logging():
    """Setup file logging handler."""
    DATA_DIR = Path(os.environ.get("DATA_DIR", "/data"))
    if not DATA_DIR.exists():
        logger.warning("Not setting up file logging because missing data dir")
        return ""

    LOG_DIR = DATA_DIR / "logs"
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    LOG_PATH = LOG_DIR / "epub_search.log"

    file_handler = RotatingFileHandler(str(LOG_PATH), maxBytes=10*1024*1024, backupCount=5, encoding='utf-8')
    file_handler.setLevel(_log_level())
    file_handler.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s - %(name)s: %(message)s'))

    # Attach to the root logger so all module loggers go to the same file
    root_logger = logging.getLogger()
    root_logger.addHandler(file_handler)

    return LOG_PATH


def setup_console_logging():
    """Setup console logging handler."""
    console_handler = logging.StreamHandler()
    console_handler.setLevel(_log_level())
    console_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))

    root_logger = logging.getLogger()
    root_logger.addHandler(console_handler)

    # Root passes everything through; handlers filter individually
    root_logger.setLevel(logging.DEBUG)
    return console_handler


def sanitize_log_data(data):
    """Truncate long strings to "First 50... [truncated] ...Last 50"."""
    if data is None:
        return ""
    try:
        s = str(data)
    except Exception:
        return "[unrepresentable]"
    if len(s) <= 100:
        return s
    return f"{s[:50]}... [truncated] ...{s[-50:]}"


def time_execution(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.time()
        result = func(*args, **kwargs)
        end = time.time()
        ms = int((end - start) * 1000)
        logger.info(f"⏱️ [{func.__name__}] took {ms}ms")
        return result
    return wrapper
