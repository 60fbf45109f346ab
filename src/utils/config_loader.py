import os
import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Full list of settings to manage
ALL_SETTINGS = [
    # Search
    'SEARCH_EXCERPT_CONTEXT', 'SEARCH_MATCH_CASE',

    # Books
    'BOOKS_DIR', 'EBOOK_CACHE_SIZE',

    # System
    'LOG_LEVEL', 'DATA_DIR',
]

# Default values
DEFAULT_CONFIG = {
    'LOG_LEVEL': 'INFO',
    'DATA_DIR': '/data',
    'BOOKS_DIR': '/books',
    'EBOOK_CACHE_SIZE': '3',
    # Characters of context on each side of a hit (150-character excerpt window)
    'SEARCH_EXCERPT_CONTEXT': '75',
    'SEARCH_MATCH_CASE': 'true',
}


class ConfigLoader:
    """
    Reads settings from environment variables, falling back to DEFAULT_CONFIG.
    A JSON settings file can be applied on top; its values take precedence
    over the environment.
    """

    @staticmethod
    def get(key: str) -> str:
        return os.environ.get(key, DEFAULT_CONFIG.get(key, ""))

    @staticmethod
    def get_int(key: str) -> int:
        raw = ConfigLoader.get(key)
        try:
            return int(raw)
        except (TypeError, ValueError):
            default = int(DEFAULT_CONFIG[key])
            logger.warning(f"⚠️ Invalid integer for {key}: '{raw}', using {default}")
            return default

    @staticmethod
    def get_bool(key: str) -> bool:
        return ConfigLoader.get(key).strip().lower() in ('true', '1', 'yes', 'on')

    @staticmethod
    def load_settings(settings_file) -> int:
        """
        Load settings from a JSON file and update os.environ.
        Unknown keys are ignored. Returns the number of settings applied.
        """
        path = Path(settings_file)
        if not path.exists():
            logger.debug(f"No settings file at {path}")
            return 0

        with open(path, 'r', encoding='utf-8') as f:
            settings = json.load(f)

        count = 0
        for key, value in settings.items():
            if key not in ALL_SETTINGS:
                logger.warning(f"⚠️ Ignoring unknown setting '{key}' in {path.name}")
                continue
            os.environ[key] = str(value) if value is not None else ""
            count += 1

        logger.info(f"⚙️  Loaded {count} settings from {path.name}")
        return count
