"""
Application settings management.
Uses python-dotenv to load environment variables from .env file.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load .env file from project root
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(dotenv_path=env_path)

# Store original environment values to prevent modification
_ENV_CACHE = {}


def get_setting(key: str, default=None):
    """
    Get a setting from environment variables.

    Returns a copy of the value to prevent accidental modification of the
    actual environment variable.

    Args:
        key: Environment variable name
        default: Default value if not found

    Returns:
        The environment variable value or default

    Example:
        >>> OPENAI_API_KEY = get_setting('OPENAI_API_KEY')
        >>> DEBUG = get_setting('DEBUG', 'False') == 'True'
    """
    if key not in _ENV_CACHE:
        _ENV_CACHE[key] = os.getenv(key, default)

    value = _ENV_CACHE[key]

    # For mutable types, return a copy
    if isinstance(value, (list, dict)):
        return value.copy()

    return value


# OpenAI settings with defaults
OPENAI_API_KEY = get_setting('OPENAI_API_KEY')
OPENAI_BASE_URL = get_setting('OPENAI_BASE_URL')
OPENAI_MODEL = get_setting('OPENAI_MODEL', 'gpt-4o-mini')
OPENAI_MAX_RETRIES = int(get_setting('OPENAI_MAX_RETRIES', '2'))
OPENAI_TIMEOUT = int(get_setting('OPENAI_TIMEOUT', '120'))

# Debug mode
DEBUG = get_setting('DEBUG', 'False').lower() in ('true', '1', 'yes')

# Database
DATABASE_URL = get_setting('DATABASE_URL', 'sqlite:///data/hitintel.db')

# Outbound HTTP (RSS and HTML sources)
HTTP_TIMEOUT = int(get_setting('HTTP_TIMEOUT', '30'))
HTTP_USER_AGENT = get_setting('HTTP_USER_AGENT', 'HIT-Intelligence-Agent/1.0')

# Pipeline bounds
MAX_ITEMS_PER_SOURCE = int(get_setting('MAX_ITEMS_PER_SOURCE', '10'))
VIEWPOINT_BATCH_LIMIT = int(get_setting('VIEWPOINT_BATCH_LIMIT', '20'))
ROUNDTABLE_BATCH_LIMIT = int(get_setting('ROUNDTABLE_BATCH_LIMIT', '20'))

# Minimum summary relevance score that earns an analyst viewpoint
RELEVANCE_THRESHOLD = int(get_setting('RELEVANCE_THRESHOLD', '6'))

# A run of the same pipeline started less than this many minutes ago blocks a new one
RUN_LOCK_MINUTES = int(get_setting('RUN_LOCK_MINUTES', '60'))
