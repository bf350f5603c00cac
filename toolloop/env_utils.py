"""Environment based configuration.

Settings are read from environment variables.  A ``.env`` file in the
working directory (or a parent) is loaded on import so local setups
do not need to export anything.
"""

import os
from typing import Optional

from dotenv import load_dotenv

# Try loading environment variables from a .env file, if present.
load_dotenv()

DEFAULT_OLLAMA_ENDPOINT = "http://localhost:11434"
DEFAULT_TOKEN_LIMIT = 8192
DEFAULT_REQUEST_TIMEOUT_S = 120.0

OLLAMA_HOST_ENV = "OLLAMA_HOST"
OLLAMA_MODEL_ENV = "TOOLLOOP_OLLAMA_MODEL"
TOKEN_LIMIT_ENV = "TOOLLOOP_TOKEN_LIMIT"
REQUEST_TIMEOUT_ENV = "TOOLLOOP_REQUEST_TIMEOUT_S"
LOG_LEVEL_ENV = "TOOLLOOP_LOG_LEVEL"
PROXY_URL_ENV = "TOOLLOOP_PROXY_URL"
PROXY_TOKEN_ENV = "TOOLLOOP_PROXY_TOKEN"


def get_env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def parse_bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    key = str(value).strip().lower()
    if key in {"1", "true", "yes", "y", "on"}:
        return True
    if key in {"0", "false", "no", "n", "off"}:
        return False
    return default


def parse_float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def parse_int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def coerce_timeout(value: Optional[float]) -> Optional[float]:
    """Return a positive timeout in seconds or None if disabled/invalid."""
    if value is None:
        return None
    try:
        timeout = float(value)
    except (TypeError, ValueError):
        return None
    if timeout <= 0:
        return None
    return timeout
