"""Runtime settings read from the environment (``.env`` is loaded by the app package)."""
from __future__ import annotations
import os
from typing import Any, Dict, List, Optional

# The store endpoint and the token signing key; without them nothing can be served.
REQUIRED_SETTINGS = ('DATABASE_URL', 'JWT_SECRET_KEY')

DEFAULT_LOG_LEVEL = 'INFO'
DEFAULT_TOKEN_MINUTES = 60


class ConfigurationError(RuntimeError):
    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"Missing configuration: {', '.join(self.missing)}")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f'{name} must be int')


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    settings: Dict[str, Any] = {
        'DATABASE_URL': os.getenv('DATABASE_URL'),
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY'),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', DEFAULT_LOG_LEVEL),
        'JWT_ACCESS_TOKEN_EXPIRES_MINUTES': _int_env('JWT_ACCESS_TOKEN_EXPIRES_MINUTES', DEFAULT_TOKEN_MINUTES),
    }
    if overrides:
        # allow tests or callers to override default config values
        settings.update(overrides)
    return settings


def missing_settings(settings: Dict[str, Any]) -> List[str]:
    return [key for key in REQUIRED_SETTINGS if not settings.get(key)]
