"""
Engine Settings

Centralized configuration for the rating & outcome engine.
All tunable values are loaded from environment variables (a local .env file
is honoured); domain rules that must not drift live as constants in the
services that own them.
"""
import os
from datetime import timedelta

from dotenv import load_dotenv

load_dotenv()


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


def get_int_env(key: str, default: int) -> int:
    """Get an integer value from environment variable, falling back on garbage."""
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_float_env(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class EngineSettings:
    """
    Settings for the engine.

    To add a new setting:
    1. Add it here as a class attribute
    2. Load it from an environment variable
    3. Read it through EngineSettings in the service that needs it
    """

    DATABASE_URL: str = os.getenv("MATCHDAY_DATABASE_URL", "sqlite+aiosqlite:///./matchday.db")

    # Reveal scheduling: production delay vs. debug/fast delay
    REVEAL_DELAY_SECONDS: int = get_int_env("MATCHDAY_REVEAL_DELAY_SECONDS", 6 * 60 * 60)
    FAST_REVEAL_DELAY_SECONDS: int = get_int_env("MATCHDAY_FAST_REVEAL_DELAY_SECONDS", 30)
    FAST_RESULTS: bool = get_bool_env("MATCHDAY_FAST_RESULTS", False)

    # Remote procedures
    PROCEDURE_TIMEOUT_SECONDS: float = get_float_env("MATCHDAY_PROCEDURE_TIMEOUT_SECONDS", 8.0)

    @classmethod
    def reveal_delay(cls, fast: bool = False) -> timedelta:
        """Delay between consensus and reveal for the selected mode."""
        seconds = cls.FAST_REVEAL_DELAY_SECONDS if fast else cls.REVEAL_DELAY_SECONDS
        return timedelta(seconds=seconds)

    @classmethod
    def get_all(cls) -> dict:
        return {
            key: getattr(cls, key)
            for key in dir(cls)
            if key.isupper() and not key.startswith('_')
        }
