"""Application configuration.

Single source of truth for all configuration values.
Loads from environment variables with .env file support.
"""

import os
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# =============================================================================
# VERSION - Read from pyproject.toml (single source of truth)
# =============================================================================


def _get_version() -> str:
    """Read version - prefer pyproject.toml, fall back to installed metadata."""
    try:
        import tomllib

        pyproject_path = Path(__file__).parent.parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            with open(pyproject_path, "rb") as f:
                data = tomllib.load(f)
                return data.get("project", {}).get("version", "0.0.0")
    except (OSError, KeyError, ValueError):
        pass

    try:
        from importlib.metadata import PackageNotFoundError, version

        return version("guidearr")
    except (ImportError, PackageNotFoundError):
        pass

    return "0.0.0"


VERSION = _get_version()

# Load .env file from project root
_PROJECT_ROOT = Path(__file__).parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"
load_dotenv(_ENV_FILE)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class Config:
    """Application configuration.

    All configuration values should be accessed through this class.
    Values are loaded from environment variables with sensible defaults.
    """

    # Guide timezone - decides what "today" means for the schedule window
    _DEFAULT_TIMEZONE: str = "UTC"
    _timezone_from_env: str | None = os.getenv("GUIDE_TIMEZONE") or os.getenv("TZ")

    # Schedule window
    GUIDE_DAYS_TO_GET: int = _env_int("GUIDE_DAYS_TO_GET", 14)

    # Schedules Direct JSON API
    SD_BASE_URL: str = os.getenv("SD_BASE_URL", "https://json.schedulesdirect.org/")
    SD_API_VERSION: str = os.getenv("SD_API_VERSION", "20141201")
    # Upper bounds on identifiers per request, API limits are 5000 and 500
    SD_PROGRAM_BATCH_SIZE: int = _env_int("SD_PROGRAM_BATCH_SIZE", 5000)
    SD_ARTWORK_BATCH_SIZE: int = _env_int("SD_ARTWORK_BATCH_SIZE", 500)

    # HTTP
    HTTP_TIMEOUT: float = _env_float("HTTP_TIMEOUT", 30.0)
    # Some providers only serve files to a "real" browser User-Agent
    HTTP_USER_AGENT: str = os.getenv(
        "HTTP_USER_AGENT",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_13_6) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/68.0.3440.106 Safari/537.36",
    )

    # Channel name matching
    MATCH_RESULTS: int = _env_int("MATCH_RESULTS", 3)
    MATCH_BAG_SIZE: int = _env_int("MATCH_BAG_SIZE", 3)

    @classmethod
    def get_timezone_str(cls) -> str:
        """Get the guide timezone as a string, validating the env value."""
        if cls._timezone_from_env:
            try:
                ZoneInfo(cls._timezone_from_env)
                return cls._timezone_from_env
            except (KeyError, ValueError):
                pass
        return cls._DEFAULT_TIMEZONE

    @classmethod
    def get_timezone(cls) -> ZoneInfo:
        """Get the guide timezone as a ZoneInfo object."""
        return ZoneInfo(cls.get_timezone_str())

    @classmethod
    def reload(cls) -> None:
        """Reload configuration from environment.

        Useful for testing or runtime config changes.
        """
        load_dotenv(_ENV_FILE, override=True)
        cls._timezone_from_env = os.getenv("GUIDE_TIMEZONE") or os.getenv("TZ")
        cls.GUIDE_DAYS_TO_GET = _env_int("GUIDE_DAYS_TO_GET", 14)
        cls.SD_BASE_URL = os.getenv("SD_BASE_URL", "https://json.schedulesdirect.org/")
        cls.SD_API_VERSION = os.getenv("SD_API_VERSION", "20141201")
        cls.SD_PROGRAM_BATCH_SIZE = _env_int("SD_PROGRAM_BATCH_SIZE", 5000)
        cls.SD_ARTWORK_BATCH_SIZE = _env_int("SD_ARTWORK_BATCH_SIZE", 500)
        cls.HTTP_TIMEOUT = _env_float("HTTP_TIMEOUT", 30.0)
        cls.MATCH_RESULTS = _env_int("MATCH_RESULTS", 3)
        cls.MATCH_BAG_SIZE = _env_int("MATCH_BAG_SIZE", 3)


def get_guide_timezone() -> ZoneInfo:
    """Get the configured guide timezone."""
    return Config.get_timezone()
