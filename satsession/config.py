"""Application configuration and constants."""
import os
import sys
from pathlib import Path


def _resource_path(relative: str) -> Path:
    """Get path to resource, works for PyInstaller bundles."""
    if getattr(sys, "frozen", False):
        base_dir = Path(sys._MEIPASS)
    else:
        base_dir = Path(__file__).resolve().parent.parent
    return base_dir / relative


def _parse_int_env(name: str, default: int) -> int:
    """Parse integer from environment variable."""
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# Directories
DATA_DIR = Path(os.environ.get("TEST_DATA_DIR", Path.cwd() / "data" / "tests"))
DATA_DIR.mkdir(parents=True, exist_ok=True)

MIGRATIONS_DIR = _resource_path("alembic")

# Database
DB_DIR = Path(os.environ.get("DB_DIR", Path.cwd() / "data"))
DB_DIR.mkdir(parents=True, exist_ok=True)
DATABASE_URL = os.environ.get(
    "DATABASE_URL", f"sqlite:///{DB_DIR / 'satsession.db'}"
)

# Session timing
AUTOSAVE_INTERVAL_SECONDS = _parse_int_env("AUTOSAVE_INTERVAL_SECONDS", 30)
COUNTDOWN_TICK_SECONDS = _parse_int_env("COUNTDOWN_TICK_SECONDS", 1)

# Highlighting
HIGHLIGHT_MIN_LENGTH = _parse_int_env("HIGHLIGHT_MIN_LENGTH", 2)
HIGHLIGHT_MAX_LENGTH = _parse_int_env("HIGHLIGHT_MAX_LENGTH", 200)
HIGHLIGHT_COLORS = {
    "yellow": "#fef08a",
    "green": "#bbf7d0",
    "blue": "#bfdbfe",
    "pink": "#fecaca",
}

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")

# Results service (remote when a URL is configured, local database otherwise)
RESULTS_SERVICE_URL = os.environ.get("RESULTS_SERVICE_URL", "").rstrip("/")
RESULTS_SERVICE_TOKEN = os.environ.get("RESULTS_SERVICE_TOKEN")
RESULTS_TIMEOUT_SECONDS = _parse_int_env("RESULTS_TIMEOUT_SECONDS", 15)

# Reward ladder: minimum percentage -> coins
COIN_THRESHOLDS = ((90, 5), (80, 4), (70, 3), (60, 2), (50, 1))
