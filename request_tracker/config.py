"""Request Tracker Configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default

# Project root (one level up from request_tracker/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Root directory scanned recursively for *.json request logs
LOGS_DIR = Path(os.getenv("REQUEST_TRACKER_LOGS_DIR", str(PROJECT_ROOT / "docs" / "requests"))).expanduser()
LOG_FILE_SUFFIX = ".json"

# Logging
LOG_LEVEL = os.getenv("REQUEST_TRACKER_LOG_LEVEL", "INFO").upper()

# Observability
OTEL_ENABLED = _env_bool("REQUEST_TRACKER_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("REQUEST_TRACKER_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("REQUEST_TRACKER_OTEL_SERVICE_NAME", "request-tracker")
PROM_PORT = _env_int("REQUEST_TRACKER_PROM_PORT", 9464)

# Watcher / startup refresh
WATCH_ENABLED = _env_bool("REQUEST_TRACKER_WATCH_ENABLED", True)
STARTUP_REFRESH_DELAY_SECONDS = _env_int("REQUEST_TRACKER_STARTUP_REFRESH_DELAY_SECONDS", 0)

# Server settings
HOST = os.getenv("REQUEST_TRACKER_HOST", "0.0.0.0")
PORT = _env_int("REQUEST_TRACKER_PORT", 8000)

# CORS
FRONTEND_ORIGIN = os.getenv("REQUEST_TRACKER_FRONTEND_ORIGIN", "http://localhost:3000")
