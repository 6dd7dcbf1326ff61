"""Centralized path constants for the fleet simulator."""

from __future__ import annotations

import os
from pathlib import Path

# Project/package roots
PACKAGE_ROOT = Path(__file__).resolve().parents[1]
PROJECT_ROOT = PACKAGE_ROOT.parent

# Configuration
CONFIG_PATH = PROJECT_ROOT / "config.txt"

# Bundled device data models
DATA_MODELS_DIR = PACKAGE_ROOT / "data_models"
DEFAULT_DATA_MODEL = DATA_MODELS_DIR / "sample_device.csv"

# Logging directories
_LOG_DIR_ENV = os.environ.get("FLEET_SIM_LOG_DIR")
LOGS_DIR = Path(_LOG_DIR_ENV).expanduser() if _LOG_DIR_ENV else (PROJECT_ROOT / "logs")
LAUNCHER_LOG_FILE = LOGS_DIR / "launcher.log"


def worker_log_file(label: str) -> Path:
    """Log file of the worker process that owns identity range ``label``."""
    return LOGS_DIR / f"worker-{label}.log"


def ensure_directories() -> None:
    """Create necessary directories if they don't exist."""

    LOGS_DIR.mkdir(parents=True, exist_ok=True)


__all__ = [
    'PROJECT_ROOT',
    'PACKAGE_ROOT',
    'CONFIG_PATH',
    'DATA_MODELS_DIR',
    'DEFAULT_DATA_MODEL',
    'LOGS_DIR',
    'LAUNCHER_LOG_FILE',
    'worker_log_file',
    'ensure_directories',
]
