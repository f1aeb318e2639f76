"""Filesystem paths for RentalInventory."""

from __future__ import annotations

import os
from pathlib import Path

from rental_inventory.config import (
    APP_DATA_DIRNAME,
    CONFIG_FILENAME,
    DATA_DIR_ENV,
    DB_FILENAME,
    LOGS_DIRNAME,
)


def _ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_app_data_dir() -> Path:
    """Create and return the data directory.

    ``RENTAL_INVENTORY_HOME`` points it anywhere; otherwise it lives under
    ``APPDATA`` on Windows or ``~/.rental_inventory`` elsewhere.
    """
    override = os.getenv(DATA_DIR_ENV)
    if override:
        return _ensure_dir(Path(override).expanduser())
    appdata = os.getenv("APPDATA")
    base_dir = Path(appdata) if appdata else Path.home() / ".rental_inventory"
    return _ensure_dir(base_dir / APP_DATA_DIRNAME)


def get_db_path() -> Path:
    return get_app_data_dir() / DB_FILENAME


def get_logs_dir() -> Path:
    return _ensure_dir(get_app_data_dir() / LOGS_DIRNAME)


def get_config_path() -> Path:
    return get_app_data_dir() / CONFIG_FILENAME
