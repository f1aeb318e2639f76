"""Persisted inventory settings."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from rental_inventory.config import DEFAULT_FORECAST_DAYS
from rental_inventory.logging_config import get_logger


@dataclass(frozen=True)
class InventorySettings:
    """Operator preferences stored in the JSON config file."""

    default_warehouse_id: Optional[int] = None
    forecast_days: int = DEFAULT_FORECAST_DAYS


def load_config_data(config_path: Path) -> dict[str, Any]:
    """Load the JSON config; unreadable files count as empty."""
    if not config_path.exists():
        return {}
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        get_logger(__name__).warning("Ignoring unreadable config file %s", config_path)
        return {}
    return data if isinstance(data, dict) else {}


def save_config_data(config_path: Path, data: dict[str, Any]) -> None:
    """Write the JSON config through a temporary file so readers never see half of it."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(
        dir=config_path.parent, prefix=config_path.name, suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False, indent=2)
        os.replace(temp_name, config_path)
    except Exception:
        Path(temp_name).unlink(missing_ok=True)
        raise


def _coerce_int(value: object, default: Optional[int]) -> Optional[int]:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def load_inventory_settings(config_path: Path) -> InventorySettings:
    """Load inventory settings from disk."""
    data = load_config_data(config_path)
    forecast_days = _coerce_int(data.get("forecast_days"), DEFAULT_FORECAST_DAYS)
    if not forecast_days or forecast_days < 1:
        forecast_days = DEFAULT_FORECAST_DAYS
    return InventorySettings(
        default_warehouse_id=_coerce_int(data.get("default_warehouse_id"), None),
        forecast_days=forecast_days,
    )


def save_inventory_settings(config_path: Path, settings: InventorySettings) -> None:
    """Save inventory settings, keeping unrelated keys in the file."""
    payload = load_config_data(config_path)
    payload["default_warehouse_id"] = settings.default_warehouse_id
    payload["forecast_days"] = settings.forecast_days
    save_config_data(config_path, payload)
