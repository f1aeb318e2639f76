"""Application configuration."""

from __future__ import annotations

from dataclasses import dataclass

from rental_inventory.version import __app_name__, __company__

APP_NAME = __app_name__
APP_DATA_DIRNAME = "RentalInventory"
DB_FILENAME = "rental_inventory.db"
DB_BUSY_TIMEOUT_SECONDS = 30.0
LOGS_DIRNAME = "logs"
LOG_FILENAME = "app.log"
LOG_MAX_BYTES = 1_000_000
LOG_BACKUP_COUNT = 3
CONFIG_FILENAME = "config.json"
DEFAULT_FORECAST_DAYS = 14
DATA_DIR_ENV = "RENTAL_INVENTORY_HOME"
LOG_LEVEL_ENV = "RENTAL_INVENTORY_LOG_LEVEL"


@dataclass(frozen=True)
class AppConfig:
    """Static configuration values for RentalInventory."""

    app_name: str = APP_NAME
    organization_name: str = __company__
