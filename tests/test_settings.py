import json
import sys

from rental_inventory.app import main
from rental_inventory.config import DEFAULT_FORECAST_DAYS
from rental_inventory.utils.settings import (
    InventorySettings,
    load_inventory_settings,
    save_inventory_settings,
)


def test_missing_config_gives_defaults(tmp_path):
    settings = load_inventory_settings(tmp_path / "config.json")

    assert settings == InventorySettings(None, DEFAULT_FORECAST_DAYS)


def test_settings_round_trip_keeps_other_keys(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"theme": "dark"}), encoding="utf-8")

    save_inventory_settings(config_path, InventorySettings(default_warehouse_id=2, forecast_days=30))

    assert load_inventory_settings(config_path) == InventorySettings(2, 30)
    assert json.loads(config_path.read_text(encoding="utf-8"))["theme"] == "dark"


def test_corrupt_or_invalid_config_falls_back(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text("{not json", encoding="utf-8")
    assert load_inventory_settings(config_path) == InventorySettings()

    config_path.write_text(
        json.dumps({"default_warehouse_id": "x", "forecast_days": -3}), encoding="utf-8"
    )
    assert load_inventory_settings(config_path) == InventorySettings()


def _run(capsys, *argv):
    code = main(list(argv))
    captured = capsys.readouterr()
    return code, captured


def test_command_line_round_trip(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setenv("RENTAL_INVENTORY_HOME", str(tmp_path / "home"))
    db_path = str(tmp_path / "inventory.db")

    code, captured = _run(capsys, "--db", db_path, "init", "--warehouse-name", "Main")
    assert code == 0
    assert json.loads(captured.out) == {"schema_version": 1}

    code, captured = _run(capsys, "--db", db_path, "verify")
    assert code == 0
    assert json.loads(captured.out) == {"checked": 0, "consistent": True}

    code, captured = _run(capsys, "--db", db_path, "tasks")
    assert json.loads(captured.out) == {"to_prepare": [], "to_collect": [], "to_clean": []}


def test_command_line_reports_service_errors(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    monkeypatch.setenv("RENTAL_INVENTORY_HOME", str(tmp_path / "home"))
    db_path = str(tmp_path / "inventory.db")

    code, captured = _run(capsys, "--db", db_path, "force-complete", "41")

    assert code == 1
    assert "Order 41 not found." in captured.err


def test_data_dir_override(tmp_path, monkeypatch):
    from rental_inventory.paths import get_config_path, get_logs_dir

    monkeypatch.setenv("RENTAL_INVENTORY_HOME", str(tmp_path / "home"))

    assert get_config_path() == tmp_path / "home" / "config.json"
    assert get_logs_dir().is_dir()


def test_save_leaves_no_temporary_files(tmp_path):
    config_path = tmp_path / "nested" / "config.json"

    save_inventory_settings(config_path, InventorySettings(default_warehouse_id=1))

    assert [p.name for p in config_path.parent.iterdir()] == ["config.json"]
