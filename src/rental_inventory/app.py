"""Command line entry point."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict, replace
from typing import Any, Optional, Sequence

from rental_inventory.config import AppConfig
from rental_inventory.db.connection import get_connection
from rental_inventory.db.migrations import apply_migrations, get_schema_version
from rental_inventory.logging_config import configure_logging, get_logger
from rental_inventory.paths import get_config_path, get_db_path
from rental_inventory.repositories import (
    order_item_to_record,
    order_to_record,
    product_to_record,
)
from rental_inventory.services.container import InventoryServices, build_services
from rental_inventory.services.errors import ServiceError
from rental_inventory.utils.settings import load_inventory_settings


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def build_parser() -> argparse.ArgumentParser:
    config = AppConfig()
    parser = argparse.ArgumentParser(
        prog="rental-inventory",
        description=f"{config.app_name} stock operations",
    )
    parser.add_argument("--db", help="Path to the SQLite database file.")
    parser.add_argument(
        "--warehouse",
        type=int,
        dest="warehouse_id",
        help="Warehouse id to act on instead of the configured default.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    init = commands.add_parser("init", help="Create or upgrade the database.")
    init.add_argument("--warehouse-name", help="Create a first warehouse if none exists.")

    availability = commands.add_parser("availability", help="Units free for a date range.")
    availability.add_argument("product_id", type=int)
    availability.add_argument("quantity", type=int)
    availability.add_argument("start_date")
    availability.add_argument("end_date")

    commands.add_parser("tasks", help="Warehouse work lists.")

    forecast = commands.add_parser("forecast", help="Projected stock on hand.")
    forecast.add_argument("product_id", type=int)
    forecast.add_argument("--days", type=int)

    stock = commands.add_parser("stock", help="Bucket counters of a product.")
    stock.add_argument("product_id", type=int)

    clean = commands.add_parser("clean", help="Move dirty units back to available.")
    clean.add_argument("product_id", type=int)
    clean.add_argument("quantity", type=int)

    order = commands.add_parser("order", help="Show an order with its items.")
    order.add_argument("order_id", type=int)

    force = commands.add_parser("force-complete", help="Complete an order now.")
    force.add_argument("order_id", type=int)

    logs = commands.add_parser("logs", help="Inventory log entries, newest first.")
    logs.add_argument("--product", type=int, dest="product_id")
    logs.add_argument("--order", type=int, dest="order_id")
    logs.add_argument("--limit", type=int, default=50)

    verify = commands.add_parser("verify", help="Check bucket totals against units owned.")
    verify.add_argument("product_id", type=int, nargs="?")
    return parser


def _order_payload(services: InventoryServices, order_id: int) -> dict[str, Any]:
    order, items = services.order_service.get_order(order_id)
    payload = order_to_record(order)
    payload["items"] = [order_item_to_record(item) for item in items]
    return payload


def _run(args: argparse.Namespace, services: InventoryServices) -> int:
    command = args.command
    if command == "init":
        if args.warehouse_name and not services.warehouse_service.list_warehouses():
            services.warehouse_service.create_warehouse(args.warehouse_name)
        _print_json({"schema_version": get_schema_version(services.connection)})
    elif command == "availability":
        result = services.availability_service.check_availability(
            args.product_id, args.quantity, args.start_date, args.end_date
        )
        _print_json({"available": result.available, "is_enough": result.is_enough})
    elif command == "tasks":
        _print_json(asdict(services.warehouse_service.list_tasks()))
    elif command == "forecast":
        days = args.days or services.settings.forecast_days
        _print_json(
            [
                {**asdict(entry), "forecast": entry.forecast}
                for entry in services.forecast_service.forecast_range(args.product_id, days)
            ]
        )
    elif command == "stock":
        summary = services.product_service.stock_summary(args.product_id)
        _print_json(
            {
                "product": product_to_record(summary.product),
                "totals": summary.totals.as_dict(),
                "warehouses": {
                    str(record.warehouse_id): record.as_dict()
                    for record in summary.warehouses
                },
            }
        )
    elif command == "clean":
        record = services.warehouse_service.clean(
            args.product_id, args.quantity, args.warehouse_id
        )
        _print_json(record.as_dict())
    elif command == "order":
        _print_json(_order_payload(services, args.order_id))
    elif command == "force-complete":
        services.order_service.force_complete(
            args.order_id, warehouse_id=args.warehouse_id
        )
        _print_json(_order_payload(services, args.order_id))
    elif command == "logs":
        entries = services.audit_log_service.list_entries(
            product_id=args.product_id, order_id=args.order_id, limit=args.limit
        )
        _print_json([asdict(entry) for entry in entries])
    elif command == "verify":
        if args.product_id is not None:
            product_ids = [args.product_id]
        else:
            product_ids = [
                int(product.id)
                for product in services.product_service.list_products(include_inactive=True)
            ]
        for product_id in product_ids:
            services.ledger_service.verify_conservation(product_id)
        _print_json({"checked": len(product_ids), "consistent": True})
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run one RentalInventory command."""
    args = build_parser().parse_args(argv)
    configure_logging()
    logger = get_logger(__name__)
    db_path = args.db or get_db_path()
    connection = get_connection(db_path)
    try:
        apply_migrations(connection)
        settings = load_inventory_settings(get_config_path())
        if args.warehouse_id is not None:
            settings = replace(settings, default_warehouse_id=args.warehouse_id)
        services = build_services(connection, settings)
        logger.info("Running command %s on %s", args.command, db_path)
        return _run(args, services)
    except ServiceError as exc:
        logger.warning("Command %s failed: %s", args.command, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        connection.close()


if __name__ == "__main__":
    raise SystemExit(main())
