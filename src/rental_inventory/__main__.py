"""Module entry point for python -m rental_inventory."""

from __future__ import annotations

from rental_inventory.app import main


if __name__ == "__main__":
    raise SystemExit(main())
