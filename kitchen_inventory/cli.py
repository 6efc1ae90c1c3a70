import json
import logging
from pathlib import Path

import click
from flask import current_app

from .services import inventory as inventory_service
from .services import inventory_store
from .services.database_info import collect_database_info
from .services.diagnostics_exporter import (
    DiagnosticsExportError,
    default_export_path,
    export_diagnostics,
)
from .services.inventory_store import InventoryWriteError
from .utils.text_files import timestamped_filename
from .utils.validation import ItemValidationError


def register_cli(app):
    @app.cli.command("export-diagnostics")
    @click.argument("path", required=False)
    def export_diagnostics_command(path: str | None) -> None:
        """Write the diagnostics zip (default: the data directory)."""
        app_obj = current_app._get_current_object()
        target = Path(path) if path else default_export_path(app_obj)
        try:
            written = export_diagnostics(app_obj, target)
        except DiagnosticsExportError as exc:
            click.echo(f"Diagnostics export failed: {exc}", err=True)
            raise SystemExit(1)
        click.echo(f"Diagnostics written to {written}")

    @app.cli.command("check-db")
    def check_db() -> None:
        """Headless smoke check: startup, schema and database health."""
        app_obj = current_app._get_current_object()
        if not app_obj.config.get("DATABASE_AVAILABLE", True):
            click.echo(app_obj.config.get("DATABASE_ERROR") or "Database unavailable.", err=True)
            raise SystemExit(1)

        info = collect_database_info(app_obj)
        click.echo(json.dumps(info.as_dict(), indent=2, sort_keys=True, default=str))
        if info.health.status != "OK":
            raise SystemExit(1)
        click.echo(f"Items: {len(inventory_store.list_items())}")

    @app.cli.command("import-csv")
    @click.argument("path", type=click.Path(exists=True, dir_okay=False))
    def import_csv_command(path: str) -> None:
        """Import items from a UTF-8 CSV file."""
        text = Path(path).read_text(encoding="utf-8-sig")
        try:
            result = inventory_service.import_csv(text)
        except ItemValidationError as exc:
            for message in exc.errors:
                click.echo(message, err=True)
            raise SystemExit(1)
        except InventoryWriteError as exc:
            click.echo(f"Import failed: {exc}", err=True)
            raise SystemExit(1)
        click.echo(result.status_message)

    @app.cli.command("export-items")
    @click.argument("path", required=False)
    def export_items_command(path: str | None) -> None:
        """Export every item to CSV."""
        target = Path(path or timestamped_filename("items"))
        content = inventory_service.export_items_csv(inventory_store.list_items())
        with open(target, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        logging.getLogger("kitchen_inventory.cli").info("Exported items to %s", target)
        click.echo(f"Items exported to {target}")
