from __future__ import annotations

import logging

from flask import (
    Blueprint,
    abort,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    url_for,
)

from kitchen_inventory.models import utcnow
from kitchen_inventory.services import inventory as inventory_service
from kitchen_inventory.services import inventory_store as store
from kitchen_inventory.services import preferences
from kitchen_inventory.services.attention import attention_reasons
from kitchen_inventory.services.inventory_store import InventoryWriteError, ItemNotFoundError
from kitchen_inventory.utils.csv_codec import format_quantity
from kitchen_inventory.utils.text_files import (
    TextFileError,
    read_uploaded_text,
    text_download,
    timestamped_filename,
)
from kitchen_inventory.utils.validation import GridRow, ItemValidationError, validate_grid_rows

bp = Blueprint("inventory", __name__, url_prefix="/inventory")

logger = logging.getLogger("kitchen_inventory.routes.inventory")


def status_text(shown: int, total: int, filter_text: str | None) -> str:
    if not (filter_text or "").strip():
        return f"Items: {total}"
    return f"Items: {shown}/{total} (filter: '{filter_text}')"


def _grid_redirect(filter_text: str | None = None, item_id: int | None = None):
    args = {}
    if filter_text:
        args["q"] = filter_text
    if item_id:
        args["item"] = item_id
    return redirect(url_for("inventory.list_items", **args))


def _rows_from_form(form) -> list[GridRow]:
    ids = form.getlist("item_id")
    names = form.getlist("name")
    quantities = form.getlist("quantity")
    units = form.getlist("unit")
    expiries = form.getlist("expiry_date")

    rows = []
    for index, name in enumerate(names):
        rows.append(
            GridRow(
                id=ids[index] if index < len(ids) else "0",
                name=name,
                quantity=quantities[index] if index < len(quantities) else "",
                unit=units[index] if index < len(units) else "",
                expiry_date=expiries[index] if index < len(expiries) else "",
            )
        )
    return rows


def _database_offline():
    return not current_app.config.get("DATABASE_AVAILABLE", True)


def _offline_export_redirect():
    flash("Export unavailable: the inventory database is offline.", "danger")
    return redirect(url_for("inventory.list_items"))


@bp.route("/")
def list_items():
    filter_text = request.args.get("q", "")
    if _database_offline():
        return render_template(
            "inventory/items.html",
            items=[],
            filter_text=filter_text,
            status=status_text(0, 0, filter_text),
            attention={},
            selected=None,
            movements=[],
            last_saved_at=None,
        )

    all_items = store.list_items()
    items = [item for item in all_items if store.matches_filter(item, filter_text)]

    selected = None
    selected_id = request.args.get("item", type=int)
    if selected_id:
        selected = store.get_item(selected_id)
    movements = store.movements_for_item(selected.id) if selected else []

    thresholds = preferences.get_thresholds()
    attention = {item.id: attention_reasons(item, thresholds) for item in items}

    return render_template(
        "inventory/items.html",
        items=items,
        filter_text=filter_text,
        status=status_text(len(items), len(all_items), filter_text),
        attention=attention,
        selected=selected,
        movements=movements,
        last_saved_at=preferences.get_last_saved_at(),
    )


@bp.route("/save", methods=["POST"])
def save_items():
    filter_text = request.form.get("q", "")
    selected_id = request.form.get("selected_item", type=int)
    rows = _rows_from_form(request.form)
    if not rows:
        flash("Nothing to save.", "info")
        return _grid_redirect(filter_text, selected_id)

    try:
        states = validate_grid_rows(rows)
    except ItemValidationError as exc:
        for message in exc.errors:
            flash(message, "danger")
        flash("Save blocked: fix the rows above and try again.", "danger")
        return _grid_redirect(filter_text, selected_id)

    try:
        result = inventory_service.reconcile_save(states)
    except (InventoryWriteError, ItemNotFoundError) as exc:
        flash(f"Save failed: {exc}", "danger")
        return _grid_redirect(filter_text, selected_id)

    preferences.record_last_saved_at(utcnow())
    flash(
        f"Saved {len(result.upserts)} items. Movements recorded: {len(result.movements)}.",
        "success",
    )
    return _grid_redirect(filter_text, selected_id)


@bp.route("/item/<int:item_id>/delete", methods=["POST"])
def delete_item(item_id: int):
    filter_text = request.form.get("q", "")
    try:
        movement = inventory_service.reconcile_delete(item_id)
    except ItemNotFoundError:
        flash(f"Item {item_id} was already removed.", "warning")
        return _grid_redirect(filter_text)
    except InventoryWriteError as exc:
        flash(f"Delete failed: {exc}", "danger")
        return _grid_redirect(filter_text)

    preferences.record_last_saved_at(utcnow())
    message = "Item deleted."
    if movement is not None:
        message += f" Adjustment of {format_quantity(movement.quantity)} recorded."
    flash(message, "success")
    return _grid_redirect(filter_text)


@bp.route("/import", methods=["GET", "POST"])
def import_items():
    if request.method == "POST":
        try:
            text = read_uploaded_text(
                request.files.get("file"),
                current_app.config.get("IMPORT_ALLOWED_EXTENSIONS", {"csv"}),
            )
        except TextFileError as exc:
            flash(str(exc), "danger")
            return redirect(request.url)

        try:
            result = inventory_service.import_csv(text)
        except ItemValidationError as exc:
            for message in exc.errors:
                flash(message, "danger")
            flash("Import failed: no items were changed.", "danger")
            return redirect(request.url)
        except (InventoryWriteError, ItemNotFoundError) as exc:
            flash(f"Import failed: {exc}", "danger")
            return redirect(request.url)

        if result.added or result.updated:
            preferences.record_last_saved_at(utcnow())
            flash(result.status_message, "success")
        else:
            flash(result.status_message, "warning")
        return redirect(url_for("inventory.list_items"))

    return render_template("inventory/import.html")


@bp.route("/export")
def export_items():
    if _database_offline():
        return _offline_export_redirect()
    filter_text = request.args.get("q", "")
    items = store.list_items(filter_text)
    content = inventory_service.export_items_csv(items)
    logger.info("Exported %s items", len(items))
    return text_download(content, timestamped_filename("items"))


@bp.route("/movements")
def recent_movements():
    limit = current_app.config.get("RECENT_MOVEMENTS_LIMIT", 100)
    movements = [] if _database_offline() else store.recent_movements(limit)
    return render_template("inventory/movements.html", movements=movements, limit=limit)


@bp.route("/movements/export")
def export_recent_movements():
    if _database_offline():
        return _offline_export_redirect()
    limit = current_app.config.get("RECENT_MOVEMENTS_LIMIT", 100)
    movements = store.recent_movements(limit)
    name_lookup = store.item_names_for(movement.item_id for movement in movements)
    content = inventory_service.export_movements_csv(movements, name_lookup)
    logger.info("Exported %s recent movements", len(movements))
    return text_download(content, timestamped_filename("movements-recent"))


@bp.route("/item/<int:item_id>/movements/export")
def export_item_movements(item_id: int):
    if _database_offline():
        return _offline_export_redirect()
    item = store.get_item(item_id)
    if item is None:
        abort(404)
    movements = store.movements_for_item(item.id)
    content = inventory_service.export_movements_csv(movements, {item.id: item.name})
    return text_download(content, timestamped_filename(f"movements-item-{item.id}"))
