"""JSON-file preferences kept next to the local database."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from flask import Flask, current_app

from kitchen_inventory.services.attention import (
    DEFAULT_EXPIRING_SOON_DAYS,
    DEFAULT_LOW_STOCK_THRESHOLD,
    AttentionThresholds,
)

PREFERENCES_FILENAME = "preferences.json"
LOW_STOCK_THRESHOLD_KEY = "low_stock_threshold"
EXPIRING_SOON_DAYS_KEY = "expiring_soon_days"
LAST_SAVED_AT_KEY = "last_saved_at_utc"

THRESHOLD_QUANT = Decimal("0.001")
MAX_THRESHOLD = Decimal("1000000")
MAX_EXPIRING_SOON_DAYS = 365

_EXTENSION_KEY = "kitchen_inventory.preferences"

logger = logging.getLogger("kitchen_inventory.preferences")


class PreferencesStore:
    """Case-insensitive key/value store persisted as a JSON object.

    A missing or unreadable file starts out empty. Saves write a temporary
    sibling first and swap it into place.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._values: dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return
        except OSError:
            logger.warning("Unable to read preferences from %s", self.path, exc_info=True)
            return

        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt preferences file %s", self.path)
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring preferences file %s without a JSON object", self.path)
            return

        self._values = {str(key).lower(): value for key, value in data.items()}

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._values.get(key.lower(), default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key.lower()] = value
            self._save()

    def as_dict(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._values)

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(
            json.dumps(self._values, indent=2, sort_keys=True), encoding="utf-8"
        )
        tmp_path.replace(self.path)


def init_app(app: Flask) -> PreferencesStore:
    path = app.config.get("PREFERENCES_PATH") or (
        Path(app.config["INVENTORY_DATA_DIR"]) / PREFERENCES_FILENAME
    )
    store = PreferencesStore(Path(path))
    app.extensions[_EXTENSION_KEY] = store
    return store


def get_store() -> PreferencesStore:
    return current_app.extensions[_EXTENSION_KEY]


def get_thresholds() -> AttentionThresholds:
    store = get_store()
    try:
        low_stock = Decimal(str(store.get(LOW_STOCK_THRESHOLD_KEY, DEFAULT_LOW_STOCK_THRESHOLD)))
    except (InvalidOperation, TypeError, ValueError):
        low_stock = DEFAULT_LOW_STOCK_THRESHOLD
    try:
        days = int(store.get(EXPIRING_SOON_DAYS_KEY, DEFAULT_EXPIRING_SOON_DAYS))
    except (TypeError, ValueError):
        days = DEFAULT_EXPIRING_SOON_DAYS
    return AttentionThresholds(low_stock_threshold=low_stock, expiring_soon_days=days)


def set_thresholds(low_stock_threshold, expiring_soon_days) -> AttentionThresholds:
    try:
        low_stock = Decimal(str(low_stock_threshold).strip())
    except (InvalidOperation, TypeError):
        raise ValueError("Enter a valid number for the low-stock threshold.")
    if not low_stock.is_finite():
        raise ValueError("Enter a valid number for the low-stock threshold.")
    if low_stock < 0:
        raise ValueError("Low-stock threshold cannot be negative.")
    if low_stock > MAX_THRESHOLD:
        raise ValueError("Low-stock threshold cannot exceed 1,000,000.")

    try:
        days = int(str(expiring_soon_days).strip())
    except (TypeError, ValueError):
        raise ValueError("Enter a whole number of days for expiring soon.")
    if days < 0 or days > MAX_EXPIRING_SOON_DAYS:
        raise ValueError(f"Expiring-soon days must be between 0 and {MAX_EXPIRING_SOON_DAYS}.")

    low_stock = low_stock.quantize(THRESHOLD_QUANT).normalize()
    store = get_store()
    store.set(LOW_STOCK_THRESHOLD_KEY, format(low_stock, "f"))
    store.set(EXPIRING_SOON_DAYS_KEY, days)
    return AttentionThresholds(low_stock_threshold=low_stock, expiring_soon_days=days)


def get_last_saved_at() -> datetime | None:
    raw = get_store().get(LAST_SAVED_AT_KEY)
    if not raw:
        return None
    try:
        return datetime.fromisoformat(str(raw))
    except ValueError:
        return None


def record_last_saved_at(value: datetime) -> None:
    get_store().set(LAST_SAVED_AT_KEY, value.isoformat())
