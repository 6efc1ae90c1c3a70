"""CSV encoding and decoding for items and stock movements.

Exports are plain text so callers decide where the payload goes (an HTTP
download, a file on disk, a diagnostics bundle). Parsing is lenient per cell:
a malformed number or date falls back to its default instead of failing the
whole file, while rows without enough columns or without a name are skipped.
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable, Mapping

ITEM_COLUMNS = (
    "Id",
    "Name",
    "Quantity",
    "Unit",
    "ExpiryDate",
    "CreatedAtUtc",
    "UpdatedAtUtc",
)
MOVEMENT_COLUMNS = (
    "Id",
    "ItemId",
    "ItemName",
    "Type",
    "Quantity",
    "Reason",
    "User",
    "TimestampUtc",
)
MIN_ITEM_COLUMNS = 4

_STRICT_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_FRACTION = re.compile(r"\.(\d+)")
_FALLBACK_TIMESTAMP_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
)


@dataclass(frozen=True)
class CsvItem:
    id: int
    name: str
    quantity: Decimal
    unit: str
    expiry_date: date | None
    created_at_utc: datetime
    updated_at_utc: datetime | None


def format_quantity(value) -> str:
    if value is None:
        return "0"
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    text = format(value.normalize(), "f")
    return "0" if text in ("-0", "") else text


def format_timestamp(value: datetime | None) -> str:
    """Round-trip UTC form: seven fractional digits and a ``Z`` suffix."""

    if value is None:
        return ""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%dT%H:%M:%S.%f") + "0Z"


def format_date(value: date | None) -> str:
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d")


class _RowWriter:
    """csv writer that also quotes fields holding a carriage return.

    With a ``\\n`` line terminator the csv module leaves a bare ``\\r`` unquoted,
    which a reader would then treat as a row break.
    """

    def __init__(self, output: io.StringIO):
        self._minimal = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
        self._all = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")

    def writerow(self, row) -> None:
        if any("\r" in str(cell) for cell in row):
            self._all.writerow(row)
        else:
            self._minimal.writerow(row)


def _writer(output: io.StringIO) -> _RowWriter:
    return _RowWriter(output)


def export_items(items: Iterable[object]) -> str:
    output = io.StringIO()
    writer = _writer(output)
    writer.writerow(ITEM_COLUMNS)
    for item in items:
        writer.writerow(
            [
                item.id or 0,
                item.name or "",
                format_quantity(item.quantity),
                item.unit or "",
                format_date(item.expiry_date),
                format_timestamp(item.created_at_utc),
                format_timestamp(item.updated_at_utc),
            ]
        )
    return output.getvalue()


def _movement_item_name(movement, name_lookup: Mapping[int, str] | None) -> str:
    item = getattr(movement, "item", None)
    if item is not None and getattr(item, "name", None):
        return item.name
    if movement.item_id is not None and name_lookup:
        return name_lookup.get(movement.item_id) or ""
    return ""


def export_movements(
    movements: Iterable[object],
    name_lookup: Mapping[int, str] | None = None,
) -> str:
    output = io.StringIO()
    writer = _writer(output)
    writer.writerow(MOVEMENT_COLUMNS)
    for movement in movements:
        writer.writerow(
            [
                movement.id or 0,
                "" if movement.item_id is None else movement.item_id,
                _movement_item_name(movement, name_lookup),
                movement.type,
                format_quantity(movement.quantity),
                movement.reason or "",
                movement.user or "",
                format_timestamp(movement.timestamp_utc),
            ]
        )
    return output.getvalue()


def parse_int(raw: str | None, default: int = 0) -> int:
    text = (raw or "").strip()
    if "_" in text:
        return default
    try:
        return int(text)
    except ValueError:
        return default


def parse_quantity(raw: str | None) -> Decimal:
    text = (raw or "").strip()
    # Decimal() also takes digit-group underscores; plain invariant numbers only.
    if "_" in text:
        return Decimal("0")
    try:
        value = Decimal(text)
    except InvalidOperation:
        return Decimal("0")
    if not value.is_finite():
        return Decimal("0")
    return value


def parse_strict_date(raw: str | None) -> date | None:
    text = (raw or "").strip()
    if not _STRICT_DATE.match(text):
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_timestamp(raw: str | None) -> datetime | None:
    """Parse an ISO-8601 style timestamp (or a few common layouts) as UTC.

    Values without an offset are taken to be UTC already. Fractions longer
    than microseconds are truncated.
    """

    text = (raw or "").strip()
    if not text:
        return None

    iso_text = text
    if iso_text[-1] in "Zz":
        iso_text = iso_text[:-1] + "+00:00"
    iso_text = _FRACTION.sub(
        lambda match: "." + (match.group(1) + "000000")[:6], iso_text, count=1
    )
    try:
        return _to_naive_utc(datetime.fromisoformat(iso_text))
    except ValueError:
        pass

    for fmt in _FALLBACK_TIMESTAMP_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _cell(row: list[str], index: int) -> str:
    return row[index] if index < len(row) else ""


def parse_items(
    text: str,
    now: Callable[[], datetime] | None = None,
) -> list[CsvItem]:
    """Parse item rows from CSV text.

    The header row is optional and recognised by a first cell of ``Id``.
    """

    now = now or _utcnow
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff"), newline=""))
    parsed: list[CsvItem] = []
    for index, row in enumerate(reader):
        if index == 0 and row and row[0].strip().lower() == "id":
            continue
        if not row or not any(cell.strip() for cell in row):
            continue
        if len(row) < MIN_ITEM_COLUMNS:
            continue

        name = row[1].strip()
        if not name:
            continue

        parsed.append(
            CsvItem(
                id=parse_int(row[0]),
                name=name,
                quantity=parse_quantity(row[2]),
                unit=row[3].strip(),
                expiry_date=parse_strict_date(_cell(row, 4)),
                created_at_utc=parse_timestamp(_cell(row, 5)) or now(),
                updated_at_utc=parse_timestamp(_cell(row, 6)),
            )
        )
    return parsed
