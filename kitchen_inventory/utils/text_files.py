"""Moving CSV text in and out of the application."""

from __future__ import annotations

import os
from datetime import datetime
from typing import Iterable

from flask import Response
from werkzeug.datastructures import FileStorage

DEFAULT_ALLOWED_EXTENSIONS = frozenset({"csv", "txt"})


class TextFileError(ValueError):
    """Raised when an uploaded text file cannot be used."""


def read_uploaded_text(
    file_storage: FileStorage | None,
    allowed_extensions: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS,
) -> str:
    """Return the UTF-8 text of an upload; a leading BOM is dropped."""

    if not file_storage or not file_storage.filename:
        raise TextFileError("No file uploaded.")

    _, ext = os.path.splitext(file_storage.filename)
    ext = ext.lower().lstrip(".")
    allowed = {value.lower() for value in allowed_extensions}
    if ext not in allowed:
        raise TextFileError(
            "Unsupported file type. Upload a "
            + ", ".join(f".{value}" for value in sorted(allowed))
            + " file."
        )

    try:
        return file_storage.stream.read().decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise TextFileError("CSV import files must be UTF-8 encoded.") from exc


def timestamped_filename(prefix: str, now: datetime | None = None, extension: str = "csv") -> str:
    timestamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return f"{prefix}-{timestamp}.{extension}"


def text_download(content: str, filename: str, mimetype: str = "text/csv") -> Response:
    response = Response(content.encode("utf-8"), mimetype=mimetype)
    response.headers["Content-Disposition"] = f"attachment; filename={filename}"
    return response
