from __future__ import annotations

import csv
import io
import zipfile
from datetime import date, datetime, time
from pathlib import Path
from typing import Any, Iterable

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from asset_register_app.core.errors import FileParseError, UnsupportedFormatError
from asset_register_app.imports.models import RawRow
from asset_register_app.infrastructure.logging import get_logger

LOGGER = get_logger(__name__)

DELIMITED_EXTENSIONS = {".csv", ".txt"}
SPREADSHEET_EXTENSIONS = {".xlsx", ".xlsm"}


def upload_extension(file_name: str) -> str:
    return Path(str(file_name or "")).suffix.lower()


def decode_upload_bytes(raw_bytes: bytes) -> str:
    for encoding in ("utf-8-sig", "utf-8", "latin-1"):
        try:
            return raw_bytes.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise FileParseError("Could not decode upload content.")


def cell_text(value: Any) -> str:
    """Render one cell as the string a user would have typed."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (pd.Timestamp, datetime)):
        if pd.isna(value):
            return ""
        stamp = pd.Timestamp(value)
        if stamp.time() == time(0, 0):
            return stamp.date().isoformat()
        return stamp.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return "Yes" if value else "No"
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _rows_from_matrix(matrix: Iterable[list[Any]]) -> list[RawRow]:
    iterator = iter(matrix)
    header_cells: list[Any] | None = None
    for candidate in iterator:
        if any(cell_text(cell).strip() for cell in candidate):
            header_cells = candidate
            break
    if header_cells is None:
        return []

    # First occurrence wins for repeated header text.
    positions: list[tuple[int, str]] = []
    seen: set[str] = set()
    for position, cell in enumerate(header_cells):
        header = cell_text(cell)
        if not header.strip() or header in seen:
            continue
        seen.add(header)
        positions.append((position, header))

    rows: list[RawRow] = []
    for raw in iterator:
        cells = list(raw)
        if not any(cell_text(cell).strip() for cell in cells):
            continue
        values = {
            header: cell_text(cells[position]) if position < len(cells) else ""
            for position, header in positions
        }
        rows.append(RawRow(index=len(rows) + 1, values=values))
    return rows


def parse_delimited(file_bytes: bytes) -> list[RawRow]:
    text = decode_upload_bytes(file_bytes)
    try:
        matrix = list(csv.reader(io.StringIO(text, newline="")))
    except csv.Error as exc:
        raise FileParseError(f"Could not read delimited file: {exc}") from exc
    return _rows_from_matrix(matrix)


def parse_spreadsheet(file_bytes: bytes) -> list[RawRow]:
    try:
        frame = pd.read_excel(
            io.BytesIO(file_bytes),
            sheet_name=0,
            header=None,
            dtype=object,
            engine="openpyxl",
            keep_default_na=False,
        )
    except (ValueError, KeyError, OSError, zipfile.BadZipFile, InvalidFileException) as exc:
        raise FileParseError(f"Could not read spreadsheet: {exc}") from exc
    return _rows_from_matrix(frame.itertuples(index=False, name=None))


def parse_upload(file_bytes: bytes, file_name: str) -> list[RawRow]:
    extension = upload_extension(file_name)
    if extension in DELIMITED_EXTENSIONS:
        rows = parse_delimited(file_bytes)
    elif extension in SPREADSHEET_EXTENSIONS:
        rows = parse_spreadsheet(file_bytes)
    else:
        raise UnsupportedFormatError(str(file_name or ""), extension)
    LOGGER.debug(
        "Parsed upload '%s' into %s row(s).",
        file_name,
        len(rows),
        extra={"event": "bulk_parse", "file_name": file_name, "row_count": len(rows)},
    )
    return rows
