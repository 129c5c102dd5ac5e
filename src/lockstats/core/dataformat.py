import csv
import io
import json
from typing import Any, Dict, List, Sequence, Tuple

import openpyxl
from openpyxl.styles import Font

# name -> (label, media type, file extension)
DATAFORMATS: Dict[str, Tuple[str, str, str]] = {
    "csv": ("Comma separated values (.csv)", "text/csv; charset=utf-8", "csv"),
    "excel": (
        "Microsoft Excel (.xlsx)",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "xlsx",
    ),
    "json": ("Javascript Object Notation (.json)", "application/json", "json"),
}

# Excel refuses longer worksheet names
MAX_SHEET_TITLE = 31


class UnknownDataformatError(ValueError):
    pass


def is_valid_dataformat(name: str) -> bool:
    return name in DATAFORMATS


def _write_csv(headers: Sequence[str], rows: List[List[Any]], sheettitle: str) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    return buffer.getvalue().encode("utf-8")


def _write_excel(headers: Sequence[str], rows: List[List[Any]], sheettitle: str) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = (sheettitle or "Sheet")[:MAX_SHEET_TITLE]

    ws.append(list(headers))
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for row in rows:
        ws.append(list(row))

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _write_json(headers: Sequence[str], rows: List[List[Any]], sheettitle: str) -> bytes:
    records = [dict(zip(headers, row)) for row in rows]
    return json.dumps(records, default=str).encode("utf-8")


_WRITERS = {
    "csv": _write_csv,
    "excel": _write_excel,
    "json": _write_json,
}


def export(
    dataformat: str,
    filename: str,
    sheettitle: str,
    headers: Sequence[str],
    rows: List[List[Any]],
) -> Tuple[bytes, str, str]:
    """
    Serialise a table for download.

    Returns (content, media_type, filename with extension).
    """
    if dataformat not in DATAFORMATS:
        raise UnknownDataformatError(f"Unknown dataformat '{dataformat}'")

    _label, media_type, extension = DATAFORMATS[dataformat]
    content = _WRITERS[dataformat](headers, rows, sheettitle)
    return content, media_type, f"{filename}.{extension}"
