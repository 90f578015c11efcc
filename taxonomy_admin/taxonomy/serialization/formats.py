"""
Wire formats for taxonomy import and export.

Structured files are JSON arrays of flat records (optionally wrapped in an
object); delimited-text files are CSV with a header row.
"""

from __future__ import annotations

import csv
import io
import json
import os
from typing import Any, Dict, List, Sequence, Tuple

from ..errors import FormatError

FORMAT_JSON = "json"
FORMAT_CSV = "csv"
SUPPORTED_FORMATS = (FORMAT_JSON, FORMAT_CSV)

MIMETYPES = {
    FORMAT_JSON: "application/json",
    FORMAT_CSV: "text/csv",
}

_CSV_CONTENT_TYPES = ("text/csv", "application/csv", "text/comma-separated-values", "application/vnd.ms-excel")
_WRAPPER_KEYS = ("records", "data")

ParsedRecords = Tuple[List[Dict[str, Any]], List[str]]


def decode_content(content: bytes | str) -> str:
    """Decode upload bytes as UTF-8, dropping a leading byte order mark."""
    if isinstance(content, bytes):
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise FormatError("Import file is not valid UTF-8 text.") from exc
    else:
        text = content
    return text.lstrip("\ufeff")


def detect_format(text: str, *, content_type: str | None = None, filename: str | None = None) -> str:
    """
    Pick a parser from the declared content type, then the file extension,
    then the first non-blank character.
    """
    declared = (content_type or "").split(";")[0].strip().lower()
    if declared:
        if declared.endswith("json"):
            return FORMAT_JSON
        if declared in _CSV_CONTENT_TYPES:
            return FORMAT_CSV

    extension = os.path.splitext(filename or "")[1].lower().lstrip(".")
    if extension in SUPPORTED_FORMATS:
        return extension

    stripped = text.lstrip()
    if stripped[:1] in ("[", "{"):
        return FORMAT_JSON
    return FORMAT_CSV


def _sanitize_header(header: str | None) -> str:
    token = (header or "").strip().lstrip("\ufeff")
    if len(token) >= 2 and token[0] == token[-1] == '"':
        token = token[1:-1]
    return token.strip()


def _is_flat(record: Dict[str, Any]) -> bool:
    return not any(isinstance(value, (dict, list)) for value in record.values())


def parse_json(text: str) -> ParsedRecords:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise FormatError("Import file is not valid JSON.", details=[f"Line {exc.lineno}: {exc.msg}."]) from exc

    if isinstance(payload, dict):
        records = None
        for key in _WRAPPER_KEYS:
            if isinstance(payload.get(key), list):
                records = payload[key]
                break
        if records is None:
            records = next((value for value in payload.values() if isinstance(value, list)), None)
        if records is None:
            raise FormatError("JSON object does not contain a list of records.")
    elif isinstance(payload, list):
        records = payload
    else:
        raise FormatError("JSON import must be an array of records or an object wrapping one.")

    for index, record in enumerate(records, start=1):
        if not isinstance(record, dict):
            raise FormatError(f"Record {index} is not an object.")
        if not _is_flat(record):
            raise FormatError(f"Record {index} contains nested values; only flat records are supported.")
    return [dict(record) for record in records], []


def parse_csv(text: str) -> ParsedRecords:
    """
    Parse CSV text into records keyed by the header row.

    Blank lines are skipped; rows whose column count differs from the header
    are skipped with a note.
    """
    reader = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    headers: Sequence[str] | None = None
    records: List[Dict[str, Any]] = []
    notes: List[str] = []
    try:
        for row in reader:
            if not row or all(cell.strip() == "" for cell in row):
                continue
            if headers is None:
                headers = [_sanitize_header(cell) for cell in row]
                continue
            if len(row) != len(headers):
                notes.append(
                    f"Line {reader.line_num}: expected {len(headers)} columns, found {len(row)}; row skipped."
                )
                continue
            records.append(dict(zip(headers, row)))
    except csv.Error as exc:
        raise FormatError("Import file is not valid CSV.", details=[f"Line {reader.line_num}: {exc}."]) from exc

    if headers is None:
        raise FormatError("Import file is empty.")
    if not any(headers):
        raise FormatError("CSV header row is blank.")
    return records, notes


def parse_records(text: str, fmt: str) -> ParsedRecords:
    if not text.strip():
        raise FormatError("Import file is empty.")
    if fmt == FORMAT_JSON:
        return parse_json(text)
    if fmt == FORMAT_CSV:
        return parse_csv(text)
    raise FormatError(f"Unsupported import format '{fmt}'.")


def _csv_cell(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return '""'
    return '"' + str(value).replace('"', '""') + '"'


def dump_csv(records: Sequence[Dict[str, Any]], headers: Sequence[str]) -> str:
    """
    Render records as CSV: every value quoted except booleans, which are
    written as bare ``true``/``false``.
    """
    lines = [",".join(_csv_cell(header) for header in headers)] if headers else []
    for record in records:
        lines.append(",".join(_csv_cell(record.get(header)) for header in headers))
    return "\r\n".join(lines) + ("\r\n" if lines else "")


def collect_headers(records: Sequence[Dict[str, Any]], *, extend: bool) -> List[str]:
    """Header names from the first record, optionally extended by later ones."""
    if not records:
        return []
    headers = list(records[0].keys())
    if extend:
        seen = set(headers)
        for record in records[1:]:
            for key in record:
                if key not in seen:
                    seen.add(key)
                    headers.append(key)
    return headers
