"""Helpers for MinistryPlatform's stored procedure response envelope.

Procedures that end in ``FOR JSON PATH`` come back from the REST API as one or
more result sets of rows, where the JSON document is split across rows of a
single column named either ``JsonResult`` or ``JSON_<guid>``::

    [[{"JsonResult": "[{\\"Project_ID\\": 1, \\"Budgets\\": \\"[...]\\"}]"}]]

Nested ``FOR JSON`` sub-queries are frequently returned as JSON *strings* inside
the document, hence :func:`deep_parse_json`.
"""

from __future__ import annotations

import json
import re
from typing import Any

from mpapps.ministry_platform.errors import EnvelopeError

JSON_RESULT_COLUMN = "JsonResult"
GUID_PATTERN = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")


def _json_column(row: dict[str, Any]) -> str | None:
    if JSON_RESULT_COLUMN in row:
        return JSON_RESULT_COLUMN
    if len(row) == 1:
        (column,) = row.keys()
        if GUID_PATTERN.search(column) or column.upper().startswith("JSON_"):
            return column
    return None


def unwrap_procedure_result(result: Any, default: Any = None) -> Any:
    """Return the JSON document carried by a procedure response.

    Plain result sets (rows without a JSON column) are returned unchanged after
    the outer result-set array has been removed.
    """

    if result is None:
        return default
    if isinstance(result, dict):
        result = [result]
    if not isinstance(result, list):
        return result

    while result and isinstance(result[0], list):
        result = result[0]
    if not result:
        return default

    first = result[0]
    if not isinstance(first, dict):
        return result

    column = _json_column(first)
    if column is None:
        return result

    values = [row.get(column) for row in result if isinstance(row, dict)]
    if all(isinstance(value, str) or value is None for value in values):
        text = "".join(value for value in values if value)
        if not text.strip():
            return default
        try:
            return json.loads(text)
        except ValueError as exc:
            raise EnvelopeError(f"Malformed JSON in {column} column") from exc

    if len(values) == 1:
        return values[0]
    return values


def deep_parse_json(value: Any) -> Any:
    """Recursively decode strings that hold JSON objects or arrays."""

    if isinstance(value, str):
        stripped = value.strip()
        if stripped[:1] not in ("{", "["):
            return value
        try:
            parsed = json.loads(stripped)
        except ValueError:
            return value
        return deep_parse_json(parsed)
    if isinstance(value, list):
        return [deep_parse_json(item) for item in value]
    if isinstance(value, dict):
        return {key: deep_parse_json(item) for key, item in value.items()}
    return value


def first_record(records: Any) -> dict[str, Any] | None:
    if isinstance(records, list):
        return records[0] if records else None
    if isinstance(records, dict):
        return records
    return None
