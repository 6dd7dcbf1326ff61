"""Parsing of device data model files.

Two formats are accepted:

* tabular (CSV): header-driven rows with the columns ``Parameter``,
  ``Object``, ``Writable``, ``Value`` and ``Value type`` in any order. The
  string ``"true"`` is the only truthy token in the boolean columns.
* structured (JSON): a mapping that already has the device model shape,
  ``{"Device.": [false], "Device.DeviceInfo.Manufacturer": [false, "ACME", "xsd:string"]}``.

Rows are reduced into a dict keyed by parameter path; object paths get a
trailing separator. Duplicate keys are resolved last-write-wins.
"""

from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from fleet_sim.core.errors import DataModelLoadError

from .model import PATH_SEPARATOR, LeafEntry, ObjectEntry, ParameterEntry, entry_from_sequence

COLUMN_PARAMETER = "Parameter"
COLUMN_OBJECT = "Object"
COLUMN_WRITABLE = "Writable"
COLUMN_VALUE = "Value"
COLUMN_VALUE_TYPE = "Value type"

TRUE_TOKEN = "true"

FORMAT_CSV = "csv"
FORMAT_JSON = "json"

Source = Union[str, Path, None]


@dataclass(frozen=True)
class ParameterRow:
    """One row of a tabular data model."""

    path: str
    is_object: bool
    writable: bool
    value: Optional[str] = None
    value_type: Optional[str] = None
    line: int = 0


def _is_true(cell: Optional[str]) -> bool:
    return (cell or "").strip() == TRUE_TOKEN


def detect_format(path: Union[str, Path]) -> str:
    return FORMAT_CSV if Path(path).suffix.lower() == ".csv" else FORMAT_JSON


def parse_rows(text: str, source: Source = "<string>") -> List[ParameterRow]:
    """Parse tabular text into rows, failing on the first row without a path."""
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    if not reader.fieldnames:
        raise DataModelLoadError("data model file is empty", source=source)

    columns = {name.strip(): name for name in reader.fieldnames if name}
    if COLUMN_PARAMETER not in columns:
        raise DataModelLoadError(
            f"header has no {COLUMN_PARAMETER!r} column (found {sorted(columns)})",
            source=source,
            line=1,
        )

    def cell(record: Dict[str, Optional[str]], column: str) -> Optional[str]:
        name = columns.get(column)
        return record.get(name) if name is not None else None

    rows: List[ParameterRow] = []
    for record in reader:
        line = reader.line_num
        path = (cell(record, COLUMN_PARAMETER) or "").strip()
        if not path:
            raise DataModelLoadError(f"row has no {COLUMN_PARAMETER!r} value", source=source, line=line)

        is_object = _is_true(cell(record, COLUMN_OBJECT))
        rows.append(
            ParameterRow(
                path=path,
                is_object=is_object,
                writable=_is_true(cell(record, COLUMN_WRITABLE)),
                value=None if is_object else (cell(record, COLUMN_VALUE) or ""),
                value_type=None if is_object else (cell(record, COLUMN_VALUE_TYPE) or ""),
                line=line,
            )
        )

    return rows


def reduce_rows(rows: Iterable[ParameterRow]) -> Dict[str, ParameterEntry]:
    entries: Dict[str, ParameterEntry] = {}
    for row in rows:
        if row.is_object:
            entries[row.path + PATH_SEPARATOR] = ObjectEntry(writable=row.writable)
        else:
            entries[row.path] = LeafEntry(
                writable=row.writable,
                value=row.value or "",
                value_type=row.value_type or "",
            )
    return entries


def parse_structured(text: str, source: Source = "<string>") -> Dict[str, ParameterEntry]:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DataModelLoadError(f"invalid JSON: {exc.msg}", source=source, line=exc.lineno) from exc

    if not isinstance(document, dict):
        raise DataModelLoadError(
            f"structured data model must be an object, got {type(document).__name__}",
            source=source,
        )

    return {key: entry_from_sequence(key, raw, source=source) for key, raw in document.items()}


def parse_data_model(text: str, source: Source = "<string>", fmt: str = FORMAT_CSV) -> Dict[str, ParameterEntry]:
    if fmt == FORMAT_CSV:
        return reduce_rows(parse_rows(text, source))
    if fmt == FORMAT_JSON:
        return parse_structured(text, source)
    raise ValueError(f"Unknown data model format '{fmt}'")


__all__ = [
    "ParameterRow",
    "FORMAT_CSV",
    "FORMAT_JSON",
    "detect_format",
    "parse_rows",
    "reduce_rows",
    "parse_structured",
    "parse_data_model",
]
