"""Device data model parsing and construction."""

from .loader import load_device_model, load_device_model_sync
from .model import (
    PATH_SEPARATOR,
    DeviceModel,
    EntryKind,
    LeafEntry,
    ObjectEntry,
    ParameterEntry,
    build_device_model,
)
from .parser import (
    FORMAT_CSV,
    FORMAT_JSON,
    ParameterRow,
    detect_format,
    parse_data_model,
    parse_rows,
    parse_structured,
    reduce_rows,
)

__all__ = [
    "PATH_SEPARATOR",
    "DeviceModel",
    "EntryKind",
    "LeafEntry",
    "ObjectEntry",
    "ParameterEntry",
    "ParameterRow",
    "FORMAT_CSV",
    "FORMAT_JSON",
    "build_device_model",
    "detect_format",
    "load_device_model",
    "load_device_model_sync",
    "parse_data_model",
    "parse_rows",
    "parse_structured",
    "reduce_rows",
]
