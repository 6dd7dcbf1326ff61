"""In-memory device model shared read-only by every worker unit of a process."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, ClassVar, Iterator, Optional, Union

from fleet_sim.core.errors import DataModelLoadError

PATH_SEPARATOR = "."


class EntryKind(Enum):
    OBJECT = "object"
    LEAF = "leaf"


@dataclass(frozen=True)
class ObjectEntry:
    """An object (container) parameter; only its writability is known."""

    writable: bool

    kind: ClassVar[EntryKind] = EntryKind.OBJECT

    def as_tuple(self) -> tuple:
        return (self.writable,)


@dataclass(frozen=True)
class LeafEntry:
    """A leaf parameter carrying a value and its declared value type."""

    writable: bool
    value: str = ""
    value_type: str = ""

    kind: ClassVar[EntryKind] = EntryKind.LEAF

    def as_tuple(self) -> tuple:
        return (self.writable, self.value, self.value_type)


ParameterEntry = Union[ObjectEntry, LeafEntry]


def is_object_path(path: str) -> bool:
    return path.endswith(PATH_SEPARATOR)


def entry_from_sequence(key: str, raw: Any, *, source: Union[str, Path, None] = None) -> ParameterEntry:
    """Convert a serialized ``[writable]`` / ``[writable, value, type]`` entry."""
    if not isinstance(raw, (list, tuple)):
        raise DataModelLoadError(f"entry for {key!r} must be a list, got {type(raw).__name__}", source=source)
    if not raw or not isinstance(raw[0], bool):
        raise DataModelLoadError(f"entry for {key!r} must start with a boolean writable flag", source=source)

    if len(raw) == 1:
        return ObjectEntry(writable=raw[0])
    if len(raw) == 3:
        value = "" if raw[1] is None else str(raw[1])
        value_type = "" if raw[2] is None else str(raw[2])
        return LeafEntry(writable=raw[0], value=value, value_type=value_type)

    raise DataModelLoadError(
        f"entry for {key!r} has {len(raw)} elements; expected 1 (object) or 3 (leaf)",
        source=source,
    )


class DeviceModel(Mapping):
    """Immutable mapping of parameter path to :class:`ParameterEntry`.

    Built once per worker process and handed by reference to every worker
    unit. Nothing writes to it after construction, so concurrent readers
    need no locking.
    """

    __slots__ = ("_entries", "_source")

    def __init__(self, entries: Mapping[str, ParameterEntry], source: Union[str, Path, None] = None) -> None:
        self._entries = MappingProxyType(dict(entries))
        self._source = str(source) if source is not None else None

    def __getitem__(self, key: str) -> ParameterEntry:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"DeviceModel({len(self)} parameters, source={self._source!r})"

    @property
    def source(self) -> Optional[str]:
        return self._source

    @property
    def root(self) -> str:
        """First path segment of the model, e.g. ``Device`` or ``InternetGatewayDevice``."""
        first = next(iter(self._entries), "")
        return first.split(PATH_SEPARATOR, 1)[0]

    def objects(self) -> list[str]:
        return [key for key, entry in self._entries.items() if entry.kind is EntryKind.OBJECT]

    def leaves(self) -> list[str]:
        return [key for key, entry in self._entries.items() if entry.kind is EntryKind.LEAF]

    def value_of(self, path: str, default: Optional[str] = None) -> Optional[str]:
        entry = self._entries.get(path)
        if isinstance(entry, LeafEntry):
            return entry.value
        return default

    def to_serializable(self) -> dict[str, list]:
        """Return the structured (JSON) form of the model."""
        return {key: list(entry.as_tuple()) for key, entry in self._entries.items()}


def build_device_model(
    raw: Mapping[str, ParameterEntry],
    *,
    source: Union[str, Path, None] = None,
) -> DeviceModel:
    """Validate parser output and freeze it into a :class:`DeviceModel`."""
    if not raw:
        raise DataModelLoadError("data model defines no parameters", source=source)

    for key, entry in raw.items():
        if not key or key == PATH_SEPARATOR:
            raise DataModelLoadError("empty parameter path", source=source)
        if isinstance(entry, ObjectEntry):
            if not is_object_path(key):
                raise DataModelLoadError(
                    f"object parameter {key!r} must end with {PATH_SEPARATOR!r}", source=source
                )
        elif isinstance(entry, LeafEntry):
            if is_object_path(key):
                raise DataModelLoadError(
                    f"leaf parameter {key!r} must not end with {PATH_SEPARATOR!r}", source=source
                )
        else:
            raise DataModelLoadError(
                f"unsupported entry for {key!r}: {type(entry).__name__}", source=source
            )

    return DeviceModel(raw, source=source)


__all__ = [
    "PATH_SEPARATOR",
    "EntryKind",
    "ObjectEntry",
    "LeafEntry",
    "ParameterEntry",
    "DeviceModel",
    "build_device_model",
    "entry_from_sequence",
    "is_object_path",
]
