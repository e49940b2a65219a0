"""Request and response messages of the index and record services.

Messages travel as JSON objects.
Field names are lower camel case on the wire.
64-bit integers are written as decimal strings.
Fields holding their default value are left out.
"""

from __future__ import annotations

import json
import re
from dataclasses import MISSING, dataclass, field, fields
from enum import Enum
from typing import Any, Mapping, Optional, Type, TypeVar, Union

T = TypeVar("T")

_INT_RE = re.compile(r"-?[0-9]+")


class _Kind(Enum):
    STRING = "string"
    INT64 = "int64"
    UINT64 = "uint64"
    UINT32 = "uint32"
    MESSAGE = "message"
    REPEATED_STRING = "repeated string"
    REPEATED_MESSAGE = "repeated message"


_INT_RANGES = {
    _Kind.INT64: (-(2**63), 2**63 - 1),
    _Kind.UINT64: (0, 2**64 - 1),
    _Kind.UINT32: (0, 2**32 - 1),
}


def _string() -> Any:
    return field(default="", metadata={"kind": _Kind.STRING})


def _int(kind: _Kind) -> Any:
    return field(default=0, metadata={"kind": kind})


def _message(cls: type) -> Any:
    return field(default=None, metadata={"kind": _Kind.MESSAGE, "type": cls})


def _repeated_strings() -> Any:
    return field(default_factory=list, metadata={"kind": _Kind.REPEATED_STRING})


def _repeated_messages(cls: type) -> Any:
    return field(default_factory=list, metadata={"kind": _Kind.REPEATED_MESSAGE, "type": cls})


# Index service messages.


@dataclass
class IndexPushRequest:
    """Creates an index or updates its title and schema."""

    name: str = _string()
    title: str = _string()
    schema: str = _string()


@dataclass
class IndexGetRequest:
    """Asks for a single index by name."""

    name: str = _string()


@dataclass
class IndexGetResponse:
    """An index description; timestamps are Unix seconds."""

    name: str = _string()
    title: str = _string()
    schema: str = _string()
    created_at: int = _int(_Kind.UINT64)
    updated_at: int = _int(_Kind.UINT64)


@dataclass
class IndexListFilter:
    """Name patterns; ``*`` matches any run of characters."""

    names: list = _repeated_strings()


@dataclass
class IndexListRequest:
    """Asks for all indices, optionally filtered by name."""

    filter: Optional[IndexListFilter] = _message(IndexListFilter)


@dataclass
class IndexListItem:
    """A short index description in a listing."""

    name: str = _string()
    title: str = _string()


@dataclass
class IndexListResponse:
    """The indices matching a list request."""

    indices: list = _repeated_messages(IndexListItem)


@dataclass
class IndexClearRequest:
    """Asks to remove every record of an index."""

    name: str = _string()


# Record service messages.


@dataclass
class RecordPushItem:
    """One record to write."""

    index: str = _string()
    id: str = _string()
    data: str = _string()


@dataclass
class RecordPushRequest:
    """A batch of records to write."""

    records: list = _repeated_messages(RecordPushItem)


@dataclass
class RecordMessage:
    """A record as returned to clients; timestamps are Unix seconds."""

    id: str = _string()
    rev: int = _int(_Kind.UINT64)
    index: str = _string()
    data: str = _string()
    created_at: int = _int(_Kind.INT64)
    updated_at: int = _int(_Kind.INT64)
    touched_at: int = _int(_Kind.INT64)


@dataclass
class RecordGetRequest:
    """Asks for the current state of one record."""

    index: str = _string()
    id: str = _string()


@dataclass
class RecordGetResponse:
    """The current state of one record."""

    record: Optional[RecordMessage] = _message(RecordMessage)


@dataclass
class FindRequest:
    """Searches the records of an index, page by page."""

    index: str = _string()
    search: str = _string()
    since: int = _int(_Kind.INT64)
    cursor: int = _int(_Kind.UINT64)
    limit: int = _int(_Kind.UINT32)


@dataclass
class FindResponse:
    """A page of found records and the cursor of the next page, or 0."""

    cursor: int = _int(_Kind.UINT64)
    records: list = _repeated_messages(RecordMessage)


@dataclass
class HistoryRequest:
    """Asks for the revisions of one record, page by page."""

    index: str = _string()
    id: str = _string()
    since: int = _int(_Kind.INT64)
    cursor: int = _int(_Kind.UINT64)
    limit: int = _int(_Kind.UINT32)


@dataclass
class HistoryResponse:
    """A page of record revisions and the cursor of the next page, or 0."""

    cursor: int = _int(_Kind.UINT64)
    records: list = _repeated_messages(RecordMessage)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _check_range(kind: _Kind, value: int, name: str) -> int:
    low, high = _INT_RANGES[kind]
    if not low <= value <= high:
        raise ValueError(f"field {name}: value {value} out of range for {kind.value}")
    return value


def _is_default(value: Any) -> bool:
    return value is None or value == "" or value == [] or (value == 0 and not isinstance(value, str))


def _encode_value(kind: _Kind, value: Any, name: str) -> Any:
    if kind is _Kind.STRING:
        if not isinstance(value, str):
            raise TypeError(f"field {name}: expected a string")
        return value
    if kind in _INT_RANGES:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"field {name}: expected an integer")
        _check_range(kind, value, name)
        return value if kind is _Kind.UINT32 else str(value)
    if kind is _Kind.MESSAGE:
        return to_wire(value)
    if kind is _Kind.REPEATED_STRING:
        if not all(isinstance(item, str) for item in value):
            raise TypeError(f"field {name}: expected a list of strings")
        return list(value)
    return [to_wire(item) for item in value]


def to_wire(message: Any) -> dict:
    """Encode a message as a JSON-ready dictionary."""
    result: dict = {}
    for f in fields(message):
        value = getattr(message, f.name)
        if _is_default(value):
            continue
        result[_camel(f.name)] = _encode_value(f.metadata["kind"], value, f.name)
    return result


def _decode_int(kind: _Kind, value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ValueError(f"field {name}: expected an integer")
    if isinstance(value, str):
        if not _INT_RE.fullmatch(value):
            raise ValueError(f"field {name}: invalid integer {value!r}")
        number = int(value)
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"field {name}: invalid integer {value!r}")
        number = int(value)
    elif isinstance(value, int):
        number = value
    else:
        raise ValueError(f"field {name}: expected an integer")
    return _check_range(kind, number, name)


def _decode_value(kind: _Kind, value: Any, name: str, cls: Optional[type]) -> Any:
    if kind is _Kind.STRING:
        if not isinstance(value, str):
            raise ValueError(f"field {name}: expected a string")
        return value
    if kind in _INT_RANGES:
        return _decode_int(kind, value, name)
    if kind is _Kind.MESSAGE:
        return from_wire(cls, value)
    if not isinstance(value, list):
        raise ValueError(f"field {name}: expected a list")
    if kind is _Kind.REPEATED_STRING:
        if not all(isinstance(item, str) for item in value):
            raise ValueError(f"field {name}: expected a list of strings")
        return list(value)
    return [from_wire(cls, item) for item in value]


def from_wire(cls: Type[T], data: Union[Mapping[str, Any], str, bytes, bytearray]) -> T:
    """Decode a message of type *cls* from a JSON object or its text.

    Both lower camel case and original field names are accepted; unknown
    fields are ignored and null stands for the default value.
    """
    if isinstance(data, (str, bytes, bytearray)):
        data = json.loads(data)
    if not isinstance(data, Mapping):
        raise ValueError(f"{cls.__name__}: expected a JSON object")

    values: dict = {}
    for f in fields(cls):
        key = _camel(f.name)
        if key in data:
            raw = data[key]
        elif f.name in data:
            raw = data[f.name]
        else:
            continue
        if raw is None:
            continue
        values[f.name] = _decode_value(f.metadata["kind"], raw, f.name, f.metadata.get("type"))
    return cls(**values)


def _field_default(f: Any) -> Any:
    if f.default is not MISSING:
        return f.default
    return f.default_factory()