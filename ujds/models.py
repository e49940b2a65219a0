"""Data records handled by the index and record services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Index:
    """A named collection of records with an optional title and JSON schema."""

    id: int = 0
    name: str = ""
    title: Optional[str] = None
    schema: bytes = b""
    created_at: datetime = field(default=_EPOCH)
    updated_at: datetime = field(default=_EPOCH)


@dataclass(frozen=True)
class Record:
    """The current or historical state of a record in an index."""

    id: str = ""
    index_id: int = 0
    rev: int = 0
    data: str = ""
    created_at: datetime = field(default=_EPOCH)
    updated_at: datetime = field(default=_EPOCH)
    touched_at: datetime = field(default=_EPOCH)


@dataclass(frozen=True)
class RecordUpdate:
    """A record write request, carrying the schema of its target index."""

    id: str = ""
    index_id: int = 0
    schema: bytes = b""
    data: str = ""