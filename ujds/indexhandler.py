"""Index service: create, describe, list and clear indices."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, Tuple, TypeVar, Union

from ujds.messages import (
    IndexClearRequest,
    IndexGetRequest,
    IndexGetResponse,
    IndexListFilter,
    IndexListItem,
    IndexListRequest,
    IndexListResponse,
    IndexPushRequest,
)
from ujds.models import Index
from ujds.rpc import Code, ConnectError, Request
from ujds.validation import InvalidArgError, NotFoundError

T = TypeVar("T")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class IndexRepo(Protocol):
    """Storage of indices used by the index service."""

    def upsert(self, name: str, title: str, schema: str) -> None:
        """Create the index or update its title and schema."""

    def get(self, name: str) -> Index:
        """Return the index called *name*."""

    def list(self) -> Sequence[Index]:
        """Return all indices."""

    def clear(self, name: str) -> None:
        """Remove every record of the index called *name*."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _unix_seconds(moment: datetime) -> int:
    aware = moment if moment.tzinfo is not None else moment.astimezone()
    return (aware - _EPOCH) // timedelta(seconds=1)


def _unpack(req: Union[Request, object]) -> Tuple[object, str]:
    if isinstance(req, Request):
        return req.msg, req.procedure
    return req, ""


def _text(value: Union[bytes, bytearray, str, None]) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return value


def _name_patterns(list_filter: Optional[IndexListFilter]) -> List["re.Pattern[str]"]:
    if list_filter is None or not list_filter.names:
        return []
    patterns = []
    for pattern in list_filter.names:
        pattern = pattern.replace(".", "\\.").replace("*", ".*")
        try:
            patterns.append(re.compile(pattern))
        except re.error as exc:
            raise ValueError(f"invalid index name pattern: {exc}") from exc
    return patterns


def _name_matches(patterns: Iterable["re.Pattern[str]"], name: str) -> bool:
    patterns = list(patterns)
    if not patterns:
        return True
    return any(p.fullmatch(name) for p in patterns)


class IndexHandler:
    """Serves the index service on top of an index repository."""

    def __init__(
        self,
        repo: IndexRepo,
        now: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._repo = repo
        self._now = now or _utcnow
        self._log = logger or logging.getLogger(__name__)

    def _internal_error(self, procedure: str, err: BaseException, message: str) -> ConnectError:
        code = _unix_seconds(self._now())
        self._log.error(message, extra={"error": str(err), "proc": procedure, "err_code": code})
        return ConnectError(Code.INTERNAL, f"err_code: {code}")

    def _invoke(self, procedure: str, failure: str, call: Callable[[], T], *, not_found: bool) -> T:
        try:
            return call()
        except InvalidArgError as err:
            raise ConnectError(Code.INVALID_ARGUMENT, err) from err
        except NotFoundError as err:
            if not not_found:
                raise self._internal_error(procedure, err, failure) from err
            raise ConnectError(Code.NOT_FOUND, err) from err
        except Exception as err:
            raise self._internal_error(procedure, err, failure) from err

    def push(self, req: Request) -> None:
        """Create or update an index."""
        msg, procedure = _unpack(req)
        assert isinstance(msg, IndexPushRequest)
        self._invoke(
            procedure,
            "index repo upsert failed",
            lambda: self._repo.upsert(msg.name, msg.title, msg.schema),
            not_found=True,
        )

    def get(self, req: Request) -> IndexGetResponse:
        """Describe one index."""
        msg, procedure = _unpack(req)
        assert isinstance(msg, IndexGetRequest)
        index = self._invoke(
            procedure, "index repo get failed", lambda: self._repo.get(msg.name), not_found=True
        )
        return IndexGetResponse(
            name=index.name,
            title=index.title or "",
            schema=_text(index.schema),
            created_at=_unix_seconds(index.created_at),
            updated_at=_unix_seconds(index.updated_at),
        )

    def list(self, req: Request) -> IndexListResponse:
        """List indices, keeping those whose names match the request's filter."""
        msg, procedure = _unpack(req)
        assert isinstance(msg, IndexListRequest)
        try:
            patterns = _name_patterns(msg.filter)
        except ValueError as err:
            raise self._internal_error(procedure, err, "index name filter build failed") from err

        try:
            indices = self._repo.list()
        except Exception as err:
            raise self._internal_error(procedure, err, "index repo list failed") from err

        return IndexListResponse(
            indices=[
                IndexListItem(name=index.name, title=index.title or "")
                for index in indices
                if _name_matches(patterns, index.name)
            ]
        )

    def clear(self, req: Request) -> None:
        """Remove every record of an index."""
        msg, procedure = _unpack(req)
        assert isinstance(msg, IndexClearRequest)
        self._invoke(
            procedure, "index repo clear failed", lambda: self._repo.clear(msg.name), not_found=False
        )