"""Record service: write, read, search and trace the history of records."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Protocol, Sequence, Tuple, Union

from ujds.messages import (
    FindRequest,
    FindResponse,
    HistoryRequest,
    HistoryResponse,
    RecordGetRequest,
    RecordGetResponse,
    RecordMessage,
    RecordPushRequest,
)
from ujds.models import Index, Record, RecordUpdate
from ujds.rpc import Code, ConnectError, Request
from ujds.validation import InvalidArgError, NotFoundError

PER_PAGE_MAX = 500

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class IndexRepo(Protocol):
    """Index lookups needed by the record service."""

    def get(self, name: str) -> Index:
        """Return the index called *name*."""


class RecordRepo(Protocol):
    """Storage of records used by the record service."""

    def push(self, records: Sequence[RecordUpdate]) -> None:
        """Write a batch of records."""

    def get(self, index: str, id: str) -> Record:
        """Return the current state of a record."""

    def find(
        self, index: str, search: str, since: datetime, cursor: int, limit: int
    ) -> Tuple[Sequence[Record], int]:
        """Return a page of matching records and the next cursor."""

    def history(
        self, index: str, id: str, since: datetime, cursor: int, limit: int
    ) -> Tuple[Sequence[Record], int]:
        """Return a page of a record's revisions and the next cursor."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _since_epoch(moment: datetime, unit: timedelta) -> int:
    aware = moment if moment.tzinfo is not None else moment.astimezone()
    return (aware - _EPOCH) // unit


def _unix_seconds(moment: datetime) -> int:
    return _since_epoch(moment, timedelta(seconds=1))


def _unix_millis(moment: datetime) -> int:
    return _since_epoch(moment, timedelta(milliseconds=1))


def _unpack(req: Union[Request, object]) -> Tuple[object, str]:
    if isinstance(req, Request):
        return req.msg, req.procedure
    return req, ""


def _page_limit(limit: int) -> int:
    if limit == 0 or limit > PER_PAGE_MAX:
        return PER_PAGE_MAX
    return limit


class RecordHandler:
    """Serves the record service on top of index and record repositories."""

    def __init__(
        self,
        index_repo: IndexRepo,
        record_repo: RecordRepo,
        now: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._indices = index_repo
        self._records = record_repo
        self._now = now or _utcnow
        self._log = logger or logging.getLogger(__name__)

    def _internal_error(self, procedure: str, err: BaseException, message: str, code: int) -> ConnectError:
        self._log.error(message, extra={"error": str(err), "proc": procedure, "err_code": code})
        return ConnectError(Code.INTERNAL, f"err_code: {code}")

    def push(self, req: Request) -> None:
        """Write a batch of records, each checked against its index schema."""
        msg, procedure = _unpack(req)
        assert isinstance(msg, RecordPushRequest)
        if not msg.records:
            raise ConnectError(Code.INVALID_ARGUMENT, "empty records")

        cache: Dict[str, Index] = {}
        updates = []
        for item in msg.records:
            index = self._index(procedure, item.index, cache)
            updates.append(
                RecordUpdate(id=item.id, index_id=index.id, schema=index.schema, data=item.data)
            )

        try:
            self._records.push(updates)
        except InvalidArgError as err:
            raise ConnectError(Code.INVALID_ARGUMENT, err) from err
        except Exception as err:
            code = _unix_millis(self._now())
            raise self._internal_error(procedure, err, "record repo push failed", code) from err

    def _index(self, procedure: str, name: str, cache: Dict[str, Index]) -> Index:
        if name in cache:
            return cache[name]
        try:
            index = self._indices.get(name)
        except InvalidArgError as err:
            raise ConnectError(Code.INVALID_ARGUMENT, err) from err
        except NotFoundError as err:
            raise ConnectError(Code.NOT_FOUND, err) from err
        except Exception as err:
            code = _unix_millis(self._now())
            raise self._internal_error(procedure, err, "index repo get failed", code) from err
        cache[name] = index
        return index

    def get(self, req: Request) -> RecordGetResponse:
        """Return the current state of one record."""
        msg, procedure = _unpack(req)
        assert isinstance(msg, RecordGetRequest)
        try:
            rec = self._records.get(msg.index, msg.id)
        except InvalidArgError as err:
            raise ConnectError(Code.INVALID_ARGUMENT, err) from err
        except NotFoundError as err:
            raise ConnectError(Code.NOT_FOUND, err) from err
        except Exception as err:
            code = _unix_seconds(self._now())
            raise self._internal_error(procedure, err, "record repo push failed", code) from err

        return RecordGetResponse(
            record=RecordMessage(
                id=rec.id,
                rev=rec.rev,
                index=msg.index,
                data=rec.data,
                created_at=_unix_seconds(rec.created_at),
                updated_at=_unix_seconds(rec.updated_at),
                touched_at=_unix_seconds(rec.touched_at),
            )
        )

    def find(self, req: Request) -> FindResponse:
        """Return a page of records of an index matching a search."""
        msg, procedure = _unpack(req)
        assert isinstance(msg, FindRequest)
        since = datetime.fromtimestamp(msg.since, tz=timezone.utc)
        try:
            records, cursor = self._records.find(
                msg.index, msg.search, since, msg.cursor, _page_limit(msg.limit)
            )
        except InvalidArgError as err:
            raise ConnectError(Code.INVALID_ARGUMENT, err) from err
        except Exception as err:
            code = _unix_seconds(self._now())
            raise self._internal_error(procedure, err, "record repo find failed", code) from err

        return FindResponse(
            cursor=cursor,
            records=[
                RecordMessage(
                    id=rec.id,
                    rev=rec.rev,
                    index=msg.index,
                    data=rec.data,
                    created_at=_unix_seconds(rec.created_at),
                    updated_at=_unix_seconds(rec.updated_at),
                    touched_at=_unix_seconds(rec.touched_at),
                )
                for rec in records
            ],
        )

    def history(self, req: Request) -> HistoryResponse:
        """Return a page of revisions of one record, newest first."""
        msg, procedure = _unpack(req)
        assert isinstance(msg, HistoryRequest)
        since = datetime.fromtimestamp(msg.since, tz=timezone.utc)
        try:
            records, cursor = self._records.history(
                msg.index, msg.id, since, msg.cursor, _page_limit(msg.limit)
            )
        except InvalidArgError as err:
            raise ConnectError(Code.INVALID_ARGUMENT, err) from err
        except Exception as err:
            code = _unix_seconds(self._now())
            raise self._internal_error(procedure, err, "record repo history failed", code) from err

        return HistoryResponse(
            cursor=cursor,
            records=[
                RecordMessage(
                    id=rec.id,
                    rev=rec.rev,
                    index=msg.index,
                    data=rec.data,
                    created_at=_unix_seconds(rec.created_at),
                    updated_at=0,
                    touched_at=0,
                )
                for rec in records
            ],
        )