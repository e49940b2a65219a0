"""Clients for the index and record services."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import requests

from ujds.messages import (
    FindResponse,
    HistoryResponse,
    IndexGetResponse,
    IndexListResponse,
    RecordGetResponse,
)
from ujds.rpc import (
    INDEX_SERVICE_CLEAR_PROCEDURE,
    INDEX_SERVICE_GET_PROCEDURE,
    INDEX_SERVICE_LIST_PROCEDURE,
    INDEX_SERVICE_PUSH_PROCEDURE,
    RECORD_SERVICE_FIND_PROCEDURE,
    RECORD_SERVICE_GET_PROCEDURE,
    RECORD_SERVICE_HISTORY_PROCEDURE,
    RECORD_SERVICE_PUSH_PROCEDURE,
    UnaryClient,
)


def auth_headers(api_key: str) -> Dict[str, str]:
    """Headers that authorise every call with *api_key* as a bearer token."""
    return {"Authorization": "Bearer " + api_key}


class IndexServiceClient:
    """Calls the index service at a base URL."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._rpc = UnaryClient(base_url, session=session, headers=headers, timeout=timeout)

    def push(self, req: Any) -> None:
        """Create an index or update its title and schema."""
        self._rpc.call(INDEX_SERVICE_PUSH_PROCEDURE, req, None)

    def get(self, req: Any) -> IndexGetResponse:
        """Describe one index."""
        return self._rpc.call(INDEX_SERVICE_GET_PROCEDURE, req, IndexGetResponse)

    def list(self, req: Any) -> IndexListResponse:
        """List indices, optionally filtered by name."""
        return self._rpc.call(INDEX_SERVICE_LIST_PROCEDURE, req, IndexListResponse)

    def clear(self, req: Any) -> None:
        """Remove every record of an index."""
        self._rpc.call(INDEX_SERVICE_CLEAR_PROCEDURE, req, None)


class RecordServiceClient:
    """Calls the record service at a base URL."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._rpc = UnaryClient(base_url, session=session, headers=headers, timeout=timeout)

    def push(self, req: Any) -> None:
        """Write a batch of records."""
        self._rpc.call(RECORD_SERVICE_PUSH_PROCEDURE, req, None)

    def get(self, req: Any) -> RecordGetResponse:
        """Return the current state of one record."""
        return self._rpc.call(RECORD_SERVICE_GET_PROCEDURE, req, RecordGetResponse)

    def find(self, req: Any) -> FindResponse:
        """Return a page of records of an index matching a search."""
        return self._rpc.call(RECORD_SERVICE_FIND_PROCEDURE, req, FindResponse)

    def history(self, req: Any) -> HistoryResponse:
        """Return a page of revisions of one record."""
        return self._rpc.call(RECORD_SERVICE_HISTORY_PROCEDURE, req, HistoryResponse)


class Client:
    """Both service clients, sharing one HTTP session and one auth token."""

    def __init__(
        self,
        url: str,
        auth_token: str,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.session = session if session is not None else requests.Session()
        headers = auth_headers(auth_token)
        self.i = IndexServiceClient(url, session=self.session, headers=headers, timeout=timeout)
        self.r = RecordServiceClient(url, session=self.session, headers=headers, timeout=timeout)