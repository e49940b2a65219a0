"""Unary RPC over HTTP with JSON payloads: error codes, a client and WSGI services."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from http import HTTPStatus
from typing import Any, Callable, Iterable, Mapping, NamedTuple, Optional, Union

import requests
from requests.structures import CaseInsensitiveDict

from ujds.messages import (
    FindRequest,
    FindResponse,
    HistoryRequest,
    HistoryResponse,
    IndexClearRequest,
    IndexGetRequest,
    IndexGetResponse,
    IndexListRequest,
    IndexListResponse,
    IndexPushRequest,
    RecordGetRequest,
    RecordGetResponse,
    RecordPushRequest,
    from_wire,
    to_wire,
)

INDEX_SERVICE_NAME = "ujds.index.v1.IndexService"
INDEX_SERVICE_PUSH_PROCEDURE = "/ujds.index.v1.IndexService/Push"
INDEX_SERVICE_GET_PROCEDURE = "/ujds.index.v1.IndexService/Get"
INDEX_SERVICE_LIST_PROCEDURE = "/ujds.index.v1.IndexService/List"
INDEX_SERVICE_CLEAR_PROCEDURE = "/ujds.index.v1.IndexService/Clear"

RECORD_SERVICE_NAME = "ujds.record.v1.RecordService"
RECORD_SERVICE_PUSH_PROCEDURE = "/ujds.record.v1.RecordService/Push"
RECORD_SERVICE_GET_PROCEDURE = "/ujds.record.v1.RecordService/Get"
RECORD_SERVICE_FIND_PROCEDURE = "/ujds.record.v1.RecordService/Find"
RECORD_SERVICE_HISTORY_PROCEDURE = "/ujds.record.v1.RecordService/History"

_JSON_CONTENT_TYPE = "application/json"


class Code(Enum):
    """RPC status codes."""

    CANCELED = "canceled"
    UNKNOWN = "unknown"
    INVALID_ARGUMENT = "invalid_argument"
    DEADLINE_EXCEEDED = "deadline_exceeded"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    PERMISSION_DENIED = "permission_denied"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    FAILED_PRECONDITION = "failed_precondition"
    ABORTED = "aborted"
    OUT_OF_RANGE = "out_of_range"
    UNIMPLEMENTED = "unimplemented"
    INTERNAL = "internal"
    UNAVAILABLE = "unavailable"
    DATA_LOSS = "data_loss"
    UNAUTHENTICATED = "unauthenticated"

    @property
    def http_status(self) -> int:
        """The HTTP status an error with this code is sent with."""
        return _CODE_TO_HTTP[self]


_CODE_TO_HTTP = {
    Code.CANCELED: 499,
    Code.UNKNOWN: 500,
    Code.INVALID_ARGUMENT: 400,
    Code.DEADLINE_EXCEEDED: 504,
    Code.NOT_FOUND: 404,
    Code.ALREADY_EXISTS: 409,
    Code.PERMISSION_DENIED: 403,
    Code.RESOURCE_EXHAUSTED: 429,
    Code.FAILED_PRECONDITION: 400,
    Code.ABORTED: 409,
    Code.OUT_OF_RANGE: 400,
    Code.UNIMPLEMENTED: 501,
    Code.INTERNAL: 500,
    Code.UNAVAILABLE: 503,
    Code.DATA_LOSS: 500,
    Code.UNAUTHENTICATED: 401,
}

_HTTP_TO_CODE = {
    400: Code.INTERNAL,
    401: Code.UNAUTHENTICATED,
    403: Code.PERMISSION_DENIED,
    404: Code.UNIMPLEMENTED,
    429: Code.UNAVAILABLE,
    502: Code.UNAVAILABLE,
    503: Code.UNAVAILABLE,
    504: Code.UNAVAILABLE,
}


class ConnectError(Exception):
    """An RPC failure carrying a status code and a message."""

    def __init__(self, code: Code, message: Union[str, BaseException] = "") -> None:
        self.cause: Optional[BaseException] = None
        if isinstance(message, BaseException):
            self.cause = message
            message = str(message)
        super().__init__(code, message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        if not self.message:
            return self.code.value
        return f"{self.code.value}: {self.message}"


@dataclass
class Request:
    """A message together with its headers and the procedure it was sent to."""

    msg: Any
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    procedure: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.headers, CaseInsensitiveDict):
            self.headers = CaseInsensitiveDict(self.headers or {})


def _error_from_response(resp: requests.Response) -> ConnectError:
    fallback = _HTTP_TO_CODE.get(resp.status_code, Code.UNKNOWN)
    try:
        body = resp.json()
    except ValueError:
        return ConnectError(fallback, resp.reason or "")
    if not isinstance(body, dict):
        return ConnectError(fallback, resp.reason or "")
    try:
        code = Code(body.get("code"))
    except ValueError:
        code = fallback
    message = body.get("message", "")
    return ConnectError(code, message if isinstance(message, str) else str(message))


class UnaryClient:
    """Calls unary procedures of a service at a base URL."""

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.headers = dict(headers or {})
        self.timeout = timeout

    def call(self, procedure: str, message: Any, response_type: Optional[type]) -> Any:
        """Send *message* to *procedure* and decode the reply.

        *message* may be a bare message or a Request with extra headers.
        Returns None when *response_type* is None. Raises ConnectError.
        """
        headers: CaseInsensitiveDict = CaseInsensitiveDict()
        if isinstance(message, Request):
            headers.update(message.headers)
            message = message.msg
        headers.update(self.headers)
        headers["Content-Type"] = _JSON_CONTENT_TYPE
        headers["Connect-Protocol-Version"] = "1"

        body = json.dumps(to_wire(message)).encode("utf-8")
        try:
            resp = self.session.post(
                self.base_url + procedure,
                data=body,
                headers=dict(headers),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ConnectError(Code.UNAVAILABLE, str(exc)) from exc

        if resp.status_code != 200:
            raise _error_from_response(resp)
        if response_type is None:
            return None
        try:
            return from_wire(response_type, resp.content or b"{}")
        except ValueError as exc:
            raise ConnectError(
                Code.INTERNAL, f"unmarshal into {response_type.__name__}: {exc}"
            ) from exc


class _Procedure(NamedTuple):
    method: str
    request_type: type
    response_type: Optional[type]


_INDEX_PROCEDURES = {
    INDEX_SERVICE_PUSH_PROCEDURE: _Procedure("push", IndexPushRequest, None),
    INDEX_SERVICE_GET_PROCEDURE: _Procedure("get", IndexGetRequest, IndexGetResponse),
    INDEX_SERVICE_LIST_PROCEDURE: _Procedure("list", IndexListRequest, IndexListResponse),
    INDEX_SERVICE_CLEAR_PROCEDURE: _Procedure("clear", IndexClearRequest, None),
}

_RECORD_PROCEDURES = {
    RECORD_SERVICE_PUSH_PROCEDURE: _Procedure("push", RecordPushRequest, None),
    RECORD_SERVICE_GET_PROCEDURE: _Procedure("get", RecordGetRequest, RecordGetResponse),
    RECORD_SERVICE_FIND_PROCEDURE: _Procedure("find", FindRequest, FindResponse),
    RECORD_SERVICE_HISTORY_PROCEDURE: _Procedure("history", HistoryRequest, HistoryResponse),
}

StartResponse = Callable[..., Any]
WSGIApp = Callable[[dict, StartResponse], Iterable[bytes]]


def _status_line(status: int) -> str:
    try:
        phrase = HTTPStatus(status).phrase
    except ValueError:
        phrase = "Client Closed Request" if status == 499 else "Unknown"
    return f"{status} {phrase}"


def _respond(start_response: StartResponse, status: int, content_type: str, body: bytes,
             extra: Iterable[tuple] = ()) -> list:
    headers = [("Content-Type", content_type), ("Content-Length", str(len(body))), *extra]
    start_response(_status_line(status), headers)
    return [body]


def _respond_error(start_response: StartResponse, err: ConnectError) -> list:
    payload = {"code": err.code.value}
    if err.message:
        payload["message"] = err.message
    body = json.dumps(payload).encode("utf-8")
    return _respond(start_response, err.code.http_status, _JSON_CONTENT_TYPE, body)


def _request_headers(environ: Mapping[str, Any]) -> CaseInsensitiveDict:
    headers: CaseInsensitiveDict = CaseInsensitiveDict()
    for key, value in environ.items():
        if key.startswith("HTTP_"):
            name = key[5:]
        elif key in ("CONTENT_TYPE", "CONTENT_LENGTH"):
            name = key
        else:
            continue
        if value:
            headers["-".join(part.capitalize() for part in name.split("_"))] = value
    return headers


def _read_body(environ: Mapping[str, Any]) -> bytes:
    try:
        length = int(environ.get("CONTENT_LENGTH") or 0)
    except ValueError:
        length = 0
    stream = environ.get("wsgi.input")
    if stream is None or length <= 0:
        return b""
    return stream.read(length)


def _make_app(procedures: Mapping[str, _Procedure], svc: Any) -> WSGIApp:
    def app(environ: dict, start_response: StartResponse) -> list:
        path = environ.get("PATH_INFO", "")
        entry = procedures.get(path)
        if entry is None:
            return _respond(start_response, 404, "text/plain; charset=utf-8",
                            b"404 page not found\n")

        if environ.get("REQUEST_METHOD", "GET").upper() != "POST":
            return _respond(start_response, 405, "text/plain; charset=utf-8",
                            b"method not allowed\n", [("Allow", "POST")])

        content_type = environ.get("CONTENT_TYPE", "").split(";")[0].strip().lower()
        if content_type != _JSON_CONTENT_TYPE:
            return _respond(start_response, 415, "text/plain; charset=utf-8",
                            b"unsupported media type\n", [("Accept-Post", _JSON_CONTENT_TYPE)])

        body = _read_body(environ)
        try:
            if not body:
                raise ValueError("zero-length payload is not a valid JSON object")
            message = from_wire(entry.request_type, body)
        except ValueError as exc:
            return _respond_error(start_response, ConnectError(
                Code.INVALID_ARGUMENT, f"unmarshal into {entry.request_type.__name__}: {exc}"))

        request = Request(message, headers=_request_headers(environ), procedure=path)
        method = getattr(svc, entry.method, None)
        try:
            if method is None:
                raise ConnectError(
                    Code.UNIMPLEMENTED,
                    f"{path.lstrip('/').replace('/', '.')} is not implemented",
                )
            result = method(request)
        except ConnectError as exc:
            return _respond_error(start_response, exc)
        except Exception as exc:  # any other failure reaches the caller as "unknown"
            return _respond_error(start_response, ConnectError(Code.UNKNOWN, exc))

        payload = {} if result is None else to_wire(result)
        return _respond(start_response, 200, _JSON_CONTENT_TYPE,
                        json.dumps(payload).encode("utf-8"))

    return app


def new_index_service_app(svc: Any) -> tuple:
    """Build a WSGI app serving the index service; returns (mount path, app)."""
    return f"/{INDEX_SERVICE_NAME}/", _make_app(_INDEX_PROCEDURES, svc)


def new_record_service_app(svc: Any) -> tuple:
    """Build a WSGI app serving the record service; returns (mount path, app)."""
    return f"/{RECORD_SERVICE_NAME}/", _make_app(_RECORD_PROCEDURES, svc)