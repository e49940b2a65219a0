# ujds

Building blocks for a JSON data storage service and its client. Records are
JSON documents kept in named indices. An index can carry a JSON Schema, and
every record pushed into it must satisfy that schema. The package provides:

- validators for index names, record IDs and JSON documents;
- the request and response messages, and their JSON wire form;
- the index and record services, written as handlers over repositories that
  you supply;
- WSGI applications that serve those handlers over HTTP;
- an HTTP client for both services.

## Installing

```
pip install ujds
```

## Validation

`ujds.validation` raises `InvalidArgError` when a value is rejected. `str()` of
the error gives `invalid <subject>: <reason>`.

- `IndexNameValidator().validate(name)` accepts names of 1 to 255 characters
  taken from `a-z A-Z 0-9 . -`. A name must not start or end with a dot or a
  dash, and must not contain two dots in a row.
- `RecordIDValidator().validate(id)` rejects the empty string.
- `JSONValidator().validate(schema, data)` checks a document against a schema.
  Both may be given as `bytes` or `str`, and a schema of `None` accepts any
  well-formed document. On success it returns the decoded document.

```python
from ujds.validation import IndexNameValidator, JSONValidator, InvalidArgError

IndexNameValidator().validate("books.fiction")

try:
    JSONValidator().validate(b'{"required": ["title"]}', b"{}")
except InvalidArgError as exc:
    print(exc)   # invalid json: (root): title is required
```

`NotFoundError(subj)` reads as `<subj> is not found`.

## Messages

The request and response dataclasses are in `ujds.messages`:

| Service | Messages |
| --- | --- |
| Index | `IndexPushRequest`, `IndexGetRequest`, `IndexGetResponse`, `IndexListRequest`, `IndexListFilter`, `IndexListItem`, `IndexListResponse`, `IndexClearRequest` |
| Record | `RecordPushRequest`, `RecordPushItem`, `RecordGetRequest`, `RecordGetResponse`, `RecordMessage`, `FindRequest`, `FindResponse`, `HistoryRequest`, `HistoryResponse` |

`to_wire(message)` produces a JSON-ready dict. It uses lower camel case keys,
writes 64-bit integers as strings and leaves out fields that hold their
default value. `from_wire(cls, data)` reads a dict or JSON text back into a
message. It accepts either key style, ignores unknown keys and raises
`ValueError` on values of the wrong type or out of range.

## Talking to a server

`ujds.client.Client(url, auth_token)` has an index service client at `.i` and
a record service client at `.r`. Both share one `requests.Session` and send
`Authorization: Bearer <auth_token>` on every call. `auth_headers(api_key)`
returns that header on its own. `IndexServiceClient` and
`RecordServiceClient` can also be used separately.

```python
from ujds.client import Client
from ujds.messages import (
    IndexPushRequest, IndexListRequest, IndexListFilter,
    RecordPushRequest, RecordPushItem, FindRequest, HistoryRequest,
)

client = Client("http://localhost:9000", "token")

client.i.push(IndexPushRequest(name="books", title="Books",
                               schema='{"required": ["title"]}'))
client.r.push(RecordPushRequest(records=[
    RecordPushItem(index="books", id="b1", data='{"title": "Dune"}'),
]))

page = client.r.find(FindRequest(index="books", limit=100))
for rec in page.records:
    print(rec.id, rec.rev, rec.data)

revisions = client.r.history(HistoryRequest(index="books", id="b1"))
listing = client.i.list(IndexListRequest(filter=IndexListFilter(names=["book*"])))
```

Each call takes either a bare message or a `ujds.rpc.Request` that carries
extra headers. When the server returns an error, or the server cannot be
reached, the call raises `ujds.rpc.ConnectError`. Its `code` is a
`ujds.rpc.Code` member such as `Code.INVALID_ARGUMENT`, `Code.NOT_FOUND` or
`Code.UNAVAILABLE`. For lower-level calls, `ujds.rpc.UnaryClient(base_url)`
has a `call(procedure, message, response_type)` method.

## Serving

`ujds.indexhandler.IndexHandler(repo, now=None, logger=None)` implements
`push`, `get`, `list` and `clear`. It works on an index repository with these
methods:

- `upsert(name, title, schema)`
- `get(name)`, which returns `ujds.models.Index`
- `list()`
- `clear(name)`

In a list request, each name pattern must match the whole index name, and
`*` stands for any run of characters.

`ujds.recordhandler.RecordHandler(index_repo, record_repo, now=None,
logger=None)` implements `push`, `get`, `find` and `history`. It works on a
record repository with these methods:

- `push(updates)`
- `get(index, id)`, which returns `ujds.models.Record`
- `find(index, search, since, cursor, limit)`, which returns `(records, next_cursor)`
- `history(index, id, since, cursor, limit)`, which returns `(records, next_cursor)`

A limit of 0, or one above 500, is replaced by 500. History entries report
`updated_at` and `touched_at` as 0.

The handlers turn repository errors into `ConnectError`:

| Repository raises | Handler raises |
| --- | --- |
| `InvalidArgError` | `Code.INVALID_ARGUMENT` |
| `NotFoundError` | `Code.NOT_FOUND` |
| anything else | `Code.INTERNAL` with the message `err_code: <n>` |

For the internal case, the same number is also logged at error level, together
with the error and the procedure.

`ujds.rpc.new_index_service_app(svc)` and `ujds.rpc.new_record_service_app(svc)`
each return a `(mount_path, wsgi_app)` pair. The app accepts JSON `POST`
requests on the service's procedure paths, such as
`/ujds.index.v1.IndexService/Get`. It answers with the JSON response, or with
a JSON error body and an HTTP status that matches the code.

## What this package does not do

- It does not store anything. There is no repository implementation, no
  database schema and no migrations. You pass your own repository objects to
  the handlers.
- It does not check tokens on the server side. The WSGI apps pass request
  headers to the handlers, and the handlers do not examine them.
- It has no command and no ready-to-run server. Mount the WSGI apps in a WSGI
  server of your choice.