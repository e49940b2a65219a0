import json

import pytest
import requests
import responses

from ujds.client import Client, IndexServiceClient, RecordServiceClient, auth_headers
from ujds.messages import (
    FindRequest,
    HistoryRequest,
    IndexClearRequest,
    IndexGetRequest,
    IndexListFilter,
    IndexListRequest,
    IndexPushRequest,
    RecordGetRequest,
    RecordPushItem,
    RecordPushRequest,
)
from ujds.rpc import Code, ConnectError, Request

BASE = "http://localhost:9000"


def test_auth_headers_bearer():
    assert auth_headers("token") == {"Authorization": "Bearer token"}


def test_auth_headers_empty_key():
    assert auth_headers("") == {"Authorization": "Bearer "}


def test_client_shares_session():
    sess = requests.Session()
    client = Client(BASE, "token", session=sess)
    assert client.session is sess


def test_index_push_sends_body_and_auth():
    client = Client(BASE + "/", "token")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + "/ujds.index.v1.IndexService/Push", json={})
        result = client.i.push(IndexPushRequest(
            name="theIndexName", title="theIndexTitle", schema='{"foo":"bar"}'))
        sent = rsps.calls[0].request
        assert result is None
        assert sent.headers["Authorization"] == "Bearer token"
        assert json.loads(sent.body) == {
            "name": "theIndexName",
            "title": "theIndexTitle",
            "schema": '{"foo":"bar"}',
        }


def test_request_headers_cannot_override_auth():
    client = Client(BASE, "token")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + "/ujds.index.v1.IndexService/Clear", json={})
        client.i.clear(Request(IndexClearRequest(name="theIndex1"),
                               headers={"Authorization": "Bearer other", "X-Extra": "yes"}))
        sent = rsps.calls[0].request
        assert sent.headers["Authorization"] == "Bearer token"
        assert sent.headers["X-Extra"] == "yes"
        assert json.loads(sent.body) == {"name": "theIndex1"}


def test_index_get_decodes_response():
    client = IndexServiceClient(BASE)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + "/ujds.index.v1.IndexService/Get", json={
            "name": "theIndexName",
            "title": "theIndexTitle",
            "schema": '{"foo":"bar"}',
            "createdAt": "123",
            "updatedAt": "234",
        })
        res = client.get(IndexGetRequest(name="theIndexName"))
    assert res.name == "theIndexName"
    assert res.title == "theIndexTitle"
    assert res.schema == '{"foo":"bar"}'
    assert res.created_at == 123
    assert res.updated_at == 234


def test_index_list_with_filter():
    client = IndexServiceClient(BASE)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + "/ujds.index.v1.IndexService/List", json={
            "indices": [{"name": "theIndexName2Bar", "title": "theIndexTitle2"}],
        })
        res = client.list(IndexListRequest(filter=IndexListFilter(names=["theIndexName2*"])))
        sent = json.loads(rsps.calls[0].request.body)
    assert sent == {"filter": {"names": ["theIndexName2*"]}}
    assert [(i.name, i.title) for i in res.indices] == [("theIndexName2Bar", "theIndexTitle2")]


def test_unauthenticated_error():
    client = Client(BASE, "anInvalidAuthToken")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + "/ujds.index.v1.IndexService/List", status=401,
                 json={"code": "unauthenticated", "message": "not authorized"})
        with pytest.raises(ConnectError) as exc_info:
            client.i.list(IndexListRequest())
    assert exc_info.value.code is Code.UNAUTHENTICATED
    assert str(exc_info.value) == "unauthenticated: not authorized"


def test_record_push_invalid_argument():
    client = RecordServiceClient(BASE)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + "/ujds.record.v1.RecordService/Push", status=400,
                 json={"code": "invalid_argument", "message": "empty records"})
        with pytest.raises(ConnectError) as exc_info:
            client.push(RecordPushRequest())
    assert str(exc_info.value) == "invalid_argument: empty records"


def test_record_push_sends_records():
    client = RecordServiceClient(BASE)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + "/ujds.record.v1.RecordService/Push", json={})
        client.push(RecordPushRequest(records=[
            RecordPushItem(index="theIndex", id="theRecordID", data='{"foo":"bar"}'),
        ]))
        sent = json.loads(rsps.calls[0].request.body)
    assert sent == {"records": [{"index": "theIndex", "id": "theRecordID", "data": '{"foo":"bar"}'}]}


def test_record_get_not_found():
    client = RecordServiceClient(BASE)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + "/ujds.record.v1.RecordService/Get", status=404,
                 json={"code": "not_found", "message": "record is not found"})
        with pytest.raises(ConnectError) as exc_info:
            client.get(RecordGetRequest(index="theIndex", id="theRecord"))
    assert exc_info.value.code is Code.NOT_FOUND
    assert str(exc_info.value) == "not_found: record is not found"


def test_record_find_decodes_page():
    client = RecordServiceClient(BASE)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + "/ujds.record.v1.RecordService/Find", json={
            "cursor": "345",
            "records": [{"id": "theRecordID1", "rev": "123", "index": "theIndexName",
                         "data": '{"foo1":"bar1"}', "createdAt": "111"}],
        })
        res = client.find(FindRequest(index="theIndexName"))
    assert res.cursor == 345
    assert len(res.records) == 1
    assert res.records[0].id == "theRecordID1"
    assert res.records[0].rev == 123
    assert res.records[0].created_at == 111


def test_record_history_sends_paging():
    client = RecordServiceClient(BASE)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, BASE + "/ujds.record.v1.RecordService/History", json={
            "records": [{"id": "theRecord", "rev": "1", "index": "theIndex",
                         "data": '{"foo1": "bar1"}'}],
        })
        res = client.history(HistoryRequest(index="theIndex", id="theRecord", limit=1, cursor=2))
        sent = json.loads(rsps.calls[0].request.body)
    assert sent["limit"] == 1
    assert sent["cursor"] == "2"
    assert res.cursor == 0
    assert res.records[0].rev == 1
    assert res.records[0].data == '{"foo1": "bar1"}'