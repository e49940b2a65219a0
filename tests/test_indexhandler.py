import logging
from datetime import datetime, timezone

import pytest

from ujds.indexhandler import IndexHandler
from ujds.messages import (
    IndexClearRequest,
    IndexGetRequest,
    IndexListFilter,
    IndexListRequest,
    IndexPushRequest,
)
from ujds.models import Index
from ujds.rpc import Code, ConnectError, Request
from ujds.validation import InvalidArgError, NotFoundError

LOGGER_NAME = "tests.indexhandler"


def ts(seconds):
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def now():
    return ts(123456789)


class FakeRepo:
    def __init__(self, **results):
        self.results = results
        self.calls = []

    def _answer(self, name, *args):
        self.calls.append((name, args))
        result = self.results[name]
        if isinstance(result, BaseException):
            raise result
        return result

    def upsert(self, name, title, schema):
        return self._answer("upsert", name, title, schema)

    def get(self, name):
        return self._answer("get", name)

    def list(self):
        return self._answer("list")

    def clear(self, name):
        return self._answer("clear", name)


def make_handler(repo):
    return IndexHandler(repo, now, logging.getLogger(LOGGER_NAME))


def errors_logged(caplog):
    return [r for r in caplog.records if r.name == LOGGER_NAME]


def assert_internal_logged(caplog, error, message, proc=""):
    records = errors_logged(caplog)
    assert len(records) == 1
    rec = records[0]
    assert rec.levelno == logging.ERROR
    assert rec.getMessage() == message
    assert rec.error == error
    assert rec.proc == proc
    assert rec.err_code == 123456789


# Clear


def test_clear_repo_invalid_arg_error(caplog):
    repo = FakeRepo(clear=InvalidArgError("theSubj", "theReason"))
    with pytest.raises(ConnectError) as exc:
        make_handler(repo).clear(Request(IndexClearRequest(name="theIndexName")))
    assert str(exc.value) == "invalid_argument: invalid theSubj: theReason"
    assert exc.value.code is Code.INVALID_ARGUMENT
    assert errors_logged(caplog) == []


def test_clear_repo_internal_error(caplog):
    repo = FakeRepo(clear=RuntimeError("theRepoError"))
    with pytest.raises(ConnectError) as exc:
        make_handler(repo).clear(Request(IndexClearRequest(name="theIndexName")))
    assert str(exc.value) == "internal: err_code: 123456789"
    assert_internal_logged(caplog, "theRepoError", "index repo clear failed")


def test_clear_not_found_is_internal(caplog):
    repo = FakeRepo(clear=NotFoundError("index"))
    with pytest.raises(ConnectError) as exc:
        make_handler(repo).clear(Request(IndexClearRequest(name="theIndexName")))
    assert exc.value.code is Code.INTERNAL
    assert_internal_logged(caplog, "index is not found", "index repo clear failed")


def test_clear_ok(caplog):
    repo = FakeRepo(clear=None)
    result = make_handler(repo).clear(Request(IndexClearRequest(name="theIndexName")))
    assert result is None
    assert repo.calls == [("clear", ("theIndexName",))]
    assert errors_logged(caplog) == []


# Get


def test_get_repo_invalid_arg_error(caplog):
    repo = FakeRepo(get=InvalidArgError("theSubj", "theReason"))
    with pytest.raises(ConnectError) as exc:
        make_handler(repo).get(Request(IndexGetRequest(name="theIndexName")))
    assert str(exc.value) == "invalid_argument: invalid theSubj: theReason"
    assert errors_logged(caplog) == []


def test_get_repo_not_found_error(caplog):
    repo = FakeRepo(get=NotFoundError("theSubj"))
    with pytest.raises(ConnectError) as exc:
        make_handler(repo).get(Request(IndexGetRequest(name="theIndexName")))
    assert str(exc.value) == "not_found: theSubj is not found"
    assert exc.value.code is Code.NOT_FOUND
    assert errors_logged(caplog) == []


def test_get_repo_internal_error(caplog):
    repo = FakeRepo(get=RuntimeError("theRepoError"))
    with pytest.raises(ConnectError) as exc:
        make_handler(repo).get(Request(IndexGetRequest(name="theIndexName")))
    assert str(exc.value) == "internal: err_code: 123456789"
    assert_internal_logged(caplog, "theRepoError", "index repo get failed")


def test_get_internal_error_logs_procedure(caplog):
    repo = FakeRepo(get=RuntimeError("theRepoError"))
    req = Request(IndexGetRequest(name="x"), procedure="/ujds.index.v1.IndexService/Get")
    with pytest.raises(ConnectError):
        make_handler(repo).get(req)
    assert_internal_logged(
        caplog, "theRepoError", "index repo get failed", proc="/ujds.index.v1.IndexService/Get"
    )


def test_get_ok(caplog):
    repo = FakeRepo(
        get=Index(
            id=123,
            name="theIndexName",
            title="theIndexTitle",
            schema=b'{"foo":"bar"}',
            created_at=ts(123),
            updated_at=ts(234),
        )
    )
    res = make_handler(repo).get(Request(IndexGetRequest(name="theIndexName")))
    assert repo.calls == [("get", ("theIndexName",))]
    assert errors_logged(caplog) == []
    assert res.name == "theIndexName"
    assert res.title == "theIndexTitle"
    assert res.created_at == 123
    assert res.updated_at == 234
    assert res.schema == '{"foo":"bar"}'


def test_get_ok_without_title():
    repo = FakeRepo(get=Index(id=1, name="n", title=None, schema=b"{}"))
    res = make_handler(repo).get(Request(IndexGetRequest(name="n")))
    assert res.title == ""
    assert res.schema == "{}"


# List


def two_indices(name1, name2):
    return [
        Index(id=123, name=name1, title="theTitle1", schema=b"theSchema1",
              created_at=ts(234), updated_at=ts(345)),
        Index(id=321, name=name2, title="theTitle2", schema=b"theSchema2",
              created_at=ts(432), updated_at=ts(543)),
    ]


def test_list_repo_error(caplog):
    repo = FakeRepo(list=RuntimeError("theRepoListError"))
    with pytest.raises(ConnectError) as exc:
        make_handler(repo).list(Request(IndexListRequest()))
    assert str(exc.value) == "internal: err_code: 123456789"
    assert_internal_logged(caplog, "theRepoListError", "index repo list failed")


def test_list_ok(caplog):
    repo = FakeRepo(list=two_indices("theIndex1", "theIndex2"))
    res = make_handler(repo).list(Request(IndexListRequest()))
    assert errors_logged(caplog) == []
    assert [(i.name, i.title) for i in res.indices] == [
        ("theIndex1", "theTitle1"),
        ("theIndex2", "theTitle2"),
    ]


def test_list_ok_with_filter(caplog):
    repo = FakeRepo(list=two_indices("theIndex1Foo", "theIndex2Bar"))
    req = Request(IndexListRequest(filter=IndexListFilter(names=["theIndex2*"])))
    res = make_handler(repo).list(req)
    assert errors_logged(caplog) == []
    assert [(i.name, i.title) for i in res.indices] == [("theIndex2Bar", "theTitle2")]


def test_list_filter_dot_is_literal():
    repo = FakeRepo(list=two_indices("a.b", "axb"))
    req = Request(IndexListRequest(filter=IndexListFilter(names=["a.b"])))
    res = make_handler(repo).list(req)
    assert [i.name for i in res.indices] == ["a.b"]


def test_list_filter_must_match_whole_name():
    repo = FakeRepo(list=two_indices("foo", "foobar"))
    req = Request(IndexListRequest(filter=IndexListFilter(names=["foo", "bar*"])))
    res = make_handler(repo).list(req)
    assert [i.name for i in res.indices] == ["foo"]


def test_list_invalid_filter_pattern(caplog):
    repo = FakeRepo(list=[])
    req = Request(IndexListRequest(filter=IndexListFilter(names=["("])))
    with pytest.raises(ConnectError) as exc:
        make_handler(repo).list(req)
    assert str(exc.value) == "internal: err_code: 123456789"
    assert repo.calls == []
    records = errors_logged(caplog)
    assert len(records) == 1
    assert records[0].getMessage() == "index name filter build failed"


# Push


def test_push_repo_invalid_arg_error(caplog):
    repo = FakeRepo(upsert=InvalidArgError("theSubj", "theReason"))
    with pytest.raises(ConnectError) as exc:
        make_handler(repo).push(Request(IndexPushRequest(name="theIndexName", schema="{}")))
    assert str(exc.value) == "invalid_argument: invalid theSubj: theReason"
    assert errors_logged(caplog) == []


def test_push_repo_internal_error(caplog):
    repo = FakeRepo(upsert=RuntimeError("theRepoError"))
    with pytest.raises(ConnectError) as exc:
        make_handler(repo).push(Request(IndexPushRequest(name="theIndexName", schema="{}")))
    assert str(exc.value) == "internal: err_code: 123456789"
    assert_internal_logged(caplog, "theRepoError", "index repo upsert failed")


def test_push_index_not_found(caplog):
    repo = FakeRepo(upsert=NotFoundError("theNotFoundSubj"))
    with pytest.raises(ConnectError) as exc:
        make_handler(repo).push(Request(IndexPushRequest(name="theIndexName", schema="{}")))
    assert str(exc.value) == "not_found: theNotFoundSubj is not found"
    assert errors_logged(caplog) == []


@pytest.mark.parametrize("title", ["", "theIndexTitle"])
def test_push_ok(caplog, title):
    repo = FakeRepo(upsert=None)
    req = Request(IndexPushRequest(name="theIndexName", title=title, schema='{"foo":"bar"}'))
    assert make_handler(repo).push(req) is None
    assert repo.calls == [("upsert", ("theIndexName", title, '{"foo":"bar"}'))]
    assert errors_logged(caplog) == []