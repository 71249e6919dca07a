import json
import threading
import urllib.error
import urllib.request

import pytest

from bitcaskkv.db import DB
from bitcaskkv.httpserver import make_handler, make_server
from bitcaskkv.options import Options


@pytest.fixture
def served(tmp_path):
    db = DB(Options(dir_path=str(tmp_path / "db")))
    server = make_server(db, "127.0.0.1", 0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server, db
    server.shutdown()
    server.server_close()
    thread.join(5)
    db.close()


def _request(server, method, path, body=None):
    host, port = server.server_address[:2]
    if body is None:
        data = None
    elif isinstance(body, bytes):
        data = body
    else:
        data = json.dumps(body).encode()
    req = urllib.request.Request(f"http://{host}:{port}{path}", data=data, method=method)
    try:
        with urllib.request.urlopen(req, timeout=5) as resp:
            return resp.status, resp.read()
    except urllib.error.HTTPError as error:
        return error.code, error.read()


def test_put_then_get(served):
    server, db = served
    status, body = _request(server, "PUT", "/bitcask/put", {"name": "bitcask"})
    assert status == 200
    assert body == b""
    assert db.get(b"name") == b"bitcask"
    status, body = _request(server, "GET", "/bitcask/get?key=name")
    assert status == 200
    assert json.loads(body) == "bitcask"


def test_get_missing_key_is_empty_string(served):
    server, _ = served
    status, body = _request(server, "GET", "/bitcask/get?key=nothing")
    assert status == 200
    assert json.loads(body) == ""


def test_get_empty_key_is_server_error(served):
    server, _ = served
    status, body = _request(server, "GET", "/bitcask/get?key=")
    assert status == 500
    assert body.decode().strip() == "key is empty"


def test_wrong_method(served):
    server, _ = served
    status, body = _request(server, "GET", "/bitcask/put")
    assert status == 405
    assert body.decode().strip() == "Method not allowed"


def test_bad_json(served):
    server, db = served
    status, _ = _request(server, "PUT", "/bitcask/put", b"{not json")
    assert status == 400
    status, _ = _request(server, "PUT", "/bitcask/put", {"a": 1})
    assert status == 400
    assert db.list_keys() == []


def test_delete(served):
    server, db = served
    db.put(b"k", b"v")
    status, body = _request(server, "DELETE", "/bitcask/delete?key=k")
    assert status == 200
    assert json.loads(body) == "OK"
    assert db.list_keys() == []
    status, body = _request(server, "DELETE", "/bitcask/delete?key=")
    assert status == 200
    assert json.loads(body) == "OK"


def test_list_keys(served):
    server, db = served
    status, body = _request(server, "GET", "/bitcask/listkeys")
    assert status == 200
    assert json.loads(body) is None
    db.put(b"b", b"2")
    db.put(b"a", b"1")
    status, body = _request(server, "GET", "/bitcask/listkeys")
    assert json.loads(body) == ["a", "b"]


def test_stat(served):
    server, db = served
    db.put(b"a", b"1")
    db.put(b"b", b"2")
    status, body = _request(server, "GET", "/bitcask/stat")
    assert status == 200
    stat = json.loads(body)
    assert stat["KeyNum"] == 2
    assert stat["DataFileNum"] == db.stat().data_file_num
    assert set(stat) == {"KeyNum", "DataFileNum", "ReclaimableSize", "DiskSize"}


def test_unknown_path(served):
    server, _ = served
    status, body = _request(server, "GET", "/nowhere")
    assert status == 404
    assert body.decode().strip() == "404 page not found"


def test_make_handler_binds_db(tmp_path):
    with DB(Options(dir_path=str(tmp_path / "db"))) as db:
        first = make_handler(db)
        second = make_handler(db)
        assert first is not second
        assert callable(first.do_GET)
        assert first.do_PUT is first.do_GET