import json
import threading
import urllib.error
import urllib.request

import pytest

from caskdb.db import DB
from caskdb.http_server import KVHttpApp, make_server
from caskdb.options import Options


@pytest.fixture
def db(tmp_path):
    database = DB.open(Options(dir_path=str(tmp_path / "db")))
    yield database
    database.close()


@pytest.fixture
def app(db):
    return KVHttpApp(db)


def test_put_then_get(app, db):
    resp = app.handle("POST", "/put", json.dumps({"alpha": "one", "beta": "two"}).encode())
    assert resp.status == 200
    assert resp.body == b'{"status":"ok"}'
    assert db.get(b"alpha") == b"one"

    got = app.handle("GET", "/get?key=beta")
    assert got.status == 200
    assert json.loads(got.body) == {"key": "beta", "value": "two"}


def test_get_missing_key(app):
    resp = app.handle("GET", "/get?key=nothing")
    assert resp.status == 500
    assert resp.body == b"the key is not found"


def test_get_empty_key(app):
    resp = app.handle("GET", "/get")
    assert resp.status == 500
    assert resp.body == b"the key is empty"


def test_put_bad_json(app):
    assert app.handle("POST", "/put", b"{not json").status == 400
    assert app.handle("POST", "/put", b'{"k": 5}').status == 400


def test_delete(app, db):
    db.put(b"gone", b"soon")
    resp = app.handle("GET", "/delete?key=gone")
    assert resp.status == 200
    assert app.handle("GET", "/get?key=gone").status == 500
    assert db.size() == 0


def test_list_keys(app, db):
    for key in (b"b", b"a", b"c"):
        db.put(key, b"v")
    resp = app.handle("GET", "/list_keys")
    assert json.loads(resp.body) == ["a", "b", "c"]


def test_stats(app, db):
    db.put(b"k1", b"v1")
    db.put(b"k1", b"v2")
    stats = json.loads(app.handle("GET", "/stats").body)
    assert stats["KeyNum"] == 1
    assert stats["DataFileNum"] == 1
    assert stats["ReclaimableSize"] > 0
    assert stats["DiskSize"] >= stats["ReclaimableSize"]


def test_unknown_route(app):
    assert app.handle("GET", "/nowhere").status == 404
    assert app.handle("POST", "/get?key=a").status == 404


def test_over_http(app, db):
    server = make_server(app, "127.0.0.1", 0)
    host, port = server.server_address[:2]
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    base = f"http://{host}:{port}"
    try:
        request = urllib.request.Request(
            base + "/put",
            data=json.dumps({"city": "paris"}).encode(),
            method="POST",
            headers={"Content-Type": "application/json"},
        )
        with urllib.request.urlopen(request, timeout=5) as resp:
            assert resp.status == 200
        with urllib.request.urlopen(base + "/get?key=city", timeout=5) as resp:
            assert json.loads(resp.read()) == {"key": "city", "value": "paris"}
        with pytest.raises(urllib.error.HTTPError) as excinfo:
            urllib.request.urlopen(base + "/get?key=absent", timeout=5)
        assert excinfo.value.code == 500
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)
    assert db.get(b"city") == b"paris"