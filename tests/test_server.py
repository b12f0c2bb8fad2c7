import socket
import threading

import pytest

from caskdb.options import Options
from caskdb.redis.server import RedisServer, execute_command, parse_command
from caskdb.redis.structures import RedisDataStructure


@pytest.fixture
def store(tmp_path):
    rds = RedisDataStructure(Options(dir_path=str(tmp_path / "db")))
    yield rds
    rds.close()


def test_parse_resp_array():
    buf = b"*3\r\n$3\r\nSET\r\n$1\r\nk\r\n$5\r\nvalue\r\n"
    args, used = parse_command(buf)
    assert args == [b"SET", b"k", b"value"]
    assert used == len(buf)


def test_parse_leaves_trailing_data():
    first = b"*1\r\n$4\r\nPING\r\n"
    args, used = parse_command(first + b"*1\r\n")
    assert args == [b"PING"]
    assert used == len(first)


@pytest.mark.parametrize(
    "partial",
    [b"", b"*2\r\n", b"*2\r\n$3\r\nGET\r\n$1\r", b"*1\r\n$4\r\nPI", b"PING"],
)
def test_parse_incomplete_returns_none(partial):
    assert parse_command(partial) is None


def test_parse_inline_command():
    args, used = parse_command(b"get  mykey\r\nrest")
    assert args == [b"get", b"mykey"]
    assert used == len(b"get  mykey\r\n")


def test_parse_protocol_error():
    with pytest.raises(ValueError):
        parse_command(b"*1\r\n:5\r\n")


def test_ping_and_quit(store):
    assert execute_command(store, [b"PING"]) == b"+PONG\r\n"
    assert execute_command(store, [b"quit"]) == b"+OK\r\n"


def test_set_then_get(store):
    assert execute_command(store, [b"set", b"name", b"value"]) == b"+OK\r\n"
    assert execute_command(store, [b"GET", b"name"]) == b"$5\r\nvalue\r\n"
    assert store.get(b"name") == b"value"


def test_get_missing_key_is_null(store):
    assert execute_command(store, [b"get", b"missing"]) == b"$-1\r\n"


def test_wrong_number_of_arguments(store):
    assert execute_command(store, [b"set", b"only-key"]) == (
        b"-ERR wrong number of arguments for 'set' command\r\n"
    )
    assert execute_command(store, [b"get"]) == b"-ERR wrong number of arguments for 'get' command\r\n"


def test_unknown_command(store):
    assert execute_command(store, [b"FOO", b"x"]) == b"+ERR unknown command 'foo'\r\n"


def test_config_echoes_parameter(store):
    reply = execute_command(store, [b"config", b"get", b"save"])
    assert reply == b"*2\r\n$4\r\nsave\r\n$0\r\n\r\n"


def test_get_on_wrong_type(store):
    store.hset(b"h", b"f", b"v")
    assert execute_command(store, [b"get", b"h"]).startswith(b"-WRONGTYPE")


def _read_reply(reader):
    line = reader.readline()
    if line.startswith(b"$") and line != b"$-1\r\n":
        length = int(line[1:-2])
        return line + reader.read(length + 2)
    return line


def test_server_over_socket(store):
    server = RedisServer(store, "127.0.0.1", 0)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        with socket.create_connection(server.address, timeout=5) as conn:
            reader = conn.makefile("rb")
            conn.sendall(b"*3\r\n$3\r\nSET\r\n$3\r\nkey\r\n$5\r\nhello\r\n")
            assert _read_reply(reader) == b"+OK\r\n"
            conn.sendall(b"*2\r\n$3\r\nGET\r\n$3\r\nkey\r\n")
            assert _read_reply(reader) == b"$5\r\nhello\r\n"
            conn.sendall(b"PING\r\n")
            assert _read_reply(reader) == b"+PONG\r\n"
            conn.sendall(b"*1\r\n$4\r\nQUIT\r\n")
            assert _read_reply(reader) == b"+OK\r\n"
            assert reader.read() == b""
    finally:
        server.shutdown()
        thread.join(timeout=5)
    assert store.get(b"key") == b"hello"