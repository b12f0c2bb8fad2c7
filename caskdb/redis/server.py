"""A small RESP server exposing the string commands of the Redis-style store."""

from __future__ import annotations

import argparse
import logging
import socketserver
import threading
from collections.abc import Callable, Sequence

from ..errors import BitcaskError, KeyNotFoundError
from ..options import Options
from .structures import RedisDataStructure

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6390
DEFAULT_DIR = "caskdb-redis"

_CRLF = b"\r\n"
_NULL_BULK = b"$-1\r\n"

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------- wire format


def _simple(text: str) -> bytes:
    clean = text.replace("\r", " ").replace("\n", " ")
    return b"+" + clean.encode() + _CRLF


def _error(text: str) -> bytes:
    clean = text.replace("\r", " ").replace("\n", " ")
    return b"-" + clean.encode() + _CRLF


def _bulk(data: bytes) -> bytes:
    return b"$" + str(len(data)).encode() + _CRLF + data + _CRLF


def _array(items: Sequence[bytes]) -> bytes:
    return b"*" + str(len(items)).encode() + _CRLF + b"".join(items)


def _parse_int(raw: bytes) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"invalid length {raw!r}") from None


def parse_command(buf: bytes) -> tuple[list[bytes], int] | None:
    """Parse one command from the start of ``buf``.

    Return the arguments and the number of bytes consumed, or None when more
    data is needed. Both RESP arrays of bulk strings and inline commands are
    accepted; raise ValueError on a protocol error.
    """
    buf = bytes(buf)
    if not buf:
        return None
    if buf[:1] != b"*":
        end = buf.find(b"\n")
        if end == -1:
            return None
        line = buf[:end].rstrip(b"\r")
        return line.split(), end + 1

    line_end = buf.find(_CRLF)
    if line_end == -1:
        return None
    count = _parse_int(buf[1:line_end])
    pos = line_end + 2
    args: list[bytes] = []
    for _ in range(max(count, 0)):
        if pos >= len(buf):
            return None
        if buf[pos:pos + 1] != b"$":
            raise ValueError("expected '$' before a bulk string")
        end = buf.find(_CRLF, pos)
        if end == -1:
            return None
        length = _parse_int(buf[pos + 1:end])
        if length < 0:
            raise ValueError("negative bulk string length")
        pos = end + 2
        if len(buf) < pos + length + 2:
            return None
        if buf[pos + length:pos + length + 2] != _CRLF:
            raise ValueError("bulk string not terminated by CRLF")
        args.append(buf[pos:pos + length])
        pos += length + 2
    return args, pos


# ---------------------------------------------------------------------- commands


def _wrong_args(command: str) -> BitcaskError:
    return BitcaskError(f"ERR wrong number of arguments for '{command}' command")


def _cmd_set(store: RedisDataStructure, args: list[bytes]) -> bytes:
    if len(args) != 2:
        raise _wrong_args("set")
    key, value = args
    store.set(key, 0, value)
    return _simple("OK")


def _cmd_get(store: RedisDataStructure, args: list[bytes]) -> bytes:
    if len(args) != 1:
        raise _wrong_args("get")
    return _bulk(bytes(store.get(args[0])))


_HANDLERS: dict[str, Callable[[RedisDataStructure, list[bytes]], bytes] | None] = {
    "set": _cmd_set,
    "get": _cmd_get,
    "ping": None,
    "quit": None,
    "config": None,
}


def execute_command(store: RedisDataStructure, args: Sequence[bytes]) -> bytes:
    """Run one command against ``store`` and return the encoded reply."""
    if not args:
        return _error("ERR empty command")
    command = bytes(args[0]).decode("utf-8", "replace").lower()
    if command not in _HANDLERS:
        return _simple(f"ERR unknown command '{command}'")
    with store.lock:
        if command == "ping":
            return _simple("PONG")
        if command == "quit":
            return _simple("OK")
        if command == "config":
            if len(args) < 3:
                return _error(str(_wrong_args("config")))
            return _array([_bulk(bytes(args[2])), _bulk(b"")])
        handler = _HANDLERS[command]
        try:
            return handler(store, [bytes(a) for a in args[1:]])
        except KeyNotFoundError:
            return _NULL_BULK
        except BitcaskError as err:
            return _error(str(err))


# ---------------------------------------------------------------------- server


class _ConnectionHandler(socketserver.BaseRequestHandler):
    def handle(self) -> None:
        store: RedisDataStructure = self.server.store  # type: ignore[attr-defined]
        buf = bytearray()
        while True:
            data = self.request.recv(65536)
            if not data:
                return
            buf += data
            while True:
                try:
                    parsed = parse_command(bytes(buf))
                except ValueError as err:
                    self.request.sendall(_error(f"ERR Protocol error: {err}"))
                    return
                if parsed is None:
                    break
                args, used = parsed
                del buf[:used]
                if not args:
                    continue
                self.request.sendall(execute_command(store, args))
                if bytes(args[0]).lower() == b"quit":
                    return


class _TCPServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, address: tuple[str, int], store: RedisDataStructure) -> None:
        self.store = store
        super().__init__(address, _ConnectionHandler)


class RedisServer:
    """Serves RESP clients from a thread per connection."""

    def __init__(self, store: RedisDataStructure, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
        self.store = store
        self._server = _TCPServer((host, port), store)
        self._serving = False
        self._lock = threading.Lock()

    @property
    def address(self) -> tuple[str, int]:
        """The bound host and port."""
        host, port = self._server.server_address[:2]
        return host, port

    def serve_forever(self) -> None:
        """Accept connections until ``shutdown`` is called."""
        with self._lock:
            self._serving = True
        log.info("Starting server on %s:%d", *self.address)
        self._server.serve_forever()

    def shutdown(self) -> None:
        """Stop serving and close the listening socket."""
        with self._lock:
            serving = self._serving
        if serving:
            self._server.shutdown()
        self._server.server_close()


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Serve the store over the Redis protocol.")
    parser.add_argument("--dir", default=DEFAULT_DIR, help="data directory")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    store = RedisDataStructure(Options(dir_path=args.dir))
    try:
        server = RedisServer(store, args.host, args.port)
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
        finally:
            server.shutdown()
    finally:
        store.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())