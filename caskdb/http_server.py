"""A JSON-over-HTTP front end for the key/value store."""

from __future__ import annotations

import argparse
import json
import logging
import tempfile
from collections.abc import Callable, Sequence
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import NamedTuple
from urllib.parse import parse_qs, urlsplit

from .db import DB
from .errors import BitcaskError
from .options import Options

DEFAULT_HOST = ""
DEFAULT_PORT = 8080

_TEXT = "text/plain; charset=utf-8"
_JSON = "application/json; charset=utf-8"

log = logging.getLogger(__name__)


class HttpResponse(NamedTuple):
    status: int
    content_type: str
    body: bytes


def _text(status: int, message: str) -> HttpResponse:
    return HttpResponse(status, _TEXT, message.encode())


def _json(status: int, payload: object) -> HttpResponse:
    return HttpResponse(status, _JSON, json.dumps(payload).encode())


def _str(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", "replace")


class KVHttpApp:
    """Routes HTTP requests to a database without depending on a server."""

    def __init__(self, db: DB) -> None:
        self.db = db
        self._routes: dict[tuple[str, str], Callable[[dict[str, list[str]], bytes], HttpResponse]] = {
            ("GET", "/get"): self._get,
            ("POST", "/put"): self._put,
            ("GET", "/delete"): self._delete,
            ("GET", "/list_keys"): self._list_keys,
            ("GET", "/stats"): self._stats,
        }

    def handle(self, method: str, path: str, body: bytes = b"") -> HttpResponse:
        """Answer one request; ``path`` may carry a query string."""
        parts = urlsplit(path)
        handler = self._routes.get((method.upper(), parts.path))
        if handler is None:
            return _text(404, "404 page not found")
        query = parse_qs(parts.query, keep_blank_values=True)
        return handler(query, body or b"")

    @staticmethod
    def _key(query: dict[str, list[str]]) -> str:
        return query.get("key", [""])[0]

    def _get(self, query: dict[str, list[str]], body: bytes) -> HttpResponse:
        key = self._key(query)
        try:
            value = self.db.get(key.encode())
        except BitcaskError as err:
            return _text(500, str(err))
        return _json(200, {"key": key, "value": _str(value)})

    def _put(self, query: dict[str, list[str]], body: bytes) -> HttpResponse:
        try:
            data = json.loads(body)
        except ValueError as err:
            return _text(400, str(err))
        if not isinstance(data, dict) or not all(isinstance(v, str) for v in data.values()):
            return _text(400, "request body must be a JSON object of strings")
        for key, value in data.items():
            try:
                self.db.put(key.encode(), value.encode())
            except BitcaskError as err:
                log.error("put key %s error: %s", key, err)
                return _text(500, str(err))
        return _text(200, '{"status":"ok"}')

    def _delete(self, query: dict[str, list[str]], body: bytes) -> HttpResponse:
        try:
            self.db.delete(self._key(query).encode())
        except BitcaskError as err:
            return _text(500, str(err))
        return _text(200, '{"status":"ok"}')

    def _list_keys(self, query: dict[str, list[str]], body: bytes) -> HttpResponse:
        return _json(200, [_str(key) for key in self.db.list_keys()])

    def _stats(self, query: dict[str, list[str]], body: bytes) -> HttpResponse:
        stat = self.db.stat()
        return _json(
            200,
            {
                "KeyNum": stat.key_num,
                "DataFileNum": stat.data_file_num,
                "ReclaimableSize": stat.reclaimable_size,
                "DiskSize": stat.disk_size,
            },
        )


def make_server(app: KVHttpApp, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> ThreadingHTTPServer:
    """An HTTP server that hands every request to ``app``."""

    class Handler(BaseHTTPRequestHandler):
        def _dispatch(self) -> None:
            length = int(self.headers.get("Content-Length") or 0)
            body = self.rfile.read(length) if length > 0 else b""
            response = app.handle(self.command, self.path, body)
            self.send_response(response.status)
            self.send_header("Content-Type", response.content_type)
            self.send_header("Content-Length", str(len(response.body)))
            self.end_headers()
            self.wfile.write(response.body)

        do_GET = _dispatch
        do_POST = _dispatch
        do_PUT = _dispatch
        do_DELETE = _dispatch

        def log_message(self, format: str, *args: object) -> None:
            log.info("%s - %s", self.address_string(), format % args)

    return ThreadingHTTPServer((host, port), Handler)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Serve the store over HTTP.")
    parser.add_argument("--dir", default=None, help="data directory (a fresh temporary one by default)")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    dir_path = args.dir or tempfile.mkdtemp(prefix="caskdb")
    options = Options(
        dir_path=dir_path,
        max_data_file_size=64 * 1024 * 1024,
        sync_write=True,
        bytes_per_sync=1024 * 1024,
    )
    with DB.open(options) as db:
        server = make_server(KVHttpApp(db), args.host, args.port)
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
        finally:
            server.server_close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())