"""A small HTTP interface to the storage engine."""

from __future__ import annotations

import argparse
import json
import logging
import tempfile
from collections.abc import Sequence
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlsplit

from .db import DB
from .errors import BitcaskError, KeyIsEmptyError, KeyNotFoundError
from .options import Options

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8085

_log = logging.getLogger(__name__)
_ROUTE_ERRORS = (BitcaskError, OSError, ValueError)


def _text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def make_handler(db: DB) -> type[BaseHTTPRequestHandler]:
    """Request handler class serving the ``/bitcask/*`` routes from ``db``."""

    class Handler(BaseHTTPRequestHandler):
        def log_message(self, format: str, *args) -> None:
            _log.info("%s - %s", self.address_string(), format % args)

        # -------------------------------------------------------- responses

        def _send(self, status: int, body: bytes, content_type: str | None = None) -> None:
            self.send_response(status)
            if content_type:
                self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            if self.command != "HEAD":
                self.wfile.write(body)

        def _error(self, message: str, status: int) -> None:
            self._send(status, (message + "\n").encode("utf-8"), "text/plain; charset=utf-8")

        def _json(self, value: object) -> None:
            body = (json.dumps(value, ensure_ascii=False) + "\n").encode("utf-8")
            self._send(HTTPStatus.OK, body, "application/json")

        def _query_key(self) -> bytes:
            query = parse_qs(urlsplit(self.path).query, keep_blank_values=True)
            return query.get("key", [""])[0].encode("utf-8")

        def _require(self, method: str) -> bool:
            if self.command != method:
                self._error("Method not allowed", HTTPStatus.METHOD_NOT_ALLOWED)
                return False
            return True

        # -------------------------------------------------------- routes

        def _put(self) -> None:
            _log.info("received PUT request")
            if not self._require("PUT"):
                return
            length = int(self.headers.get("Content-Length") or 0)
            raw = self.rfile.read(length) if length > 0 else b""
            try:
                payload = json.loads(raw)
            except ValueError as error:
                self._error(str(error), HTTPStatus.BAD_REQUEST)
                return
            if not isinstance(payload, dict) or not all(
                isinstance(value, str) for value in payload.values()
            ):
                self._error("request body must be an object of strings", HTTPStatus.BAD_REQUEST)
                return
            for key, value in payload.items():
                try:
                    db.put(key.encode("utf-8"), value.encode("utf-8"))
                except _ROUTE_ERRORS as error:
                    _log.error("failed to put value in db: %s", error)
                    self._error(str(error), HTTPStatus.INTERNAL_SERVER_ERROR)
                    return
            self._send(HTTPStatus.OK, b"")

        def _get(self) -> None:
            if not self._require("GET"):
                return
            try:
                value = db.get(self._query_key())
            except KeyNotFoundError:
                value = b""
            except _ROUTE_ERRORS as error:
                _log.error("failed to get value in db: %s", error)
                self._error(str(error), HTTPStatus.INTERNAL_SERVER_ERROR)
                return
            self._json(_text(value))

        def _delete(self) -> None:
            if not self._require("DELETE"):
                return
            try:
                db.delete(self._query_key())
            except KeyIsEmptyError:
                pass
            except _ROUTE_ERRORS as error:
                _log.error("failed to delete key in db: %s", error)
                self._error(str(error), HTTPStatus.INTERNAL_SERVER_ERROR)
                return
            self._json("OK")

        def _list_keys(self) -> None:
            if not self._require("GET"):
                return
            keys = [_text(key) for key in db.list_keys()]
            self._json(keys or None)

        def _stat(self) -> None:
            if not self._require("GET"):
                return
            stat = db.stat()
            self._json(
                {
                    "KeyNum": stat.key_num,
                    "DataFileNum": stat.data_file_num,
                    "ReclaimableSize": stat.reclaimable_size,
                    "DiskSize": stat.disk_size,
                }
            )

        _routes = {
            "/bitcask/put": _put,
            "/bitcask/get": _get,
            "/bitcask/delete": _delete,
            "/bitcask/listkeys": _list_keys,
            "/bitcask/stat": _stat,
        }

        def _dispatch(self) -> None:
            route = self._routes.get(urlsplit(self.path).path)
            if route is None:
                self._error("404 page not found", HTTPStatus.NOT_FOUND)
                return
            route(self)

        do_GET = _dispatch
        do_PUT = _dispatch
        do_DELETE = _dispatch
        do_POST = _dispatch
        do_PATCH = _dispatch
        do_HEAD = _dispatch

    return Handler


def make_server(db: DB, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> ThreadingHTTPServer:
    """An HTTP server, not yet serving, bound to ``host``:``port``."""
    server = ThreadingHTTPServer((host, port), make_handler(db))
    server.daemon_threads = True
    return server


def main(argv: Sequence[str] | None = None) -> int:
    """Open a database and serve it over HTTP."""
    parser = argparse.ArgumentParser(description="Serve the key/value store over HTTP.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--dir", dest="dir_path", default=None)
    ns = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    dir_path = ns.dir_path or tempfile.mkdtemp(prefix="bitcask-http")
    db = DB(Options(dir_path=dir_path))
    server = make_server(db, ns.host, ns.port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
        db.close()
    return 0