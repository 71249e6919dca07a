"""A server speaking the Redis wire protocol on top of the data structures."""

from __future__ import annotations

import argparse
import logging
import socketserver
import threading
from collections.abc import Callable, Sequence
from typing import BinaryIO

from ..errors import BitcaskError, KeyNotFoundError
from ..options import Options
from ..utils.floats import float_from_bytes, float_to_bytes
from .structure import RedisDataStructure

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 6380

_CRLF = b"\r\n"
_log = logging.getLogger(__name__)


class _ProtocolError(ValueError):
    """The client sent bytes that are not a valid command."""


class _SimpleString(str):
    """A reply sent as a status line rather than a bulk string."""


def _one_line(text: str) -> bytes:
    return text.replace("\r", " ").replace("\n", " ").encode("utf-8")


def read_command(stream: BinaryIO) -> list[bytes] | None:
    """Read one command from ``stream``; None at end of input.

    Accepts both arrays of bulk strings and inline commands. Raises
    ValueError on malformed input.
    """
    line = stream.readline()
    if not line:
        return None
    if line[:1] != b"*":
        return line.split()
    try:
        count = int(line[1:].strip())
    except ValueError:
        raise _ProtocolError("invalid multibulk length") from None
    args: list[bytes] = []
    for _ in range(max(count, 0)):
        header = stream.readline()
        if header[:1] != b"$":
            raise _ProtocolError("expected '$'")
        try:
            length = int(header[1:].strip())
        except ValueError:
            raise _ProtocolError("invalid bulk length") from None
        if length < 0:
            raise _ProtocolError("invalid bulk length")
        payload = stream.read(length + 2)
        if len(payload) != length + 2 or payload[-2:] != _CRLF:
            raise _ProtocolError("unexpected end of bulk string")
        args.append(payload[:-2])
    return args


def encode_reply(value: object) -> bytes:
    """Encode a reply value in the wire protocol."""
    if value is None:
        return b"$-1" + _CRLF
    if isinstance(value, _SimpleString):
        return b"+" + _one_line(value) + _CRLF
    if isinstance(value, BaseException):
        return b"-" + _one_line(str(value)) + _CRLF
    if isinstance(value, bool):
        value = int(value)
    if isinstance(value, int):
        return b":%d" % value + _CRLF
    if isinstance(value, float):
        value = float_to_bytes(value)
    if isinstance(value, str):
        value = value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        data = bytes(value)
        return b"$%d" % len(data) + _CRLF + data + _CRLF
    if isinstance(value, (list, tuple)):
        return b"*%d" % len(value) + _CRLF + b"".join(encode_reply(item) for item in value)
    raise TypeError(f"cannot encode reply of type {type(value).__name__}")


def _wrong_number_of_args(cmd: str) -> BitcaskError:
    return BitcaskError(f"ERR wrong number of arguments for '{cmd}' command")


def _set(db: RedisDataStructure, args: Sequence[bytes]) -> object:
    if len(args) != 2:
        raise _wrong_number_of_args("set")
    db.set(args[0], 0, args[1])
    return _SimpleString("OK")


def _get(db: RedisDataStructure, args: Sequence[bytes]) -> object:
    if len(args) != 1:
        raise _wrong_number_of_args("get")
    return db.get(args[0])


def _hset(db: RedisDataStructure, args: Sequence[bytes]) -> object:
    if len(args) != 3:
        raise _wrong_number_of_args("hset")
    return int(db.hset(args[0], args[1], args[2]))


def _sadd(db: RedisDataStructure, args: Sequence[bytes]) -> object:
    if len(args) != 2:
        raise _wrong_number_of_args("sadd")
    return int(db.sadd(args[0], args[1]))


def _lpush(db: RedisDataStructure, args: Sequence[bytes]) -> object:
    if len(args) != 2:
        raise _wrong_number_of_args("lpush")
    return db.lpush(args[0], args[1])


def _zadd(db: RedisDataStructure, args: Sequence[bytes]) -> object:
    if len(args) != 3:
        raise _wrong_number_of_args("zadd")
    return int(db.zadd(args[0], float_from_bytes(args[1]), args[2]))


_COMMANDS: dict[str, Callable[[RedisDataStructure, Sequence[bytes]], object]] = {
    "set": _set,
    "get": _get,
    "hset": _hset,
    "sadd": _sadd,
    "lpush": _lpush,
    "zadd": _zadd,
}


def execute_command(db: RedisDataStructure, args: Sequence[bytes]) -> bytes | None:
    """Run one command and return the encoded reply; None asks to close the connection."""
    if not args:
        return encode_reply(BitcaskError("ERR empty command"))
    command = bytes(args[0]).decode("utf-8", errors="replace").lower()
    if command == "quit":
        return None
    if command == "ping":
        return encode_reply(_SimpleString("PONG"))
    handler = _COMMANDS.get(command)
    if handler is None:
        return encode_reply(BitcaskError(f"Err unsupported command: '{command}'"))
    try:
        result = handler(db, list(args[1:]))
    except KeyNotFoundError:
        return encode_reply(None)
    except (BitcaskError, ValueError, OSError) as error:
        return encode_reply(error)
    return encode_reply(result)


class _ConnectionHandler(socketserver.StreamRequestHandler):
    server: "_TCPServer"

    def handle(self) -> None:
        owner = self.server.owner
        while True:
            try:
                args = read_command(self.rfile)
            except ValueError as error:
                self.wfile.write(encode_reply(BitcaskError(f"ERR Protocol error: {error}")))
                return
            if args is None:
                return
            if not args:
                continue
            with owner.command_lock:
                reply = execute_command(owner.dbs[0], args)
            if reply is None:
                return
            self.wfile.write(reply)
            self.wfile.flush()


class _TCPServer(socketserver.ThreadingTCPServer):
    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, address: tuple[str, int], owner: "BitcaskServer") -> None:
        self.owner = owner
        super().__init__(address, _ConnectionHandler)


class BitcaskServer:
    """TCP server answering Redis-protocol commands from database 0."""

    def __init__(
        self, db: RedisDataStructure, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT
    ) -> None:
        self.dbs: dict[int, RedisDataStructure] = {0: db}
        self.command_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._started = False
        self._stopped = False
        self._tcp = _TCPServer((host, port), self)

    @property
    def server_address(self) -> tuple[str, int]:
        return self._tcp.server_address[:2]

    def serve_forever(self) -> None:
        """Accept connections until ``shutdown`` is called."""
        with self._state_lock:
            if self._stopped:
                return
            self._started = True
        _log.info("bitcask server running, ready to accept connections.")
        self._tcp.serve_forever()

    def shutdown(self) -> None:
        """Stop serving, close the listening socket and the databases."""
        with self._state_lock:
            if self._stopped:
                return
            self._stopped = True
            started = self._started
        if started:
            self._tcp.shutdown()
        self._tcp.server_close()
        for db in self.dbs.values():
            db.close()

    def __enter__(self) -> "BitcaskServer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()


def main(argv: Sequence[str] | None = None) -> int:
    """Run the Redis-protocol server."""
    parser = argparse.ArgumentParser(description="Serve the data structures over the Redis protocol.")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--dir", dest="dir_path", default=Options().dir_path)
    ns = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    db = RedisDataStructure(Options(dir_path=ns.dir_path))
    server = BitcaskServer(db, ns.host, ns.port)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.shutdown()
    return 0