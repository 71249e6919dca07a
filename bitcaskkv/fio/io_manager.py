"""File access back ends: plain file IO and read-only memory mapping."""

from __future__ import annotations

import enum
import io
import mmap
import os
import threading
from abc import ABC, abstractmethod

DATA_FILE_PERM = 0o644
_O_BINARY = getattr(os, "O_BINARY", 0)


class FileIOType(enum.IntEnum):
    """Kind of IO used to access a data file."""

    STANDARD = 0
    MEMORY_MAP = 1


class IOManager(ABC):
    """Positional reads, appending writes and sync for one file."""

    @abstractmethod
    def read(self, size: int, offset: int) -> bytes:
        """Read exactly ``size`` bytes at ``offset``; EOFError if fewer exist."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Append data to the file and return the number of bytes written."""

    @abstractmethod
    def sync(self) -> None:
        """Flush written data to disk."""

    @abstractmethod
    def close(self) -> None:
        """Release the file."""

    @abstractmethod
    def size(self) -> int:
        """Current size of the file in bytes."""

    def __enter__(self) -> "IOManager":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class FileIO(IOManager):
    """Standard file IO opened for reading and appending."""

    def __init__(self, file_name: str) -> None:
        self._fd = os.open(
            file_name, os.O_RDWR | os.O_CREAT | os.O_APPEND | _O_BINARY, DATA_FILE_PERM
        )
        self._lock = threading.Lock()

    def read(self, size: int, offset: int) -> bytes:
        chunks = []
        remaining = size
        with self._lock:
            os.lseek(self._fd, offset, os.SEEK_SET)
            while remaining > 0:
                chunk = os.read(self._fd, remaining)
                if not chunk:
                    break
                chunks.append(chunk)
                remaining -= len(chunk)
        if remaining > 0:
            raise EOFError(f"short read at offset {offset}")
        return b"".join(chunks)

    def write(self, data: bytes) -> int:
        view = memoryview(data)
        written = 0
        with self._lock:
            while written < len(view):
                written += os.write(self._fd, view[written:])
        return written

    def sync(self) -> None:
        os.fsync(self._fd)

    def close(self) -> None:
        if self._fd >= 0:
            os.close(self._fd)
            self._fd = -1

    def size(self) -> int:
        return os.fstat(self._fd).st_size


class MMapIO(IOManager):
    """Read-only memory-mapped access to a file, used to speed up loading."""

    def __init__(self, file_name: str) -> None:
        fd = os.open(file_name, os.O_CREAT | os.O_RDWR | _O_BINARY, DATA_FILE_PERM)
        os.close(fd)
        self._file = open(file_name, "rb")
        length = os.fstat(self._file.fileno()).st_size
        self._map = (
            mmap.mmap(self._file.fileno(), 0, access=mmap.ACCESS_READ) if length else None
        )

    def read(self, size: int, offset: int) -> bytes:
        data = self._map[offset:offset + size] if self._map is not None else b""
        if len(data) < size:
            raise EOFError(f"short read at offset {offset}")
        return data

    def write(self, data: bytes) -> int:
        raise io.UnsupportedOperation("memory-mapped files are read-only")

    def sync(self) -> None:
        raise io.UnsupportedOperation("memory-mapped files are read-only")

    def close(self) -> None:
        if self._map is not None:
            self._map.close()
            self._map = None
        self._file.close()

    def size(self) -> int:
        return len(self._map) if self._map is not None else 0


def new_io_manager(file_name: str, io_type: FileIOType) -> IOManager:
    """Open ``file_name`` with the requested kind of IO."""
    if io_type == FileIOType.STANDARD:
        return FileIO(file_name)
    if io_type == FileIOType.MEMORY_MAP:
        return MMapIO(file_name)
    raise ValueError(f"unsupported io type: {io_type!r}")