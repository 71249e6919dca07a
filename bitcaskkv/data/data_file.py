"""Data files: append-only files of encoded log records."""

from __future__ import annotations

import os
from collections.abc import Iterator

from ..errors import BitcaskError
from ..fio.io_manager import FileIOType, IOManager, new_io_manager
from .log_record import (
    CRC_SIZE,
    MAX_LOG_RECORD_HEADER_SIZE,
    LogRecord,
    LogRecordPos,
    LogRecordType,
    decode_log_record_header,
    encode_log_record,
    encode_log_record_pos,
    log_record_crc,
)

DATA_FILE_NAME_SUFFIX = ".data"
HINT_FILE_NAME = "hint-index"
MERGE_FINISHED_FILE_NAME = "merge-finished"
SEQ_NO_FILE_NAME = "seq-no"


class InvalidCRCError(BitcaskError):
    default_message = "invalid CRC value, log record may be corrupted"


def data_file_name(dir_path: str, file_id: int) -> str:
    """Path of the data file with the given id."""
    return os.path.join(dir_path, f"{file_id:09d}{DATA_FILE_NAME_SUFFIX}")


class DataFile:
    """One data file: its id, write offset and IO back end."""

    def __init__(self, file_id: int, io_manager: IOManager) -> None:
        self.file_id = file_id
        self.write_off = 0
        self.io_manager = io_manager

    def read_log_record(self, offset: int) -> tuple[LogRecord, int]:
        """Read the record at ``offset``; returns (record, encoded size).

        Raises EOFError at the end of the file and InvalidCRCError on corruption.
        """
        file_size = self.io_manager.size()
        header_bytes = min(MAX_LOG_RECORD_HEADER_SIZE, file_size - offset)
        if header_bytes < 0:
            raise EOFError(f"offset {offset} is past the end of the file")
        header_buf = self.io_manager.read(header_bytes, offset)
        header, header_size = decode_log_record_header(header_buf)
        if header is None or (
            header.crc == 0 and header.key_size == 0 and header.value_size == 0
        ):
            raise EOFError(f"no record at offset {offset}")

        key_size, value_size = header.key_size, header.value_size
        key = value = b""
        if key_size or value_size:
            kv = self.io_manager.read(key_size + value_size, offset + header_size)
            key, value = kv[:key_size], kv[key_size:]

        crc = log_record_crc(LogRecord(key=key, value=value), header_buf[CRC_SIZE:header_size])
        if crc != header.crc:
            raise InvalidCRCError()
        record = LogRecord(key=key, value=value, type=LogRecordType(header.record_type))
        return record, header_size + key_size + value_size

    def records(self) -> Iterator[tuple[LogRecord, int, int]]:
        """Yield (record, offset, size) for every record from the start."""
        offset = 0
        while True:
            try:
                record, size = self.read_log_record(offset)
            except EOFError:
                return
            yield record, offset, size
            offset += size

    def write(self, data: bytes) -> None:
        """Append bytes and advance the write offset."""
        self.write_off += self.io_manager.write(data)

    def write_hint_record(self, key: bytes, pos: LogRecordPos) -> None:
        """Append a hint entry mapping a key to its position."""
        self.write(encode_log_record(LogRecord(key=key, value=encode_log_record_pos(pos))))

    def sync(self) -> None:
        self.io_manager.sync()

    def close(self) -> None:
        self.io_manager.close()

    def set_io_manager(self, dir_path: str, io_type: FileIOType) -> None:
        """Reopen the file with another kind of IO."""
        self.io_manager.close()
        self.io_manager = new_io_manager(data_file_name(dir_path, self.file_id), io_type)

    def __enter__(self) -> "DataFile":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _new_data_file(file_name: str, file_id: int, io_type: FileIOType) -> DataFile:
    return DataFile(file_id, new_io_manager(file_name, io_type))


def open_data_file(
    dir_path: str, file_id: int, io_type: FileIOType = FileIOType.STANDARD
) -> DataFile:
    """Open (creating if needed) the data file with the given id."""
    return _new_data_file(data_file_name(dir_path, file_id), file_id, io_type)


def open_hint_file(dir_path: str) -> DataFile:
    """Open the hint index file of a directory."""
    return _new_data_file(os.path.join(dir_path, HINT_FILE_NAME), 0, FileIOType.STANDARD)


def open_merge_finished_file(dir_path: str) -> DataFile:
    """Open the file marking a completed merge."""
    return _new_data_file(
        os.path.join(dir_path, MERGE_FINISHED_FILE_NAME), 0, FileIOType.STANDARD
    )


def open_seq_no_file(dir_path: str) -> DataFile:
    """Open the file holding the transaction sequence number."""
    return _new_data_file(os.path.join(dir_path, SEQ_NO_FILE_NAME), 0, FileIOType.STANDARD)