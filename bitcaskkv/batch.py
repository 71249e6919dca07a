"""Atomic write batches committed as one transaction."""

from __future__ import annotations

import threading

from .data.log_record import LogRecord, LogRecordPos, LogRecordType
from .db import DB
from .errors import BitcaskError, ExceedMaxBatchNumError, KeyIsEmptyError
from .options import IndexType, WriteBatchOptions
from .txnkey import TXN_FIN_KEY, log_record_key_with_seq


class WriteBatch:
    """Buffers puts and deletes and writes them atomically on commit."""

    def __init__(self, db: DB, options: WriteBatchOptions | None = None) -> None:
        if (
            db.options.index_type == IndexType.BPLUS_TREE
            and not db.seq_no_file_exists
            and not db.is_initial
        ):
            raise BitcaskError("cannot write batch, sequence number file not exist")
        self.options = options if options is not None else WriteBatchOptions()
        self._db = db
        self._lock = threading.Lock()
        self._pending: dict[bytes, LogRecord] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def put(self, key: bytes, value: bytes) -> None:
        """Stage ``value`` under ``key``."""
        if not key:
            raise KeyIsEmptyError()
        key = bytes(key)
        with self._lock:
            self._pending[key] = LogRecord(key=key, value=bytes(value or b""))

    def delete(self, key: bytes) -> None:
        """Stage removal of ``key``; a key absent from the database is only unstaged."""
        if not key:
            raise KeyIsEmptyError()
        key = bytes(key)
        with self._lock:
            if self._db.index.get(key) is None:
                self._pending.pop(key, None)
                return
            self._pending[key] = LogRecord(key=key, type=LogRecordType.DELETED)

    def commit(self) -> None:
        """Write the staged records, mark the transaction finished and update the index."""
        with self._lock:
            if not self._pending:
                return
            if len(self._pending) > self.options.max_batch_num:
                raise ExceedMaxBatchNumError()
            db = self._db
            with db.lock:
                db.seq_no += 1
                seq_no = db.seq_no
                positions: dict[bytes, LogRecordPos] = {}
                for key, record in self._pending.items():
                    positions[key] = db.append_log_record(
                        LogRecord(
                            key=log_record_key_with_seq(key, seq_no),
                            value=record.value,
                            type=record.type,
                        )
                    )
                db.append_log_record(
                    LogRecord(
                        key=log_record_key_with_seq(TXN_FIN_KEY, seq_no),
                        type=LogRecordType.TXN_FINISHED,
                    )
                )
                if self.options.sync_writes and db.active_file is not None:
                    db.active_file.sync()

                for key, record in self._pending.items():
                    old = None
                    if record.type == LogRecordType.NORMAL:
                        old = db.index.put(key, positions[key])
                    elif record.type == LogRecordType.DELETED:
                        old, _ = db.index.delete(key)
                    if old is not None:
                        db.reclaim_size += old.size
            self._pending = {}

    def __enter__(self) -> "WriteBatch":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.commit()