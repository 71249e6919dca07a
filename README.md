# bitcaskkv

A small key/value storage engine built on the Bitcask design: every write is
appended to a data file, and an index maps each key to the position of its
latest record. Reads take one positioned read; writes never rewrite old data.
A merge step rewrites only the live records and writes a hint file so that the
index loads quickly on the next start.

On top of the engine sit Redis-like data structures (strings with expiry,
hashes, sets, lists and sorted sets), a small Redis-protocol server and a
JSON-over-HTTP server.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Using the engine

```python
from bitcaskkv.db import open_db
from bitcaskkv.errors import KeyNotFoundError
from bitcaskkv.options import Options

with open_db(Options(dir_path="/tmp/bitcaskkv-demo")) as db:
    db.put(b"name", b"bitcask")
    print(db.get(b"name"))          # b'bitcask'

    db.delete(b"name")
    try:
        db.get(b"name")
    except KeyNotFoundError:
        print("gone")

    print(db.list_keys())
    print(db.stat())
```

`bitcaskkv.db.DB` (also reached through `open_db`) offers:

- `put`, `get` and `delete` on byte keys and values. An empty key raises
  `KeyIsEmptyError`; getting a missing key raises `KeyNotFoundError`;
  deleting a missing key does nothing.
- `list_keys` returns every key in ascending order; `fold(fn)` calls
  `fn(key, value)` in key order until it returns a false value.
- `stat` returns a `Stat` with `key_num`, `data_file_num`,
  `reclaimable_size` (bytes held by stale records) and `disk_size`.
- `merge` copies the live records into a directory next to the data
  directory (its name plus `-merge`) together with a hint file. The merged
  files replace the old ones the next time the database is opened. It raises
  `MergeRatioUnreachedError` while the share of stale data is below
  `data_file_merge_ratio`, `MergeInProgressError` if a merge is already
  running and `NoEnoughSpaceForMergeError` when the free disk space cannot
  hold the live data.
- `backup(dir_path)` copies the data directory, without its lock file; the
  copy opens as a database of its own.
- `sync` flushes the active data file. `close` (or leaving the `with` block)
  stores the transaction sequence number, closes the files and releases the
  directory lock. Opening a directory that is already open raises
  `DatabaseIsUsingError`.

All errors derive from `bitcaskkv.errors.BitcaskError`; invalid options raise
`ValueError`.

`bitcaskkv.options.Options` sets:

- `dir_path` — the data directory (default: the system temporary directory);
- `data_file_size` — size at which a new data file is started (default 256 MiB);
- `sync_writes` — sync after every write;
- `bytes_per_sync` — sync after this many bytes written (0 turns it off);
- `index_type` — an `IndexType`: `BTREE` (sorted in memory, the default),
  `ART` (radix tree in memory) or `BPLUS_TREE` (kept on disk in the data
  directory, so it is not rebuilt from the data files on open);
- `mmap_at_startup` — read data files through memory maps while loading;
- `data_file_merge_ratio` — share of stale data, between 0 and 1, needed
  before `merge` will run (default 0.5).

### Write batches

```python
from bitcaskkv.batch import WriteBatch
from bitcaskkv.options import WriteBatchOptions

with WriteBatch(db, WriteBatchOptions()) as batch:
    batch.put(b"a", b"1")
    batch.delete(b"b")
# committed on leaving the block without an exception
```

A `WriteBatch` stages puts and deletes and writes them on `commit` as one
transaction: when the data files are loaded again, the records of a batch
are applied only if its closing marker was written. `WriteBatchOptions` sets
`max_batch_num` (default 10000; more staged keys raise
`ExceedMaxBatchNumError`) and `sync_writes` (default on). With the
`BPLUS_TREE` index a batch can only be created on a new directory or one
that was last closed cleanly.

### Iterators

`bitcaskkv.iterator.DBIterator(db, IteratorOptions(prefix=b"user:", reverse=False))`
walks keys forward or in reverse, limited to keys that start with `prefix`.
It has `rewind`, `seek`, `next`, `valid`, `key`, `value` and `close`, and
iterating over it yields `(key, value)` pairs from the start.

## Redis-like data structures

`bitcaskkv.redisds.structure.RedisDataStructure(options)` opens a database
and stores typed values on it:

- strings: `set(key, ttl, value)` with `ttl` in seconds or a `timedelta`
  (0 or `None` for no expiry) and `get(key)`, which returns `None` once the
  value has expired;
- hashes: `hset`, `hget`, `hdel`;
- sets: `sadd`, `sismember`, `srem`;
- lists: `lpush`, `rpush` (returning the new length), `lpop`, `rpop`;
- sorted sets: `zadd(key, score, member)` and `zscore`;
- any key: `delete` and `key_type`, which returns a `RedisDataType`.

Using a key as the wrong kind of value raises `WrongTypeOperationError`.

## Servers

```
bitcaskkv-redis [--host 127.0.0.1] [--port 6380] [--dir PATH]
```

serves the data structures over the Redis protocol. It answers `ping`,
`quit`, `set`, `get`, `hset`, `sadd`, `lpush` and `zadd`; a missing key
comes back as a null reply. Without `--dir` it stores its files directly in
the system temporary directory.

```
bitcaskkv-http [--host localhost] [--port 8085] [--dir PATH]
```

serves the engine over HTTP, using a fresh temporary directory unless
`--dir` is given:

- `PUT /bitcask/put` with a JSON object of string keys and values
- `GET /bitcask/get?key=...` — the value as a JSON string (empty if missing)
- `DELETE /bitcask/delete?key=...`
- `GET /bitcask/listkeys` — a JSON list of keys (`null` when empty)
- `GET /bitcask/stat` — `KeyNum`, `DataFileNum`, `ReclaimableSize`, `DiskSize`

## What it does not do

- The Redis-protocol server handles only the commands listed above. Hash
  reads and deletes, set membership and removal, popping, right pushes and
  sorted-set scores are available from Python but not over the wire, and
  only one database (number 0) is served.
- The HTTP server has no authentication and works on string keys and values
  only.
- Expiry is kept only for strings set with a time to live; there is no
  command or method to set an expiry on other types.