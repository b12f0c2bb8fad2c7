# caskdb

caskdb is an embeddable key/value storage engine built on the Bitcask model.
Every write is appended to a log of data files on disk. An index maps each key
to the position of its latest record, so a read costs one lookup and one read
from disk.

Features:

- `put`, `get`, `delete`, `list_keys` and `fold` over byte-string keys and values
- three index kinds, chosen with `IndexType`: `BTREE` (a sorted in-memory
  index), `ART` (an in-memory radix tree) and `BPTREE` (a persistent index kept
  in an SQLite file named `bptree-index` inside the data directory, so it need
  not be rebuilt at start-up)
- atomic write batches (`WriteBatch`): after a crash a batch is replayed in
  full or not at all
- ordered iteration, forward or reverse, with an optional key prefix
  (`DBIterator`)
- merging of stale records into fresh data files plus a hint file for faster
  start-up (`caskdb.merge.merge`)
- `stat` and `backup` of a data directory
- a lock file, so only one process opens a directory at a time
  (`DatabaseIsUsingError` otherwise)
- Redis-like strings (with TTL), hashes, sets, lists and sorted sets on top of
  the engine (`RedisDataStructure`)
- a small RESP server and a small HTTP server

## Installing

```
pip install .
```

## Using the engine

```python
from caskdb.db import DB
from caskdb.options import Options

with DB.open(Options(dir_path="/tmp/caskdb-demo")) as db:
    db.put(b"name", b"caskdb")
    print(db.get(b"name"))       # b'caskdb'
    db.delete(b"name")
    print(db.list_keys())        # []
```

A key that is not present raises `KeyNotFoundError`; an empty key raises
`KeyIsEmptyError`. All errors live in `caskdb.errors` and derive from
`BitcaskError`. Deleting a key that is not present does nothing.

### Options

`Options` (in `caskdb.options`) has these fields:

| field | default | meaning |
| --- | --- | --- |
| `dir_path` | the system temporary directory | data directory, created if missing |
| `max_data_file_size` | 256 MiB | size at which a new data file is started |
| `sync_write` | `False` | flush to disk after every write |
| `bytes_per_sync` | `0` | flush after this many bytes written (0: never by count) |
| `index_type` | `IndexType.BTREE` | which index to use |
| `mmap_at_startup` | `True` | read data files through a memory map while loading |
| `data_file_merge_ratio` | `0.5` | reclaimable share of the disk size needed before a merge; must be between 0 and 1 |

`DB.stat()` returns a `Stat` with `key_num`, `data_file_num`,
`reclaimable_size` and `disk_size`. `DB.backup(dest_dir)` copies the data
directory without its lock file.

### Write batches

```python
from caskdb.batch import WriteBatch
from caskdb.options import WriteBatchOptions

batch = WriteBatch(db, WriteBatchOptions())
batch.put(b"a", b"1")
batch.put(b"b", b"2")
batch.delete(b"c")
batch.commit()
```

Nothing in a batch reaches the index until `commit`. A batch holding more
records than `max_batch_num` (default 1000) raises `BatchNumExceededError` on
commit. With the `BPTREE` index a batch can only be created on a fresh
directory or one that was closed cleanly; otherwise `BitcaskError` is raised.

### Iterating

```python
from caskdb.iterator import DBIterator
from caskdb.options import IteratorOptions

with DBIterator(db, IteratorOptions(prefix=b"user:", reverse=False)) as it:
    for key, value in it:
        print(key, value)
```

The iterator also offers `rewind`, `seek`, `next`, `valid`, `key` and `value`
for manual stepping.

### Merging

```python
from caskdb.merge import merge

merge(db)
```

Merge raises `MergeRatioUnreachedError` while too little of the data on disk
is reclaimable, `DiskSpaceNotEnoughError` when the disk cannot hold the merged
files, and `MergeIsProcessingError` if a merge is already running. The merged
files are written to a sibling directory ending in `-merge` and take effect the
next time the data directory is opened.

## Redis-like data structures

```python
from caskdb.options import Options
from caskdb.redis.structures import RedisDataStructure

with RedisDataStructure(Options(dir_path="/tmp/caskdb-redis")) as rds:
    rds.set(b"greeting", 0, b"hello")         # ttl in seconds, 0 for none
    rds.hset(b"user", b"name", b"alice")
    rds.sadd(b"tags", b"db")
    rds.rpush(b"queue", b"job-1")
    rds.zadd(b"scores", 1.5, b"alice")
    print(rds.get(b"greeting"), rds.zscore(b"scores", b"alice"))
```

Available operations: `set`, `get`, `delete`, `type`, `hset`, `hget`, `hdel`,
`sadd`, `sismember`, `srem`, `lpush`, `lpop`, `rpush`, `rpop`, `zadd` and
`zscore`. Using a key with an operation of another type raises
`WrongTypeOperationError`; reading an expired string or popping an empty list
raises `KeyNotFoundError`.

## Servers

Start the RESP server (by default on 127.0.0.1:6390, with data in
`./caskdb-redis`; see `--dir`, `--host` and `--port`):

```
caskdb-redis
```

It answers `PING`, `SET key value`, `GET key`, `QUIT` and the `CONFIG GET`
probe used by benchmarking tools.

Start the HTTP server (by default on port 8080 on all interfaces, with data in
a fresh temporary directory unless `--dir` is given):

```
caskdb-http
```

It offers `GET /get?key=`, `POST /put` with a JSON object of string keys and
values, `GET /delete?key=`, `GET /list_keys` and `GET /stats`.

## What it does not do

- The RESP server exposes only the string commands listed above; hashes,
  sets, lists, sorted sets, `DEL`, TTLs and pub/sub are reachable only through
  the Python API.
- Sorted sets offer no range queries, and lists no indexed access; only the
  operations listed above exist.
- Neither server has authentication or TLS.

## Helpers

`caskdb.keygen` makes keys and random values for tests and benchmarks
(`make_key`, `make_value`, `random_value`, `gen_kv`); `caskdb.dirutil` has
`dir_size`, `available_space` and `copy_dir`.

## Running the tests

```
pip install ".[test]"
pytest
```