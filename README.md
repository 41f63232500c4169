# helin

Core pieces of a small embedded storage engine, usable on their own:

- `helin.bwal`: a buffered, segmented write-ahead log. Records are appended
  to an in-memory buffer. A background flusher writes the buffer to
  numbered segment files on a fixed interval (8 ms by default). Readers can
  walk the log forwards and backwards, cut off a partially written tail and
  drop old data from the front.
- `helin.catalog`: typed database values (32-bit integers, floats,
  booleans, variable and fixed length strings), column schemas, tuples
  encoded against a schema, tuple keys and key serializers.
- `helin.common`: small helpers (`chunks`, `one_of`, `uint64_as_bytes`,
  `assert_that`, ...) and synchronisation primitives: a per-key mutex
  (`KeyMutex`), a thread-safe map (`SyncMap`), a broadcast `Event` and a
  `Stats` accumulator.

The package has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Writing and reading a log

```python
import os

from helin.bwal.log_writer import open_buffered_log_writer
from helin.bwal.log_reader import open_buffered_log_reader
from helin.bwal.errors import AtLastError

os.makedirs("wal_dir", exist_ok=True)   # the log directory must exist

writer = open_buffered_log_writer(4096, 8192, "wal_dir")
writer.run_flusher()

lsn = writer.write(b"hello")
writer.wait(lsn)          # blocks until the record is on disk
writer.stop_flusher()     # flushes what is left, closes the segment and stops

reader = open_buffered_log_reader("wal_dir", 8192)
while True:
    try:
        record, lsn = reader.next()
    except AtLastError:
        break
    print(lsn, record)
reader.close()
```

A record's LSN is its byte offset in the log. Each record is preceded by a
10-byte header (`LogRecordHeader`: payload size and the previous record's
LSN), and a payload may be at most 65535 bytes. On the reader:

- `skip_to_lsn(lsn)` jumps straight to a record; `next()` and `prev()`
  walk forwards and backwards, raising `AtLastError` / `AtFirstError` at
  the ends.
- `last_lsn()` moves to the last complete record and returns it.
- `repair_wal()` cuts off a record that was only partly written.
- `truncate_until(lsn)` drops everything before `lsn`.

`open_buffered_log_writer` repairs the log before opening it and continues
after the last record. `BufferedLogWriter.flush()` forces a flush,
`get_flushed_lsn()` returns the latest flushed LSN, and writing after
`stop_flusher()` raises `WriterClosedError`. All log errors derive from
`helin.bwal.errors.WalError`.

The lower layers can be used directly: `helin.bwal.segment_fs.SegmentFS`
opens a `SegmentWriter` or `SegmentReader` over a directory of segment
files, and `helin.bwal.options.DEFAULT_OPTIONS` holds the file permissions
used for segments.

## Values, schemas and tuples

```python
from helin.catalog.db_types import new_value, IntegerType, CHAR_TYPE_ID
from helin.catalog.schema import Column, Schema
from helin.catalog.tuple import new_tuple_with_schema, new_tuple_key

schema = Schema([
    Column("id", IntegerType().type_id()),
    Column("name", CHAR_TYPE_ID),
])
row = new_tuple_with_schema([new_value(1), new_value("alice")], schema)
assert row.get_value(schema, 1).value == "alice"

a = new_tuple_key(schema, new_value(1), new_value("alice"))
b = new_tuple_key(schema, new_value(2), new_value("bob"))
assert a.less(b)
assert str(a) == "1-alice"
```

`new_value` accepts `bool`, `int` (32-bit range), `str` and `float`.
Fixed-width columns are stored inline; variable-width columns are stored at
the end of the tuple and reached through a length and offset pair.
`TupleKeySerializer` and `CharTypeKeySerializer` turn keys into bytes and
back.

## What this package does not do

There is no database to open: no page storage, buffer pool, B-tree,
transactions, locking, crash recovery or persistent catalog of stores. The
write-ahead log stores and returns opaque byte records; it does not
interpret them. There is no command-line program or server.