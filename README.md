# memkv

An in-memory key-value database engine. Keys hold lists, sets or sorted
sets and may carry an expiration time. They are manipulated through command
lines such as `[b"rpush", b"key", b"a", b"b"]`. Every command returns a
reply object from `memkv.replies` that can be encoded in the RESP wire
format with `to_bytes()`.

## Installation

```
pip install memkv
```

## Usage

A `memkv.server.Server` holds a number of numbered databases (16 by
default). A `memkv.server.Connection` remembers which database a client has
selected and whether it is inside a MULTI block.

```python
from memkv.server import Server, Connection

server = Server(16)
conn = Connection()

server.exec(conn, [b"rpush", b"fruits", b"apple", b"pear"])
reply = server.exec(conn, [b"lrange", b"fruits", b"0", b"-1"])
print(reply.to_bytes())  # b"*2\r\n$5\r\napple\r\n$4\r\npear\r\n"

server.exec(conn, [b"zadd", b"scores", b"1", b"a", b"2", b"b"])
server.exec(conn, [b"expire", b"scores", b"60"])
server.exec(conn, [b"select", b"1"])
```

`Server` also offers `select_db(index)`, `load_db(index, db)`,
`flush_db(index)`, `flush_all()` and `get_db_size(index)`, which returns
the number of keys and the number of keys with an expiration.

A single database can be used on its own through `memkv.db.DB`:

```python
from memkv.db import DB

db = DB(0)
db.exec([b"sadd", b"tags", b"x", b"y"])
db.exec([b"scard", b"tags"]).to_bytes()  # b":2\r\n"
```

`DB` exposes its keyspace directly as well: `get_entity`, `put_entity`,
`remove`, `removes`, `flush`, `expire`, `persist`, `expire_time`, `keys`,
`len(db)` and `ttl_count`. Keys whose expiration time has passed are
dropped the next time they are touched. Write commands hand their command
line to `add_aof`, which forwards it to `db.aof_callback` when one is set.

## Supported commands

- Keys: `DEL`, `EXISTS`, `TYPE`, `RENAME`, `RENAMENX`, `EXPIRE`,
  `EXPIREAT`, `EXPIRETIME`, `PEXPIRE`, `PEXPIREAT`, `PEXPIRETIME`, `TTL`,
  `PTTL`, `PERSIST`, `KEYS` (glob patterns with `*`, `?`, `[...]` and `\`)
- Lists: `LPUSH`, `LPUSHX`, `RPUSH`, `RPUSHX`, `LPOP`, `RPOP`,
  `RPOPLPUSH`, `LREM`, `LLEN`, `LINDEX`, `LSET`, `LRANGE`
- Sets: `SADD`, `SISMEMBER`, `SREM`, `SPOP`, `SCARD`, `SMEMBERS`,
  `SINTER`, `SINTERSTORE`, `SUNION`, `SUNIONSTORE`, `SDIFF`, `SDIFFSTORE`,
  `SRANDMEMBER`
- Sorted sets: `ZADD`, `ZSCORE`, `ZINCRBY`, `ZRANK`, `ZREVRANK`, `ZCOUNT`,
  `ZCARD`, `ZRANGE`, `ZREVRANGE`, `ZRANGEBYSCORE`, `ZREVRANGEBYSCORE`,
  `ZPOPMIN`, `ZREM`, `ZREMRANGEBYSCORE`, `ZREMRANGEBYRANK`
- Handled by `Server` only: `SELECT`, `COPY` (with `DB` and `REPLACE`
  options), `FLUSHDB`, `FLUSHALL`

The command table lives in `memkv.router`: `lookup(name)`,
`is_read_only_command(name)`, `validate_arity(arity, cmd_line)` and
`register_command(...)` for adding commands of your own. Each `Command`
can describe itself with `describe()`.

The sorted set type behind the `Z*` commands is `memkv.sortedset.SortedSet`,
with score borders parsed by `parse_score_border` (`inf`, `-inf`,
`(value` for an exclusive border).

## Errors

Command executors raise `ErrorReply` (or its subclasses `WrongTypeError`
and `UnknownError`) from `memkv.replies`. `DB.exec` and `Server.exec` catch
it and return it as the reply, as a client would see it. `Server.exec`
turns any other exception into an `UnknownError` reply.

## What it does not do

- There is no network listener: commands are run by calling `exec`.
- Nothing is saved to disk; there is no append-only log or snapshot
  loading, only the `aof_callback` hook on `DB`.
- There are no commands that create string or hash values (such as `SET`,
  `GET` or `HSET`); `TYPE` reports `string` or `hash` only for values put
  in place with `put_entity`.
- There is no authentication, replication, publish/subscribe, `COMMAND`,
  or transaction execution.

## Running the tests

```
pip install memkv[test]
pytest
```