"""Keyspace commands: deletion, existence, types, renaming, expiration, KEYS."""

from __future__ import annotations

import re
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Sequence

from .db import DB
from .replies import ErrorReply, IntReply, MultiBulkReply, OkReply, Reply, StatusReply, UnknownError
from .router import (
    SIGN_FAST,
    SIGN_RANDOM,
    SIGN_READONLY,
    SIGN_SORT_FOR_SCRIPT,
    SIGN_WRITE,
    CmdLine,
    Flag,
    no_prepare,
    read_all_keys,
    read_first_key,
    register_command,
    to_cmd_line,
    write_all_keys,
    write_first_key,
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_NOT_INTEGER = "ERR value is not an integer or out of range"


def _key(arg: bytes) -> str:
    return bytes(arg).decode()


def _parse_int(arg: bytes) -> int:
    text = bytes(arg).decode("ascii", "replace")
    if not _INT_RE.fullmatch(text):
        raise ErrorReply(_NOT_INTEGER)
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ErrorReply(_NOT_INTEGER)
    return value


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _trunc_div(a: int, b: int) -> int:
    quotient = abs(a) // b
    return quotient if a >= 0 else -quotient


def _micros(delta: timedelta) -> int:
    return delta // timedelta(microseconds=1)


def _unix_seconds(moment: datetime) -> int:
    return (moment - _EPOCH) // timedelta(seconds=1)


def _unix_millis(moment: datetime) -> int:
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def _after(delta: timedelta) -> datetime:
    try:
        return _now() + delta
    except OverflowError:
        raise ErrorReply(_NOT_INTEGER) from None


def _at(delta_from_epoch: timedelta) -> datetime:
    try:
        return _EPOCH + delta_from_epoch
    except OverflowError:
        raise ErrorReply(_NOT_INTEGER) from None


def _expire_cmd(key: str, expire_at: datetime) -> CmdLine:
    return to_cmd_line("PEXPIREAT", key, str(_unix_millis(expire_at)))


def _to_ttl_cmd(db: DB, key: str) -> CmdLine:
    expire_at = db.expire_time(key)
    if expire_at is None:
        return to_cmd_line("PERSIST", key)
    return _expire_cmd(key, expire_at)


def compile_pattern(pattern: str) -> "re.Pattern[str]":
    """Compile a glob pattern (``*``, ``?``, ``[...]``, ``\\``) to a regex.

    Match keys with ``fullmatch``. Raises ValueError on an unterminated class.
    """
    parts: list[str] = []
    pos = 0
    length = len(pattern)
    while pos < length:
        char = pattern[pos]
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        elif char == "\\":
            pos += 1
            parts.append(re.escape(pattern[pos] if pos < length else "\\"))
        elif char == "[":
            end = pos + 1
            if end < length and pattern[end] in "^!":
                end += 1
            if end < length and pattern[end] == "]":
                end += 1
            while end < length and pattern[end] != "]":
                if pattern[end] == "\\":
                    end += 1
                end += 1
            if end >= length:
                raise ValueError(f"illegal wildcard: {pattern!r}")
            parts.append(_translate_class(pattern[pos + 1 : end]))
            pos = end
        else:
            parts.append(re.escape(char))
        pos += 1
    return re.compile("".join(parts), re.DOTALL)


def _translate_class(body: str) -> str:
    negate = bool(body) and body[0] in "^!"
    if negate:
        body = body[1:]
    items: list[str] = []
    pos = 0
    while pos < len(body):
        char = body[pos]
        if char == "\\" and pos + 1 < len(body):
            pos += 1
            char = body[pos]
        if pos + 2 < len(body) and body[pos + 1] == "-":
            high = body[pos + 2]
            if high < char:
                raise ValueError(f"illegal range in wildcard class: {char}-{high}")
            items.append(f"{re.escape(char)}-{re.escape(high)}")
            pos += 3
            continue
        items.append(re.escape(char))
        pos += 1
    if not items:
        return "(?!)" if not negate else "."
    return "[" + ("^" if negate else "") + "".join(items) + "]"


def exec_del(db: DB, args: Sequence[bytes]) -> Reply:
    """DEL key [key ...]: remove keys, reply with how many existed."""
    deleted = db.removes(*(_key(a) for a in args))
    if deleted > 0:
        db.add_aof(to_cmd_line("del", *args))
    return IntReply(deleted)


def exec_exists(db: DB, args: Sequence[bytes]) -> Reply:
    """EXISTS key [key ...]: count the given keys that exist."""
    return IntReply(sum(1 for a in args if db.get_entity(_key(a)) is not None))


def _type_name(value: Any) -> Optional[str]:
    from .sortedset import SortedSet

    if isinstance(value, (bytes, bytearray)):
        return "string"
    if isinstance(value, (list, deque)):
        return "list"
    if isinstance(value, dict):
        return "hash"
    if isinstance(value, (set, frozenset)):
        return "set"
    if isinstance(value, SortedSet):
        return "zset"
    return None


def exec_type(db: DB, args: Sequence[bytes]) -> Reply:
    """TYPE key: string, list, hash, set, zset or none."""
    value = db.get_entity(_key(args[0]))
    if value is None:
        return StatusReply("none")
    name = _type_name(value)
    if name is None:
        return UnknownError()
    return StatusReply(name)


def _move(db: DB, src: str, dest: str, value: Any) -> None:
    expire_at = db.expire_time(src)
    db.removes(src, dest)
    db.put_entity(dest, value)
    if expire_at is not None:
        db.persist(src)
        db.persist(dest)
        db.expire(dest, expire_at)


def exec_rename(db: DB, args: Sequence[bytes]) -> Reply:
    """RENAME src dest: move a value and its expiration to a new key."""
    if len(args) != 2:
        return ErrorReply("ERR wrong number of arguments for 'rename' command")
    src, dest = _key(args[0]), _key(args[1])
    value = db.get_entity(src)
    if value is None:
        return ErrorReply("no such key")
    _move(db, src, dest, value)
    db.add_aof(to_cmd_line("rename", *args))
    return OkReply()


def exec_renamenx(db: DB, args: Sequence[bytes]) -> Reply:
    """RENAMENX src dest: rename only if dest does not exist."""
    src, dest = _key(args[0]), _key(args[1])
    if db.get_entity(dest) is not None:
        return IntReply(0)
    value = db.get_entity(src)
    if value is None:
        return ErrorReply("no such key")
    _move(db, src, dest, value)
    db.add_aof(to_cmd_line("renamenx", *args))
    return IntReply(1)


def _set_expire(db: DB, key: str, expire_at: datetime) -> Reply:
    if db.get_entity(key) is None:
        return IntReply(0)
    db.expire(key, expire_at)
    db.add_aof(_expire_cmd(key, expire_at))
    return IntReply(1)


def exec_expire(db: DB, args: Sequence[bytes]) -> Reply:
    """EXPIRE key seconds."""
    seconds = _parse_int(args[1])
    return _set_expire(db, _key(args[0]), _after(timedelta(seconds=seconds)))


def exec_expireat(db: DB, args: Sequence[bytes]) -> Reply:
    """EXPIREAT key unix-seconds."""
    raw = _parse_int(args[1])
    return _set_expire(db, _key(args[0]), _at(timedelta(seconds=raw)))


def exec_pexpire(db: DB, args: Sequence[bytes]) -> Reply:
    """PEXPIRE key milliseconds."""
    millis = _parse_int(args[1])
    return _set_expire(db, _key(args[0]), _after(timedelta(milliseconds=millis)))


def exec_pexpireat(db: DB, args: Sequence[bytes]) -> Reply:
    """PEXPIREAT key unix-milliseconds."""
    raw = _parse_int(args[1])
    return _set_expire(db, _key(args[0]), _at(timedelta(milliseconds=raw)))


def _expiration(db: DB, key: str) -> "datetime | int":
    if db.get_entity(key) is None:
        return -2
    expire_at = db.expire_time(key)
    if expire_at is None:
        return -1
    return expire_at


def exec_expiretime(db: DB, args: Sequence[bytes]) -> Reply:
    """EXPIRETIME key: absolute expiration in unix seconds, -1 or -2."""
    found = _expiration(db, _key(args[0]))
    if isinstance(found, int):
        return IntReply(found)
    return IntReply(_unix_seconds(found))


def exec_pexpiretime(db: DB, args: Sequence[bytes]) -> Reply:
    """PEXPIRETIME key: absolute expiration in unix milliseconds, -1 or -2."""
    found = _expiration(db, _key(args[0]))
    if isinstance(found, int):
        return IntReply(found)
    return IntReply(_unix_millis(found))


def exec_ttl(db: DB, args: Sequence[bytes]) -> Reply:
    """TTL key: remaining seconds, -1 without expiration, -2 if missing."""
    found = _expiration(db, _key(args[0]))
    if isinstance(found, int):
        return IntReply(found)
    return IntReply(_trunc_div(_micros(found - _now()), 1_000_000))


def exec_pttl(db: DB, args: Sequence[bytes]) -> Reply:
    """PTTL key: remaining milliseconds, -1 without expiration, -2 if missing."""
    found = _expiration(db, _key(args[0]))
    if isinstance(found, int):
        return IntReply(found)
    return IntReply(_trunc_div(_micros(found - _now()), 1_000))


def exec_persist(db: DB, args: Sequence[bytes]) -> Reply:
    """PERSIST key: drop the expiration; 1 if one was dropped."""
    key = _key(args[0])
    if db.get_entity(key) is None or db.expire_time(key) is None:
        return IntReply(0)
    db.persist(key)
    db.add_aof(to_cmd_line("persist", *args))
    return IntReply(1)


def exec_keys(db: DB, args: Sequence[bytes]) -> Reply:
    """KEYS pattern: every key matching a glob pattern."""
    try:
        pattern = compile_pattern(_key(args[0]))
    except ValueError:
        return ErrorReply("ERR illegal wildcard")
    return MultiBulkReply([key.encode() for key in db.keys() if pattern.fullmatch(key)])


def undo_expire(db: DB, args: Sequence[bytes]) -> list[CmdLine]:
    """Commands restoring the current expiration of the key in ``args``."""
    return [_to_ttl_cmd(db, _key(args[0]))]


register_command("Del", exec_del, write_all_keys, None, -2, Flag.WRITE).attach_extra(
    [SIGN_WRITE], 1, -1, 1
)
register_command("Expire", exec_expire, write_first_key, undo_expire, 3, Flag.WRITE).attach_extra(
    [SIGN_WRITE, SIGN_FAST], 1, 1, 1
)
register_command(
    "ExpireAt", exec_expireat, write_first_key, undo_expire, 3, Flag.WRITE
).attach_extra([SIGN_WRITE, SIGN_FAST], 1, 1, 1)
register_command(
    "ExpireTime", exec_expiretime, read_first_key, None, 2, Flag.READ_ONLY
).attach_extra([SIGN_WRITE, SIGN_FAST], 1, 1, 1)
register_command(
    "PExpire", exec_pexpire, write_first_key, undo_expire, 3, Flag.WRITE
).attach_extra([SIGN_WRITE, SIGN_FAST], 1, 1, 1)
register_command(
    "PExpireAt", exec_pexpireat, write_first_key, undo_expire, 3, Flag.WRITE
).attach_extra([SIGN_WRITE, SIGN_FAST], 1, 1, 1)
register_command(
    "PExpireTime", exec_pexpiretime, read_first_key, None, 2, Flag.READ_ONLY
).attach_extra([SIGN_WRITE, SIGN_FAST], 1, 1, 1)
register_command("TTL", exec_ttl, read_first_key, None, 2, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY, SIGN_RANDOM, SIGN_FAST], 1, 1, 1
)
register_command("PTTL", exec_pttl, read_first_key, None, 2, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY, SIGN_RANDOM, SIGN_FAST], 1, 1, 1
)
register_command(
    "Persist", exec_persist, write_first_key, undo_expire, 2, Flag.WRITE
).attach_extra([SIGN_WRITE, SIGN_FAST], 1, 1, 1)
register_command("Exists", exec_exists, read_all_keys, None, -2, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY, SIGN_FAST], 1, 1, 1
)
register_command("Type", exec_type, read_first_key, None, 2, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY, SIGN_FAST], 1, 1, 1
)
register_command(
    "Rename",
    exec_rename,
    lambda args: ([_key(args[1])], [_key(args[0])]),
    None,
    3,
    Flag.READ_ONLY,
).attach_extra([SIGN_WRITE], 1, 1, 1)
register_command(
    "RenameNx",
    exec_renamenx,
    lambda args: ([_key(args[1])], [_key(args[0])]),
    None,
    3,
    Flag.READ_ONLY,
).attach_extra([SIGN_WRITE, SIGN_FAST], 1, 1, 1)
register_command("Keys", exec_keys, no_prepare, None, 2, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY, SIGN_SORT_FOR_SCRIPT], 1, 1, 1
)