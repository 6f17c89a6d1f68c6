"""List commands: pushes, pops, ranges, indexing and removal by value."""

from __future__ import annotations

import re
from collections import deque
from itertools import islice
from typing import Optional, Sequence

from .db import DB
from .replies import (
    BulkReply,
    EmptyMultiBulkReply,
    ErrorReply,
    IntReply,
    MultiBulkReply,
    NullBulkReply,
    OkReply,
    Reply,
    WrongTypeError,
)
from .router import (
    SIGN_DENY_OOM,
    SIGN_FAST,
    SIGN_READONLY,
    SIGN_WRITE,
    CmdLine,
    Flag,
    read_first_key,
    register_command,
    to_cmd_line,
    write_first_key,
)

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_NOT_INTEGER = "ERR value is not an integer or out of range"

_LPUSH = b"LPUSH"
_RPUSH = b"RPUSH"


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


def _get_list(db: DB, key: str) -> Optional[deque]:
    """Return the list at ``key``, None if absent; raise on another type."""
    value = db.get_entity(key)
    if value is None:
        return None
    if not isinstance(value, deque):
        raise WrongTypeError()
    return value


def _get_list_quietly(db: DB, key: str) -> Optional[deque]:
    try:
        return _get_list(db, key)
    except ErrorReply:
        return None


def _get_or_init_list(db: DB, key: str) -> deque:
    items = _get_list(db, key)
    if items is None:
        items = deque()
        db.put_entity(key, items)
    return items


def _normalize_index(index: int, size: int) -> Optional[int]:
    """Map a possibly negative index into ``[0, size)``, or None if outside."""
    if index < -size or index >= size:
        return None
    return index + size if index < 0 else index


def exec_lindex(db: DB, args: Sequence[bytes]) -> Reply:
    """LINDEX key index: the element at ``index``, negative counts from the tail."""
    index = _parse_int(args[1])
    items = _get_list(db, _key(args[0]))
    if items is None:
        return NullBulkReply()
    position = _normalize_index(index, len(items))
    if position is None:
        return NullBulkReply()
    return BulkReply(items[position])


def exec_llen(db: DB, args: Sequence[bytes]) -> Reply:
    """LLEN key: the number of elements."""
    items = _get_list(db, _key(args[0]))
    return IntReply(0 if items is None else len(items))


def exec_lpop(db: DB, args: Sequence[bytes]) -> Reply:
    """LPOP key: remove and return the first element."""
    key = _key(args[0])
    items = _get_list(db, key)
    if items is None:
        return NullBulkReply()
    value = items.popleft()
    if not items:
        db.remove(key)
    db.add_aof(to_cmd_line("lpop", *args))
    return BulkReply(value)


def undo_lpop(db: DB, args: Sequence[bytes]) -> list[CmdLine]:
    """Commands restoring the element LPOP would remove."""
    items = _get_list_quietly(db, _key(args[0]))
    if not items:
        return []
    return [[_LPUSH, bytes(args[0]), items[0]]]


def exec_lpush(db: DB, args: Sequence[bytes]) -> Reply:
    """LPUSH key value [value ...]: insert each value at the head."""
    items = _get_or_init_list(db, _key(args[0]))
    items.extendleft(bytes(v) for v in args[1:])
    db.add_aof(to_cmd_line("lpush", *args))
    return IntReply(len(items))


def undo_lpush(db: DB, args: Sequence[bytes]) -> list[CmdLine]:
    """One LPOP per pushed value."""
    key = _key(args[0])
    return [to_cmd_line("LPOP", key) for _ in args[1:]]


def exec_lpushx(db: DB, args: Sequence[bytes]) -> Reply:
    """LPUSHX key value [value ...]: like LPUSH, only if the list exists."""
    items = _get_list(db, _key(args[0]))
    if items is None:
        return IntReply(0)
    items.extendleft(bytes(v) for v in args[1:])
    db.add_aof(to_cmd_line("lpushx", *args))
    return IntReply(len(items))


def exec_lrange(db: DB, args: Sequence[bytes]) -> Reply:
    """LRANGE key start stop: elements between two inclusive indexes."""
    start = _parse_int(args[1])
    stop = _parse_int(args[2])
    items = _get_list(db, _key(args[0]))
    if items is None:
        return EmptyMultiBulkReply()

    size = len(items)
    if start < -size:
        start = 0
    elif start < 0:
        start += size
    elif start >= size:
        return EmptyMultiBulkReply()
    if stop < -size:
        stop = 0
    elif stop < 0:
        stop = size + stop + 1
    elif stop < size:
        stop += 1
    else:
        stop = size
    stop = max(stop, start)
    return MultiBulkReply(list(islice(items, start, stop)))


def _remove_matching(items: deque, value: bytes, limit: Optional[int], from_tail: bool) -> int:
    """Remove up to ``limit`` elements equal to ``value``; None means all."""
    source = reversed(items) if from_tail else iter(items)
    kept: list[bytes] = []
    removed = 0
    for element in source:
        if element == value and (limit is None or removed < limit):
            removed += 1
        else:
            kept.append(element)
    if from_tail:
        kept.reverse()
    items.clear()
    items.extend(kept)
    return removed


def exec_lrem(db: DB, args: Sequence[bytes]) -> Reply:
    """LREM key count value: remove occurrences of ``value``.

    ``count`` > 0 removes from the head, < 0 from the tail, 0 removes all.
    """
    key = _key(args[0])
    count = _parse_int(args[1])
    value = bytes(args[2])
    items = _get_list(db, key)
    if items is None:
        return IntReply(0)

    if count == 0:
        removed = _remove_matching(items, value, None, from_tail=False)
    elif count > 0:
        removed = _remove_matching(items, value, count, from_tail=False)
    else:
        removed = _remove_matching(items, value, -count, from_tail=True)

    if not items:
        db.remove(key)
    if removed > 0:
        db.add_aof(to_cmd_line("lrem", *args))
    return IntReply(removed)


def exec_lset(db: DB, args: Sequence[bytes]) -> Reply:
    """LSET key index value: replace the element at ``index``."""
    index = _parse_int(args[1])
    items = _get_list(db, _key(args[0]))
    if items is None:
        raise ErrorReply("ERR no such key")
    position = _normalize_index(index, len(items))
    if position is None:
        raise ErrorReply("ERR index out of range")
    items[position] = bytes(args[2])
    db.add_aof(to_cmd_line("lset", *args))
    return OkReply()


def undo_lset(db: DB, args: Sequence[bytes]) -> list[CmdLine]:
    """An LSET restoring the element currently at the index."""
    try:
        index = _parse_int(args[1])
    except ErrorReply:
        return []
    items = _get_list_quietly(db, _key(args[0]))
    if items is None:
        return []
    position = _normalize_index(index, len(items))
    if position is None:
        return []
    return [[b"LSET", bytes(args[0]), bytes(args[1]), items[position]]]


def exec_rpop(db: DB, args: Sequence[bytes]) -> Reply:
    """RPOP key: remove and return the last element."""
    key = _key(args[0])
    items = _get_list(db, key)
    if items is None:
        return NullBulkReply()
    value = items.pop()
    if not items:
        db.remove(key)
    db.add_aof(to_cmd_line("rpop", *args))
    return BulkReply(value)


def undo_rpop(db: DB, args: Sequence[bytes]) -> list[CmdLine]:
    """Commands restoring the element RPOP would remove."""
    items = _get_list_quietly(db, _key(args[0]))
    if not items:
        return []
    return [[_RPUSH, bytes(args[0]), items[-1]]]


def _prepare_rpoplpush(args: Sequence[bytes]) -> tuple[list[str], list[str]]:
    return [_key(args[0]), _key(args[1])], []


def exec_rpoplpush(db: DB, args: Sequence[bytes]) -> Reply:
    """RPOPLPUSH source dest: move the tail of source to the head of dest."""
    source_key = _key(args[0])
    source = _get_list(db, source_key)
    if source is None:
        return NullBulkReply()
    dest = _get_or_init_list(db, _key(args[1]))

    value = source.pop()
    dest.appendleft(value)
    if not source:
        db.remove(source_key)

    db.add_aof(to_cmd_line("rpoplpush", *args))
    return BulkReply(value)


def undo_rpoplpush(db: DB, args: Sequence[bytes]) -> list[CmdLine]:
    """Commands putting the moved element back at the tail of source."""
    items = _get_list_quietly(db, _key(args[0]))
    if not items:
        return []
    return [
        [_RPUSH, bytes(args[0]), items[-1]],
        [b"LPOP", bytes(args[1])],
    ]


def exec_rpush(db: DB, args: Sequence[bytes]) -> Reply:
    """RPUSH key value [value ...]: append each value at the tail."""
    items = _get_or_init_list(db, _key(args[0]))
    items.extend(bytes(v) for v in args[1:])
    db.add_aof(to_cmd_line("rpush", *args))
    return IntReply(len(items))


def undo_rpush(db: DB, args: Sequence[bytes]) -> list[CmdLine]:
    """One RPOP per pushed value."""
    key = _key(args[0])
    return [to_cmd_line("RPOP", key) for _ in args[1:]]


def exec_rpushx(db: DB, args: Sequence[bytes]) -> Reply:
    """RPUSHX key value [value ...]: like RPUSH, only if the list exists."""
    if len(args) < 2:
        raise ErrorReply("ERR wrong number of arguments for 'rpush' command")
    items = _get_list(db, _key(args[0]))
    if items is None:
        return IntReply(0)
    items.extend(bytes(v) for v in args[1:])
    db.add_aof(to_cmd_line("rpushx", *args))
    return IntReply(len(items))


register_command("LPush", exec_lpush, write_first_key, undo_lpush, -3, Flag.WRITE).attach_extra(
    [SIGN_WRITE, SIGN_DENY_OOM, SIGN_FAST], 1, 1, 1
)
register_command("LPushX", exec_lpushx, write_first_key, undo_lpush, -3, Flag.WRITE).attach_extra(
    [SIGN_WRITE, SIGN_DENY_OOM, SIGN_FAST], 1, 1, 1
)
register_command("RPush", exec_rpush, write_first_key, undo_rpush, -3, Flag.WRITE).attach_extra(
    [SIGN_WRITE, SIGN_DENY_OOM, SIGN_FAST], 1, 1, 1
)
register_command("RPushX", exec_rpushx, write_first_key, undo_rpush, -3, Flag.WRITE).attach_extra(
    [SIGN_WRITE, SIGN_DENY_OOM, SIGN_FAST], 1, 1, 1
)
register_command("LPop", exec_lpop, write_first_key, undo_lpop, 2, Flag.WRITE).attach_extra(
    [SIGN_WRITE, SIGN_FAST], 1, 1, 1
)
register_command("RPop", exec_rpop, write_first_key, undo_rpop, 2, Flag.WRITE).attach_extra(
    [SIGN_WRITE, SIGN_FAST], 1, 1, 1
)
register_command(
    "RPopLPush", exec_rpoplpush, _prepare_rpoplpush, undo_rpoplpush, 3, Flag.WRITE
).attach_extra([SIGN_WRITE, SIGN_DENY_OOM], 1, 1, 1)
register_command("LRem", exec_lrem, write_first_key, None, 4, Flag.WRITE).attach_extra(
    [SIGN_WRITE], 1, 1, 1
)
register_command("LLen", exec_llen, read_first_key, None, 2, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY, SIGN_FAST], 1, 1, 1
)
register_command("LIndex", exec_lindex, read_first_key, None, 3, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY], 1, 1, 1
)
register_command("LSet", exec_lset, write_first_key, undo_lset, 4, Flag.WRITE).attach_extra(
    [SIGN_WRITE, SIGN_DENY_OOM], 1, 1, 1
)
register_command("LRange", exec_lrange, read_first_key, None, 4, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY], 1, 1, 1
)