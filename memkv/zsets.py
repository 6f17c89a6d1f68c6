"""Sorted set commands: scores, ranks, ranges and removals."""

from __future__ import annotations

import math
import re
from decimal import Decimal
from typing import Optional, Sequence

from .db import DB
from .replies import (
    BulkReply,
    EmptyMultiBulkReply,
    ErrorReply,
    IntReply,
    MultiBulkReply,
    NullBulkReply,
    Reply,
    WrongTypeError,
    arg_num_error,
    syntax_error,
)
from .router import (
    SIGN_DENY_OOM,
    SIGN_FAST,
    SIGN_READONLY,
    SIGN_WRITE,
    Flag,
    read_first_key,
    register_command,
    to_cmd_line,
    write_first_key,
)
from .sortedset import Element, ScoreBorder, SortedSet, parse_score_border

_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)
_INF_RE = re.compile(r"[+-]?inf(?:inity)?", re.IGNORECASE)
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_NOT_INTEGER = "ERR value is not an integer or out of range"
_NOT_FLOAT = "ERR value is not a valid float"


def _key(arg: bytes) -> str:
    return bytes(arg).decode()


def _member(arg: bytes) -> str:
    return bytes(arg).decode("utf-8", "surrogateescape")


def _member_bytes(member: str) -> bytes:
    return member.encode("utf-8", "surrogateescape")


def _parse_int(arg: bytes) -> int:
    text = bytes(arg).decode("ascii", "replace")
    if not _INT_RE.fullmatch(text):
        raise ErrorReply(_NOT_INTEGER)
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ErrorReply(_NOT_INTEGER)
    return value


def _parse_score(arg: bytes) -> float:
    text = bytes(arg).decode("ascii", "replace")
    if not _FLOAT_RE.fullmatch(text):
        raise ErrorReply(_NOT_FLOAT)
    value = float(text)
    if math.isnan(value) or (math.isinf(value) and not _INF_RE.fullmatch(text)):
        raise ErrorReply(_NOT_FLOAT)
    return value


def _format_score(score: float) -> str:
    """Shortest decimal form without an exponent."""
    if math.isnan(score):
        return "NaN"
    if math.isinf(score):
        return "+Inf" if score > 0 else "-Inf"
    return format(Decimal(repr(score)).normalize(), "f")


def _border(arg: bytes) -> ScoreBorder:
    return parse_score_border(bytes(arg).decode("utf-8", "replace"))


def _get_zset(db: DB, key: str) -> Optional[SortedSet]:
    """Return the sorted set at ``key``, None if absent; raise on another type."""
    value = db.get_entity(key)
    if value is None:
        return None
    if not isinstance(value, SortedSet):
        raise WrongTypeError()
    return value


def _get_or_init_zset(db: DB, key: str) -> SortedSet:
    zset = _get_zset(db, key)
    if zset is None:
        zset = SortedSet()
        db.put_entity(key, zset)
    return zset


def _elements_reply(elements: Sequence[Element], with_scores: bool) -> Reply:
    result: list[bytes] = []
    for element in elements:
        result.append(_member_bytes(element.member))
        if with_scores:
            result.append(_format_score(element.score).encode())
    return MultiBulkReply(result)


def _clamp_range(start: int, stop: int, size: int) -> Optional[tuple[int, int]]:
    """Turn inclusive, possibly negative indexes into ``[start, stop)``."""
    if start < -size:
        start = 0
    elif start < 0:
        start += size
    elif start >= size:
        return None
    if stop < -size:
        stop = 0
    elif stop < 0:
        stop += size + 1
    elif stop < size:
        stop += 1
    else:
        stop = size
    return start, max(start, stop)


def exec_zadd(db: DB, args: Sequence[bytes]) -> Reply:
    """ZADD key score member [score member ...]: reply with how many were new."""
    if len(args) % 2 != 1:
        raise syntax_error()
    pairs = [(_member(m), _parse_score(s)) for s, m in zip(args[1::2], args[2::2])]
    zset = _get_or_init_zset(db, _key(args[0]))
    added = sum(1 for member, score in pairs if zset.add(member, score))
    db.add_aof(to_cmd_line("zadd", *args))
    return IntReply(added)


def exec_zscore(db: DB, args: Sequence[bytes]) -> Reply:
    """ZSCORE key member: the member's score as a string."""
    zset = _get_zset(db, _key(args[0]))
    if zset is None:
        return NullBulkReply()
    element = zset.get(_member(args[1]))
    if element is None:
        return NullBulkReply()
    return BulkReply(_format_score(element.score).encode())


def _rank(db: DB, args: Sequence[bytes], desc: bool) -> Reply:
    zset = _get_zset(db, _key(args[0]))
    if zset is None:
        return NullBulkReply()
    rank = zset.rank(_member(args[1]), desc)
    if rank < 0:
        return NullBulkReply()
    return IntReply(rank)


def exec_zrank(db: DB, args: Sequence[bytes]) -> Reply:
    """ZRANK key member: zero-based rank in ascending order."""
    return _rank(db, args, desc=False)


def exec_zrevrank(db: DB, args: Sequence[bytes]) -> Reply:
    """ZREVRANK key member: zero-based rank in descending order."""
    return _rank(db, args, desc=True)


def exec_zcard(db: DB, args: Sequence[bytes]) -> Reply:
    """ZCARD key: the number of members."""
    zset = _get_zset(db, _key(args[0]))
    return IntReply(0 if zset is None else len(zset))


def _range(db: DB, key: str, start: int, stop: int, with_scores: bool, desc: bool) -> Reply:
    zset = _get_zset(db, key)
    if zset is None:
        return EmptyMultiBulkReply()
    bounds = _clamp_range(start, stop, len(zset))
    if bounds is None:
        return EmptyMultiBulkReply()
    return _elements_reply(zset.range(bounds[0], bounds[1], desc), with_scores)


def exec_zrange(db: DB, args: Sequence[bytes]) -> Reply:
    """ZRANGE key start stop [WITHSCORES]: members by rank, ascending."""
    if len(args) not in (3, 4):
        raise arg_num_error("zrange")
    with_scores = False
    if len(args) == 4:
        if bytes(args[3]).upper() != b"WITHSCORES":
            raise ErrorReply("syntax error")
        with_scores = True
    start = _parse_int(args[1])
    stop = _parse_int(args[2])
    return _range(db, _key(args[0]), start, stop, with_scores, desc=False)


def exec_zrevrange(db: DB, args: Sequence[bytes]) -> Reply:
    """ZREVRANGE key start stop [WITHSCORES]: members by rank, descending."""
    if len(args) not in (3, 4):
        raise arg_num_error("zrevrange")
    with_scores = False
    if len(args) == 4:
        if bytes(args[3]) != b"WITHSCORES":
            raise ErrorReply("syntax error")
        with_scores = True
    start = _parse_int(args[1])
    stop = _parse_int(args[2])
    return _range(db, _key(args[0]), start, stop, with_scores, desc=True)


def exec_zcount(db: DB, args: Sequence[bytes]) -> Reply:
    """ZCOUNT key min max: members whose score lies between the borders."""
    low = _border(args[1])
    high = _border(args[2])
    zset = _get_zset(db, _key(args[0]))
    if zset is None:
        return IntReply(0)
    return IntReply(zset.count(low, high))


def _range_options(args: Sequence[bytes]) -> tuple[bool, int, int]:
    """Parse ``[WITHSCORES] [LIMIT offset count]`` into (with_scores, offset, limit)."""
    with_scores = False
    offset, limit = 0, -1
    pos = 0
    while pos < len(args):
        word = bytes(args[pos]).upper()
        if word == b"WITHSCORES":
            with_scores = True
            pos += 1
        elif word == b"LIMIT":
            if len(args) < pos + 3:
                raise ErrorReply("ERR syntax error")
            offset = _parse_int(args[pos + 1])
            limit = _parse_int(args[pos + 2])
            pos += 3
        else:
            raise ErrorReply("ERR syntax error")
    return with_scores, offset, limit


def _range_by_score(
    db: DB, key: str, low: ScoreBorder, high: ScoreBorder, options: Sequence[bytes], desc: bool
) -> Reply:
    with_scores, offset, limit = _range_options(options)
    zset = _get_zset(db, key)
    if zset is None:
        return EmptyMultiBulkReply()
    return _elements_reply(zset.range_by_score(low, high, offset, limit, desc), with_scores)


def exec_zrangebyscore(db: DB, args: Sequence[bytes]) -> Reply:
    """ZRANGEBYSCORE key min max [WITHSCORES] [LIMIT offset count]."""
    if len(args) < 3:
        raise arg_num_error("zrangebyscore")
    low = _border(args[1])
    high = _border(args[2])
    return _range_by_score(db, _key(args[0]), low, high, args[3:], desc=False)


def exec_zrevrangebyscore(db: DB, args: Sequence[bytes]) -> Reply:
    """ZREVRANGEBYSCORE key max min [WITHSCORES] [LIMIT offset count]."""
    if len(args) < 3:
        raise arg_num_error("zrangebyscore")
    low = _border(args[2])
    high = _border(args[1])
    return _range_by_score(db, _key(args[0]), low, high, args[3:], desc=True)


def exec_zremrangebyscore(db: DB, args: Sequence[bytes]) -> Reply:
    """ZREMRANGEBYSCORE key min max: remove members within the borders."""
    if len(args) != 3:
        raise arg_num_error("zremrangebyscore")
    low = _border(args[1])
    high = _border(args[2])
    zset = _get_zset(db, _key(args[0]))
    if zset is None:
        return EmptyMultiBulkReply()
    removed = zset.remove_by_score(low, high)
    if removed > 0:
        db.add_aof(to_cmd_line("zremrangebyscore", *args))
    return IntReply(removed)


def exec_zremrangebyrank(db: DB, args: Sequence[bytes]) -> Reply:
    """ZREMRANGEBYRANK key start stop: remove members by inclusive rank range."""
    start = _parse_int(args[1])
    stop = _parse_int(args[2])
    zset = _get_zset(db, _key(args[0]))
    if zset is None:
        return IntReply(0)
    bounds = _clamp_range(start, stop, len(zset))
    if bounds is None:
        return IntReply(0)
    removed = zset.remove_by_rank(*bounds)
    if removed > 0:
        db.add_aof(to_cmd_line("zremrangebyrank", *args))
    return IntReply(removed)


def exec_zpopmin(db: DB, args: Sequence[bytes]) -> Reply:
    """ZPOPMIN key [count]: remove and return the lowest-scored members."""
    count = _parse_int(args[1]) if len(args) > 1 else 1
    zset = _get_zset(db, _key(args[0]))
    if zset is None:
        return EmptyMultiBulkReply()
    removed = zset.pop_min(count)
    if removed:
        db.add_aof(to_cmd_line("zpopmin", *args))
    return _elements_reply(removed, with_scores=True)


def exec_zrem(db: DB, args: Sequence[bytes]) -> Reply:
    """ZREM key member [member ...]: reply with how many were removed."""
    zset = _get_zset(db, _key(args[0]))
    if zset is None:
        return IntReply(0)
    deleted = sum(1 for arg in args[1:] if zset.remove(_member(arg)))
    if deleted > 0:
        db.add_aof(to_cmd_line("zrem", *args))
    return IntReply(deleted)


def exec_zincrby(db: DB, args: Sequence[bytes]) -> Reply:
    """ZINCRBY key delta member: add ``delta`` to the member's score."""
    delta = _parse_score(args[1])
    member = _member(args[2])
    zset = _get_or_init_zset(db, _key(args[0]))
    element = zset.get(member)
    if element is None:
        zset.add(member, delta)
        db.add_aof(to_cmd_line("zincrby", *args))
        return BulkReply(bytes(args[1]))
    score = element.score + delta
    zset.add(member, score)
    db.add_aof(to_cmd_line("zincrby", *args))
    return BulkReply(_format_score(score).encode())


register_command("ZAdd", exec_zadd, write_first_key, None, -4, Flag.WRITE).attach_extra(
    [SIGN_WRITE, SIGN_DENY_OOM, SIGN_FAST], 1, 1, 1
)
register_command("ZScore", exec_zscore, read_first_key, None, 3, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY, SIGN_FAST], 1, 1, 1
)
register_command("ZIncrBy", exec_zincrby, write_first_key, None, 4, Flag.WRITE).attach_extra(
    [SIGN_WRITE, SIGN_DENY_OOM, SIGN_FAST], 1, 1, 1
)
register_command("ZRank", exec_zrank, read_first_key, None, 3, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY, SIGN_FAST], 1, 1, 1
)
register_command("ZCount", exec_zcount, read_first_key, None, 4, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY, SIGN_FAST], 1, 1, 1
)
register_command(
    "ZRevRank", exec_zrevrank, read_first_key, None, 3, Flag.READ_ONLY
).attach_extra([SIGN_READONLY, SIGN_FAST], 1, 1, 1)
register_command("ZCard", exec_zcard, read_first_key, None, 2, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY, SIGN_FAST], 1, 1, 1
)
register_command("ZRange", exec_zrange, read_first_key, None, -4, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY], 1, 1, 1
)
register_command(
    "ZRangeByScore", exec_zrangebyscore, read_first_key, None, -4, Flag.READ_ONLY
).attach_extra([SIGN_READONLY], 1, 1, 1)
register_command(
    "ZRevRange", exec_zrevrange, read_first_key, None, -4, Flag.READ_ONLY
).attach_extra([SIGN_READONLY], 1, 1, 1)
register_command(
    "ZRevRangeByScore", exec_zrevrangebyscore, read_first_key, None, -4, Flag.READ_ONLY
).attach_extra([SIGN_READONLY], 1, 1, 1)
register_command("ZPopMin", exec_zpopmin, write_first_key, None, -2, Flag.WRITE).attach_extra(
    [SIGN_WRITE, SIGN_FAST], 1, 1, 1
)
register_command("ZRem", exec_zrem, write_first_key, None, -3, Flag.WRITE).attach_extra(
    [SIGN_WRITE, SIGN_FAST], 1, 1, 1
)
register_command(
    "ZRemRangeByScore", exec_zremrangebyscore, write_first_key, None, 4, Flag.WRITE
).attach_extra([SIGN_WRITE], 1, 1, 1)
register_command(
    "ZRemRangeByRank", exec_zremrangebyrank, write_first_key, None, 4, Flag.WRITE
).attach_extra([SIGN_WRITE], 1, 1, 1)