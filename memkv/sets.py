"""Set commands: membership, random picks and set algebra between keys."""

from __future__ import annotations

import random
import re
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
)
from .router import (
    SIGN_DENY_OOM,
    SIGN_FAST,
    SIGN_RANDOM,
    SIGN_READONLY,
    SIGN_SORT_FOR_SCRIPT,
    SIGN_WRITE,
    Flag,
    read_all_keys,
    read_first_key,
    register_command,
    to_cmd_line,
    write_first_key,
)

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_NOT_INTEGER = "ERR value is not an integer or out of range"


def _key(arg: bytes) -> str:
    return bytes(arg).decode()


def _parse_int(arg: bytes) -> Optional[int]:
    text = bytes(arg).decode("ascii", "replace")
    if not _INT_RE.fullmatch(text):
        return None
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


def _get_set(db: DB, key: str) -> Optional[set]:
    """Return the set at ``key``, None if absent; raise on another type."""
    value = db.get_entity(key)
    if value is None:
        return None
    if not isinstance(value, set):
        raise WrongTypeError()
    return value


def _get_or_init_set(db: DB, key: str) -> set:
    members = _get_set(db, key)
    if members is None:
        members = set()
        db.put_entity(key, members)
    return members


def _sets_of(db: DB, args: Sequence[bytes]) -> list[set]:
    """The sets at the given keys; a missing key counts as an empty set."""
    return [_get_set(db, _key(arg)) or set() for arg in args]


def _set_reply(members: set) -> Reply:
    return MultiBulkReply(list(members))


def _intersect(sets: list[set]) -> set:
    if not sets:
        return set()
    return set.intersection(*sets)


def _difference(sets: list[set]) -> set:
    if not sets:
        return set()
    return sets[0].difference(*sets[1:])


def exec_sadd(db: DB, args: Sequence[bytes]) -> Reply:
    """SADD key member [member ...]: reply with how many members were new."""
    members = _get_or_init_set(db, _key(args[0]))
    added = 0
    for member in args[1:]:
        member = bytes(member)
        if member not in members:
            members.add(member)
            added += 1
    db.add_aof(to_cmd_line("sadd", *args))
    return IntReply(added)


def exec_sismember(db: DB, args: Sequence[bytes]) -> Reply:
    """SISMEMBER key member: 1 if the member is in the set, else 0."""
    members = _get_set(db, _key(args[0]))
    if members is None:
        return IntReply(0)
    return IntReply(1 if bytes(args[1]) in members else 0)


def exec_srem(db: DB, args: Sequence[bytes]) -> Reply:
    """SREM key member [member ...]: reply with how many members were removed."""
    key = _key(args[0])
    members = _get_set(db, key)
    if members is None:
        return IntReply(0)
    removed = 0
    for member in args[1:]:
        member = bytes(member)
        if member in members:
            members.discard(member)
            removed += 1
    if not members:
        db.remove(key)
    if removed > 0:
        db.add_aof(to_cmd_line("srem", *args))
    return IntReply(removed)


def exec_spop(db: DB, args: Sequence[bytes]) -> Reply:
    """SPOP key [count]: remove and return up to ``count`` random members."""
    if len(args) not in (1, 2):
        raise ErrorReply("ERR wrong number of arguments for 'spop' command")
    members = _get_set(db, _key(args[0]))
    if members is None:
        return NullBulkReply()

    count = 1
    if len(args) == 2:
        parsed = _parse_int(args[1])
        if parsed is None or parsed <= 0:
            raise ErrorReply("ERR value is out of range, must be positive")
        count = parsed
    count = min(count, len(members))

    popped = random.sample(list(members), count)
    members.difference_update(popped)
    if count > 0:
        db.add_aof(to_cmd_line("spop", *args))
    return MultiBulkReply(popped)


def exec_scard(db: DB, args: Sequence[bytes]) -> Reply:
    """SCARD key: the number of members."""
    members = _get_set(db, _key(args[0]))
    return IntReply(0 if members is None else len(members))


def exec_smembers(db: DB, args: Sequence[bytes]) -> Reply:
    """SMEMBERS key: every member of the set."""
    members = _get_set(db, _key(args[0]))
    if members is None:
        return EmptyMultiBulkReply()
    return _set_reply(members)


def exec_sinter(db: DB, args: Sequence[bytes]) -> Reply:
    """SINTER key [key ...]: members present in every set."""
    sets = _sets_of(db, args)
    if any(not s for s in sets):
        return EmptyMultiBulkReply()
    return _set_reply(_intersect(sets))


def exec_sinterstore(db: DB, args: Sequence[bytes]) -> Reply:
    """SINTERSTORE dest key [key ...]: store the intersection at ``dest``."""
    dest = _key(args[0])
    sets = _sets_of(db, args[1:])
    if any(not s for s in sets):
        return IntReply(0)
    result = _intersect(sets)
    db.put_entity(dest, result)
    db.add_aof(to_cmd_line("sinterstore", *args))
    return IntReply(len(result))


def exec_sunion(db: DB, args: Sequence[bytes]) -> Reply:
    """SUNION key [key ...]: members present in any set."""
    return _set_reply(set().union(*_sets_of(db, args)))


def exec_sunionstore(db: DB, args: Sequence[bytes]) -> Reply:
    """SUNIONSTORE dest key [key ...]: store the union at ``dest``."""
    dest = _key(args[0])
    result = set().union(*_sets_of(db, args[1:]))
    db.remove(dest)
    if not result:
        return IntReply(0)
    db.put_entity(dest, result)
    db.add_aof(to_cmd_line("sunionstore", *args))
    return IntReply(len(result))


def exec_sdiff(db: DB, args: Sequence[bytes]) -> Reply:
    """SDIFF key [key ...]: members of the first set absent from the others."""
    return _set_reply(_difference(_sets_of(db, args)))


def exec_sdiffstore(db: DB, args: Sequence[bytes]) -> Reply:
    """SDIFFSTORE dest key [key ...]: store the difference at ``dest``."""
    dest = _key(args[0])
    result = _difference(_sets_of(db, args[1:]))
    db.remove(dest)
    if not result:
        return IntReply(0)
    db.put_entity(dest, result)
    db.add_aof(to_cmd_line("sdiffstore", *args))
    return IntReply(len(result))


def exec_srandmember(db: DB, args: Sequence[bytes]) -> Reply:
    """SRANDMEMBER key [count]: random members without removing them.

    A positive count picks distinct members, a negative one may repeat them.
    """
    if len(args) not in (1, 2):
        raise ErrorReply("ERR wrong number of arguments for 'srandmember' command")
    members = _get_set(db, _key(args[0]))
    if members is None:
        return NullBulkReply()
    pool = list(members)
    if len(args) == 1:
        return BulkReply(random.choice(pool))
    count = _parse_int(args[1])
    if count is None:
        raise ErrorReply(_NOT_INTEGER)
    if count > 0:
        return MultiBulkReply(random.sample(pool, min(count, len(pool))))
    if count < 0:
        return MultiBulkReply(random.choices(pool, k=-count))
    return EmptyMultiBulkReply()


def _prepare_store(args: Sequence[bytes]) -> tuple[list[str], list[str]]:
    return [_key(args[0])], [_key(a) for a in args[1:]]


register_command("SAdd", exec_sadd, write_first_key, None, -3, Flag.WRITE).attach_extra(
    [SIGN_WRITE, SIGN_DENY_OOM, SIGN_FAST], 1, 1, 1
)
register_command(
    "SIsMember", exec_sismember, read_first_key, None, 3, Flag.READ_ONLY
).attach_extra([SIGN_READONLY, SIGN_FAST], 1, 1, 1)
register_command("SRem", exec_srem, write_first_key, None, -3, Flag.WRITE).attach_extra(
    [SIGN_WRITE, SIGN_FAST], 1, 1, 1
)
register_command("SPop", exec_spop, write_first_key, None, -2, Flag.WRITE).attach_extra(
    [SIGN_WRITE, SIGN_RANDOM, SIGN_FAST], 1, 1, 1
)
register_command("SCard", exec_scard, read_first_key, None, 2, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY, SIGN_FAST], 1, 1, 1
)
register_command(
    "SMembers", exec_smembers, read_first_key, None, 2, Flag.READ_ONLY
).attach_extra([SIGN_READONLY, SIGN_SORT_FOR_SCRIPT], 1, 1, 1)
register_command("SInter", exec_sinter, read_all_keys, None, -2, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY, SIGN_SORT_FOR_SCRIPT], 1, -1, 1
)
register_command(
    "SInterStore", exec_sinterstore, _prepare_store, None, -3, Flag.WRITE
).attach_extra([SIGN_WRITE, SIGN_DENY_OOM], 1, -1, 1)
register_command("SUnion", exec_sunion, read_all_keys, None, -2, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY, SIGN_SORT_FOR_SCRIPT], 1, -1, 1
)
register_command(
    "SUnionStore", exec_sunionstore, _prepare_store, None, -3, Flag.WRITE
).attach_extra([SIGN_WRITE, SIGN_DENY_OOM], 1, -1, 1)
register_command("SDiff", exec_sdiff, read_all_keys, None, -2, Flag.READ_ONLY).attach_extra(
    [SIGN_READONLY, SIGN_SORT_FOR_SCRIPT], 1, 1, 1
)
register_command(
    "SDiffStore", exec_sdiffstore, _prepare_store, None, -3, Flag.WRITE
).attach_extra([SIGN_WRITE, SIGN_DENY_OOM], 1, 1, 1)
register_command(
    "SRandMember", exec_srandmember, read_first_key, None, -2, Flag.READ_ONLY
).attach_extra([SIGN_READONLY, SIGN_RANDOM], 1, 1, 1)