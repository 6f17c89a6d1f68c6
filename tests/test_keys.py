import time
from datetime import datetime, timedelta, timezone

import pytest

from memkv import keys
from memkv.db import DB
from memkv.replies import ErrorReply, IntReply, MultiBulkReply, OkReply, StatusReply, arg_num_error
from memkv.router import to_cmd_line


@pytest.fixture
def db():
    return DB(0)


def run(db, *parts):
    return db.exec(to_cmd_line(*parts))


def future(seconds):
    return datetime.now(timezone.utc) + timedelta(seconds=seconds)


def test_exists(db):
    db.put_entity("k1", b"v")
    assert run(db, "exists", "k1") == IntReply(1)
    assert run(db, "exists", "missing") == IntReply(0)
    assert run(db, "exists", "k1", "k1", "missing") == IntReply(2)


def test_type(db):
    db.put_entity("s", b"value")
    assert run(db, "type", "s") == StatusReply("string")
    db.remove("s")
    assert run(db, "type", "s") == StatusReply("none")
    db.put_entity("l", [b"value"])
    assert run(db, "type", "l") == StatusReply("list")
    db.put_entity("h", {"f": b"v"})
    assert run(db, "type", "h") == StatusReply("hash")
    db.put_entity("st", {"a"})
    assert run(db, "type", "st") == StatusReply("set")


def test_type_zset(db):
    from memkv.sortedset import SortedSet

    db.put_entity("z", SortedSet())
    assert run(db, "type", "z") == StatusReply("zset")


def test_rename_keeps_ttl(db):
    db.put_entity("key", b"value")
    db.expire("key", future(1000))
    assert run(db, "rename", "key", "newkey") == OkReply()
    assert run(db, "exists", "key") == IntReply(0)
    assert run(db, "exists", "newkey") == IntReply(1)
    assert run(db, "ttl", "newkey").code > 0
    assert db.expire_time("key") is None


def test_rename_missing(db):
    assert run(db, "rename", "nope", "other") == ErrorReply("no such key")


def test_renamenx(db):
    db.put_entity("key", b"value")
    db.expire("key", future(1000))
    assert run(db, "renamenx", "key", "newkey") == IntReply(1)
    assert run(db, "exists", "key") == IntReply(0)
    assert run(db, "exists", "newkey") == IntReply(1)
    assert run(db, "ttl", "newkey").code > 0


def test_renamenx_dest_exists(db):
    db.put_entity("a", b"1")
    db.put_entity("b", b"2")
    assert run(db, "renamenx", "a", "b") == IntReply(0)
    assert db.get_entity("a") == b"1"
    assert db.get_entity("b") == b"2"


def test_ttl_expire_persist(db):
    db.put_entity("key", b"value")
    assert run(db, "expire", "key", "1000") == IntReply(1)
    assert run(db, "ttl", "key").code > 0
    assert run(db, "persist", "key") == IntReply(1)
    assert run(db, "ttl", "key") == IntReply(-1)
    assert run(db, "persist", "key") == IntReply(0)
    assert run(db, "PExpire", "key", "1000000") == IntReply(1)
    assert run(db, "PTTL", "key").code > 0


def test_expire_missing_key(db):
    assert run(db, "expire", "missing", "10") == IntReply(0)
    assert run(db, "ttl", "missing") == IntReply(-2)


def test_expire_elapses(db):
    db.put_entity("key", b"value")
    run(db, "PEXPIRE", "key", "20")
    time.sleep(0.1)
    assert run(db, "TTL", "key") == IntReply(-2)


def test_expire_rejects_non_integer(db):
    db.put_entity("key", b"value")
    assert run(db, "expire", "key", "abc") == ErrorReply(
        "ERR value is not an integer or out of range"
    )


def test_expireat(db):
    db.put_entity("key", b"value")
    at = int(time.time()) + 60
    assert run(db, "ExpireAt", "key", str(at)) == IntReply(1)
    assert run(db, "ttl", "key").code > 0
    at = int(time.time()) + 60
    assert run(db, "PExpireAt", "key", str(at * 1000)) == IntReply(1)
    assert run(db, "ttl", "key").code > 0


def test_expiretime(db):
    db.put_entity("key", b"value")
    assert run(db, "ttl", "key") == IntReply(-1)
    assert run(db, "EXPIRETIME", "key") == IntReply(-1)
    assert run(db, "PEXPIRETIME", "key") == IntReply(-1)
    run(db, "EXPIREAT", "key", "4102444800")
    assert run(db, "EXPIRETIME", "key") == IntReply(4102444800)
    assert run(db, "PEXPIRETIME", "key") == IntReply(4102444800000)
    assert run(db, "EXPIRETIME", "missing") == IntReply(-2)
    assert run(db, "PEXPIRETIME", "missing") == IntReply(-2)


def test_pexpireat_millisecond_precision(db):
    db.put_entity("key", b"value")
    run(db, "PEXPIREAT", "key", "4102444800123")
    assert run(db, "PEXPIRETIME", "key") == IntReply(4102444800123)
    assert run(db, "EXPIRETIME", "key") == IntReply(4102444800)


def test_keys(db):
    db.put_entity("abcdefghij", b"v")
    db.put_entity("a:abcdefghij", b"v")
    db.put_entity("b:abcdefghij", b"v")
    assert len(run(db, "keys", "*").args) == 3
    assert run(db, "keys", "a:*").args == [b"a:abcdefghij"]
    assert sorted(run(db, "keys", "?:*").args) == [b"a:abcdefghij", b"b:abcdefghij"]


def test_keys_illegal_pattern(db):
    assert run(db, "keys", "[abc") == ErrorReply("ERR illegal wildcard")


@pytest.mark.parametrize(
    "pattern,key",
    [
        ("h?llo", "hello"),
        ("h*llo", "heeeello"),
        ("h[ae]llo", "hallo"),
        ("h[^e]llo", "hallo"),
        ("h[a-b]llo", "hbllo"),
        ("h\\*llo", "h*llo"),
    ],
)
def test_compile_pattern_matches(pattern, key):
    match = keys.compile_pattern(pattern).fullmatch(key)
    assert match.group(0) == key


@pytest.mark.parametrize(
    "pattern,key",
    [
        ("h[ae]llo", "hillo"),
        ("h[^e]llo", "hello"),
        ("h\\*llo", "hello"),
        ("a.b", "axb"),
    ],
)
def test_compile_pattern_rejects(pattern, key):
    assert keys.compile_pattern(pattern).fullmatch(key) is None


def test_compile_pattern_unterminated():
    with pytest.raises(ValueError):
        keys.compile_pattern("x[ab")


def test_del_counts_and_logs(db):
    logged = []
    db.aof_callback = logged.append
    db.put_entity("a", b"1")
    db.put_entity("b", b"2")
    assert run(db, "del", "a", "b", "c") == IntReply(2)
    assert logged == [[b"del", b"a", b"b", b"c"]]
    assert run(db, "del", "a") == IntReply(0)
    assert len(logged) == 1


def test_expire_logs_pexpireat(db):
    logged = []
    db.aof_callback = logged.append
    db.put_entity("k", b"v")
    run(db, "expireat", "k", "4102444800")
    assert logged == [[b"PEXPIREAT", b"k", b"4102444800000"]]


def test_undo_expire(db):
    db.put_entity("k", b"v")
    assert keys.undo_expire(db, [b"k"]) == [[b"PERSIST", b"k"]]
    db.expire("k", datetime(2100, 1, 1, tzinfo=timezone.utc))
    assert keys.undo_expire(db, [b"k"]) == [[b"PEXPIREAT", b"k", b"4102444800000"]]


def test_arity_checked(db):
    assert run(db, "ttl") == arg_num_error("ttl")


def test_smembers_keys_is_multibulk(db):
    db.put_entity("x", b"v")
    reply = keys.exec_keys(db, [b"x"])
    assert isinstance(reply, MultiBulkReply) and reply.args == [b"x"]