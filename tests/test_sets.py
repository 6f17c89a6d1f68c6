import pytest

from memkv import sets
from memkv.db import DB
from memkv.replies import (
    BulkReply,
    EmptyMultiBulkReply,
    ErrorReply,
    IntReply,
    MultiBulkReply,
    NullBulkReply,
)
from memkv.router import to_cmd_line


@pytest.fixture
def db():
    return DB()


def run(db, *parts):
    return db.exec(to_cmd_line(*parts))


def fill(db, key, start, stop):
    for j in range(start, stop):
        run(db, "sadd", key, str(j))


def size_of(reply):
    if isinstance(reply, EmptyMultiBulkReply):
        return 0
    assert isinstance(reply, MultiBulkReply)
    return len(reply.args)


def test_sadd_scard_sismember_smembers(db):
    for i in range(100):
        assert run(db, "sadd", "k", str(i)) == IntReply(1)
    assert run(db, "SCard", "k") == IntReply(100)
    for i in range(100):
        assert run(db, "SIsMember", "k", str(i)) == IntReply(1)
    reply = run(db, "SMembers", "k")
    assert sorted(reply.args) == sorted(str(i).encode() for i in range(100))


def test_sadd_counts_only_new_members(db):
    assert run(db, "sadd", "k", "a", "b") == IntReply(2)
    assert run(db, "sadd", "k", "b", "c") == IntReply(1)


def test_srem(db):
    fill(db, "k", 0, 100)
    for i in range(100):
        run(db, "srem", "k", str(i))
        assert run(db, "SIsMember", "k", str(i)) == IntReply(0)
    assert run(db, "exists", "k") == IntReply(0)


def test_srem_returns_removed_count(db):
    run(db, "sadd", "k", "a", "b")
    assert run(db, "srem", "k", "a", "x") == IntReply(1)


def test_spop(db):
    fill(db, "k", 0, 100)
    assert size_of(run(db, "spop", "k")) == 1
    current = 99
    for count in (1, 7, 30, 90):
        reply = run(db, "spop", "k", str(count))
        removed = reply.args
        assert len(removed) == min(count, current)
        for member in removed:
            assert run(db, "SIsMember", "k", member) == IntReply(0)
        current -= len(removed)
        assert run(db, "SCard", "k") == IntReply(current)
    assert current == 0


def test_spop_rejects_non_positive_count(db):
    run(db, "sadd", "k", "a")
    assert run(db, "spop", "k", "0") == ErrorReply("ERR value is out of range, must be positive")


def test_spop_missing_key(db):
    assert run(db, "spop", "nokey") == NullBulkReply()


def test_sinter(db):
    keys = []
    for i in range(4):
        key = f"key{i}"
        keys.append(key)
        fill(db, key, i * 10, i * 10 + 100)
    assert size_of(run(db, "sinter", *keys)) == 70
    assert run(db, "SInterStore", "dest", *keys) == IntReply(70)
    assert run(db, "SCard", "dest") == IntReply(70)


def test_sinter_empty_sets(db):
    run(db, "sadd", "key1", "a", "b")
    run(db, "sadd", "key1", "1", "2")
    assert size_of(run(db, "sinter", "key0", "key1", "key2")) == 0
    assert size_of(run(db, "sinter", "key1", "key2")) == 0
    assert run(db, "sinterstore", "d1", "key0", "key1", "key2") == IntReply(0)
    assert run(db, "sinterstore", "d2", "key1", "key2") == IntReply(0)


def test_sunion(db):
    keys = []
    for i in range(4):
        key = f"key{i}"
        keys.append(key)
        fill(db, key, i * 10, i * 10 + 100)
    assert size_of(run(db, "sunion", *keys)) == 130
    assert run(db, "SUnionStore", "dest", *keys) == IntReply(130)
    assert run(db, "SCard", "dest") == IntReply(130)


def test_sdiff(db):
    keys = []
    for i in range(3):
        key = f"key{i}"
        keys.append(key)
        fill(db, key, i * 20, i * 20 + 100)
    reply = run(db, "SDiff", *keys)
    assert sorted(reply.args) == sorted(str(j).encode() for j in range(20))
    assert run(db, "SDiffStore", "dest", *keys) == IntReply(20)


def test_sdiff_empty_sets(db):
    run(db, "sadd", "key1", "a", "b")
    run(db, "sadd", "key2", "a", "b")
    assert size_of(run(db, "sdiff", "key0", "key1", "key2")) == 0
    assert size_of(run(db, "sdiff", "key1", "key2")) == 0
    assert run(db, "SDiffStore", "d1", "key0", "key1", "key2") == IntReply(0)
    assert run(db, "SDiffStore", "d2", "key1", "key2") == IntReply(0)
    assert run(db, "exists", "d2") == IntReply(0)


def test_srandmember(db):
    fill(db, "k", 0, 100)
    single = run(db, "SRandMember", "k")
    assert isinstance(single, BulkReply)
    assert int(single.arg) in range(100)

    reply = run(db, "SRandMember", "k", "10")
    assert len(reply.args) == 10
    assert len(set(reply.args)) == 10

    assert size_of(run(db, "SRandMember", "k", "110")) == 100
    assert size_of(run(db, "SRandMember", "k", "-10")) == 10
    assert size_of(run(db, "SRandMember", "k", "-110")) == 110
    assert size_of(run(db, "SRandMember", "k", "0")) == 0
    assert run(db, "SCard", "k") == IntReply(100)


def test_srandmember_bad_count(db):
    run(db, "sadd", "k", "a")
    assert run(db, "SRandMember", "k", "x") == ErrorReply(
        "ERR value is not an integer or out of range"
    )


def test_wrong_type(db):
    db.put_entity("s", b"value")
    reply = run(db, "sadd", "s", "a")
    assert reply == ErrorReply(
        "WRONGTYPE Operation against a key holding the wrong kind of value"
    )


def test_direct_executor_call(db):
    assert sets.exec_sadd(db, to_cmd_line("k", "x", "y")) == IntReply(2)
    assert sets.exec_scard(db, to_cmd_line("k")) == IntReply(2)
    assert sets.exec_smembers(db, to_cmd_line("missing")) == EmptyMultiBulkReply()