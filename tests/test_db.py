from datetime import datetime, timedelta, timezone

from memkv.db import DB
from memkv.replies import BulkReply, ErrorReply, WrongTypeError, arg_num_error
from memkv.router import Flag, register_command, to_cmd_line


def _echo(db, args):
    return BulkReply(args[0])


def _wrong_type(db, args):
    raise WrongTypeError()


register_command("dbtest_echo", _echo, None, None, 2, Flag.READ_ONLY)
register_command("dbtest_wrong", _wrong_type, None, None, -1, Flag.WRITE)


def _future(seconds=100):
    return datetime.now(timezone.utc) + timedelta(seconds=seconds)


def _past(seconds=1):
    return datetime.now(timezone.utc) - timedelta(seconds=seconds)


def test_put_and_get():
    db = DB(0)
    assert db.put_entity("k", b"v") == 1
    assert db.put_entity("k", b"w") == 0
    assert db.get_entity("k") == b"w"
    assert db.get_entity("missing") is None


def test_index_kept():
    assert DB(3).index == 3


def test_remove():
    db = DB()
    db.put_entity("k", b"v")
    db.expire("k", _future())
    assert db.remove("k") is True
    assert db.get_entity("k") is None
    assert db.expire_time("k") is None
    assert db.remove("k") is False


def test_removes_counts_existing_keys():
    db = DB()
    db.put_entity("a", b"1")
    db.put_entity("b", b"2")
    assert db.removes("a", "b", "c") == 2
    assert len(db) == 0


def test_expired_key_disappears():
    db = DB()
    db.put_entity("k", b"v")
    db.expire("k", _past())
    assert db.get_entity("k") is None
    assert "k" not in db.keys()
    assert db.ttl_count() == 0


def test_expire_and_persist():
    db = DB()
    db.put_entity("k", b"v")
    when = _future()
    db.expire("k", when)
    assert db.expire_time("k") == when
    assert db.ttl_count() == 1
    db.persist("k")
    assert db.expire_time("k") is None
    assert db.get_entity("k") == b"v"


def test_keys_len_and_flush():
    db = DB()
    for name in ("a", "b", "c"):
        db.put_entity(name, name.encode())
    db.expire("a", _past())
    assert sorted(db.keys()) == ["b", "c"]
    assert len(db) == 2
    db.flush()
    assert len(db) == 0
    assert db.keys() == []


def test_add_aof_calls_callback():
    db = DB()
    lines = []
    db.add_aof([b"del", b"k"])
    db.aof_callback = lines.append
    db.add_aof([b"del", b"k"])
    assert lines == [[b"del", b"k"]]


def test_exec_runs_registered_command():
    db = DB()
    assert db.exec(to_cmd_line("DBTEST_ECHO", "hi")) == BulkReply(b"hi")


def test_exec_unknown_command():
    reply = DB().exec(to_cmd_line("dbtest_nothing", "x"))
    assert reply == ErrorReply("ERR unknown command 'dbtest_nothing'")


def test_exec_wrong_arity():
    reply = DB().exec(to_cmd_line("dbtest_echo"))
    assert reply == arg_num_error("dbtest_echo")


def test_exec_turns_raised_error_into_reply():
    reply = DB().exec(to_cmd_line("dbtest_wrong", "k"))
    assert isinstance(reply, WrongTypeError)
    assert reply.to_bytes().startswith(b"-WRONGTYPE")