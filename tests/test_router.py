import pytest

from memkv.replies import BulkReply, IntReply, MultiBulkReply, MultiRawReply, OkReply
from memkv.router import (
    SIGN_FAST,
    SIGN_READONLY,
    SIGN_WRITE,
    Flag,
    is_read_only_command,
    lookup,
    read_all_keys,
    read_first_key,
    register_command,
    register_special_command,
    to_cmd_line,
    validate_arity,
    write_all_keys,
    write_first_key,
)


def _ok(db, args):
    return OkReply()


def test_register_lowercases_and_lookup_ignores_case():
    cmd = register_command("RtTestMixedCase", _ok, write_first_key, None, 2, Flag.WRITE)
    assert cmd.name == "rttestmixedcase"
    assert lookup("RTTESTMIXEDCASE") is cmd


def test_lookup_unknown_returns_none():
    assert lookup("rt-test-never-registered") is None


def test_read_only_flag():
    register_command("rt_test_reader", _ok, read_first_key, None, 2, Flag.READ_ONLY)
    register_command("rt_test_writer", _ok, write_first_key, None, 2, Flag.WRITE)
    assert is_read_only_command("RT_TEST_READER") is True
    assert is_read_only_command("rt_test_writer") is False
    assert is_read_only_command("rt_test_missing") is False


def test_special_command_has_special_flag_and_no_executor():
    cmd = register_special_command("rt_test_special", -1, Flag.READ_ONLY)
    assert cmd.flags & Flag.SPECIAL
    assert cmd.flags & Flag.READ_ONLY
    assert cmd.executor is None


@pytest.mark.parametrize(
    "arity, words, expected",
    [
        (2, 2, True),
        (2, 3, False),
        (2, 1, False),
        (-2, 2, True),
        (-2, 5, True),
        (-2, 1, False),
        (-3, 2, False),
    ],
)
def test_validate_arity(arity, words, expected):
    line = [b"x"] * words
    assert validate_arity(arity, line) is expected


def test_describe_without_extra():
    cmd = register_command("rt_test_plain", _ok, None, None, -2, Flag.WRITE)
    assert cmd.describe() == MultiRawReply([BulkReply(b"rt_test_plain"), IntReply(-2)])


def test_describe_with_extra():
    cmd = register_command("rt_test_desc", _ok, None, None, 3, Flag.WRITE).attach_extra(
        [SIGN_WRITE, SIGN_FAST], 1, -1, 1
    )
    reply = cmd.describe()
    assert reply == MultiRawReply(
        [
            BulkReply(b"rt_test_desc"),
            IntReply(3),
            MultiBulkReply([b"write", b"fast"]),
            IntReply(1),
            IntReply(-1),
            IntReply(1),
        ]
    )
    assert cmd.extra.signs == (SIGN_WRITE, SIGN_FAST)


def test_reregistering_replaces_command():
    register_command("rt_test_replace", _ok, None, None, 2, Flag.WRITE)
    second = register_command("rt_test_replace", _ok, None, None, 3, Flag.READ_ONLY)
    assert lookup("rt_test_replace") is second
    assert lookup("rt_test_replace").arity == 3


def test_to_cmd_line_accepts_str_and_bytes():
    assert to_cmd_line("set", b"k", "v") == [b"set", b"k", b"v"]


def test_prepare_helpers():
    args = [b"a", b"b"]
    assert write_first_key(args) == (["a"], [])
    assert read_first_key(args) == ([], ["a"])
    assert write_all_keys(args) == (["a", "b"], [])
    assert read_all_keys(args) == ([], ["a", "b"])


def test_describe_with_readonly_sign():
    cmd = register_command("rt_test_ro_desc", _ok, read_first_key, None, 2, Flag.READ_ONLY).attach_extra(
        [SIGN_READONLY], 1, 1, 1
    )
    assert cmd.extra.signs == (SIGN_READONLY,)
    assert cmd.describe() == MultiRawReply(
        [
            BulkReply(b"rt_test_ro_desc"),
            IntReply(2),
            MultiBulkReply([SIGN_READONLY.encode()]),
            IntReply(1),
            IntReply(1),
            IntReply(1),
        ]
    )