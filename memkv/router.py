"""Command table: registration, lookup and arity checks."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Union

from .replies import BulkReply, IntReply, MultiBulkReply, MultiRawReply, Reply

CmdLine = list[bytes]
ExecFunc = Callable[[Any, list[bytes]], Reply]
PrepareFunc = Callable[[list[bytes]], tuple[list[str], list[str]]]
UndoFunc = Callable[[Any, list[bytes]], list[CmdLine]]

SIGN_WRITE = "write"
SIGN_READONLY = "readonly"
SIGN_DENY_OOM = "denyoom"
SIGN_ADMIN = "admin"
SIGN_PUBSUB = "pubsub"
SIGN_NO_SCRIPT = "noscript"
SIGN_RANDOM = "random"
SIGN_SORT_FOR_SCRIPT = "sort_for_script"
SIGN_LOADING = "loading"
SIGN_STALE = "stale"
SIGN_SKIP_MONITOR = "skip_monitor"
SIGN_ASKING = "asking"
SIGN_FAST = "fast"


class Flag(enum.IntFlag):
    """Command behaviour flags."""

    WRITE = 0
    READ_ONLY = 1
    SPECIAL = 2


@dataclass(frozen=True)
class CommandExtra:
    """Descriptive data reported by the COMMAND command."""

    signs: tuple[str, ...]
    first_key: int
    last_key: int
    key_step: int


@dataclass
class Command:
    """A registered command.

    ``arity`` is the exact number of words in the command line, or, when
    negative, the minimum number of words as ``-arity``.
    """

    name: str
    executor: Optional[ExecFunc]
    prepare: Optional[PrepareFunc]
    undo: Optional[UndoFunc]
    arity: int
    flags: Flag
    extra: Optional[CommandExtra] = None

    def attach_extra(
        self, signs: Sequence[str], first_key: int, last_key: int, key_step: int
    ) -> "Command":
        """Attach descriptive data and return the command."""
        self.extra = CommandExtra(tuple(signs), first_key, last_key, key_step)
        return self

    def describe(self) -> Reply:
        """Describe the command in the layout of a COMMAND reply entry."""
        parts: list[Reply] = [BulkReply(self.name.encode()), IntReply(self.arity)]
        if self.extra is not None:
            parts.extend(
                [
                    MultiBulkReply([sign.encode() for sign in self.extra.signs]),
                    IntReply(self.extra.first_key),
                    IntReply(self.extra.last_key),
                    IntReply(self.extra.key_step),
                ]
            )
        return MultiRawReply(parts)


_COMMANDS: dict[str, Command] = {}


def register_command(
    name: str,
    executor: ExecFunc,
    prepare: Optional[PrepareFunc],
    undo: Optional[UndoFunc],
    arity: int,
    flags: Flag,
) -> Command:
    """Register a normal command that works on a bounded set of keys."""
    cmd = Command(name.lower(), executor, prepare, undo, arity, Flag(flags))
    _COMMANDS[cmd.name] = cmd
    return cmd


def register_special_command(name: str, arity: int, flags: Flag) -> Command:
    """Register a command that the server handles itself."""
    cmd = Command(name.lower(), None, None, None, arity, Flag(flags) | Flag.SPECIAL)
    _COMMANDS[cmd.name] = cmd
    return cmd


def lookup(name: str) -> Optional[Command]:
    """Return the command registered under ``name``, ignoring case."""
    return _COMMANDS.get(name.lower())


def is_read_only_command(name: str) -> bool:
    """Whether ``name`` is a registered read-only command."""
    cmd = lookup(name)
    return cmd is not None and bool(cmd.flags & Flag.READ_ONLY)


def validate_arity(arity: int, cmd_line: Sequence[bytes]) -> bool:
    """Check the number of words in ``cmd_line`` against ``arity``."""
    if arity >= 0:
        return len(cmd_line) == arity
    return len(cmd_line) >= -arity


def to_cmd_line(*parts: Union[str, bytes]) -> CmdLine:
    """Build a command line from strings or bytes."""
    return [p.encode() if isinstance(p, str) else bytes(p) for p in parts]


def write_first_key(args: Sequence[bytes]) -> tuple[list[str], list[str]]:
    """The first argument is written."""
    return [args[0].decode()], []


def read_first_key(args: Sequence[bytes]) -> tuple[list[str], list[str]]:
    """The first argument is read."""
    return [], [args[0].decode()]


def write_all_keys(args: Sequence[bytes]) -> tuple[list[str], list[str]]:
    """Every argument is a written key."""
    return [a.decode() for a in args], []


def read_all_keys(args: Sequence[bytes]) -> tuple[list[str], list[str]]:
    """Every argument is a read key."""
    return [], [a.decode() for a in args]


def no_prepare(args: Sequence[bytes]) -> tuple[list[str], list[str]]:
    """The command touches no particular keys."""
    return [], []