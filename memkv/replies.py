"""Replies in the RESP wire format, as returned by command executors."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Optional, Sequence

CRLF = b"\r\n"

_NULL_BULK = b"$-1" + CRLF


def _bulk_bytes(arg: Optional[bytes]) -> bytes:
    if arg is None:
        return _NULL_BULK
    return b"$" + str(len(arg)).encode() + CRLF + bytes(arg) + CRLF


class Reply(abc.ABC):
    """A value that can be sent back to a client."""

    @abc.abstractmethod
    def to_bytes(self) -> bytes:
        """Encode the reply in the RESP wire format."""


@dataclass(frozen=True)
class StatusReply(Reply):
    """A simple status line such as ``+string``."""

    status: str

    def to_bytes(self) -> bytes:
        return b"+" + self.status.encode() + CRLF


@dataclass(frozen=True)
class OkReply(Reply):
    """The ``+OK`` status."""

    def to_bytes(self) -> bytes:
        return b"+OK" + CRLF


@dataclass(frozen=True)
class IntReply(Reply):
    """An integer reply."""

    code: int

    def to_bytes(self) -> bytes:
        return b":" + str(self.code).encode() + CRLF


@dataclass(frozen=True)
class BulkReply(Reply):
    """A binary-safe string; ``None`` encodes as the null bulk string."""

    arg: Optional[bytes]

    def to_bytes(self) -> bytes:
        return _bulk_bytes(self.arg)


@dataclass(frozen=True)
class NullBulkReply(Reply):
    """The null bulk string."""

    def to_bytes(self) -> bytes:
        return _NULL_BULK


@dataclass(frozen=True)
class MultiBulkReply(Reply):
    """An array of bulk strings."""

    args: Sequence[Optional[bytes]] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        parts = [b"*" + str(len(self.args)).encode() + CRLF]
        parts.extend(_bulk_bytes(arg) for arg in self.args)
        return b"".join(parts)


@dataclass(frozen=True)
class EmptyMultiBulkReply(Reply):
    """An array with no elements."""

    def to_bytes(self) -> bytes:
        return b"*0" + CRLF


@dataclass(frozen=True)
class MultiRawReply(Reply):
    """An array whose elements are arbitrary replies."""

    replies: Sequence[Reply] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        parts = [b"*" + str(len(self.replies)).encode() + CRLF]
        parts.extend(reply.to_bytes() for reply in self.replies)
        return b"".join(parts)


@dataclass(frozen=True)
class NoReply(Reply):
    """Nothing is written back to the client."""

    def to_bytes(self) -> bytes:
        return b""


class ErrorReply(Reply, Exception):
    """An error reply; executors may raise it or return it."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_bytes(self) -> bytes:
        return b"-" + self.message.encode() + CRLF

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ErrorReply):
            return NotImplemented
        return self.message == other.message

    def __hash__(self) -> int:
        return hash(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class WrongTypeError(ErrorReply):
    """The key holds a value of another type than the command expects."""

    def __init__(self) -> None:
        super().__init__("WRONGTYPE Operation against a key holding the wrong kind of value")


class UnknownError(ErrorReply):
    """An unexpected failure while running a command."""

    def __init__(self) -> None:
        super().__init__("Err unknown")


def arg_num_error(command: str) -> ErrorReply:
    """Error for a command called with the wrong number of arguments."""
    return ErrorReply(f"ERR wrong number of arguments for '{command}' command")


def syntax_error() -> ErrorReply:
    """Error for malformed command options."""
    return ErrorReply("Err syntax error")