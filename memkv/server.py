"""A multi-database server dispatching command lines to its databases."""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from . import keys, lists, sets, zsets  # noqa: F401  (register their commands)
from .db import DB
from .replies import (
    ErrorReply,
    IntReply,
    OkReply,
    Reply,
    UnknownError,
    arg_num_error,
    syntax_error,
)
from .router import to_cmd_line, validate_arity

_log = logging.getLogger(__name__)

_ATOI_RE = re.compile(r"[+-]?[0-9]+")
_OUT_OF_RANGE = "ERR DB index is out of range"


def _parse_index(arg: bytes) -> Optional[int]:
    text = bytes(arg).decode("ascii", "replace")
    if not _ATOI_RE.fullmatch(text):
        return None
    return int(text)


@dataclass
class Connection:
    """Client state the server consults: selected database and MULTI mode."""

    db_index: int = 0
    in_multi: bool = False

    def select_db(self, index: int) -> None:
        """Make ``index`` the database this client works on."""
        self.db_index = index


class Server:
    """A set of numbered databases sharing one command dispatcher."""

    def __init__(self, databases: int = 16) -> None:
        if databases <= 0:
            databases = 16
        self._dbs: list[DB] = [DB(index) for index in range(databases)]

    def __len__(self) -> int:
        return len(self._dbs)

    def select_db(self, index: int) -> DB:
        """Return the database at ``index``; raise ErrorReply if out of range."""
        if not 0 <= index < len(self._dbs):
            raise ErrorReply(_OUT_OF_RANGE)
        return self._dbs[index]

    def load_db(self, index: int, db: DB) -> Reply:
        """Replace the database at ``index`` with ``db``."""
        if not 0 <= index < len(self._dbs):
            raise ErrorReply(_OUT_OF_RANGE)
        self._dbs[index] = db
        return OkReply()

    def flush_db(self, index: int) -> Reply:
        """Replace the database at ``index`` with an empty one."""
        if not 0 <= index < len(self._dbs):
            raise ErrorReply(_OUT_OF_RANGE)
        return self.load_db(index, DB(index))

    def flush_all(self) -> Reply:
        """Empty every database."""
        for index in range(len(self._dbs)):
            self.flush_db(index)
        return OkReply()

    def get_db_size(self, index: int) -> tuple[int, int]:
        """Number of keys and number of keys with an expiration."""
        db = self.select_db(index)
        return len(db), db.ttl_count()

    def exec(self, conn: Optional[Connection], cmd_line: Sequence[bytes]) -> Reply:
        """Run one command line for ``conn`` and return its reply."""
        if conn is None:
            conn = Connection()
        try:
            return self._dispatch(conn, cmd_line)
        except ErrorReply as error:
            return error
        except Exception:  # a failing command must not take the server down
            _log.warning("error while executing %r", cmd_line, exc_info=True)
            return UnknownError()

    def _dispatch(self, conn: Connection, cmd_line: Sequence[bytes]) -> Reply:
        name = bytes(cmd_line[0]).decode("utf-8", "replace").lower()
        if name == "flushall":
            return self.flush_all()
        if name == "flushdb":
            if not validate_arity(1, cmd_line):
                return arg_num_error(name)
            if conn.in_multi:
                return ErrorReply("ERR command 'FlushDB' cannot be used in MULTI")
            return self.flush_db(conn.db_index)
        if name == "select":
            if conn.in_multi:
                return ErrorReply("cannot select database within multi")
            if len(cmd_line) != 2:
                return arg_num_error("select")
            return exec_select(conn, self, cmd_line[1:])
        if name == "copy":
            if len(cmd_line) < 3:
                return arg_num_error("copy")
            return exec_copy(self, conn, cmd_line[1:])
        return self.select_db(conn.db_index).exec(cmd_line)


def exec_select(conn: Connection, server: Server, args: Sequence[bytes]) -> Reply:
    """SELECT index: switch the connection to another database."""
    index = _parse_index(args[0])
    if index is None:
        return ErrorReply("ERR invalid DB index")
    if not 0 <= index < len(server):
        return ErrorReply(_OUT_OF_RANGE)
    conn.select_db(index)
    return OkReply()


def exec_copy(server: Server, conn: Connection, args: Sequence[bytes]) -> Reply:
    """COPY source destination [DB destination-db] [REPLACE]."""
    db = server.select_db(conn.db_index)
    src_key = bytes(args[0]).decode()
    dest_key = bytes(args[1]).decode()
    dest_index = conn.db_index
    replace = False

    options = iter(args[2:])
    for option in options:
        word = bytes(option).lower()
        if word == b"db":
            raw = next(options, None)
            if raw is None:
                return syntax_error()
            index = _parse_index(raw)
            if index is None:
                return syntax_error()
            if not 0 <= index < len(server):
                return ErrorReply(_OUT_OF_RANGE)
            dest_index = index
        elif word == b"replace":
            replace = True
        else:
            return syntax_error()

    if src_key == dest_key and dest_index == conn.db_index:
        return ErrorReply("ERR source and destination objects are the same")

    value = db.get_entity(src_key)
    if value is None:
        return IntReply(0)

    dest_db = server.select_db(dest_index)
    if dest_db.get_entity(dest_key) is not None and not replace:
        return IntReply(0)

    dest_db.put_entity(dest_key, copy.deepcopy(value))
    expire_at = db.expire_time(src_key)
    if expire_at is not None:
        dest_db.expire(dest_key, expire_at)
    db.add_aof(to_cmd_line("copy", *args))
    return IntReply(1)