"""A single keyspace holding values and their expiration times."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from .replies import ErrorReply, Reply, arg_num_error
from .router import CmdLine, lookup, validate_arity


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DB:
    """One numbered database: a key to value map plus expiration times.

    Expiration times are timezone-aware datetimes; keys past their time are
    dropped when they are next touched.
    """

    def __init__(self, index: int = 0) -> None:
        self.index = index
        self._data: dict[str, Any] = {}
        self._ttl: dict[str, datetime] = {}
        self.aof_callback: Optional[Callable[[CmdLine], None]] = None

    def _is_expired(self, key: str) -> bool:
        expire_at = self._ttl.get(key)
        return expire_at is not None and _now() > expire_at

    def _purge_expired(self) -> None:
        for key in [k for k in self._ttl if self._is_expired(k)]:
            self.remove(key)

    def get_entity(self, key: str) -> Any:
        """Return the value stored at ``key``, or None if absent or expired."""
        if key not in self._data:
            return None
        if self._is_expired(key):
            self.remove(key)
            return None
        return self._data[key]

    def put_entity(self, key: str, value: Any) -> int:
        """Store ``value``; return 1 if the key is new, else 0."""
        is_new = key not in self._data
        self._data[key] = value
        return 1 if is_new else 0

    def remove(self, key: str) -> bool:
        """Delete a key and its expiration; return whether it existed."""
        self._ttl.pop(key, None)
        return self._data.pop(key, None) is not None

    def removes(self, *args: str) -> int:
        """Delete several keys and return how many existed."""
        deleted = 0
        for key in args:
            if self.get_entity(key) is not None:
                self.remove(key)
                deleted += 1
        return deleted

    def flush(self) -> None:
        """Remove every key."""
        self._data.clear()
        self._ttl.clear()

    def expire(self, key: str, expire_at: datetime) -> None:
        """Set the time at which ``key`` expires."""
        self._ttl[key] = expire_at

    def persist(self, key: str) -> None:
        """Drop the expiration time of ``key``."""
        self._ttl.pop(key, None)

    def expire_time(self, key: str) -> Optional[datetime]:
        """Return the expiration time of ``key``, or None if it has none."""
        return self._ttl.get(key)

    def keys(self) -> list[str]:
        """Return all live keys."""
        self._purge_expired()
        return list(self._data)

    def __len__(self) -> int:
        self._purge_expired()
        return len(self._data)

    def ttl_count(self) -> int:
        """Number of live keys that have an expiration time."""
        self._purge_expired()
        return len(self._ttl)

    def add_aof(self, cmd_line: CmdLine) -> None:
        """Hand a write command to the bound append-only log, if any."""
        if self.aof_callback is not None:
            self.aof_callback(cmd_line)

    def exec(self, cmd_line: Sequence[bytes]) -> Reply:
        """Run a normal command against this database."""
        name = bytes(cmd_line[0]).decode("utf-8", "replace").lower()
        cmd = lookup(name)
        if cmd is None or cmd.executor is None:
            return ErrorReply(f"ERR unknown command '{name}'")
        if not validate_arity(cmd.arity, cmd_line):
            return arg_num_error(name)
        try:
            return cmd.executor(self, list(cmd_line[1:]))
        except ErrorReply as err:
            return err