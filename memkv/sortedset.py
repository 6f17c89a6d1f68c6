"""An ordered set of members, each carrying a float score."""

from __future__ import annotations

import enum
import math
import re
from bisect import bisect_left, insort
from dataclasses import dataclass
from typing import Optional

from .replies import ErrorReply

_BORDER_ERROR = "ERR min or max is not a float"
_FLOAT_RE = re.compile(
    r"[+-]?(?:(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)
_INF_RE = re.compile(r"[+-]?inf(?:inity)?", re.IGNORECASE)


def _parse_float(text: str) -> float:
    """Parse a float in the usual decimal syntax; raise ValueError otherwise."""
    if not _FLOAT_RE.fullmatch(text):
        raise ValueError(f"not a float: {text!r}")
    value = float(text)
    if math.isinf(value) and not _INF_RE.fullmatch(text):
        raise ValueError(f"float out of range: {text!r}")
    return value


@dataclass(frozen=True)
class Element:
    """A member together with its score."""

    member: str
    score: float


class _Inf(enum.IntEnum):
    NEGATIVE = -1
    NONE = 0
    POSITIVE = 1


@dataclass(frozen=True)
class ScoreBorder:
    """One end of a score interval, possibly exclusive or infinite."""

    value: float = 0.0
    exclude: bool = False
    inf: _Inf = _Inf.NONE

    def less(self, value: float) -> bool:
        """Whether ``value`` lies above this border used as a minimum."""
        if self.inf == _Inf.NEGATIVE:
            return True
        if self.inf == _Inf.POSITIVE:
            return False
        if self.exclude:
            return self.value < value
        return self.value <= value

    def greater(self, value: float) -> bool:
        """Whether ``value`` lies below this border used as a maximum."""
        if self.inf == _Inf.NEGATIVE:
            return False
        if self.inf == _Inf.POSITIVE:
            return True
        if self.exclude:
            return self.value > value
        return self.value >= value


_POSITIVE_INF = ScoreBorder(inf=_Inf.POSITIVE)
_NEGATIVE_INF = ScoreBorder(inf=_Inf.NEGATIVE)


def parse_score_border(text: str) -> ScoreBorder:
    """Parse ``inf``, ``+inf``, ``-inf``, ``(value`` or ``value``.

    Raises ErrorReply when the text is not a float.
    """
    if text in ("inf", "+inf"):
        return _POSITIVE_INF
    if text == "-inf":
        return _NEGATIVE_INF
    exclude = text.startswith("(")
    body = text[1:] if exclude else text
    try:
        value = _parse_float(body)
    except ValueError:
        raise ErrorReply(_BORDER_ERROR) from None
    return ScoreBorder(value=value, exclude=exclude)


class SortedSet:
    """Members ordered by score, ties broken by member."""

    def __init__(self) -> None:
        self._scores: dict[str, float] = {}
        self._order: list[tuple[float, str]] = []

    def __len__(self) -> int:
        return len(self._scores)

    def __contains__(self, member: object) -> bool:
        return member in self._scores

    def _index(self, score: float, member: str) -> int:
        return bisect_left(self._order, (score, member))

    def add(self, member: str, score: float) -> bool:
        """Insert or update ``member``; return True if it was new."""
        old = self._scores.get(member)
        if old is not None:
            if old == score:
                return False
            del self._order[self._index(old, member)]
        self._scores[member] = score
        insort(self._order, (score, member))
        return old is None

    def get(self, member: str) -> Optional[Element]:
        """Return the element for ``member``, or None."""
        score = self._scores.get(member)
        if score is None:
            return None
        return Element(member, score)

    def remove(self, member: str) -> bool:
        """Remove ``member``; return whether it was present."""
        score = self._scores.pop(member, None)
        if score is None:
            return False
        del self._order[self._index(score, member)]
        return True

    def rank(self, member: str, desc: bool) -> int:
        """Zero-based rank of ``member``, or -1 if absent."""
        score = self._scores.get(member)
        if score is None:
            return -1
        index = self._index(score, member)
        return len(self._order) - 1 - index if desc else index

    def range(self, start: int, stop: int, desc: bool) -> list[Element]:
        """Elements with rank in ``[start, stop)``, in the requested order."""
        size = len(self._order)
        if start < 0 or start > size or stop < start or stop > size:
            raise ValueError(f"illegal range [{start}, {stop}) for size {size}")
        if desc:
            chosen = self._order[size - stop : size - start][::-1]
        else:
            chosen = self._order[start:stop]
        return [Element(member, score) for score, member in chosen]

    def _span(self, low: ScoreBorder, high: ScoreBorder) -> tuple[int, int]:
        begin = bisect_left(self._order, True, key=lambda e: low.less(e[0]))
        end = bisect_left(self._order, True, key=lambda e: not high.greater(e[0]))
        return begin, max(begin, end)

    def count(self, low: ScoreBorder, high: ScoreBorder) -> int:
        """Number of members whose score lies between the borders."""
        begin, end = self._span(low, high)
        return end - begin

    def range_by_score(
        self, low: ScoreBorder, high: ScoreBorder, offset: int, limit: int, desc: bool
    ) -> list[Element]:
        """Members within the borders after skipping ``offset``; ``limit`` < 0 means all."""
        if limit == 0 or offset < 0:
            return []
        begin, end = self._span(low, high)
        chosen = self._order[begin:end]
        if desc:
            chosen.reverse()
        stop = None if limit < 0 else offset + limit
        return [Element(member, score) for score, member in chosen[offset:stop]]

    def _delete_slice(self, begin: int, end: int) -> int:
        for _, member in self._order[begin:end]:
            del self._scores[member]
        del self._order[begin:end]
        return max(0, end - begin)

    def remove_by_score(self, low: ScoreBorder, high: ScoreBorder) -> int:
        """Remove members within the borders and return how many."""
        begin, end = self._span(low, high)
        return self._delete_slice(begin, end)

    def remove_by_rank(self, start: int, stop: int) -> int:
        """Remove members with rank in ``[start, stop)`` and return how many."""
        start = max(start, 0)
        stop = min(stop, len(self._order))
        if stop <= start:
            return 0
        return self._delete_slice(start, stop)

    def pop_min(self, count: int) -> list[Element]:
        """Remove and return up to ``count`` members with the lowest scores."""
        size = max(0, min(count, len(self._order)))
        popped = [Element(member, score) for score, member in self._order[:size]]
        self._delete_slice(0, size)
        return popped