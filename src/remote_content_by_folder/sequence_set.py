"""Compact set of non-negative integers stored as sorted ranges.

Message ids handed out by the mail host are mostly increasing and come in long
contiguous runs, so the set keeps inclusive ``[start, end]`` ranges instead of
individual ids. Stored ranges are sorted and never overlap or touch: any
insertion that would make two ranges adjacent merges them immediately.

The range touched by the last lookup or insertion is cached, which makes
``is_member`` and ``add`` O(1) for the common pattern of walking a listing in
increasing id order. Anything else falls back to a binary search.
"""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass
from typing import Iterable, Iterator


@dataclass
class Range:
    """Inclusive range of integers."""

    start: int
    end: int


class SequenceSet:
    """Range-based membership set for message ids."""

    def __init__(self, values: Iterable[int] = ()) -> None:
        self._ranges: list[Range] = []
        self._last: int | None = None  # index of the last touched range
        self.update(values)

    # --- public API ---

    def is_member(self, num: int) -> bool:
        """Return True if ``num`` falls inside a stored range."""
        last = self._last_range()
        if last is not None and last.start <= num <= last.end:
            return True

        idx = self._find(num)
        if idx < len(self._ranges) and self._ranges[idx].start <= num:
            self._last = idx
            return True
        return False

    def add(self, num: int) -> None:
        """Insert ``num``. Adding a number that is already a member does nothing."""
        if num < 0:
            raise ValueError(f"SequenceSet only holds non-negative integers, got {num}")
        if self.is_member(num):
            return

        # Fast path: the number extends the range we touched last.
        last = self._last_range()
        if last is not None and last.end == num - 1:
            last.end = num
            self._merge_with_next(self._last)
            return

        idx = self._find(num)
        # Not a member, so every range before idx ends below num and the range
        # at idx (if any) starts above it.
        if idx > 0 and self._ranges[idx - 1].end == num - 1:
            self._ranges[idx - 1].end = num
            self._last = idx - 1
            self._merge_with_next(idx - 1)
            return

        if idx < len(self._ranges) and self._ranges[idx].start == num + 1:
            self._ranges[idx].start = num
            self._last = idx
            return

        self._ranges.insert(idx, Range(num, num))
        self._last = idx

    def update(self, values: Iterable[int]) -> None:
        for num in values:
            self.add(num)

    def clear(self) -> None:
        self._ranges.clear()
        self._last = None

    @property
    def ranges(self) -> tuple[tuple[int, int], ...]:
        """Stored ranges as ``(start, end)`` tuples in ascending order."""
        return tuple((r.start, r.end) for r in self._ranges)

    @property
    def range_count(self) -> int:
        return len(self._ranges)

    def dump(self) -> str:
        """Render the ranges as ``start:end`` pairs, e.g. ``"1:3 5:5"``."""
        return " ".join(f"{r.start}:{r.end}" for r in self._ranges)

    # --- internals ---

    def _last_range(self) -> Range | None:
        if self._last is None:
            return None
        return self._ranges[self._last]

    def _find(self, num: int) -> int:
        """Index of the first range whose end is >= ``num``."""
        return bisect_left(self._ranges, num, key=lambda r: r.end)

    def _merge_with_next(self, idx: int) -> None:
        current = self._ranges[idx]
        if idx + 1 < len(self._ranges) and self._ranges[idx + 1].start == current.end + 1:
            current.end = self._ranges[idx + 1].end
            del self._ranges[idx + 1]

    # --- container protocol ---

    def __contains__(self, num: object) -> bool:
        return isinstance(num, int) and self.is_member(num)

    def __iter__(self) -> Iterator[int]:
        for r in self._ranges:
            yield from range(r.start, r.end + 1)

    def __len__(self) -> int:
        return sum(r.end - r.start + 1 for r in self._ranges)

    def __bool__(self) -> bool:
        return bool(self._ranges)

    def __repr__(self) -> str:
        return f"SequenceSet({self.dump()!r})"
