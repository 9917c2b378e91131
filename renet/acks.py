"""Tracking of received packet sequences that still need acknowledging."""

from __future__ import annotations

from typing import Iterator, List

__all__ = ["PendingAcks", "MAX_PENDING_RANGES"]

MAX_PENDING_RANGES = 64


class PendingAcks:
    """Ascending, non-overlapping ranges of packet sequences to acknowledge."""

    def __init__(self) -> None:
        self._ranges: List[range] = []

    def add(self, sequence: int) -> None:
        """Record a received sequence, merging it into adjacent ranges."""
        ranges = self._ranges
        for index, current in enumerate(ranges):
            if sequence in current:
                return
            if current.start == sequence + 1:
                ranges[index] = range(sequence, current.stop)
                return
            if current.stop == sequence:
                extended = range(current.start, sequence + 1)
                following = index + 1
                if following < len(ranges) and extended.stop == ranges[following].start:
                    extended = range(extended.start, ranges[following].stop)
                    del ranges[following]
                ranges[index] = extended
                return
            if current.start > sequence + 1:
                ranges.insert(index, range(sequence, sequence + 1))
                return

        ranges.append(range(sequence, sequence + 1))
        if len(ranges) > MAX_PENDING_RANGES:
            del ranges[0]

    def acked_largest(self, largest_ack: int) -> None:
        """Drop every sequence up to and including ``largest_ack``."""
        ranges = self._ranges
        while ranges:
            first = ranges[0]
            if largest_ack < first.start:
                return
            if first.stop <= largest_ack:
                del ranges[0]
                continue
            remaining = range(largest_ack + 1, first.stop)
            if remaining:
                ranges[0] = remaining
            else:
                del ranges[0]
            return

    def __iter__(self) -> Iterator[range]:
        return iter(list(self._ranges))

    def __len__(self) -> int:
        return len(self._ranges)

    def __repr__(self) -> str:
        return f"PendingAcks({self._ranges!r})"