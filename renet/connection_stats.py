"""Sliding-window statistics for a connection: throughput and packet loss."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List

RESOLUTION = timedelta(milliseconds=300)
WINDOW = timedelta(milliseconds=6000)
SIZE = WINDOW // RESOLUTION


def _zeros() -> List[int]:
    return [0] * SIZE


def _index(time: timedelta) -> int:
    return (time // RESOLUTION) % SIZE


def _per_second(total: int, seconds: float) -> float:
    if seconds == 0:
        return math.nan if total == 0 else math.inf
    return total / seconds


@dataclass
class ConnectionStats:
    """Counters kept in buckets of ``RESOLUTION`` over a ``WINDOW`` of time."""

    packets_sent: List[int] = field(default_factory=_zeros)
    packets_acked: List[int] = field(default_factory=_zeros)
    bytes_sent: List[int] = field(default_factory=_zeros)
    bytes_received: List[int] = field(default_factory=_zeros)
    current_index: int = 0

    def update(self, current_time: timedelta) -> None:
        """Move to the bucket for ``current_time``, clearing it if it is a new one."""
        i = _index(current_time)
        if i != self.current_index:
            self.current_index = i
            self.packets_sent[i] = 0
            self.bytes_sent[i] = 0
            self.bytes_received[i] = 0
            self.packets_acked[i] = 0

    def sent_packets(self, num_packets: int, num_bytes: int) -> None:
        """Record packets sent in the current bucket."""
        self.packets_sent[self.current_index] += num_packets
        self.bytes_sent[self.current_index] += num_bytes

    def received_packet(self, num_bytes: int) -> None:
        """Record a received packet's size in the current bucket."""
        self.bytes_received[self.current_index] += num_bytes

    def acked_packet(self, sent_at: timedelta, current_time: timedelta) -> None:
        """Record an ack for a packet sent at ``sent_at``, unless it left the window."""
        if current_time - sent_at > WINDOW:
            return
        self.packets_acked[_index(sent_at)] += 1

    def _rate(self, buckets: List[int], current_time: timedelta) -> float:
        total = sum(buckets)
        if current_time < WINDOW:
            return _per_second(total, current_time.total_seconds())
        # The current bucket is still filling, leave it out.
        total -= buckets[self.current_index]
        return _per_second(total, (WINDOW - RESOLUTION).total_seconds())

    def bytes_sent_per_second(self, current_time: timedelta) -> float:
        """Average bytes sent per second over the window."""
        return self._rate(self.bytes_sent, current_time)

    def bytes_received_per_second(self, current_time: timedelta) -> float:
        """Average bytes received per second over the window."""
        return self._rate(self.bytes_received, current_time)

    def _settled(self, buckets: List[int]) -> int:
        # The current and the two previous buckets may still have packets or acks in flight.
        recent = {(self.current_index - offset) % SIZE for offset in range(3)}
        return sum(value for index, value in enumerate(buckets) if index not in recent)

    def packet_loss(self) -> float:
        """Fraction of settled packets in the window that were not acknowledged."""
        sent = self._settled(self.packets_sent)
        if sent == 0:
            return 0.0
        acked = self._settled(self.packets_acked)
        return (sent - acked) / sent