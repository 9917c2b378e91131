"""Channel configuration and the shared state used while building packets."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List

ClientId = int
"""Unique identifier for clients."""

_DEFAULT_RESEND_TIME = timedelta(milliseconds=300)
_DEFAULT_MAX_MEMORY = 5 * 1024 * 1024
_U64_MAX = (1 << 64) - 1


class SendType(enum.Enum):
    """Delivery guarantee of a channel."""

    UNRELIABLE = enum.auto()
    """Messages can be lost or received out of order."""
    RELIABLE_ORDERED = enum.auto()
    """Messages are guaranteed to arrive, in the order they were sent."""
    RELIABLE_UNORDERED = enum.auto()
    """Messages are guaranteed to arrive, possibly in a different order."""


@dataclass
class ChannelConfig:
    """Configuration of one unidirectional, message-based channel.

    ``channel_id`` must be unique within its own list of channels.
    ``max_memory_usage_bytes`` bounds the unacknowledged data the channel holds:
    unreliable channels drop new messages beyond it, reliable ones disconnect.
    ``resend_time`` only matters for reliable channels.
    """

    channel_id: int
    max_memory_usage_bytes: int
    send_type: SendType
    resend_time: timedelta = field(default=_DEFAULT_RESEND_TIME)

    def __post_init__(self) -> None:
        if not 0 <= self.channel_id <= 255:
            raise ValueError(f"channel id must fit in a byte, got {self.channel_id}")
        if self.max_memory_usage_bytes < 0:
            raise ValueError("max_memory_usage_bytes cannot be negative")


class DefaultChannel(enum.IntEnum):
    """Ids of the channels in the default configuration."""

    UNRELIABLE = 0
    RELIABLE_UNORDERED = 1
    RELIABLE_ORDERED = 2

    @classmethod
    def config(cls) -> List[ChannelConfig]:
        """Return the default channels: unreliable, reliable unordered and reliable ordered."""
        return [
            ChannelConfig(cls.UNRELIABLE, _DEFAULT_MAX_MEMORY, SendType.UNRELIABLE),
            ChannelConfig(cls.RELIABLE_UNORDERED, _DEFAULT_MAX_MEMORY, SendType.RELIABLE_UNORDERED),
            ChannelConfig(cls.RELIABLE_ORDERED, _DEFAULT_MAX_MEMORY, SendType.RELIABLE_ORDERED),
        ]


@dataclass
class SendContext:
    """Packet sequence counter and byte budget shared by channels during one send pass."""

    packet_sequence: int = 0
    available_bytes: int = _U64_MAX

    def next_sequence(self) -> int:
        """Return the current packet sequence and advance it."""
        sequence = self.packet_sequence
        self.packet_sequence += 1
        return sequence