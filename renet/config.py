"""Connection configuration, connection status and network statistics."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import List

from .channels import ChannelConfig, DefaultChannel, SendType

__all__ = ["ConnectionConfig", "NetworkInfo", "ConnectionStatus", "DEFAULT_AVAILABLE_BYTES_PER_TICK"]

DEFAULT_AVAILABLE_BYTES_PER_TICK = 60_000
"""Bytes available per update tick; at 60hz this becomes 28.8 Mbps."""


def _copy_channels(channels: List[ChannelConfig]) -> List[ChannelConfig]:
    return [replace(channel) for channel in channels]


@dataclass
class ConnectionConfig:
    """Configuration for a connection and its channels.

    The order of each channel list sets the priority when packets are built:
    each tick the first channel may use up to ``available_bytes_per_tick``,
    and what it uses is taken away before the next channel gets its turn.
    """

    available_bytes_per_tick: int = DEFAULT_AVAILABLE_BYTES_PER_TICK
    server_channels_config: List[ChannelConfig] = field(default_factory=list)
    """Channels the server sends to the client."""
    client_channels_config: List[ChannelConfig] = field(default_factory=list)
    """Channels the client sends to the server."""

    @classmethod
    def from_channels(cls, server: List[ChannelConfig], client: List[ChannelConfig]) -> "ConnectionConfig":
        """Make a config with the default byte budget and the given channels."""
        return cls(
            available_bytes_per_tick=DEFAULT_AVAILABLE_BYTES_PER_TICK,
            server_channels_config=_copy_channels(server),
            client_channels_config=_copy_channels(client),
        )

    @classmethod
    def from_shared_channels(cls, channels: List[ChannelConfig]) -> "ConnectionConfig":
        """Make a config using the same channels for server and client."""
        return cls.from_channels(channels, channels)

    @classmethod
    def test(cls) -> "ConnectionConfig":
        """Make a config with the default channels, for testing."""
        return cls.from_shared_channels(DefaultChannel.config())

    def copy(self) -> "ConnectionConfig":
        """Return an independent copy of this config."""
        return ConnectionConfig(
            available_bytes_per_tick=self.available_bytes_per_tick,
            server_channels_config=_copy_channels(self.server_channels_config),
            client_channels_config=_copy_channels(self.client_channels_config),
        )

    def downgrade_to_unreliable(self) -> None:
        """Make every channel unreliable.

        Used for sockets that are reliable themselves, such as WebSockets.
        """
        self.server_channels_config = [
            replace(channel, send_type=SendType.UNRELIABLE) for channel in self.server_channels_config
        ]
        self.client_channels_config = [
            replace(channel, send_type=SendType.UNRELIABLE) for channel in self.client_channels_config
        ]


@dataclass(frozen=True)
class NetworkInfo:
    """Statistics of a connection."""

    rtt: float
    """Round-trip time in seconds."""
    packet_loss: float
    bytes_sent_per_second: float
    bytes_received_per_second: float


class ConnectionStatus(enum.Enum):
    """Connection status of a client."""

    CONNECTED = enum.auto()
    CONNECTING = enum.auto()
    DISCONNECTED = enum.auto()