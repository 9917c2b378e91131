"""One end of a connection: channels, packet sequencing, acks and statistics."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, List, Optional, Tuple, Union

from .acks import PendingAcks
from .channels import ChannelConfig, SendContext, SendType
from .config import ConnectionConfig, ConnectionStatus, NetworkInfo
from .connection_stats import ConnectionStats
from .errors import ChannelError, DisconnectKind, DisconnectReason, SerializationError
from .packet import (
    Ack,
    Packet,
    ReliableSlice,
    SmallReliable,
    SmallUnreliable,
    UnreliableSlice,
    decode_packet,
    encode_packet,
)
from .reliable import ReceiveChannelReliable, SendChannelReliable
from .unreliable import ReceiveChannelUnreliable, SendChannelUnreliable

__all__ = ["RenetClient"]

_DISCARD_AFTER = timedelta(seconds=3)
_MAX_PACKET_SIZE = 1400
_EPSILON = 2.220446049250313e-16

_SendChannel = Union[SendChannelReliable, SendChannelUnreliable]
_ReceiveChannel = Union[ReceiveChannelReliable, ReceiveChannelUnreliable]


@dataclass(frozen=True)
class _ReliableMessages:
    channel_id: int
    message_ids: Tuple[int, ...]


@dataclass(frozen=True)
class _ReliableSliceMessage:
    channel_id: int
    message_id: int
    slice_index: int


@dataclass(frozen=True)
class _AckSent:
    largest_acked_packet: int


_SentInfo = Union[_ReliableMessages, _ReliableSliceMessage, _AckSent, None]


@dataclass(frozen=True)
class _PacketSent:
    sent_at: timedelta
    info: _SentInfo


class RenetClient:
    """A connection endpoint that sends and receives messages over channels.

    ``has_reliable_socket`` must match the underlying socket: false for UDP-like
    sockets, true for in-memory sockets and WebSockets, in which case every
    channel is downgraded to unreliable.
    """

    def __init__(self, config: ConnectionConfig, has_reliable_socket: bool):
        config = config.copy()
        if has_reliable_socket:
            config.downgrade_to_unreliable()
        self._setup(
            has_reliable_socket,
            config.available_bytes_per_tick,
            config.client_channels_config,
            config.server_channels_config,
        )

    @classmethod
    def from_server_config(cls, config: ConnectionConfig, has_reliable_socket: bool) -> "RenetClient":
        """Make the server-side end: server channels send, client channels receive."""
        config = config.copy()
        if has_reliable_socket:
            config.downgrade_to_unreliable()
        client = cls.__new__(cls)
        client._setup(
            has_reliable_socket,
            config.available_bytes_per_tick,
            config.server_channels_config,
            config.client_channels_config,
        )
        return client

    def _setup(
        self,
        has_reliable_socket: bool,
        available_bytes_per_tick: int,
        send_configs: List[ChannelConfig],
        receive_configs: List[ChannelConfig],
    ) -> None:
        self._has_reliable_socket = has_reliable_socket
        self._available_bytes_per_tick = available_bytes_per_tick
        self._packet_sequence = 0
        self._current_time = timedelta(0)
        self._sent_packets: Dict[int, _PacketSent] = {}
        self._pending_acks = PendingAcks()
        self._stats = ConnectionStats()
        self._rtt = 0.0
        self._status = ConnectionStatus.CONNECTING
        self._disconnect_reason: Optional[DisconnectReason] = None

        # Insertion order is the priority order when building packets.
        self._send_channels: Dict[int, _SendChannel] = {}
        for channel in send_configs:
            channel_id = int(channel.channel_id)
            if channel_id in self._send_channels:
                raise ValueError(f"already exists send channel {channel_id}")
            if channel.send_type is SendType.UNRELIABLE:
                self._send_channels[channel_id] = SendChannelUnreliable(
                    channel_id, channel.max_memory_usage_bytes
                )
            else:
                self._send_channels[channel_id] = SendChannelReliable(
                    channel_id, channel.resend_time, channel.max_memory_usage_bytes
                )

        self._receive_channels: Dict[int, _ReceiveChannel] = {}
        for channel in receive_configs:
            channel_id = int(channel.channel_id)
            if channel_id in self._receive_channels:
                raise ValueError(f"already exists receive channel {channel_id}")
            if channel.send_type is SendType.UNRELIABLE:
                self._receive_channels[channel_id] = ReceiveChannelUnreliable(
                    channel_id, channel.max_memory_usage_bytes
                )
            else:
                self._receive_channels[channel_id] = ReceiveChannelReliable(
                    channel.max_memory_usage_bytes, channel.send_type is SendType.RELIABLE_ORDERED
                )

    # -- statistics -------------------------------------------------------

    def has_reliable_socket(self) -> bool:
        """Whether this client uses a reliable underlying socket."""
        return self._has_reliable_socket

    def rtt(self) -> float:
        """Round-trip time in seconds."""
        return self._rtt

    def packet_loss(self) -> float:
        """Fraction of recent packets that were not acknowledged."""
        return self._stats.packet_loss()

    def bytes_sent_per_sec(self) -> float:
        """Bytes sent per second over the stats window."""
        return self._stats.bytes_sent_per_second(self._current_time)

    def bytes_received_per_sec(self) -> float:
        """Bytes received per second over the stats window."""
        return self._stats.bytes_received_per_second(self._current_time)

    def network_info(self) -> NetworkInfo:
        """All statistics of the connection."""
        return NetworkInfo(
            rtt=self._rtt,
            packet_loss=self.packet_loss(),
            bytes_sent_per_second=self.bytes_sent_per_sec(),
            bytes_received_per_second=self.bytes_received_per_sec(),
        )

    def in_flight_packets(self) -> int:
        """Number of sent packets neither acknowledged nor given up on."""
        return len(self._sent_packets)

    # -- status -----------------------------------------------------------

    def is_connected(self) -> bool:
        return self._status is ConnectionStatus.CONNECTED

    def is_connecting(self) -> bool:
        return self._status is ConnectionStatus.CONNECTING

    def is_disconnected(self) -> bool:
        return self._status is ConnectionStatus.DISCONNECTED

    def disconnect_reason(self) -> Optional[DisconnectReason]:
        """The reason for the disconnection, or None while not disconnected."""
        return self._disconnect_reason

    def set_connected(self) -> None:
        """Mark the client connected; a disconnected client stays disconnected."""
        if not self.is_disconnected():
            self._status = ConnectionStatus.CONNECTED

    def set_connecting(self) -> None:
        """Mark the client connecting; a disconnected client stays disconnected."""
        if not self.is_disconnected():
            self._status = ConnectionStatus.CONNECTING

    def disconnect(self) -> None:
        """Disconnect the client; does nothing if already disconnected."""
        self.disconnect_with_reason(DisconnectReason(DisconnectKind.DISCONNECTED_BY_CLIENT))

    def disconnect_due_to_transport(self) -> None:
        """Disconnect because the transport layer failed."""
        self.disconnect_with_reason(DisconnectReason(DisconnectKind.TRANSPORT))

    def disconnect_with_reason(self, reason: DisconnectReason) -> None:
        """Disconnect with ``reason`` unless already disconnected."""
        if not self.is_disconnected():
            self._status = ConnectionStatus.DISCONNECTED
            self._disconnect_reason = reason

    # -- messages ---------------------------------------------------------

    def _send_channel(self, channel_id: int, action: str) -> _SendChannel:
        channel = self._send_channels.get(int(channel_id))
        if channel is None:
            raise ValueError(f"Called '{action}' with invalid channel {int(channel_id)}")
        return channel

    def channel_available_memory(self, channel_id: int) -> int:
        """Free bytes in the given send channel; raises ValueError for an unknown channel."""
        return self._send_channel(channel_id, "channel_available_memory").available_memory()

    def can_send_message(self, channel_id: int, size_bytes: int) -> bool:
        """Whether a message of ``size_bytes`` fits in the given send channel."""
        return self._send_channel(channel_id, "can_send_message").can_send_message(size_bytes)

    def send_message(self, channel_id: int, message: bytes) -> None:
        """Queue a message on a channel; a full reliable channel disconnects the client."""
        if self.is_disconnected():
            return
        channel_id = int(channel_id)
        channel = self._send_channel(channel_id, "send_message")
        if isinstance(channel, SendChannelReliable):
            try:
                channel.send_message(message)
            except ChannelError as error:
                self.disconnect_with_reason(
                    DisconnectReason(DisconnectKind.SEND_CHANNEL_ERROR, channel_id, error)
                )
        else:
            channel.send_message(message)

    def receive_message(self, channel_id: int) -> Optional[bytes]:
        """Pop a received message from a channel, or None if there is none."""
        if self.is_disconnected():
            return None
        channel = self._receive_channels.get(int(channel_id))
        if channel is None:
            raise ValueError(f"Called 'receive_message' with invalid channel {int(channel_id)}")
        return channel.receive_message()

    # -- ticking ----------------------------------------------------------

    def update(self, duration: timedelta) -> None:
        """Advance the client's clock; call once per tick."""
        self._current_time += duration
        self._stats.update(self._current_time)

        for channel in self._receive_channels.values():
            if isinstance(channel, ReceiveChannelUnreliable):
                channel.discard_incomplete_old_slices(self._current_time)

        lost: List[int] = []
        for sequence, sent in self._sent_packets.items():
            if self._current_time - sent.sent_at >= _DISCARD_AFTER:
                lost.append(sequence)
            else:
                # Later packets were sent after this one, so they are not lost either.
                break
        for sequence in lost:
            del self._sent_packets[sequence]

    def _receive_channel_as(self, channel_id: int, kind: type):
        channel = self._receive_channels.get(channel_id)
        if not isinstance(channel, kind):
            self.disconnect_with_reason(
                DisconnectReason(DisconnectKind.RECEIVED_INVALID_CHANNEL_ID, channel_id)
            )
            return None
        return channel

    def _receive_error(self, channel_id: int, error: ChannelError) -> None:
        self.disconnect_with_reason(DisconnectReason(DisconnectKind.RECEIVE_CHANNEL_ERROR, channel_id, error))

    def process_packet(self, packet: bytes) -> None:
        """Handle one packet from the other end."""
        if self.is_disconnected():
            return

        self._stats.received_packet(len(packet))
        try:
            decoded = decode_packet(packet)
        except SerializationError as error:
            self.disconnect_with_reason(DisconnectReason(DisconnectKind.PACKET_DESERIALIZATION, error=error))
            return

        self._pending_acks.add(decoded.sequence)

        if isinstance(decoded, SmallReliable):
            channel = self._receive_channel_as(decoded.channel_id, ReceiveChannelReliable)
            if channel is None:
                return
            for message_id, message in decoded.messages:
                try:
                    channel.process_message(message, message_id)
                except ChannelError as error:
                    self._receive_error(decoded.channel_id, error)
                    return
        elif isinstance(decoded, SmallUnreliable):
            channel = self._receive_channel_as(decoded.channel_id, ReceiveChannelUnreliable)
            if channel is None:
                return
            for message in decoded.messages:
                channel.process_message(message)
        elif isinstance(decoded, ReliableSlice):
            channel = self._receive_channel_as(decoded.channel_id, ReceiveChannelReliable)
            if channel is None:
                return
            try:
                channel.process_slice(decoded.slice)
            except ChannelError as error:
                self._receive_error(decoded.channel_id, error)
        elif isinstance(decoded, UnreliableSlice):
            channel = self._receive_channel_as(decoded.channel_id, ReceiveChannelUnreliable)
            if channel is None:
                return
            try:
                channel.process_slice(decoded.slice, self._current_time)
            except ChannelError as error:
                self._receive_error(decoded.channel_id, error)
        else:
            self._process_ack(decoded)

    def _process_ack(self, packet: Ack) -> None:
        # Only look at sequences actually in flight, so huge ranges cost nothing.
        new_acks = [
            sequence
            for ack_range in packet.ack_ranges
            for sequence in self._sent_packets
            if sequence in ack_range
        ]
        for sequence in new_acks:
            sent = self._sent_packets.pop(sequence, None)
            if sent is None:
                continue
            self._stats.acked_packet(sent.sent_at, self._current_time)

            rtt = (self._current_time - sent.sent_at).total_seconds()
            if self._rtt < _EPSILON:
                self._rtt = rtt
            else:
                self._rtt = self._rtt * 0.875 + rtt * 0.125

            info = sent.info
            if isinstance(info, _ReliableMessages):
                channel = self._send_channels[info.channel_id]
                for message_id in info.message_ids:
                    channel.process_message_ack(message_id)
            elif isinstance(info, _ReliableSliceMessage):
                channel = self._send_channels[info.channel_id]
                channel.process_slice_message_ack(info.message_id, info.slice_index)
            elif isinstance(info, _AckSent):
                self._pending_acks.acked_largest(info.largest_acked_packet)

    def get_packets_to_send(self) -> List[bytes]:
        """Build and serialize the packets to send to the other end this tick."""
        if self.is_disconnected():
            return []

        context = SendContext(
            packet_sequence=self._packet_sequence,
            available_bytes=self._available_bytes_per_tick,
        )
        packets: List[Packet] = []
        for channel in self._send_channels.values():
            if isinstance(channel, SendChannelReliable):
                packets.extend(channel.get_packets_to_send(context, self._current_time))
            else:
                packets.extend(channel.get_packets_to_send(context))

        ack_ranges = list(self._pending_acks)
        if ack_ranges:
            packets.append(Ack(context.next_sequence(), ack_ranges))
        self._packet_sequence = context.packet_sequence

        sent_at = self._current_time
        for packet in packets:
            self._sent_packets[packet.sequence] = _PacketSent(sent_at, self._sent_info(packet))

        serialized: List[bytes] = []
        for packet in packets:
            try:
                serialized.append(encode_packet(packet, _MAX_PACKET_SIZE))
            except SerializationError as error:
                self.disconnect_with_reason(DisconnectReason(DisconnectKind.PACKET_SERIALIZATION, error=error))
                return []

        self._stats.sent_packets(len(serialized), sum(len(data) for data in serialized))
        return serialized

    @staticmethod
    def _sent_info(packet: Packet) -> _SentInfo:
        if isinstance(packet, SmallReliable):
            return _ReliableMessages(packet.channel_id, tuple(message_id for message_id, _ in packet.messages))
        if isinstance(packet, ReliableSlice):
            return _ReliableSliceMessage(packet.channel_id, packet.slice.message_id, packet.slice.slice_index)
        if isinstance(packet, Ack):
            return _AckSent(packet.ack_ranges[-1].stop - 1)
        return None