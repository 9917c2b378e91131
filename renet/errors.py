"""Error types raised or reported by connections and channels."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Union

SLICE_SIZE = 1200
"""Sliced messages are split into chunks of this many bytes."""


class SerializationErrorKind(enum.Enum):
    """Reasons a packet could not be written or read."""

    BUFFER_TOO_SHORT = enum.auto()
    INVALID_NUM_SLICES = enum.auto()
    SLICE_SIZE_ABOVE_LIMIT = enum.auto()
    EMPTY_SLICE = enum.auto()
    INVALID_ACK_RANGE = enum.auto()
    INVALID_PACKET_TYPE = enum.auto()


class ChannelErrorKind(enum.Enum):
    """Reasons a channel failed."""

    RELIABLE_CHANNEL_MAX_MEMORY_REACHED = enum.auto()
    INVALID_SLICE_MESSAGE = enum.auto()


_SERIALIZATION_MESSAGES = {
    SerializationErrorKind.BUFFER_TOO_SHORT: "buffer too short",
    SerializationErrorKind.INVALID_NUM_SLICES: "invalid number of slices",
    SerializationErrorKind.INVALID_ACK_RANGE: "invalid ack range",
    SerializationErrorKind.INVALID_PACKET_TYPE: "invalid packet type",
    SerializationErrorKind.SLICE_SIZE_ABOVE_LIMIT: (
        f"invalid slice size, it's above the limit of {SLICE_SIZE} bytes"
    ),
    SerializationErrorKind.EMPTY_SLICE: "invalid slice, slices cannot be empty",
}

_CHANNEL_MESSAGES = {
    ChannelErrorKind.RELIABLE_CHANNEL_MAX_MEMORY_REACHED: "reliable channel memory usage was exausted",
    ChannelErrorKind.INVALID_SLICE_MESSAGE: "received an invalid slice packet",
}


class _KindError(Exception):
    """An exception identified by a kind; equal when type and kind match."""

    _messages: dict = {}

    def __init__(self, kind):
        self.kind = kind
        super().__init__(self._messages[kind])

    def __str__(self) -> str:
        return self._messages[self.kind]

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.kind == other.kind

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.kind))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.kind})"


class SerializationError(_KindError, ValueError):
    """A packet could not be serialized or deserialized."""

    _messages = _SERIALIZATION_MESSAGES

    def __init__(self, kind: SerializationErrorKind):
        super().__init__(SerializationErrorKind(kind))

    def __str__(self) -> str:
        return _SERIALIZATION_MESSAGES[self.kind]


class ChannelError(_KindError):
    """A channel reached an invalid state."""

    _messages = _CHANNEL_MESSAGES

    def __init__(self, kind: ChannelErrorKind):
        super().__init__(ChannelErrorKind(kind))

    def __str__(self) -> str:
        return _CHANNEL_MESSAGES[self.kind]


class DisconnectKind(enum.Enum):
    """Categories of disconnection."""

    TRANSPORT = enum.auto()
    DISCONNECTED_BY_CLIENT = enum.auto()
    DISCONNECTED_BY_SERVER = enum.auto()
    PACKET_SERIALIZATION = enum.auto()
    PACKET_DESERIALIZATION = enum.auto()
    RECEIVED_INVALID_CHANNEL_ID = enum.auto()
    SEND_CHANNEL_ERROR = enum.auto()
    RECEIVE_CHANNEL_ERROR = enum.auto()


_NEEDS_SERIALIZATION_ERROR = {DisconnectKind.PACKET_SERIALIZATION, DisconnectKind.PACKET_DESERIALIZATION}
_NEEDS_CHANNEL_ERROR = {DisconnectKind.SEND_CHANNEL_ERROR, DisconnectKind.RECEIVE_CHANNEL_ERROR}
_NEEDS_CHANNEL_ID = _NEEDS_CHANNEL_ERROR | {DisconnectKind.RECEIVED_INVALID_CHANNEL_ID}


@dataclass(frozen=True)
class DisconnectReason:
    """Why a connection ended, with the channel and error where they apply."""

    kind: DisconnectKind
    channel_id: Optional[int] = None
    error: Union[SerializationError, ChannelError, None] = None

    def __post_init__(self) -> None:
        if self.kind in _NEEDS_CHANNEL_ID and self.channel_id is None:
            raise ValueError(f"{self.kind.name} requires a channel id")
        if self.kind in _NEEDS_SERIALIZATION_ERROR and not isinstance(self.error, SerializationError):
            raise ValueError(f"{self.kind.name} requires a SerializationError")
        if self.kind in _NEEDS_CHANNEL_ERROR and not isinstance(self.error, ChannelError):
            raise ValueError(f"{self.kind.name} requires a ChannelError")

    def __str__(self) -> str:
        kind = self.kind
        if kind is DisconnectKind.TRANSPORT:
            return "connection terminated by the transport layer"
        if kind is DisconnectKind.DISCONNECTED_BY_CLIENT:
            return "connection terminated by the client"
        if kind is DisconnectKind.DISCONNECTED_BY_SERVER:
            return "connection terminated by the server"
        if kind is DisconnectKind.PACKET_SERIALIZATION:
            return f"failed to serialize packet: {self.error}"
        if kind is DisconnectKind.PACKET_DESERIALIZATION:
            return f"failed to deserialize packet: {self.error}"
        if kind is DisconnectKind.RECEIVED_INVALID_CHANNEL_ID:
            return f"received message with invalid channel {self.channel_id}"
        if kind is DisconnectKind.SEND_CHANNEL_ERROR:
            return f"send channel {self.channel_id} with error: {self.error}"
        return f"receive channel {self.channel_id} with error: {self.error}"


class ClientNotFound(LookupError):
    """No client with the given id exists."""

    def __init__(self, client_id: int):
        self.client_id = client_id
        super().__init__("client with given id was not found")

    def __str__(self) -> str:
        return "client with given id was not found"