"""Packet types and their wire format."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from .errors import SLICE_SIZE, SerializationError, SerializationErrorKind

__all__ = [
    "SLICE_SIZE",
    "Slice",
    "SmallReliable",
    "SmallUnreliable",
    "ReliableSlice",
    "UnreliableSlice",
    "Ack",
    "Packet",
    "varint_len",
    "encode_varint",
    "encode_packet",
    "decode_packet",
]

_MAX_NUM_SLICES = 1_000_000
_MAX_VARINT = 4_611_686_018_427_387_903

_SMALL_RELIABLE = 0
_SMALL_UNRELIABLE = 1
_RELIABLE_SLICE = 2
_UNRELIABLE_SLICE = 3
_ACK = 4


@dataclass(frozen=True)
class Slice:
    """One chunk of a message too large for a single packet."""

    message_id: int
    slice_index: int
    num_slices: int
    payload: bytes


@dataclass(frozen=True)
class SmallReliable:
    """Small reliable messages aggregated in one packet, as (message id, payload) pairs."""

    sequence: int
    channel_id: int
    messages: List[Tuple[int, bytes]] = field(default_factory=list)


@dataclass(frozen=True)
class SmallUnreliable:
    """Small unreliable messages aggregated in one packet."""

    sequence: int
    channel_id: int
    messages: List[bytes] = field(default_factory=list)


@dataclass(frozen=True)
class ReliableSlice:
    """One slice of a large reliable message."""

    sequence: int
    channel_id: int
    slice: Slice


@dataclass(frozen=True)
class UnreliableSlice:
    """One slice of a large unreliable message."""

    sequence: int
    channel_id: int
    slice: Slice


@dataclass(frozen=True)
class Ack:
    """Acknowledged packet sequences, as ascending non-overlapping ranges."""

    sequence: int
    ack_ranges: List[range] = field(default_factory=list)


Packet = Union[SmallReliable, SmallUnreliable, ReliableSlice, UnreliableSlice, Ack]


def varint_len(value: int) -> int:
    """Return the number of bytes needed to encode ``value`` as a variable-length integer."""
    if value < 0:
        raise ValueError(f"varint cannot be negative: {value}")
    if value <= 63:
        return 1
    if value <= 16_383:
        return 2
    if value <= 1_073_741_823:
        return 4
    if value <= _MAX_VARINT:
        return 8
    raise ValueError(f"value too large for a varint: {value}")


def encode_varint(value: int) -> bytes:
    """Encode ``value`` as a variable-length integer with a two-bit length prefix."""
    length = varint_len(value)
    raw = bytearray(value.to_bytes(length, "big"))
    raw[0] |= (length.bit_length() - 1) << 6
    return bytes(raw)


def _u8(value: int) -> bytes:
    return bytes([value])


def _u16(value: int) -> bytes:
    return (value & 0xFFFF).to_bytes(2, "big")


def _with_length(payload: bytes) -> bytes:
    return encode_varint(len(payload)) + bytes(payload)


def _encode_slice(packet_type: int, packet: Union[ReliableSlice, UnreliableSlice]) -> bytes:
    slice_ = packet.slice
    return b"".join(
        [
            _u8(packet_type),
            encode_varint(packet.sequence),
            _u8(packet.channel_id),
            encode_varint(slice_.message_id),
            encode_varint(slice_.slice_index),
            encode_varint(slice_.num_slices),
            _with_length(slice_.payload),
        ]
    )


def _encode_ack(packet: Ack) -> bytes:
    # Ranges are written from the last one backwards: the end and size of the last
    # range, the number of remaining ranges, then for each earlier range the gap to
    # the start of the one after it and its size. Gaps are usually small.
    if not packet.ack_ranges:
        raise ValueError("ack packet needs at least one range")
    *earlier, last = packet.ack_ranges
    parts = [
        _u8(_ACK),
        encode_varint(packet.sequence),
        encode_varint(last.stop - 1),
        encode_varint((last.stop - 1) - last.start),
        encode_varint(len(earlier)),
    ]
    previous_start = last.start
    for ack_range in reversed(earlier):
        parts.append(encode_varint(previous_start - ack_range.stop - 1))
        parts.append(encode_varint((ack_range.stop - 1) - ack_range.start))
        previous_start = ack_range.start
    return b"".join(parts)


def encode_packet(packet: Packet, max_size: Optional[int] = None) -> bytes:
    """Serialize a packet; raise SerializationError if it exceeds ``max_size`` bytes."""
    if isinstance(packet, SmallReliable):
        parts = [
            _u8(_SMALL_RELIABLE),
            encode_varint(packet.sequence),
            _u8(packet.channel_id),
            _u16(len(packet.messages)),
        ]
        for message_id, message in packet.messages:
            parts.append(encode_varint(message_id))
            parts.append(_with_length(message))
        data = b"".join(parts)
    elif isinstance(packet, SmallUnreliable):
        parts = [
            _u8(_SMALL_UNRELIABLE),
            encode_varint(packet.sequence),
            _u8(packet.channel_id),
            _u16(len(packet.messages)),
        ]
        parts.extend(_with_length(message) for message in packet.messages)
        data = b"".join(parts)
    elif isinstance(packet, ReliableSlice):
        data = _encode_slice(_RELIABLE_SLICE, packet)
    elif isinstance(packet, UnreliableSlice):
        data = _encode_slice(_UNRELIABLE_SLICE, packet)
    elif isinstance(packet, Ack):
        data = _encode_ack(packet)
    else:
        raise TypeError(f"not a packet: {packet!r}")

    if max_size is not None and len(data) > max_size:
        raise SerializationError(SerializationErrorKind.BUFFER_TOO_SHORT)
    return data


class _Reader:
    """Sequential reader over a byte buffer."""

    def __init__(self, data: bytes):
        self._data = memoryview(bytes(data))
        self._pos = 0

    def _take(self, count: int) -> bytes:
        end = self._pos + count
        if end > len(self._data):
            raise SerializationError(SerializationErrorKind.BUFFER_TOO_SHORT)
        chunk = self._data[self._pos:end].tobytes()
        self._pos = end
        return chunk

    def u8(self) -> int:
        return self._take(1)[0]

    def u16(self) -> int:
        return int.from_bytes(self._take(2), "big")

    def varint(self) -> int:
        first = self.u8()
        length = 1 << (first >> 6)
        rest = self._take(length - 1)
        return int.from_bytes(bytes([first & 0x3F]) + rest, "big")

    def bytes_with_length(self) -> bytes:
        return self._take(self.varint())


def _decode_slice(reader: _Reader, reliable: bool) -> Union[ReliableSlice, UnreliableSlice]:
    sequence = reader.varint()
    channel_id = reader.u8()
    message_id = reader.varint()
    slice_index = reader.varint()
    num_slices = reader.varint()
    if num_slices == 0 or num_slices > _MAX_NUM_SLICES:
        raise SerializationError(SerializationErrorKind.INVALID_NUM_SLICES)
    payload = reader.bytes_with_length()
    if reliable:
        if not payload:
            raise SerializationError(SerializationErrorKind.EMPTY_SLICE)
        if len(payload) > SLICE_SIZE:
            raise SerializationError(SerializationErrorKind.SLICE_SIZE_ABOVE_LIMIT)
    slice_ = Slice(message_id, slice_index, num_slices, payload)
    if reliable:
        return ReliableSlice(sequence, channel_id, slice_)
    return UnreliableSlice(sequence, channel_id, slice_)


def _decode_ack(reader: _Reader) -> Ack:
    sequence = reader.varint()
    first_range_end = reader.varint()
    first_range_size = reader.varint()
    num_remaining_ranges = reader.varint()
    if first_range_end < first_range_size:
        raise SerializationError(SerializationErrorKind.INVALID_ACK_RANGE)

    first_range_start = first_range_end - first_range_size
    ack_ranges = [range(first_range_start, first_range_end + 1)]
    previous_start = first_range_start
    for _ in range(num_remaining_ranges):
        gap = reader.varint()
        if previous_start < 2 + gap:
            raise SerializationError(SerializationErrorKind.INVALID_ACK_RANGE)
        range_end = previous_start - gap - 2
        range_size = reader.varint()
        if range_end < range_size:
            raise SerializationError(SerializationErrorKind.INVALID_ACK_RANGE)
        range_start = range_end - range_size
        ack_ranges.append(range(range_start, range_end + 1))
        previous_start = range_start

    ack_ranges.reverse()
    return Ack(sequence, ack_ranges)


def decode_packet(data: bytes) -> Packet:
    """Parse a packet from the start of ``data``; trailing bytes are ignored."""
    reader = _Reader(data)
    packet_type = reader.u8()
    if packet_type == _SMALL_RELIABLE:
        sequence = reader.varint()
        channel_id = reader.u8()
        count = reader.u16()
        messages = []
        for _ in range(count):
            message_id = reader.varint()
            messages.append((message_id, reader.bytes_with_length()))
        return SmallReliable(sequence, channel_id, messages)
    if packet_type == _SMALL_UNRELIABLE:
        sequence = reader.varint()
        channel_id = reader.u8()
        count = reader.u16()
        return SmallUnreliable(sequence, channel_id, [reader.bytes_with_length() for _ in range(count)])
    if packet_type == _RELIABLE_SLICE:
        return _decode_slice(reader, reliable=True)
    if packet_type == _UNRELIABLE_SLICE:
        return _decode_slice(reader, reliable=False)
    if packet_type == _ACK:
        return _decode_ack(reader)
    raise SerializationError(SerializationErrorKind.INVALID_PACKET_TYPE)