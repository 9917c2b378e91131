"""Reliable channels: messages are resent until acknowledged."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, List, Optional, Set, Tuple, Union

from .channels import SendContext
from .errors import SLICE_SIZE, ChannelError, ChannelErrorKind
from .packet import Packet, ReliableSlice, Slice, SmallReliable, varint_len
from .slice_constructor import SliceConstructor

__all__ = ["SendChannelReliable", "ReceiveChannelReliable"]


@dataclass
class _SmallMessage:
    message: bytes
    last_sent: Optional[timedelta] = None


@dataclass
class _SlicedMessage:
    message: bytes
    num_slices: int
    acked: List[bool] = field(default_factory=list)
    last_sent: List[Optional[timedelta]] = field(default_factory=list)
    num_acked_slices: int = 0
    next_slice_to_send: int = 0

    @classmethod
    def from_payload(cls, payload: bytes) -> "_SlicedMessage":
        num_slices = -(-len(payload) // SLICE_SIZE)
        return cls(
            message=payload,
            num_slices=num_slices,
            acked=[False] * num_slices,
            last_sent=[None] * num_slices,
        )


_Unacked = Union[_SmallMessage, _SlicedMessage]


def _max_memory_error() -> ChannelError:
    return ChannelError(ChannelErrorKind.RELIABLE_CHANNEL_MAX_MEMORY_REACHED)


class SendChannelReliable:
    """Keeps outgoing reliable messages until every part of them is acknowledged."""

    def __init__(self, channel_id: int, resend_time: timedelta, max_memory_usage_bytes: int):
        self.channel_id = channel_id
        self.resend_time = resend_time
        self.max_memory_usage_bytes = max_memory_usage_bytes
        # Message ids only grow, so insertion order is ascending id order.
        self._unacked: Dict[int, _Unacked] = {}
        self._next_message_id = 0
        self._memory_usage_bytes = 0

    def available_memory(self) -> int:
        """Bytes still free in the channel."""
        return self.max_memory_usage_bytes - self._memory_usage_bytes

    def can_send_message(self, size_bytes: int) -> bool:
        """Whether a message of ``size_bytes`` fits in the channel's memory."""
        return size_bytes + self._memory_usage_bytes <= self.max_memory_usage_bytes

    def get_packets_to_send(self, context: SendContext, current_time: timedelta) -> List[Packet]:
        """Build packets for messages never sent or due for a resend, within the byte budget."""
        if not self._unacked:
            return []

        packets: List[Packet] = []
        small_messages: List[Tuple[int, bytes]] = []
        small_messages_bytes = 0

        for message_id, unacked in self._unacked.items():
            if isinstance(unacked, _SlicedMessage):
                packets.extend(self._slice_packets(message_id, unacked, context, current_time))
                continue

            size = len(unacked.message)
            if context.available_bytes < size:
                continue
            if unacked.last_sent is not None and current_time - unacked.last_sent < self.resend_time:
                continue

            context.available_bytes -= size
            serialized_size = size + varint_len(size) + varint_len(message_id)
            if small_messages_bytes + serialized_size > SLICE_SIZE:
                packets.append(SmallReliable(context.next_sequence(), self.channel_id, small_messages))
                small_messages = []
                small_messages_bytes = 0

            small_messages_bytes += serialized_size
            small_messages.append((message_id, unacked.message))
            unacked.last_sent = current_time

        if small_messages:
            packets.append(SmallReliable(context.next_sequence(), self.channel_id, small_messages))
        return packets

    def _slice_packets(
        self,
        message_id: int,
        sliced: _SlicedMessage,
        context: SendContext,
        current_time: timedelta,
    ) -> List[Packet]:
        packets: List[Packet] = []
        start_index = sliced.next_slice_to_send
        for offset in range(sliced.num_slices):
            if context.available_bytes < SLICE_SIZE:
                break
            i = (start_index + offset) % sliced.num_slices
            if sliced.acked[i]:
                continue
            last_sent = sliced.last_sent[i]
            if last_sent is not None and current_time - last_sent < self.resend_time:
                continue

            payload = sliced.message[i * SLICE_SIZE:(i + 1) * SLICE_SIZE]
            context.available_bytes -= len(payload)
            slice_ = Slice(message_id, i, sliced.num_slices, payload)
            packets.append(ReliableSlice(context.next_sequence(), self.channel_id, slice_))
            sliced.last_sent[i] = current_time
            sliced.next_slice_to_send = i + 1
        return packets

    def send_message(self, message: bytes) -> None:
        """Queue a message; raises ChannelError if the channel is out of memory."""
        message = bytes(message)
        if self._memory_usage_bytes + len(message) > self.max_memory_usage_bytes:
            raise _max_memory_error()

        self._memory_usage_bytes += len(message)
        if len(message) > SLICE_SIZE:
            unacked: _Unacked = _SlicedMessage.from_payload(message)
        else:
            unacked = _SmallMessage(message)
        self._unacked[self._next_message_id] = unacked
        self._next_message_id += 1

    def process_message_ack(self, message_id: int) -> None:
        """Forget a small message once it is acknowledged."""
        unacked = self._unacked.get(message_id)
        if unacked is None:
            return
        if not isinstance(unacked, _SmallMessage):
            raise ValueError(f"message {message_id} is sliced, not small")
        del self._unacked[message_id]
        self._memory_usage_bytes -= len(unacked.message)

    def process_slice_message_ack(self, message_id: int, slice_index: int) -> None:
        """Mark one slice acknowledged, forgetting the message once all slices are."""
        unacked = self._unacked.get(message_id)
        if unacked is None:
            return
        if not isinstance(unacked, _SlicedMessage):
            raise ValueError(f"message {message_id} is small, not sliced")
        if unacked.acked[slice_index]:
            return

        unacked.acked[slice_index] = True
        unacked.num_acked_slices += 1
        if unacked.num_acked_slices == unacked.num_slices:
            self._memory_usage_bytes -= len(unacked.message)
            del self._unacked[message_id]


class ReceiveChannelReliable:
    """Collects reliable messages, delivering them in order or as they arrive."""

    def __init__(self, max_memory_usage_bytes: int, ordered: bool):
        self.max_memory_usage_bytes = max_memory_usage_bytes
        self.ordered = ordered
        self._slices: Dict[int, SliceConstructor] = {}
        self._messages: Dict[int, bytes] = {}
        self._oldest_pending_message_id = 0
        self._most_recent_message_id = 0
        self._received_messages: Set[int] = set()
        self._memory_usage_bytes = 0

    def _reserve(self, size: int) -> None:
        if self._memory_usage_bytes + size > self.max_memory_usage_bytes:
            raise _max_memory_error()
        self._memory_usage_bytes += size

    def process_message(self, message: bytes, message_id: int) -> None:
        """Store a received message; raises ChannelError if the channel is out of memory."""
        if message_id < self._oldest_pending_message_id:
            return
        message = bytes(message)

        if self.ordered:
            if message_id not in self._messages:
                self._reserve(len(message))
                self._messages[message_id] = message
            return

        self._most_recent_message_id = max(self._most_recent_message_id, message_id)
        if message_id not in self._received_messages:
            self._reserve(len(message))
            self._received_messages.add(message_id)
            self._messages[message_id] = message

    def process_slice(self, slice: Slice) -> None:
        """Store a received slice; raises ChannelError on a bad slice or when out of memory."""
        message_id = slice.message_id
        if message_id in self._messages or message_id < self._oldest_pending_message_id:
            return

        reserved = slice.num_slices * SLICE_SIZE
        if message_id not in self._slices:
            self._reserve(reserved)
            self._slices[message_id] = SliceConstructor(message_id, slice.num_slices)

        message = self._slices[message_id].process_slice(slice.slice_index, slice.payload)
        if message is None:
            return

        # The reservation is replaced by the message's exact size.
        self._memory_usage_bytes -= reserved
        self.process_message(message, message_id)
        del self._slices[message_id]

    def receive_message(self) -> Optional[bytes]:
        """Pop the next deliverable message, or None if there is none."""
        if self.ordered:
            message = self._messages.pop(self._oldest_pending_message_id, None)
            if message is None:
                return None
            self._oldest_pending_message_id += 1
            self._memory_usage_bytes -= len(message)
            return message

        if not self._messages:
            return None
        message_id = min(self._messages)
        message = self._messages.pop(message_id)
        if message_id == self._oldest_pending_message_id:
            # Skip past ids that arrived out of order and were already delivered.
            while self._oldest_pending_message_id in self._received_messages:
                self._received_messages.remove(self._oldest_pending_message_id)
                self._oldest_pending_message_id += 1
        self._memory_usage_bytes -= len(message)
        return message