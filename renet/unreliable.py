"""Unreliable channels: messages may be lost or arrive out of order."""

from __future__ import annotations

import logging
from collections import deque
from datetime import timedelta
from typing import Deque, Dict, List, Optional

from .channels import SendContext
from .errors import SLICE_SIZE
from .packet import Packet, Slice, SmallUnreliable, UnreliableSlice, varint_len
from .slice_constructor import SliceConstructor

logger = logging.getLogger(__name__)

_DISCARD_AFTER = timedelta(seconds=3)


class SendChannelUnreliable:
    """Queues outgoing unreliable messages and turns them into packets."""

    def __init__(self, channel_id: int, max_memory_usage_bytes: int):
        self.channel_id = channel_id
        self.max_memory_usage_bytes = max_memory_usage_bytes
        self._messages: Deque[bytes] = deque()
        self._sliced_message_id = 0
        self._memory_usage_bytes = 0

    def can_send_message(self, size_bytes: int) -> bool:
        """Whether a message of ``size_bytes`` fits in the channel's memory."""
        return size_bytes + self._memory_usage_bytes <= self.max_memory_usage_bytes

    def available_memory(self) -> int:
        """Bytes still free in the channel."""
        return self.max_memory_usage_bytes - self._memory_usage_bytes

    def get_packets_to_send(self, context: SendContext) -> List[Packet]:
        """Drain the queue into packets; messages beyond the byte budget are dropped."""
        packets: List[Packet] = []
        small_messages: List[bytes] = []
        small_messages_bytes = 0

        while self._messages:
            message = self._messages.popleft()
            self._memory_usage_bytes -= len(message)
            if context.available_bytes < len(message):
                continue
            context.available_bytes -= len(message)

            if len(message) > SLICE_SIZE:
                num_slices = -(-len(message) // SLICE_SIZE)
                for slice_index in range(num_slices):
                    start = slice_index * SLICE_SIZE
                    payload = message[start:start + SLICE_SIZE]
                    slice_ = Slice(self._sliced_message_id, slice_index, num_slices, payload)
                    packets.append(UnreliableSlice(context.next_sequence(), self.channel_id, slice_))
                self._sliced_message_id += 1
            else:
                serialized_size = len(message) + varint_len(len(message))
                if small_messages_bytes + serialized_size > SLICE_SIZE:
                    packets.append(SmallUnreliable(context.next_sequence(), self.channel_id, small_messages))
                    small_messages = []
                    small_messages_bytes = 0
                small_messages_bytes += serialized_size
                small_messages.append(message)

        if small_messages:
            packets.append(SmallUnreliable(context.next_sequence(), self.channel_id, small_messages))
        return packets

    def send_message(self, message: bytes) -> None:
        """Queue a message, dropping it if the channel is out of memory."""
        message = bytes(message)
        if self._memory_usage_bytes + len(message) > self.max_memory_usage_bytes:
            logger.warning(
                "dropped unreliable message sent because channel %d is memory limited", self.channel_id
            )
            return

        num_fragments = len(message) // SLICE_SIZE
        if num_fragments > 20:
            logger.warning(
                "Sending an unreliable message with %d fragments, messages with this many fragments "
                "are susceptible to packet loss. Consider breaking your message into smaller ones "
                "or using a reliable channel",
                num_fragments,
            )

        self._memory_usage_bytes += len(message)
        self._messages.append(message)


class ReceiveChannelUnreliable:
    """Collects incoming unreliable messages and reassembles sliced ones."""

    def __init__(self, channel_id: int, max_memory_usage_bytes: int):
        self.channel_id = channel_id
        self.max_memory_usage_bytes = max_memory_usage_bytes
        self._messages: Deque[bytes] = deque()
        self._slices: Dict[int, SliceConstructor] = {}
        self._slices_last_received: Dict[int, timedelta] = {}
        self._memory_usage_bytes = 0

    def process_message(self, message: bytes) -> None:
        """Store a received message, dropping it if the channel is out of memory."""
        message = bytes(message)
        if self._memory_usage_bytes + len(message) > self.max_memory_usage_bytes:
            logger.warning(
                "dropped unreliable message received because channel %d is memory limited", self.channel_id
            )
            return
        self._memory_usage_bytes += len(message)
        self._messages.append(message)

    def process_slice(self, slice: Slice, current_time: timedelta) -> None:
        """Store a received slice; raises ChannelError for a malformed one."""
        message_id = slice.message_id
        if message_id not in self._slices:
            reserved = slice.num_slices * SLICE_SIZE
            if self._memory_usage_bytes + reserved > self.max_memory_usage_bytes:
                logger.warning(
                    "dropped unreliable slice message received because channel %d is memory limited",
                    self.channel_id,
                )
                return
            self._memory_usage_bytes += reserved
            self._slices[message_id] = SliceConstructor(message_id, slice.num_slices)

        message = self._slices[message_id].process_slice(slice.slice_index, slice.payload)
        if message is None:
            self._slices_last_received[message_id] = current_time
            return

        del self._slices[message_id]
        self._slices_last_received.pop(message_id, None)
        self._memory_usage_bytes -= slice.num_slices * SLICE_SIZE
        self._memory_usage_bytes += len(message)
        self._messages.append(message)

    def discard_incomplete_old_slices(self, current_time: timedelta) -> None:
        """Drop sliced messages whose last slice arrived too long ago."""
        lost: List[int] = []
        for message_id in sorted(self._slices_last_received):
            if current_time - self._slices_last_received[message_id] >= _DISCARD_AFTER:
                lost.append(message_id)
            else:
                break

        for message_id in lost:
            del self._slices_last_received[message_id]
            constructor = self._slices.pop(message_id)
            self._memory_usage_bytes -= constructor.num_slices * SLICE_SIZE

    def receive_message(self) -> Optional[bytes]:
        """Pop the oldest received message, or None if there is none."""
        if not self._messages:
            return None
        message = self._messages.popleft()
        self._memory_usage_bytes -= len(message)
        return message