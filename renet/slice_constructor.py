"""Reassembly of messages that were split into slices."""

from __future__ import annotations

import logging
from typing import Optional

from .errors import SLICE_SIZE, ChannelError, ChannelErrorKind

logger = logging.getLogger(__name__)


class SliceConstructor:
    """Collects the slices of one message until all have arrived."""

    def __init__(self, message_id: int, num_slices: int):
        self.message_id = message_id
        self.num_slices = num_slices
        self._num_received = 0
        self._received = [False] * num_slices
        self._data = bytearray(num_slices * SLICE_SIZE)

    def process_slice(self, slice_index: int, payload: bytes) -> Optional[bytes]:
        """Store one slice; return the whole message once every slice is in.

        Raises ChannelError if the slice has an invalid index or size.
        """
        if not 0 <= slice_index < self.num_slices:
            logger.error(
                "Invalid slice index for SliceMessage, got %d, expected less than %d.",
                slice_index,
                self.num_slices,
            )
            raise ChannelError(ChannelErrorKind.INVALID_SLICE_MESSAGE)

        is_last = slice_index == self.num_slices - 1
        if is_last:
            if len(payload) > SLICE_SIZE:
                logger.error(
                    "Invalid last slice_size for SliceMessage, got %d, expected less than %d.",
                    len(payload),
                    SLICE_SIZE,
                )
                raise ChannelError(ChannelErrorKind.INVALID_SLICE_MESSAGE)
        elif len(payload) != SLICE_SIZE:
            logger.error("Invalid slice_size for SliceMessage, got %d, expected %d.", len(payload), SLICE_SIZE)
            raise ChannelError(ChannelErrorKind.INVALID_SLICE_MESSAGE)

        if not self._received[slice_index]:
            self._received[slice_index] = True
            self._num_received += 1
            start = slice_index * SLICE_SIZE
            if is_last:
                del self._data[start:]
                self._data.extend(payload)
            else:
                self._data[start:start + SLICE_SIZE] = payload
            logger.debug(
                "Received slice %d from message %d. (%d/%d)",
                slice_index,
                self.message_id,
                self._num_received,
                self.num_slices,
            )

        if self._num_received == self.num_slices:
            logger.debug("Received all slices for message %d.", self.message_id)
            message = bytes(self._data)
            self._data = bytearray()
            return message
        return None