import pytest

from renet.errors import SLICE_SIZE, ChannelError, ChannelErrorKind
from renet.slice_constructor import SliceConstructor


def _split(message):
    return [message[i:i + SLICE_SIZE] for i in range(0, len(message), SLICE_SIZE)]


def test_reassembles_in_order():
    message = bytes(range(256)) * 10
    chunks = _split(message)
    constructor = SliceConstructor(0, len(chunks))
    results = [constructor.process_slice(i, chunk) for i, chunk in enumerate(chunks)]
    assert results[:-1] == [None] * (len(chunks) - 1)
    assert results[-1] == message


def test_reassembles_out_of_order():
    message = b"ab" * (SLICE_SIZE * 2) + b"tail"
    chunks = _split(message)
    constructor = SliceConstructor(7, len(chunks))
    order = list(reversed(range(len(chunks))))
    result = None
    for i in order:
        result = constructor.process_slice(i, chunks[i])
    assert result == message


def test_duplicate_slice_is_ignored():
    message = b"x" * (SLICE_SIZE + 5)
    chunks = _split(message)
    constructor = SliceConstructor(1, 2)
    assert constructor.process_slice(0, chunks[0]) is None
    assert constructor.process_slice(0, chunks[0]) is None
    assert constructor.process_slice(1, chunks[1]) == message


def test_non_last_slice_must_be_full():
    constructor = SliceConstructor(0, 2)
    with pytest.raises(ChannelError) as info:
        constructor.process_slice(0, b"short")
    assert info.value.kind is ChannelErrorKind.INVALID_SLICE_MESSAGE


def test_last_slice_above_limit():
    constructor = SliceConstructor(0, 2)
    with pytest.raises(ChannelError) as info:
        constructor.process_slice(1, b"z" * (SLICE_SIZE + 1))
    assert info.value.kind is ChannelErrorKind.INVALID_SLICE_MESSAGE


def test_index_out_of_range():
    constructor = SliceConstructor(0, 2)
    with pytest.raises(ChannelError):
        constructor.process_slice(2, b"z" * SLICE_SIZE)


def test_single_full_slice():
    payload = b"q" * SLICE_SIZE
    constructor = SliceConstructor(3, 1)
    assert constructor.process_slice(0, payload) == payload