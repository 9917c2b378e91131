import pytest

from renet.errors import (
    ChannelError,
    ChannelErrorKind,
    ClientNotFound,
    DisconnectKind,
    DisconnectReason,
    SerializationError,
    SerializationErrorKind,
)


def test_serialization_error_messages():
    assert str(SerializationError(SerializationErrorKind.BUFFER_TOO_SHORT)) == "buffer too short"
    assert str(SerializationError(SerializationErrorKind.INVALID_ACK_RANGE)) == "invalid ack range"
    assert (
        str(SerializationError(SerializationErrorKind.SLICE_SIZE_ABOVE_LIMIT))
        == "invalid slice size, it's above the limit of 1200 bytes"
    )
    assert str(SerializationError(SerializationErrorKind.EMPTY_SLICE)) == "invalid slice, slices cannot be empty"


def test_channel_error_messages():
    assert (
        str(ChannelError(ChannelErrorKind.RELIABLE_CHANNEL_MAX_MEMORY_REACHED))
        == "reliable channel memory usage was exausted"
    )
    assert str(ChannelError(ChannelErrorKind.INVALID_SLICE_MESSAGE)) == "received an invalid slice packet"


def test_errors_compare_by_kind():
    a = SerializationError(SerializationErrorKind.EMPTY_SLICE)
    b = SerializationError(SerializationErrorKind.EMPTY_SLICE)
    c = SerializationError(SerializationErrorKind.INVALID_NUM_SLICES)
    assert a == b
    assert hash(a) == hash(b)
    assert a != c


def test_serialization_error_can_be_raised_and_caught():
    error = SerializationError(SerializationErrorKind.INVALID_PACKET_TYPE)
    assert error.kind is SerializationErrorKind.INVALID_PACKET_TYPE
    assert str(error) == "invalid packet type"
    with pytest.raises(SerializationError, match="invalid packet type"):
        raise error


def test_disconnect_reason_simple_messages():
    assert str(DisconnectReason(DisconnectKind.TRANSPORT)) == "connection terminated by the transport layer"
    assert str(DisconnectReason(DisconnectKind.DISCONNECTED_BY_CLIENT)) == "connection terminated by the client"
    assert str(DisconnectReason(DisconnectKind.DISCONNECTED_BY_SERVER)) == "connection terminated by the server"


def test_disconnect_reason_with_errors():
    reason = DisconnectReason(
        DisconnectKind.PACKET_DESERIALIZATION,
        error=SerializationError(SerializationErrorKind.BUFFER_TOO_SHORT),
    )
    assert str(reason) == "failed to deserialize packet: buffer too short"

    reason = DisconnectReason(
        DisconnectKind.SEND_CHANNEL_ERROR,
        channel_id=2,
        error=ChannelError(ChannelErrorKind.RELIABLE_CHANNEL_MAX_MEMORY_REACHED),
    )
    assert str(reason) == "send channel 2 with error: reliable channel memory usage was exausted"

    reason = DisconnectReason(DisconnectKind.RECEIVED_INVALID_CHANNEL_ID, channel_id=9)
    assert str(reason) == "received message with invalid channel 9"


def test_disconnect_reason_equality():
    first = DisconnectReason(
        DisconnectKind.RECEIVE_CHANNEL_ERROR,
        channel_id=1,
        error=ChannelError(ChannelErrorKind.INVALID_SLICE_MESSAGE),
    )
    second = DisconnectReason(
        DisconnectKind.RECEIVE_CHANNEL_ERROR,
        channel_id=1,
        error=ChannelError(ChannelErrorKind.INVALID_SLICE_MESSAGE),
    )
    assert first == second
    assert first != DisconnectReason(DisconnectKind.TRANSPORT)


def test_disconnect_reason_requires_details():
    with pytest.raises(ValueError):
        DisconnectReason(DisconnectKind.SEND_CHANNEL_ERROR)
    with pytest.raises(ValueError):
        DisconnectReason(DisconnectKind.PACKET_SERIALIZATION)
    with pytest.raises(ValueError):
        DisconnectReason(
            DisconnectKind.RECEIVE_CHANNEL_ERROR,
            channel_id=0,
            error=SerializationError(SerializationErrorKind.EMPTY_SLICE),
        )


def test_client_not_found():
    error = ClientNotFound(42)
    assert error.client_id == 42
    assert str(error) == "client with given id was not found"
    with pytest.raises(ClientNotFound, match="client with given id was not found"):
        raise error