from datetime import timedelta

from renet.channels import SendContext
from renet.errors import SLICE_SIZE
from renet.packet import Slice, SmallUnreliable, UnreliableSlice, encode_packet
from renet.unreliable import ReceiveChannelUnreliable, SendChannelUnreliable

U64_MAX = (1 << 64) - 1
BIG = 1 << 62


def test_small_packet():
    context = SendContext()
    recv = ReceiveChannelUnreliable(0, 10000)
    send = SendChannelUnreliable(0, 10000)

    message1 = bytes([1, 2, 3])
    message2 = bytes([3, 4, 5])
    send.send_message(message1)
    send.send_message(message2)

    for packet in send.get_packets_to_send(context):
        assert isinstance(packet, SmallUnreliable)
        for message in packet.messages:
            recv.process_message(message)

    assert recv.receive_message() == message1
    assert recv.receive_message() == message2
    assert recv.receive_message() is None
    assert send.get_packets_to_send(context) == []


def test_slice_packet():
    context = SendContext()
    current_time = timedelta(0)
    recv = ReceiveChannelUnreliable(0, 10000)
    send = SendChannelUnreliable(0, 10000)

    message = bytes([5]) * (SLICE_SIZE * 3)
    send.send_message(message)

    packets = send.get_packets_to_send(context)
    assert len(packets) == 3
    for packet in packets:
        assert isinstance(packet, UnreliableSlice)
        recv.process_slice(packet.slice, current_time)

    assert recv.receive_message() == message
    assert recv.receive_message() is None
    assert send.get_packets_to_send(context) == []


def test_max_memory():
    context = SendContext()
    recv = ReceiveChannelUnreliable(0, 50)
    send = SendChannelUnreliable(0, 40)

    message = bytes([5]) * 50
    send.send_message(message)
    send.send_message(message)

    for packet in send.get_packets_to_send(context):
        assert isinstance(packet, SmallUnreliable)
        assert len(packet.messages) == 1
        for received in packet.messages:
            recv.process_message(received)

    assert recv.receive_message() is None


def test_max_memory_drops_on_send():
    send = SendChannelUnreliable(0, 40)
    send.send_message(bytes(50))
    assert send.get_packets_to_send(SendContext()) == []
    assert send.available_memory() == 40


def test_available_bytes():
    send = SendChannelUnreliable(0, U64_MAX)
    message = bytes(100)
    send.send_message(message)

    assert send.get_packets_to_send(SendContext(available_bytes=50)) == []
    assert send.get_packets_to_send(SendContext(available_bytes=U64_MAX)) == []

    send.send_message(message)
    send.send_message(message)
    assert len(send.get_packets_to_send(SendContext(available_bytes=100))) == 1
    assert send.get_packets_to_send(SendContext(available_bytes=U64_MAX)) == []


def test_small_packet_max_size():
    context = SendContext()
    send = SendChannelUnreliable(0, U64_MAX)
    message = bytes([0, 1, 2, 3])
    for _ in range(400):
        send.send_message(message)

    packets = send.get_packets_to_send(context)
    assert len(packets) == 2
    for packet in packets:
        assert len(encode_packet(packet, 1400)) < 1300


def test_sequences_advance_per_packet():
    context = SendContext()
    send = SendChannelUnreliable(2, BIG)
    send.send_message(bytes(SLICE_SIZE * 2))
    send.send_message(b"small")
    packets = send.get_packets_to_send(context)
    assert [p.sequence for p in packets] == [0, 1, 2]
    assert all(p.channel_id == 2 for p in packets)
    assert context.packet_sequence == 3


def test_memory_accounting():
    send = SendChannelUnreliable(0, 100)
    send.send_message(bytes(30))
    assert send.available_memory() == 70
    assert send.can_send_message(70)
    assert not send.can_send_message(71)
    send.get_packets_to_send(SendContext())
    assert send.available_memory() == 100


def test_discard_incomplete_old_slices_frees_memory():
    recv = ReceiveChannelUnreliable(0, SLICE_SIZE * 2)
    first = Slice(0, 0, 2, bytes(SLICE_SIZE))
    recv.process_slice(first, timedelta(0))

    # Channel is full while the incomplete message is held.
    other = Slice(1, 0, 2, bytes(SLICE_SIZE))
    recv.process_slice(other, timedelta(0))
    recv.process_slice(Slice(1, 1, 2, b"end"), timedelta(0))
    assert recv.receive_message() is None

    recv.discard_incomplete_old_slices(timedelta(seconds=1))
    recv.process_slice(Slice(2, 0, 2, bytes(SLICE_SIZE)), timedelta(seconds=1))
    recv.process_slice(Slice(2, 1, 2, b"end"), timedelta(seconds=1))
    assert recv.receive_message() is None

    recv.discard_incomplete_old_slices(timedelta(seconds=3))
    recv.process_slice(Slice(3, 0, 2, bytes(SLICE_SIZE)), timedelta(seconds=3))
    recv.process_slice(Slice(3, 1, 2, b"end"), timedelta(seconds=3))
    assert recv.receive_message() == bytes(SLICE_SIZE) + b"end"