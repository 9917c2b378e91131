import pytest

from renet.channels import DefaultChannel
from renet.client import RenetClient
from renet.config import ConnectionConfig
from renet.errors import ClientNotFound, DisconnectKind, DisconnectReason
from renet.server import ClientConnected, ClientDisconnected, RenetServer


def test_remote_connection_reliable_channel():
    server = RenetServer(ConnectionConfig.test())
    client = RenetClient(ConnectionConfig.test(), False)

    client_id = 0
    server.add_connection(client_id, False)
    assert server.connected_clients() == 1
    assert server.has_connections()
    assert server.get_event() == ClientConnected(client_id)

    for _ in range(200):
        server.send_message(client_id, DefaultChannel.RELIABLE_ORDERED, b"test")

    for packet in server.get_packets_to_send(client_id):
        assert len(packet) < 1300
        client.process_packet(packet)

    assert client.disconnect_reason() is None

    count = 0
    while (message := client.receive_message(DefaultChannel.RELIABLE_ORDERED)) is not None:
        assert message == b"test"
        count += 1
    assert count == 200

    big = b"test" * 1000
    for _ in range(10):
        server.send_message(client_id, DefaultChannel.RELIABLE_ORDERED, big)

    for packet in server.get_packets_to_send(client_id):
        assert len(packet) < 1300
        client.process_packet(packet)

    count = 0
    while (message := client.receive_message(DefaultChannel.RELIABLE_ORDERED)) is not None:
        assert message == big
        count += 1
    assert count == 10

    server.remove_connection(client_id)
    assert server.connected_clients() == 0
    assert not server.has_connections()
    assert server.get_event() == ClientDisconnected(client_id, DisconnectReason(DisconnectKind.TRANSPORT))


def test_local_client():
    server = RenetServer(ConnectionConfig.test())
    client_id = 0
    client = server.new_local_client(client_id)

    assert server.get_event() == ClientConnected(client_id)

    server.send_message(client_id, DefaultChannel.RELIABLE_ORDERED, b"test server")
    client.send_message(DefaultChannel.RELIABLE_ORDERED, b"test client")
    server.process_local_client(client_id, client)

    assert server.receive_message(client_id, DefaultChannel.RELIABLE_ORDERED) == b"test client"
    assert client.receive_message(DefaultChannel.RELIABLE_ORDERED) == b"test server"

    server.disconnect_local_client(client_id, client)
    assert client.is_disconnected()
    assert server.get_event() == ClientDisconnected(
        client_id, DisconnectReason(DisconnectKind.DISCONNECTED_BY_CLIENT)
    )


def test_get_event_empty_returns_none():
    server = RenetServer(ConnectionConfig.test())
    assert server.get_event() is None


def test_unknown_client_queries():
    server = RenetServer(ConnectionConfig.test())
    assert server.rtt(7) == 0.0
    assert server.packet_loss(7) == 0.0
    assert server.bytes_sent_per_sec(7) == 0.0
    assert server.bytes_received_per_sec(7) == 0.0
    assert server.channel_available_memory(7, DefaultChannel.UNRELIABLE) == 0
    assert server.can_send_message(7, DefaultChannel.UNRELIABLE, 10) is False
    assert server.receive_message(7, DefaultChannel.UNRELIABLE) is None
    assert server.disconnect_reason(7) is None
    assert server.is_connected(7) is False


def test_unknown_client_raises():
    server = RenetServer(ConnectionConfig.test())
    with pytest.raises(ClientNotFound):
        server.get_packets_to_send(3)
    with pytest.raises(ClientNotFound):
        server.process_packet_from(b"\x00", 3)
    with pytest.raises(ClientNotFound):
        server.network_info(3)


def test_channel_memory_for_known_client():
    server = RenetServer(ConnectionConfig.test())
    server.add_connection(1, False)
    assert server.channel_available_memory(1, DefaultChannel.RELIABLE_ORDERED) == 5 * 1024 * 1024
    assert server.can_send_message(1, DefaultChannel.RELIABLE_ORDERED, 100) is True
    server.send_message(1, DefaultChannel.RELIABLE_ORDERED, b"x" * 100)
    assert server.channel_available_memory(1, DefaultChannel.RELIABLE_ORDERED) == 5 * 1024 * 1024 - 100


def test_add_connection_same_reliability_is_ignored():
    server = RenetServer(ConnectionConfig.test())
    server.add_connection(1, False)
    server.add_connection(1, False)
    assert server.get_event() == ClientConnected(1)
    assert server.get_event() is None


def test_add_connection_changed_reliability_replaces():
    server = RenetServer(ConnectionConfig.test())
    server.add_connection(1, False)
    server.add_connection(1, True)
    assert server.get_event() == ClientConnected(1)
    assert server.get_event() == ClientConnected(1)
    assert server.connected_clients() == 1


def test_disconnect_and_ids():
    server = RenetServer(ConnectionConfig.test())
    server.add_connection(1, False)
    server.add_connection(2, False)
    server.disconnect(1)

    assert server.client_ids() == [2]
    assert server.disconnected_ids() == [1]
    assert list(server.iter_client_ids()) == [2]
    assert list(server.iter_disconnected_ids()) == [1]
    assert server.is_connected(1) is False
    assert server.is_connected(2) is True
    assert server.disconnect_reason(1) == DisconnectReason(DisconnectKind.DISCONNECTED_BY_SERVER)

    server.remove_connection(1)
    server.get_event()
    server.get_event()
    assert server.get_event() == ClientDisconnected(1, DisconnectReason(DisconnectKind.DISCONNECTED_BY_SERVER))


def test_disconnect_all():
    server = RenetServer(ConnectionConfig.test())
    for client_id in (1, 2, 3):
        server.add_connection(client_id, False)
    server.disconnect_all()
    assert server.connected_clients() == 0
    assert sorted(server.disconnected_ids()) == [1, 2, 3]


def test_remove_unknown_connection_emits_nothing():
    server = RenetServer(ConnectionConfig.test())
    server.remove_connection(42)
    assert server.get_event() is None


def test_broadcast_message_except():
    server = RenetServer(ConnectionConfig.test())
    first = server.new_local_client(1)
    second = server.new_local_client(2)

    server.broadcast_message_except(1, DefaultChannel.UNRELIABLE, b"hello")
    server.process_local_client(1, first)
    server.process_local_client(2, second)

    assert first.receive_message(DefaultChannel.UNRELIABLE) is None
    assert second.receive_message(DefaultChannel.UNRELIABLE) == b"hello"


def test_broadcast_message_reaches_all():
    server = RenetServer(ConnectionConfig.test())
    clients = {client_id: server.new_local_client(client_id) for client_id in (1, 2)}

    server.broadcast_message(DefaultChannel.RELIABLE_UNORDERED, b"all")
    for client_id, client in clients.items():
        server.process_local_client(client_id, client)

    assert [c.receive_message(DefaultChannel.RELIABLE_UNORDERED) for c in clients.values()] == [b"all", b"all"]


def test_disconnect_local_client_twice_emits_one_event():
    server = RenetServer(ConnectionConfig.test())
    client = server.new_local_client(5)
    server.get_event()
    server.disconnect_local_client(5, client)
    server.disconnect_local_client(5, client)
    assert server.get_event() == ClientDisconnected(5, DisconnectReason(DisconnectKind.DISCONNECTED_BY_CLIENT))
    assert server.get_event() is None


def test_network_info_for_known_client():
    server = RenetServer(ConnectionConfig.test())
    server.add_connection(1, False)
    info = server.network_info(1)
    assert info.rtt == 0.0
    assert info.packet_loss == 0.0