"""Server side: one connection per client, plus connection events."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import timedelta
from typing import Deque, Dict, Iterator, List, Optional, Union

from .channels import ClientId
from .client import RenetClient
from .config import ConnectionConfig, NetworkInfo
from .errors import ClientNotFound, DisconnectKind, DisconnectReason

__all__ = ["ClientConnected", "ClientDisconnected", "ServerEvent", "RenetServer"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientConnected:
    """A client was added to the server."""

    client_id: ClientId


@dataclass(frozen=True)
class ClientDisconnected:
    """A client was removed from the server."""

    client_id: ClientId
    reason: DisconnectReason


ServerEvent = Union[ClientConnected, ClientDisconnected]


class RenetServer:
    """Holds a connection for every client and queues connection events."""

    def __init__(self, connection_config: ConnectionConfig):
        self._connection_config = connection_config.copy()
        self._connections: Dict[ClientId, RenetClient] = {}
        self._events: Deque[ServerEvent] = deque()

    def add_connection(self, client_id: ClientId, socket_is_reliable: bool) -> None:
        """Add a connection for ``client_id``.

        Does nothing if the client already has a connection with the same
        socket reliability; a change of reliability replaces the connection.
        """
        existing = self._connections.get(client_id)
        if existing is not None and existing.has_reliable_socket() == socket_is_reliable:
            return

        client = RenetClient.from_server_config(self._connection_config, socket_is_reliable)
        # Newly added connections count as connected.
        client.set_connected()
        self._connections[client_id] = client
        self._events.append(ClientConnected(client_id))

    def get_event(self) -> Optional[ServerEvent]:
        """Pop the oldest server event, or None if there is none."""
        return self._events.popleft() if self._events else None

    def has_connections(self) -> bool:
        """Whether the server holds any connection."""
        return bool(self._connections)

    def disconnect_reason(self, client_id: ClientId) -> Optional[DisconnectReason]:
        """The disconnection reason of the client, or None."""
        connection = self._connections.get(client_id)
        return connection.disconnect_reason() if connection is not None else None

    def rtt(self, client_id: ClientId) -> float:
        """Round-trip time of the client, or 0.0 if it is unknown."""
        connection = self._connections.get(client_id)
        return connection.rtt() if connection is not None else 0.0

    def packet_loss(self, client_id: ClientId) -> float:
        """Packet loss of the client, or 0.0 if it is unknown."""
        connection = self._connections.get(client_id)
        return connection.packet_loss() if connection is not None else 0.0

    def bytes_sent_per_sec(self, client_id: ClientId) -> float:
        """Bytes sent per second to the client, or 0.0 if it is unknown."""
        connection = self._connections.get(client_id)
        return connection.bytes_sent_per_sec() if connection is not None else 0.0

    def bytes_received_per_sec(self, client_id: ClientId) -> float:
        """Bytes received per second from the client, or 0.0 if it is unknown."""
        connection = self._connections.get(client_id)
        return connection.bytes_received_per_sec() if connection is not None else 0.0

    def _connection(self, client_id: ClientId) -> RenetClient:
        connection = self._connections.get(client_id)
        if connection is None:
            raise ClientNotFound(client_id)
        return connection

    def network_info(self, client_id: ClientId) -> NetworkInfo:
        """All statistics of the client; raises ClientNotFound."""
        return self._connection(client_id).network_info()

    def remove_connection(self, client_id: ClientId) -> None:
        """Remove a connection and emit a disconnect event; unknown ids are ignored."""
        connection = self._connections.pop(client_id, None)
        if connection is None:
            return
        reason = connection.disconnect_reason() or DisconnectReason(DisconnectKind.TRANSPORT)
        self._events.append(ClientDisconnected(client_id, reason))

    def disconnect(self, client_id: ClientId) -> None:
        """Disconnect a client; unknown ids are ignored."""
        connection = self._connections.get(client_id)
        if connection is not None:
            connection.disconnect_with_reason(DisconnectReason(DisconnectKind.DISCONNECTED_BY_SERVER))

    def disconnect_all(self) -> None:
        """Disconnect every client."""
        for connection in self._connections.values():
            connection.disconnect_with_reason(DisconnectReason(DisconnectKind.DISCONNECTED_BY_SERVER))

    def broadcast_message(self, channel_id: int, message: bytes) -> None:
        """Send a message to every client over a channel."""
        message = bytes(message)
        for connection in self._connections.values():
            connection.send_message(channel_id, message)

    def broadcast_message_except(self, except_id: ClientId, channel_id: int, message: bytes) -> None:
        """Send a message to every client but ``except_id`` over a channel."""
        message = bytes(message)
        for connection_id, connection in self._connections.items():
            if connection_id != except_id:
                connection.send_message(channel_id, message)

    def channel_available_memory(self, client_id: ClientId, channel_id: int) -> int:
        """Free bytes of a client's channel, or 0 if the client is unknown."""
        connection = self._connections.get(client_id)
        return connection.channel_available_memory(channel_id) if connection is not None else 0

    def can_send_message(self, client_id: ClientId, channel_id: int, size_bytes: int) -> bool:
        """Whether a message fits in a client's channel; False for an unknown client."""
        connection = self._connections.get(client_id)
        return connection.can_send_message(channel_id, size_bytes) if connection is not None else False

    def send_message(self, client_id: ClientId, channel_id: int, message: bytes) -> None:
        """Send a message to one client over a channel."""
        connection = self._connections.get(client_id)
        if connection is None:
            logger.error("Tried to send a message to invalid client %r", client_id)
            return
        connection.send_message(channel_id, message)

    def receive_message(self, client_id: ClientId, channel_id: int) -> Optional[bytes]:
        """Pop a message received from a client, or None."""
        connection = self._connections.get(client_id)
        return connection.receive_message(channel_id) if connection is not None else None

    def iter_client_ids(self) -> Iterator[ClientId]:
        """Iterate over the ids of connected clients."""
        return (cid for cid, c in list(self._connections.items()) if c.is_connected())

    def client_ids(self) -> List[ClientId]:
        """Ids of connected clients."""
        return list(self.iter_client_ids())

    def iter_disconnected_ids(self) -> Iterator[ClientId]:
        """Iterate over the ids of disconnected clients."""
        return (cid for cid, c in list(self._connections.items()) if c.is_disconnected())

    def disconnected_ids(self) -> List[ClientId]:
        """Ids of disconnected clients."""
        return list(self.iter_disconnected_ids())

    def connected_clients(self) -> int:
        """Number of connected clients."""
        return sum(1 for connection in self._connections.values() if connection.is_connected())

    def is_connected(self, client_id: ClientId) -> bool:
        """Whether the client exists and is connected."""
        connection = self._connections.get(client_id)
        return connection is not None and connection.is_connected()

    def update(self, duration: timedelta) -> None:
        """Advance every connection; call once per tick."""
        for connection in self._connections.values():
            connection.update(duration)

    def get_packets_to_send(self, client_id: ClientId) -> List[bytes]:
        """Packets to send to a client; raises ClientNotFound."""
        return self._connection(client_id).get_packets_to_send()

    def process_packet_from(self, payload: bytes, client_id: ClientId) -> None:
        """Handle a packet from a client; raises ClientNotFound."""
        self._connection(client_id).process_packet(payload)

    def new_local_client(self, client_id: ClientId) -> RenetClient:
        """Make an in-process client for ``client_id``, for testing.

        Drive it with :meth:`process_local_client`.
        """
        client = RenetClient.from_server_config(self._connection_config, False)
        client.set_connected()
        self.add_connection(client_id, False)
        return client

    def disconnect_local_client(self, client_id: ClientId, client: RenetClient) -> None:
        """Disconnect a client made by :meth:`new_local_client`."""
        if client.is_disconnected():
            return
        client.disconnect()
        if self._connections.pop(client_id, None) is not None:
            self._events.append(
                ClientDisconnected(client_id, DisconnectReason(DisconnectKind.DISCONNECTED_BY_CLIENT))
            )

    def process_local_client(self, client_id: ClientId, client: RenetClient) -> None:
        """Exchange packets between the server and a local client; raises ClientNotFound."""
        for packet in self.get_packets_to_send(client_id):
            client.process_packet(packet)
        for packet in client.get_packets_to_send():
            self.process_packet_from(packet, client_id)