# renet

A server/client message protocol for multiplayer games. Messages travel over
numbered channels, each of which is unreliable, reliable and ordered, or
reliable and unordered. Messages larger than 1200 bytes are split into slices
and reassembled on the other side; reliable packets are resent until they are
acknowledged, and acknowledgements drive round-trip-time and packet-loss
estimates.

The package has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Channels

`renet.channels.DefaultChannel.config()` gives three channels:

| channel | id | delivery |
|---|---|---|
| `DefaultChannel.UNRELIABLE` | 0 | may be lost or reordered |
| `DefaultChannel.RELIABLE_UNORDERED` | 1 | guaranteed, any order |
| `DefaultChannel.RELIABLE_ORDERED` | 2 | guaranteed, in order |

Each uses 5 MiB of memory at most and, when reliable, a resend time of
300 ms. You can build your own list of `ChannelConfig(channel_id,
max_memory_usage_bytes, send_type, resend_time)` values with a `SendType` and
pass it to `renet.config.ConnectionConfig.from_channels(server, client)` or
`ConnectionConfig.from_shared_channels(channels)`. `ConnectionConfig.test()`
uses the default channels on both sides. The order of the channels sets their
priority for the per-tick byte budget, `available_bytes_per_tick` (60 000 by
default).

A client created with `has_reliable_socket=True` (for sockets that are
reliable themselves) turns every channel into an unreliable one.

## Example

```python
from renet.channels import DefaultChannel
from renet.client import RenetClient
from renet.config import ConnectionConfig
from renet.server import ClientConnected, RenetServer

server = RenetServer(ConnectionConfig.test())
client = RenetClient(ConnectionConfig.test(), False)

server.add_connection(42, False)
assert isinstance(server.get_event(), ClientConnected)

server.send_message(42, DefaultChannel.RELIABLE_ORDERED, b"hello")

# The transport carries the packets; here they go straight across.
for packet in server.get_packets_to_send(42):
    client.process_packet(packet)

print(client.receive_message(DefaultChannel.RELIABLE_ORDERED))  # b'hello'
```

Call `update(duration)` on clients and on the server every tick, with the
time elapsed since the previous tick as a `datetime.timedelta`. This drives
resends, forgets packets unacknowledged for 3 seconds, drops incomplete
unreliable slices after 3 seconds, and keeps the statistics current:
`rtt()` (seconds), `packet_loss()`, `bytes_sent_per_sec()`,
`bytes_received_per_sec()` and `network_info()`, which returns a
`NetworkInfo`. The server offers the same methods taking a client id.

Server events are `ClientConnected` and `ClientDisconnected`, popped with
`RenetServer.get_event()`.

For tests and single-process play, `RenetServer.new_local_client(client_id)`
creates a client paired with the server, `process_local_client(client_id,
client)` exchanges their packets in memory, and
`disconnect_local_client(client_id, client)` ends the pairing.

## Lower-level pieces

- `renet.packet`: the packet types (`SmallReliable`, `SmallUnreliable`,
  `ReliableSlice`, `UnreliableSlice`, `Ack`) and `encode_packet` /
  `decode_packet` for the wire format.
- `renet.reliable` and `renet.unreliable`: the send and receive channels.
- `renet.slice_constructor.SliceConstructor`: reassembly of sliced messages.
- `renet.connection_stats.ConnectionStats`: windowed throughput and loss.
- `renet.acks.PendingAcks`: the ranges of received sequences still to
  acknowledge.

## Errors and disconnections

Malformed packets, received messages on channels that do not exist and
exhausted reliable-channel memory do not raise: they disconnect the
connection, and `disconnect_reason()` returns a `DisconnectReason` saying
why. Calling `send_message`, `receive_message`, `channel_available_memory` or
`can_send_message` on a client with a channel id it was not configured with
raises `ValueError`. Asking the server for the packets or network info of a
client it does not know, or handing it a packet from one, raises
`ClientNotFound`.

## What this package does not do

It opens no sockets and has no transport, connection handshake,
authentication or encryption, and it installs no command. Your own code
moves the byte packets returned by `get_packets_to_send()` and feeds
incoming ones to `process_packet()` / `process_packet_from()`, and tells the
server of new and lost clients with `add_connection()` and
`remove_connection()`.