"""Server/client message protocol for multiplayer games, with reliable and unreliable channels."""

__version__ = "0.9.1"

__all__ = [
    "acks",
    "channels",
    "client",
    "config",
    "connection_stats",
    "errors",
    "packet",
    "reliable",
    "server",
    "slice_constructor",
    "unreliable",
]