"""A multi-threaded TCP game server with a room, wandering monsters and a binary packet protocol."""

__version__ = "0.1.0"