"""roomchat: a multi-room, line-based TCP chat server."""

__version__ = "1.0.0"
