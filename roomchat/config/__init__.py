from .config import (
    CLIENT_HOST,
    LOG_LEVEL,
    MAX_LINE_LENGTH,
    MAX_ROOMS,
    MAX_USERNAME_LENGTH,
    MAX_USERS,
    MAX_USERS_PER_ROOM,
    PREFERRED_PORT,
    SEND_QUEUE_SIZE,
    SERVER_HOST,
    SERVER_PORT_AUTO_FALLBACK,
)
from .ports import find_available_port

__all__ = [
    "CLIENT_HOST",
    "LOG_LEVEL",
    "MAX_LINE_LENGTH",
    "MAX_ROOMS",
    "MAX_USERNAME_LENGTH",
    "MAX_USERS",
    "MAX_USERS_PER_ROOM",
    "PREFERRED_PORT",
    "SEND_QUEUE_SIZE",
    "SERVER_HOST",
    "SERVER_PORT_AUTO_FALLBACK",
    "find_available_port",
]
