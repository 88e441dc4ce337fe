from .auth import CredentialStore, hash_password
from .errors import ChatError, CredentialError, Disconnected, LineTooLongError
from .friends import DMStore, dm_key
from .protocol import LineConnection, format_chat, format_notice, send_line
from .rooms import Room, RoomRegistry
from .session import ClientSession
from .state import ConnectionGate, ServerState, SessionRegistry

__all__ = [
    "ChatError",
    "ClientSession",
    "ConnectionGate",
    "CredentialError",
    "CredentialStore",
    "DMStore",
    "Disconnected",
    "LineConnection",
    "LineTooLongError",
    "Room",
    "RoomRegistry",
    "ServerState",
    "SessionRegistry",
    "dm_key",
    "format_chat",
    "format_notice",
    "hash_password",
    "send_line",
]
