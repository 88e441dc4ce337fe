"""Shared server state for roomchat.

Holds the process-wide registries every session reads and mutates: who is
online, the credential store, the rooms, the DM logs, and the connection
gate. A ServerState is created at server start and lives until shutdown;
nothing is persisted.
"""

import threading

from roomchat.config import MAX_ROOMS, MAX_USERS, MAX_USERS_PER_ROOM
from roomchat.core.auth import CredentialStore
from roomchat.core.friends import DMStore
from roomchat.core.rooms import RoomRegistry


class SessionRegistry:
    """Thread-safe username -> live session mapping."""

    def __init__(self):
        self._sessions = {}
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._sessions)

    def is_online(self, username):
        with self._lock:
            return username in self._sessions

    def get(self, username):
        with self._lock:
            return self._sessions.get(username)

    def usernames(self):
        with self._lock:
            return sorted(self._sessions)

    def register(self, username, session):
        """Mark a session as the live owner of username.

        Returns:
            True on success, False if another session already holds the name
        """
        with self._lock:
            if username in self._sessions:
                return False
            self._sessions[username] = session
            return True

    def unregister(self, username, session):
        """Remove username only if it still maps to this session.

        Returns:
            True if an entry was removed
        """
        with self._lock:
            if self._sessions.get(username) is not session:
                return False
            del self._sessions[username]
            return True


class ConnectionGate:
    """Global concurrent-connection counter with a fixed ceiling."""

    def __init__(self, max_users):
        self.max_users = max_users
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self):
        with self._lock:
            return self._count

    def try_acquire(self):
        """Take a slot if one is free.

        Returns:
            True if the caller now holds a slot, False if the server is full
        """
        with self._lock:
            if self._count >= self.max_users:
                return False
            self._count += 1
            return True

    def release(self):
        with self._lock:
            if self._count > 0:
                self._count -= 1
            return self._count


class ServerState:
    """All shared registries and limits for one running server."""

    def __init__(self, max_users=MAX_USERS, max_rooms=MAX_ROOMS,
                 max_users_per_room=MAX_USERS_PER_ROOM):
        self.credentials = CredentialStore()
        self.sessions = SessionRegistry()
        self.rooms = RoomRegistry(max_rooms, max_users_per_room)
        self.dms = DMStore()
        self.gate = ConnectionGate(max_users)
