"""Chat rooms and the room registry.

A room is a named, password-protected broadcast group with a bounded member
set. Joining, leaving and broadcasting on one room are serialized by that
room's lock; rooms never block each other. Rooms are never removed once
created.
"""

import itertools
import logging
import threading

from roomchat.core.errors import RoomExistsError, RoomLimitError
from roomchat.core.protocol import format_chat, format_notice

log = logging.getLogger(__name__)

JOINED = "joined the room"
LEFT = "left the room"


class Room:
    """A broadcast group.

    Members are session objects exposing ``username``, ``current_room`` and
    ``deliver(line)``. A member's ``current_room`` is set and cleared under
    this room's lock together with the membership change.

    Args:
        name: Unique room name
        password: Plain password, empty for an open room
        index: Creation index, never reused
        capacity: Maximum number of members
        created_by: Username of the creator
    """

    def __init__(self, name, password, index, capacity, created_by=None):
        self.name = name
        self.password = password
        self.index = index
        self.capacity = capacity
        self.created_by = created_by
        self._members = set()
        self._lock = threading.Lock()

    def __repr__(self):
        return f"Room({self.name!r}, index={self.index})"

    def __contains__(self, session):
        with self._lock:
            return session in self._members

    @property
    def is_open(self):
        return not self.password

    def check_password(self, password):
        return self.password == password

    def member_count(self):
        with self._lock:
            return len(self._members)

    def members(self):
        """Snapshot of the current members."""
        with self._lock:
            return set(self._members)

    def join(self, session):
        """Admit a session unless the room is at capacity.

        The capacity check and the insert are one atomic step, and the join
        notice goes out to the existing members before anyone else can
        speak in the room.

        Returns:
            True if the session is now a member, False if the room is full
        """
        with self._lock:
            if session in self._members:
                return True
            if len(self._members) >= self.capacity:
                return False
            self._members.add(session)
            session.current_room = self
            self._deliver(format_notice(f"{session.username} {JOINED}"), session)
            count = len(self._members)
        log.info("%s joined room %s (%d/%d)", session.username, self.name,
                 count, self.capacity)
        return True

    def leave(self, session):
        """Remove a session and tell the remaining members.

        Returns:
            True if the session was a member
        """
        with self._lock:
            if session not in self._members:
                return False
            self._members.discard(session)
            if session.current_room is self:
                session.current_room = None
            self._deliver(format_notice(f"{session.username} {LEFT}"), session)
        log.info("%s left room %s", session.username, self.name)
        return True

    def broadcast(self, text, sender):
        """Send a chat line from sender to every other member."""
        with self._lock:
            self._deliver(format_chat(sender.username, text), sender)

    def _deliver(self, line, sender):
        # Caller holds self._lock.
        for member in self._members:
            if member is not sender:
                member.deliver(line)


class RoomRegistry:
    """Thread-safe room name -> Room mapping with a room-count ceiling.

    Args:
        max_rooms: Maximum number of rooms that may ever be created
        room_capacity: Member ceiling given to every new room
    """

    def __init__(self, max_rooms, room_capacity):
        self.max_rooms = max_rooms
        self.room_capacity = room_capacity
        self._rooms = {}
        self._lock = threading.Lock()
        self._next_index = itertools.count()

    def __len__(self):
        with self._lock:
            return len(self._rooms)

    def __contains__(self, name):
        with self._lock:
            return name in self._rooms

    def get(self, name):
        with self._lock:
            return self._rooms.get(name)

    def rooms(self):
        """All rooms in creation order."""
        with self._lock:
            return list(self._rooms.values())

    def is_full(self):
        with self._lock:
            return len(self._rooms) >= self.max_rooms

    def create(self, name, password, created_by=None):
        """Register a new room.

        Raises:
            RoomExistsError: If the name is already taken
            RoomLimitError: If max_rooms rooms already exist

        Returns:
            The new Room
        """
        with self._lock:
            if name in self._rooms:
                raise RoomExistsError(name)
            if len(self._rooms) >= self.max_rooms:
                raise RoomLimitError(name)
            room = Room(name, password, next(self._next_index),
                        self.room_capacity, created_by=created_by)
            self._rooms[name] = room
        log.info("Room %s created by %s (%s)", name, created_by,
                 "open" if room.is_open else "password")
        return room
