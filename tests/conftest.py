import socket

import pytest

from roomchat.core.state import ServerState
from roomchat.server import accept_connection

TIMEOUT = 3.0


class Peer:
    """Test-side end of a client connection, read line by line."""

    def __init__(self, sock, thread):
        self.sock = sock
        self.sock.settimeout(TIMEOUT)
        self.file = sock.makefile("r", encoding="utf-8")
        self.thread = thread
        self.lines = []

    def send(self, *lines):
        for line in lines:
            self.sock.sendall((line + "\n").encode("utf-8"))

    def read_line(self):
        raw = self.file.readline()
        if not raw:
            return None
        line = raw.rstrip("\r\n")
        self.lines.append(line)
        return line

    def read_until(self, text, exact=False):
        """Read lines up to and including the first one matching text."""
        seen = []
        while True:
            line = self.read_line()
            if line is None:
                raise AssertionError(
                    f"stream closed while waiting for {text!r}; last lines: {seen[-10:]}")
            seen.append(line)
            if (line == text) if exact else (text in line):
                return seen

    def expect(self, text, exact=False):
        return self.read_until(text, exact=exact)[-1]

    def login(self, username, password):
        self.expect("Enter username")
        self.send(username)
        self.expect("password:")
        self.send(password)
        self.expect(f"Login successful! Welcome {username}")
        self.expect("Enter:", exact=True)

    def create_room(self, name, password=""):
        self.send("2")
        self.expect("Enter new room name")
        self.send(name)
        self.expect(f"Set password for '{name}':")
        self.send(password)
        self.expect(f"You're in '{name}'")

    def join_room(self, name, password=""):
        self.send("1")
        self.expect("Enter room name")
        self.send(name)
        self.expect("Enter password")
        self.send(password)
        self.expect(f"You're in '{name}'")

    def add_friend(self, name):
        self.send("2")
        self.expect("Enter your friend's username")
        self.send(name)
        self.expect(f"{name} has been added to your friend list.")
        self.expect("Enter:", exact=True)

    def close(self):
        try:
            self.file.close()
        finally:
            self.sock.close()
        if self.thread is not None:
            self.thread.join(TIMEOUT)


@pytest.fixture
def state():
    return ServerState(max_users=5, max_rooms=3, max_users_per_room=2)


@pytest.fixture
def connect(state):
    peers = []

    def _connect(server_state=None):
        server_side, client_side = socket.socketpair()
        thread = accept_connection(
            server_state or state, server_side, ("test", len(peers)))
        peer = Peer(client_side, thread)
        peers.append(peer)
        return peer

    yield _connect
    for peer in peers:
        peer.close()
