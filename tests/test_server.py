import socket

from roomchat.core.state import ServerState
from roomchat.server import accept_connection, describe


def test_describe_address():
    assert describe(("127.0.0.1", 5000)) == "127.0.0.1:5000"
    assert describe(None) == "local"


def test_gate_rejects_when_full(connect):
    state = ServerState(max_users=1)
    first = connect(state)
    first.expect("Enter username")

    rejected = connect(state)
    assert rejected.thread is None
    line = rejected.read_line()
    assert "Maximum users (1)" in line
    assert rejected.read_line() is None
    assert state.gate.count == 1


def test_slot_is_released_on_disconnect(connect):
    state = ServerState(max_users=1)
    first = connect(state)
    first.expect("Enter username")
    first.close()
    assert state.gate.count == 0

    second = connect(state)
    second.expect("Enter username")
    assert state.gate.count == 1


def test_rejection_does_not_touch_counter():
    state = ServerState(max_users=0)
    server_side, client_side = socket.socketpair()
    try:
        assert accept_connection(state, server_side, ("test", 1)) is None
        assert state.gate.count == 0
        client_side.settimeout(3.0)
        assert b"Maximum users" in client_side.recv(128)
    finally:
        client_side.close()
