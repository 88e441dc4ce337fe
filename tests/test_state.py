import threading

from roomchat.core.state import ConnectionGate, ServerState, SessionRegistry


def test_session_registry_register_and_unregister():
    registry = SessionRegistry()
    session = object()
    assert registry.register("alice", session)
    assert registry.is_online("alice")
    assert registry.get("alice") is session
    assert registry.unregister("alice", session)
    assert not registry.is_online("alice")
    assert not registry.unregister("alice", session)


def test_session_registry_refuses_second_live_session():
    registry = SessionRegistry()
    first, second = object(), object()
    assert registry.register("alice", first)
    assert not registry.register("alice", second)
    assert registry.get("alice") is first


def test_unregister_ignores_other_session():
    registry = SessionRegistry()
    first, stale = object(), object()
    registry.register("alice", first)
    assert not registry.unregister("alice", stale)
    assert registry.get("alice") is first


def test_concurrent_logins_for_same_name():
    registry = SessionRegistry()
    barrier = threading.Barrier(20)
    winners = []

    def worker():
        session = object()
        barrier.wait()
        if registry.register("dave", session):
            winners.append(session)

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(winners) == 1
    assert registry.get("dave") is winners[0]
    assert registry.usernames() == ["dave"]


def test_gate_enforces_ceiling():
    gate = ConnectionGate(2)
    assert gate.try_acquire()
    assert gate.try_acquire()
    assert not gate.try_acquire()
    assert gate.count == 2
    assert gate.release() == 1
    assert gate.try_acquire()


def test_gate_release_never_goes_negative():
    gate = ConnectionGate(1)
    assert gate.release() == 0
    assert gate.count == 0


def test_gate_under_concurrent_accepts():
    gate = ConnectionGate(10)
    barrier = threading.Barrier(50)
    admitted = []

    def worker():
        barrier.wait()
        if gate.try_acquire():
            admitted.append(1)

    threads = [threading.Thread(target=worker) for _ in range(50)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(admitted) == 10
    assert gate.count == 10


def test_server_state_limits():
    state = ServerState(max_users=3, max_rooms=4, max_users_per_room=5)
    assert state.gate.max_users == 3
    assert state.rooms.max_rooms == 4
    assert state.rooms.room_capacity == 5
    assert len(state.sessions) == 0
