import threading

from roomchat.core.friends import DMStore, dm_key


def test_dm_key_is_order_independent():
    assert dm_key("alice", "bob") == dm_key("bob", "alice") == "alice::bob"


def test_dm_key_distinguishes_pairs():
    assert dm_key("alice", "bob") != dm_key("alice", "carol")


def test_both_directions_share_one_log():
    store = DMStore()
    store.append(dm_key("alice", "bob"), "[alice]: hi")
    store.append(dm_key("bob", "alice"), "[bob]: hello")
    store.append(dm_key("alice", "bob"), "[alice]: bye")

    expected = ["[alice]: hi", "[bob]: hello", "[alice]: bye"]
    assert store.history(dm_key("alice", "bob")) == expected
    assert store.history(dm_key("bob", "alice")) == expected


def test_history_is_a_copy():
    store = DMStore()
    key = dm_key("alice", "bob")
    store.append(key, "[alice]: hi")
    store.history(key).append("tampered")
    assert store.history(key) == ["[alice]: hi"]


def test_reading_missing_history_creates_nothing():
    store = DMStore()
    key = dm_key("alice", "bob")
    assert store.history(key) == []
    assert key not in store


def test_each_pair_has_its_own_lock():
    store = DMStore()
    ab = dm_key("alice", "bob")
    cd = dm_key("carol", "dave")
    assert store.lock_for(ab) is store.lock_for(dm_key("bob", "alice"))
    assert store.lock_for(ab) is not store.lock_for(cd)


def test_holding_one_pair_lock_leaves_other_pairs_free():
    store = DMStore()
    ab = dm_key("alice", "bob")
    done = threading.Event()

    def append_other():
        store.append(dm_key("carol", "dave"), "[carol]: hi")
        done.set()

    with store.lock_for(ab):
        threading.Thread(target=append_other, daemon=True).start()
        assert done.wait(3.0)
        store.append(ab, "[alice]: still mine")
    assert store.history(ab) == ["[alice]: still mine"]
