"""Private-message history shared by all sessions.

Friend lists themselves live on each session as a plain set of usernames;
this module only holds the DM logs and their canonical keys.
"""

import threading

DM_KEY_SEPARATOR = "::"


def dm_key(user_a, user_b):
    """Canonical, order-independent key for the thread between two users."""
    first, second = sorted((user_a, user_b))
    return f"{first}{DM_KEY_SEPARATOR}{second}"


class DMStore:
    """Thread-safe canonical key -> ordered list of formatted lines.

    Logs are created on the first append and never removed. Each key has
    its own reentrant lock, returned by ``lock_for``, so callers can group
    a read or append with their own bookkeeping (e.g. switching DM focus)
    into one atomic step without holding up other conversations.
    """

    def __init__(self):
        self._logs = {}
        self._key_locks = {}
        self._lock = threading.Lock()

    def __contains__(self, key):
        with self._lock:
            return key in self._logs

    def lock_for(self, key):
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.RLock()
            return lock

    def append(self, key, line):
        with self.lock_for(key):
            with self._lock:
                self._logs.setdefault(key, []).append(line)

    def history(self, key):
        """Copy of the log for key, oldest first; empty if none exists."""
        with self.lock_for(key):
            with self._lock:
                return list(self._logs.get(key, ()))
