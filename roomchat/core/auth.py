"""Password hashing and the credential store.

Passwords are never stored: only the base64 text of their SHA-256 digest.
"""

import base64
import hashlib
import hmac
import threading

from roomchat.core.errors import CredentialError


def hash_password(password):
    """Return the fixed-length text digest of a password.

    Raises:
        CredentialError: If the password cannot be encoded or hashed
    """
    try:
        digest = hashlib.sha256(password.encode("utf-8")).digest()
    except (UnicodeError, TypeError, ValueError) as exc:
        raise CredentialError("password hashing failed") from exc
    return base64.b64encode(digest).decode("ascii")


class CredentialStore:
    """Thread-safe username -> password digest mapping.

    Entries are created on first registration and never removed.
    """

    def __init__(self):
        self._digests = {}
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._digests)

    def exists(self, username):
        with self._lock:
            return username in self._digests

    def register(self, username, password):
        """Store the digest for a new user.

        The existence check and the insert happen under one lock, so two
        sessions registering the same name cannot both succeed.

        Returns:
            True if the user was created, False if the name was already taken
        """
        digest = hash_password(password)
        with self._lock:
            if username in self._digests:
                return False
            self._digests[username] = digest
            return True

    def verify(self, username, password):
        """Check a password against the stored digest.

        Returns:
            True on an exact digest match, False if the user is unknown or the
            password is wrong
        """
        with self._lock:
            stored = self._digests.get(username)
        if stored is None:
            return False
        return hmac.compare_digest(stored, hash_password(password))
