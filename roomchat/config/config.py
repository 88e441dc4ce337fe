"""Configuration for the roomchat server and terminal client.

Loads environment variables (optionally from a ``.env`` file) for the
listening address, capacity ceilings and logging.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# Server connection configuration
SERVER_HOST = os.environ.get("SERVER_HOST", "0.0.0.0")
PREFERRED_PORT = int(os.environ.get("SERVER_PORT", 12345))
SERVER_PORT_AUTO_FALLBACK = os.environ.get(
    "SERVER_PORT_AUTO_FALLBACK", "false").lower() == "true"

# Capacity ceilings
MAX_USERS = int(os.environ.get("MAX_USERS", 10))
MAX_ROOMS = int(os.environ.get("MAX_ROOMS", 10))
MAX_USERS_PER_ROOM = int(os.environ.get("MAX_USERS_PER_ROOM", 10))
MAX_USERNAME_LENGTH = int(os.environ.get("MAX_USERNAME_LENGTH", 32))

# Longest accepted client line, in characters
MAX_LINE_LENGTH = int(os.environ.get("MAX_LINE_LENGTH", 4096))

# Per-session outbound line queue bound
SEND_QUEUE_SIZE = int(os.environ.get("SEND_QUEUE_SIZE", 256))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Terminal client defaults
CLIENT_HOST = os.environ.get("HOST", "127.0.0.1")
