"""Port selection for the roomchat server.

Finds a free TCP port for the listening socket, optionally scanning upward
from the preferred one.
"""

import socket

from .config import SERVER_HOST


def find_available_port(start_port, max_attempts=50, allow_fallback=True, host=SERVER_HOST):
    """Find an available TCP port for the chat server.

    Attempts to bind a socket starting from start_port and incrementing
    until an available port is found or max_attempts is reached.

    Args:
        start_port: Port number to start search from
        max_attempts: Maximum number of ports to try
        allow_fallback: If True, search multiple ports; if False, try only start_port
        host: Address to test the bind against

    Returns:
        Available port number, or None if no port found
    """
    attempts = max_attempts if allow_fallback else 1
    for port in range(start_port, start_port + attempts):
        test_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            test_socket.bind((host, port))
            return port
        except OSError:
            continue
        finally:
            test_socket.close()
    return None
