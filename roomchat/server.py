"""roomchat server: listening socket, connection gate and accept loop.

Run with ``python -m roomchat.server [--port PORT]``. Each accepted
connection gets its own daemon thread running a ClientSession, provided the
global user ceiling has room for it; otherwise the client receives a single
rejection line and is disconnected.
"""

import argparse
import logging
import socket
import threading

from roomchat.config import (
    LOG_LEVEL,
    PREFERRED_PORT,
    SERVER_HOST,
    SERVER_PORT_AUTO_FALLBACK,
    find_available_port,
)
from roomchat.core.protocol import LineConnection, format_notice, send_line
from roomchat.core.session import ClientSession
from roomchat.core.state import ServerState

log = logging.getLogger("roomchat.server")

LOG_FORMAT = "%(asctime)s [%(levelname)s] (%(threadName)s) %(message)s"


def configure_logging(level=LOG_LEVEL):
    """Send log records to the console in a one-line format."""
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S")


def describe(address):
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address) if address else "local"


def reject_connection(client_socket, max_users):
    """Tell a client the server is full, then close its socket."""
    send_line(client_socket, format_notice(
        f"Maximum users ({max_users}) reached. Try again later."))
    try:
        client_socket.close()
    except OSError as exc:
        log.warning("Error during rejection: %s", exc)
    log.info("Rejected connection (server full)")


def handle_client(state, client_socket, address):
    """Run one client session to completion.

    The caller must already hold a gate slot for this connection; the
    session gives it back during teardown.

    Args:
        state: Shared ServerState
        client_socket: Accepted client socket
        address: Tuple (host, port) of the connecting client
    """
    try:
        connection = LineConnection(client_socket, name=describe(address))
    except OSError as exc:
        log.warning("Could not set up connection from %s: %s", describe(address), exc)
        state.gate.release()
        client_socket.close()
        return
    ClientSession(state, connection, address).run()


def accept_connection(state, client_socket, address):
    """Admit or reject a freshly accepted connection.

    The ceiling check and the counter increment are one atomic step.

    Returns:
        The session thread, or None if the connection was rejected
    """
    if not state.gate.try_acquire():
        reject_connection(client_socket, state.gate.max_users)
        return None

    log.info("New connection from %s (%d/%d users)", describe(address),
             state.gate.count, state.gate.max_users)
    thread = threading.Thread(
        target=handle_client,
        args=(state, client_socket, address),
        name=f"session-{describe(address)}",
        daemon=True,
    )
    thread.start()
    return thread


def create_server_socket(host, port):
    server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    server_socket.bind((host, port))
    server_socket.listen()
    return server_socket


def serve(state, server_socket):
    """Accept client connections until the listening socket is closed."""
    while True:
        try:
            client_socket, address = server_socket.accept()
        except OSError:
            log.info("Listening socket closed, stopping accept loop")
            return
        accept_connection(state, client_socket, address)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Multi-room chat server")
    parser.add_argument("--port", type=int, default=PREFERRED_PORT,
                        help=f"listening port (default {PREFERRED_PORT})")
    args = parser.parse_args(argv)

    configure_logging()

    port = find_available_port(args.port, allow_fallback=SERVER_PORT_AUTO_FALLBACK)
    if port is None:
        log.error("Could not find available port starting from %d", args.port)
        return 1

    state = ServerState()
    server_socket = create_server_socket(SERVER_HOST, port)
    log.info("Server listening on %s:%d (max %d users)", SERVER_HOST, port,
             state.gate.max_users)
    try:
        serve(state, server_socket)
    except KeyboardInterrupt:
        log.info("Shutting down")
    finally:
        server_socket.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
