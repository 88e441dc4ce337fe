"""Line protocol utilities for the roomchat server.

Every application message is one UTF-8 line terminated by ``\\n``. Lines
that end with a colon are prompts: the client answers them with exactly one
line of input. Outbound lines for a session go through a bounded queue that
a dedicated writer thread drains, so pushing a line to another session never
blocks on that session's socket.
"""

import logging
import queue
import socket
import threading

from roomchat.config import MAX_LINE_LENGTH, SEND_QUEUE_SIZE
from roomchat.core.errors import LineTooLongError

log = logging.getLogger(__name__)

QUIT_COMMAND = "/exit"
BACK_COMMAND = "/back"
SERVER_TAG = "[Server]"

_CLOSE = object()


def is_command(line, command):
    """Return True if a client line is the given command (case-insensitive)."""
    return line.strip().lower() == command


def format_chat(sender, text):
    """Chat shape used for room and private messages."""
    return f"[{sender}]: {text}"


def format_notice(text):
    """System notice shape, prefixed with the server tag."""
    return f"{SERVER_TAG} {text}"


def send_line(sock, text):
    """Write a single line directly to a raw socket.

    Used before a session exists (e.g. rejecting a connection at the gate).

    Args:
        sock: Destination socket
        text: Line content without terminator

    Returns:
        True if the line was written, False on socket error
    """
    try:
        sock.sendall((text + "\n").encode("utf-8"))
        return True
    except OSError:
        return False


class LineConnection:
    """A socket wrapped for line reads and queued line writes.

    Args:
        sock: Connected stream socket, owned by this object from now on
        queue_size: Maximum number of outbound lines waiting to be written
        name: Label used for the writer thread and log lines
        max_line_length: Longest inbound line accepted, in characters
    """

    def __init__(self, sock, queue_size=SEND_QUEUE_SIZE, name="client",
                 max_line_length=MAX_LINE_LENGTH):
        self.sock = sock
        self.name = name
        self.max_line_length = max_line_length
        # Undecodable bytes become U+FFFD instead of ending the session.
        self._reader = sock.makefile("r", encoding="utf-8", errors="replace")
        self._outbox = queue.Queue(maxsize=queue_size)
        self._close_lock = threading.Lock()
        self._closed = False
        self._broken = False
        self._writer = threading.Thread(
            target=self._drain, name=f"writer-{name}", daemon=True)
        self._writer.start()

    @property
    def closed(self):
        return self._closed

    def read_line(self):
        """Block until the next line arrives.

        Returns:
            The line without its terminator, or None at end-of-stream

        Raises:
            LineTooLongError: If the line exceeds max_line_length; the rest of
                it is read and discarded so the next call starts clean
        """
        limit = self.max_line_length
        # Room for a \r\n terminator after a line of exactly limit characters.
        line = self._reader.readline(limit + 2)
        if not line:
            return None
        if len(line.rstrip("\r\n")) > limit:
            if not line.endswith("\n"):
                self._discard_rest_of_line()
            log.warning("Line from %s exceeded %d characters", self.name, limit)
            raise LineTooLongError(limit)
        return line.rstrip("\r\n")

    def _discard_rest_of_line(self):
        while True:
            chunk = self._reader.readline(self.max_line_length)
            if not chunk or chunk.endswith("\n"):
                return

    def send(self, text):
        """Queue a line for this connection, waiting for room in the queue."""
        if self._closed:
            return False
        self._outbox.put(text)
        return True

    def push(self, text):
        """Queue a line without blocking; drop it if the queue is full.

        Used when one session delivers to another, so a stalled reader
        cannot hold up the sender.
        """
        if self._closed:
            return False
        try:
            self._outbox.put_nowait(text)
        except queue.Full:
            log.warning("Outbound queue full for %s, dropping line", self.name)
            return False
        return True

    def _drain(self):
        while True:
            line = self._outbox.get()
            if line is _CLOSE:
                return
            if self._broken:
                continue
            try:
                self.sock.sendall((line + "\n").encode("utf-8"))
            except OSError as exc:
                log.debug("Write to %s failed: %s", self.name, exc)
                self._broken = True

    def close(self, timeout=1.0):
        """Flush pending lines (bounded by timeout) and close the socket.

        Safe to call more than once.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        queued = self._enqueue_close(timeout)
        self._writer.join(timeout)

        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        try:
            self._reader.close()
        finally:
            self.sock.close()

        # A writer stuck on a stalled peer errors out once the socket is
        # closed and then drains the queue, so the sentinel fits now.
        if not queued:
            self._enqueue_close(timeout)

    def _enqueue_close(self, timeout):
        try:
            self._outbox.put(_CLOSE, timeout=timeout)
            return True
        except queue.Full:
            log.debug("Outbound queue for %s still full at close", self.name)
            return False
