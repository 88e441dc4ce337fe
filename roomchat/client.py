"""Terminal client for the roomchat server.

Prints every server line; lines ending with a colon are prompts and are
printed without a newline so the user types on the same line. Every line
typed locally is sent as-is. ``/exit`` is forwarded to the server and then
ends the client.
"""

import argparse
import socket
import sys
import threading

from roomchat.config import CLIENT_HOST, PREFERRED_PORT
from roomchat.core.protocol import QUIT_COMMAND

REJECTION_MARKER = "Maximum users"


def is_prompt(line):
    """True if the server expects one line of input after this one."""
    return line.rstrip().endswith(":")


def receive_lines(server_file, out, done):
    """Echo server lines to out until the server closes the stream.

    Args:
        server_file: Text file object reading from the server socket
        out: Stream to print to
        done: Event set once the server side is finished
    """
    try:
        for raw in server_file:
            line = raw.rstrip("\r\n")
            if is_prompt(line):
                out.write(line + " ")
            else:
                out.write(line + "\n")
            out.flush()
            if REJECTION_MARKER in line:
                break
    except (OSError, ValueError):
        out.write("Connection closed by server.\n")
    finally:
        done.set()


def run(host, port, stdin=sys.stdin, out=sys.stdout):
    with socket.create_connection((host, port)) as sock:
        out.write("Connected to chat server.\n\n")
        server_file = sock.makefile("r", encoding="utf-8")
        done = threading.Event()
        reader = threading.Thread(
            target=receive_lines, args=(server_file, out, done), daemon=True)
        reader.start()

        for line in stdin:
            if done.is_set():
                break
            message = line.rstrip("\r\n")
            try:
                sock.sendall((message + "\n").encode("utf-8"))
            except OSError:
                break
            if message.strip().lower() == QUIT_COMMAND:
                out.write("Closing connection...\n")
                break

        done.wait(timeout=1.0)
        server_file.close()
    out.write("Client shut down.\n")


def main(argv=None):
    parser = argparse.ArgumentParser(description="roomchat terminal client")
    parser.add_argument("--host", default=CLIENT_HOST)
    parser.add_argument("--port", type=int, default=PREFERRED_PORT)
    args = parser.parse_args(argv)
    try:
        run(args.host, args.port)
    except ConnectionRefusedError:
        print(f"Could not connect to {args.host}:{args.port}")
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
