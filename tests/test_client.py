import io
import threading

from roomchat.client import is_prompt, receive_lines


def test_is_prompt():
    assert is_prompt("Enter:")
    assert is_prompt("Enter username (or /exit to quit): ")
    assert not is_prompt("[alice]: hi")
    assert not is_prompt("=== MAIN MENU ===")


def test_receive_lines_keeps_prompts_inline():
    server = io.StringIO("=== MAIN MENU ===\nEnter:\n")
    out = io.StringIO()
    done = threading.Event()
    receive_lines(server, out, done)
    assert out.getvalue() == "=== MAIN MENU ===\nEnter: "
    assert done.is_set()


def test_receive_lines_stops_on_rejection():
    server = io.StringIO(
        "[Server] Maximum users (10) reached. Try again later.\nignored\n")
    out = io.StringIO()
    done = threading.Event()
    receive_lines(server, out, done)
    assert "ignored" not in out.getvalue()
    assert done.is_set()
