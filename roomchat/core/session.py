"""Per-connection client session for the roomchat server.

One ClientSession runs on its own thread for every accepted connection. It
drives the whole conversation with the client: login or registration, the
main menu, joining and creating rooms, the in-room message loop, and the
friend menu with private chat. All cross-session effects go through the
shared registries in ServerState.
"""

import logging
import threading

from roomchat.config import MAX_USERNAME_LENGTH
from roomchat.core.errors import (
    CredentialError,
    Disconnected,
    LineTooLongError,
    RoomExistsError,
    RoomLimitError,
)
from roomchat.core.friends import DM_KEY_SEPARATOR, dm_key
from roomchat.core.protocol import (
    BACK_COMMAND,
    QUIT_COMMAND,
    format_chat,
    format_notice,
    is_command,
)

log = logging.getLogger(__name__)

MAIN_MENU = (
    "",
    "=== MAIN MENU ===",
    "1. Join a Room",
    "2. Create a Room",
    "3. Friend Menu",
    f"Type {QUIT_COMMAND} to quit",
    "Enter:",
)

FRIEND_MENU = (
    "",
    "=== FRIEND MENU ===",
    "1. View friends",
    "2. Add friend",
    "3. Message friend",
    "4. Back to main",
    "Enter:",
)

USERNAME_TAKEN = "The username is already taken. Please try again."
EMPTY_MESSAGE = "(Empty message not sent)"
GOODBYE = format_notice("Goodbye!")


class ClientSession:
    """Server-side state and control flow for one connected client.

    Args:
        state: Shared ServerState
        connection: LineConnection for this client
        address: Peer address, used for logging only
        max_username_length: Longest username accepted at registration
    """

    def __init__(self, state, connection, address=None,
                 max_username_length=MAX_USERNAME_LENGTH):
        self.state = state
        self.connection = connection
        self.address = address
        self.max_username_length = max_username_length

        self.username = None
        self.current_room = None
        self.friends = set()
        self.private_target = None

        self._close_lock = threading.Lock()
        self._closed = False

    def __repr__(self):
        return f"ClientSession({self.label!r})"

    @property
    def label(self):
        if self.username:
            return self.username
        return str(self.address) if self.address else "client"

    # ---------------------------------------------------------------- I/O

    def send(self, *lines):
        """Queue lines for this client."""
        for line in lines:
            self.connection.send(line)

    def deliver(self, line):
        """Push a line from another session without blocking the caller."""
        self.connection.push(line)

    def _read(self):
        while True:
            try:
                line = self.connection.read_line()
                break
            except LineTooLongError as exc:
                self.send(f"Line too long (max {exc.limit} characters). Please try again.")
        if line is None:
            raise Disconnected("end of stream")
        return line

    def _prompt(self, *lines):
        self.send(*lines)
        return self._read()

    def _quit(self, farewell=GOODBYE):
        self.send(farewell)
        raise Disconnected(f"{QUIT_COMMAND} requested")

    # ----------------------------------------------------------- lifecycle

    def run(self):
        """Serve the client until it quits or disconnects, then tear down."""
        try:
            self._authenticate()
            log.info("User '%s' has joined the server", self.username)
            self._main_menu()
        except Disconnected as exc:
            log.info("%s disconnected (%s)", self.label, exc)
        except CredentialError:
            log.exception("Credential failure for %s", self.label)
            self.send(format_notice("Internal error, closing connection."))
        except (OSError, UnicodeDecodeError) as exc:
            log.info("%s connection error: %s", self.label, exc)
        finally:
            self.close()

    def close(self):
        """Release everything this session holds.

        Runs once; later calls do nothing. Every step is attempted even if
        an earlier one fails.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        room = self.current_room
        if room is not None:
            try:
                room.leave(self)
            except Exception:
                log.exception("Failed to remove %s from room %s", self.label, room.name)

        self.private_target = None

        if self.username is not None:
            try:
                self.state.sessions.unregister(self.username, self)
            except Exception:
                log.exception("Failed to unregister %s", self.label)

        try:
            remaining = self.state.gate.release()
            log.info("%s left. Now has (%d/%d users)", self.label,
                     remaining, self.state.gate.max_users)
        except Exception:
            log.exception("Failed to release connection slot for %s", self.label)

        try:
            self.connection.close()
        except Exception:
            log.exception("Failed to close connection for %s", self.label)

    # ------------------------------------------------------- authenticating

    def _validate_username(self, username):
        if not username:
            return "Username cannot be empty. Please try again."
        if len(username) > self.max_username_length:
            return (f"Username cannot be longer than {self.max_username_length} "
                    "characters. Please try again.")
        if DM_KEY_SEPARATOR in username:
            return f"Username cannot contain '{DM_KEY_SEPARATOR}'. Please try again."
        return None

    def _authenticate(self):
        """Log in an existing user or register a new one.

        Returns once the session is registered as the live owner of its
        username. Raises Disconnected on quit or end-of-stream.
        """
        credentials = self.state.credentials
        sessions = self.state.sessions

        while True:
            username = self._prompt(
                f"Enter username (or {QUIT_COMMAND} to quit):").strip()
            if is_command(username, QUIT_COMMAND):
                self._quit(format_notice("Goodbye! Disconnecting..."))

            error = self._validate_username(username)
            if error:
                self.send(error)
                continue

            # Early check for a friendlier flow; the registry insert below is
            # the authoritative one.
            if sessions.is_online(username):
                self.send(USERNAME_TAKEN)
                continue

            if credentials.exists(username):
                password = self._prompt("Enter password:")
                if not password.strip():
                    self.send("Password cannot be empty. Please try again.")
                    continue
                if not credentials.verify(username, password):
                    log.info("Failed login for %s", username)
                    self.send("Incorrect password.")
                    continue
            else:
                password = self._prompt("New user. Set password:")
                if not password.strip():
                    self.send("Password cannot be empty. Please try again.")
                    continue
                if not credentials.register(username, password):
                    self.send(USERNAME_TAKEN)
                    continue
                log.info("Registered new user %s", username)

            if not sessions.register(username, self):
                self.send(USERNAME_TAKEN)
                continue

            self.username = username
            self.send(f"Login successful! Welcome {username}")
            return

    # ------------------------------------------------------------ main menu

    def _main_menu(self):
        while True:
            choice = self._prompt(*MAIN_MENU).strip()
            if is_command(choice, QUIT_COMMAND):
                self._quit()
            if choice == "1":
                self._join_room()
            elif choice == "2":
                self._create_room()
            elif choice == "3":
                self._friend_menu()
            else:
                self.send("Invalid option. Please type 1, 2, 3 or /exit to exit.")

    # ---------------------------------------------------------------- rooms

    def _list_rooms(self):
        rooms = self.state.rooms.rooms()
        if not rooms:
            self.send("No rooms available. Please create one first.")
            return False
        self.send("", "Available Rooms:")
        for room in rooms:
            self.send(f"- {room.name} ({room.member_count()} members)")
        return True

    def _join_room(self):
        if not self._list_rooms():
            return

        while True:
            name = self._prompt(f"Enter room name (or {BACK_COMMAND} to cancel):").strip()
            if is_command(name, BACK_COMMAND):
                return
            if not name:
                self.send("Room name cannot be empty. Please try again.")
                continue

            room = self.state.rooms.get(name)
            if room is None:
                self.send("Room doesn't exist! Please try again.")
                continue

            if not self._ask_room_password(room):
                self.send("Canceled joining room...")
                return
            self._enter_room(room)
            return

    def _ask_room_password(self, room):
        while True:
            password = self._prompt(
                f"Enter password (or {BACK_COMMAND} to cancel):").strip()
            if is_command(password, BACK_COMMAND):
                return False
            if room.check_password(password):
                return True
            self.send("Wrong password! Try again.")

    def _create_room(self):
        rooms = self.state.rooms
        limit_notice = format_notice(
            f"Maximum rooms ({rooms.max_rooms}) reached. Cannot create more.")
        if rooms.is_full():
            self.send(limit_notice)
            return

        while True:
            name = self._prompt(
                f"Enter new room name (or {BACK_COMMAND} to cancel):").strip()
            if is_command(name, BACK_COMMAND):
                return
            if not name:
                self.send("Room name cannot be empty. Please try again.")
                continue
            if name in rooms:
                self.send("Room already exists. Choose another name.")
                continue

            password = self._prompt(f"Set password for '{name}':").strip()
            try:
                room = rooms.create(name, password, created_by=self.username)
            except RoomExistsError:
                self.send("Room already exists. Choose another name.")
                continue
            except RoomLimitError:
                self.send(limit_notice)
                return
            self._enter_room(room)
            return

    def _enter_room(self, room):
        """Join room and relay chat lines until the client leaves."""
        if not room.join(self):
            self.send(format_notice(f"Room is full (max {room.capacity} users)"))
            return

        self.send("", f"You're in '{room.name}'. Type {BACK_COMMAND} to leave.")
        while True:
            message = self._read()
            if is_command(message, BACK_COMMAND):
                self._leave_room()
                return
            if is_command(message, QUIT_COMMAND):
                self._quit()
            if not message.strip():
                self.send(EMPTY_MESSAGE)
                continue
            room.broadcast(message, self)

    def _leave_room(self):
        room = self.current_room
        if room is not None and room.leave(self):
            self.send(format_notice("You left the room"))

    # -------------------------------------------------------------- friends

    def _friend_menu(self):
        while True:
            choice = self._prompt(*FRIEND_MENU).strip()
            if not choice:
                self.send("Input cannot be empty. Please enter a Friend Menu option.")
            elif choice == "1":
                self._show_friends()
            elif choice == "2":
                self._add_friend()
            elif choice == "3":
                self._start_private_chat()
            elif choice == "4":
                return
            elif is_command(choice, QUIT_COMMAND):
                self._quit(format_notice("Goodbye! Disconnecting ..."))
            else:
                self.send("Invalid option. Please enter 1, 2, 3, or 4.")

    def _show_friends(self):
        if not self.friends:
            self.send("You have no friends yet.")
            return
        self.send("", "=== Your Friends ===")
        for friend in sorted(self.friends):
            status = "Online" if self.state.sessions.is_online(friend) else "Offline"
            self.send(f"- {friend} [{status}]")

    def _add_friend(self):
        while True:
            friend = self._prompt(
                f"Enter your friend's username (or {BACK_COMMAND} to cancel):").strip()
            if is_command(friend, BACK_COMMAND):
                self.send("Canceling Adding Friends...")
                return
            if not friend:
                self.send("Username cannot be empty. Please try again.")
            elif not self.state.credentials.exists(friend):
                self.send("User does not exist. Please try again.")
            elif friend == self.username:
                self.send("You can't add yourself!")
            elif friend in self.friends:
                self.send(f"{friend} is already in your friend list.")
            else:
                self.friends.add(friend)
                self.send(f"{friend} has been added to your friend list.")
                return

    def _start_private_chat(self):
        while True:
            target = self._prompt(
                f"Enter your friend's username to chat with (or {BACK_COMMAND} to cancel):"
            ).strip()
            if is_command(target, BACK_COMMAND):
                self.send("Private chat cancelled...")
                return
            if not target:
                self.send("Username cannot be empty. Please try again.")
                continue
            if target not in self.friends:
                self.send("Not in your friends list. Please try again.")
                continue
            if not self.state.sessions.is_online(target):
                self.send("User is currently offline.")
                return
            self._private_chat(target)
            return

    def _private_chat(self, target):
        """Replay the DM history with target, then relay lines until /back."""
        dms = self.state.dms
        key = dm_key(self.username, target)

        # History snapshot and focus change share the pair lock: a concurrent
        # line is either replayed or pushed live, exactly once. The replay is
        # a single non-blocking push while that lock is held.
        replayed = True
        with dms.lock_for(key):
            history = dms.history(key)
            if history:
                replayed = self.connection.push("\n".join(
                    ["", "--- Chat History ---", *history, "-------------------"]))
            self.private_target = target
        if not replayed:
            self.send(f"(Chat history with {target} could not be shown)")

        self.send("", f"[Private chat with {target}] (type {BACK_COMMAND} to leave the DMs)")
        try:
            while True:
                message = self._read()
                if is_command(message, BACK_COMMAND):
                    return
                if is_command(message, QUIT_COMMAND):
                    self._quit()
                if not message.strip():
                    self.send(EMPTY_MESSAGE)
                    continue
                self._send_private(key, target, format_chat(self.username, message))
        finally:
            self.private_target = None

    def _send_private(self, key, target, line):
        dms = self.state.dms
        with dms.lock_for(key):
            dms.append(key, line)
            peer = self.state.sessions.get(target)
            if peer is not None and peer.private_target == self.username:
                peer.deliver(line)
