"""Exception types raised while serving a client session."""


class ChatError(Exception):
    """Base class for roomchat errors."""


class Disconnected(ChatError):
    """The client closed its stream or asked to quit."""


class CredentialError(ChatError):
    """A password digest could not be computed."""


class RoomExistsError(ChatError):
    """A room with the requested name is already registered."""


class RoomLimitError(ChatError):
    """The room registry already holds its maximum number of rooms."""


class LineTooLongError(ChatError):
    """A client line exceeded the maximum accepted length."""

    def __init__(self, limit):
        super().__init__(f"line longer than {limit} characters")
        self.limit = limit
