"""Error types raised by the session host."""


class TermhostError(Exception):
    """Base class for all termhost errors."""


class SpawnError(TermhostError):
    """The OS refused to create a PTY-backed process."""

    def __init__(self, command: str, reason: str) -> None:
        self.command = command
        self.reason = reason
        super().__init__(f"Failed to spawn {command!r}: {reason}")


class MessageError(TermhostError):
    """An incoming message could not be decoded into a known type."""
