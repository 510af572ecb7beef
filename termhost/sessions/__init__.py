"""Session management - PTY processes, registry, lifecycle and cleanup."""

from termhost.sessions.cleanup import WindowSessionCleanup
from termhost.sessions.manager import SessionManager
from termhost.sessions.pty_process import PtyProcess
from termhost.sessions.registry import Session, SessionRegistry, SessionState

__all__ = [
    "PtyProcess",
    "Session",
    "SessionManager",
    "SessionRegistry",
    "SessionState",
    "WindowSessionCleanup",
]
