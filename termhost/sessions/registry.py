"""
Session registry.

Authoritative mapping from session id to owning window and process handle.
All access happens on the event loop thread, so no locking is done here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from termhost.sessions.pty_process import PtyProcess


class SessionState(str, Enum):
    """Lifecycle states of a session."""

    CREATED = "created"
    RUNNING = "running"
    CLOSED = "closed"  # explicit close
    EXITED = "exited"  # process-initiated termination
    REMOVED = "removed"


@dataclass
class Session:
    """One spawned process plus its PTY, tracked under a unique id."""

    id: int
    window_id: int
    process: PtyProcess
    state: SessionState = SessionState.CREATED
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def pid(self) -> int | None:
        return getattr(self.process, "pid", None)

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "window_id": self.window_id,
            "state": self.state.value,
            "pid": self.pid,
            "created_at": self.created_at.isoformat(),
        }


class SessionRegistry:
    """
    Registry of live sessions.

    Ids come from a strictly increasing counter and are never reused, even
    after the session holding them has been removed.

    Example:
        >>> registry = SessionRegistry()
        >>> session_id = registry.allocate()
        >>> registry.register(session_id, window_id=1, process=proc)
        >>> registry.list_by_window(1)
        {1}
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._counter = 0
        self._sessions: dict[int, Session] = {}

    def allocate(self) -> int:
        """Return the next unused session id."""
        self._counter += 1
        return self._counter

    def register(self, session_id: int, window_id: int, process: PtyProcess) -> Session:
        """
        Record a new session.

        Args:
            session_id: Id obtained from :meth:`allocate`.
            window_id: Owning window.
            process: Exclusively owned process handle.

        Returns:
            The registered Session.

        Raises:
            ValueError: If the id was never allocated or is already registered.
        """
        if session_id in self._sessions:
            raise ValueError(f"Session {session_id} is already registered")
        if not 0 < session_id <= self._counter:
            raise ValueError(f"Session id {session_id} was not allocated by this registry")

        session = Session(id=session_id, window_id=window_id, process=process)
        self._sessions[session_id] = session
        logger.debug(f"[SessionRegistry] Registered session {session_id} for window {window_id}")
        return session

    def lookup(self, session_id: int) -> Session | None:
        return self._sessions.get(session_id)

    def remove(self, session_id: int) -> Session | None:
        """
        Remove a session.

        Returns:
            The removed Session, or None if the id was absent (no-op).
        """
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.state = SessionState.REMOVED
            logger.debug(f"[SessionRegistry] Removed session {session_id}")
        return session

    def list_by_window(self, window_id: int) -> set[int]:
        """Ids of every session owned by ``window_id`` (possibly empty)."""
        return {sid for sid, session in self._sessions.items() if session.window_id == window_id}

    def session_ids(self) -> list[int]:
        return sorted(self._sessions)

    def sessions(self) -> list[Session]:
        return [self._sessions[sid] for sid in self.session_ids()]

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
