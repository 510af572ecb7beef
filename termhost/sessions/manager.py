"""
Session lifecycle manager.

Creates, feeds, resizes and terminates PTY sessions, and bridges process
events back to the owning window as messages.

Session lifecycle:
    CREATED -> RUNNING -> CLOSED (explicit close) -> REMOVED
                       -> EXITED (process exit)   -> REMOVED

Every registry mutation and every process event runs on the event loop
thread, so handlers never interleave mid-update.
"""

from __future__ import annotations

import os
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from loguru import logger

from termhost.channel.messages import PtyClose, PtyOutput
from termhost.channel.router import WindowRouter
from termhost.core.config import Settings, get_settings
from termhost.core.exceptions import SpawnError
from termhost.core.logging import printable
from termhost.sessions.pty_process import PtyProcess
from termhost.sessions.registry import SessionRegistry, SessionState

# Same signature as PtyProcess.spawn; swapped out in tests
Spawner = Callable[..., Awaitable[PtyProcess]]


class SessionManager:
    """
    Owns the lifecycle of every PTY session.

    Exactly one of two terminal paths runs per session: explicit
    :meth:`close`, or process exit (which also emits one PtyClose to the
    owning window). Whichever runs first wins; the other finds the id gone
    and does nothing.

    Example:
        >>> manager = SessionManager(SessionRegistry(), router)
        >>> session_id = await manager.create(window_id=1, command="bash",
        ...                                   args=[], columns=80, rows=24)
        >>> manager.input(session_id, "echo hi\\n")
        >>> manager.close(session_id)
    """

    def __init__(
        self,
        registry: SessionRegistry,
        router: WindowRouter,
        spawner: Spawner | None = None,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize the session manager.

        Args:
            registry: Session registry (shared with window cleanup).
            router: Delivers outgoing messages to windows.
            spawner: Process factory; defaults to ``PtyProcess.spawn``.
            settings: Optional settings override.
        """
        self.registry = registry
        self.router = router
        self.spawner: Spawner = spawner or PtyProcess.spawn
        self.settings = settings or get_settings()

    async def create(
        self,
        window_id: int,
        command: str,
        args: Sequence[str],
        columns: int,
        rows: int,
        env: Mapping[str, str] | None = None,
    ) -> int:
        """
        Spawn a new PTY session for a window.

        Args:
            window_id: Owning window.
            command: Executable to run; empty means the default shell.
            args: Arguments for the command.
            columns: Initial terminal width.
            rows: Initial terminal height.
            env: Child environment; defaults to a copy of the host's.

        Returns:
            The new session id.

        Raises:
            SpawnError: If the process could not be started. No message is
                sent to the window in that case.
        """
        command = command or self.settings.default_shell
        session_id = self.registry.allocate()

        logger.info(
            f"[SessionManager] Creating session {session_id} for window {window_id}: "
            f"{command} {' '.join(args)} ({columns}x{rows})"
        )

        try:
            process = await self.spawner(
                command,
                list(args),
                columns,
                rows,
                env=dict(os.environ) if env is None else env,
                term_name=self.settings.term_name,
                read_chunk_size=self.settings.read_chunk_size,
            )
        except SpawnError as e:
            logger.error(f"[SessionManager] Session {session_id} failed to start: {e}")
            raise

        session = self.registry.register(session_id, window_id, process)
        process.on_data(lambda data: self._on_output(session_id, data))
        process.on_exit(lambda code: self._on_exit(session_id, code))
        session.state = SessionState.RUNNING

        logger.info(f"[SessionManager] Session {session_id} started with PID {session.pid}")
        return session_id

    # =========================================================================
    # PROCESS EVENTS
    # =========================================================================

    def _on_output(self, session_id: int, data: str) -> None:
        """Forward one output chunk as one PtyOutput message."""
        session = self.registry.lookup(session_id)
        if session is None:
            return

        logger.debug(f"[SessionManager] Output for session {session_id}: {printable(data)}")
        self.router.send(session.window_id, PtyOutput(id=session_id, data=data))

    def _on_exit(self, session_id: int, exit_code: int | None = None) -> None:
        """Process-initiated termination: notify the window, then release."""
        session = self.registry.lookup(session_id)
        if session is None:
            return

        logger.info(f"[SessionManager] Session {session_id} exited (code={exit_code})")
        session.state = SessionState.EXITED
        self.router.send(session.window_id, PtyClose(id=session_id))

        session.process.destroy()
        self.registry.remove(session_id)

    # =========================================================================
    # REQUESTS FROM WINDOWS
    # =========================================================================

    def input(self, session_id: int, data: str) -> bool:
        """
        Write raw data to a session's terminal.

        Returns:
            False if the session does not exist (already closed or exited).
        """
        session = self.registry.lookup(session_id)
        if session is None:
            logger.warning(f"[SessionManager] Input arrived for session {session_id} which doesn't exist")
            return False

        logger.debug(f"[SessionManager] Input for session {session_id}: {printable(data)}")
        session.process.write(data)
        return True

    def resize(self, session_id: int, columns: int, rows: int) -> bool:
        """
        Change a session's terminal dimensions.

        Returns:
            False if the session does not exist.
        """
        session = self.registry.lookup(session_id)
        if session is None:
            logger.warning(f"[SessionManager] Resize arrived for session {session_id} which doesn't exist")
            return False

        logger.debug(f"[SessionManager] Resizing session {session_id} to {columns}x{rows}")
        session.process.resize(columns, rows)
        return True

    def close(self, session_id: int) -> bool:
        """
        Explicitly terminate a session.

        Releases the process handle and removes the registry entry. No
        message is sent.

        Returns:
            False if the session does not exist (no side effects).
        """
        session = self.registry.lookup(session_id)
        if session is None:
            logger.warning(f"[SessionManager] Close arrived for session {session_id} which doesn't exist")
            return False

        logger.info(f"[SessionManager] Closing session {session_id}")
        session.state = SessionState.CLOSED
        session.process.destroy()
        self.registry.remove(session_id)
        return True

    def close_all(self) -> list[int]:
        """Close every live session (call on shutdown)."""
        closed = [sid for sid in self.registry.session_ids() if self.close(sid)]
        if closed:
            logger.info(f"[SessionManager] Closed {len(closed)} sessions")
        return closed

    def describe(self) -> list[dict[str, Any]]:
        """Snapshot of live sessions for status endpoints."""
        return [session.to_dict() for session in self.registry.sessions()]
