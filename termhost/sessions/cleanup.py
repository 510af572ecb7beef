"""Window-session cleanup - close every session a window owned when it goes away."""

from loguru import logger

from termhost.channel.router import WindowRouter
from termhost.sessions.manager import SessionManager


class WindowSessionCleanup:
    """
    Reacts to window-closed events.

    Only sessions whose owning window is the closed window are touched;
    sessions of every other window are left alone.

    Example:
        >>> cleanup = WindowSessionCleanup(manager)
        >>> cleanup.attach(router)
        >>> await router.close_window(1)  # closes all of window 1's sessions
    """

    def __init__(self, manager: SessionManager) -> None:
        """
        Initialize window cleanup.

        Args:
            manager: Session manager whose idempotent close path is used.
        """
        self.manager = manager

    def attach(self, router: WindowRouter) -> None:
        """Subscribe to the router's window-closed events."""
        router.add_window_closed_callback(self.on_window_closed)

    def detach(self, router: WindowRouter) -> None:
        router.remove_window_closed_callback(self.on_window_closed)

    def on_window_closed(self, window_id: int) -> set[int]:
        """
        Close all sessions owned by ``window_id``.

        Returns:
            Ids of the sessions that were closed.
        """
        owned = self.manager.registry.list_by_window(window_id)
        if not owned:
            logger.debug(f"[WindowCleanup] Window {window_id} owned no sessions")
            return set()

        logger.info(f"[WindowCleanup] Cleaning up {len(owned)} sessions for window {window_id}")

        closed: set[int] = set()
        for session_id in sorted(owned):
            if self.manager.close(session_id):
                closed.add(session_id)
        return closed
