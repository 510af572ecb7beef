"""
Application context.

Every piece of process-wide state lives on one AppContext, built once at
startup and handed to whatever needs it. Tests build their own isolated
instances.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from termhost.channel.dispatcher import MessageDispatcher
from termhost.channel.router import WindowRouter
from termhost.core.config import Settings, get_settings
from termhost.sessions.cleanup import WindowSessionCleanup
from termhost.sessions.manager import SessionManager, Spawner
from termhost.sessions.registry import SessionRegistry
from termhost.themes.provider import ConfigThemeProvider


@dataclass
class AppContext:
    """Wiring of all session-host components."""

    settings: Settings
    registry: SessionRegistry
    router: WindowRouter
    manager: SessionManager
    cleanup: WindowSessionCleanup
    provider: ConfigThemeProvider
    dispatcher: MessageDispatcher

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        spawner: Spawner | None = None,
        provider: ConfigThemeProvider | None = None,
    ) -> AppContext:
        """
        Build and wire a context.

        Args:
            settings: Optional settings override.
            spawner: Optional process factory (tests use a fake).
            provider: Optional config/theme provider.

        Returns:
            A ready AppContext with window cleanup subscribed.
        """
        settings = settings or get_settings()
        registry = SessionRegistry()
        router = WindowRouter()
        manager = SessionManager(registry, router, spawner=spawner, settings=settings)
        cleanup = WindowSessionCleanup(manager)
        cleanup.attach(router)
        provider = provider or ConfigThemeProvider(settings)
        dispatcher = MessageDispatcher(manager, provider, router)

        logger.debug("[AppContext] Session host context created")
        return cls(
            settings=settings,
            registry=registry,
            router=router,
            manager=manager,
            cleanup=cleanup,
            provider=provider,
            dispatcher=dispatcher,
        )

    async def shutdown(self) -> None:
        """Close every window and any session left behind."""
        await self.router.close_all()
        self.manager.close_all()
        logger.info("[AppContext] Session host shut down")
