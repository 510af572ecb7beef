"""
Incoming message dispatch.

Routes every message a window sends to the component that handles it and
sends any reply back on the same window's channel.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from termhost.channel.messages import (
    BaseMessage,
    ConfigMessage,
    ConfigRequest,
    CreateSessionRequest,
    CreateSessionResponse,
    PtyClose,
    PtyInput,
    PtyResize,
    ThemesMessage,
    ThemesRequest,
    parse_message,
)
from termhost.channel.router import WindowRouter
from termhost.core.exceptions import MessageError, SpawnError
from termhost.sessions.manager import SessionManager
from termhost.themes.provider import ConfigThemeProvider


class MessageDispatcher:
    """
    Decodes and dispatches messages arriving from windows.

    Malformed or unknown messages are logged and dropped; the sender never
    gets an error reply.
    """

    def __init__(
        self,
        manager: SessionManager,
        provider: ConfigThemeProvider,
        router: WindowRouter,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            manager: Handles session requests.
            provider: Answers config and themes requests.
            router: Carries replies back to windows.
        """
        self.manager = manager
        self.provider = provider
        self.router = router

    async def dispatch(self, window_id: int, raw: str | bytes | dict[str, Any]) -> None:
        """
        Handle one raw message from a window.

        Args:
            window_id: Window the message came from.
            raw: JSON text or decoded mapping.
        """
        try:
            message = parse_message(raw)
        except MessageError as e:
            logger.warning(f"[Dispatcher] Dropping message from window {window_id}: {e}")
            return

        logger.debug(f"[Dispatcher] Incoming from window {window_id}: {message.type}")

        reply = await self.handle(window_id, message)
        if reply is not None:
            self.router.send(window_id, reply)

    async def handle(self, window_id: int, message: BaseMessage) -> BaseMessage | None:
        """Act on a typed message; returns the reply, if any."""
        match message:
            case ConfigRequest():
                return ConfigMessage(config=self.provider.get_full_config_snapshot())

            case ThemesRequest():
                return ThemesMessage(themes=tuple(self.provider.get_themes()))

            case CreateSessionRequest():
                return await self._handle_create(window_id, message)

            case PtyInput():
                self.manager.input(message.id, message.data)

            case PtyResize():
                self.manager.resize(message.id, message.columns, message.rows)

            case PtyClose():
                self.manager.close(message.id)

            case _:
                # Known kinds that only flow host -> window
                logger.warning(
                    f"[Dispatcher] Unexpected {message.type} from window {window_id}, dropped"
                )

        return None

    async def _handle_create(
        self, window_id: int, message: CreateSessionRequest
    ) -> CreateSessionResponse | None:
        try:
            session_id = await self.manager.create(
                window_id,
                message.command,
                list(message.args),
                message.columns,
                message.rows,
            )
        except SpawnError as e:
            logger.error(f"[Dispatcher] Create request from window {window_id} failed: {e}")
            return None

        # The window may have closed while the process was starting
        if not self.router.is_open(window_id):
            logger.warning(
                f"[Dispatcher] Window {window_id} closed during create, "
                f"closing session {session_id}"
            )
            self.manager.close(session_id)
            return None

        return CreateSessionResponse(id=session_id)
