"""
WebSocket Connection Manager.

Each WebSocket connection is one window: connecting opens the window,
disconnecting closes it (which cleans up the window's sessions).
"""

from __future__ import annotations

from fastapi import WebSocket
from loguru import logger

from termhost.core.context import AppContext


class WindowConnectionManager:
    """
    Bridges WebSocket connections to windows in the session host.

    Outgoing messages are written with ``websocket.send_text`` by the
    window's channel; incoming text frames go to the dispatcher.
    """

    def __init__(self, context: AppContext) -> None:
        """
        Initialize the connection manager.

        Args:
            context: The session host context.
        """
        self.context = context
        self.connections: dict[int, WebSocket] = {}

    @property
    def connection_count(self) -> int:
        """Number of active connections."""
        return len(self.connections)

    async def connect(self, websocket: WebSocket) -> int:
        """
        Accept a new WebSocket connection and open a window for it.

        Args:
            websocket: The WebSocket connection to accept.

        Returns:
            The new window id.
        """
        await websocket.accept()
        channel = self.context.router.open_window(websocket.send_text)
        self.connections[channel.window_id] = websocket
        logger.info(f"Client connected as window {channel.window_id}. Total: {self.connection_count}")
        return channel.window_id

    async def handle_message(self, window_id: int, data: str) -> None:
        """
        Handle incoming WebSocket message.

        Args:
            window_id: Window the connection belongs to.
            data: The raw message data (JSON string).
        """
        await self.context.dispatcher.dispatch(window_id, data)

    async def disconnect(self, window_id: int) -> None:
        """
        Handle WebSocket disconnection.

        Args:
            window_id: Window of the connection that went away.
        """
        self.connections.pop(window_id, None)
        await self.context.router.close_window(window_id)
        logger.info(f"Client for window {window_id} disconnected. Total: {self.connection_count}")
