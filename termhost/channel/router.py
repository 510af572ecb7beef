"""
Window router.

Tracks which windows are open and owns one MessageChannel per window.
Window-closed events are fanned out to registered callbacks (session
cleanup subscribes here).
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any

from loguru import logger

from termhost.channel.channel import MessageChannel, MessageSink
from termhost.channel.messages import BaseMessage

# Called with the id of a window that just closed
WindowClosedCallback = Callable[[int], Any]


class WindowRouter:
    """
    Maps window ids to their message channels.

    Window ids are assigned here, strictly increasing from 1, because the
    host runtime (a WebSocket server) has no ids of its own.
    """

    def __init__(self) -> None:
        """Initialize the router."""
        self._channels: dict[int, MessageChannel] = {}
        self._window_counter = 0
        self._closed_callbacks: list[WindowClosedCallback] = []

    def open_window(self, sink: MessageSink) -> MessageChannel:
        """
        Register a newly opened window.

        Args:
            sink: Where serialized messages for this window are written.

        Returns:
            The window's channel; ``channel.window_id`` is the new window id.
        """
        self._window_counter += 1
        window_id = self._window_counter
        channel = MessageChannel(window_id, sink)
        self._channels[window_id] = channel
        logger.info(f"[WindowRouter] Window {window_id} opened. Total: {len(self._channels)}")
        return channel

    def is_open(self, window_id: int) -> bool:
        return window_id in self._channels

    def channel(self, window_id: int) -> MessageChannel | None:
        return self._channels.get(window_id)

    def window_ids(self) -> list[int]:
        return list(self._channels)

    def __len__(self) -> int:
        return len(self._channels)

    def send(self, window_id: int, message: BaseMessage) -> bool:
        """
        Send a message to a window.

        Returns:
            False if the window is not open (the message is dropped).
        """
        channel = self._channels.get(window_id)
        if channel is None:
            logger.debug(f"[WindowRouter] Window {window_id} is gone, dropping {message.type}")
            return False
        channel.send(message)
        return True

    def add_window_closed_callback(self, callback: WindowClosedCallback) -> None:
        """Register a callback for window-closed events."""
        self._closed_callbacks.append(callback)

    def remove_window_closed_callback(self, callback: WindowClosedCallback) -> None:
        """Remove a registered callback."""
        if callback in self._closed_callbacks:
            self._closed_callbacks.remove(callback)

    async def close_window(self, window_id: int) -> None:
        """
        Handle a window-closed event.

        The channel is detached first so nothing more is routed to the
        window, then callbacks run, then the channel is shut down.

        Note:
            Closing an unknown or already closed window is a no-op.
        """
        channel = self._channels.pop(window_id, None)
        if channel is None:
            logger.debug(f"[WindowRouter] Window {window_id} already closed")
            return

        logger.info(f"[WindowRouter] Window {window_id} closed. Total: {len(self._channels)}")

        for callback in list(self._closed_callbacks):
            try:
                if inspect.iscoroutinefunction(callback):
                    await callback(window_id)
                else:
                    callback(window_id)
            except Exception as e:
                logger.error(f"Window-closed callback error: {e}")

        await channel.close(discard_pending=True)

    async def close_all(self) -> None:
        """Close every open window (call on shutdown)."""
        for window_id in self.window_ids():
            await self.close_window(window_id)
