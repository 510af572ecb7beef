"""
Per-window message channel.

A MessageChannel carries typed messages from the session host to one window.
``send()`` is fire-and-forget: messages are queued and a single pump task
writes them to the window's sink in the order they were sent.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger

from termhost.channel.messages import CHANNEL_NAME, BaseMessage

# Receives one serialized message (JSON text); e.g. WebSocket.send_text
MessageSink = Callable[[str], Awaitable[None]]


class MessageChannel:
    """
    FIFO, fire-and-forget transport to a single window.

    Messages sent on one channel are delivered in send order. There is no
    ordering relationship between different channels. Delivery failures are
    logged and the message dropped; nothing is reported back to the sender.

    Example:
        >>> channel = MessageChannel(window_id=1, sink=websocket.send_text)
        >>> channel.send(PtyOutput(id=1, data="hi"))
        >>> await channel.close()
    """

    def __init__(self, window_id: int, sink: MessageSink, name: str = CHANNEL_NAME) -> None:
        """
        Initialize the channel.

        Args:
            window_id: Window this channel delivers to.
            sink: Coroutine function that writes one serialized message.
            name: Channel name (used in logs).
        """
        self.window_id = window_id
        self.name = name
        self._sink = sink
        self._queue: asyncio.Queue[BaseMessage | None] = asyncio.Queue()
        self._pump_task: asyncio.Task[None] | None = None
        self._closed = False
        self.delivered_count = 0
        self.dropped_count = 0

    @property
    def closed(self) -> bool:
        """Whether the channel no longer accepts messages."""
        return self._closed

    @property
    def pending(self) -> int:
        """Number of messages waiting to be delivered."""
        return self._queue.qsize()

    def send(self, message: BaseMessage) -> None:
        """
        Queue a message for delivery and return immediately.

        Args:
            message: The message to deliver. Ownership passes to the channel.
        """
        if self._closed:
            logger.warning(
                f"[{self.name}] Channel for window {self.window_id} is closed, "
                f"dropping {message.type}"
            )
            self.dropped_count += 1
            return

        self._queue.put_nowait(message)
        self._ensure_pump()

    def _ensure_pump(self) -> None:
        if self._pump_task is None:
            self._pump_task = asyncio.get_running_loop().create_task(
                self._pump(), name=f"{self.name}-window-{self.window_id}"
            )

    async def _pump(self) -> None:
        """Deliver queued messages to the sink, one at a time, in order."""
        while True:
            message = await self._queue.get()
            try:
                if message is None:
                    return
                await self._sink(message.to_json())
                self.delivered_count += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.dropped_count += 1
                logger.error(
                    f"[{self.name}] Delivery of {message.type} to window "
                    f"{self.window_id} failed: {e}"
                )
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every queued message has been delivered or dropped."""
        if self._pump_task is None:
            return
        await self._queue.join()

    async def close(self, discard_pending: bool = False) -> None:
        """
        Stop accepting messages and shut the pump down.

        Args:
            discard_pending: Drop queued messages instead of delivering them
                (used when the window is already gone).

        Note:
            Safe to call multiple times.
        """
        if self._closed:
            return
        self._closed = True

        if discard_pending:
            while not self._queue.empty():
                self._queue.get_nowait()
                self._queue.task_done()
                self.dropped_count += 1

        if self._pump_task is None:
            return

        self._queue.put_nowait(None)
        await self._pump_task
        logger.debug(
            f"[{self.name}] Channel for window {self.window_id} closed "
            f"(delivered={self.delivered_count}, dropped={self.dropped_count})"
        )
