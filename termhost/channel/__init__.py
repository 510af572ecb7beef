"""Message channel - typed messages, per-window FIFO channels and routing."""

from termhost.channel.channel import MessageChannel
from termhost.channel.messages import MessageType, parse_message
from termhost.channel.router import WindowRouter

__all__ = [
    "MessageChannel",
    "MessageType",
    "WindowRouter",
    "parse_message",
]
