"""Loguru setup for the host process."""

import sys
from pathlib import Path

from loguru import logger

from termhost.core.config import Settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def configure_logging(settings: Settings) -> None:
    """Configure loguru based on settings."""
    logger.remove()  # Remove default handler

    if settings.log_dir is not None:
        logs_dir = Path(settings.log_dir)
        logs_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            str(logs_dir / "termhost_{time:YYYY-MM-DD}.log"),
            rotation="1 day",
            retention="7 days",
            level=settings.log_level,
            format=LOG_FORMAT,
        )

    logger.add(
        sys.stderr,
        level="DEBUG" if settings.debug else settings.log_level,
        format=LOG_FORMAT,
        colorize=True,
    )


_ESCAPES = {
    8: "\\b",
    11: "\\v",
    12: "\\f",
    13: "\\r",
}

_PLAIN = frozenset(" /{},.:;<>!@#$%^&*()+=_'\"-")


def printable(data: str) -> str:
    """Render terminal data with control characters spelled out.

    Used when logging raw PTY traffic so escape sequences don't garble the log.

    Example:
        >>> printable("hi\\r\\n")
        'hi\\\\r\\\\x0a'
    """
    out: list[str] = []
    for char in data:
        if char.isascii() and (char.isalnum() or char in _PLAIN):
            out.append(char)
            continue
        code = ord(char)
        if code in _ESCAPES:
            out.append(_ESCAPES[code])
        elif code < 0x100:
            out.append(f"\\x{code:02x}")
        else:
            out.append(f"\\u{code:04x}")
    return "".join(out)
