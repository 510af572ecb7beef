"""
termhost - PTY session host for terminal emulator front-ends.

Spawns pseudo-terminal backed processes and multiplexes their output to the
windows that own them over a typed message channel.
"""

__version__ = "0.1.0"
__author__ = "termhost Team"

__all__ = ["__version__"]
