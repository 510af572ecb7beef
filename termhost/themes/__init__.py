"""Configuration snapshots and theme discovery."""

from termhost.themes.provider import ConfigThemeProvider, scan_themes

__all__ = ["ConfigThemeProvider", "scan_themes"]
