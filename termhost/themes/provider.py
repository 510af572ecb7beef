"""
Config/theme provider.

Supplies configuration snapshots and the list of installed themes to the
message dispatcher. Themes are scanned once at startup; entries that cannot
be read or lack a name are skipped, never fatal.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

from loguru import logger

from termhost.channel.messages import ConfigSnapshot, ThemeDescriptor
from termhost.core.config import Settings, get_settings

THEME_CONFIG = "theme.json"
DEFAULT_THEME = "default"
SHOW_TIPS_VALUES = ("always", "daily", "never")

DEFAULT_CONFIG: dict[str, Any] = {
    "theme": DEFAULT_THEME,
    "blinking_cursor": False,
    "show_tips": "always",
    "tip_counter": 0,
}


def validate_theme_info(info: Any) -> bool:
    """A theme entry is usable when it has a non-empty string name."""
    return isinstance(info, dict) and isinstance(info.get("name"), str) and info["name"] != ""


def scan_themes(themes_dir: Path) -> dict[str, ThemeDescriptor]:
    """
    Scan for themes.

    Each subdirectory of ``themes_dir`` holding a valid ``theme.json`` is a
    theme, keyed by the directory name.

    Args:
        themes_dir: The directory to scan.

    Returns:
        Map of theme id to descriptor (empty if the directory is missing).
    """
    themes: dict[str, ThemeDescriptor] = {}
    if not themes_dir.is_dir():
        logger.warning(f"[Themes] Themes directory {themes_dir} not found")
        return themes

    for item in sorted(themes_dir.iterdir()):
        if not item.is_dir():
            continue

        info_path = item / THEME_CONFIG
        try:
            info = json.loads(info_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"[Themes] Unable to read {info_path}: {e}")
            continue

        if not validate_theme_info(info):
            logger.warning(f"[Themes] Skipping {info_path}: missing or empty 'name'")
            continue

        description = info.get("description")
        themes[item.name] = ThemeDescriptor(
            id=item.name,
            name=info["name"],
            path=str(item.resolve()),
            description=description if isinstance(description, str) else None,
        )

    logger.info(f"[Themes] Found {len(themes)} themes in {themes_dir}")
    return themes


def read_configuration_file(path: Path) -> dict[str, Any]:
    """
    Read the user configuration.

    A missing file yields the defaults. Unreadable or malformed files are
    logged and also yield the defaults. Field values of the wrong type are
    replaced by their default.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    if not path.exists():
        return config

    try:
        loaded = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"[Config] Unable to read {path}, using defaults: {e}")
        return config

    if not isinstance(loaded, dict):
        logger.warning(f"[Config] {path} does not hold a JSON object, using defaults")
        return config

    if isinstance(loaded.get("theme"), str) and loaded["theme"]:
        config["theme"] = loaded["theme"]
    config["blinking_cursor"] = loaded.get("blinking_cursor") is True
    if loaded.get("show_tips") in SHOW_TIPS_VALUES:
        config["show_tips"] = loaded["show_tips"]
    tip_counter = loaded.get("tip_counter")
    if isinstance(tip_counter, int) and not isinstance(tip_counter, bool) and tip_counter >= 0:
        config["tip_counter"] = tip_counter
    return config


class ConfigThemeProvider:
    """
    Answers config and themes requests.

    The live configuration is mutable in memory; every snapshot handed out
    is an independent frozen copy.

    Example:
        >>> provider = ConfigThemeProvider()
        >>> provider.get_full_config_snapshot().theme
        'default'
        >>> [t.name for t in provider.get_themes()]
        ['Default']
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """
        Load configuration and scan themes.

        Args:
            settings: Optional settings override.
        """
        self.settings = settings or get_settings()
        self.themes_dir = Path(self.settings.themes_dir)
        self._themes = scan_themes(self.themes_dir)
        self._config = read_configuration_file(Path(self.settings.config_path))

        if self._config["theme"] not in self._themes:
            if self._config["theme"] != DEFAULT_THEME:
                logger.warning(
                    f"[Config] Theme {self._config['theme']!r} not found, "
                    f"falling back to {DEFAULT_THEME!r}"
                )
            self._config["theme"] = DEFAULT_THEME

    def get_config(self) -> dict[str, Any]:
        """The live configuration (mutations are visible to later snapshots)."""
        return self._config

    def update_config(self, **values: Any) -> None:
        """Change live configuration values in memory."""
        unknown = set(values) - set(DEFAULT_CONFIG)
        if unknown:
            raise KeyError(f"Unknown config keys: {sorted(unknown)}")
        self._config.update(values)

    def get_full_config_snapshot(self) -> ConfigSnapshot:
        """Frozen copy of the configuration plus the active theme's path."""
        full_config = copy.deepcopy(self._config)
        full_config["theme_path"] = str(self.themes_dir / full_config["theme"])
        logger.debug(f"[Config] Full config: {full_config}")
        return ConfigSnapshot(**full_config)

    def get_themes(self) -> list[ThemeDescriptor]:
        return list(self._themes.values())
