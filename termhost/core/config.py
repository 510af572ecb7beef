"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TERMHOST_",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode (forces DEBUG on the console sink)",
    )
    log_dir: Path | None = Field(
        default=None,
        description="Directory for rotating log files (disabled if unset)",
    )

    # Themes and user configuration
    themes_dir: Path = Field(
        default=PACKAGE_DIR / "themes" / "builtin",
        description="Directory scanned for theme subdirectories",
    )
    config_path: Path = Field(
        default=Path.home() / ".config" / "termhost" / "config.json",
        description="User configuration file (JSON)",
    )

    # Sessions
    default_shell: str = Field(
        default="/bin/bash",
        description="Command used when a create request names no command",
    )
    term_name: str = Field(
        default="xterm-color",
        description="Value of TERM exported to spawned processes",
    )
    read_chunk_size: int = Field(
        default=4096,
        ge=64,
        description="Maximum bytes read from a PTY per output event",
    )

    # Server
    host: str = Field(default="127.0.0.1", description="Bind address for the host server")
    port: int = Field(default=8765, ge=1, le=65535, description="Bind port for the host server")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance loaded from environment.

    Example:
        >>> settings = get_settings()
        >>> settings.term_name
        'xterm-color'
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
