"""
Typed messages exchanged between a window and the session host.

Every message is a frozen pydantic model carrying a literal ``type`` tag.
The full set of kinds is closed; :data:`Message` is the discriminated union
over all of them and :func:`parse_message` is the only way raw wire data
becomes a typed message.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from termhost.core.exceptions import MessageError

CHANNEL_NAME = "termhost-ipc"

# struct winsize stores dimensions as unsigned shorts
MAX_DIMENSION = 65535


class MessageType(str, Enum):
    """Wire tags for every message kind."""

    CONFIG_REQUEST = "config_request"
    CONFIG = "config"
    THEMES_REQUEST = "themes_request"
    THEMES = "themes"
    PTY_CREATE = "pty_create"
    PTY_CREATED = "pty_created"
    PTY_INPUT = "pty_input"
    PTY_RESIZE = "pty_resize"
    PTY_OUTPUT = "pty_output"
    PTY_CLOSE = "pty_close"


# =============================================================================
# PAYLOAD MODELS
# =============================================================================


class ConfigSnapshot(BaseModel):
    """Immutable copy of the process-wide configuration."""

    model_config = ConfigDict(frozen=True)

    theme: str = Field(default="default", description="Active theme id")
    blinking_cursor: bool = Field(default=False, description="Blink the cursor")
    show_tips: Literal["always", "daily", "never"] = Field(
        default="always", description="When the tip viewer is shown"
    )
    tip_counter: int = Field(default=0, ge=0, description="Index of the next tip")
    theme_path: str = Field(default="", description="Resolved path to the theme's assets")


class ThemeDescriptor(BaseModel):
    """One valid theme found while scanning the themes directory."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Theme directory name")
    name: str = Field(min_length=1, description="Human readable theme name")
    path: str = Field(description="Absolute path of the theme directory")
    description: str | None = Field(default=None)


# =============================================================================
# MESSAGES
# =============================================================================


class BaseMessage(BaseModel):
    """Common base for all messages; instances are immutable."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    def to_json(self) -> str:
        """Serialize for the wire."""
        return self.model_dump_json()


class ConfigRequest(BaseMessage):
    type: Literal["config_request"] = "config_request"


class ConfigMessage(BaseMessage):
    type: Literal["config"] = "config"
    config: ConfigSnapshot


class ThemesRequest(BaseMessage):
    type: Literal["themes_request"] = "themes_request"


class ThemesMessage(BaseMessage):
    type: Literal["themes"] = "themes"
    themes: tuple[ThemeDescriptor, ...] = ()


class CreateSessionRequest(BaseMessage):
    type: Literal["pty_create"] = "pty_create"
    command: str = ""
    args: tuple[str, ...] = ()
    columns: int = Field(default=80, ge=1, le=MAX_DIMENSION)
    rows: int = Field(default=24, ge=1, le=MAX_DIMENSION)


class CreateSessionResponse(BaseMessage):
    type: Literal["pty_created"] = "pty_created"
    id: int


class PtyInput(BaseMessage):
    type: Literal["pty_input"] = "pty_input"
    id: int
    data: str


class PtyResize(BaseMessage):
    type: Literal["pty_resize"] = "pty_resize"
    id: int
    columns: int = Field(ge=1, le=MAX_DIMENSION)
    rows: int = Field(ge=1, le=MAX_DIMENSION)


class PtyOutput(BaseMessage):
    type: Literal["pty_output"] = "pty_output"
    id: int
    data: str


class PtyClose(BaseMessage):
    type: Literal["pty_close"] = "pty_close"
    id: int


Message = Annotated[
    ConfigRequest
    | ConfigMessage
    | ThemesRequest
    | ThemesMessage
    | CreateSessionRequest
    | CreateSessionResponse
    | PtyInput
    | PtyResize
    | PtyOutput
    | PtyClose,
    Field(discriminator="type"),
]

_message_adapter: TypeAdapter[Message] = TypeAdapter(Message)


def parse_message(raw: str | bytes | dict[str, Any]) -> Message:
    """
    Decode raw wire data into a typed message.

    Args:
        raw: JSON text or an already-decoded mapping.

    Returns:
        The typed message.

    Raises:
        MessageError: If the data is not JSON, carries an unknown tag,
            or is missing required fields.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MessageError(f"Invalid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise MessageError(f"Expected a JSON object, got {type(raw).__name__}")

    try:
        return _message_adapter.validate_python(raw)
    except ValidationError as e:
        raise MessageError(f"Malformed message (type={raw.get('type')!r}): {e}") from e
