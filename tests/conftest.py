"""Pytest configuration and shared fixtures."""

import json
import os
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
from loguru import logger

from termhost.core.exceptions import SpawnError

# Set test environment
os.environ.setdefault("TERMHOST_LOG_LEVEL", "DEBUG")
os.environ.setdefault("TERMHOST_DEBUG", "true")


# =============================================================================
# FAKE PROCESS
# =============================================================================


class FakePtyProcess:
    """In-memory stand-in for PtyProcess; tests drive its events by hand."""

    _pid_counter = 4000

    def __init__(
        self,
        command: str,
        args: list[str],
        columns: int,
        rows: int,
        env: dict[str, str] | None = None,
        echo: bool = False,
        **kwargs: Any,
    ) -> None:
        FakePtyProcess._pid_counter += 1
        self.pid = FakePtyProcess._pid_counter
        self.command = command
        self.args = args
        self.columns = columns
        self.rows = rows
        self.env = env
        self.options = kwargs
        self.echo = echo

        self.written: list[str] = []
        self.resizes: list[tuple[int, int]] = []
        self.destroy_count = 0
        self._data_callbacks: list[Callable[[str], Any]] = []
        self._exit_callbacks: list[Callable[[int | None], Any]] = []

    @property
    def destroyed(self) -> bool:
        return self.destroy_count > 0

    def on_data(self, callback: Callable[[str], Any]) -> None:
        self._data_callbacks.append(callback)

    def on_exit(self, callback: Callable[[int | None], Any]) -> None:
        self._exit_callbacks.append(callback)

    def write(self, data: str) -> None:
        self.written.append(data)
        if self.echo:
            self.emit_data(data)

    def resize(self, columns: int, rows: int) -> None:
        self.resizes.append((columns, rows))

    def destroy(self) -> None:
        self.destroy_count += 1
        self._data_callbacks.clear()
        self._exit_callbacks.clear()

    def emit_data(self, text: str) -> None:
        for callback in list(self._data_callbacks):
            callback(text)

    def emit_exit(self, code: int | None = 0) -> None:
        for callback in list(self._exit_callbacks):
            callback(code)


class FakeSpawner:
    """Async process factory with the same call signature as PtyProcess.spawn."""

    def __init__(self, echo: bool = False) -> None:
        self.echo = echo
        self.processes: list[FakePtyProcess] = []
        self.fail_commands: set[str] = set()

    async def __call__(
        self,
        command: str,
        args: list[str],
        columns: int,
        rows: int,
        env: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> FakePtyProcess:
        if command in self.fail_commands:
            raise SpawnError(command, "No such file or directory")
        process = FakePtyProcess(command, args, columns, rows, env=env, echo=self.echo, **kwargs)
        self.processes.append(process)
        return process

    @property
    def last(self) -> FakePtyProcess:
        return self.processes[-1]


class RecordingWindow:
    """Message sink that keeps every decoded message it receives."""

    def __init__(self) -> None:
        self.received: list[dict[str, Any]] = []

    async def sink(self, text: str) -> None:
        self.received.append(json.loads(text))

    def of_type(self, message_type: str) -> list[dict[str, Any]]:
        return [m for m in self.received if m["type"] == message_type]


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def themes_dir(tmp_path: Path) -> Path:
    """A themes directory with two valid themes and assorted broken entries."""
    root = tmp_path / "themes"
    entries = {
        "default": {"name": "Default", "description": "Stock theme"},
        "solarized": {"name": "Solarized"},
        "nameless": {"description": "No name field"},
        "blank": {"name": ""},
    }
    for directory, info in entries.items():
        (root / directory).mkdir(parents=True)
        (root / directory / "theme.json").write_text(json.dumps(info))

    (root / "broken").mkdir()
    (root / "broken" / "theme.json").write_text("{not json")
    (root / "empty").mkdir()
    (root / "stray-file.txt").write_text("not a theme")
    return root


@pytest.fixture
def settings(tmp_path: Path, themes_dir: Path) -> Generator:
    """Settings isolated to a temporary directory."""
    from termhost.core.config import Settings, clear_settings_cache

    clear_settings_cache()

    yield Settings(
        themes_dir=themes_dir,
        config_path=tmp_path / "config.json",
        default_shell="/bin/sh",
    )

    clear_settings_cache()


@pytest.fixture
def spawner() -> FakeSpawner:
    """Provide a fake process factory."""
    return FakeSpawner()


@pytest.fixture
def context(settings, spawner: FakeSpawner):
    """Provide an isolated AppContext wired to the fake spawner."""
    from termhost.core.context import AppContext

    return AppContext.create(settings=settings, spawner=spawner)


@pytest.fixture
def open_window(context) -> Callable[[], tuple[int, RecordingWindow]]:
    """Factory that opens a window on the context's router and records its traffic."""

    def _open() -> tuple[int, RecordingWindow]:
        window = RecordingWindow()
        channel = context.router.open_window(window.sink)
        return channel.window_id, window

    return _open


@pytest.fixture
def log_warnings() -> Generator[list[str], None, None]:
    """Collect the text of every WARNING-or-above log record emitted during a test."""
    records: list[str] = []
    handler_id = logger.add(lambda message: records.append(message.record["message"]), level="WARNING")
    yield records
    logger.remove(handler_id)


# Markers
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")
