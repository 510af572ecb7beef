"""Unit tests for the session lifecycle manager."""

import pytest

from termhost.core.exceptions import SpawnError
from termhost.sessions.registry import SessionState


def advisories(records: list[str], action: str, session_id: int) -> int:
    """Count missing-session advisories for one request kind and id."""
    expected = f"{action} arrived for session {session_id} which doesn't exist"
    return sum(expected in record for record in records)


# =============================================================================
# CREATE
# =============================================================================


class TestCreate:
    """Tests for SessionManager.create."""

    @pytest.mark.asyncio
    async def test_returns_increasing_ids(self, context, open_window) -> None:
        """Test that successive creates return strictly increasing ids."""
        window_id, _ = open_window()

        ids = [await context.manager.create(window_id, "bash", [], 80, 24) for _ in range(5)]

        assert ids == sorted(set(ids))
        assert ids[0] == 1

    @pytest.mark.asyncio
    async def test_registers_running_session(self, context, open_window, spawner) -> None:
        """Test that a created session is registered and running."""
        window_id, _ = open_window()

        session_id = await context.manager.create(window_id, "bash", ["-l"], 100, 30)

        session = context.registry.lookup(session_id)
        assert session is not None
        assert session.window_id == window_id
        assert session.state == SessionState.RUNNING
        assert session.process is spawner.last
        assert (spawner.last.command, spawner.last.args) == ("bash", ["-l"])
        assert (spawner.last.columns, spawner.last.rows) == (100, 30)

    @pytest.mark.asyncio
    async def test_inherits_host_environment(self, context, open_window, spawner, monkeypatch) -> None:
        """Test that the child environment is a copy of the host's."""
        monkeypatch.setenv("TERMHOST_TEST_MARKER", "present")
        window_id, _ = open_window()

        await context.manager.create(window_id, "bash", [], 80, 24)

        assert spawner.last.env["TERMHOST_TEST_MARKER"] == "present"
        assert spawner.last.options["term_name"] == "xterm-color"

    @pytest.mark.asyncio
    async def test_empty_command_uses_default_shell(self, context, open_window, spawner) -> None:
        """Test fallback to the configured shell."""
        window_id, _ = open_window()

        await context.manager.create(window_id, "", [], 80, 24)

        assert spawner.last.command == "/bin/sh"

    @pytest.mark.asyncio
    async def test_spawn_error_is_raised_synchronously(self, context, open_window, spawner) -> None:
        """Test that a failed spawn raises and sends nothing."""
        window_id, window = open_window()
        spawner.fail_commands.add("no-such-shell")

        with pytest.raises(SpawnError):
            await context.manager.create(window_id, "no-such-shell", [], 80, 24)

        await context.router.channel(window_id).join()
        assert window.received == []
        assert len(context.registry) == 0

    @pytest.mark.asyncio
    async def test_failed_id_is_never_reused(self, context, open_window, spawner) -> None:
        """Test that ids keep increasing across a failed create."""
        window_id, _ = open_window()
        spawner.fail_commands.add("broken")

        first = await context.manager.create(window_id, "bash", [], 80, 24)
        with pytest.raises(SpawnError):
            await context.manager.create(window_id, "broken", [], 80, 24)
        third = await context.manager.create(window_id, "bash", [], 80, 24)

        assert third > first + 1


# =============================================================================
# OUTPUT AND EXIT BRIDGING
# =============================================================================


class TestProcessEvents:
    """Tests for output and exit bridging."""

    @pytest.mark.asyncio
    async def test_output_preserves_chunk_order(self, context, open_window, spawner) -> None:
        """Test that each chunk becomes one PtyOutput, in production order."""
        window_id, window = open_window()
        session_id = await context.manager.create(window_id, "bash", [], 80, 24)
        chunks = [f"chunk-{i}\r\n" for i in range(10)]

        for chunk in chunks:
            spawner.last.emit_data(chunk)
        await context.router.channel(window_id).join()

        outputs = window.of_type("pty_output")
        assert [m["data"] for m in outputs] == chunks
        assert all(m["id"] == session_id for m in outputs)

    @pytest.mark.asyncio
    async def test_output_goes_to_owning_window_only(self, context, open_window, spawner) -> None:
        """Test output routing between two windows."""
        first_id, first = open_window()
        second_id, second = open_window()
        await context.manager.create(first_id, "bash", [], 80, 24)
        first_process = spawner.last
        await context.manager.create(second_id, "bash", [], 80, 24)

        first_process.emit_data("only for window one")
        await context.router.channel(first_id).join()
        await context.router.channel(second_id).join()

        assert len(first.of_type("pty_output")) == 1
        assert second.of_type("pty_output") == []

    @pytest.mark.asyncio
    async def test_exit_emits_exactly_one_close(self, context, open_window, spawner) -> None:
        """Test that a process exit sends one PtyClose and removes the session."""
        window_id, window = open_window()
        session_id = await context.manager.create(window_id, "bash", [], 80, 24)
        process = spawner.last

        process.emit_data("bye\r\n")
        process.emit_exit(0)
        process.emit_exit(0)
        await context.router.channel(window_id).join()

        assert session_id not in context.registry
        assert process.destroy_count == 1
        assert [m["type"] for m in window.received] == ["pty_output", "pty_close"]
        assert window.of_type("pty_close") == [{"type": "pty_close", "id": session_id}]

    @pytest.mark.asyncio
    async def test_external_exit_of_session_five(self, context, open_window, spawner) -> None:
        """Test that the process behind id 5 exiting removes 5 and sends one Close."""
        window_id, window = open_window()
        for _ in range(5):
            await context.manager.create(window_id, "bash", [], 80, 24)
        process_five = spawner.processes[4]

        process_five.emit_exit(143)
        await context.router.channel(window_id).join()

        assert 5 not in context.registry
        assert context.registry.session_ids() == [1, 2, 3, 4]
        assert window.of_type("pty_close") == [{"type": "pty_close", "id": 5}]

    @pytest.mark.asyncio
    async def test_events_after_close_are_dropped(self, context, open_window, spawner) -> None:
        """Test that output/exit racing with an explicit close is dropped silently."""
        window_id, window = open_window()
        session_id = await context.manager.create(window_id, "bash", [], 80, 24)
        process = spawner.last
        data_callback = process._data_callbacks[0]
        exit_callback = process._exit_callbacks[0]

        context.manager.close(session_id)
        # Events already in flight when close ran
        data_callback("late output")
        exit_callback(0)
        await context.router.channel(window_id).join()

        assert window.received == []
        assert process.destroy_count == 1


# =============================================================================
# INPUT / RESIZE / CLOSE
# =============================================================================


class TestRequests:
    """Tests for input, resize and close."""

    @pytest.mark.asyncio
    async def test_input_and_resize_reach_process(self, context, open_window, spawner) -> None:
        """Test forwarding of input and new dimensions."""
        window_id, _ = open_window()
        session_id = await context.manager.create(window_id, "bash", [], 80, 24)

        assert context.manager.input(session_id, "echo hi\n")
        assert context.manager.resize(session_id, 132, 43)

        assert spawner.last.written == ["echo hi\n"]
        assert spawner.last.resizes == [(132, 43)]

    @pytest.mark.asyncio
    async def test_close_twice(self, context, open_window, spawner, log_warnings) -> None:
        """Test that a second close is a no-op that logs exactly one advisory."""
        window_id, window = open_window()
        session_id = await context.manager.create(window_id, "bash", [], 80, 24)
        process = spawner.last

        assert context.manager.close(session_id) is True
        assert advisories(log_warnings, "Close", session_id) == 0

        assert context.manager.close(session_id) is False
        assert advisories(log_warnings, "Close", session_id) == 1
        await context.router.channel(window_id).join()

        assert session_id not in context.registry
        assert process.destroy_count == 1
        assert window.received == []

    @pytest.mark.asyncio
    async def test_requests_for_removed_session(
        self, context, open_window, spawner, log_warnings
    ) -> None:
        """Test that input/resize on a removed id neither raise nor touch other sessions."""
        window_id, window = open_window()
        closed_id = await context.manager.create(window_id, "bash", [], 80, 24)
        closed_process = spawner.last
        live_id = await context.manager.create(window_id, "bash", [], 80, 24)
        live_process = spawner.last
        context.manager.close(closed_id)

        assert context.manager.input(closed_id, "ls\n") is False
        assert context.manager.resize(closed_id, 10, 10) is False
        assert advisories(log_warnings, "Input", closed_id) == 1
        assert advisories(log_warnings, "Resize", closed_id) == 1
        await context.router.channel(window_id).join()

        assert closed_process.written == []
        assert closed_process.resizes == []
        assert live_process.written == []
        assert live_process.resizes == []
        assert context.registry.lookup(live_id).state == SessionState.RUNNING
        assert window.received == []

    def test_requests_for_unknown_session(self, context, log_warnings) -> None:
        """Test that an id that never existed behaves like a closed one."""
        assert context.manager.input(77, "x") is False
        assert context.manager.resize(77, 80, 24) is False
        assert context.manager.close(77) is False

        for action in ("Input", "Resize", "Close"):
            assert advisories(log_warnings, action, 77) == 1

    @pytest.mark.asyncio
    async def test_close_all(self, context, open_window, spawner) -> None:
        """Test shutting every session down."""
        window_id, _ = open_window()
        for _ in range(3):
            await context.manager.create(window_id, "bash", [], 80, 24)

        closed = context.manager.close_all()

        assert closed == [1, 2, 3]
        assert len(context.registry) == 0
        assert all(p.destroy_count == 1 for p in spawner.processes)

    @pytest.mark.asyncio
    async def test_describe(self, context, open_window) -> None:
        """Test the status snapshot."""
        window_id, _ = open_window()
        await context.manager.create(window_id, "bash", [], 80, 24)

        described = context.manager.describe()

        assert len(described) == 1
        assert described[0]["id"] == 1
        assert described[0]["window_id"] == window_id
        assert described[0]["state"] == "running"


class TestScenarios:
    """End-to-end scenarios against the fake process."""

    @pytest.mark.asyncio
    async def test_create_input_close_then_stale_input(self, context, open_window) -> None:
        """Test create -> echo -> close -> stale input on window 1."""
        window_id, window = open_window()
        session_id = await context.manager.create(window_id, "bash", [], 80, 24)
        process = context.registry.lookup(session_id).process
        process.echo = True

        context.manager.input(session_id, "echo hi\n")
        await context.router.channel(window_id).join()
        assert any("hi" in m["data"] for m in window.of_type("pty_output"))

        context.manager.close(session_id)
        received_before = len(window.received)

        assert context.manager.input(session_id, "echo again\n") is False
        await context.router.channel(window_id).join()
        assert len(window.received) == received_before
        assert session_id == 1
