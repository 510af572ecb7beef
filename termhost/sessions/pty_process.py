"""
PTY-backed child process.

This is the process-spawn primitive the session manager consumes:

- ``spawn()`` - open a PTY pair and start a child on the slave side
- ``on_data()`` / ``on_exit()`` - subscribe to output and termination
- ``write()`` - send input (buffered, never blocks the loop)
- ``resize()`` - update terminal dimensions (TIOCSWINSZ ioctl)
- ``destroy()`` - stop I/O, close the master fd, hang up the child

All callbacks run on the event loop thread. For one process, every output
callback fires before the exit callback.
"""

from __future__ import annotations

import asyncio
import codecs
import fcntl
import os
import pty
import signal
import struct
import subprocess
import termios
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from loguru import logger

from termhost.core.exceptions import SpawnError

DataCallback = Callable[[str], Any]
ExitCallback = Callable[[int | None], Any]


def _set_winsize(fd: int, columns: int, rows: int) -> None:
    """Apply terminal dimensions to a PTY fd."""
    # struct winsize: rows, cols, xpixel, ypixel
    winsize = struct.pack("HHHH", rows, columns, 0, 0)
    fcntl.ioctl(fd, termios.TIOCSWINSZ, winsize)


def _acquire_controlling_tty() -> None:
    """Runs in the child after setsid(): make stdin (the slave) its terminal."""
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


class PtyProcess:
    """
    A child process attached to a pseudo-terminal.

    Architecture:
    - Output is read from the master fd with ``loop.add_reader``
    - Input is written non-blocking; leftovers flushed with ``loop.add_writer``
    - A watcher task awaits process exit, drains pending output, then
      notifies exit subscribers

    Attributes:
        command: Executable that was started
        pid: Child process id
        exit_code: Exit status once the child has exited (None before)
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        master_fd: int,
        command: str,
        read_chunk_size: int = 4096,
    ) -> None:
        """
        Wrap an already started child. Use :meth:`spawn` instead.

        Args:
            process: The asyncio subprocess running on the slave side.
            master_fd: Non-blocking master side of the PTY.
            command: Executable name (for logs).
            read_chunk_size: Maximum bytes per read.
        """
        self._loop = asyncio.get_running_loop()
        self._process = process
        self._master_fd: int | None = master_fd
        self.command = command
        self._chunk_size = read_chunk_size

        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._data_callbacks: list[DataCallback] = []
        self._exit_callbacks: list[ExitCallback] = []
        self._write_buffer = bytearray()

        self._reading = False
        self._writing = False
        self._exited = False
        self._destroyed = False

        self._start_reading()
        self._wait_task: asyncio.Task[None] | None = self._loop.create_task(
            self._watch_exit(), name=f"pty-exit-{process.pid}"
        )

    @classmethod
    async def spawn(
        cls,
        command: str,
        args: Sequence[str],
        columns: int,
        rows: int,
        env: Mapping[str, str] | None = None,
        term_name: str = "xterm-color",
        cwd: str | None = None,
        read_chunk_size: int = 4096,
    ) -> PtyProcess:
        """
        Start ``command`` with a new PTY as its controlling terminal.

        Args:
            command: Executable (looked up on PATH).
            args: Arguments, not including the executable.
            columns: Initial terminal width.
            rows: Initial terminal height.
            env: Environment for the child; defaults to a copy of ours.
            term_name: Value exported as TERM.
            cwd: Working directory for the child.
            read_chunk_size: Maximum bytes per output event.

        Returns:
            The running PtyProcess.

        Raises:
            SpawnError: If the PTY cannot be opened or the child cannot start.
        """
        try:
            master_fd, slave_fd = pty.openpty()
        except OSError as e:
            raise SpawnError(command, f"openpty failed: {e}") from e

        child_env = dict(os.environ if env is None else env)
        child_env["TERM"] = term_name

        try:
            _set_winsize(slave_fd, columns, rows)
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                env=child_env,
                cwd=cwd,
                start_new_session=True,
                preexec_fn=_acquire_controlling_tty,
            )
        except (OSError, ValueError, struct.error, subprocess.SubprocessError) as e:
            os.close(master_fd)
            raise SpawnError(command, str(e)) from e
        finally:
            # Only the child keeps the slave side open
            os.close(slave_fd)

        os.set_blocking(master_fd, False)
        logger.debug(f"[PtyProcess] Spawned {command} pid={process.pid} ({columns}x{rows})")
        return cls(process, master_fd, command, read_chunk_size)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def exit_code(self) -> int | None:
        return self._process.returncode

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def on_data(self, callback: DataCallback) -> None:
        """Subscribe to output chunks (decoded text)."""
        self._data_callbacks.append(callback)

    def on_exit(self, callback: ExitCallback) -> None:
        """Subscribe to process termination; receives the exit status."""
        self._exit_callbacks.append(callback)

    # =========================================================================
    # OUTPUT
    # =========================================================================

    def _start_reading(self) -> None:
        if self._master_fd is not None and not self._reading:
            self._loop.add_reader(self._master_fd, self._on_readable)
            self._reading = True

    def _stop_reading(self) -> None:
        if self._reading and self._master_fd is not None:
            self._loop.remove_reader(self._master_fd)
        self._reading = False

    def _read_once(self) -> bytes | None:
        """
        Read one chunk from the master.

        Returns:
            The bytes read, ``b""`` if nothing is available right now,
            or None once the slave side has been closed.
        """
        if self._master_fd is None:
            return None
        try:
            data = os.read(self._master_fd, self._chunk_size)
        except BlockingIOError:
            return b""
        except OSError:
            # Linux reports EIO once every slave fd is closed
            return None
        return data if data else None

    def _on_readable(self) -> None:
        data = self._read_once()
        if data is None:
            self._stop_reading()
            return
        if data:
            self._deliver(data)

    def _deliver(self, data: bytes) -> None:
        self._emit_text(self._decoder.decode(data))

    def _emit_text(self, text: str) -> None:
        if not text:
            return
        for callback in list(self._data_callbacks):
            try:
                callback(text)
            except Exception as e:
                logger.error(f"[PtyProcess] Data callback error (pid={self.pid}): {e}")

    def _drain(self) -> None:
        """Deliver whatever output is still buffered in the PTY."""
        while not self._destroyed:
            data = self._read_once()
            if not data:
                break
            self._deliver(data)

        if not self._destroyed:
            self._emit_text(self._decoder.decode(b"", final=True))

    async def _watch_exit(self) -> None:
        returncode = await self._process.wait()
        if self._destroyed:
            return

        self._drain()
        self._stop_reading()
        self._exited = True

        logger.debug(f"[PtyProcess] {self.command} pid={self.pid} exited with {returncode}")

        for callback in list(self._exit_callbacks):
            try:
                callback(returncode)
            except Exception as e:
                logger.error(f"[PtyProcess] Exit callback error (pid={self.pid}): {e}")

    # =========================================================================
    # INPUT
    # =========================================================================

    def write(self, data: str) -> None:
        """
        Send input to the child.

        Data that the PTY cannot accept immediately is buffered and written
        as soon as the master becomes writable, in order.
        """
        if self._destroyed or self._master_fd is None:
            logger.debug(f"[PtyProcess] Write to destroyed process pid={self.pid} ignored")
            return

        self._write_buffer.extend(data.encode("utf-8"))
        if not self._writing:
            self._flush()

    def _flush(self) -> None:
        if self._master_fd is None:
            return
        try:
            while self._write_buffer:
                written = os.write(self._master_fd, self._write_buffer)
                del self._write_buffer[:written]
        except BlockingIOError:
            pass
        except OSError as e:
            logger.warning(f"[PtyProcess] Write failed (pid={self.pid}): {e}")
            self._write_buffer.clear()

        if self._write_buffer and not self._writing:
            self._loop.add_writer(self._master_fd, self._flush)
            self._writing = True
        elif not self._write_buffer and self._writing:
            self._loop.remove_writer(self._master_fd)
            self._writing = False

    def resize(self, columns: int, rows: int) -> None:
        """Update the terminal dimensions seen by the child."""
        if self._destroyed or self._master_fd is None:
            return
        try:
            _set_winsize(self._master_fd, columns, rows)
        except (OSError, struct.error) as e:
            logger.warning(f"[PtyProcess] Resize failed (pid={self.pid}): {e}")

    # =========================================================================
    # TEARDOWN
    # =========================================================================

    def destroy(self) -> None:
        """
        Release the PTY and hang up the child.

        Note:
            Safe to call multiple times. No callback fires afterwards.
        """
        if self._destroyed:
            return
        self._destroyed = True

        self._data_callbacks.clear()
        self._exit_callbacks.clear()
        self._stop_reading()

        if self._master_fd is not None:
            if self._writing:
                self._loop.remove_writer(self._master_fd)
                self._writing = False
            try:
                os.close(self._master_fd)
            except OSError as e:
                logger.debug(f"[PtyProcess] Closing master fd failed: {e}")
            self._master_fd = None
        self._write_buffer.clear()

        if self._wait_task is not None and not self._exited and not self._wait_task.done():
            self._wait_task.cancel()
        self._wait_task = None

        if self._process.returncode is None:
            try:
                # The child leads its own session, so its pid is the group id
                os.killpg(self._process.pid, signal.SIGHUP)
            except ProcessLookupError:
                pass  # Process already exited
            except OSError as e:
                logger.warning(f"[PtyProcess] Failed to signal pid={self.pid}: {e}")

        logger.debug(f"[PtyProcess] Destroyed {self.command} pid={self.pid}")

    def __repr__(self) -> str:
        """String representation."""
        return f"{self.__class__.__name__}(command={self.command!r}, pid={self.pid})"
