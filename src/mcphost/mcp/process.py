"""Process supervisor: owns one MCP server child process and its pipes."""

import asyncio
import os
import shlex
import signal
import subprocess
import sys
from collections.abc import Callable
from pathlib import Path

from mcphost.config.models import ServerConfig
from mcphost.errors import create_error, error_from_exception
from mcphost.logging import ServerLogger
from mcphost.types import LogLevel

from .framer import LineFramer

READ_CHUNK_SIZE = 64 * 1024

StdoutCallback = Callable[[bytes], None]
ExitCallback = Callable[[int | None], None]
ErrorCallback = Callable[[BaseException], None]


def describe_exit(returncode: int | None) -> str | None:
    """Human-readable exit reason, or None for a clean exit."""
    if returncode is None or returncode == 0:
        return None
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = str(-returncode)
        return f"Terminated by signal {name}"
    return f"Exit code {returncode}"


class ProcessSupervisor:
    """Spawns, pumps and kills a single server process.

    stdout chunks are handed to ``on_stdout`` in arrival order by one read
    loop; that loop ends when the pipe closes and then reports the exit code
    through ``on_exit``. Writes go through an owned outbound queue drained by
    one writer task, so bytes reach stdin in the order ``write`` was called.
    stderr is framed into lines and logged, never parsed.

    After ``kill()`` the supervisor is detached: it no longer delivers
    stdout or exit callbacks.
    """

    def __init__(
        self,
        config: ServerConfig,
        on_stdout: StdoutCallback,
        on_exit: ExitCallback,
        on_error: ErrorCallback | None = None,
        logger: ServerLogger | None = None,
        kill_timeout: float = 5.0,
    ):
        """Initialize supervisor.

        Args:
            config: Server launch description
            on_stdout: Receives raw stdout chunks
            on_exit: Receives the exit code of an unsolicited exit
            on_error: Receives runtime faults (failed writes, callback errors)
            logger: Optional server-scoped logger
            kill_timeout: Seconds between SIGTERM and SIGKILL
        """
        self.config = config
        self._on_stdout = on_stdout
        self._on_exit = on_exit
        self._on_error = on_error
        self._logger = logger
        self._kill_timeout = kill_timeout

        self._process: asyncio.subprocess.Process | None = None
        self._outbox: asyncio.Queue[tuple[bytes, asyncio.Future[None]]] | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._writer: asyncio.Task[None] | None = None
        self._reaper: asyncio.Task[None] | None = None
        self._detached = False
        self._outbox_closed = False

    def _log(self, level: LogLevel, message: str) -> None:
        if self._logger:
            self._logger.log(level, message)

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process else None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def detached(self) -> bool:
        return self._detached

    def _use_shell(self) -> bool:
        if self.config.shell is not None:
            return self.config.shell
        # Windows needs the shell to resolve npx.cmd and friends
        return sys.platform == "win32"

    async def spawn(self, startup_grace: float = 0.0) -> None:
        """Launch the server process and start its I/O tasks.

        Args:
            startup_grace: Seconds the process must survive before the spawn
                counts as confirmed (0 skips the check)

        Raises:
            MCPHostError(MCP_COMMAND_NOT_FOUND) if the binary does not exist
            MCPHostError(MCP_SPAWN_FAILED) for any other launch failure
        """
        if self._process is not None:
            raise RuntimeError("ProcessSupervisor.spawn() called twice")

        config = self.config
        if not config.command:
            raise create_error(
                "MCP_SPAWN_FAILED",
                server_name=config.name,
                reason="no command configured",
            )
        if config.cwd and not Path(config.cwd).is_dir():
            raise create_error(
                "MCP_SPAWN_FAILED",
                server_name=config.name,
                reason=f"working directory not found: {config.cwd}",
            )

        env = {**os.environ, **config.env}
        cwd = config.cwd or None

        if self._logger:
            self._logger.spawning(config.command, config.args)

        try:
            if self._use_shell():
                argv = [config.command, *config.args]
                if sys.platform == "win32":
                    command_line = subprocess.list2cmdline(argv)
                else:
                    command_line = shlex.join(argv)
                process = await asyncio.create_subprocess_shell(
                    command_line,
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    env=env,
                    cwd=cwd,
                )
            else:
                process = await asyncio.create_subprocess_exec(
                    config.command,
                    *config.args,
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    env=env,
                    cwd=cwd,
                )
        except OSError as e:
            raise error_from_exception(
                e,
                server_name=config.name,
                command=config.command,
                reason=e.strerror or str(e),
            ) from e

        self._process = process
        if self._detached:
            # kill() arrived while the process was being created
            self._terminate(process)
            raise create_error("MCP_CONNECTION_CLOSED", server_name=config.name)

        self._outbox = asyncio.Queue()
        self._writer = asyncio.create_task(
            self._drain_outbox(process), name=f"mcp-{config.name}-stdin"
        )
        self._tasks = [
            asyncio.create_task(self._pump_stdout(process), name=f"mcp-{config.name}-stdout"),
            asyncio.create_task(self._pump_stderr(process), name=f"mcp-{config.name}-stderr"),
            self._writer,
        ]

        if startup_grace > 0:
            await asyncio.sleep(startup_grace)
            if process.returncode is not None:
                raise create_error(
                    "MCP_SPAWN_FAILED",
                    server_name=config.name,
                    reason=(
                        "Process failed to start"
                        f" ({describe_exit(process.returncode) or 'exited immediately'})"
                    ),
                )

    def write(self, data: bytes) -> asyncio.Future[None]:
        """Queue bytes for stdin.

        Returns:
            Future resolved once the bytes are flushed, or rejected with
            MCPHostError(MCP_CONNECTION_CLOSED) if they cannot be written
        """
        written: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        if self._outbox is None or self._outbox_closed:
            written.set_exception(
                create_error("MCP_CONNECTION_CLOSED", server_name=self.config.name)
            )
            return written
        self._outbox.put_nowait((data, written))
        return written

    def kill(self) -> None:
        """Detach and send a termination signal without waiting for exit.

        A process still alive after ``kill_timeout`` gets SIGKILL from a
        background reaper.
        """
        if self._detached:
            return
        self._detached = True
        self._close_outbox()

        process = self._process
        if process is None or process.returncode is not None:
            return
        self._terminate(process)

    def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.stdin is not None:
            process.stdin.close()
        try:
            process.terminate()
        except ProcessLookupError:
            return
        self._reaper = asyncio.get_running_loop().create_task(
            self._reap(process), name=f"mcp-{self.config.name}-reaper"
        )

    async def wait_closed(self, timeout: float | None = None) -> None:
        """Wait for the I/O tasks and the reaper to finish."""
        tasks = [task for task in [*self._tasks, self._reaper] if task is not None]
        if tasks:
            await asyncio.wait(tasks, timeout=timeout)

    async def _reap(self, process: asyncio.subprocess.Process) -> None:
        try:
            await asyncio.wait_for(process.wait(), timeout=self._kill_timeout)
        except TimeoutError:
            self._log(
                LogLevel.WARN,
                f"Process did not exit within {self._kill_timeout}s, sending SIGKILL",
            )
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()

    async def _pump_stdout(self, process: asyncio.subprocess.Process) -> None:
        """Single read loop: stdout chunks in arrival order, then the exit."""
        assert process.stdout is not None
        while True:
            try:
                chunk = await process.stdout.read(READ_CHUNK_SIZE)
            except (ConnectionError, OSError) as e:
                self._report_error(e)
                break
            if not chunk:
                break
            if self._detached:
                continue
            try:
                self._on_stdout(chunk)
            except Exception as e:
                self._report_error(e)

        returncode = await process.wait()
        self._close_outbox()
        if self._detached:
            return
        self._detached = True
        self._on_exit(returncode)

    async def _pump_stderr(self, process: asyncio.subprocess.Process) -> None:
        """Log stderr line by line; it is diagnostic text only."""
        assert process.stderr is not None
        framer = LineFramer()
        while True:
            try:
                chunk = await process.stderr.read(READ_CHUNK_SIZE)
            except (ConnectionError, OSError):
                break
            if not chunk:
                break
            for line in framer.feed(chunk):
                if self._logger:
                    self._logger.stderr(line)
        tail = framer.pending.strip()
        if tail and self._logger:
            self._logger.stderr(tail)

    async def _drain_outbox(self, process: asyncio.subprocess.Process) -> None:
        """Single writer: flushes queued messages to stdin in order."""
        assert process.stdin is not None
        assert self._outbox is not None
        while True:
            data, written = await self._outbox.get()
            try:
                process.stdin.write(data)
                await process.stdin.drain()
            except asyncio.CancelledError:
                if not written.done():
                    written.set_exception(
                        create_error("MCP_CONNECTION_CLOSED", server_name=self.config.name)
                    )
                raise
            except (ConnectionError, OSError) as e:
                if not written.done():
                    written.set_exception(
                        error_from_exception(e, server_name=self.config.name)
                    )
                self._report_error(e)
            else:
                if not written.done():
                    written.set_result(None)

    def _close_outbox(self) -> None:
        """Stop the writer and fail anything still queued."""
        if self._outbox_closed:
            return
        self._outbox_closed = True

        if self._writer is not None and not self._writer.done():
            self._writer.cancel()

        if self._outbox is None:
            return
        while not self._outbox.empty():
            _, written = self._outbox.get_nowait()
            if not written.done():
                written.set_exception(
                    create_error("MCP_CONNECTION_CLOSED", server_name=self.config.name)
                )

    def _report_error(self, error: BaseException) -> None:
        self._log(LogLevel.WARN, f"Process I/O error: {error}")
        if self._on_error is not None and not self._detached:
            self._on_error(error)
