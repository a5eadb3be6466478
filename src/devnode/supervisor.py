"""Dev node process launch and startup supervision."""

import os
import selectors
import shutil
import subprocess
import time
from typing import IO

import structlog

from .announcements import AnnouncementParser
from .config import LaunchConfiguration, SupervisorSettings
from .exceptions import (
    ExecutableNotFound,
    ProcessExited,
    SpawnIOError,
    StartupTimeout,
)
from .instance import RunningInstance
from .keys import KeyPair
from .ports import find_free_port

logger = structlog.get_logger()

# Pause between end-of-stream checks while the child is still alive
EOF_POLL_INTERVAL = 0.05


def _format_seconds(seconds: float) -> str:
    seconds = float(seconds)
    return str(int(seconds)) if seconds.is_integer() else repr(seconds)


def build_command(executable: str, config: LaunchConfiguration, port: int) -> list[str]:
    """Build the node command line.

    Flag order is fixed: -p, -m, -b, -f, then extra args verbatim.
    """
    cmd = [executable, "-p", str(port)]
    if config.mnemonic is not None:
        cmd += ["-m", config.mnemonic]
    if config.block_time is not None:
        cmd += ["-b", _format_seconds(config.block_time)]
    if config.fork is not None:
        cmd += ["-f", config.fork]
    cmd += list(config.args)
    return cmd


class _LineReader:
    """Reads lines from the child's output, waiting on readiness where possible.

    On POSIX pipes a selector wait with the remaining time precedes each read,
    so a silent child cannot hold the caller past the deadline. Streams without
    a selectable descriptor fall back to plain blocking reads.
    """

    def __init__(self, stream: IO[bytes]):
        self._stream = stream
        self._selector: selectors.BaseSelector | None = None

        if os.name == "nt":
            return  # select() only supports sockets there
        try:
            fd = stream.fileno()
        except (OSError, ValueError):
            return
        self._selector = selectors.DefaultSelector()
        self._selector.register(fd, selectors.EVENT_READ)

    def wait(self, timeout: float) -> bool:
        """Return False if no data arrived within ``timeout`` seconds."""
        if self._selector is None:
            return True
        return bool(self._selector.select(max(timeout, 0.0)))

    def readline(self) -> bytes:
        return self._stream.readline()

    def close(self) -> None:
        # Only the selector; the stream stays attached to the live process
        if self._selector is not None:
            self._selector.close()
            self._selector = None


class _DeadlineExceeded(Exception):
    pass


class ProcessSupervisor:
    """Spawns dev nodes and waits for them to become ready."""

    def __init__(self, settings: SupervisorSettings | None = None):
        self.settings = settings or SupervisorSettings()

    def spawn(
        self,
        config: LaunchConfiguration,
        startup_timeout: float | None = None,
    ) -> RunningInstance:
        """Launch a node and block until it announces it is listening.

        Args:
            config: How to start the node. Not modified.
            startup_timeout: Seconds to wait for the ready signal. Defaults to
                the configured ``startup_timeout_ms``.

        Returns:
            A running instance that owns the child process.

        Raises:
            InvalidConfiguration: If the configuration fails validation.
            ExecutableNotFound: If the node binary is not on PATH.
            SpawnIOError: If the process or its output pipe could not be set up.
            StartupTimeout: If the node was not ready in time. The child has
                been killed.
            KeyParseError: If a key announcement could not be decoded.
            ProcessExited: If the node exited before becoming ready.
        """
        config = config.validated()
        if startup_timeout is None:
            startup_timeout = self.settings.startup_timeout_ms / 1000.0

        executable = shutil.which(self.settings.executable)
        if executable is None:
            raise ExecutableNotFound(self.settings.executable)

        port = config.port if config.port is not None else find_free_port()
        cmd = build_command(executable, config, port)

        logger.info("starting_devnode", executable=executable, port=port, args=cmd[1:])

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                bufsize=0,
            )
        except FileNotFoundError as e:
            raise ExecutableNotFound(self.settings.executable) from e
        except OSError as e:
            raise SpawnIOError(f"Could not start {executable}: {e}") from e

        start = time.monotonic()

        if process.stdout is None:
            self._kill(process)
            raise SpawnIOError(f"Could not capture output of {executable}")

        try:
            keys = self._await_ready(process, start + startup_timeout)
        except _DeadlineExceeded:
            logger.error("startup_timeout", pid=process.pid, timeout_s=startup_timeout)
            cleanup_error = self._kill(process)
            raise StartupTimeout(startup_timeout, cleanup_error) from cleanup_error
        except BaseException:
            self._kill(process)
            raise

        logger.info(
            "devnode_ready",
            pid=process.pid,
            port=port,
            keys=len(keys),
            elapsed_ms=round((time.monotonic() - start) * 1000),
        )

        return RunningInstance(
            process=process,
            keys=keys,
            port=port,
            host=self.settings.host,
            stop_timeout=self.settings.stop_timeout_ms / 1000.0,
        )

    def _await_ready(self, process: subprocess.Popen, deadline: float) -> tuple[KeyPair, ...]:
        """Drive the announcement parser until the ready signal.

        Raises:
            _DeadlineExceeded: If the deadline passes first.
        """
        parser = AnnouncementParser()
        reader = _LineReader(process.stdout)

        try:
            while not parser.is_ready:
                remaining = deadline - time.monotonic()
                if remaining <= 0 or not reader.wait(remaining):
                    raise _DeadlineExceeded()

                # May block past the deadline if the child writes a partial line
                try:
                    raw = reader.readline()
                except OSError as e:
                    raise SpawnIOError(f"Could not read node output: {e}") from e

                if not raw:
                    returncode = process.poll()
                    if returncode is not None:
                        raise ProcessExited(returncode)
                    time.sleep(EOF_POLL_INTERVAL)
                    continue

                parser.feed(raw.decode("utf-8", errors="replace"))
        finally:
            reader.close()

        return parser.keys

    def _kill(self, process: subprocess.Popen) -> Exception | None:
        """Kill a child that never became ready.

        Returns:
            The exception if killing failed, else None.
        """
        try:
            process.kill()
            process.wait(timeout=self.settings.stop_timeout_ms / 1000.0)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error("devnode_kill_failed", pid=process.pid, error=repr(e))
            return e
        finally:
            if process.stdout is not None:
                process.stdout.close()

        logger.info("devnode_killed", pid=process.pid, exit_code=process.returncode)
        return None
