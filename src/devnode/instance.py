"""Handle to a running dev node."""

import subprocess
import weakref
from typing import IO

import structlog

from .exceptions import TerminationFailure
from .keys import KeyPair

logger = structlog.get_logger()


def _kill_abandoned(process: subprocess.Popen) -> None:
    """Finalizer for instances that were never terminated explicitly."""
    if process.poll() is not None:
        return
    logger.warning("killing_abandoned_devnode", pid=process.pid)
    try:
        process.kill()
        process.wait(timeout=2.0)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.error("abandoned_devnode_kill_failed", pid=process.pid, error=repr(e))


class RunningInstance:
    """A node that announced it is listening.

    Owns the child process. Use it as a context manager or call ``terminate``;
    if neither happens the process is killed when the instance is garbage
    collected or the interpreter exits.
    """

    def __init__(
        self,
        process: subprocess.Popen,
        keys: tuple[KeyPair, ...],
        port: int,
        host: str = "localhost",
        stop_timeout: float = 5.0,
    ):
        self._process = process
        self._keys = tuple(keys)
        self._port = port
        self._host = host
        self._stop_timeout = stop_timeout
        self._terminated = False
        self._finalizer = weakref.finalize(self, _kill_abandoned, process)

    @property
    def keys(self) -> tuple[KeyPair, ...]:
        """Announced keys, in the order the node printed them."""
        return self._keys

    @property
    def addresses(self) -> tuple[str, ...]:
        return tuple(key.address for key in self._keys)

    @property
    def port(self) -> int:
        return self._port

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def endpoint(self) -> str:
        """HTTP JSON-RPC endpoint."""
        return f"http://{self._host}:{self._port}"

    @property
    def ws_endpoint(self) -> str:
        """WebSocket JSON-RPC endpoint."""
        return f"ws://{self._host}:{self._port}"

    @property
    def stdout(self) -> IO[bytes] | None:
        """The node's output stream, positioned after the ready line."""
        return self._process.stdout

    @property
    def is_terminated(self) -> bool:
        return self._terminated

    def terminate(self, timeout: float | None = None) -> int:
        """Stop the node, gracefully first and then forcefully.

        Args:
            timeout: Seconds to wait after SIGTERM before sending SIGKILL.
                Defaults to the supervisor's stop timeout.

        Returns:
            The process exit code.

        Raises:
            TerminationFailure: If already terminated, or if the process could
                not be signalled or did not exit after SIGKILL.
        """
        if self._terminated:
            raise TerminationFailure(f"Node (pid {self.pid}) was already terminated")
        if timeout is None:
            timeout = self._stop_timeout

        logger.info("stopping_devnode", pid=self.pid, port=self._port)

        try:
            self._process.terminate()
            try:
                self._process.wait(timeout=timeout)
            except subprocess.TimeoutExpired:
                logger.warning("force_killing_devnode", pid=self.pid)
                self._process.kill()
                self._process.wait(timeout=timeout)
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.error("devnode_termination_failed", pid=self.pid, error=repr(e))
            raise TerminationFailure(
                f"Could not terminate node (pid {self.pid}); it may still be running"
            ) from e

        self._terminated = True
        self._finalizer.detach()
        self._close_stdout()

        logger.info("devnode_terminated", pid=self.pid, exit_code=self._process.returncode)
        return self._process.returncode

    def _close_stdout(self) -> None:
        if self._process.stdout is not None:
            self._process.stdout.close()

    def __enter__(self) -> "RunningInstance":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._terminated:
            self.terminate()

    def __repr__(self) -> str:
        state = "terminated" if self._terminated else "running"
        return f"RunningInstance(pid={self.pid}, port={self._port}, keys={len(self._keys)}, {state})"
