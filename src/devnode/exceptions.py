"""Exceptions raised while launching and stopping a dev node."""


class DevNodeError(Exception):
    """Base exception for dev node errors."""

    pass


class LaunchError(DevNodeError):
    """No usable instance was produced by a launch attempt."""

    pass


class InvalidConfiguration(LaunchError):
    """Launch configuration failed validation at spawn time."""

    pass


class ExecutableNotFound(LaunchError):
    """The node binary is not resolvable on PATH."""

    def __init__(self, executable: str):
        super().__init__(f"Executable '{executable}' not found on PATH")
        self.executable = executable


class SpawnIOError(LaunchError):
    """The process could not be created or its output could not be read."""

    pass


class ProcessExited(LaunchError):
    """The node exited before announcing it was ready."""

    def __init__(self, returncode: int | None):
        super().__init__(f"Node exited before becoming ready (exit code {returncode})")
        self.returncode = returncode


class StartupTimeout(LaunchError):
    """The node did not become ready before the startup deadline.

    If killing the half-started process also failed, ``cleanup_error`` holds
    that failure and the message reports both.
    """

    def __init__(self, timeout: float, cleanup_error: BaseException | None = None):
        message = f"Timed out after {timeout:.3f}s waiting for node to start"
        if cleanup_error is not None:
            message += f"; killing the process also failed: {cleanup_error!r}"
        super().__init__(message)
        self.timeout = timeout
        self.cleanup_error = cleanup_error


class KeyParseError(LaunchError):
    """A key announcement line could not be decoded into a secret key."""

    def __init__(self, line_number: int, line: str, reason: str):
        super().__init__(f"Invalid key on line {line_number} ({reason}): {line!r}")
        self.line_number = line_number
        self.line = line
        self.reason = reason


class TerminationFailure(DevNodeError):
    """The node process could not be terminated and may still be running."""

    pass
