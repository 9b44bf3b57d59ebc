"""Custom exceptions for process descriptors."""


class CmdError(Exception):
    """Base exception for all process descriptor errors."""

    def __init__(self, message: str, *args, **kwargs):
        self.message = message
        self.output: bytes | None = None
        super().__init__(message, *args, **kwargs)


class CommandNotFoundError(CmdError):
    """Raised when an executable cannot be located on PATH."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"executable file not found in $PATH: {name}")


class ExitError(CmdError):
    """Raised when a process exits with a non-zero status.

    A negative returncode means the process was terminated by that signal.
    """

    def __init__(self, returncode: int, stderr: bytes = b""):
        self.returncode = returncode
        self.stderr = stderr
        if returncode < 0:
            message = f"signal: {-returncode}"
        else:
            message = f"exit status {returncode}"
        super().__init__(message)


class CmdTimeoutError(CmdError):
    """Raised when a process outlives its timeout and is killed."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"process killed after {timeout}s timeout")
