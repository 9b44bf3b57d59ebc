"""Custom exceptions for command chains."""


class ChainError(Exception):
    """Base exception for all chain errors."""

    def __init__(self, message: str, *args, **kwargs):
        self.message = message
        super().__init__(message, *args, **kwargs)


class StageError(ChainError):
    """Raised when a specific stage of a chain fails.

    Attributes:
        index: Zero-based position of the stage in the chain
        name: Diagnostic identifier of the stage (its resolved executable path)
        cause: The underlying process error
    """

    def __init__(
        self, message: str, index: int, name: str, cause: Exception | None = None
    ):
        self.index = index
        self.name = name
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class LinkError(StageError):
    """Raised when a stage's output pipe cannot be created."""

    def __init__(self, index: int, name: str, cause: Exception | None = None):
        super().__init__(f"unable to pipe command #{index} ({name})", index, name, cause)


class LaunchError(StageError):
    """Raised when a non-terminal stage fails to start."""

    def __init__(self, index: int, name: str, cause: Exception | None = None):
        super().__init__(f"unable to start command #{index} ({name})", index, name, cause)


class TerminalError(StageError):
    """Raised when the terminal stage fails to start or run.

    Attributes:
        output: Bytes captured from the terminal stage before it failed
    """

    def __init__(
        self,
        index: int,
        name: str,
        cause: Exception | None = None,
        output: bytes | None = None,
    ):
        self.output = output
        super().__init__(f"command #{index} ({name}) failed", index, name, cause)


class WaitError(StageError):
    """Raised for the first stage whose wait reports a failure."""

    def __init__(self, index: int, name: str, cause: Exception | None = None):
        super().__init__(
            f"unable to wait for process #{index} ({name})", index, name, cause
        )
