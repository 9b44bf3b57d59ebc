"""Process descriptors for external commands."""

from .cmd import Cmd
from .exceptions import (
    CmdError,
    CmdTimeoutError,
    CommandNotFoundError,
    ExitError,
)

__all__ = [
    "Cmd",
    "CmdError",
    "CmdTimeoutError",
    "CommandNotFoundError",
    "ExitError",
]
