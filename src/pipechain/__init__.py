"""Pipe the output of one external process into the next."""

from .chain import (
    Chain,
    ChainError,
    LaunchError,
    LinkError,
    Phase,
    StageError,
    TerminalError,
    WaitError,
    cmd,
    command,
)
from .process import Cmd, CmdError, CmdTimeoutError, CommandNotFoundError, ExitError

__all__ = [
    "Chain",
    "Cmd",
    "Phase",
    "cmd",
    "command",
    "ChainError",
    "StageError",
    "LinkError",
    "LaunchError",
    "TerminalError",
    "WaitError",
    "CmdError",
    "CmdTimeoutError",
    "CommandNotFoundError",
    "ExitError",
]
