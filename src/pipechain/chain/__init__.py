"""Command chains joined by pipes."""

from .chain import Chain, Phase, cmd, command
from .exceptions import (
    ChainError,
    LaunchError,
    LinkError,
    StageError,
    TerminalError,
    WaitError,
)

__all__ = [
    "Chain",
    "Phase",
    "cmd",
    "command",
    "ChainError",
    "StageError",
    "LinkError",
    "LaunchError",
    "TerminalError",
    "WaitError",
]
