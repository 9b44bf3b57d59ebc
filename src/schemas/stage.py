"""Stage specification schema.

A stage is one external command in a chain, described by its name,
arguments, and the process settings it should run with.
"""

import shlex

from pydantic import BaseModel, field_validator


class StageSpec(BaseModel):
    """A single command in a chain specification.

    Attributes:
        name: Executable name or path
        args: Arguments passed after the name
        cwd: Working directory for the process
        env: Complete environment for the process (inherits ours if None)
        timeout: Seconds after start before the process is killed
    """

    name: str
    args: list[str] = []
    cwd: str | None = None
    env: dict[str, str] | None = None
    timeout: float | None = None

    model_config = {"extra": "forbid"}

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("stage name must not be blank")
        return value

    @field_validator("timeout")
    @classmethod
    def timeout_positive(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("timeout must be positive")
        return value

    @classmethod
    def from_command_line(cls, line: str) -> "StageSpec":
        """Build a stage from a shell-quoted command line like 'grep -i foo'."""
        words = shlex.split(line)
        if not words:
            raise ValueError("empty command line")
        return cls(name=words[0], args=words[1:])
