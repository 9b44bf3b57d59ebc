"""Chain specification schema.

Describes a linear pipeline of stages plus optional file paths for the
chain-level streams, suitable for loading from a JSON config file:

    {
        "stages": [
            {"name": "echo", "args": ["hello world"]},
            {"name": "grep", "args": ["world"]}
        ],
        "stdout": "out.txt"
    }
"""

from pydantic import BaseModel, Field

from .stage import StageSpec


class ChainSpec(BaseModel):
    """A pipeline of stages and where its streams come from and go to.

    Attributes:
        stages: Commands in pipeline order (at least one)
        stdin: File read into the first stage
        stdout: File receiving the last stage's output
        stderr: File receiving the last stage's error stream
        allerr: File receiving every stage's error stream not otherwise routed
    """

    stages: list[StageSpec] = Field(min_length=1)
    stdin: str | None = None
    stdout: str | None = None
    stderr: str | None = None
    allerr: str | None = None

    model_config = {"extra": "forbid"}
