"""Schema definitions for pipechain."""

from .chain import ChainSpec
from .stage import StageSpec

__all__ = [
    "ChainSpec",
    "StageSpec",
]
