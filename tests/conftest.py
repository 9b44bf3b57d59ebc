"""Pytest fixtures for pipechain tests."""

import json

import pytest


@pytest.fixture
def record_pipes():
    """Record the pipes each stage hands out during Link.

    Returns a function that instruments a chain and returns the list the
    pipes are appended to, in stage order. Pipes are closed at teardown.
    """
    recorded = []

    def instrument(chain):
        for stage in chain:
            original = stage.stdout_pipe

            def spy(original=original):
                pipe = original()
                recorded.append(pipe)
                return pipe

            stage.stdout_pipe = spy
        return recorded

    yield instrument

    for pipe in recorded:
        pipe.close()


@pytest.fixture
def sample_chain_spec():
    """A chain specification equivalent to `echo hello world | grep world`."""
    return {
        "stages": [
            {"name": "echo", "args": ["hello world"]},
            {"name": "grep", "args": ["world"]},
        ],
    }


@pytest.fixture
def spec_file(tmp_path, sample_chain_spec):
    """The sample chain specification written to a JSON file."""
    path = tmp_path / "chain.json"
    path.write_text(json.dumps(sample_chain_spec))
    return path
