"""Tests for exception classes."""

from pipechain.chain import (
    ChainError,
    LaunchError,
    LinkError,
    StageError,
    TerminalError,
    WaitError,
)
from pipechain.process import CmdError, CmdTimeoutError, CommandNotFoundError, ExitError


class TestChainError:
    """Tests for the base ChainError exception."""

    def test_instantiation_with_message(self):
        """ChainError stores the error message."""
        error = ChainError("Something went wrong")

        assert error.message == "Something went wrong"
        assert str(error) == "Something went wrong"

    def test_inheritance(self):
        """ChainError is an Exception."""
        assert isinstance(ChainError("test"), Exception)


class TestStageErrors:
    """Tests for errors that identify a stage."""

    def test_link_error(self):
        """LinkError names the stage index and command."""
        error = LinkError(1, "/usr/bin/grep")

        assert error.index == 1
        assert error.name == "/usr/bin/grep"
        assert error.cause is None
        assert str(error) == "unable to pipe command #1 (/usr/bin/grep)"

    def test_cause_is_appended(self):
        """The underlying error is included in the message."""
        cause = CmdError("stdout already set")
        error = LinkError(2, "/bin/cat", cause)

        assert error.cause is cause
        assert str(error) == "unable to pipe command #2 (/bin/cat): stdout already set"

    def test_launch_error(self):
        """LaunchError describes a failed start."""
        error = LaunchError(0, "/bin/sleep")
        assert error.message == "unable to start command #0 (/bin/sleep)"

    def test_terminal_error_carries_output(self):
        """TerminalError keeps the bytes captured before the failure."""
        error = TerminalError(3, "/bin/sh", ExitError(2), output=b"partial")

        assert error.output == b"partial"
        assert str(error) == "command #3 (/bin/sh) failed: exit status 2"

    def test_wait_error(self):
        """WaitError describes a failed wait."""
        error = WaitError(0, "/bin/false", ExitError(1))
        assert str(error) == "unable to wait for process #0 (/bin/false): exit status 1"

    def test_inheritance(self):
        """Every stage error is a StageError and a ChainError."""
        for error in (
            LinkError(0, "a"),
            LaunchError(0, "a"),
            TerminalError(0, "a"),
            WaitError(0, "a"),
        ):
            assert isinstance(error, StageError)
            assert isinstance(error, ChainError)


class TestCmdErrors:
    """Tests for process descriptor errors."""

    def test_cmd_error(self):
        """CmdError stores the message and has no output by default."""
        error = CmdError("process not started")

        assert error.message == "process not started"
        assert error.output is None

    def test_command_not_found(self):
        """CommandNotFoundError names the missing executable."""
        error = CommandNotFoundError("nope")

        assert error.name == "nope"
        assert "nope" in str(error)
        assert isinstance(error, CmdError)

    def test_exit_error_status(self):
        """ExitError reports the exit status."""
        error = ExitError(3, b"boom")

        assert error.returncode == 3
        assert error.stderr == b"boom"
        assert str(error) == "exit status 3"

    def test_exit_error_signal(self):
        """ExitError reports the terminating signal for negative codes."""
        assert str(ExitError(-15)) == "signal: 15"

    def test_timeout_error(self):
        """CmdTimeoutError records the timeout."""
        error = CmdTimeoutError(1.5)

        assert error.timeout == 1.5
        assert isinstance(error, CmdError)
