"""Mutable descriptor for a single external process.

subprocess.Popen spawns its child at construction time, which leaves no window
in which a collaborator can rewire the standard streams. Cmd fills that gap:
it records the command, lets its three stream slots be reassigned freely until
start(), and only then hands everything to Popen.

Stream slots accept:
- None: the null device
- any object with a working fileno(): passed to the child as-is
- any other binary file-like object: pumped through an OS pipe by a copy
  thread owned by the Cmd (read() for stdin, write() for stdout/stderr)
"""

import contextlib
import io
import logging
import os
import shlex
import shutil
import signal
import subprocess
import threading
import time
from typing import IO, Any

from .exceptions import CmdError, CmdTimeoutError, CommandNotFoundError, ExitError

logger: logging.Logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 32 * 1024


def _fileno(stream: Any) -> int | None:
    """Return the OS-level descriptor behind a stream, if it has one."""
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError):
        return None


def _close_quietly(handle: Any) -> None:
    # Closing a pipe writer flushes it; the reader may already be gone.
    with contextlib.suppress(BrokenPipeError):
        handle.close()


class Cmd:
    """
    A single external command that has not necessarily been started yet.

    Attributes:
        name: Command name as given by the caller
        args: Full argument vector, starting with name
        path: Resolved executable path, used in diagnostics
        cwd: Working directory for the child (None inherits ours)
        env: Environment for the child (None inherits ours)
        timeout: Seconds after start() before wait() kills the process
        process: The Popen instance once started
    """

    def __init__(
        self,
        name: str,
        *args: str,
        cwd: str | os.PathLike | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ):
        self.name = name
        self.args: list[str] = [name, *args]
        self.cwd = cwd
        self.env = env
        self.timeout = timeout
        self.path = name
        self._not_found = False
        if os.sep not in name and not (os.altsep and os.altsep in name):
            resolved = shutil.which(name)
            if resolved is None:
                self._not_found = True
            else:
                self.path = resolved

        self._stdin: Any = None
        self._stdout: Any = None
        self._stderr: Any = None
        self._stderr_capture: io.BytesIO | None = None

        self.process: subprocess.Popen | None = None
        self._waited = False
        self._deadline: float | None = None
        self._close_after_start: list[Any] = []
        self._close_after_wait: list[Any] = []
        self._copiers: list[threading.Thread] = []
        self._copy_errors: list[Exception] = []

    def __repr__(self) -> str:
        return f"Cmd({str(self)!r})"

    def __str__(self) -> str:
        return shlex.join(self.args)

    @property
    def stdin(self) -> Any:
        return self._stdin

    @stdin.setter
    def stdin(self, value: Any) -> None:
        self._check_not_started("set stdin")
        self._stdin = value

    @property
    def stdout(self) -> Any:
        return self._stdout

    @stdout.setter
    def stdout(self, value: Any) -> None:
        self._check_not_started("set stdout")
        self._stdout = value

    @property
    def stderr(self) -> Any:
        return self._stderr

    @stderr.setter
    def stderr(self, value: Any) -> None:
        self._check_not_started("set stderr")
        self._stderr = value

    @property
    def started(self) -> bool:
        return self.process is not None

    @property
    def finished(self) -> bool:
        return self.process is not None and self.process.returncode is not None

    @property
    def waited(self) -> bool:
        return self._waited

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process else None

    @property
    def returncode(self) -> int | None:
        return self.process.returncode if self.process else None

    def _check_not_started(self, action: str) -> None:
        if self.process is not None:
            raise CmdError(f"cannot {action} after process started")

    def close_after_start(self, handle: Any) -> None:
        """Register a parent-side handle to close once the child has started.

        The handle is also closed if start() fails.
        """
        self._close_after_start.append(handle)

    def stdin_pipe(self) -> IO[bytes]:
        """Return a writable pipe connected to the process's standard input.

        The read end is closed in this process after start(); the returned
        write end is closed by wait() if the caller has not done so already.
        """
        if self._stdin is not None:
            raise CmdError("stdin already set")
        self._check_not_started("request stdin pipe")

        read_fd, write_fd = os.pipe()
        reader = os.fdopen(read_fd, "rb")
        writer = os.fdopen(write_fd, "wb")
        self._stdin = reader
        self._close_after_start.append(reader)
        self._close_after_wait.append(writer)
        return writer

    def stdout_pipe(self) -> IO[bytes]:
        """Return a readable pipe connected to the process's standard output.

        wait() closes the pipe, so all reads must finish before calling it.
        """
        if self._stdout is not None:
            raise CmdError("stdout already set")
        self._check_not_started("request stdout pipe")
        reader, writer = self._output_pipe()
        self._stdout = writer
        return reader

    def stderr_pipe(self) -> IO[bytes]:
        """Return a readable pipe connected to the process's standard error."""
        if self._stderr is not None:
            raise CmdError("stderr already set")
        self._check_not_started("request stderr pipe")
        reader, writer = self._output_pipe()
        self._stderr = writer
        return reader

    def _output_pipe(self) -> tuple[IO[bytes], IO[bytes]]:
        read_fd, write_fd = os.pipe()
        reader = os.fdopen(read_fd, "rb")
        writer = os.fdopen(write_fd, "wb")
        self._close_after_start.append(writer)
        self._close_after_wait.append(reader)
        return reader, writer

    def _child_stdin(self) -> int:
        if self._stdin is None:
            return subprocess.DEVNULL
        fd = _fileno(self._stdin)
        if fd is not None:
            return fd

        read_fd, write_fd = os.pipe()
        reader = os.fdopen(read_fd, "rb")
        writer = os.fdopen(write_fd, "wb")
        self._close_after_start.append(reader)
        self._close_after_wait.append(writer)
        self._copiers.append(
            threading.Thread(
                target=self._feed, args=(self._stdin, writer), daemon=True
            )
        )
        return read_fd

    def _child_writer(self, stream: Any) -> int:
        if stream is None:
            return subprocess.DEVNULL
        fd = _fileno(stream)
        if fd is not None:
            if hasattr(stream, "flush"):
                stream.flush()
            return fd

        read_fd, write_fd = os.pipe()
        reader = os.fdopen(read_fd, "rb")
        writer = os.fdopen(write_fd, "wb")
        self._close_after_start.append(writer)
        self._close_after_wait.append(reader)
        self._copiers.append(
            threading.Thread(target=self._drain, args=(reader, stream), daemon=True)
        )
        return write_fd

    def _feed(self, source: Any, writer: IO[bytes]) -> None:
        try:
            shutil.copyfileobj(source, writer, COPY_CHUNK_SIZE)
        except BrokenPipeError:
            # Child exited without consuming all of its input.
            pass
        except Exception as e:
            self._copy_errors.append(e)
        finally:
            _close_quietly(writer)

    def _drain(self, reader: IO[bytes], sink: Any) -> None:
        try:
            shutil.copyfileobj(reader, sink, COPY_CHUNK_SIZE)
        except Exception as e:
            self._copy_errors.append(e)
        finally:
            # A child still writing gets SIGPIPE instead of blocking forever.
            reader.close()

    def release(self) -> None:
        """Close every handle registered for a process that will never start.

        Has no effect once the process has started.
        """
        if self.process is None:
            self._close_descriptors()

    def _close_descriptors(self) -> None:
        for handle in self._close_after_start + self._close_after_wait:
            _close_quietly(handle)
        self._close_after_start = []
        self._close_after_wait = []
        self._copiers = []

    def start(self) -> None:
        """Start the process without waiting for it to complete.

        Raises:
            CmdError: If already started or the OS refuses to spawn it
            CommandNotFoundError: If the executable could not be located
        """
        if self.process is not None:
            raise CmdError("process already started")
        if self._not_found:
            self._close_descriptors()
            raise CommandNotFoundError(self.name)

        try:
            stdin = self._child_stdin()
            stdout = self._child_writer(self._stdout)
            if self._stderr is not None and self._stderr is self._stdout:
                stderr = stdout
            else:
                stderr = self._child_writer(self._stderr)

            self.process = subprocess.Popen(
                self.args,
                executable=self.path,
                stdin=stdin,
                stdout=stdout,
                stderr=stderr,
                cwd=self.cwd,
                env=self.env,
            )
        except OSError as e:
            self._close_descriptors()
            raise CmdError(f"unable to start {self.path}: {e}") from e

        for handle in self._close_after_start:
            _close_quietly(handle)
        self._close_after_start = []

        if self.timeout is not None:
            self._deadline = time.monotonic() + self.timeout
        for thread in self._copiers:
            thread.start()

        logger.debug(f"Started {self} (pid {self.process.pid})")

    def wait(self) -> None:
        """Wait for the process to exit and its stream copying to finish.

        Raises:
            CmdError: If not started, already waited, or a stream copy failed
            ExitError: If the process exited unsuccessfully
            CmdTimeoutError: If the timeout expired and the process was killed
        """
        if self.process is None:
            raise CmdError("process not started")
        if self._waited:
            raise CmdError("wait already called")
        self._waited = True

        timed_out = False
        if self._deadline is None:
            self.process.wait()
        else:
            try:
                self.process.wait(timeout=max(0.0, self._deadline - time.monotonic()))
            except subprocess.TimeoutExpired:
                logger.warning(f"Killing {self} after {self.timeout}s timeout")
                timed_out = True
                self.process.kill()
                self.process.wait()

        for thread in self._copiers:
            thread.join()
        for handle in self._close_after_wait:
            _close_quietly(handle)
        self._close_after_wait = []

        if timed_out:
            raise CmdTimeoutError(self.timeout)

        returncode = self.process.returncode
        logger.debug(f"{self} exited with status {returncode}")

        # A failed drain closes its pipe, so the resulting SIGPIPE death is
        # reported as the copy error that caused it.
        if self._copy_errors and returncode in (0, -signal.SIGPIPE):
            error = self._copy_errors[0]
            raise CmdError(f"unable to copy streams of {self.path}: {error}") from error

        if returncode != 0:
            stderr = self._stderr_capture.getvalue() if self._stderr_capture else b""
            raise ExitError(returncode, stderr)

    def run(self) -> None:
        """Start the process and wait for it to complete."""
        self.start()
        self.wait()

    def output(self) -> bytes:
        """Run the process and return its standard output.

        If stderr was not set, it is captured and attached to any ExitError.
        The bytes captured so far are attached to any raised CmdError as
        ``output``.
        """
        if self._stdout is not None:
            raise CmdError("stdout already set")

        buffer = io.BytesIO()
        self.stdout = buffer
        if self._stderr is None:
            self._stderr_capture = io.BytesIO()
            self.stderr = self._stderr_capture

        try:
            self.run()
        except CmdError as e:
            e.output = buffer.getvalue()
            raise
        return buffer.getvalue()

    def combined_output(self) -> bytes:
        """Run the process and return its interleaved stdout and stderr."""
        if self._stdout is not None:
            raise CmdError("stdout already set")
        if self._stderr is not None:
            raise CmdError("stderr already set")

        buffer = io.BytesIO()
        self.stdout = buffer
        self.stderr = buffer

        try:
            self.run()
        except CmdError as e:
            e.output = buffer.getvalue()
            raise
        return buffer.getvalue()

    def kill(self) -> None:
        """Kill the process if it is running."""
        if self.process is not None and self.process.returncode is None:
            self.process.kill()
