"""Chains of external commands joined by pipes.

A Chain is the programmatic equivalent of ``cmd1 | cmd2 | ... | cmdN``:
- Link: every stage's stdout is piped into the next stage's stdin, and the
  chain-level stream overrides are applied
- Launch: every stage except the last is started, in order
- Terminal operations: the last stage is run, started, or captured
- Wait: every stage is reaped in order, stopping at the first failure

The chain never spawns threads of its own; concurrency comes entirely from
the OS scheduling the started processes.
"""

import logging
import os
import signal
from enum import Enum
from typing import IO, Any, Iterator

from pipechain.process import Cmd, CmdError, ExitError
from schemas.chain import ChainSpec

from .exceptions import ChainError, LaunchError, LinkError, TerminalError, WaitError

logger: logging.Logger = logging.getLogger(__name__)


class Phase(str, Enum):
    """Lifecycle of a chain."""

    BUILT = "built"
    LINKED = "linked"
    LAUNCHED = "launched"
    TERMINAL_INVOKED = "terminal_invoked"
    DETACHED = "detached"
    WAITED = "waited"


class Chain:
    """
    An ordered, non-empty sequence of commands whose output feeds forward.

    Once a Cmd has been added, the chain owns its stream slots: the caller
    must not start it or reassign its streams.

    Attributes:
        stdin: Source for the first stage's input, overriding the stage's own
        stdout: Sink for the last stage's output
        stderr: Sink for the last stage's error stream
        allerr: Sink for every non-terminal stage's error stream, and for the
                last stage's too when stderr is unset
        phase: Current lifecycle phase
    """

    def __init__(self, first: Cmd, *rest: Cmd):
        self._cmds: list[Cmd] = [first, *rest]
        self._pipes: list[IO[bytes]] = []

        self.stdin: Any = None
        self.stdout: Any = None
        self.stderr: Any = None
        self.allerr: Any = None

        self.phase = Phase.BUILT

    @classmethod
    def from_spec(cls, spec: ChainSpec) -> "Chain":
        """Build a chain from a declarative specification.

        Only the stages are taken from the spec; the file paths for the
        chain-level streams are left for the caller to open and assign.
        """
        stages = [
            Cmd(s.name, *s.args, cwd=s.cwd, env=s.env, timeout=s.timeout)
            for s in spec.stages
        ]
        return cls(*stages)

    def __repr__(self) -> str:
        return f"Chain({str(self)!r})"

    def __str__(self) -> str:
        return " | ".join(str(c) for c in self._cmds)

    def __len__(self) -> int:
        return len(self._cmds)

    def __iter__(self) -> Iterator[Cmd]:
        return iter(self._cmds)

    @property
    def cmds(self) -> tuple[Cmd, ...]:
        return tuple(self._cmds)

    @property
    def terminal(self) -> Cmd:
        return self._cmds[-1]

    def command(
        self,
        name: str,
        *args: str,
        cwd: str | os.PathLike | None = None,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> "Chain":
        """Append a new command to the end of the chain."""
        return self.cmd(Cmd(name, *args, cwd=cwd, env=env, timeout=timeout))

    def cmd(self, cmd: Cmd) -> "Chain":
        """Append a pre-built command to the end of the chain."""
        if self.phase is not Phase.BUILT:
            raise ChainError("cannot add a command to a chain that has been linked")
        self._cmds.append(cmd)
        return self

    def _assign(self, index: int, slot: str, value: Any) -> None:
        stage = self._cmds[index]
        try:
            setattr(stage, slot, value)
        except CmdError as e:
            raise LinkError(index, stage.path, e) from e

    def link(self) -> None:
        """Wire adjacent stages together and apply chain-level streams.

        Pipes already created are left in place if a later stage fails;
        nothing has been started yet at this point.

        Raises:
            ChainError: If the chain was already linked
            LinkError: If a stage's output pipe could not be created
        """
        if self.phase is not Phase.BUILT:
            raise ChainError("chain already linked")
        self.phase = Phase.LINKED

        last = len(self._cmds) - 1
        for i in range(last):
            stage = self._cmds[i]
            try:
                pipe = stage.stdout_pipe()
            except CmdError as e:
                raise LinkError(i, stage.path, e) from e
            self._pipes.append(pipe)

            self._assign(i + 1, "stdin", pipe)
            # The consumer's start releases our copy of the read end, so the
            # producer sees a broken pipe once the consumer goes away.
            self._cmds[i + 1].close_after_start(pipe)

            if self.allerr is not None:
                self._assign(i, "stderr", self.allerr)

            logger.debug(f"Piped command #{i} ({stage.path}) into command #{i + 1}")

        if self.stdin is not None:
            self._assign(0, "stdin", self.stdin)
        if self.stdout is not None:
            self._assign(last, "stdout", self.stdout)
        if self.stderr is not None:
            self._assign(last, "stderr", self.stderr)
        elif self.allerr is not None:
            self._assign(last, "stderr", self.allerr)

    def launch(self) -> None:
        """Start every stage except the last, in order.

        The first failure stops the launch: stages already started are
        killed and reaped before the error is raised.

        Raises:
            ChainError: If the chain has not been linked
            LaunchError: If a stage could not be started
        """
        if self.phase is not Phase.LINKED:
            raise ChainError("chain must be linked before it is launched")

        for i, stage in enumerate(self._cmds[:-1]):
            try:
                stage.start()
            except CmdError as e:
                logger.error(f"Unable to start command #{i} ({stage.path}): {e}")
                self._abort()
                raise LaunchError(i, stage.path, e) from e

        self.phase = Phase.LAUNCHED

    def _abort(self) -> None:
        """Kill and reap every started stage and release chain-owned pipes."""
        for i, stage in enumerate(self._cmds):
            if stage.started and not stage.waited:
                stage.kill()
                try:
                    stage.wait()
                except CmdError as e:
                    logger.debug(f"Reaped aborted command #{i} ({stage.path}): {e}")
            elif not stage.started:
                stage.release()

        for pipe in self._pipes:
            pipe.close()

    def _reap_upstream(self) -> None:
        """Wait for the non-terminal stages once the terminal one is done.

        Their failures are logged rather than raised; a capture reports the
        terminal stage's outcome only.
        """
        for i, stage in enumerate(self._cmds[:-1]):
            if stage.waited:
                continue
            try:
                stage.wait()
            except ExitError as e:
                if e.returncode == -signal.SIGPIPE:
                    logger.debug(f"Command #{i} ({stage.path}) stopped by broken pipe")
                else:
                    logger.warning(f"Command #{i} ({stage.path}) failed: {e}")
            except CmdError as e:
                logger.warning(f"Command #{i} ({stage.path}) failed: {e}")

    def _capture(self, combined: bool) -> bytes:
        self.link()
        self.launch()
        self.phase = Phase.TERMINAL_INVOKED

        index = len(self._cmds) - 1
        terminal = self.terminal
        try:
            if combined:
                output = terminal.combined_output()
            else:
                output = terminal.output()
        except CmdError as e:
            if terminal.started:
                self._reap_upstream()
            else:
                self._abort()
            self.phase = Phase.WAITED
            raise TerminalError(index, terminal.path, e, e.output) from e

        self._reap_upstream()
        self.phase = Phase.WAITED
        return output

    def combined_output(self) -> bytes:
        """Run the chain and return the last stage's stdout and stderr combined.

        Raises:
            LinkError: If the stages could not be wired together
            LaunchError: If a non-terminal stage could not be started
            TerminalError: If the last stage failed; carries any captured output
        """
        return self._capture(combined=True)

    def output(self) -> bytes:
        """Run the chain and return the last stage's stdout.

        Raises:
            LinkError: If the stages could not be wired together
            LaunchError: If a non-terminal stage could not be started
            TerminalError: If the last stage failed; carries any captured output
        """
        return self._capture(combined=False)

    def start(self) -> None:
        """Start every stage of the chain without waiting for completion."""
        self.link()
        self.launch()
        self.phase = Phase.TERMINAL_INVOKED

        terminal = self.terminal
        try:
            terminal.start()
        except CmdError as e:
            self._abort()
            raise TerminalError(len(self._cmds) - 1, terminal.path, e) from e

        self.phase = Phase.DETACHED
        logger.debug(f"Started chain: {self}")

    def wait(self) -> None:
        """Wait for every stage, in order, to complete.

        Stops at the first failing stage; later stages are left unreaped and
        may be cleaned up with kill() followed by waiting on them directly.

        Raises:
            WaitError: For the first stage whose wait failed
        """
        for i, stage in enumerate(self._cmds):
            try:
                stage.wait()
            except CmdError as e:
                raise WaitError(i, stage.path, e) from e

        self.phase = Phase.WAITED

    def run(self) -> None:
        """Start the chain and wait for it to complete."""
        self.start()
        self.wait()

    def kill(self) -> None:
        """Kill every stage that is still running."""
        for stage in self._cmds:
            stage.kill()

    def stdin_pipe(self) -> IO[bytes]:
        """Return a pipe feeding the first stage's stdin directly."""
        return self._cmds[0].stdin_pipe()

    def stdout_pipe(self) -> IO[bytes]:
        """Return a pipe draining the last stage's stdout directly."""
        return self.terminal.stdout_pipe()

    def stderr_pipe(self) -> IO[bytes]:
        """Return a pipe draining the last stage's stderr directly."""
        return self.terminal.stderr_pipe()


def command(
    name: str,
    *args: str,
    cwd: str | os.PathLike | None = None,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
) -> Chain:
    """Create a chain whose first stage runs the given command."""
    return Chain(Cmd(name, *args, cwd=cwd, env=env, timeout=timeout))


def cmd(first: Cmd) -> Chain:
    """Create a chain whose first stage is a pre-built command.

    Use this when a stage needs configuration beyond name and arguments.
    """
    return Chain(first)
