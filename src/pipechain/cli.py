"""Command-line interface for pipechain."""

import argparse
import io
import json
import logging
import sys
from contextlib import ExitStack
from pathlib import Path

from pydantic import ValidationError

from pipechain.chain import Chain, ChainError
from schemas.chain import ChainSpec
from schemas.stage import StageSpec


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def execute(spec: ChainSpec, combined: bool = False) -> int:
    """Run a chain described by a spec, writing captured output to stdout.

    When the spec names an stdout file the chain streams into it instead of
    being captured.

    Args:
        spec: The chain to run
        combined: Merge the last stage's stderr into its output

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    logger = logging.getLogger(__name__)
    chain = Chain.from_spec(spec)
    logger.debug(f"Running chain: {chain}")

    data = None
    with ExitStack() as stack:
        try:
            if spec.stdin:
                chain.stdin = stack.enter_context(open(spec.stdin, "rb"))
            if spec.stdout:
                chain.stdout = stack.enter_context(open(spec.stdout, "wb"))
            if spec.stderr:
                chain.stderr = stack.enter_context(open(spec.stderr, "wb"))
            if spec.allerr:
                chain.allerr = stack.enter_context(open(spec.allerr, "wb"))
        except OSError as e:
            logger.error(f"Unable to open stream file: {e}")
            return 1

        try:
            if chain.stdout is not None:
                if combined and chain.stderr is None:
                    chain.stderr = chain.stdout
                chain.run()
            elif combined and (chain.stderr is not None or chain.allerr is not None):
                # The terminal stage's stderr is routed by the chain, so
                # combined_output() cannot take it over; merge into a buffer.
                buffer = io.BytesIO()
                chain.stdout = buffer
                if chain.stderr is None:
                    chain.stderr = buffer
                chain.run()
                data = buffer.getvalue()
            else:
                data = chain.combined_output() if combined else chain.output()
        except ChainError as e:
            logger.error(f"Chain failed: {e}")
            return 1

    if data is not None:
        try:
            sys.stdout.buffer.write(data)
            sys.stdout.flush()
        except OSError as e:
            logger.error(f"Unable to write output: {e}")
            return 1

    return 0


def _stream_args(args: argparse.Namespace) -> dict[str, str | None]:
    return {
        name: str(getattr(args, name)) if getattr(args, name) else None
        for name in ("stdin", "stdout", "stderr", "allerr")
    }


def exec_chain(args: argparse.Namespace) -> int:
    """Execute the exec command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        stages = [StageSpec.from_command_line(line) for line in args.stages]
        spec = ChainSpec(stages=stages, **_stream_args(args))
    except (ValueError, ValidationError) as e:
        logger.error(f"Invalid chain: {e}")
        return 1

    return execute(spec, combined=args.combined)


def run_spec(args: argparse.Namespace) -> int:
    """Execute the run command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    spec_path = args.spec.resolve()
    if not spec_path.exists():
        logger.error(f"Chain spec not found: {spec_path}")
        return 1

    try:
        data = json.loads(spec_path.read_text())
        spec = ChainSpec.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Invalid chain spec {spec_path}: {e}")
        return 1

    overrides = {k: v for k, v in _stream_args(args).items() if v is not None}
    if overrides:
        spec = spec.model_copy(update=overrides)

    return execute(spec, combined=args.combined)


def _add_stream_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--stdin",
        type=Path,
        help="File fed to the first command",
    )
    parser.add_argument(
        "--stdout",
        type=Path,
        help="File receiving the last command's output (default: this process's stdout)",
    )
    parser.add_argument(
        "--stderr",
        type=Path,
        help="File receiving the last command's error stream",
    )
    parser.add_argument(
        "--allerr",
        type=Path,
        help="File receiving the error stream of every command not otherwise routed",
    )
    parser.add_argument(
        "--combined",
        action="store_true",
        help="Merge the last command's error stream into its output",
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = argparse.ArgumentParser(
        prog="pipechain",
        description="Pipe the output of one external command into the next",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
    )

    exec_parser = subparsers.add_parser(
        "exec",
        help="Run commands given on the command line as a pipeline",
        description="Run each STAGE, a shell-quoted command line, with its output piped into the next.",
    )
    exec_parser.add_argument(
        "stages",
        nargs="+",
        metavar="STAGE",
        help="Command line of one stage, e.g. 'grep -i world'",
    )
    _add_stream_arguments(exec_parser)
    exec_parser.set_defaults(func=exec_chain)

    run_parser = subparsers.add_parser(
        "run",
        help="Run a pipeline described by a JSON spec file",
        description="Load a chain specification from JSON and run it. Stream options override the file's.",
    )
    run_parser.add_argument(
        "spec",
        type=Path,
        help="Path to the JSON chain specification",
    )
    _add_stream_arguments(run_parser)
    run_parser.set_defaults(func=run_spec)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
