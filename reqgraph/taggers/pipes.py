"""Run external tools while streaming input and output line by line."""

from __future__ import annotations

import shlex
import subprocess
import threading
from typing import IO, Iterable, Iterator, List, Mapping, Optional, Sequence

from ..logging import get_logger

logger = get_logger("taggers.pipes")


class CommandError(RuntimeError):
    """Raised when a command cannot start, exits non-zero, or its input cannot be written."""


def run_with_input(
    args: Sequence[str],
    input_lines: Iterable[str],
    *,
    env: Optional[Mapping[str, str]] = None,
) -> Iterator[str]:
    """Yield the merged stdout/stderr lines of ``args`` while feeding ``input_lines``.

    Input is written from a separate thread so that neither side blocks on a
    full pipe buffer. Once output is exhausted the process and the writer are
    both awaited. A non-zero exit status is reported first; a writer failure is
    only reported when the process itself succeeded.
    """
    command = shlex.join(args)
    logger.debug("Executing: %s", command)
    try:
        process = subprocess.Popen(
            list(args),
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
            env=dict(env) if env is not None else None,
        )
    except OSError as exc:
        raise CommandError(f"unable to start command: {command}: {exc}") from exc

    stdin, stdout = process.stdin, process.stdout
    if stdin is None or stdout is None:
        process.kill()
        process.wait()
        raise CommandError(f"command has no pipes attached: {command}")

    writer_errors: List[Exception] = []
    writer = threading.Thread(
        target=_feed_input,
        args=(stdin, input_lines, writer_errors),
        name="reqgraph-pipe-writer",
        daemon=True,
    )
    writer.start()

    try:
        for line in stdout:
            yield line.rstrip("\r\n")
    finally:
        stdout.close()
        returncode = process.wait()
        writer.join()

    if returncode != 0:
        raise CommandError(f"command failed with exit status {returncode}: {command}")
    if writer_errors:
        raise CommandError(f"failed writing input to command: {command}") from writer_errors[0]


def run_all(args: Sequence[str], *, env: Optional[Mapping[str, str]] = None) -> List[str]:
    """Run a command without input and return all of its output lines."""
    return list(run_with_input(args, (), env=env))


def _feed_input(stdin: IO[str], input_lines: Iterable[str], errors: List[Exception]) -> None:
    try:
        for line in input_lines:
            stdin.write(f"{line}\n")
    except Exception as exc:  # surfaced by run_with_input once the process has exited
        errors.append(exc)
    finally:
        try:
            stdin.close()
        except OSError as exc:
            if not errors:
                errors.append(exc)


__all__ = ["CommandError", "run_all", "run_with_input"]
