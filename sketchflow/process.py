"""Subprocess execution for the external toolchain."""

from __future__ import annotations

import asyncio
import logging
import shlex
from pathlib import Path

from sketchflow.errors import ToolchainExitError
from sketchflow.output import OutputChannel

logger = logging.getLogger(__name__)

# Shell convention for "command not found".
EXIT_NOT_FOUND = 127


def split_args(command: str) -> list[str]:
    """Tokenize a command line using shell-like quoting rules."""
    return shlex.split(command)


async def spawn(
    executable: str,
    sink: OutputChannel | None,
    args: list[str],
    cwd: Path | str | None = None,
) -> int:
    """Run `executable` and stream its combined output to `sink`.

    Returns 0 on success. Raises ToolchainExitError carrying the exit code
    when the process exits non-zero or cannot be started.
    """
    cmd = [str(executable), *[str(a) for a in args]]
    logger.debug("spawn: %s (cwd=%s)", shlex.join(cmd), cwd)
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=str(cwd) if cwd else None,
        )
    except FileNotFoundError as e:
        raise ToolchainExitError(f"{executable} not found", exit_code=EXIT_NOT_FOUND) from e
    except PermissionError as e:
        raise ToolchainExitError(f"{executable} is not executable", exit_code=EXIT_NOT_FOUND) from e

    assert process.stdout is not None
    while True:
        raw = await process.stdout.readline()
        if not raw:
            break
        if sink is not None:
            sink.write(raw.decode("utf-8", errors="replace"))

    code = await process.wait()
    logger.debug("spawn: %s exited with %d", executable, code)
    if code != 0:
        raise ToolchainExitError(f"{executable} exited with code {code}", exit_code=code)
    return code
