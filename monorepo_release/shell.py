"""Shell and git utilities.

Provides an async wrapper around subprocess calls for running git and gh
commands, plus output formatting helpers for the release pipeline.
"""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn, Protocol


@dataclass(frozen=True)
class CommandResult:
    """Captured output of a finished command."""

    stdout: str
    stderr: str
    returncode: int


class CommandError(RuntimeError):
    """A command exited with a non-zero status."""

    def __init__(self, args: tuple[str, ...], result: CommandResult) -> None:
        detail = result.stderr.strip() or result.stdout.strip()
        super().__init__(
            f"`{' '.join(args)}` failed with exit code {result.returncode}: {detail}"
        )
        self.command = args
        self.result = result


class CommandRunner(Protocol):
    """Capability to run one program with arguments.

    Production code uses :class:`GitRunner` and :class:`GhRunner`; tests
    supply fakes that record calls and return canned output.
    """

    async def run(self, *args: str, check: bool = True) -> CommandResult: ...


# A CommandRunner bound to git.
RevisionHistory = CommandRunner


async def run(
    *args: str, cwd: Path | None = None, check: bool = True
) -> CommandResult:
    """Run an arbitrary command and capture its output.

    Args:
        *args: Command and arguments (e.g., "gh", "api", "rate_limit").
        cwd: Working directory, defaults to the current directory.
        check: If True (default), raise CommandError on non-zero exit.

    Returns:
        CommandResult with decoded stdout/stderr and the exit code.
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await process.communicate()
    result = CommandResult(
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
        returncode=process.returncode if process.returncode is not None else -1,
    )
    if check and result.returncode != 0:
        raise CommandError(args, result)
    return result


class GitRunner:
    """Runs git commands inside a repository checkout."""

    program = "git"

    def __init__(self, cwd: Path | None = None) -> None:
        self.cwd = cwd

    async def run(self, *args: str, check: bool = True) -> CommandResult:
        return await run(self.program, *args, cwd=self.cwd, check=check)


class GhRunner(GitRunner):
    """Runs GitHub CLI commands; authentication is left to gh itself."""

    program = "gh"


async def git(runner: RevisionHistory, *args: str, check: bool = True) -> str:
    """Run a git command and return stripped stdout.

    Args:
        runner: Revision history provider to execute the command with.
        *args: Arguments to pass to git (e.g., "tag", "--list").
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., tag lookup).
    """
    result = await runner.run(*args, check=check)
    return result.stdout.strip()


def step(msg: str) -> None:
    """Announce a release phase (discovery, analysis, tagging) on stdout."""
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def fatal(msg: str) -> NoReturn:
    """Report an unrecoverable CLI error on stderr and exit with status 1."""
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(1)
