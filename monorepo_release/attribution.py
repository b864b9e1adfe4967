"""Attributing commits to workspace packages.

A commit is relevant to a package if it touched a file under the
package directory, or if its conventional-commit scope names the package.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .config import COMMIT_BATCH_SIZE
from .models import Commit, Package
from .shell import CommandError, RevisionHistory
from .validation import sanitize_git_ref

logger = logging.getLogger(__name__)

COMMIT_MARKER = "@@commit:"


def is_package_scope(scope: str, package_name: str) -> bool:
    """Check whether a commit scope refers to a package.

    Matches the full name or, for scoped names like ``@org/pkg``, the last
    path segment.

    Examples:
        is_package_scope("pkg", "@org/pkg") → True
        is_package_scope("@org/pkg", "@org/pkg") → True
        is_package_scope("other", "@org/pkg") → False
    """
    if not scope or not package_name:
        return False
    return scope == package_name or scope == package_name.split("/")[-1]


def parse_name_only_log(output: str) -> dict[str, list[str]]:
    """Parse ``git log --name-only`` output that uses COMMIT_MARKER lines.

    Every commit starts with its own marker line, so file paths never have
    to be told apart from commit boundaries by their shape.
    """
    files: dict[str, list[str]] = {}
    current: list[str] | None = None
    for line in output.splitlines():
        if line.startswith(COMMIT_MARKER):
            current = files.setdefault(line[len(COMMIT_MARKER) :].strip(), [])
        elif line.strip() and current is not None:
            current.append(line.strip())
    return files


async def _files_for_commit(runner: RevisionHistory, sha: str) -> list[str]:
    try:
        result = await runner.run(
            "diff-tree",
            "--root",
            "--no-commit-id",
            "--name-only",
            "-r",
            sanitize_git_ref(sha),
        )
    except (CommandError, ValueError) as exc:
        logger.debug("Failed to check files for commit %s: %s", sha, exc)
        return []
    return [f.strip() for f in result.stdout.splitlines() if f.strip()]


async def get_commit_files(
    runner: RevisionHistory,
    commits: Sequence[Commit],
    batch_size: int = COMMIT_BATCH_SIZE,
) -> dict[str, list[str]]:
    """Map each commit sha to the files it changed.

    Commits are queried in batches with one ``git log --no-walk`` call each.
    If a batch fails, its commits are queried one at a time; a commit that
    still fails maps to no files.
    """
    commit_files: dict[str, list[str]] = {}
    for start in range(0, len(commits), batch_size):
        batch = commits[start : start + batch_size]
        try:
            shas = [sanitize_git_ref(c.sha) for c in batch]
            result = await runner.run(
                "log",
                "--no-walk=unsorted",
                "--name-only",
                f"--format={COMMIT_MARKER}%H",
                *shas,
            )
        except (CommandError, ValueError) as exc:
            logger.debug(
                "Batch file processing failed, falling back to individual: %s", exc
            )
            for commit in batch:
                commit_files[commit.sha] = await _files_for_commit(runner, commit.sha)
            continue

        parsed = parse_name_only_log(result.stdout)
        for commit in batch:
            commit_files[commit.sha] = parsed.get(commit.sha, [])
    return commit_files


def filter_commits_for_package(
    commits: Sequence[Commit],
    package: Package,
    commit_files: dict[str, list[str]],
) -> list[Commit]:
    """Select the commits relevant to a package, in log order, without duplicates."""
    prefix = package.path.rstrip("/") + "/"
    relevant: list[Commit] = []
    seen: set[str] = set()
    for commit in commits:
        if commit.sha in seen:
            continue
        files = commit_files.get(commit.sha, [])
        touches_path = any(f.startswith(prefix) for f in files)
        in_scope = commit.scope is not None and is_package_scope(
            commit.scope, package.name
        )
        if touches_path or in_scope:
            relevant.append(commit)
            seen.add(commit.sha)
    return relevant
