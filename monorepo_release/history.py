"""Reading commit history since the last release."""

from __future__ import annotations

import logging

from .commits import RawCommit
from .config import MAX_COMMITS_TO_ANALYZE
from .shell import CommandError, RevisionHistory, git
from .validation import sanitize_git_ref

logger = logging.getLogger(__name__)

FIELD_SEP = "|||"
RECORD_SEP = "\x1e"
LOG_FORMAT = f"--pretty=format:%H{FIELD_SEP}%s{FIELD_SEP}%b%x1e"


async def find_latest_tag(runner: RevisionHistory) -> str | None:
    """Return the most recent tag reachable from HEAD, or None."""
    try:
        tag = await git(runner, "describe", "--tags", "--abbrev=0")
    except CommandError as exc:
        logger.debug("No previous tags found, analyzing all commits: %s", exc)
        return None
    return tag or None


def parse_log(output: str) -> list[RawCommit]:
    """Split ``git log`` output produced with LOG_FORMAT into raw commits.

    Records with fewer than two fields are kept as degraded commits: the
    first token is taken as the sha and the remainder as the subject.
    """
    commits: list[RawCommit] = []
    for record in output.split(RECORD_SEP):
        record = record.strip("\n")
        if not record.strip():
            continue
        fields = record.split(FIELD_SEP, 2)
        if len(fields) < 2:
            sha, _, remainder = record.strip().partition(" ")
            commits.append(RawCommit(sha=sha, subject=remainder.strip()))
            continue
        sha, subject = fields[0].strip(), fields[1]
        body = fields[2] if len(fields) > 2 else ""
        commits.append(RawCommit(sha=sha, subject=subject, body=body.strip()))
    return commits


async def read_commits(
    runner: RevisionHistory, max_count: int = MAX_COMMITS_TO_ANALYZE
) -> list[RawCommit]:
    """Read commits since the latest tag, newest first.

    Falls back to the whole history (bounded by max_count) when there is
    no tag. A failed log read is logged and yields no commits.
    """
    last_tag = await find_latest_tag(runner)
    args = ["log"]
    try:
        if last_tag:
            args.append(f"{sanitize_git_ref(last_tag)}..HEAD")
        args.extend([LOG_FORMAT, f"--max-count={max_count}"])
        output = (await runner.run(*args)).stdout
    except (CommandError, ValueError) as exc:
        logger.warning("Failed to get commits: %s", exc)
        return []

    commits = parse_log(output)
    logger.debug(
        "Read %d commits since %s", len(commits), last_tag or "the beginning of history"
    )
    return commits
