"""Markdown changelogs for package releases.

Each changelog lists the commits attributed to a package, grouped into
breaking changes, features, fixes and everything else, followed by the
GitHub users who authored them.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from .cache import ApiCache
from .commits import BREAKING_CHANGE, strip_conventional_prefix
from .config import CHANGELOG_MAX_LENGTH, MAX_CONCURRENT_OPERATIONS
from .host import HostError, ReleaseHost
from .models import Commit, PackageVersion, TagFormat
from .retry import RetryPolicy, retry_on_retryable_errors
from .tags import format_tag

logger = logging.getLogger(__name__)

GITHUB_URL = "https://github.com"
FIRST_RELEASE = "0.0.0"
BATCH_DELAY = 1.0


@dataclass
class GroupedCommits:
    breaking: list[Commit] = field(default_factory=list)
    features: list[Commit] = field(default_factory=list)
    fixes: list[Commit] = field(default_factory=list)
    other: list[Commit] = field(default_factory=list)


def group_commits(commits: Sequence[Commit]) -> GroupedCommits:
    """Sort commits into changelog sections, keeping their order."""
    grouped = GroupedCommits()
    for commit in commits:
        if commit.breaking or BREAKING_CHANGE in commit.message:
            grouped.breaking.append(commit)
        elif commit.type == "feat":
            grouped.features.append(commit)
        elif commit.type == "fix":
            grouped.fixes.append(commit)
        else:
            grouped.other.append(commit)
    return grouped


def truncate(text: str, limit: int = CHANGELOG_MAX_LENGTH) -> str:
    """Cut text to at most ``limit`` characters (release body limit)."""
    if len(text) <= limit:
        return text
    logger.warning("Changelog truncated from %d to %d characters", len(text), limit)
    return text[:limit]


class ChangelogGenerator:
    """Renders release notes for resolved package versions.

    Args:
        host: Hosting platform client used to look up commit authors.
        owner: Repository owner, for links.
        repo: Repository name, for links.
        tag_format: Tag naming scheme, for the comparison link.
        cache: Per-run API cache; a private one is created if omitted.
        retry_policy: Retry policy for author lookups.
        include_contributors: Look up commit authors at all.
        sleep: Awaitable sleep used between lookup batches.
    """

    def __init__(
        self,
        host: ReleaseHost,
        owner: str,
        repo: str,
        tag_format: TagFormat | str = TagFormat.SLASH,
        cache: ApiCache | None = None,
        retry_policy: RetryPolicy | None = None,
        include_contributors: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.host = host
        self.owner = owner
        self.repo = repo
        self.tag_format = tag_format
        self.cache = cache or ApiCache()
        self.retry_policy = retry_policy or RetryPolicy()
        self.include_contributors = include_contributors
        self._sleep = sleep

    @property
    def repo_url(self) -> str:
        return f"{GITHUB_URL}/{self.owner}/{self.repo}"

    async def generate(self, versions: Sequence[PackageVersion]) -> dict[str, str]:
        """Render one changelog per package, keyed by package name."""
        changelogs: dict[str, str] = {}
        for pv in versions:
            changelogs[pv.name] = await self.generate_package_changelog(pv)
        return changelogs

    async def generate_package_changelog(self, pv: PackageVersion) -> str:
        lines = [
            f"## {pv.name} v{pv.new_version}",
            "",
            self.comparison_link(pv),
            "",
        ]

        grouped = group_commits(pv.commits)
        for title, commits in (
            ("Breaking Changes", grouped.breaking),
            ("Features", grouped.features),
            ("Bug Fixes", grouped.fixes),
            ("Other Changes", grouped.other),
        ):
            if commits:
                lines += [f"### {title}", ""]
                lines += [self.format_commit(commit) for commit in commits]
                lines.append("")

        if self.include_contributors:
            contributors = await self.get_contributors(pv.commits)
            if contributors:
                lines += ["### Contributors", ""]
                lines += [f"- @{login}" for login in contributors]
                lines.append("")

        return truncate("\n".join(lines).strip())

    def format_commit(self, commit: Commit) -> str:
        """One bullet: ``- **scope:** subject ([abc1234](url))``."""
        scope = f"**{commit.scope}:** " if commit.scope else ""
        subject = strip_conventional_prefix(commit.subject)
        url = f"{self.repo_url}/commit/{commit.sha}"
        return f"- {scope}{subject} ([{commit.sha[:7]}]({url}))"

    def comparison_link(self, pv: PackageVersion) -> str:
        head = format_tag(pv.name, pv.new_version, self.tag_format)
        if not pv.current_version or pv.current_version == FIRST_RELEASE:
            return f"**Full Changelog**: {self.repo_url}/commits/{head}"
        base = format_tag(pv.name, pv.current_version, self.tag_format)
        return f"**Full Changelog**: {self.repo_url}/compare/{base}...{head}"

    async def _author_of(self, sha: str) -> str | None:
        key = f"commit:{self.owner}:{self.repo}:{sha}"
        try:
            return await self.cache.get_or_fetch(
                key,
                lambda: retry_on_retryable_errors(
                    lambda: self.host.get_commit_author(self.owner, self.repo, sha),
                    self.retry_policy,
                    sleep=self._sleep,
                ),
            )
        except HostError as exc:
            logger.debug("Failed to get commit %s: %s", sha, exc)
            return None

    async def get_contributors(self, commits: Sequence[Commit]) -> list[str]:
        """Sorted GitHub logins of the commits' authors.

        Lookups run in batches of MAX_CONCURRENT_OPERATIONS. Commits whose
        author cannot be determined are left out.
        """
        shas = list(dict.fromkeys(commit.sha for commit in commits))
        logins: set[str] = set()
        for start in range(0, len(shas), MAX_CONCURRENT_OPERATIONS):
            batch = shas[start : start + MAX_CONCURRENT_OPERATIONS]
            await self.cache.wait_for_rate_limit()
            authors = await asyncio.gather(*(self._author_of(sha) for sha in batch))
            logins.update(login for login in authors if login)

            more = start + MAX_CONCURRENT_OPERATIONS < len(shas)
            if more and self.cache.is_rate_limit_approaching():
                logger.debug("Rate limit approaching, adding delay between batches")
                await self._sleep(BATCH_DELAY)
        return sorted(logins)
