"""Idempotent creation of git tags and hosting releases.

Both operations check for an existing tag or release first and return it
unchanged if found, so rerunning a release job after a partial failure
never creates anything twice.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .host import Found, HostError, ReleaseHost
from .models import PackageVersion, Release, TagFormat
from .retry import RetryPolicy, retry_with_backoff
from .shell import CommandError, RevisionHistory
from .tags import format_release_name, format_tag, is_prerelease
from .validation import sanitize_tag_name

logger = logging.getLogger(__name__)


class TagError(RuntimeError):
    """Creating a tag in the local repository failed."""


class TagManager:
    """Creates per-package tags and releases.

    Args:
        runner: Revision history provider for local git operations.
        host: Hosting platform client.
        owner: Repository owner on the hosting platform.
        repo: Repository name on the hosting platform.
        tag_format: Tag naming scheme.
        dry_run: Log actions instead of performing them.
        push_policy: Retry policy for pushing tags.
        sleep: Awaitable sleep used between push attempts.
    """

    def __init__(
        self,
        runner: RevisionHistory,
        host: ReleaseHost,
        owner: str,
        repo: str,
        tag_format: TagFormat | str = TagFormat.SLASH,
        dry_run: bool = False,
        push_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.runner = runner
        self.host = host
        self.owner = owner
        self.repo = repo
        self.tag_format = tag_format
        self.dry_run = dry_run
        self.push_policy = push_policy or RetryPolicy()
        self._sleep = sleep

    def tag_name(self, pv: PackageVersion) -> str:
        return format_tag(pv.name, pv.new_version, self.tag_format)

    async def _exists_locally(self, tag: str) -> bool:
        try:
            result = await self.runner.run(
                "rev-parse", "--verify", "--quiet", f"refs/tags/{tag}", check=False
            )
        except OSError as exc:
            logger.warning("Could not check local tag %s: %s", tag, exc)
            return False
        return result.returncode == 0

    async def _exists_remotely(self, tag: str) -> bool:
        try:
            lookup = await self.host.get_ref(self.owner, self.repo, f"tags/{tag}")
        except (HostError, OSError) as exc:
            logger.warning("Could not check remote tag %s: %s", tag, exc)
            return False
        return isinstance(lookup, Found)

    async def tag_exists(self, tag: str) -> bool:
        """Whether the tag exists locally or on the remote.

        A check that fails counts as "does not exist", so creation is
        attempted and fails loudly if the tag is in fact there.
        """
        if await self._exists_locally(tag):
            logger.debug("Tag %s exists locally", tag)
            return True
        if await self._exists_remotely(tag):
            logger.debug("Tag %s exists on the remote", tag)
            return True
        return False

    async def _push(self, tag: str) -> None:
        await self.runner.run("push", "origin", f"refs/tags/{tag}")

    async def create_tag(self, pv: PackageVersion) -> str:
        """Create and push the release tag for a package version.

        Returns:
            The tag name, whether it was created now or already existed.

        Raises:
            TagError: If the local tag could not be created.
            CommandError: If pushing still fails after all retries.
        """
        tag = sanitize_tag_name(self.tag_name(pv))

        if self.dry_run:
            logger.info("[DRY RUN] Would create tag: %s", tag)
            return tag

        if await self.tag_exists(tag):
            logger.warning("Tag %s already exists, skipping", tag)
            return tag

        message = f"Release {pv.name} v{pv.new_version}"
        try:
            await self.runner.run("tag", "-a", tag, "-m", message)
        except CommandError as exc:
            logger.error("Failed to create tag %s: %s", tag, exc)
            raise TagError(f"Failed to create tag {tag}: {exc}") from exc

        try:
            await retry_with_backoff(
                lambda: self._push(tag), self.push_policy, sleep=self._sleep
            )
        except CommandError as exc:
            logger.error(
                "Failed to push tag %s after %d attempts",
                tag,
                self.push_policy.max_attempts,
            )
            raise exc

        logger.info("Created and pushed tag: %s", tag)
        return tag

    async def create_release(
        self, pv: PackageVersion, changelog: str
    ) -> Release | None:
        """Create the hosting release for a package version.

        Returns:
            The new or already existing release, or None in dry-run mode.

        Raises:
            HostError: If the release could not be created.
        """
        tag = self.tag_name(pv)
        title = format_release_name(pv.name, pv.new_version)

        if self.dry_run:
            logger.info("[DRY RUN] Would create release: %s", title)
            return None

        try:
            existing = await self.host.get_release_by_tag(self.owner, self.repo, tag)
        except (HostError, OSError) as exc:
            logger.warning("Could not look up release for %s: %s", tag, exc)
        else:
            if isinstance(existing, Found):
                logger.warning("Release for tag %s already exists", tag)
                return existing.value

        try:
            release = await self.host.create_release(
                self.owner,
                self.repo,
                tag,
                title,
                changelog,
                draft=False,
                prerelease=is_prerelease(pv.new_version),
            )
        except HostError as exc:
            logger.error("Failed to create release for %s: %s", tag, exc)
            raise

        logger.info("Created release: %s (%s)", title, release.html_url)
        return release
