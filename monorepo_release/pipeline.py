"""Release pipeline: discover → diff → analyze → changelog → tag → release.

This module orchestrates one release run:
1. Discover all packages in the workspace
2. Detect which packages changed since their last release
3. Analyze commits to decide each changed package's next version
4. Render a changelog per package
5. Create a tag and a GitHub release per package, concurrently

A failure while tagging or releasing one package is recorded in that
package's ReleaseResult and never stops the other packages.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Mapping, Sequence
from pathlib import Path

from .analysis import analyze_commits
from .cache import ApiCache
from .changelog import ChangelogGenerator
from .config import GIT_PUSH_RETRY_DELAY, MAX_CONCURRENT_OPERATIONS, ReleaseConfig
from .host import GitHubHost, HostError, ReleaseHost
from .models import PackageVersion, ReleaseResult
from .retry import RetryPolicy
from .shell import CommandError, GhRunner, GitRunner, RevisionHistory, step
from .tag_manager import TagError, TagManager
from .workspace import detect_changes, discover_packages, find_last_tags

logger = logging.getLogger(__name__)


async def plan_release(
    runner: RevisionHistory, root: Path, config: ReleaseConfig
) -> list[PackageVersion]:
    """Decide which packages to release and at which versions.

    Raises:
        WorkspaceError: If the workspace cannot be read.
    """
    packages = discover_packages(root)
    last_tags = await find_last_tags(runner, packages, config.tag_format)
    changed = await detect_changes(
        runner,
        packages,
        last_tags,
        force_all=config.force_all,
        include_private=config.include_private,
        release_type_filter=config.release_type_filter,
    )
    if not changed:
        return []

    step("Analyzing commits")
    versions = await analyze_commits(
        runner, [packages[name] for name in changed], config
    )
    for pv in versions:
        bump = f"{pv.current_version} → {pv.new_version}"
        print(f"  {pv.name}: {bump} ({pv.release_type})")
    if not versions:
        print("  No releasable commits")
    return versions


async def release_package(
    pv: PackageVersion,
    changelog: str,
    manager: TagManager,
    semaphore: asyncio.Semaphore,
) -> ReleaseResult:
    """Tag and release one package, capturing any failure in the result."""
    async with semaphore:
        result = ReleaseResult(package=pv.name, version=pv.new_version)
        try:
            result.tag = await manager.create_tag(pv)
            release = await manager.create_release(pv, changelog)
        except (TagError, HostError, CommandError, ValueError) as exc:
            logger.error("Release of %s %s failed: %s", pv.name, pv.new_version, exc)
            result.error = str(exc)
            return result
        except Exception as exc:
            logger.exception(
                "Unexpected error releasing %s %s", pv.name, pv.new_version
            )
            result.error = f"{type(exc).__name__}: {exc}"
            return result
        if release is not None:
            result.release_url = release.html_url
        return result


def _output_line(name: str, value: str) -> str:
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    return f"{name}<<{delimiter}\n{value}\n{delimiter}\n"


def write_github_output(
    path: Path, results: Sequence[ReleaseResult], changelogs: Mapping[str, str]
) -> None:
    """Append step outputs in the GitHub Actions ``$GITHUB_OUTPUT`` format."""
    released = [r for r in results if r.error is None]
    outputs = {
        "released-packages": json.dumps(
            [r.model_dump(mode="json", exclude={"error"}) for r in released]
        ),
        "release-notes": json.dumps(dict(changelogs)),
        "tags-created": ",".join(r.tag for r in released if r.tag),
    }
    with path.open("a", encoding="utf-8") as fh:
        for name, value in outputs.items():
            fh.write(_output_line(name, value))


async def run_release(
    config: ReleaseConfig,
    root: Path,
    *,
    runner: RevisionHistory | None = None,
    host: ReleaseHost | None = None,
    output_path: Path | None = None,
) -> list[ReleaseResult]:
    """Execute the full release pipeline.

    Args:
        config: Effective release configuration.
        root: Workspace root directory.
        runner: Git runner, defaults to git in root.
        host: Release host, defaults to GitHub through gh.
        output_path: GitHub Actions output file, if any.

    Returns:
        One ReleaseResult per released package, in dependency order.
    """
    runner = runner or GitRunner(root)
    cache = ApiCache()
    host = host or GitHubHost(GhRunner(root), cache=cache)

    versions = await plan_release(runner, root, config)
    if not versions:
        step("Nothing to release")
        if output_path is not None:
            write_github_output(output_path, [], {})
        return []

    step("Generating changelogs")
    generator = ChangelogGenerator(
        host, config.owner, config.repo, tag_format=config.tag_format, cache=cache
    )
    changelogs = await generator.generate(versions)

    step(f"Creating tags and releases for {len(versions)} packages")
    manager = TagManager(
        runner,
        host,
        config.owner,
        config.repo,
        tag_format=config.tag_format,
        dry_run=config.dry_run,
        push_policy=RetryPolicy(
            max_attempts=config.push_max_retries,
            initial_delay=GIT_PUSH_RETRY_DELAY,
        ),
    )
    semaphore = asyncio.Semaphore(MAX_CONCURRENT_OPERATIONS)
    results = await asyncio.gather(
        *(
            release_package(pv, changelogs.get(pv.name, ""), manager, semaphore)
            for pv in versions
        )
    )

    for result in results:
        if result.error is None:
            print(f"  {result.package} {result.version}: {result.tag}")
        else:
            print(f"  {result.package} {result.version}: FAILED ({result.error})")

    if output_path is not None:
        write_github_output(output_path, results, changelogs)

    cache.cleanup()
    return list(results)
