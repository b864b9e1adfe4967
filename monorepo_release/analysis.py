"""Commit analysis: from history to per-package version decisions.

1. Read commits since the last release tag
2. Classify each commit (conventional-commit type, scope, breaking)
3. Attribute commits to packages by changed paths and scopes
4. Resolve a release type per package
5. Compute the next version, dropping packages that would not move forward
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .attribution import filter_commits_for_package, get_commit_files
from .commits import classify_commit
from .config import ReleaseConfig
from .history import read_commits
from .models import Commit, Package, PackageVersion
from .shell import RevisionHistory
from .versions import determine_release_type, next_version

logger = logging.getLogger(__name__)


async def load_commits(runner: RevisionHistory, config: ReleaseConfig) -> list[Commit]:
    """Read and classify the commits since the last release."""
    raw_commits = await read_commits(runner, max_count=config.max_commits)
    return [
        classify_commit(raw, conventional=config.conventional_commits)
        for raw in raw_commits
    ]


def decide_version(
    package: Package, commits: list[Commit], config: ReleaseConfig
) -> PackageVersion | None:
    """Turn a package's relevant commits into a release decision, if any."""
    release_type = determine_release_type(
        commits, conventional=config.conventional_commits, types=config.type_table
    )
    if release_type is None:
        logger.debug("%s: no release needed (%d commits)", package.name, len(commits))
        return None

    current_version = package.version or "0.0.0"
    new_version = next_version(current_version, release_type)
    if new_version is None:
        logger.warning(
            "Skipping %s: no valid version after %s", package.name, current_version
        )
        return None

    return PackageVersion(
        **package.model_dump(),
        current_version=current_version,
        new_version=new_version,
        release_type=release_type,
        commits=commits,
    )


async def analyze_commits(
    runner: RevisionHistory,
    packages: Sequence[Package],
    config: ReleaseConfig,
) -> list[PackageVersion]:
    """Decide the next version of every package that needs a release.

    The commit log and the per-commit file lists are read once and shared
    by all packages. Packages without relevant commits, or whose version
    cannot be bumped, are left out of the result.
    """
    commits = await load_commits(runner, config)
    if not commits:
        logger.info("No commits to analyze")
        return []

    commit_files = await get_commit_files(
        runner, commits, batch_size=config.commit_batch_size
    )

    decisions: list[PackageVersion] = []
    for package in packages:
        relevant = filter_commits_for_package(commits, package, commit_files)
        decision = decide_version(package, relevant, config)
        if decision is not None:
            decisions.append(decision)
    return decisions
