"""Release type resolution and version arithmetic.

Reduces a package's commits to a single release type, then applies it to
the package's current version with semver increment rules.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

import semver
from packaging.version import InvalidVersion
from packaging.version import Version as Pep440Version

from .commits import BREAKING_CHANGE
from .config import DEFAULT_TYPES
from .models import Commit, ReleaseType

logger = logging.getLogger(__name__)

# PEP 440 pre-release label -> semver pre-release identifier
_PEP440_PRE = {"a": "alpha", "b": "beta", "rc": "rc"}

# Lower index wins.
RELEASE_PRECEDENCE: list[ReleaseType] = ["major", "minor", "patch"]


def max_release_type(
    a: ReleaseType | None, b: ReleaseType | None
) -> ReleaseType | None:
    """Return the higher-precedence release type; None means no release.

    >>> max_release_type("patch", "minor")
    'minor'
    """
    if a is None:
        return b
    if b is None:
        return a
    return RELEASE_PRECEDENCE[
        min(RELEASE_PRECEDENCE.index(a), RELEASE_PRECEDENCE.index(b))
    ]


def determine_release_type(
    commits: Sequence[Commit],
    *,
    conventional: bool = True,
    types: Mapping[str, ReleaseType] = DEFAULT_TYPES,
) -> ReleaseType | None:
    """Reduce commits to the release type they call for.

    Without conventional commits any commit means a patch release. With
    them, a breaking change anywhere means major; otherwise the strongest
    mapped commit type wins, and commits with unknown or no type are ignored.

    Returns:
        "major", "minor", "patch", or None when no release is needed.
    """
    if not conventional:
        return "patch" if commits else None

    release_type: ReleaseType | None = None
    for commit in commits:
        if commit.breaking or BREAKING_CHANGE in commit.message:
            return "major"
        if commit.type:
            release_type = max_release_type(release_type, types.get(commit.type))
    return release_type


def _from_pep440(version_str: str) -> semver.Version:
    try:
        pep440 = Pep440Version(version_str)
    except InvalidVersion as exc:
        raise ValueError(f"{version_str!r} is neither semver nor PEP 440") from exc
    if pep440.epoch or len(pep440.release) > 3:
        raise ValueError(f"PEP 440 version {version_str!r} has no semver equivalent")

    major, minor, patch = (*pep440.release, 0, 0)[:3]
    prerelease: list[str] = []
    if pep440.pre is not None:
        label, number = pep440.pre
        prerelease += [_PEP440_PRE[label], str(number)]
    if pep440.dev is not None:
        prerelease += ["dev", str(pep440.dev)]
    build: list[str] = []
    if pep440.post is not None:
        build.append(f"post{pep440.post}")
    if pep440.local:
        build.append(pep440.local)
    return semver.Version(
        major,
        minor,
        patch,
        prerelease=".".join(prerelease) or None,
        build=".".join(build) or None,
    )


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3-rc.1" → "1.2.3-rc.1"

    Python packages often carry PEP 440 versions instead, which are
    translated:
    - "1.0.0a1" → "1.0.0-alpha.1"
    - "0.1.0.dev0" → "0.1.0-dev.0"
    - "2.0.post1" → "2.0.0+post1"

    Raises:
        ValueError: If the string is neither semver nor translatable PEP 440.
    """
    text = version_str.strip()
    try:
        return semver.Version.parse(text, optional_minor_and_patch=True)
    except ValueError:
        return _from_pep440(text)


def bump_version(version_str: str, release_type: ReleaseType) -> str:
    """Increment a version by the given release type.

    A prerelease is released as its own final version when it is already
    at the boundary the bump would move to:
        bump_version("1.2.3", "minor") → "1.3.0"
        bump_version("2.0.0-rc.1", "major") → "2.0.0"
        bump_version("1.2.3-beta", "patch") → "1.2.3"
        bump_version("1.2.3-beta", "minor") → "1.3.0"
    """
    version = parse_version(version_str)
    if version.prerelease:
        final = version.finalize_version()
        on_boundary = {
            "patch": True,
            "minor": version.patch == 0,
            "major": version.minor == 0 and version.patch == 0,
        }[release_type]
        if on_boundary:
            return str(final)
        version = final

    if release_type == "major":
        return str(version.bump_major())
    if release_type == "minor":
        return str(version.bump_minor())
    return str(version.bump_patch())


def is_valid_upgrade(current_version: str, new_version: str) -> bool:
    """Check that new_version is strictly greater than current_version."""
    try:
        return parse_version(new_version) > parse_version(current_version)
    except ValueError as exc:
        logger.warning(
            "Invalid version comparison: %s -> %s: %s",
            current_version,
            new_version,
            exc,
        )
        return False


def next_version(current_version: str, release_type: ReleaseType) -> str | None:
    """Compute the version to release, or None if it cannot be computed.

    Malformed current versions and non-increasing results are logged as
    warnings and yield None so the package is skipped.
    """
    try:
        new_version = bump_version(current_version, release_type)
    except ValueError as exc:
        logger.warning(
            "Cannot bump invalid version %r (expected semver or PEP 440): %s",
            current_version,
            exc,
        )
        return None

    if not is_valid_upgrade(current_version, new_version):
        logger.warning(
            "New version %s is not greater than current %s",
            new_version,
            current_version,
        )
        return None
    return new_version
