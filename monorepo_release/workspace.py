"""Workspace discovery and change detection.

1. Discover all packages in the workspace (uv workspace members, or the
   ``workspaces`` field of a root package.json)
2. Find the last release tag of each package
3. Detect which packages changed since their last release, including the
   packages that depend on them
"""

from __future__ import annotations

import glob
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from .deps import internal_deps, package_json_dependency_names, python_dep_names
from .graph import propagate_dirty, topo_sort
from .models import Package, ReleaseScope, TagFormat
from .shell import CommandError, RevisionHistory, git, step
from .tags import tag_pattern
from .toml import (
    get_all_dependency_strings,
    get_project_name,
    get_project_version,
    get_workspace_member_globs,
    is_private,
    load_pyproject,
)
from .validation import sanitize_package_name

logger = logging.getLogger(__name__)

# Root files whose changes affect every package
ROOT_FILES = {"pyproject.toml", "uv.lock", "package.json"}


class WorkspaceError(RuntimeError):
    """The workspace layout could not be read."""


def _load_package_json(path: Path) -> dict[str, Any]:
    try:
        return json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise WorkspaceError(f"Invalid JSON in {path}: {exc}") from exc


def _member_globs(root: Path) -> list[str]:
    pyproject = root / "pyproject.toml"
    if pyproject.exists():
        globs = get_workspace_member_globs(load_pyproject(pyproject))
        if globs:
            return globs

    package_json = root / "package.json"
    if package_json.exists():
        workspaces = _load_package_json(package_json).get("workspaces") or []
        if isinstance(workspaces, dict):
            workspaces = workspaces.get("packages") or []
        return [str(w) for w in workspaces]
    return []


def _read_member(root: Path, member: Path) -> tuple[Package, list[str]] | None:
    """Read one member directory into a Package and its raw dependency names."""
    rel_path = member.relative_to(root).as_posix()

    if (member / "pyproject.toml").exists():
        doc = load_pyproject(member / "pyproject.toml")
        package = Package(
            name=get_project_name(doc, member.name),
            path=rel_path,
            version=get_project_version(doc),
            private=is_private(doc),
        )
        return package, python_dep_names(get_all_dependency_strings(doc))

    if (member / "package.json").exists():
        manifest = _load_package_json(member / "package.json")
        if not manifest.get("name"):
            logger.debug("Skipping %s: package.json has no name", rel_path)
            return None
        package = Package(
            name=sanitize_package_name(manifest["name"]),
            path=rel_path,
            version=str(manifest.get("version") or "0.0.0"),
            private=bool(manifest.get("private", False)),
        )
        return package, package_json_dependency_names(manifest)

    return None


def discover_packages(root: Path) -> dict[str, Package]:
    """Scan the workspace and discover all packages.

    Returns:
        Map of package name to Package, in dependency order.

    Raises:
        WorkspaceError: If no members are declared or none holds a package.
    """
    step("Discovering workspace packages")

    member_globs = _member_globs(root)
    if not member_globs:
        raise WorkspaceError(f"No workspace members declared in {root}")

    found: dict[str, Package] = {}
    raw_deps: dict[str, list[str]] = {}
    for pattern in member_globs:
        for match in sorted(glob.glob(str(root / pattern))):
            member = Path(match)
            if not member.is_dir():
                continue
            read = _read_member(root, member)
            if read is None:
                continue
            package, dep_names = read
            if package.name in found:
                logger.warning(
                    "Duplicate package %s in %s, keeping %s",
                    package.name,
                    package.path,
                    found[package.name].path,
                )
                continue
            found[package.name] = package
            raw_deps[package.name] = dep_names

    if not found:
        raise WorkspaceError("No packages found matching workspace members")

    names = set(found)
    for name, dep_names in raw_deps.items():
        found[name].deps = internal_deps(dep_names, names, name)

    try:
        order = topo_sort(found)
    except RuntimeError as exc:
        raise WorkspaceError(str(exc)) from exc
    packages = {name: found[name] for name in order}

    for name, package in packages.items():
        deps = f" → [{', '.join(package.deps)}]" if package.deps else ""
        private = " (private)" if package.private else ""
        print(f"  {name} {package.version} ({package.path}){private}{deps}")

    return packages


async def find_last_tags(
    runner: RevisionHistory,
    packages: Mapping[str, Package],
    scheme: TagFormat | str = TagFormat.SLASH,
) -> dict[str, str | None]:
    """Find the most recent release tag for each package.

    Returns:
        Map of package name to its last tag, or None if no tag exists.
    """
    step("Finding last release tags")

    last_tags: dict[str, str | None] = {}
    for name in packages:
        pattern = tag_pattern(name, scheme)
        tags = await git(
            runner, "tag", "--list", pattern, "--sort=-v:refname", check=False
        )
        tag = tags.splitlines()[0] if tags else None
        last_tags[name] = tag
        print(f"  {name}: {tag or '<none>'}")

    return last_tags


async def _changed_files(runner: RevisionHistory, since: str) -> set[str] | None:
    try:
        output = await git(runner, "diff", "--name-only", since, "HEAD")
    except CommandError as exc:
        logger.warning("Cannot diff against %s: %s", since, exc)
        return None
    return set(output.splitlines())


async def detect_changes(
    runner: RevisionHistory,
    packages: Mapping[str, Package],
    last_tags: Mapping[str, str | None],
    force_all: bool = False,
    include_private: bool = False,
    release_type_filter: ReleaseScope | str = ReleaseScope.ALL,
) -> list[str]:
    """Determine which packages need a release.

    A package is "dirty" if:
    1. force_all is True
    2. No previous tag exists for the package (first release)
    3. Any file in the package directory changed since its last tag
    4. A root manifest or lock file changed since its last tag
    5. Any of its dependencies are dirty (transitive dirtiness)

    A tag that can no longer be diffed against counts as a change.

    Returns:
        Changed package names in dependency order. Private packages are
        left out unless include_private is set, and packages of the kind
        excluded by release_type_filter are left out after propagation.
    """
    step("Detecting changes")

    dirty: set[str] = set()
    if force_all:
        dirty = set(packages)
        print("  Force release: all packages marked dirty")
    else:
        diffs: dict[str, set[str] | None] = {}
        for name, package in packages.items():
            last_tag = last_tags.get(name)
            if not last_tag:
                dirty.add(name)
                print(f"  {name}: new package")
                continue

            if last_tag not in diffs:
                diffs[last_tag] = await _changed_files(runner, last_tag)
            changed_files = diffs[last_tag]
            prefix = package.path.rstrip("/") + "/"
            if changed_files is None:
                dirty.add(name)
                print(f"  {name}: last tag {last_tag} unreadable")
            elif any(f.startswith(prefix) for f in changed_files):
                dirty.add(name)
                print(f"  {name}: changed since {last_tag}")
            elif changed_files & ROOT_FILES:
                dirty.add(name)
                print(f"  {name}: root config changed since {last_tag}")

    reasons = propagate_dirty(packages, dirty)
    for name, cause in reasons.items():
        if cause is not None:
            print(f"  {name}: dirty (depends on {cause})")

    scope = ReleaseScope(release_type_filter)
    changed: list[str] = []
    for name, package in packages.items():
        if name not in reasons:
            continue
        if package.private and not include_private:
            logger.info("Skipping private package %s", name)
            continue
        if scope is ReleaseScope.APPS and not package.is_app:
            logger.debug("Skipping %s: not an app", name)
            continue
        if scope is ReleaseScope.PACKAGES and package.is_app:
            logger.debug("Skipping %s: not a library package", name)
            continue
        changed.append(name)
    return changed
