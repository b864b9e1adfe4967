"""Dependency handling utilities.

Resolves the internal (workspace) dependencies of a package from its
manifest: PEP 508 strings for pyproject.toml packages and dependency
maps for package.json packages.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

# package.json sections that declare dependencies
PACKAGE_JSON_SECTIONS = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)


def dep_canonical_name(dep_str: str) -> str:
    """PEP 503 name of the project a requirement string refers to.

    Markers, extras and specifiers are discarded:
    "Core_Models[cli]>=1.0; python_version>'3.10'" → "core-models".

    Raises:
        packaging.requirements.InvalidRequirement: If the string is not PEP 508.
    """
    return canonicalize_name(Requirement(dep_str).name)


def package_json_dependency_names(manifest: Mapping[str, Any]) -> list[str]:
    """All dependency names declared in a package.json, in declaration order."""
    names: list[str] = []
    for section in PACKAGE_JSON_SECTIONS:
        names.extend(manifest.get(section) or {})
    return names


def internal_deps(
    dep_names: Iterable[str], workspace_names: set[str], self_name: str
) -> list[str]:
    """Keep the dependency names that refer to other workspace packages.

    Duplicates are dropped and the first occurrence wins.
    """
    result: list[str] = []
    for name in dep_names:
        if name in workspace_names and name != self_name and name not in result:
            result.append(name)
    return result


def python_dep_names(dep_strings: Iterable[str]) -> list[str]:
    """Canonical names of PEP 508 strings, skipping ones that do not parse."""
    names: list[str] = []
    for dep_str in dep_strings:
        try:
            names.append(dep_canonical_name(dep_str))
        except InvalidRequirement:
            continue
    return names
