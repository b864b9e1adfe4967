"""Readers for pyproject.toml manifests.

The workspace root manifest declares the uv workspace members and the
[tool.monorepo-release] settings; each member manifest declares the
package name, version, privacy and dependencies.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name

TOOL_TABLE = "monorepo-release"
PRIVATE_CLASSIFIER_PREFIX = "Private ::"


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    return tomlkit.parse(path.read_text())


def _project(doc: tomlkit.TOMLDocument) -> Any:
    return doc.get("project", {})


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """Package name from [project].name, or ``fallback`` when unset.

    The result is the PEP 503 canonical form, so "My_Package" and
    "my-package" compare equal.
    """
    return canonicalize_name(_project(doc).get("name", fallback))


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    return str(_project(doc).get("version", "0.0.0"))


def is_private(doc: tomlkit.TOMLDocument) -> bool:
    """True when a "Private :: Do Not Upload" style classifier is present."""
    classifiers = _project(doc).get("classifiers", [])
    return any(str(c).startswith(PRIVATE_CLASSIFIER_PREFIX) for c in classifiers)


def get_all_dependency_strings(doc: tomlkit.TOMLDocument) -> list[str]:
    """Every PEP 508 requirement string a manifest declares.

    Runtime dependencies, all extras and all PEP 735 dependency groups
    are included. Group include tables carry no requirement and are
    dropped.
    """
    project = _project(doc)
    sections = [project.get("dependencies", [])]
    sections.extend(project.get("optional-dependencies", {}).values())
    sections.extend(doc.get("dependency-groups", {}).values())
    return [str(req) for section in sections for req in section if isinstance(req, str)]


def get_workspace_member_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Member globs from [tool.uv.workspace].members, [] when absent."""
    workspace = doc.get("tool", {}).get("uv", {}).get("workspace", {})
    return [str(pattern) for pattern in workspace.get("members") or []]


def get_tool_config(doc: tomlkit.TOMLDocument) -> dict[str, Any]:
    """The [tool.monorepo-release] table as plain Python values."""
    table = doc.get("tool", {}).get(TOOL_TABLE, {})
    return table.unwrap() if hasattr(table, "unwrap") else dict(table)
