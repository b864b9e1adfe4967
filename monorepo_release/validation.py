"""Input validation for values passed to git and gh.

Commands are executed without a shell, but refs and tag names still end
up as positional git arguments, so anything that could be read as an
option or a special ref is rejected up front.
"""

from __future__ import annotations

import re

_SAFE_PACKAGE_NAME = re.compile(r"^[a-zA-Z0-9\-_./@]+$")
_SAFE_TAG = re.compile(r"^[a-zA-Z0-9\-_./@+]+$")
_SAFE_GIT_REF = re.compile(r"^[a-zA-Z0-9\-_./@+]+$")


def sanitize_package_name(name: str) -> str:
    """Validate a workspace package name.

    Raises:
        ValueError: If the name is empty, contains unsafe characters, or is
            a malformed scoped name such as "@scope" without a slash.
    """
    if not name:
        raise ValueError("Package name cannot be empty")
    if not _SAFE_PACKAGE_NAME.match(name):
        raise ValueError(f"Invalid package name: {name} contains unsafe characters")
    if name.startswith("@") and "/" not in name:
        raise ValueError(f"Invalid scoped package name: {name}")
    return name


def sanitize_tag_name(tag: str) -> str:
    """Validate a tag name before it is created or pushed."""
    if not tag:
        raise ValueError("Tag name cannot be empty")
    if not _SAFE_TAG.match(tag) or tag.startswith("-"):
        raise ValueError(f"Invalid tag name: {tag} contains unsafe characters")
    if tag == "HEAD" or tag.startswith("refs/"):
        raise ValueError(f"Invalid tag name: {tag} is a reserved git reference")
    return tag


def sanitize_git_ref(ref: str) -> str:
    """Validate a commit sha, branch or tag used as a git argument."""
    if not ref:
        raise ValueError("Git reference cannot be empty")
    if not _SAFE_GIT_REF.match(ref) or ref.startswith("-"):
        raise ValueError(f"Invalid git reference: {ref} contains unsafe characters")
    return ref
