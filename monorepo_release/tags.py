"""Tag and release naming.

Three tag schemes are supported, all deterministic in the package name
and version:

    npm       @myorg/package@v1.1.0
    slash     myorg-package/v1.1.0
    standard  v1.1.0
"""

from __future__ import annotations

from .models import TagFormat

PRERELEASE_MARKERS = ("-alpha", "-beta", "-rc", "-preview", "-canary")


def _coerce(scheme: TagFormat | str) -> TagFormat:
    try:
        return TagFormat(scheme)
    except ValueError:
        return TagFormat.STANDARD


def _slash_name(package_name: str) -> str:
    return package_name.removeprefix("@").replace("/", "-")


def format_tag(package_name: str, version: str, scheme: TagFormat | str) -> str:
    """Build the tag name for a package version.

    Unknown schemes fall back to "standard".

    Examples:
        format_tag("@myorg/package", "1.1.0", "npm") → "@myorg/package@v1.1.0"
        format_tag("@myorg/package", "1.1.0", "slash") → "myorg-package/v1.1.0"
        format_tag("@myorg/package", "1.1.0", "standard") → "v1.1.0"
    """
    match _coerce(scheme):
        case TagFormat.NPM:
            return f"{package_name}@v{version}"
        case TagFormat.SLASH:
            return f"{_slash_name(package_name)}/v{version}"
        case _:
            return f"v{version}"


def tag_pattern(package_name: str, scheme: TagFormat | str) -> str:
    """Glob for ``git tag --list`` matching every release tag of a package."""
    return format_tag(package_name, "*", scheme)


def format_release_name(package_name: str, version: str) -> str:
    """Human-readable release title.

    Examples:
        format_release_name("@myorg/package", "1.1.0") → "Myorg Package v1.1.0"
        format_release_name("simple-package", "1.1.0") → "Simple-package v1.1.0"
    """
    display = package_name.removeprefix("@").replace("/", " ")
    words = [word[:1].upper() + word[1:] for word in display.split(" ")]
    return f"{' '.join(words)} v{version}"


def is_prerelease(version: str) -> bool:
    """Whether a version names a prerelease (alpha, beta, rc, preview, canary)."""
    return any(marker in version for marker in PRERELEASE_MARKERS)
