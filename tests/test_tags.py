"""Tests for monorepo_release.tags."""

from __future__ import annotations

import pytest

from monorepo_release.models import TagFormat
from monorepo_release.tags import (
    format_release_name,
    format_tag,
    is_prerelease,
    tag_pattern,
)


class TestFormatTag:
    @pytest.mark.parametrize(
        ("scheme", "expected"),
        [
            ("slash", "myorg-package/v1.1.0"),
            ("npm", "@myorg/package@v1.1.0"),
            ("standard", "v1.1.0"),
            (TagFormat.SLASH, "myorg-package/v1.1.0"),
        ],
    )
    def test_schemes(self, scheme: str, expected: str) -> None:
        assert format_tag("@myorg/package", "1.1.0", scheme) == expected

    def test_unknown_scheme_behaves_as_standard(self) -> None:
        assert format_tag("@myorg/package", "1.1.0", "calver") == "v1.1.0"

    def test_slash_nested_name(self) -> None:
        assert format_tag("@org/nested/package", "1.0.0", "slash") == (
            "org-nested-package/v1.0.0"
        )

    def test_slash_unscoped_name(self) -> None:
        assert format_tag("simple-package", "1.0.0", "slash") == "simple-package/v1.0.0"


def test_tag_pattern() -> None:
    assert tag_pattern("@myorg/package", "slash") == "myorg-package/v*"
    assert tag_pattern("@myorg/package", "npm") == "@myorg/package@v*"


class TestFormatReleaseName:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("@myorg/my-awesome-package", "Myorg My-awesome-package v1.1.0"),
            ("@org/nested/package", "Org Nested Package v1.1.0"),
            ("simple-package", "Simple-package v1.1.0"),
        ],
    )
    def test_names(self, name: str, expected: str) -> None:
        assert format_release_name(name, "1.1.0") == expected


class TestIsPrerelease:
    @pytest.mark.parametrize(
        "version",
        [
            "1.1.0-beta.1",
            "1.0.0-alpha",
            "2.0.0-rc.1",
            "1.0.0-preview",
            "1.0.0-canary.3",
        ],
    )
    def test_known_markers(self, version: str) -> None:
        assert is_prerelease(version)

    @pytest.mark.parametrize("version", ["1.1.0", "1.1.0-gamma", "1.0.1-stable"])
    def test_other_versions(self, version: str) -> None:
        assert not is_prerelease(version)
