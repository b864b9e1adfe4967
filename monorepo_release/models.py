"""Data models for monorepo-release.

These Pydantic models represent the core data structures used throughout
the release pipeline.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ReleaseType = Literal["major", "minor", "patch"]


class TagFormat(str, Enum):
    """Naming scheme for per-package git tags.

    Attributes:
        NPM: ``@scope/pkg@v1.2.3``
        SLASH: ``scope-pkg/v1.2.3``
        STANDARD: ``v1.2.3``, for single-package repositories.
    """

    NPM = "npm"
    SLASH = "slash"
    STANDARD = "standard"


class ReleaseScope(str, Enum):
    """Which kinds of workspace packages a run may release.

    Packages under a top-level ``apps/`` directory are apps; everything
    else is a package.
    """

    ALL = "all"
    APPS = "apps"
    PACKAGES = "packages"


class Package(BaseModel):
    """Metadata for a single package in the monorepo workspace.

    Attributes:
        name: Package name, possibly scoped (``@scope/name``).
        path: Relative path from workspace root to the package directory.
        version: Current version string, ``0.0.0`` when the manifest has none.
        private: Private packages are never released unless asked for.
        deps: Internal (workspace) dependency names. External deps
              are not tracked since they never affect release order.
    """

    name: str
    path: str
    version: str = "0.0.0"
    private: bool = False
    deps: list[str] = Field(default_factory=list)

    @property
    def is_app(self) -> bool:
        return self.path.split("/", 1)[0] == "apps"


class Commit(BaseModel):
    """One revision from the commit log.

    ``type``, ``scope`` and ``breaking`` are only populated when
    conventional-commit parsing is enabled.
    """

    model_config = ConfigDict(frozen=True)

    sha: str
    message: str
    type: str | None = None
    scope: str | None = None
    breaking: bool | None = None

    @property
    def subject(self) -> str:
        return self.message.split("\n", 1)[0]


class PackageVersion(Package):
    """A resolved release decision for one package.

    Attributes:
        current_version: Version found in the package manifest.
        new_version: Version to release, always greater than current_version.
        release_type: Which semver component was incremented.
        commits: Commits attributed to the package, in log order.
    """

    current_version: str
    new_version: str
    release_type: ReleaseType
    commits: list[Commit] = Field(default_factory=list)


class Release(BaseModel):
    """A release as returned by the hosting platform."""

    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    tag_name: str
    name: str | None = None
    html_url: str = ""
    draft: bool = False
    prerelease: bool = False


class ReleaseResult(BaseModel):
    """Outcome of tagging and releasing one package."""

    package: str
    version: str
    tag: str = ""
    release_url: str = ""
    error: str | None = None
