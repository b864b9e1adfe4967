"""Release configuration.

Settings are merged from, lowest to highest precedence:
1. Defaults declared on ReleaseConfig
2. The [tool.monorepo-release] table of the root pyproject.toml
3. Environment (GITHUB_REPOSITORY and GitHub Action ``INPUT_*`` variables)
4. Explicit overrides, usually CLI flags
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from .models import ReleaseScope, ReleaseType, TagFormat
from .toml import get_tool_config, load_pyproject

DEFAULT_TYPES: dict[str, ReleaseType] = {
    "feat": "minor",
    "fix": "patch",
    "perf": "patch",
    "revert": "patch",
    "docs": "patch",
    "style": "patch",
    "refactor": "patch",
    "test": "patch",
    "build": "patch",
    "ci": "patch",
    "chore": "patch",
}

MAX_COMMITS_TO_ANALYZE = 1000
COMMIT_BATCH_SIZE = 50
GIT_PUSH_MAX_RETRIES = 3
GIT_PUSH_RETRY_DELAY = 1.0
MAX_CONCURRENT_OPERATIONS = 5
CHANGELOG_MAX_LENGTH = 65536

# Action input name -> config field
_ACTION_INPUTS = {
    "TAG-FORMAT": "tag_format",
    "DRY-RUN": "dry_run",
    "CONVENTIONAL-COMMITS": "conventional_commits",
    "MAX-COMMITS": "max_commits",
    "INCLUDE-PRIVATE": "include_private",
    "FORCE-ALL": "force_all",
    "RELEASE-TYPE": "release_type_filter",
}


class ReleaseConfig(BaseModel):
    """Settings for one release run.

    Attributes:
        conventional_commits: Parse commit messages as Conventional Commits.
            When False every relevant commit counts as a patch.
        types: Commit type to release type table. Replaces the defaults
            entirely when given.
        tag_format: Tag naming scheme.
        dry_run: Log what would be created without creating anything.
        max_commits: Upper bound on commits read from history.
        commit_batch_size: Commits per file-list query.
        push_max_retries: Attempts for pushing a tag.
        include_private: Release packages marked private.
        force_all: Treat every package as changed.
        release_type_filter: Release only apps, only packages, or both.
        repository: ``owner/repo`` on GitHub.
    """

    conventional_commits: bool = True
    types: dict[str, ReleaseType] | None = None
    tag_format: TagFormat = TagFormat.SLASH
    dry_run: bool = False
    max_commits: int = Field(default=MAX_COMMITS_TO_ANALYZE, gt=0)
    commit_batch_size: int = Field(default=COMMIT_BATCH_SIZE, gt=0)
    push_max_retries: int = Field(default=GIT_PUSH_MAX_RETRIES, gt=0)
    include_private: bool = False
    force_all: bool = False
    release_type_filter: ReleaseScope = ReleaseScope.ALL
    repository: str | None = None

    @field_validator("repository")
    @classmethod
    def _check_repository(cls, value: str | None) -> str | None:
        if value is not None and value.count("/") != 1:
            raise ValueError(f"repository must look like owner/repo, got {value!r}")
        return value

    @property
    def type_table(self) -> dict[str, ReleaseType]:
        return self.types if self.types is not None else DEFAULT_TYPES

    @property
    def owner(self) -> str:
        return self._split_repository()[0]

    @property
    def repo(self) -> str:
        return self._split_repository()[1]

    def _split_repository(self) -> tuple[str, str]:
        if not self.repository:
            raise ValueError(
                "No repository configured; set GITHUB_REPOSITORY or --repository"
            )
        owner, repo = self.repository.split("/")
        return owner, repo


def _normalize_keys(table: Mapping[str, Any]) -> dict[str, Any]:
    return {key.replace("-", "_"): value for key, value in table.items()}


def config_from_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect settings from GitHub Actions environment variables.

    Empty action inputs are ignored so that unset ``with:`` keys fall
    through to lower-precedence sources.
    """
    values: dict[str, Any] = {}
    if env.get("GITHUB_REPOSITORY"):
        values["repository"] = env["GITHUB_REPOSITORY"]
    for input_name, field in _ACTION_INPUTS.items():
        raw = env.get(f"INPUT_{input_name}", "").strip()
        if raw:
            values[field] = raw
    return values


def load_config(
    root: Path,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ReleaseConfig:
    """Build the effective configuration for a workspace.

    Args:
        root: Workspace root holding pyproject.toml.
        env: Environment mapping, usually os.environ.
        overrides: Highest-precedence values; None entries are ignored.

    Raises:
        pydantic.ValidationError: If any merged value is invalid.
    """
    values: dict[str, Any] = {}
    pyproject = root / "pyproject.toml"
    if pyproject.exists():
        values.update(_normalize_keys(get_tool_config(load_pyproject(pyproject))))
    if env is not None:
        values.update(config_from_env(env))
    if overrides:
        values.update({k: v for k, v in overrides.items() if v is not None})
    return ReleaseConfig.model_validate(values)
