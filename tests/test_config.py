"""Tests for monorepo_release.config."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from monorepo_release.config import (
    DEFAULT_TYPES,
    ReleaseConfig,
    config_from_env,
    load_config,
)
from monorepo_release.models import ReleaseScope, TagFormat


class TestReleaseConfig:
    def test_defaults(self) -> None:
        config = ReleaseConfig()

        assert config.conventional_commits is True
        assert config.tag_format is TagFormat.SLASH
        assert config.dry_run is False
        assert config.max_commits == 1000
        assert config.commit_batch_size == 50
        assert config.push_max_retries == 3
        assert config.type_table == DEFAULT_TYPES
        assert config.release_type_filter is ReleaseScope.ALL

    def test_custom_types_replace_defaults(self) -> None:
        config = ReleaseConfig(types={"docs": "minor"})

        assert config.type_table == {"docs": "minor"}

    def test_owner_and_repo(self) -> None:
        config = ReleaseConfig(repository="octo/widgets")

        assert (config.owner, config.repo) == ("octo", "widgets")

    def test_missing_repository(self) -> None:
        with pytest.raises(ValueError, match="No repository configured"):
            ReleaseConfig().owner

    @pytest.mark.parametrize(
        "values",
        [
            {"repository": "no-slash"},
            {"tag_format": "calver"},
            {"max_commits": 0},
            {"types": {"feat": "huge"}},
        ],
    )
    def test_invalid_values(self, values: dict) -> None:
        with pytest.raises(ValidationError):
            ReleaseConfig(**values)


class TestConfigFromEnv:
    def test_action_inputs(self) -> None:
        env = {
            "GITHUB_REPOSITORY": "octo/widgets",
            "INPUT_TAG-FORMAT": "npm",
            "INPUT_DRY-RUN": "true",
            "INPUT_CONVENTIONAL-COMMITS": "false",
            "INPUT_MAX-COMMITS": "",
            "INPUT_RELEASE-TYPE": "apps",
        }

        assert config_from_env(env) == {
            "repository": "octo/widgets",
            "tag_format": "npm",
            "dry_run": "true",
            "conventional_commits": "false",
            "release_type_filter": "apps",
        }

    def test_release_type_input_is_validated(self, tmp_path: Path) -> None:
        config = load_config(tmp_path, env={"INPUT_RELEASE-TYPE": "packages"})
        assert config.release_type_filter is ReleaseScope.PACKAGES

        with pytest.raises(ValidationError):
            load_config(tmp_path, env={"INPUT_RELEASE-TYPE": "services"})


class TestLoadConfig:
    def test_precedence(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text(
            "[tool.monorepo-release]\n"
            'tag-format = "npm"\n'
            "max-commits = 200\n"
            "dry-run = false\n"
        )
        env = {"INPUT_MAX-COMMITS": "300", "GITHUB_REPOSITORY": "o/r"}

        config = load_config(
            tmp_path, env=env, overrides={"dry_run": True, "tag_format": None}
        )

        assert config.tag_format is TagFormat.NPM
        assert config.max_commits == 300
        assert config.dry_run is True
        assert config.repository == "o/r"

    def test_without_pyproject(self, tmp_path: Path) -> None:
        assert load_config(tmp_path) == ReleaseConfig()

    def test_types_table(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text(
            '[tool.monorepo-release.types]\nfeat = "minor"\nsecurity = "patch"\n'
        )

        config = load_config(tmp_path)

        assert config.type_table == {"feat": "minor", "security": "patch"}

    def test_invalid_value_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ValidationError):
            load_config(tmp_path, env={"INPUT_DRY-RUN": "maybe"})
