"""Tests for monorepo_release.analysis, including end-to-end scenarios."""

from __future__ import annotations

import pytest
from conftest import FakeGit, log_output, name_only_output

from monorepo_release.analysis import analyze_commits, decide_version
from monorepo_release.config import ReleaseConfig
from monorepo_release.models import Commit, Package
from monorepo_release.tags import format_tag


def _script(
    fake_git: FakeGit,
    records: list[tuple[str, str, str]],
    files: dict[str, list[str]],
) -> None:
    fake_git.on("describe", stdout="v0.9.0")
    fake_git.on("log", "v0.9.0..HEAD", stdout=log_output(*records))
    fake_git.on("log", "--no-walk=unsorted", stdout=name_only_output(files))


class TestAnalyzeCommits:
    """Tests for analyze_commits()."""

    @pytest.mark.asyncio
    async def test_feat_commit_yields_minor(
        self, fake_git: FakeGit, scoped_package: Package
    ) -> None:
        _script(
            fake_git,
            [("a1", "feat: add widget", "")],
            {"a1": ["packages/package/src/widget.ts"]},
        )

        [decision] = await analyze_commits(fake_git, [scoped_package], ReleaseConfig())

        assert decision.name == "@myorg/package"
        assert decision.current_version == "1.0.0"
        assert decision.new_version == "1.1.0"
        assert decision.release_type == "minor"
        assert [c.sha for c in decision.commits] == ["a1"]
        tag = format_tag(decision.name, decision.new_version, "slash")
        assert tag == "myorg-package/v1.1.0"

    @pytest.mark.asyncio
    async def test_breaking_footer_yields_major(
        self, fake_git: FakeGit, scoped_package: Package
    ) -> None:
        _script(
            fake_git,
            [("a1", "feat!: x", "BREAKING CHANGE: the API changed")],
            {"a1": ["packages/package/index.ts"]},
        )

        [decision] = await analyze_commits(fake_git, [scoped_package], ReleaseConfig())

        assert decision.release_type == "major"
        assert decision.new_version == "2.0.0"

    @pytest.mark.asyncio
    async def test_unclassified_commits_with_conventional_disabled(
        self, fake_git: FakeGit, scoped_package: Package
    ) -> None:
        _script(
            fake_git,
            [
                ("a1", "update things", ""),
                ("b2", "more updates", ""),
                ("c3", "tweak", ""),
            ],
            {
                "a1": ["packages/package/a.ts"],
                "b2": ["packages/package/b.ts"],
                "c3": ["packages/package/c.ts"],
            },
        )
        config = ReleaseConfig(conventional_commits=False)

        [decision] = await analyze_commits(fake_git, [scoped_package], config)

        assert decision.release_type == "patch"
        assert decision.new_version == "1.0.1"
        assert len(decision.commits) == 3

    @pytest.mark.asyncio
    async def test_package_without_relevant_commits_gets_no_decision(
        self, fake_git: FakeGit, scoped_package: Package
    ) -> None:
        other = Package(name="other", path="packages/other", version="3.0.0")
        _script(
            fake_git,
            [("a1", "feat: x", "")],
            {"a1": ["packages/package/x.ts"]},
        )

        decisions = await analyze_commits(
            fake_git, [scoped_package, other], ReleaseConfig()
        )

        assert [d.name for d in decisions] == ["@myorg/package"]

    @pytest.mark.asyncio
    async def test_scope_attributes_commit_without_path_match(
        self, fake_git: FakeGit, scoped_package: Package
    ) -> None:
        _script(fake_git, [("a1", "fix(package): x", "")], {"a1": ["README.md"]})

        [decision] = await analyze_commits(fake_git, [scoped_package], ReleaseConfig())

        assert decision.release_type == "patch"

    @pytest.mark.asyncio
    async def test_log_read_once_for_all_packages(
        self, fake_git: FakeGit, scoped_package: Package
    ) -> None:
        other = Package(name="other", path="packages/other")
        _script(fake_git, [("a1", "fix: x", "")], {"a1": ["packages/other/x.py"]})

        await analyze_commits(fake_git, [scoped_package, other], ReleaseConfig())

        assert len(fake_git.calls_to("describe")) == 1
        assert len(fake_git.calls_to("log")) == 2

    @pytest.mark.asyncio
    async def test_no_commits(self, fake_git: FakeGit, scoped_package: Package) -> None:
        fake_git.on("describe", stdout="v1.0.0")
        fake_git.on("log", stdout="")

        assert await analyze_commits(fake_git, [scoped_package], ReleaseConfig()) == []


class TestDecideVersion:
    """Tests for decide_version()."""

    def test_invalid_current_version_is_dropped(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        package = Package(name="broken", path="packages/broken", version="latest")
        commits = [Commit(sha="a", message="fix: x", type="fix")]

        assert decide_version(package, commits, ReleaseConfig()) is None
        assert "Skipping broken" in caplog.text

    def test_no_release_type(self) -> None:
        package = Package(name="pkg", path="packages/pkg")
        commits = [Commit(sha="a", message="wip", type=None)]

        assert decide_version(package, commits, ReleaseConfig()) is None

    def test_missing_version_defaults_to_zero(self) -> None:
        package = Package(name="pkg", path="packages/pkg", version="")
        commits = [Commit(sha="a", message="feat: x", type="feat")]

        decision = decide_version(package, commits, ReleaseConfig())

        assert decision is not None
        assert decision.current_version == "0.0.0"
        assert decision.new_version == "0.1.0"
