"""Shared test fixtures and test doubles."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import tomlkit

from monorepo_release.host import NOT_FOUND, Found, Lookup
from monorepo_release.models import Package, Release
from monorepo_release.shell import CommandError, CommandResult

Outcome = CommandResult | Exception


class FakeGit:
    """Revision history provider that returns scripted output.

    Rules match on an argument prefix; the first matching rule wins. Each
    rule holds a list of outcomes consumed one per call, the last one
    repeating. Without a rule, annotated tags are remembered so that
    ``rev-parse`` can find them, and other commands succeed silently.
    """

    program = "git"

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.tags: set[str] = set()
        self._rules: list[tuple[tuple[str, ...], list[Outcome]]] = []

    def on(
        self,
        *prefix: str,
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
        error: Exception | None = None,
    ) -> FakeGit:
        outcome: Outcome = error or CommandResult(stdout, stderr, returncode)
        for rule_prefix, outcomes in self._rules:
            if rule_prefix == prefix:
                outcomes.append(outcome)
                return self
        self._rules.append((prefix, [outcome]))
        return self

    def calls_to(self, *prefix: str) -> list[tuple[str, ...]]:
        return [c for c in self.calls if c[: len(prefix)] == prefix]

    def _default(self, args: tuple[str, ...]) -> CommandResult:
        if args[:2] == ("tag", "-a"):
            self.tags.add(args[2])
        elif args[:1] == ("rev-parse",):
            exists = args[-1].removeprefix("refs/tags/") in self.tags
            return CommandResult("", "", 0 if exists else 1)
        return CommandResult("", "", 0)

    async def run(self, *args: str, check: bool = True) -> CommandResult:
        self.calls.append(args)
        outcome: Outcome | None = None
        for prefix, outcomes in self._rules:
            if args[: len(prefix)] == prefix:
                outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
                break
        if outcome is None:
            outcome = self._default(args)
        if isinstance(outcome, Exception):
            raise outcome
        if check and outcome.returncode != 0:
            raise CommandError((self.program, *args), outcome)
        return outcome


class FakeHost:
    """In-memory release host."""

    def __init__(self) -> None:
        self.releases: dict[str, Release] = {}
        self.refs: set[str] = set()
        self.authors: dict[str, str] = {}
        self.errors: dict[str, Exception] = {}
        self.created: list[dict[str, Any]] = []
        self.author_calls: list[str] = []

    def _fail(self, method: str) -> None:
        if method in self.errors:
            raise self.errors[method]

    async def get_release_by_tag(
        self, owner: str, repo: str, tag: str
    ) -> Lookup[Release]:
        self._fail("get_release_by_tag")
        release = self.releases.get(tag)
        return Found(release) if release is not None else NOT_FOUND

    async def create_release(
        self,
        owner: str,
        repo: str,
        tag: str,
        title: str,
        body: str,
        draft: bool,
        prerelease: bool,
    ) -> Release:
        self._fail("create_release")
        self.created.append(
            {
                "tag": tag,
                "title": title,
                "body": body,
                "draft": draft,
                "prerelease": prerelease,
            }
        )
        release = Release(
            id=len(self.created),
            tag_name=tag,
            name=title,
            html_url=f"https://github.com/{owner}/{repo}/releases/tag/{tag}",
            draft=draft,
            prerelease=prerelease,
        )
        self.releases[tag] = release
        return release

    async def get_ref(self, owner: str, repo: str, ref: str) -> Lookup[dict[str, Any]]:
        self._fail("get_ref")
        if ref in self.refs:
            return Found({"ref": f"refs/{ref}"})
        return NOT_FOUND

    async def get_commit_author(self, owner: str, repo: str, sha: str) -> str | None:
        self.author_calls.append(sha)
        self._fail("get_commit_author")
        return self.authors.get(sha)


async def no_sleep(seconds: float) -> None:
    return None


def log_output(*records: tuple[str, str, str]) -> str:
    """Render (sha, subject, body) triples the way the history reader asks git to."""
    return "\n".join(
        f"{sha}|||{subject}|||{body}\x1e" for sha, subject, body in records
    )


def name_only_output(files: dict[str, list[str]]) -> str:
    """Render a ``git log --name-only`` response with commit marker lines."""
    chunks = []
    for sha, paths in files.items():
        chunks.append("\n".join([f"@@commit:{sha}", "", *paths]))
    return "\n\n".join(chunks) + "\n"


@pytest.fixture
def fake_git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def fake_host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def scoped_package() -> Package:
    return Package(name="@myorg/package", path="packages/package", version="1.0.0")


@pytest.fixture
def member_pyproject(tmp_path: Path) -> Path:
    """A workspace member manifest on disk with deps in every section."""
    path = tmp_path / "pyproject.toml"
    path.write_text(
        "[project]\n"
        'name = "billing-api"\n'
        'version = "3.1.0"\n'
        'dependencies = ["httpx>=0.27", "core-models>=1.0"]\n'
        "\n"
        "[project.optional-dependencies]\n"
        'cli = ["rich>=13", "core-cli>=0.5"]\n'
        "\n"
        "[dependency-groups]\n"
        'test = ["pytest>=8.0", "test-helpers", {include-group = "lint"}]\n'
    )
    return path


@pytest.fixture
def root_toml_doc() -> tomlkit.TOMLDocument:
    """A workspace root manifest that is also a private package."""
    return tomlkit.parse(
        "[project]\n"
        'name = "Acme_Monorepo"\n'
        'version = "2.0.0"\n'
        'classifiers = ["Private :: Do Not Upload"]\n'
        "\n"
        "[tool.uv.workspace]\n"
        'members = ["services/*", "libs/*"]\n'
        "\n"
        "[tool.monorepo-release]\n"
        'tag-format = "npm"\n'
        "max-commits = 200\n"
    )


def write_workspace(root: Path, packages: dict[str, dict[str, Any]]) -> None:
    """Create a uv workspace with one pyproject.toml per package.

    ``packages`` maps a directory name under packages/ to its
    [project] table values (name, version, dependencies).
    """
    (root / "pyproject.toml").write_text(
        '[tool.uv.workspace]\nmembers = ["packages/*"]\n'
    )
    for dirname, project in packages.items():
        package_dir = root / "packages" / dirname
        package_dir.mkdir(parents=True)
        doc = tomlkit.document()
        doc["project"] = project
        (package_dir / "pyproject.toml").write_text(tomlkit.dumps(doc))
