"""Release hosting platform access.

Lookups return ``Found(value)`` or ``NOT_FOUND`` so that a missing release
or ref is never confused with a failed request; failures raise HostError.
The GitHub implementation talks to the REST API through ``gh api``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar
from urllib.parse import quote

from .cache import ApiCache
from .models import Release
from .shell import CommandError, CommandResult, CommandRunner

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Found(Generic[T]):
    value: T


@dataclass(frozen=True)
class NotFound:
    pass


NOT_FOUND = NotFound()

Lookup = Found[T] | NotFound


class HostError(RuntimeError):
    """A hosting API request failed for a reason other than "not found"."""


class ReleaseHost(Protocol):
    """Capability set of the hosting platform used by the release core."""

    async def get_release_by_tag(
        self, owner: str, repo: str, tag: str
    ) -> Lookup[Release]: ...

    async def create_release(
        self,
        owner: str,
        repo: str,
        tag: str,
        title: str,
        body: str,
        draft: bool,
        prerelease: bool,
    ) -> Release: ...

    async def get_ref(
        self, owner: str, repo: str, ref: str
    ) -> Lookup[dict[str, Any]]: ...

    async def get_commit_author(
        self, owner: str, repo: str, sha: str
    ) -> str | None: ...


def _is_not_found(result: CommandResult) -> bool:
    text = f"{result.stderr}\n{result.stdout}"
    return "HTTP 404" in text or "Not Found" in text


def split_included_response(output: str) -> tuple[dict[str, str], str]:
    """Split ``gh api --include`` output into lower-cased headers and body."""
    normalized = output.replace("\r\n", "\n")
    head, _, body = normalized.partition("\n\n")
    headers: dict[str, str] = {}
    for line in head.splitlines()[1:]:
        name, sep, value = line.partition(":")
        if sep:
            headers[name.strip().lower()] = value.strip()
    return headers, body


class GitHubHost:
    """ReleaseHost backed by the GitHub REST API via ``gh api``.

    Args:
        runner: Runs ``gh`` with the given arguments (see shell.GhRunner).
        cache: Optional per-run cache that receives rate-limit headers.
    """

    def __init__(self, runner: CommandRunner, cache: ApiCache | None = None) -> None:
        self.runner = runner
        self.cache = cache

    async def _api(self, *args: str) -> CommandResult:
        try:
            return await self.runner.run("api", *args)
        except (CommandError, OSError) as exc:
            raise HostError(f"gh api {args[-1]} failed: {exc}") from exc

    async def _lookup(self, endpoint: str) -> Lookup[Any]:
        try:
            result = await self.runner.run("api", endpoint, check=False)
        except OSError as exc:
            raise HostError(f"gh api {endpoint} could not run: {exc}") from exc
        if result.returncode == 0:
            return Found(self._decode(result.stdout, endpoint))
        if _is_not_found(result):
            logger.debug("Not found: %s", endpoint)
            return NOT_FOUND
        raise HostError(
            f"gh api {endpoint} failed with exit code {result.returncode}: "
            f"{result.stderr.strip()}"
        )

    @staticmethod
    def _decode(text: str, endpoint: str) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise HostError(f"gh api {endpoint} returned invalid JSON: {exc}") from exc

    async def get_release_by_tag(
        self, owner: str, repo: str, tag: str
    ) -> Lookup[Release]:
        lookup = await self._lookup(
            f"repos/{owner}/{repo}/releases/tags/{quote(tag, safe='')}"
        )
        if isinstance(lookup, Found):
            return Found(Release.model_validate(lookup.value))
        return lookup

    async def get_ref(
        self, owner: str, repo: str, ref: str
    ) -> Lookup[dict[str, Any]]:
        endpoint = f"repos/{owner}/{repo}/git/ref/{quote(ref, safe='/')}"
        return await self._lookup(endpoint)

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
        endpoint = f"repos/{owner}/{repo}/releases"
        result = await self._api(
            "--method",
            "POST",
            "-f",
            f"tag_name={tag}",
            "-f",
            f"name={title}",
            "-f",
            f"body={body}",
            "-F",
            f"draft={str(draft).lower()}",
            "-F",
            f"prerelease={str(prerelease).lower()}",
            "-F",
            "generate_release_notes=false",
            endpoint,
        )
        return Release.model_validate(self._decode(result.stdout, endpoint))

    async def get_commit_author(self, owner: str, repo: str, sha: str) -> str | None:
        endpoint = f"repos/{owner}/{repo}/commits/{sha}"
        result = await self._api("--include", endpoint)
        headers, body = split_included_response(result.stdout)
        if self.cache is not None and "x-ratelimit-remaining" in headers:
            self.cache.update_rate_limit(
                int(headers["x-ratelimit-remaining"]),
                float(headers.get("x-ratelimit-reset", "0")),
                int(headers.get("x-ratelimit-limit", "60")),
            )
        data = self._decode(body, endpoint)
        author = data.get("author") or {}
        return author.get("login")
