"""Conventional commit parsing.

Turns raw log records into Commit models. A header looks like
``type(scope)!: subject``; footer notes such as ``BREAKING CHANGE: ...``
follow the body. Messages that do not follow the convention are not an
error, they simply produce a Commit without type or scope.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .models import Commit

BREAKING_CHANGE = "BREAKING CHANGE"

_HEADER_RE = re.compile(
    r"^(?P<type>\w+)(?:\((?P<scope>[^()\r\n]*)\))?(?P<bang>!)?: (?P<subject>.+)$"
)
_NOTE_RE = re.compile(
    r"^(?P<title>BREAKING CHANGE|BREAKING-CHANGE):[ \t]*(?P<text>.*)$"
)


@dataclass(frozen=True)
class RawCommit:
    """A commit exactly as read from the log."""

    sha: str
    subject: str
    body: str = ""

    @property
    def message(self) -> str:
        return f"{self.subject}\n\n{self.body}".strip()


@dataclass(frozen=True)
class CommitNote:
    title: str
    text: str


@dataclass(frozen=True)
class ConventionalMessage:
    """Structured view of a commit message.

    Attributes:
        type: Commit type, e.g. "feat". None if the header did not match.
        scope: Scope inside the parentheses, None when absent or empty.
        subject: Header text after the colon, or the whole first line.
        notes: Footer notes in message order.
    """

    type: str | None
    scope: str | None
    subject: str
    notes: list[CommitNote] = field(default_factory=list)

    @property
    def breaking(self) -> bool:
        return any(note.title == BREAKING_CHANGE for note in self.notes)


def parse_message(message: str) -> ConventionalMessage:
    """Parse a commit message. Never raises."""
    lines = message.strip().splitlines()
    header = lines[0].strip() if lines else ""

    match = _HEADER_RE.match(header)
    if match:
        commit_type = match.group("type")
        scope = match.group("scope") or None
        subject = match.group("subject").strip()
    else:
        commit_type, scope, subject = None, None, header

    notes: list[CommitNote] = []
    for line in lines[1:]:
        note = _NOTE_RE.match(line.strip())
        if note:
            notes.append(CommitNote(title=note.group("title"), text=note.group("text")))

    return ConventionalMessage(
        type=commit_type, scope=scope, subject=subject, notes=notes
    )


def classify_commit(raw: RawCommit, *, conventional: bool) -> Commit:
    """Build a Commit from a raw log record.

    With conventional parsing disabled only sha and message are set, and
    every commit later counts the same regardless of its wording.
    """
    message = raw.message
    if not conventional:
        return Commit(sha=raw.sha, message=message)

    parsed = parse_message(message)
    return Commit(
        sha=raw.sha,
        message=message,
        type=parsed.type,
        scope=parsed.scope,
        breaking=parsed.breaking,
    )


def strip_conventional_prefix(subject: str) -> str:
    """Drop a leading ``type(scope)!:`` from a subject line."""
    match = _HEADER_RE.match(subject)
    return match.group("subject").strip() if match else subject
