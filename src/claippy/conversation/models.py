"""Conversation, message and context entry types."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

Role = Literal["user", "assistant"]
ContextKind = Literal["file", "url"]

ROLES: tuple[str, ...] = ("user", "assistant")

_ARTIFACT_RE = re.compile(r"<Artifact>(.*?)</Artifact>", re.DOTALL)


def extract_artifact(content: str) -> str | None:
    """Return the text of the first <Artifact> block, if any."""
    match = _ARTIFACT_RE.search(content)
    return match.group(1) if match else None


def timestamp_id(now: datetime | None = None) -> str:
    """Filesystem-safe ISO-8601-like id, e.g. 2026-10-16T09-30-12.000123."""
    return (now or datetime.now()).strftime("%Y-%m-%dT%H-%M-%S.%f")


def slugify(name: str) -> str:
    """Minimal slug: strip illegal filename chars, spaces to hyphens."""
    slug = re.sub(r'[<>:"/\\|?*\n\r\t\x00]', "", name)
    slug = slug.strip().replace(" ", "-")
    return slug.lstrip(".")


@dataclass
class Message:
    role: Role
    content: str
    artifact: str | None = None

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Invalid role: {self.role!r}")

    def to_dict(self) -> dict:
        data = {"role": self.role, "content": self.content}
        if self.artifact is not None:
            data["artifact"] = self.artifact
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Message:
        return cls(
            role=data["role"],
            content=str(data.get("content", "")),
            artifact=data.get("artifact"),
        )


@dataclass(frozen=True)
class ContextEntry:
    """A normalized file path or URL supplied to the model as background."""

    kind: ContextKind
    ref: str

    def __str__(self) -> str:
        return self.ref

    def to_dict(self) -> dict:
        return {"kind": self.kind, "ref": self.ref}

    @classmethod
    def from_dict(cls, data: dict) -> ContextEntry:
        return cls(kind=data["kind"], ref=str(data["ref"]))


@dataclass
class Conversation:
    """A named conversation: ordered messages plus an ordered, duplicate-free context set."""

    id: str
    messages: list[Message] = field(default_factory=list)
    context: list[ContextEntry] = field(default_factory=list)
    created: str = field(default_factory=lambda: datetime.now().isoformat(timespec="seconds"))
    updated: str = ""

    def __post_init__(self) -> None:
        if not self.updated:
            self.updated = self.created

    def has_context(self, entry: ContextEntry) -> bool:
        return entry in self.context

    def touch(self) -> None:
        self.updated = datetime.now().isoformat(timespec="seconds")
