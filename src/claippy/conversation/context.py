"""Context entries — files and URLs supplied to the model as background.

References are normalized before they enter a conversation: URLs are kept
verbatim, file paths are canonicalized and stored relative to the project
root so the same file added from different subdirectories is one entry.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from pathlib import Path

import httpx

from claippy.conversation.models import ContextEntry, Conversation
from claippy.errors import InvalidReference

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")

UA = "claippy/0.1 (+https://github.com/claippy)"
TIMEOUT = httpx.Timeout(connect=5.0, read=20.0, write=10.0, pool=5.0)
MAX_CONTEXT_CHARS = 120_000

InvalidCallback = Callable[[str, InvalidReference], None]


def is_url(reference: str) -> bool:
    return bool(_URL_RE.match(reference))


class ContextStore:
    """Resolve, deduplicate and render context entries of a conversation."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = base_dir.expanduser().resolve()

    # ── Normalization ─────────────────────────────────────────

    def _canonical_path(self, reference: str) -> Path:
        p = Path(reference).expanduser()
        if not p.is_absolute():
            p = Path.cwd() / p
        return p.resolve()

    def _to_ref(self, path: Path) -> str:
        try:
            return path.relative_to(self.base_dir).as_posix()
        except ValueError:
            return path.as_posix()

    def _normalize(self, reference: str) -> ContextEntry:
        """Normalize without touching the filesystem beyond canonicalization."""
        reference = reference.strip()
        if is_url(reference):
            return ContextEntry(kind="url", ref=reference)
        return ContextEntry(kind="file", ref=self._to_ref(self._canonical_path(reference)))

    def resolve(self, reference: str) -> ContextEntry:
        """Classify and canonicalize a reference. Files must exist now, URLs must be http(s)."""
        if not reference.strip():
            raise InvalidReference(reference, "empty reference")
        entry = self._normalize(reference)
        if entry.kind == "url":
            try:
                url = httpx.URL(entry.ref)
            except httpx.InvalidURL as e:
                raise InvalidReference(reference, "invalid URL") from e
            if url.scheme not in ("http", "https"):
                raise InvalidReference(reference, f"unsupported URL scheme: {url.scheme}")
            if not url.host:
                raise InvalidReference(reference, "invalid URL")
        else:
            path = self._path_of(entry)
            if not path.exists():
                raise InvalidReference(reference, "no such file")
            if not path.is_file():
                raise InvalidReference(reference, "not a regular file")
        return entry

    def _path_of(self, entry: ContextEntry) -> Path:
        # An absolute ref replaces base_dir when joined
        return self.base_dir / entry.ref

    # ── Mutation ──────────────────────────────────────────────

    def add(
        self,
        conversation: Conversation,
        references: Iterable[str],
        on_invalid: InvalidCallback | None = None,
    ) -> list[ContextEntry]:
        """Add references, skipping invalid ones. Returns the entries actually added."""
        added: list[ContextEntry] = []
        for reference in references:
            try:
                entry = self.resolve(reference)
            except InvalidReference as e:
                logger.warning("Skipping context reference %s", e)
                if on_invalid:
                    on_invalid(reference, e)
                continue
            if conversation.has_context(entry):
                logger.debug("Context already present: %s", entry.ref)
                continue
            conversation.context.append(entry)
            added.append(entry)
        if added:
            conversation.touch()
        return added

    def remove(self, conversation: Conversation, references: Iterable[str]) -> list[ContextEntry]:
        """Remove matching entries. References not present are ignored."""
        removed: list[ContextEntry] = []
        for reference in references:
            if not reference.strip():
                continue
            entry = self._normalize(reference)
            if conversation.has_context(entry):
                conversation.context.remove(entry)
                removed.append(entry)
        if removed:
            conversation.touch()
        return removed

    def list(self, conversation: Conversation) -> list[ContextEntry]:
        return list(conversation.context)

    # ── Prompt payload ────────────────────────────────────────

    def read(self, entry: ContextEntry) -> str:
        """Return the current content of an entry, capped at MAX_CONTEXT_CHARS."""
        if entry.kind == "url":
            with httpx.Client(
                timeout=TIMEOUT, headers={"User-Agent": UA}, follow_redirects=True
            ) as client:
                r = client.get(entry.ref)
                r.raise_for_status()
                text = r.text
        else:
            text = self._path_of(entry).read_bytes().decode("utf-8", errors="replace")
        return text[:MAX_CONTEXT_CHARS]

    def render(self, conversation: Conversation) -> str:
        """Concatenate every entry as a <document> block for the prompt."""
        blocks: list[str] = []
        for entry in conversation.context:
            try:
                body = self.read(entry)
            # Stored records may hold URLs that never went through resolve
            except (OSError, httpx.HTTPError, httpx.InvalidURL) as e:
                logger.warning("Context %s unavailable: %s", entry.ref, e)
                blocks.append(f'<document source="{entry.ref}" unavailable="true">{e}</document>')
                continue
            blocks.append(f'<document source="{entry.ref}">\n{body}\n</document>')
        return "\n\n".join(blocks)
