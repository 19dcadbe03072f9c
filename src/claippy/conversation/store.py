"""Conversation store — one Markdown record per conversation.

Each record keeps its structured data (id, timestamps, context set, messages)
in YAML frontmatter; the Markdown body is a readable transcript regenerated on
every write and ignored on load. Writes go through a temporary file and an
atomic rename, so a failed write leaves the previous record in place.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO

import frontmatter
import yaml

from claippy.conversation.models import (
    ContextEntry,
    Conversation,
    Message,
    Role,
    extract_artifact,
    slugify,
    timestamp_id,
)
from claippy.errors import (
    ConversationExists,
    ConversationNotFound,
    InvalidArguments,
    NoActiveConversation,
    PersistenceError,
)

logger = logging.getLogger(__name__)

_ACTIVE_FILENAME = "ACTIVE"


class ConversationStore:
    """Create, load and persist conversations under a data directory."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self._ensure_initialized()

    def _ensure_initialized(self) -> None:
        """Ensure the conversations directory exists. Idempotent."""
        try:
            self.conversations_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create data directory {self.root}: {e}") from e

    @property
    def conversations_dir(self) -> Path:
        return self.root / "conversations"

    def _path(self, conversation_id: str) -> Path:
        return self.conversations_dir / f"{conversation_id}.md"

    # ── Active pointer ────────────────────────────────────────

    def active_id(self) -> str | None:
        path = self.root / _ACTIVE_FILENAME
        try:
            value = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Cannot read active conversation: {e}") from e
        return value or None

    def set_active(self, conversation_id: str) -> None:
        path = self.root / _ACTIVE_FILENAME
        try:
            with self._atomic_write(path) as f:
                f.write(conversation_id + "\n")
        except OSError as e:
            raise PersistenceError(f"Cannot update active conversation: {e}") from e
        logger.debug("Active conversation: %s", conversation_id)

    # ── Lifecycle ─────────────────────────────────────────────

    def exists(self, conversation_id: str) -> bool:
        return self._path(conversation_id).is_file()

    def create(self, conversation_id: str | None = None) -> Conversation:
        """Create, persist and activate a new conversation."""
        if conversation_id is None:
            conversation_id = timestamp_id()
        else:
            slug = slugify(conversation_id)
            if not slug:
                raise InvalidArguments(f"Invalid conversation name: {conversation_id!r}")
            conversation_id = slug

        if self.exists(conversation_id):
            raise ConversationExists(conversation_id)

        conversation = Conversation(id=conversation_id)
        self.persist(conversation)
        self.set_active(conversation_id)
        logger.info("Created conversation: %s", conversation_id)
        return conversation

    def load(self, conversation_id: str | None = None) -> Conversation:
        """Load by id, or the active conversation when no id is given."""
        if conversation_id is None:
            conversation_id = self.active_id()
            if conversation_id is None:
                raise NoActiveConversation()
            if not self.exists(conversation_id):
                raise NoActiveConversation(
                    f"Active conversation {conversation_id!r} no longer exists. "
                    "Start one with `new`."
                )
        elif not self.exists(conversation_id):
            raise ConversationNotFound(conversation_id)

        path = self._path(conversation_id)
        try:
            post = frontmatter.load(str(path))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            raise PersistenceError(f"Cannot read conversation {conversation_id}: {e}") from e

        try:
            return self._from_metadata(conversation_id, dict(post.metadata))
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Corrupt conversation record {path}: {e}") from e

    def _from_metadata(self, conversation_id: str, meta: dict) -> Conversation:
        conversation = Conversation(
            id=str(meta.get("id", conversation_id)),
            messages=[Message.from_dict(m) for m in meta.get("messages") or []],
            context=[ContextEntry.from_dict(c) for c in meta.get("context") or []],
        )
        if meta.get("created"):
            conversation.created = str(meta["created"])
        conversation.updated = str(meta.get("updated") or conversation.created)
        return conversation

    # ── Mutation ──────────────────────────────────────────────

    def clear(self, conversation: Conversation) -> None:
        """Empty the message history in place. Context is kept."""
        previous = list(conversation.messages)
        conversation.messages.clear()
        conversation.touch()
        try:
            self.persist(conversation)
        except PersistenceError:
            conversation.messages[:] = previous
            raise
        logger.info("Cleared conversation %s (%d messages)", conversation.id, len(previous))

    def append_message(self, conversation: Conversation, role: Role, content: str) -> Message:
        """Append one message and persist."""
        return self._append(conversation, [(role, content)])[0]

    def append_exchange(
        self, conversation: Conversation, query: str, response: str
    ) -> tuple[Message, Message]:
        """Append a user query and its response as one update: both persist or neither."""
        user, assistant = self._append(conversation, [("user", query), ("assistant", response)])
        return user, assistant

    def _append(self, conversation: Conversation, items: list[tuple[Role, str]]) -> list[Message]:
        start = len(conversation.messages)
        messages = [
            Message(
                role=role,
                content=content,
                artifact=extract_artifact(content) if role == "assistant" else None,
            )
            for role, content in items
        ]
        conversation.messages.extend(messages)
        conversation.touch()
        try:
            self.persist(conversation)
        except PersistenceError:
            del conversation.messages[start:]
            raise
        return messages

    # ── Persistence ───────────────────────────────────────────

    @contextmanager
    def _atomic_write(self, path: Path) -> Iterator[IO[str]]:
        """Yield a temp file next to path; rename over path only if the block succeeds."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yield f
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, path)
        finally:
            if os.path.exists(tmp):
                os.unlink(tmp)

    def persist(self, conversation: Conversation) -> None:
        """Write the conversation record. Raises PersistenceError on I/O failure."""
        post = frontmatter.Post(
            self._render_transcript(conversation),
            id=conversation.id,
            created=conversation.created,
            updated=conversation.updated,
            context=[entry.to_dict() for entry in conversation.context],
            messages=[message.to_dict() for message in conversation.messages],
        )
        path = self._path(conversation.id)
        try:
            with self._atomic_write(path) as f:
                f.write(frontmatter.dumps(post))
                f.write("\n")
        except OSError as e:
            raise PersistenceError(f"Cannot write conversation {conversation.id}: {e}") from e
        logger.debug(
            "Persisted %s (%d messages, %d context)",
            conversation.id,
            len(conversation.messages),
            len(conversation.context),
        )

    def _render_transcript(self, conversation: Conversation) -> str:
        lines = [f"# {conversation.id}", ""]
        if conversation.context:
            lines.append("## Context")
            lines.extend(f"- {entry.ref} ({entry.kind})" for entry in conversation.context)
            lines.append("")
        if conversation.messages:
            lines.append("## Messages")
            for message in conversation.messages:
                lines.append("")
                lines.append(f"**{message.role}**:")
                lines.append("")
                lines.append(message.content)
        return "\n".join(lines)
