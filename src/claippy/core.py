"""Claippy hub — the actions behind every command.

Responsibilities:
1. Hold the active conversation id for one CLI invocation or REPL session
2. Run context and history actions against the conversation store
3. Stream queries through the engine and persist the exchange atomically

Every action is a generator of output chunks, so the CLI and the REPL render
command results and streamed responses the same way.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from claippy.commands import help_lines
from claippy.config import ClaippyConfig
from claippy.conversation.context import ContextStore
from claippy.conversation.models import Conversation, Message
from claippy.conversation.store import ConversationStore
from claippy.errors import ExecutorError, InvalidReference, NoActiveConversation

if TYPE_CHECKING:
    from claippy.engines.base import Engine

logger = logging.getLogger(__name__)


class Claippy:
    """Core state shared by the CLI entry point and the REPL."""

    def __init__(
        self,
        config: ClaippyConfig,
        engine: Engine | None = None,
        store: ConversationStore | None = None,
        contexts: ContextStore | None = None,
    ) -> None:
        self.config = config
        self.store = store or ConversationStore(config.data_dir)
        self.contexts = contexts or ContextStore(config.project_root)
        self._engine = engine
        # None means "follow the store's active pointer"
        self.conversation_id: str | None = config.conversation
        self.interactive = False
        self.closed = False

    # ── Engine ────────────────────────────────────────────────

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            from claippy.engines.anthropic_api import AnthropicAPIEngine

            self._engine = AnthropicAPIEngine.from_config(self.config.engine)
        return self._engine

    # ── Active conversation ───────────────────────────────────

    def active(self) -> Conversation:
        return self.store.load(self.conversation_id)

    def active_label(self) -> str | None:
        return self.conversation_id or self.store.active_id()

    # ── Actions ───────────────────────────────────────────────

    def repl(self) -> Iterator[str]:
        if self.interactive:
            yield "Already in the REPL.\n"
            return
        from claippy.connectors.repl import ReplLoop

        ReplLoop(self).run()

    def query(self, text: str) -> Iterator[str]:
        """Stream a response; persist query and response together once complete."""
        engine = self.engine
        try:
            conversation = self.active()
        except NoActiveConversation:
            conversation = self.store.create(self.conversation_id)
            self.conversation_id = conversation.id
            logger.info("Started conversation %s", conversation.id)

        history = [*conversation.messages, Message(role="user", content=text)]
        context = self.contexts.render(conversation) or None

        chunks: list[str] = []
        for chunk in engine.stream(history, context=context):
            chunks.append(chunk)
            yield chunk

        response = "".join(chunks)
        if not response.strip():
            raise ExecutorError("empty response")
        self.store.append_exchange(conversation, text, response)

    def new(self, name: str | None = None) -> Iterator[str]:
        conversation = self.store.create(name)
        self.conversation_id = conversation.id
        yield f"Created conversation {conversation.id}\n"

    def clear(self) -> Iterator[str]:
        conversation = self.active()
        count = len(conversation.messages)
        self.store.clear(conversation)
        yield f"Cleared {count} messages from {conversation.id}\n"

    def history(self) -> Iterator[str]:
        conversation = self.active()
        if not conversation.messages:
            yield f"({conversation.id} has no messages)\n"
            return
        for message in conversation.messages:
            yield f"{message.role}: {message.content}\n"

    def add(self, references: list[str]) -> Iterator[str]:
        conversation = self.active()
        skipped: list[InvalidReference] = []
        added = self.contexts.add(conversation, references, lambda ref, e: skipped.append(e))
        if added:
            self.store.persist(conversation)
            yield "Added context: " + ", ".join(e.ref for e in added) + "\n"
        elif not skipped:
            yield "Context unchanged (already present)\n"
        for error in skipped:
            yield f"Skipped {error}\n"

    def remove(self, references: list[str]) -> Iterator[str]:
        conversation = self.active()
        removed = self.contexts.remove(conversation, references)
        if removed:
            self.store.persist(conversation)
            yield "Removed context: " + ", ".join(e.ref for e in removed) + "\n"
        else:
            yield "Removed nothing\n"

    def ls(self) -> Iterator[str]:
        try:
            entries = self.contexts.list(self.active())
        except NoActiveConversation:
            entries = []
        if not entries:
            yield "(no context)\n"
            return
        for entry in entries:
            yield f"{entry.kind:<4}  {entry.ref}\n"

    def help(self) -> Iterator[str]:
        for line in help_lines(bang=self.interactive):
            yield line + "\n"

    def quit(self) -> Iterator[str]:
        if self.interactive:
            self.closed = True
        yield from ()
