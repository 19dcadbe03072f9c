"""Error kinds surfaced by commands, stores and the query executor."""

from __future__ import annotations


class ClaippyError(Exception):
    """Base class for errors reported to the user instead of a traceback."""

    exit_code = 1


class UnknownCommand(ClaippyError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown command: {name}")
        self.name = name


class InvalidArguments(ClaippyError):
    """A known command was invoked with unusable arguments."""


class ConversationExists(ClaippyError):
    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation already exists: {conversation_id}")
        self.conversation_id = conversation_id


class NoActiveConversation(ClaippyError):
    def __init__(self, message: str = "No active conversation. Start one with `new`.") -> None:
        super().__init__(message)


class ConversationNotFound(NoActiveConversation):
    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class InvalidReference(ClaippyError):
    """A context reference that cannot be resolved. Skipped, never fatal to a batch."""

    def __init__(self, reference: str, reason: str) -> None:
        super().__init__(f"{reference}: {reason}")
        self.reference = reference
        self.reason = reason


class PersistenceError(ClaippyError):
    """Reading or writing a conversation record failed."""


class ExecutorError(ClaippyError):
    """The language-model backend failed. The provider message is kept verbatim."""


class ConfigError(ClaippyError):
    """The configuration cannot produce a working engine."""
