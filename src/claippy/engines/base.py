"""Engine protocol — the query executor behind `query`."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from claippy.conversation.models import Message


@runtime_checkable
class Engine(Protocol):
    """Protocol that all engine backends must implement."""

    @property
    def name(self) -> str: ...

    def stream(
        self,
        messages: Sequence[Message],
        *,
        context: str | None = None,
        system_prompt: str | None = None,
    ) -> Iterator[str]:
        """Send the history (last message is the new query) and yield response text.

        Raises ExecutorError on any backend failure.
        """
        ...
