"""Anthropic engine — streaming Messages API, direct or through AWS Bedrock."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import anthropic

from claippy.config import EngineConfig
from claippy.errors import ConfigError, ExecutorError

if TYPE_CHECKING:
    from claippy.conversation.models import Message

logger = logging.getLogger(__name__)


def build_messages(messages: Sequence[Message], context: str | None = None) -> list[dict]:
    """Convert history to API messages, prefixing the last user turn with context."""
    payload = [{"role": m.role, "content": m.content} for m in messages]
    if context and payload and payload[-1]["role"] == "user":
        payload[-1]["content"] = f"<context>\n{context}\n</context>\n\n{payload[-1]['content']}"
    return payload


@dataclass
class AnthropicAPIEngine:
    """Streams responses via the `anthropic` SDK. Pure conversation, no tools."""

    model: str
    max_tokens: int = 4096
    temperature: float = 1.0
    system_prompt: str | None = None
    client: Any = field(default=None, repr=False)

    @classmethod
    def from_config(cls, config: EngineConfig) -> AnthropicAPIEngine:
        if config.backend == "bedrock":
            kwargs: dict = {"timeout": config.timeout}
            if config.region:
                kwargs["aws_region"] = config.region
            if config.aws_profile:
                kwargs["aws_profile"] = config.aws_profile
            client = anthropic.AnthropicBedrock(**kwargs)
        elif config.backend == "anthropic_api":
            client = anthropic.Anthropic(timeout=config.timeout)
            if client.api_key is None and client.auth_token is None:
                raise ConfigError("ANTHROPIC_API_KEY is not set")
        else:
            raise ConfigError(f"Unknown backend: {config.backend}")
        logger.info("Engine %s using model %s", config.backend, config.resolved_model)
        return cls(
            model=config.resolved_model,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            system_prompt=config.system_prompt,
            client=client,
        )

    @property
    def name(self) -> str:
        return "anthropic_api"

    def stream(
        self,
        messages: Sequence[Message],
        *,
        context: str | None = None,
        system_prompt: str | None = None,
    ) -> Iterator[str]:
        kwargs: dict = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": build_messages(messages, context),
        }
        system = system_prompt or self.system_prompt
        if system:
            kwargs["system"] = system

        logger.debug("Request: %d messages, context %d chars", len(messages), len(context or ""))
        try:
            with self.client.messages.stream(**kwargs) as stream:
                yield from stream.text_stream
        except anthropic.AnthropicError as e:
            logger.error("Anthropic API error: %s", e)
            raise ExecutorError(str(e)) from e
