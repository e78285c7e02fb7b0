# chuk_ai_agent_engine/strategy/client.py
"""Provider-agnostic LLM client seam used by the strategy executor."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from chuk_ai_agent_engine.models.message import Message
from chuk_ai_agent_engine.strategy.models import LLMResponse


@runtime_checkable
class LLMClient(Protocol):
    """
    Anything that can complete a conversation.

    ``tools`` is omitted (None) when the current phase forbids tool use.
    Implementations may return an :class:`LLMResponse` or a plain dict with
    ``content`` and optional ``tool_calls``.
    """

    async def complete(
        self,
        messages: list[Message],
        tools: list[dict[str, Any]] | None = None,
    ) -> LLMResponse | dict[str, Any]: ...
