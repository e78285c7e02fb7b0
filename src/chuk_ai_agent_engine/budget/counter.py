# chuk_ai_agent_engine/budget/counter.py
"""
Token cost functions.

A cost function prices a single message:

    4 (per-message overhead) + 1 (role) + content tokens
    + per tool call: tokens(serialized call) + 3
    + per tool result: tokens(tool_call_id) + 2

``TiktokenCounter`` prices text with the model's real tokenizer;
``HeuristicTokenCounter`` uses the 4-characters-per-token rule and needs no
encoding files, which makes it the usual choice in tests.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Protocol, runtime_checkable

import tiktoken

from chuk_ai_agent_engine.config import DEFAULT_MODEL
from chuk_ai_agent_engine.model_registry import ModelRegistry
from chuk_ai_agent_engine.models.message import Message

logger = logging.getLogger(__name__)

MESSAGE_OVERHEAD = 4
ROLE_OVERHEAD = 1
TOOL_CALL_OVERHEAD = 3
TOOL_RESULT_OVERHEAD = 2

CHARS_PER_TOKEN = 4


@runtime_checkable
class TokenCostFunction(Protocol):
    """Protocol for pluggable message pricing."""

    def count(self, text: str | None) -> int: ...

    def count_message(self, message: Message) -> int: ...


class BaseTokenCounter:
    """Shared message pricing; subclasses implement :meth:`count`."""

    def count(self, text: str | None) -> int:
        raise NotImplementedError

    def count_message(self, message: Message) -> int:
        tokens = MESSAGE_OVERHEAD + ROLE_OVERHEAD

        if message.content:
            tokens += self.count(message.content)

        for tool_call in message.tool_calls or []:
            tokens += self.count(json.dumps(tool_call.model_dump(mode="json")))
            tokens += TOOL_CALL_OVERHEAD

        if message.tool_call_id:
            tokens += self.count(message.tool_call_id)
            tokens += TOOL_RESULT_OVERHEAD

        return tokens

    def count_messages(self, messages: list[Message]) -> int:
        return sum(self.count_message(m) for m in messages)

    def estimate_response_tokens(self, messages: list[Message]) -> int:
        """Rough reply size: 20% of the input, at least 500 tokens."""
        return max(500, int(self.count_messages(messages) * 0.2))


class HeuristicTokenCounter(BaseTokenCounter):
    """Prices text at ceil(len / 4) tokens."""

    def count(self, text: str | None) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / CHARS_PER_TOKEN)


class TiktokenCounter(BaseTokenCounter):
    """Prices text with the tiktoken encoding configured for ``model``."""

    def __init__(self, model: str = DEFAULT_MODEL, model_registry: ModelRegistry | None = None) -> None:
        self.model = model
        registry = model_registry or ModelRegistry()
        self.encoding_name = registry.get_encoding(model).value
        self._encoding: tiktoken.Encoding | None = None

    @property
    def encoding(self) -> tiktoken.Encoding:
        # Loaded on first use; tiktoken may fetch the BPE file the first time
        if self._encoding is None:
            self._encoding = tiktoken.get_encoding(self.encoding_name)
            logger.debug(f"Loaded tiktoken encoding {self.encoding_name} for {self.model}")
        return self._encoding

    def count(self, text: str | None) -> int:
        if not text:
            return 0
        return len(self.encoding.encode(text, disallowed_special=()))
