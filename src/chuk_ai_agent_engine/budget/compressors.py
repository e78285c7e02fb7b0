# chuk_ai_agent_engine/budget/compressors.py
"""
Compressor protocol and implementations for token budgeting.

A compressor chooses which messages survive when a conversation is over its
target. Every compressor returns a subsequence of its input in the original
chronological order and never edits message content.

Usage::

    from chuk_ai_agent_engine.budget.compressors import CompressorRegistry

    registry = CompressorRegistry.default()
    kept = registry.get(CompressionStrategy.FIFO).compress(messages, target, context)
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from chuk_ai_agent_engine.budget.models import CompressionStrategy, PriorityWeights
from chuk_ai_agent_engine.config import DEFAULT_PRESERVE_RECENT
from chuk_ai_agent_engine.models.message import Message, MessageRole

logger = logging.getLogger(__name__)

# Adaptive thresholds (message counts)
ADAPTIVE_EARLY_MAX = 5
ADAPTIVE_MID_MAX = 15
ADAPTIVE_MID_PRESERVE_RECENT = 5

# =============================================================================
# Models
# =============================================================================


class CompressionContext(BaseModel):
    """Everything a compressor needs besides the messages and the target."""

    counter: Any  # TokenCostFunction
    preserve_recent: int = DEFAULT_PRESERVE_RECENT
    preserve_system: bool = True
    weights: PriorityWeights = Field(default_factory=PriorityWeights)


# =============================================================================
# Protocol
# =============================================================================


@runtime_checkable
class Compressor(Protocol):
    """Selects a chronological subsequence of messages that fits ``target_tokens``."""

    @property
    def strategy(self) -> CompressionStrategy: ...

    def compress(
        self,
        messages: list[Message],
        target_tokens: int,
        context: CompressionContext,
    ) -> list[Message]: ...


# =============================================================================
# Implementations
# =============================================================================


def priority_score(message: Message, index: int, total: int, weights: PriorityWeights) -> float:
    """Retention score for one message; higher survives longer."""
    score = weights.system_base if message.role == MessageRole.SYSTEM else weights.default_base
    score += (index / total) * weights.recency if total else 0.0
    if message.role == MessageRole.TOOL:
        score += weights.tool_result
    if message.tool_calls:
        score += weights.tool_call
    return score


class PriorityCompressor:
    """
    Greedy retention by score.

    Messages are ranked by :func:`priority_score` (ties keep chronological
    order), admitted while the running total stays within target, then
    returned in their original order.
    """

    @property
    def strategy(self) -> CompressionStrategy:
        return CompressionStrategy.PRIORITY_BASED

    def compress(
        self,
        messages: list[Message],
        target_tokens: int,
        context: CompressionContext,
    ) -> list[Message]:
        total = len(messages)
        ranked = sorted(
            range(total),
            key=lambda i: priority_score(messages[i], i, total, context.weights),
            reverse=True,
        )

        kept: set[int] = set()
        running = 0
        for index in ranked:
            tokens = context.counter.count_message(messages[index])
            if running + tokens <= target_tokens:
                kept.add(index)
                running += tokens

        return [m for i, m in enumerate(messages) if i in kept]


class FifoCompressor:
    """
    Oldest-first eviction.

    System messages are always kept when ``preserve_system`` is set; then the
    most recent ``preserve_recent`` non-system messages are admitted if they
    fit, and older messages are re-admitted newest to oldest until the first
    one that does not fit.
    """

    @property
    def strategy(self) -> CompressionStrategy:
        return CompressionStrategy.FIFO

    def compress(
        self,
        messages: list[Message],
        target_tokens: int,
        context: CompressionContext,
    ) -> list[Message]:
        kept: set[int] = set()
        running = 0

        if context.preserve_system:
            for i, message in enumerate(messages):
                if message.role == MessageRole.SYSTEM:
                    kept.add(i)
                    running += context.counter.count_message(message)

        candidates = [i for i in range(len(messages)) if i not in kept]
        non_system = [i for i in candidates if messages[i].role != MessageRole.SYSTEM]
        recent = non_system[-context.preserve_recent :] if context.preserve_recent > 0 else []

        for index in reversed(recent):
            tokens = context.counter.count_message(messages[index])
            if running + tokens <= target_tokens:
                kept.add(index)
                running += tokens

        for index in reversed(candidates):
            if index in kept:
                continue
            tokens = context.counter.count_message(messages[index])
            if running + tokens > target_tokens:
                break
            kept.add(index)
            running += tokens

        return [m for i, m in enumerate(messages) if i in kept]


class AdaptiveCompressor:
    """
    Picks a policy by conversation length: plain FIFO for short
    conversations, FIFO with a wider recent window for medium ones and
    priority-based retention for long ones.
    """

    def __init__(
        self,
        fifo: FifoCompressor | None = None,
        priority: PriorityCompressor | None = None,
    ) -> None:
        self._fifo = fifo or FifoCompressor()
        self._priority = priority or PriorityCompressor()

    @property
    def strategy(self) -> CompressionStrategy:
        return CompressionStrategy.ADAPTIVE

    def compress(
        self,
        messages: list[Message],
        target_tokens: int,
        context: CompressionContext,
    ) -> list[Message]:
        count = len(messages)

        if count <= ADAPTIVE_EARLY_MAX:
            return self._fifo.compress(messages, target_tokens, context)

        if count <= ADAPTIVE_MID_MAX:
            widened = context.model_copy(
                update={"preserve_recent": max(context.preserve_recent, ADAPTIVE_MID_PRESERVE_RECENT)}
            )
            return self._fifo.compress(messages, target_tokens, widened)

        return self._priority.compress(messages, target_tokens, context)


# =============================================================================
# Registry
# =============================================================================


class CompressorRegistry:
    """Registry mapping CompressionStrategy -> Compressor."""

    def __init__(self, compressors: dict[CompressionStrategy, Compressor] | None = None) -> None:
        self._compressors: dict[CompressionStrategy, Compressor] = compressors or {}

    def register(self, strategy: CompressionStrategy, compressor: Compressor) -> None:
        """Register (or replace) the compressor for a strategy."""
        self._compressors[strategy] = compressor

    def get(self, strategy: CompressionStrategy) -> Compressor:
        """Get the compressor for a strategy, falling back to FIFO."""
        compressor = self._compressors.get(strategy)
        if compressor is None:
            logger.warning(f"No compressor registered for {strategy.value}, using fifo")
            return self._compressors.get(CompressionStrategy.FIFO) or FifoCompressor()
        return compressor

    @classmethod
    def default(cls) -> CompressorRegistry:
        """Create a registry with the built-in compressors."""
        fifo = FifoCompressor()
        priority = PriorityCompressor()
        return cls(
            compressors={
                CompressionStrategy.FIFO: fifo,
                CompressionStrategy.PRIORITY_BASED: priority,
                CompressionStrategy.ADAPTIVE: AdaptiveCompressor(fifo=fifo, priority=priority),
            }
        )
