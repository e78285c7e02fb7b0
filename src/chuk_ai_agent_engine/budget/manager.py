# chuk_ai_agent_engine/budget/manager.py
"""
TokenBudgetManager - meters a message list against a token budget and
compresses it when it no longer fits.

All operations are pure with respect to their input: they return new lists
and never modify the messages they are given.

Usage::

    manager = TokenBudgetManager(
        TokenBudgetConfig(max_tokens=8000, reserve_for_response=1000, strategy=CompressionStrategy.PRIORITY_BASED),
    )

    if not manager.can_add_message(message, messages):
        messages = manager.compress(messages)
    messages.append(message)
"""

from __future__ import annotations

import logging

from chuk_ai_agent_engine.budget.compressors import CompressionContext, CompressorRegistry
from chuk_ai_agent_engine.budget.counter import TiktokenCounter, TokenCostFunction
from chuk_ai_agent_engine.budget.models import CompressionStats, TokenBudgetConfig, TokenUsage
from chuk_ai_agent_engine.config import DEFAULT_MODEL
from chuk_ai_agent_engine.model_registry import ModelRegistry
from chuk_ai_agent_engine.models.message import Message, MessageRole

logger = logging.getLogger(__name__)


class TokenBudgetManager:
    """
    Token budget enforcement with pluggable pricing and compression.

    Args:
        config: Budget limits, strategy and observer callbacks.
        model: Model name used to pick the tokenizer when no counter is given.
        counter: Cost function; defaults to a tiktoken counter for ``model``.
        compressors: Strategy registry; defaults to the built-in compressors.
        model_registry: Model lookup used by the default counter.
        logger: Optional logger; the module logger is used otherwise.
    """

    def __init__(
        self,
        config: TokenBudgetConfig,
        model: str = DEFAULT_MODEL,
        counter: TokenCostFunction | None = None,
        compressors: CompressorRegistry | None = None,
        model_registry: ModelRegistry | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.model = model
        self.counter: TokenCostFunction = counter or TiktokenCounter(model, model_registry)
        self._compressors = compressors or CompressorRegistry.default()
        self._logger = logger or logging.getLogger(__name__)

        self._logger.debug(
            f"Created TokenBudgetManager max={config.max_tokens} "
            f"reserve={config.reserve_for_response} strategy={config.strategy.value}"
        )

    # --- Metering ---

    def count(self, messages: list[Message]) -> int:
        """Total cost of ``messages``."""
        return sum(self.counter.count_message(m) for m in messages)

    def get_current_usage(self, messages: list[Message]) -> TokenUsage:
        used = self.count(messages)
        max_tokens = self.config.max_tokens
        remaining = max(0, max_tokens - used - self.config.reserve_for_response)
        return TokenUsage(
            used=used,
            max=max_tokens,
            remaining=remaining,
            percentage=used / max_tokens * 100,
        )

    def get_remaining_tokens(self, messages: list[Message]) -> int:
        return int(self.get_current_usage(messages).remaining)

    def is_near_limit(self, messages: list[Message], threshold: float | None = None) -> bool:
        """
        True when usage is at or above ``threshold`` (default from config).
        Fires ``on_warning`` whenever it returns True.
        """
        usage = self.get_current_usage(messages)
        check = self.config.warning_threshold if threshold is None else threshold
        near = usage.percentage >= check * 100

        if near:
            self._logger.warning(f"Token usage at {usage.percentage:.1f}% of {usage.max:.0f}")
            if self.config.on_warning:
                self.config.on_warning(usage)

        return near

    def can_add_message(self, message: Message, current_messages: list[Message]) -> bool:
        """True iff ``message`` fits without requiring compression."""
        total = self.count(current_messages) + self.counter.count_message(message) + self.config.reserve_for_response
        return total <= self.config.max_tokens

    # --- Compression ---

    def compress(self, messages: list[Message]) -> list[Message]:
        """
        Reduce ``messages`` to fit ``max_tokens - reserve_for_response``.

        Returns the input unchanged (as a new list) when it already fits, so
        compressing a compressed list is a no-op.
        """
        target = self.config.target_tokens
        tokens_before = self.count(messages)

        if tokens_before <= target:
            return list(messages)

        self._logger.debug(
            f"Compressing {len(messages)} messages ({tokens_before} tokens) "
            f"to {target} with {self.config.strategy.value}"
        )

        context = CompressionContext(
            counter=self.counter,
            preserve_recent=self.config.preserve_recent,
            preserve_system=self.config.preserve_system,
            weights=self.config.priority_weights,
        )
        compressor = self._compressors.get(self.config.strategy)
        compressed = compressor.compress(list(messages), target, context)

        tokens_after = self.count(compressed)
        stats = CompressionStats(
            messages_before=len(messages),
            messages_after=len(compressed),
            tokens_before=tokens_before,
            tokens_after=tokens_after,
            tokens_saved=tokens_before - tokens_after,
            strategy=self.config.strategy,
        )

        if self.config.on_compression:
            self.config.on_compression(stats)

        self._logger.info(
            f"Compressed conversation: {stats.messages_before} -> {stats.messages_after} messages, "
            f"saved {stats.tokens_saved} tokens"
        )
        return compressed

    def truncate(self, messages: list[Message], max_messages: int) -> list[Message]:
        """
        Keep every system message plus the newest non-system messages that
        fit within ``max_messages``, in chronological order.
        """
        if len(messages) <= max_messages:
            return list(messages)

        system_indices = [i for i, m in enumerate(messages) if m.role == MessageRole.SYSTEM]
        other_indices = [i for i, m in enumerate(messages) if m.role != MessageRole.SYSTEM]

        room = max(0, max_messages - len(system_indices))
        kept = set(system_indices)
        if room:
            kept.update(other_indices[-room:])

        return [m for i, m in enumerate(messages) if i in kept]
