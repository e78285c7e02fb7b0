# tests/test_token_budget.py
"""
Tests for token pricing, budget metering and compression.

Covers:
- HeuristicTokenCounter message pricing
- TokenBudgetManager usage, near-limit warnings and can_add_message
- FIFO, priority-based and adaptive compression
- Compression idempotence and stats callbacks
- truncate() retention of system messages
"""

import pytest

from chuk_ai_agent_engine.budget.compressors import (
    AdaptiveCompressor,
    CompressionContext,
    CompressorRegistry,
    FifoCompressor,
    PriorityCompressor,
    priority_score,
)
from chuk_ai_agent_engine.budget.counter import HeuristicTokenCounter
from chuk_ai_agent_engine.budget.manager import TokenBudgetManager
from chuk_ai_agent_engine.budget.models import (
    CompressionStrategy,
    PriorityWeights,
    TokenBudgetConfig,
)
from chuk_ai_agent_engine.models.message import Message, MessageRole, ToolCall

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _system(content: str = "You are helpful.") -> Message:
    return Message(role=MessageRole.SYSTEM, content=content)


def _user(content: str) -> Message:
    return Message(role=MessageRole.USER, content=content)


def _assistant(content: str) -> Message:
    return Message(role=MessageRole.ASSISTANT, content=content)


def _manager(**config) -> TokenBudgetManager:
    return TokenBudgetManager(TokenBudgetConfig(**config), counter=HeuristicTokenCounter())


def _scenario_messages() -> list[Message]:
    # system: 5 + 4 = 9 tokens; each user: 5 + 10 = 15 tokens; total 159
    return [_system()] + [_user(f"u{i:02d}" + "x" * 37) for i in range(1, 11)]


# ===========================================================================
# Counting
# ===========================================================================


class TestHeuristicTokenCounter:
    def test_count_text(self):
        counter = HeuristicTokenCounter()
        assert counter.count("") == 0
        assert counter.count(None) == 0
        assert counter.count("abcd") == 1
        assert counter.count("abcde") == 2

    def test_count_plain_message(self):
        counter = HeuristicTokenCounter()
        assert counter.count_message(_user("x" * 40)) == 15

    def test_tool_call_overhead(self):
        counter = HeuristicTokenCounter()
        plain = Message(role=MessageRole.ASSISTANT, content="ok")
        with_call = Message(
            role=MessageRole.ASSISTANT,
            content="ok",
            tool_calls=[ToolCall.create("call_1", "read_file", '{"path": "a.py"}')],
        )
        assert counter.count_message(with_call) > counter.count_message(plain) + 3

    def test_tool_result_overhead(self):
        counter = HeuristicTokenCounter()
        result = Message(role=MessageRole.TOOL, content="x" * 8, tool_call_id="call")
        # 4 + 1 + 2 (content) + 1 (id) + 2
        assert counter.count_message(result) == 10

    def test_estimate_response_tokens_floor(self):
        counter = HeuristicTokenCounter()
        assert counter.estimate_response_tokens([_user("hi")]) == 500


# ===========================================================================
# Metering
# ===========================================================================


class TestUsage:
    def test_current_usage(self):
        manager = _manager(max_tokens=200, reserve_for_response=50)
        usage = manager.get_current_usage(_scenario_messages())
        assert usage.used == 159
        assert usage.max == 200
        assert usage.remaining == 0
        assert usage.percentage == pytest.approx(79.5)

    def test_remaining_tokens(self):
        manager = _manager(max_tokens=200, reserve_for_response=50)
        assert manager.get_remaining_tokens([_system()]) == 141

    def test_can_add_message_matches_compression_need(self):
        manager = _manager(max_tokens=200, reserve_for_response=50)
        messages = _scenario_messages()[:9]  # 9 + 8 * 15 = 129
        candidate = _user("x" * 40)  # 15

        assert manager.can_add_message(candidate, messages) is True
        assert manager.compress(messages + [candidate]) == messages + [candidate]

        messages = _scenario_messages()[:10]  # 144
        assert manager.can_add_message(candidate, messages) is False
        assert len(manager.compress(messages + [candidate])) < 11

    def test_is_near_limit_fires_warning(self):
        seen = []
        manager = _manager(max_tokens=200, warning_threshold=0.5, on_warning=seen.append)

        assert manager.is_near_limit([_system()]) is False
        assert seen == []

        assert manager.is_near_limit(_scenario_messages()) is True
        assert len(seen) == 1
        assert seen[0].used == 159

    def test_is_near_limit_explicit_threshold(self):
        manager = _manager(max_tokens=200)
        assert manager.is_near_limit(_scenario_messages(), threshold=0.9) is False
        assert manager.is_near_limit(_scenario_messages(), threshold=0.7) is True


# ===========================================================================
# Compression
# ===========================================================================


class TestFifoCompression:
    def test_scenario_keeps_system_recent_and_backfills(self):
        manager = _manager(
            max_tokens=200,
            reserve_for_response=50,
            strategy=CompressionStrategy.FIFO,
            preserve_system=True,
            preserve_recent=2,
        )
        messages = _scenario_messages()

        result = manager.compress(messages)

        assert result[0] is messages[0]
        assert result[-2:] == messages[-2:]
        assert messages[1] not in result
        assert result == [messages[0]] + messages[2:]
        assert manager.count(result) <= 150

    def test_backfill_stops_at_first_miss(self):
        counter = HeuristicTokenCounter()
        messages = [_user("x" * 40), _user("x" * 4), _user("x" * 400), _user("x" * 40)]
        context = CompressionContext(counter=counter, preserve_recent=1, preserve_system=True)

        # last message 15, big one 105 does not fit in 40, so the small one before it is not reached
        result = FifoCompressor().compress(messages, 40, context)
        assert result == [messages[3]]

    def test_preserve_system_false_lets_system_compete(self):
        counter = HeuristicTokenCounter()
        messages = [_system("s" * 400), _user("x" * 40), _user("y" * 40)]
        context = CompressionContext(counter=counter, preserve_recent=2, preserve_system=False)

        result = FifoCompressor().compress(messages, 40, context)
        assert result == messages[1:]

    def test_compression_is_idempotent(self):
        manager = _manager(max_tokens=200, reserve_for_response=50, preserve_recent=2)
        once = manager.compress(_scenario_messages())
        assert manager.compress(once) == once

    def test_under_target_returns_copy(self):
        manager = _manager(max_tokens=1000)
        messages = _scenario_messages()
        result = manager.compress(messages)
        assert result == messages
        assert result is not messages

    def test_compression_stats_callback(self):
        stats = []
        manager = _manager(
            max_tokens=200,
            reserve_for_response=50,
            preserve_recent=2,
            on_compression=stats.append,
        )
        manager.compress(_scenario_messages())

        assert len(stats) == 1
        record = stats[0]
        assert record.messages_before == 11
        assert record.messages_after == 10
        assert record.tokens_before == 159
        assert record.tokens_saved == record.tokens_before - record.tokens_after
        assert record["strategy"] == CompressionStrategy.FIFO


class TestPriorityCompression:
    def test_relative_scores(self):
        weights = PriorityWeights()
        system = priority_score(_system(), 0, 10, weights)
        latest = priority_score(_user("hi"), 9, 10, weights)
        earliest = priority_score(_user("hi"), 1, 10, weights)
        tool = priority_score(Message(role=MessageRole.TOOL, content="r", tool_call_id="c"), 1, 10, weights)

        assert system > latest > earliest
        assert tool > earliest

    def test_keeps_system_and_recent_in_chronological_order(self):
        manager = _manager(
            max_tokens=200,
            reserve_for_response=50,
            strategy=CompressionStrategy.PRIORITY_BASED,
        )
        messages = _scenario_messages()

        result = manager.compress(messages)

        assert result[0] is messages[0]
        assert result[-1] is messages[-1]
        assert messages[1] not in result
        assert [messages.index(m) for m in result] == sorted(messages.index(m) for m in result)
        assert manager.count(result) <= 150

    def test_custom_weights_change_ordering(self):
        counter = HeuristicTokenCounter()
        messages = [_user("x" * 40), _user("y" * 40)]
        # Negative recency favours the oldest message
        context = CompressionContext(
            counter=counter,
            weights=PriorityWeights(recency=-2.0),
        )
        assert PriorityCompressor().compress(messages, 20, context) == [messages[0]]


class TestAdaptiveCompression:
    def _context(self, preserve_recent=1):
        return CompressionContext(counter=HeuristicTokenCounter(), preserve_recent=preserve_recent)

    def test_short_conversation_uses_plain_fifo(self):
        messages = [_user(f"{i}" * 40) for i in range(5)]
        context = self._context()
        expected = FifoCompressor().compress(messages, 40, context)
        assert AdaptiveCompressor().compress(messages, 40, context) == expected

    def test_medium_conversation_widens_recent_window(self):
        messages = [_user(f"{i % 10}" * 40) for i in range(10)]
        context = self._context(preserve_recent=1)
        widened = context.model_copy(update={"preserve_recent": 5})

        expected = FifoCompressor().compress(messages, 100, widened)
        assert AdaptiveCompressor().compress(messages, 100, context) == expected

    def test_long_conversation_uses_priority(self):
        messages = [_system()] + [_user(f"{i % 10}" * 40) for i in range(20)]
        context = self._context()
        expected = PriorityCompressor().compress(messages, 100, context)
        assert AdaptiveCompressor().compress(messages, 100, context) == expected

    def test_registry_defaults(self):
        registry = CompressorRegistry.default()
        for strategy in CompressionStrategy:
            assert registry.get(strategy).strategy == strategy

    def test_registry_falls_back_to_fifo(self):
        registry = CompressorRegistry({CompressionStrategy.FIFO: FifoCompressor()})
        assert registry.get(CompressionStrategy.ADAPTIVE).strategy == CompressionStrategy.FIFO


# ===========================================================================
# Truncation
# ===========================================================================


class TestTruncate:
    def test_keeps_system_and_newest(self):
        manager = _manager(max_tokens=1000)
        messages = [_system(), _user("u1"), _assistant("a1"), _user("u2"), _assistant("a2")]

        assert manager.truncate(messages, 3) == [messages[0], messages[3], messages[4]]

    def test_system_only_when_no_room(self):
        manager = _manager(max_tokens=1000)
        messages = [_system("a"), _user("u1"), _system("b"), _user("u2")]

        assert manager.truncate(messages, 2) == [messages[0], messages[2]]

    def test_within_cap_is_unchanged(self):
        manager = _manager(max_tokens=1000)
        messages = [_user("u1"), _user("u2")]
        assert manager.truncate(messages, 5) == messages
