# tests/test_conversation_store.py
"""
Tests for ConversationStore.

Covers:
- Appenders and the tool-result invariant
- Metadata counters (messageCount / toolCallCount)
- Context injection positions, formats and deduplication modes
- truncate / remove_messages_of_type / clone
- Token budget policies on user messages
- JSON serialization round trip and malformed input
"""

import json

import pytest

from chuk_ai_agent_engine.budget.counter import HeuristicTokenCounter
from chuk_ai_agent_engine.budget.models import (
    BudgetExceededAction,
    CompressionStrategy,
    TokenBudgetConfig,
)
from chuk_ai_agent_engine.conversation.context_tracker import ContextItem, ContextPriority
from chuk_ai_agent_engine.conversation.store import (
    ConversationStore,
    DeduplicateBy,
    InjectFormat,
    InjectOptions,
    InjectPosition,
)
from chuk_ai_agent_engine.exceptions import (
    BudgetExceededError,
    ConversationDeserializationError,
    ConversationError,
)
from chuk_ai_agent_engine.models.message import MessageRole, ToolCall

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _store_with_tool_round() -> ConversationStore:
    store = ConversationStore.create(model="gpt-4o")
    store.add_system_message("system")
    store.add_user_message("list the files")
    store.add_assistant_with_tool_calls(
        None,
        [ToolCall.create("call_1", "list_files"), ToolCall.create("call_2", "read_file", '{"path": "a"}')],
    )
    store.add_tool_result("call_1", '["a"]', tool_name="list_files")
    store.add_tool_result("call_2", "contents", tool_name="read_file")
    store.add_assistant_message("There is one file.")
    return store


def _tool_call_total(store: ConversationStore) -> int:
    return sum(len(m.tool_calls or []) for m in store.get_messages() if m.role == MessageRole.ASSISTANT)


# ===========================================================================
# Appending
# ===========================================================================


class TestAppending:
    def test_message_roles_in_order(self):
        store = _store_with_tool_round()
        roles = [m.role for m in store.get_messages()]
        assert roles == [
            MessageRole.SYSTEM,
            MessageRole.USER,
            MessageRole.ASSISTANT,
            MessageRole.TOOL,
            MessageRole.TOOL,
            MessageRole.ASSISTANT,
        ]

    def test_metadata_counts(self):
        store = _store_with_tool_round()
        metadata = store.metadata
        assert metadata.message_count == 6
        assert metadata.tool_call_count == 2
        assert metadata.model == "gpt-4o"
        assert store.has_tool_calls() is True

    def test_last_modified_advances(self):
        store = ConversationStore.create()
        before = store.metadata.last_modified
        store.add_user_message("hi")
        assert store.metadata.last_modified >= before

    def test_orphan_tool_result_rejected(self):
        store = ConversationStore.create()
        store.add_user_message("hi")
        with pytest.raises(ConversationError):
            store.add_tool_result("never_emitted", "x")
        assert len(store) == 1

    def test_as_tool_serializes_non_strings(self):
        store = ConversationStore.create()
        store.as_assistant(None, [ToolCall.create("c1", "stat")])
        store.as_tool("c1", {"size": 3}, {"success": True}, tool_name="stat")

        last = store.get_last_message()
        assert json.loads(last.content) == {"size": 3}
        assert last.metadata == {"success": True}
        assert last.name == "stat"

    def test_as_assistant_without_tool_calls(self):
        store = ConversationStore.create()
        store.as_assistant(None)
        last = store.get_last_message()
        assert last.role == MessageRole.ASSISTANT
        assert last.tool_calls is None

    def test_add_tool_message_alias(self):
        assert ConversationStore.add_tool_message is ConversationStore.add_tool_result

    def test_get_messages_is_a_copy(self):
        store = _store_with_tool_round()
        messages = store.get_messages()
        messages.clear()
        assert len(store) == 6

    def test_to_messages_copies_messages(self):
        store = _store_with_tool_round()
        copies = store.to_messages()
        copies[0].content = "changed"
        assert store.get_messages()[0].content == "system"

    def test_inject_system_context(self):
        store = ConversationStore.create()
        store.inject_system_context("Repository uses Python 3.11")
        assert store.get_last_message().role == MessageRole.SYSTEM


# ===========================================================================
# Context injection
# ===========================================================================


class TestContextInjection:
    def test_after_system_inserts_at_index_one(self):
        store = ConversationStore.create()
        store.add_system_message("system")
        store.add_user_message("question")

        store.inject_context([{"content": "x", "title": "T"}], position="after-system")

        messages = store.get_messages()
        assert len(messages) == 3
        assert messages[1].role == MessageRole.USER
        assert messages[1].content.startswith("## T\n\nx")
        assert messages[2].content == "question"

    def test_after_system_uses_last_system_message(self):
        store = ConversationStore.create()
        store.add_system_message("a")
        store.add_system_message("b")
        store.add_user_message("q")
        store.inject_context([ContextItem(content="ctx")], position=InjectPosition.AFTER_SYSTEM)
        assert store.get_messages()[2].content.startswith("## Context")

    def test_after_system_without_system_goes_first(self):
        store = ConversationStore.create()
        store.add_user_message("q")
        store.inject_context([ContextItem(content="ctx")], position="after-system")
        assert store.get_messages()[0].content.startswith("## Context")

    def test_before_last_and_end(self):
        store = ConversationStore.create()
        store.add_user_message("one")
        store.add_user_message("two")

        store.inject_context([ContextItem(content="before", id="b")], position="before-last")
        store.inject_context([ContextItem(content="end", id="e")], position="end")

        contents = [m.content for m in store.get_messages()]
        assert contents[0] == "one"
        assert "before" in contents[1]
        assert contents[2] == "two"
        assert "end" in contents[3]

    def test_numeric_position_is_clamped(self):
        store = ConversationStore.create()
        store.add_user_message("one")
        store.inject_context([ContextItem(content="far", id="f")], position=99)
        store.inject_context([ContextItem(content="neg", id="n")], position=-5)

        contents = [m.content for m in store.get_messages()]
        assert "neg" in contents[0]
        assert "far" in contents[-1]

    def test_batch_keeps_input_order(self):
        store = ConversationStore.create()
        store.add_system_message("s")
        store.add_user_message("q")
        store.inject_context(
            [ContextItem(content="first", id="1"), ContextItem(content="second", id="2")],
            position="after-system",
        )
        contents = [m.content for m in store.get_messages()]
        assert "first" in contents[1]
        assert "second" in contents[2]

    def test_reinjecting_same_id_is_skipped(self):
        store = ConversationStore.create()
        store.add_user_message("q")
        item = ContextItem(content="docs", id="doc-1")

        store.inject_context([item])
        count = store.message_count
        store.inject_context([item])
        store.inject_context([ContextItem(content="different content", id="doc-1")])

        assert store.message_count == count
        assert "doc-1" in store.context_provided

    def test_dedup_by_hash_ignores_whitespace_and_case(self):
        store = ConversationStore.create()
        store.inject_context([ContextItem(content="Hello   World")], deduplicate_by=DeduplicateBy.HASH)
        store.inject_context([ContextItem(content="hello world")], deduplicate_by=DeduplicateBy.HASH)
        assert store.message_count == 1

    def test_dedup_by_content_uses_title(self):
        store = ConversationStore.create()
        store.inject_context([ContextItem(content="v1", title="README")], deduplicate_by="content")
        store.inject_context([ContextItem(content="v2", title="README")], deduplicate_by="content")
        assert store.message_count == 1

    def test_dedup_by_content_uses_prefix_without_title(self):
        store = ConversationStore.create()
        prefix = "p" * 50
        store.inject_context([ContextItem(content=prefix + "one")], deduplicate_by=DeduplicateBy.CONTENT)
        store.inject_context([ContextItem(content=prefix + "two")], deduplicate_by=DeduplicateBy.CONTENT)
        assert store.message_count == 1

    def test_dedup_within_batch(self):
        store = ConversationStore.create()
        store.inject_context([ContextItem(content="a", id="same"), ContextItem(content="b", id="same")])
        assert store.message_count == 1

    def test_id_mode_injects_items_without_ids(self):
        store = ConversationStore.create()
        store.add_user_message("q")
        store.inject_context([ContextItem(content="main.py v1 body", title="main.py")])
        store.inject_context([ContextItem(content="main.py v2 totally different", title="main.py")])
        prefix = "log " * 20
        store.inject_context([ContextItem(content=prefix + "first")])
        store.inject_context([ContextItem(content=prefix + "second")])
        assert store.message_count == 5

    def test_dedup_disabled(self):
        store = ConversationStore.create(deduplicate_context=False)
        item = ContextItem(content="docs", id="doc-1")
        store.inject_context([item])
        store.inject_context([item])
        assert store.message_count == 2

    def test_options_override_disables_dedup(self):
        store = ConversationStore.create()
        item = ContextItem(content="docs", id="doc-1")
        store.inject_context([item])
        store.inject_context([item], InjectOptions(deduplicate=False))
        assert store.message_count == 2

    def test_inline_and_reference_formats(self):
        store = ConversationStore.create(deduplicate_context=False)
        store.inject_context([ContextItem(content="use tabs", title="Style")], format=InjectFormat.INLINE)
        store.inject_context([ContextItem(content="big", id="ref-1", title="Spec")], format="reference")
        store.inject_context([ContextItem(content="big")], format="reference")

        contents = [m.content for m in store.get_messages()]
        assert contents[0] == "Note: Style: use tabs"
        assert contents[1] == "[Context Reference: ref-1]\nSee attached context for Spec"
        assert contents[2] == "[Context Reference: unknown]\nSee attached context"

    def test_structured_footer(self):
        store = ConversationStore.create()
        store.inject_context([ContextItem(content="body", title="Doc")], source="wiki")
        content = store.get_last_message().content
        assert content.startswith("## Doc\n\nbody\n\n_Source: wiki | Timestamp: ")

    def test_tracker_records_enriched_items(self):
        store = ConversationStore.create()
        store.inject_context(
            [ContextItem(content="body", id="k1")],
            category="docs",
            priority=ContextPriority.HIGH,
            source="wiki",
        )
        tracked = store.context_tracker.get("k1")
        assert tracked is not None
        assert tracked.category == "docs"
        assert tracked.priority == ContextPriority.HIGH
        assert tracked.source == "wiki"
        assert tracked.position == 0
        assert tracked.timestamp is not None


# ===========================================================================
# Bulk mutation
# ===========================================================================


class TestBulkMutation:
    def test_truncate_keeps_tail(self):
        store = ConversationStore.create()
        for i in range(5):
            store.add_user_message(f"m{i}")
        store.truncate(2)
        assert [m.content for m in store.get_messages()] == ["m3", "m4"]
        assert store.metadata.message_count == 2

    def test_truncate_recomputes_tool_call_count(self):
        store = _store_with_tool_round()
        store.truncate(1)
        assert store.metadata.tool_call_count == 0
        assert store.metadata.tool_call_count == _tool_call_total(store)

    def test_remove_messages_of_type(self):
        store = _store_with_tool_round()
        store.remove_messages_of_type("tool")
        assert all(m.role != MessageRole.TOOL for m in store.get_messages())
        assert store.metadata.message_count == 4

    def test_clone_is_independent(self):
        store = _store_with_tool_round()
        cloned = store.clone()
        cloned.add_user_message("only in clone")

        assert len(store) == 6
        assert len(cloned) == 7
        assert cloned.metadata.tool_call_count == 2

    def test_clone_keeps_emitted_ids(self):
        store = ConversationStore.create()
        store.add_assistant_with_tool_calls(None, [ToolCall.create("c1", "t")])
        cloned = store.clone()
        cloned.add_tool_result("c1", "ok")
        assert cloned.get_last_message().tool_call_id == "c1"


# ===========================================================================
# Token budget
# ===========================================================================


class TestTokenBudget:
    def _store(self, action: BudgetExceededAction, max_tokens: int = 100) -> ConversationStore:
        store = ConversationStore.create()
        store.with_token_budget(
            TokenBudgetConfig(max_tokens=max_tokens, on_budget_exceeded=action),
            counter=HeuristicTokenCounter(),
        )
        return store

    def test_usage_without_budget_is_unbounded(self):
        usage = ConversationStore.create().get_token_usage()
        assert usage.max == float("inf")
        assert usage.remaining == float("inf")

    def test_error_policy_raises(self):
        store = self._store(BudgetExceededAction.ERROR, max_tokens=30)
        with pytest.raises(BudgetExceededError):
            store.add_user_message("x" * 200)
        assert len(store) == 0

    def test_warn_policy_appends(self):
        store = self._store(BudgetExceededAction.WARN, max_tokens=30)
        store.add_user_message("x" * 200)
        assert len(store) == 1

    def test_truncate_policy_drops_oldest_non_system(self):
        store = self._store(BudgetExceededAction.TRUNCATE)
        store.add_system_message("sys")
        for i in range(4):
            store.add_user_message(f"{i}" * 100)

        messages = store.get_messages()
        assert messages[0].role == MessageRole.SYSTEM
        assert [m.content[0] for m in messages[1:]] == ["1", "2", "3"]
        assert store.get_token_usage().used <= 100

    def test_compress_on_demand(self):
        store = ConversationStore.create()
        store.add_system_message("sys")
        for i in range(6):
            store.add_user_message(f"{i}" * 100)
        store.with_token_budget(
            TokenBudgetConfig(max_tokens=100, strategy=CompressionStrategy.FIFO, preserve_recent=1),
            counter=HeuristicTokenCounter(),
        )

        store.compress()

        assert store.get_token_usage().used <= 100
        assert store.get_messages()[0].role == MessageRole.SYSTEM
        assert store.get_last_message().content.startswith("5")
        assert store.metadata.message_count == len(store)


# ===========================================================================
# Serialization
# ===========================================================================


class TestSerialization:
    def test_round_trip(self):
        store = _store_with_tool_round()
        store.inject_context([ContextItem(content="ctx", id="ctx-1")], position="after-system")

        restored = ConversationStore.from_json(store.to_json())

        assert restored.get_messages() == store.get_messages()
        assert restored.metadata.message_count == store.metadata.message_count
        assert restored.metadata.tool_call_count == 2
        assert restored.context_provided == {"ctx-1"}

    def test_json_layout(self):
        payload = json.loads(_store_with_tool_round().to_json())
        assert set(payload) == {"messages", "metadata", "contextProvided"}
        assert set(payload["metadata"]) == {"model", "created", "lastModified", "messageCount", "toolCallCount"}
        assert "tool_call_id" not in payload["messages"][0]

    def test_restored_store_accepts_results_for_existing_calls(self):
        store = ConversationStore.create()
        store.add_assistant_with_tool_calls(None, [ToolCall.create("c9", "t")])
        restored = ConversationStore.from_json(store.to_json())
        restored.add_tool_result("c9", "ok")
        assert len(restored) == 2

    def test_missing_metadata_fails(self):
        payload = json.loads(_store_with_tool_round().to_json())
        del payload["metadata"]["messageCount"]
        with pytest.raises(ConversationDeserializationError):
            ConversationStore.from_json(json.dumps(payload))

    def test_missing_messages_fails(self):
        with pytest.raises(ConversationDeserializationError):
            ConversationStore.from_json(json.dumps({"metadata": {}, "contextProvided": []}))

    def test_invalid_json_fails(self):
        with pytest.raises(ConversationDeserializationError):
            ConversationStore.from_json("{not json")

    def test_message_count_mismatch_fails(self):
        payload = json.loads(_store_with_tool_round().to_json())
        payload["metadata"]["messageCount"] = 99
        with pytest.raises(ConversationDeserializationError):
            ConversationStore.from_json(json.dumps(payload))
