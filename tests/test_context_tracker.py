# tests/test_context_tracker.py
"""Tests for ContextTracker and the content key helpers."""

from chuk_ai_agent_engine.conversation.context_tracker import (
    CONTENT_KEY_PREFIX_CHARS,
    ContextItem,
    ContextPriority,
    ContextTracker,
    content_hash,
    content_key,
    normalize_content,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _item(content: str = "body", **kwargs) -> ContextItem:
    return ContextItem(content=content, **kwargs)


class TestKeys:
    def test_normalize_collapses_whitespace(self):
        assert normalize_content("  Hello \n\t World ") == "hello world"

    def test_hash_is_stable_and_short(self):
        assert content_hash("Hello World") == content_hash("hello   world")
        assert len(content_hash("x")) == 16

    def test_key_prefers_title(self):
        assert content_key(_item(title="README")) == "README"

    def test_key_uses_prefix(self):
        key = content_key(_item(content="A" * 200))
        assert key == "a" * CONTENT_KEY_PREFIX_CHARS


class TestContextTracker:
    def test_track_generates_id(self):
        tracker = ContextTracker()
        tracked = tracker.track(_item(), position=2)
        assert tracked.id.startswith("ctx-")
        assert tracked.position == 2
        assert tracked.priority == ContextPriority.MEDIUM
        assert tracker.has_context(tracked.id)
        assert len(tracker) == 1

    def test_duplicate_queries(self):
        tracker = ContextTracker()
        tracker.track(_item(content="Some Content", title="Doc", id="d1"), position=0)

        assert tracker.has_context("d1")
        assert not tracker.has_context("d2")
        assert tracker.has_content_hash("some content")
        assert tracker.has_similar_content(_item(content="other", title="Doc"))
        assert not tracker.has_similar_content(_item(content="other", title="Other"))

    def test_filters(self):
        tracker = ContextTracker()
        tracker.track(_item(id="a", category="docs", source="wiki", priority=ContextPriority.HIGH), 0)
        tracker.track(_item(content="b", id="b", category="code", source="repo"), 1)
        tracker.track(_item(content="c", id="c", category="docs"), 2)

        assert [i.id for i in tracker.get_by_category("docs")] == ["a", "c"]
        assert [i.id for i in tracker.get_by_priority(ContextPriority.HIGH)] == ["a"]
        assert [i.id for i in tracker.get_by_source("repo")] == ["b"]
        assert tracker.get_categories() == ["code", "docs"]

    def test_stats(self):
        tracker = ContextTracker()
        tracker.track(_item(id="a", category="docs", priority=ContextPriority.HIGH), 0)
        tracker.track(_item(content="b", id="b", category="docs"), 1)

        stats = tracker.get_stats()
        assert stats.total_items == 2
        assert stats["by_category"] == {"docs": 2}
        assert stats.by_priority == {"high": 1, "medium": 1}
        assert stats.oldest_timestamp <= stats.newest_timestamp

    def test_remove_rebuilds_keys(self):
        tracker = ContextTracker()
        tracker.track(_item(content="shared", id="a"), 0)
        tracker.track(_item(content="shared", id="b"), 1)

        assert tracker.remove("a") is True
        assert tracker.has_content_hash("shared")

        assert tracker.remove("b") is True
        assert not tracker.has_content_hash("shared")
        assert tracker.remove("b") is False

    def test_clear(self):
        tracker = ContextTracker()
        tracker.track(_item(id="a"), 0)
        tracker.clear()
        assert len(tracker) == 0
        assert not tracker.has_context("a")
