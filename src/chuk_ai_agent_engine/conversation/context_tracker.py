# chuk_ai_agent_engine/conversation/context_tracker.py
"""
Tracking for context injected into a conversation.

Every injected item is recorded with an id, a content hash, a
title-or-prefix key and the index it was inserted at, so later injections
can be deduplicated by any of the three.
"""

from __future__ import annotations

import hashlib
import logging
import re
import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from chuk_ai_agent_engine.base_models import DictCompatModel

logger = logging.getLogger(__name__)

# Leading characters used as a dedup key for items without a title
CONTENT_KEY_PREFIX_CHARS = 50

_WHITESPACE = re.compile(r"\s+")


class ContextPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ContextItem(BaseModel):
    """A piece of dynamic content to inject into a conversation."""

    content: str
    title: str | None = None
    id: str | None = None
    weight: float | None = None
    category: str | None = None
    source: str | None = None
    priority: ContextPriority | None = None
    timestamp: datetime | None = None


class TrackedContextItem(ContextItem):
    """An injected item with its derived keys and insertion index."""

    id: str
    hash: str
    key: str
    position: int
    injected_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ContextStats(DictCompatModel):
    total_items: int = 0
    by_category: dict[str, int] = Field(default_factory=dict)
    by_priority: dict[str, int] = Field(default_factory=dict)
    by_source: dict[str, int] = Field(default_factory=dict)
    oldest_timestamp: datetime | None = None
    newest_timestamp: datetime | None = None


def normalize_content(content: str) -> str:
    """Collapse whitespace, trim and lowercase."""
    return _WHITESPACE.sub(" ", content).strip().lower()


def content_hash(content: str) -> str:
    """Short SHA-256 digest of the normalized content."""
    return hashlib.sha256(normalize_content(content).encode("utf-8")).hexdigest()[:16]


def content_key(item: ContextItem) -> str:
    """Title when present, otherwise the first characters of the normalized content."""
    if item.title:
        return item.title
    return normalize_content(item.content)[:CONTENT_KEY_PREFIX_CHARS]


class ContextTracker:
    """Records injected context and answers duplicate queries."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._items: dict[str, TrackedContextItem] = {}
        self._hashes: set[str] = set()
        self._keys: set[str] = set()
        self._logger = logger or logging.getLogger(__name__)

    def track(self, item: ContextItem, position: int) -> TrackedContextItem:
        """Record ``item`` as injected at ``position``."""
        tracked = TrackedContextItem(
            **item.model_dump(exclude={"id"}),
            id=item.id or f"ctx-{uuid.uuid4().hex[:12]}",
            hash=content_hash(item.content),
            key=content_key(item),
            position=position,
        )
        if tracked.timestamp is None:
            tracked.timestamp = tracked.injected_at
        if tracked.priority is None:
            tracked.priority = ContextPriority.MEDIUM

        self._items[tracked.id] = tracked
        self._hashes.add(tracked.hash)
        self._keys.add(tracked.key)

        self._logger.debug(f"Tracked context item {tracked.id} at position {position}")
        return tracked

    def restore(self, tracked: TrackedContextItem) -> None:
        """Re-register an already tracked item (used when cloning)."""
        self._items[tracked.id] = tracked.model_copy()
        self._hashes.add(tracked.hash)
        self._keys.add(tracked.key)

    # --- Duplicate checks ---

    def has_context(self, item_id: str) -> bool:
        return item_id in self._items

    def has_content_hash(self, content: str) -> bool:
        return content_hash(content) in self._hashes

    def has_similar_content(self, item: ContextItem) -> bool:
        """True when an item with the same title-or-prefix key was injected."""
        return content_key(item) in self._keys

    # --- Queries ---

    def get(self, item_id: str) -> TrackedContextItem | None:
        return self._items.get(item_id)

    def get_all(self) -> list[TrackedContextItem]:
        return list(self._items.values())

    def get_by_category(self, category: str) -> list[TrackedContextItem]:
        return [i for i in self._items.values() if i.category == category]

    def get_by_priority(self, priority: ContextPriority) -> list[TrackedContextItem]:
        return [i for i in self._items.values() if i.priority == priority]

    def get_by_source(self, source: str) -> list[TrackedContextItem]:
        return [i for i in self._items.values() if i.source == source]

    def get_categories(self) -> list[str]:
        return sorted({i.category for i in self._items.values() if i.category})

    def get_stats(self) -> ContextStats:
        stats = ContextStats(total_items=len(self._items))
        for item in self._items.values():
            if item.category:
                stats.by_category[item.category] = stats.by_category.get(item.category, 0) + 1
            priority = (item.priority or ContextPriority.MEDIUM).value
            stats.by_priority[priority] = stats.by_priority.get(priority, 0) + 1
            if item.source:
                stats.by_source[item.source] = stats.by_source.get(item.source, 0) + 1
            if item.timestamp:
                if stats.oldest_timestamp is None or item.timestamp < stats.oldest_timestamp:
                    stats.oldest_timestamp = item.timestamp
                if stats.newest_timestamp is None or item.timestamp > stats.newest_timestamp:
                    stats.newest_timestamp = item.timestamp
        return stats

    # --- Removal ---

    def remove(self, item_id: str) -> bool:
        item = self._items.pop(item_id, None)
        if item is None:
            return False
        # Other items may share the hash or key
        self._hashes = {i.hash for i in self._items.values()}
        self._keys = {i.key for i in self._items.values()}
        self._logger.debug(f"Removed context item {item_id}")
        return True

    def clear(self) -> None:
        self._items.clear()
        self._hashes.clear()
        self._keys.clear()

    def __len__(self) -> int:
        return len(self._items)
