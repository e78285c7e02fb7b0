# chuk_ai_agent_engine/conversation/__init__.py
"""
Conversation state: the message sequence, its metadata and injected context.
"""

from .context_tracker import (
    ContextItem,
    ContextPriority,
    ContextStats,
    ContextTracker,
    TrackedContextItem,
    content_hash,
    content_key,
)
from .store import (
    ConversationStore,
    DeduplicateBy,
    InjectFormat,
    InjectOptions,
    InjectPosition,
    SerializedConversation,
)

__all__ = [
    "ConversationStore",
    "SerializedConversation",
    # Injection
    "ContextItem",
    "ContextPriority",
    "DeduplicateBy",
    "InjectFormat",
    "InjectOptions",
    "InjectPosition",
    # Tracking
    "ContextStats",
    "ContextTracker",
    "TrackedContextItem",
    "content_hash",
    "content_key",
]
