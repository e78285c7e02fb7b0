# chuk_ai_agent_engine/models/__init__.py
"""
Core message models for the agent engine.
"""

from chuk_ai_agent_engine.models.message import (
    ConversationMetadata,
    FunctionCall,
    Message,
    MessageRole,
    ToolCall,
)

__all__ = [
    "ConversationMetadata",
    "FunctionCall",
    "Message",
    "MessageRole",
    "ToolCall",
]
