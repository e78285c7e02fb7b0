# chuk_ai_agent_engine/models/message.py
"""
Message shapes shared by the conversation store, token budget and executor.

Messages follow the OpenAI chat-completions layout so they can be handed to
an LLM client without conversion.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator


class MessageRole(str, Enum):
    """Author of a conversation turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FunctionCall(BaseModel):
    """Function name plus its JSON-encoded argument payload."""

    name: str
    arguments: str = "{}"


class ToolCall(BaseModel):
    """A tool invocation requested by the assistant."""

    id: str
    type: Literal["function"] = "function"
    function: FunctionCall

    @property
    def name(self) -> str:
        return self.function.name

    @classmethod
    def create(cls, call_id: str, name: str, arguments: str = "{}") -> ToolCall:
        return cls(id=call_id, function=FunctionCall(name=name, arguments=arguments))


class Message(BaseModel):
    """A single conversation turn.

    ``tool_calls`` is only valid on assistant messages and ``tool_call_id``
    only on tool messages. ``metadata`` carries execution annotations such as
    ``success`` or ``circuitBreakerTriggered`` and is never sent to a model
    by :meth:`to_api_dict`.
    """

    role: MessageRole
    content: str | None = None
    name: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    metadata: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _check_role_fields(self) -> Message:
        if self.tool_calls and self.role != MessageRole.ASSISTANT:
            raise ValueError("tool_calls are only allowed on assistant messages")
        if self.tool_call_id is not None and self.role != MessageRole.TOOL:
            raise ValueError("tool_call_id is only allowed on tool messages")
        if self.role == MessageRole.TOOL and not self.tool_call_id:
            raise ValueError("tool messages require a tool_call_id")
        return self

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_api_dict(self) -> dict[str, Any]:
        """Provider-facing dict without local metadata."""
        return self.model_dump(mode="json", exclude_none=True, exclude={"metadata"})


class ConversationMetadata(BaseModel):
    """Bookkeeping kept alongside the message sequence.

    Serialized with camelCase aliases; every field is required when loading
    persisted state.
    """

    model: str
    created: datetime
    last_modified: datetime = Field(alias="lastModified")
    message_count: int = Field(alias="messageCount", ge=0)
    tool_call_count: int = Field(alias="toolCallCount", ge=0)

    model_config = {"populate_by_name": True, "protected_namespaces": ()}
