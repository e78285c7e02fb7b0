# chuk_ai_agent_engine/conversation/store.py
"""
ConversationStore - the ordered message sequence every other component
operates on.

This module provides:
- Typed appenders for system, user, assistant and tool turns
- Context injection with positioning and deduplication
- Truncation, role removal and cloning
- Optional token budget enforcement on user turns
- Lossless JSON serialization

The store is created by the caller and mutated in place; the engine never
owns or discards it.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from chuk_ai_agent_engine.budget.counter import TokenCostFunction
from chuk_ai_agent_engine.budget.manager import TokenBudgetManager
from chuk_ai_agent_engine.budget.models import BudgetExceededAction, TokenBudgetConfig, TokenUsage
from chuk_ai_agent_engine.config import DEFAULT_MODEL
from chuk_ai_agent_engine.conversation.context_tracker import (
    ContextItem,
    ContextPriority,
    ContextTracker,
)
from chuk_ai_agent_engine.exceptions import (
    BudgetExceededError,
    ConversationDeserializationError,
    ConversationError,
)
from chuk_ai_agent_engine.models.message import (
    ConversationMetadata,
    Message,
    MessageRole,
    ToolCall,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Injection options
# =============================================================================


class InjectPosition(str, Enum):
    END = "end"
    BEFORE_LAST = "before-last"
    AFTER_SYSTEM = "after-system"


class InjectFormat(str, Enum):
    STRUCTURED = "structured"
    INLINE = "inline"
    REFERENCE = "reference"


class DeduplicateBy(str, Enum):
    ID = "id"
    HASH = "hash"
    CONTENT = "content"


class InjectOptions(BaseModel):
    """Where and how context items are injected."""

    position: InjectPosition | int = InjectPosition.END
    format: InjectFormat = InjectFormat.STRUCTURED
    deduplicate: bool | None = Field(default=None, description="None uses the store's default")
    deduplicate_by: DeduplicateBy = DeduplicateBy.ID
    priority: ContextPriority = ContextPriority.MEDIUM
    weight: float = 1.0
    category: str | None = None
    source: str | None = None


class SerializedConversation(BaseModel):
    """On-disk layout; all three sections are required."""

    messages: list[Message]
    metadata: ConversationMetadata
    context_provided: list[str] = Field(alias="contextProvided")

    model_config = {"populate_by_name": True}


# =============================================================================
# Store
# =============================================================================


class ConversationStore:
    """
    Ordered message sequence plus metadata.

    Examples:
        ```python
        store = ConversationStore.create(model="gpt-4o")
        store.add_system_message("You are a code reviewer.")
        store.add_user_message("Review main.py")
        store.inject_context([ContextItem(content=source, title="main.py")], position="after-system")
        ```
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        track_context: bool = True,
        deduplicate_context: bool = True,
        logger: logging.Logger | None = None,
    ) -> None:
        now = datetime.now(UTC)
        self.model = model
        self.track_context = track_context
        self.deduplicate_context = deduplicate_context
        self._logger = logger or logging.getLogger(__name__)

        self._messages: list[Message] = []
        self._metadata = ConversationMetadata(
            model=model,
            created=now,
            last_modified=now,
            message_count=0,
            tool_call_count=0,
        )
        self._context_provided: set[str] = set()
        self._tracker = ContextTracker(logger=self._logger)
        self._emitted_tool_call_ids: set[str] = set()
        self._budget: TokenBudgetManager | None = None

        self._logger.debug(f"Created ConversationStore for model {model}")

    @classmethod
    def create(cls, model: str = DEFAULT_MODEL, **kwargs: Any) -> ConversationStore:
        return cls(model=model, **kwargs)

    # --- Appending ---

    def append(self, message: Message) -> ConversationStore:
        """Append any message, enforcing the tool-result invariant."""
        if message.role == MessageRole.TOOL and message.tool_call_id not in self._emitted_tool_call_ids:
            raise ConversationError(
                f"Tool result references unknown tool_call_id '{message.tool_call_id}'"
            )

        self._messages.append(message)
        if message.role == MessageRole.ASSISTANT and message.tool_calls:
            self._emitted_tool_call_ids.update(tc.id for tc in message.tool_calls)

        self._update_metadata()
        return self

    def add_system_message(self, content: str) -> ConversationStore:
        self._logger.debug("Adding system message")
        return self.append(Message(role=MessageRole.SYSTEM, content=content))

    def add_user_message(self, content: str) -> ConversationStore:
        """Append a user turn, applying the token budget policy first if one is set."""
        self._logger.debug("Adding user message")
        message = Message(role=MessageRole.USER, content=content)

        if self._budget and not self._budget.can_add_message(message, self._messages):
            self._apply_budget_policy(self._budget, message)

        return self.append(message)

    def add_assistant_message(self, content: str | None) -> ConversationStore:
        self._logger.debug("Adding assistant message")
        return self.append(Message(role=MessageRole.ASSISTANT, content=content or ""))

    def add_assistant_with_tool_calls(
        self, content: str | None, tool_calls: list[ToolCall]
    ) -> ConversationStore:
        self._logger.debug(f"Adding assistant message with {len(tool_calls)} tool calls")
        return self.append(
            Message(role=MessageRole.ASSISTANT, content=content, tool_calls=list(tool_calls))
        )

    def add_tool_result(
        self,
        tool_call_id: str,
        content: str,
        tool_name: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ConversationStore:
        self._logger.debug(f"Adding tool result for {tool_call_id}")
        return self.append(
            Message(
                role=MessageRole.TOOL,
                tool_call_id=tool_call_id,
                content=content,
                name=tool_name,
                metadata=metadata,
            )
        )

    add_tool_message = add_tool_result

    def inject_system_context(self, content: str) -> ConversationStore:
        self._logger.debug("Injecting system context")
        return self.append(Message(role=MessageRole.SYSTEM, content=content))

    # Executor-facing shorthands

    def as_user(self, content: str) -> ConversationStore:
        return self.add_user_message(content)

    def as_assistant(
        self, content: str | None, tool_calls: list[ToolCall] | None = None
    ) -> ConversationStore:
        if tool_calls:
            return self.add_assistant_with_tool_calls(content, tool_calls)
        return self.add_assistant_message(content)

    def as_tool(
        self,
        tool_call_id: str,
        result: Any,
        metadata: dict[str, Any] | None = None,
        tool_name: str | None = None,
    ) -> ConversationStore:
        """Append a tool result, JSON-encoding anything that is not already a string."""
        content = result if isinstance(result, str) else json.dumps(result, default=str)
        return self.add_tool_result(tool_call_id, content, tool_name=tool_name, metadata=metadata)

    # --- Context injection ---

    def inject_context(
        self,
        items: list[ContextItem | dict[str, Any]],
        options: InjectOptions | None = None,
        **overrides: Any,
    ) -> ConversationStore:
        """
        Insert context items as user turns.

        Args:
            items: Items (or dicts) to inject, in the order they should appear.
            options: Injection options; keyword arguments override its fields.

        Items are inserted consecutively starting at the resolved position.
        With deduplication on, an item already seen under the chosen key
        (or earlier in the same batch) is skipped.
        """
        opts = options or InjectOptions()
        if overrides:
            opts = opts.model_copy(update=InjectOptions(**overrides).model_dump(exclude_unset=True))
        deduplicate = self.deduplicate_context if opts.deduplicate is None else opts.deduplicate

        self._logger.debug(f"Injecting {len(items)} context items at {opts.position}")

        position = self._resolve_position(opts.position)
        inserted = 0

        for raw in items:
            item = raw if isinstance(raw, ContextItem) else ContextItem.model_validate(raw)
            item = item.model_copy(
                update={
                    "priority": item.priority or opts.priority,
                    "weight": item.weight or opts.weight,
                    "category": item.category or opts.category,
                    "source": item.source or opts.source,
                    "timestamp": item.timestamp or datetime.now(UTC),
                }
            )

            if deduplicate and self._is_duplicate(item, opts.deduplicate_by):
                self._logger.debug(f"Skipping duplicate context ({opts.deduplicate_by.value})")
                continue

            index = position + inserted
            self._messages.insert(
                index, Message(role=MessageRole.USER, content=self._format_context_item(item, opts.format))
            )
            inserted += 1

            if self.track_context or deduplicate:
                tracked = self._tracker.track(item, index)
                self._context_provided.add(tracked.id)

        if inserted:
            self._update_metadata()
        return self

    def _is_duplicate(self, item: ContextItem, mode: DeduplicateBy) -> bool:
        if mode == DeduplicateBy.ID:
            return bool(item.id) and (item.id in self._context_provided or self._tracker.has_context(item.id))
        if mode == DeduplicateBy.HASH:
            return self._tracker.has_content_hash(item.content)
        return self._tracker.has_similar_content(item)

    def _resolve_position(self, position: InjectPosition | int) -> int:
        length = len(self._messages)
        if isinstance(position, int):
            return max(0, min(position, length))
        if position == InjectPosition.BEFORE_LAST:
            return max(0, length - 1)
        if position == InjectPosition.AFTER_SYSTEM:
            for i in range(length - 1, -1, -1):
                if self._messages[i].role == MessageRole.SYSTEM:
                    return i + 1
            return 0
        return length

    @staticmethod
    def _format_context_item(item: ContextItem, fmt: InjectFormat) -> str:
        if fmt == InjectFormat.INLINE:
            prefix = f"{item.title}: " if item.title else ""
            return f"Note: {prefix}{item.content}"

        if fmt == InjectFormat.REFERENCE:
            suffix = f" for {item.title}" if item.title else ""
            return f"[Context Reference: {item.id or 'unknown'}]\nSee attached context{suffix}"

        result = f"## {item.title or 'Context'}\n\n{item.content}"
        footer = []
        if item.source:
            footer.append(f"Source: {item.source}")
        if item.timestamp:
            footer.append(f"Timestamp: {item.timestamp.isoformat()}")
        if footer:
            result += f"\n\n_{' | '.join(footer)}_"
        return result

    # --- Bulk mutation ---

    def truncate(self, max_messages: int) -> ConversationStore:
        """Keep only the last ``max_messages`` messages."""
        self._logger.debug(f"Truncating conversation to {max_messages} (current {len(self._messages)})")
        if len(self._messages) > max_messages:
            self._messages = self._messages[-max_messages:] if max_messages > 0 else []
            self._update_metadata()
        return self

    def remove_messages_of_type(self, role: MessageRole | str) -> ConversationStore:
        role = MessageRole(role)
        self._logger.debug(f"Removing {role.value} messages")
        self._messages = [m for m in self._messages if m.role != role]
        self._update_metadata()
        return self

    def clone(self) -> ConversationStore:
        """Deep copy for independent exploration; the budget manager is shared."""
        self._logger.debug("Cloning conversation")
        cloned = ConversationStore(
            model=self.model,
            track_context=self.track_context,
            deduplicate_context=self.deduplicate_context,
            logger=self._logger,
        )
        cloned._messages = [m.model_copy(deep=True) for m in self._messages]
        cloned._metadata = self._metadata.model_copy()
        cloned._context_provided = set(self._context_provided)
        cloned._emitted_tool_call_ids = set(self._emitted_tool_call_ids)
        cloned._budget = self._budget
        for tracked in self._tracker.get_all():
            cloned._tracker.restore(tracked)
        return cloned

    # --- Queries ---

    def get_messages(self) -> list[Message]:
        return list(self._messages)

    def to_messages(self) -> list[Message]:
        """Copies of every message, safe to hand to an LLM client."""
        return [m.model_copy(deep=True) for m in self._messages]

    def get_last_message(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    @property
    def message_count(self) -> int:
        return len(self._messages)

    def has_tool_calls(self) -> bool:
        return self._metadata.tool_call_count > 0

    @property
    def metadata(self) -> ConversationMetadata:
        return self._metadata.model_copy()

    @property
    def context_tracker(self) -> ContextTracker:
        return self._tracker

    @property
    def context_provided(self) -> set[str]:
        return set(self._context_provided)

    def __len__(self) -> int:
        return len(self._messages)

    # --- Token budget ---

    def with_token_budget(
        self,
        config: TokenBudgetConfig,
        counter: TokenCostFunction | None = None,
    ) -> ConversationStore:
        self._logger.debug(f"Configuring token budget max={config.max_tokens}")
        self._budget = TokenBudgetManager(config, model=self.model, counter=counter, logger=self._logger)
        return self

    @property
    def budget(self) -> TokenBudgetManager | None:
        return self._budget

    def get_token_usage(self) -> TokenUsage:
        if self._budget is None:
            return TokenUsage(used=0, max=float("inf"), remaining=float("inf"), percentage=0.0)
        return self._budget.get_current_usage(self._messages)

    def compress(self) -> ConversationStore:
        if self._budget is not None:
            self._messages = self._budget.compress(self._messages)
            self._update_metadata()
        return self

    def _apply_budget_policy(self, budget: TokenBudgetManager, message: Message) -> None:
        action = budget.config.on_budget_exceeded

        if action == BudgetExceededAction.ERROR:
            raise BudgetExceededError(budget.get_current_usage(self._messages + [message]))

        if action == BudgetExceededAction.WARN:
            self._logger.warning("Token budget exceeded; adding message anyway")
            return

        if action == BudgetExceededAction.TRUNCATE:
            self._logger.warning("Token budget exceeded, truncating conversation")
            while not budget.can_add_message(message, self._messages):
                shorter = budget.truncate(self._messages, len(self._messages) - 1)
                if len(shorter) == len(self._messages):
                    break
                self._messages = shorter
        else:
            self._logger.warning("Token budget exceeded, compressing conversation")
            self._messages = budget.compress(self._messages)

        self._update_metadata()

    # --- Serialization ---

    def to_json(self) -> str:
        payload = {
            "messages": [m.model_dump(mode="json", exclude_none=True) for m in self._messages],
            "metadata": self._metadata.model_dump(mode="json", by_alias=True),
            "contextProvided": sorted(self._context_provided),
        }
        return json.dumps(payload, indent=2)

    @classmethod
    def from_json(
        cls,
        data: str,
        logger: logging.Logger | None = None,
        **kwargs: Any,
    ) -> ConversationStore:
        """
        Restore a store from :meth:`to_json` output.

        Raises:
            ConversationDeserializationError: If the document is not valid JSON,
                a required field is missing, or the metadata disagrees with
                the message list.
        """
        try:
            parsed = SerializedConversation.model_validate_json(data)
        except ValidationError as e:
            raise ConversationDeserializationError(f"Invalid serialized conversation: {e}") from e

        if parsed.metadata.message_count != len(parsed.messages):
            raise ConversationDeserializationError(
                f"messageCount {parsed.metadata.message_count} does not match "
                f"{len(parsed.messages)} messages"
            )

        store = cls(model=kwargs.pop("model", parsed.metadata.model), logger=logger, **kwargs)
        store._messages = list(parsed.messages)
        store._metadata = parsed.metadata
        store._context_provided = set(parsed.context_provided)
        for message in store._messages:
            if message.tool_calls:
                store._emitted_tool_call_ids.update(tc.id for tc in message.tool_calls)
            if message.tool_call_id:
                store._emitted_tool_call_ids.add(message.tool_call_id)
        store._metadata.tool_call_count = store._count_tool_calls()
        return store

    # --- Internals ---

    def _count_tool_calls(self) -> int:
        return sum(
            len(m.tool_calls) for m in self._messages if m.role == MessageRole.ASSISTANT and m.tool_calls
        )

    def _update_metadata(self) -> None:
        self._metadata.message_count = len(self._messages)
        self._metadata.tool_call_count = self._count_tool_calls()
        self._metadata.last_modified = datetime.now(UTC)

