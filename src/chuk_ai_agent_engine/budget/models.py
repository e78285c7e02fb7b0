# chuk_ai_agent_engine/budget/models.py
"""Configuration and result records for token budgeting."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum

from pydantic import BaseModel, Field

from chuk_ai_agent_engine.base_models import DictCompatModel
from chuk_ai_agent_engine.config import DEFAULT_PRESERVE_RECENT, DEFAULT_WARNING_THRESHOLD


class CompressionStrategy(str, Enum):
    """How messages are selected when the budget is exceeded."""

    PRIORITY_BASED = "priority-based"
    FIFO = "fifo"
    ADAPTIVE = "adaptive"


class BudgetExceededAction(str, Enum):
    """What a conversation does when a new message would not fit."""

    COMPRESS = "compress"
    ERROR = "error"
    WARN = "warn"
    TRUNCATE = "truncate"


class TokenUsage(DictCompatModel):
    """Snapshot of budget consumption."""

    used: int
    max: float
    remaining: float
    percentage: float


class CompressionStats(DictCompatModel):
    """Emitted after every compression run."""

    messages_before: int
    messages_after: int
    tokens_before: int
    tokens_after: int
    tokens_saved: int
    strategy: CompressionStrategy


class PriorityWeights(BaseModel):
    """
    Weights for priority-based retention.

    score = base (system or default) + index/total * recency
            + tool_result (role=tool) + tool_call (has tool_calls)

    The defaults order messages system > recent > tool-involved; only that
    relative ordering is relied upon.
    """

    system_base: float = 10.0
    default_base: float = 1.0
    recency: float = 2.0
    tool_result: float = 0.5
    tool_call: float = 0.8


class TokenBudgetConfig(BaseModel):
    """Token budget limits, compression policy and observers."""

    max_tokens: int = Field(gt=0, description="Hard ceiling on conversation cost")
    reserve_for_response: int = Field(default=0, ge=0, description="Tokens held back for the model's reply")
    strategy: CompressionStrategy = CompressionStrategy.FIFO
    warning_threshold: float = Field(default=DEFAULT_WARNING_THRESHOLD, gt=0)
    on_budget_exceeded: BudgetExceededAction = BudgetExceededAction.COMPRESS

    preserve_recent: int = Field(default=DEFAULT_PRESERVE_RECENT, ge=0)
    preserve_system: bool = True
    priority_weights: PriorityWeights = Field(default_factory=PriorityWeights)

    on_warning: Callable[[TokenUsage], None] | None = Field(default=None, exclude=True)
    on_compression: Callable[[CompressionStats], None] | None = Field(default=None, exclude=True)

    @property
    def target_tokens(self) -> int:
        """Budget available to messages once the response reserve is held back."""
        return self.max_tokens - self.reserve_for_response
