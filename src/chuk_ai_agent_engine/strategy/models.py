# chuk_ai_agent_engine/strategy/models.py
"""
Data models for multi-phase strategies.

These models represent:
- Strategy and phase configuration (policies, limits, predicates, hooks)
- Mutable per-run state shared by every phase
- Per-phase and whole-run results
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from chuk_ai_agent_engine.config import DEFAULT_CIRCUIT_BREAKER_THRESHOLD, DEFAULT_MAX_ITERATIONS
from chuk_ai_agent_engine.models.message import Message, ToolCall
from chuk_ai_agent_engine.reflection.models import ReflectionReport


class ToolUsagePolicy(str, Enum):
    """How strongly a phase solicits tool calls."""

    REQUIRED = "required"
    ENCOURAGED = "encouraged"
    OPTIONAL = "optional"
    FORBIDDEN = "forbidden"  # no tool schemas are offered


class IterationAction(str, Enum):
    """Returned by ``on_iteration``."""

    CONTINUE = "continue"
    STOP = "stop"  # ends the whole run, not only the current phase like NEXT_PHASE
    NEXT_PHASE = "next-phase"


class ToolCallAction(str, Enum):
    """Returned by ``on_tool_call``."""

    EXECUTE = "execute"
    SKIP = "skip"
    DEFER = "defer"


class ToolFormat(str, Enum):
    """Tool schema shape handed to the LLM client."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"


# =============================================================================
# Run state
# =============================================================================


class Insight(BaseModel):
    """Something learned during a run, recorded by hooks."""

    source: str
    content: str
    confidence: float = Field(1.0, ge=0.0, le=1.0)
    related_to: list[str] = Field(default_factory=list)


class StrategyState(BaseModel):
    """
    Mutable state for one ``execute()`` call.

    ``iteration`` counts within the current phase; ``total_iterations``
    counts across the whole run. Hooks may stash extra attributes.
    """

    model_config = {"arbitrary_types_allowed": True, "extra": "allow"}

    phase: str | int = 0
    iteration: int = 0
    total_iterations: int = 0
    tool_calls_executed: int = 0
    start_time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    insights: list[Insight] = Field(default_factory=list)
    findings: list[Any] = Field(default_factory=list)
    errors: list[Exception] = Field(default_factory=list)
    tool_failures: dict[str, int] = Field(
        default_factory=dict, description="Consecutive failures per tool name"
    )


class ToolResult(BaseModel):
    """Outcome of one tool execution, passed to ``on_tool_result``."""

    model_config = {"arbitrary_types_allowed": True}

    call_id: str
    tool_name: str
    result: Any = None
    error: Exception | None = None
    duration: float = Field(0.0, description="Milliseconds")

    @property
    def success(self) -> bool:
        return self.error is None


class LLMResponse(BaseModel):
    """What an LLM client returns for one completion."""

    content: str | None = None
    tool_calls: list[ToolCall] | None = None


# =============================================================================
# Configuration
# =============================================================================

StatePredicate = Callable[[StrategyState], bool | Awaitable[bool]]


class Phase(BaseModel):
    """A bounded sub-loop with its own tool policy and exit conditions."""

    name: str
    max_iterations: int = Field(DEFAULT_MAX_ITERATIONS, ge=0)
    tool_usage: ToolUsagePolicy = ToolUsagePolicy.ENCOURAGED
    allowed_tools: list[str] | None = None
    min_tool_calls: int | None = Field(None, ge=0)
    max_tool_calls: int | None = Field(None, ge=1)
    instructions: str | None = None
    early_exit: bool = True
    # Descriptive only; the executor does not act on these two
    require_final_answer: bool = False
    adaptive_depth: bool = False
    max_consecutive_tool_failures: int = Field(DEFAULT_CIRCUIT_BREAKER_THRESHOLD, ge=1)

    continue_if: StatePredicate | None = Field(None, exclude=True)
    skip_if: StatePredicate | None = Field(None, exclude=True)


class Strategy(BaseModel):
    """
    Ordered phases plus lifecycle hooks.

    Without ``phases`` the strategy runs one implicit ``default`` phase of
    ``max_iterations`` with encouraged tool use. Every hook may be a plain
    function or a coroutine function.
    """

    name: str
    description: str = ""
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    phases: list[Phase] | None = None

    # Lifecycle hooks
    on_start: Callable[..., Any] | None = Field(None, exclude=True)
    on_iteration: Callable[..., Any] | None = Field(None, exclude=True)
    on_tool_call: Callable[..., Any] | None = Field(None, exclude=True)
    on_tool_result: Callable[..., Any] | None = Field(None, exclude=True)
    on_phase_complete: Callable[..., Any] | None = Field(None, exclude=True)
    on_complete: Callable[..., Any] | None = Field(None, exclude=True)

    # Decision logic
    should_continue: Callable[..., Any] | None = Field(None, exclude=True)
    select_tools: Callable[..., Any] | None = Field(None, exclude=True)

    def resolved_phases(self) -> list[Phase]:
        if self.phases:
            return list(self.phases)
        return [
            Phase(
                name="default",
                max_iterations=self.max_iterations,
                tool_usage=ToolUsagePolicy.ENCOURAGED,
            )
        ]


# =============================================================================
# Results
# =============================================================================


class PhaseResult(BaseModel):
    name: str
    iterations: int
    tool_calls: int
    success: bool = True
    insights: list[Insight] = Field(default_factory=list)


class StrategyResult(BaseModel):
    """
    Outcome of one run. ``success`` is False when an error escaped the
    per-tool recovery boundary; ``phases`` then holds what completed.
    """

    final_message: Message | None = None
    phases: list[PhaseResult] = Field(default_factory=list)
    total_iterations: int = 0
    tool_calls_executed: int = 0
    duration: float = Field(0.0, description="Milliseconds")
    success: bool = True
    error: str | None = None
    conversation: Any = Field(None, exclude=True)  # ConversationStore
    reflection: ReflectionReport | None = None
