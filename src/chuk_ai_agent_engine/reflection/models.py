# chuk_ai_agent_engine/reflection/models.py
"""
Data models for run reflection.

These models represent:
- Individual tool executions observed during a run (metrics)
- Per-tool aggregates and whole-run metrics
- The derived report: effectiveness, performance, quality and recommendations
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from chuk_ai_agent_engine.base_models import DictCompatModel
from chuk_ai_agent_engine.models.message import Message


class InvestigationDepth(str, Enum):
    """How thoroughly tools were used during a run."""

    SHALLOW = "shallow"
    MODERATE = "moderate"
    DEEP = "deep"


class RecommendationType(str, Enum):
    TOOL_FAILURE = "tool-failure"
    PERFORMANCE = "performance"
    INVESTIGATION_DEPTH = "investigation-depth"
    TOKEN_BUDGET = "token-budget"
    STRATEGY_ADJUSTMENT = "strategy-adjustment"
    QUALITY_ISSUE = "quality-issue"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ReflectionFormat(str, Enum):
    """File format for saved reports."""

    MARKDOWN = "markdown"
    JSON = "json"


# =============================================================================
# Metrics
# =============================================================================


class ToolExecutionMetric(BaseModel):
    """One observed tool execution."""

    name: str
    iteration: int
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    duration: float = Field(..., description="Milliseconds")
    success: bool
    error: str | None = None
    input_size: int | None = None
    output_size: int | None = None


class ToolStats(DictCompatModel):
    """Aggregate over every execution of one tool."""

    name: str
    total: int = 0
    successes: int = 0
    failures: int = 0
    total_duration: float = 0.0
    avg_duration: float = 0.0
    success_rate: float = 0.0


class TokenUsageMetrics(DictCompatModel):
    """Token cost of the final conversation, split by role."""

    total: int
    system_prompt: int = 0
    user_content: int = 0
    tool_results: int = 0
    conversation: int = 0
    percentage: float | None = None
    budget: float | None = None


class AgenticExecutionMetrics(BaseModel):
    """Everything the collector observed, plus the derived classifiers."""

    start_time: datetime
    end_time: datetime
    total_duration: float = Field(..., description="Milliseconds")
    iterations: int
    tool_calls_executed: int
    tool_metrics: list[ToolExecutionMetric] = Field(default_factory=list)
    tool_stats: dict[str, ToolStats] = Field(default_factory=dict)
    message_count: int = 0
    token_usage: TokenUsageMetrics | None = None
    investigation_depth: InvestigationDepth
    tool_diversity: int = Field(..., description="Number of distinct tools used")
    iteration_efficiency: float = Field(..., description="Tool calls per iteration")


# =============================================================================
# Report
# =============================================================================


class Recommendation(BaseModel):
    type: RecommendationType
    severity: Severity
    message: str
    suggestion: str | None = None
    related_tools: list[str] = Field(default_factory=list)
    related_metrics: dict[str, Any] | None = None


class ExecutionSummary(BaseModel):
    start_time: datetime
    end_time: datetime
    total_duration: float
    iterations: int
    tool_calls_executed: int
    unique_tools_used: int
    success_rate: float


class FailedTool(BaseModel):
    name: str
    failures: int
    rate: float = Field(..., description="Success rate of the tool")


class SlowTool(BaseModel):
    name: str
    avg_duration: float


class ToolUsageCount(BaseModel):
    name: str
    count: int


class ToolEffectivenessAnalysis(BaseModel):
    overall_success_rate: float
    tool_stats: dict[str, ToolStats] = Field(default_factory=dict)
    failed_tools: list[FailedTool] = Field(default_factory=list)
    slow_tools: list[SlowTool] = Field(default_factory=list)
    most_used_tools: list[ToolUsageCount] = Field(default_factory=list)


class ToolTiming(BaseModel):
    name: str
    duration: float


class PerformanceInsights(BaseModel):
    total_duration: float
    avg_iteration_duration: float
    slowest_tool: ToolTiming | None = None
    fastest_tool: ToolTiming | None = None
    bottlenecks: list[str] = Field(default_factory=list)


class TimelineEvent(BaseModel):
    timestamp: datetime
    iteration: int
    type: str = "tool-call"
    description: str
    duration: float | None = None
    success: bool | None = None


class QualityAssessment(BaseModel):
    """Scores in [0, 1] except the raw diversity count and efficiency ratio."""

    investigation_depth: InvestigationDepth
    tool_diversity: int
    iteration_efficiency: float
    coverage: float
    overall: float


class ReflectionReport(BaseModel):
    """Post-run analysis of one strategy execution."""

    id: str
    generated: datetime = Field(default_factory=lambda: datetime.now(UTC))
    summary: ExecutionSummary
    tool_effectiveness: ToolEffectivenessAnalysis
    performance_insights: PerformanceInsights
    timeline: list[TimelineEvent] = Field(default_factory=list)
    token_usage: TokenUsageMetrics | None = None
    quality_assessment: QualityAssessment
    recommendations: list[Recommendation] = Field(default_factory=list)
    conversation_history: list[Message] | None = None
    output: str | None = None


class ReflectionConfig(BaseModel):
    """Enables reflection on a StrategyExecutor and controls where reports go."""

    enabled: bool = True
    output_path: Path | None = None
    format: ReflectionFormat = ReflectionFormat.MARKDOWN
    include_conversation: bool = False
    include_recommendations: bool = True
