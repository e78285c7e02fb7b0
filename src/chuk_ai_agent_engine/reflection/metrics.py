# chuk_ai_agent_engine/reflection/metrics.py
"""
MetricsCollector - passive, append-only recorder of one strategy run.

The executor records every tool execution and every iteration; nothing here
influences the run. ``get_metrics`` derives the aggregates afterwards.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import UTC, datetime

from chuk_ai_agent_engine.budget.counter import TokenCostFunction
from chuk_ai_agent_engine.budget.manager import TokenBudgetManager
from chuk_ai_agent_engine.models.message import Message, MessageRole
from chuk_ai_agent_engine.reflection.models import (
    AgenticExecutionMetrics,
    InvestigationDepth,
    TokenUsageMetrics,
    ToolExecutionMetric,
    ToolStats,
)

logger = logging.getLogger(__name__)

# Total tool calls below which a run counts as shallow / moderate
SHALLOW_TOOL_CALLS = 3
MODERATE_TOOL_CALLS = 8


def classify_depth(total_tool_calls: int) -> InvestigationDepth:
    if total_tool_calls < SHALLOW_TOOL_CALLS:
        return InvestigationDepth.SHALLOW
    if total_tool_calls < MODERATE_TOOL_CALLS:
        return InvestigationDepth.MODERATE
    return InvestigationDepth.DEEP


class MetricsCollector:
    """
    Records tool executions and iterations for later reflection.

    Usage::

        collector = MetricsCollector()
        collector.increment_iteration()
        collector.record_tool_call("read_file", iteration=1, duration=12.5, success=True)
        metrics = collector.get_metrics(conversation.get_messages(), budget=conversation.budget)
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.start_time = datetime.now(UTC)
        self._tool_metrics: list[ToolExecutionMetric] = []
        self._iterations = 0
        self._logger = logger or logging.getLogger(__name__)

    def record_tool_call(
        self,
        name: str,
        iteration: int,
        duration: float,
        success: bool,
        error: str | None = None,
        input_size: int | None = None,
        output_size: int | None = None,
    ) -> None:
        self._tool_metrics.append(
            ToolExecutionMetric(
                name=name,
                iteration=iteration,
                duration=duration,
                success=success,
                error=error,
                input_size=input_size,
                output_size=output_size,
            )
        )

    def increment_iteration(self) -> None:
        self._iterations += 1

    @property
    def iterations(self) -> int:
        return self._iterations

    @property
    def tool_metrics(self) -> list[ToolExecutionMetric]:
        return list(self._tool_metrics)

    # --- Derivation ---

    def get_metrics(
        self,
        messages: list[Message],
        budget: TokenBudgetManager | None = None,
        counter: TokenCostFunction | None = None,
    ) -> AgenticExecutionMetrics:
        """
        Aggregate everything recorded so far.

        Args:
            messages: Final conversation, used for message and token counts.
            budget: When given, token usage is priced by its counter and
                reported as a percentage of its budget.
            counter: Prices tokens when there is no budget. Without either,
                token usage is omitted.
        """
        end_time = datetime.now(UTC)
        total_duration = (end_time - self.start_time).total_seconds() * 1000

        total_tools = len(self._tool_metrics)
        unique_tools = {m.name for m in self._tool_metrics}
        efficiency = total_tools / self._iterations if self._iterations > 0 else 0.0

        return AgenticExecutionMetrics(
            start_time=self.start_time,
            end_time=end_time,
            total_duration=total_duration,
            iterations=self._iterations,
            tool_calls_executed=total_tools,
            tool_metrics=list(self._tool_metrics),
            tool_stats=self._calculate_tool_stats(),
            message_count=len(messages),
            token_usage=self._token_usage(messages, budget, counter),
            investigation_depth=classify_depth(total_tools),
            tool_diversity=len(unique_tools),
            iteration_efficiency=efficiency,
        )

    def _calculate_tool_stats(self) -> dict[str, ToolStats]:
        by_tool: dict[str, list[ToolExecutionMetric]] = defaultdict(list)
        for metric in self._tool_metrics:
            by_tool[metric.name].append(metric)

        stats: dict[str, ToolStats] = {}
        for name, metrics in by_tool.items():
            total = len(metrics)
            successes = sum(1 for m in metrics if m.success)
            total_duration = sum(m.duration for m in metrics)
            stats[name] = ToolStats(
                name=name,
                total=total,
                successes=successes,
                failures=total - successes,
                total_duration=total_duration,
                avg_duration=total_duration / total,
                success_rate=successes / total,
            )
        return stats

    def _token_usage(
        self,
        messages: list[Message],
        budget: TokenBudgetManager | None,
        counter: TokenCostFunction | None,
    ) -> TokenUsageMetrics | None:
        pricer = budget.counter if budget is not None else counter
        if pricer is None:
            return None

        by_role: dict[MessageRole, int] = defaultdict(int)
        for message in messages:
            by_role[message.role] += pricer.count_message(message)
        total = sum(by_role.values())

        usage = TokenUsageMetrics(
            total=total,
            system_prompt=by_role[MessageRole.SYSTEM],
            user_content=by_role[MessageRole.USER],
            tool_results=by_role[MessageRole.TOOL],
            conversation=total,
        )
        if budget is not None:
            usage.budget = budget.config.max_tokens
            usage.percentage = total / budget.config.max_tokens * 100
        return usage
