# chuk_ai_agent_engine/reflection/report.py
"""
ReflectionReportGenerator - turns collected metrics into a report with a
quality score and actionable recommendations, and renders it as Markdown.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from chuk_ai_agent_engine.reflection.models import (
    AgenticExecutionMetrics,
    ExecutionSummary,
    FailedTool,
    InvestigationDepth,
    PerformanceInsights,
    QualityAssessment,
    Recommendation,
    RecommendationType,
    ReflectionReport,
    Severity,
    SlowTool,
    TimelineEvent,
    ToolEffectivenessAnalysis,
    ToolTiming,
    ToolUsageCount,
)

if TYPE_CHECKING:
    from chuk_ai_agent_engine.strategy.models import StrategyResult

logger = logging.getLogger(__name__)

# Average duration (ms) above which a tool is reported as slow
SLOW_TOOL_MS = 1000
# Average iteration duration (ms) above which iterations are a bottleneck
SLOW_ITERATION_MS = 10000
# Token usage percentage above which the budget is flagged
TOKEN_USAGE_ALERT = 80
MOST_USED_LIMIT = 5

DEPTH_SCORES = {
    InvestigationDepth.DEEP: 1.0,
    InvestigationDepth.MODERATE: 0.7,
    InvestigationDepth.SHALLOW: 0.3,
}
# Distinct tools that earn the full diversity score
DIVERSITY_TARGET = 5
# Tool calls per iteration that earn the full efficiency score
EFFICIENCY_TARGET = 2


class ReflectionReportGenerator:
    """
    Builds :class:`ReflectionReport` records from run metrics.

    Usage::

        generator = ReflectionReportGenerator()
        report = generator.generate(metrics, result)
        print(generator.format_markdown(report))
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)

    def generate(
        self,
        metrics: AgenticExecutionMetrics,
        result: StrategyResult | None = None,
        include_conversation: bool = False,
        include_recommendations: bool = True,
    ) -> ReflectionReport:
        self._logger.debug("Generating reflection report")

        generated = datetime.now(UTC)
        history = None
        output = None
        if result is not None:
            if include_conversation and result.conversation is not None:
                history = result.conversation.get_messages()
            if result.final_message is not None and result.final_message.content:
                output = result.final_message.content

        report = ReflectionReport(
            id=f"reflection-{int(generated.timestamp() * 1000)}",
            generated=generated,
            summary=self._summary(metrics),
            tool_effectiveness=self._tool_effectiveness(metrics),
            performance_insights=self._performance(metrics),
            timeline=self._timeline(metrics),
            token_usage=metrics.token_usage,
            quality_assessment=self.assess_quality(metrics),
            recommendations=self.recommend(metrics) if include_recommendations else [],
            conversation_history=history,
            output=output,
        )

        self._logger.info(
            f"Generated reflection report with {len(report.recommendations)} recommendations "
            f"over {len(metrics.tool_stats)} tools"
        )
        return report

    # --- Sections ---

    @staticmethod
    def _success_rate(metrics: AgenticExecutionMetrics, empty: float) -> float:
        if not metrics.tool_metrics:
            return empty
        return sum(1 for m in metrics.tool_metrics if m.success) / len(metrics.tool_metrics)

    def _summary(self, metrics: AgenticExecutionMetrics) -> ExecutionSummary:
        return ExecutionSummary(
            start_time=metrics.start_time,
            end_time=metrics.end_time,
            total_duration=metrics.total_duration,
            iterations=metrics.iterations,
            tool_calls_executed=metrics.tool_calls_executed,
            unique_tools_used=metrics.tool_diversity,
            success_rate=self._success_rate(metrics, empty=0.0),
        )

    def _tool_effectiveness(self, metrics: AgenticExecutionMetrics) -> ToolEffectivenessAnalysis:
        stats = list(metrics.tool_stats.values())

        failed = sorted(
            (FailedTool(name=s.name, failures=s.failures, rate=s.success_rate) for s in stats if s.failures > 0),
            key=lambda t: t.failures,
            reverse=True,
        )
        slow = sorted(
            (SlowTool(name=s.name, avg_duration=s.avg_duration) for s in stats if s.avg_duration > SLOW_TOOL_MS),
            key=lambda t: t.avg_duration,
            reverse=True,
        )
        most_used = sorted(
            (ToolUsageCount(name=s.name, count=s.total) for s in stats),
            key=lambda t: t.count,
            reverse=True,
        )[:MOST_USED_LIMIT]

        return ToolEffectivenessAnalysis(
            overall_success_rate=self._success_rate(metrics, empty=1.0),
            tool_stats=dict(metrics.tool_stats),
            failed_tools=failed,
            slow_tools=slow,
            most_used_tools=most_used,
        )

    def _performance(self, metrics: AgenticExecutionMetrics) -> PerformanceInsights:
        avg_iteration = metrics.total_duration / metrics.iterations if metrics.iterations > 0 else 0.0

        by_speed = sorted(metrics.tool_stats.values(), key=lambda s: s.avg_duration, reverse=True)
        slowest = ToolTiming(name=by_speed[0].name, duration=by_speed[0].avg_duration) if by_speed else None
        fastest = ToolTiming(name=by_speed[-1].name, duration=by_speed[-1].avg_duration) if by_speed else None

        bottlenecks: list[str] = []
        if slowest and slowest.duration > SLOW_TOOL_MS:
            bottlenecks.append(f"{slowest.name} averaging {slowest.duration:.0f}ms")
        if avg_iteration > SLOW_ITERATION_MS:
            bottlenecks.append(f"Slow iterations averaging {avg_iteration:.0f}ms")

        return PerformanceInsights(
            total_duration=metrics.total_duration,
            avg_iteration_duration=avg_iteration,
            slowest_tool=slowest,
            fastest_tool=fastest,
            bottlenecks=bottlenecks,
        )

    def _timeline(self, metrics: AgenticExecutionMetrics) -> list[TimelineEvent]:
        events = [
            TimelineEvent(
                timestamp=m.timestamp,
                iteration=m.iteration,
                description=f"{m.name}({'success' if m.success else 'failure'})",
                duration=m.duration,
                success=m.success,
            )
            for m in metrics.tool_metrics
        ]
        return sorted(events, key=lambda e: e.timestamp)

    def assess_quality(self, metrics: AgenticExecutionMetrics) -> QualityAssessment:
        """Overall score is the mean of the depth, diversity and efficiency scores."""
        coverage = (
            min(1.0, metrics.tool_calls_executed / (metrics.iterations * 2)) if metrics.iterations > 0 else 0.0
        )

        depth_score = DEPTH_SCORES[metrics.investigation_depth]
        diversity_score = min(1.0, metrics.tool_diversity / DIVERSITY_TARGET)
        efficiency_score = min(1.0, metrics.iteration_efficiency / EFFICIENCY_TARGET)

        return QualityAssessment(
            investigation_depth=metrics.investigation_depth,
            tool_diversity=metrics.tool_diversity,
            iteration_efficiency=metrics.iteration_efficiency,
            coverage=coverage,
            overall=(depth_score + diversity_score + efficiency_score) / 3,
        )

    def recommend(self, metrics: AgenticExecutionMetrics) -> list[Recommendation]:
        """Each rule fires independently; several may apply to one run."""
        recommendations: list[Recommendation] = []
        stats = list(metrics.tool_stats.values())

        failed = [s for s in stats if s.failures > 0]
        if failed:
            recommendations.append(
                Recommendation(
                    type=RecommendationType.TOOL_FAILURE,
                    severity=Severity.HIGH,
                    message=f"{len(failed)} tool(s) had failures. Review tool implementations.",
                    suggestion="Check error logs and validate tool parameters",
                    related_tools=[s.name for s in failed],
                )
            )

        if metrics.investigation_depth == InvestigationDepth.SHALLOW and metrics.tool_calls_executed < 2:
            recommendations.append(
                Recommendation(
                    type=RecommendationType.INVESTIGATION_DEPTH,
                    severity=Severity.MEDIUM,
                    message="Investigation was shallow. Consider adjusting strategy to encourage more tool usage.",
                    suggestion="Use the investigate_then_respond strategy with require_minimum_tools",
                )
            )

        slow = [s for s in stats if s.avg_duration > SLOW_TOOL_MS]
        if slow:
            recommendations.append(
                Recommendation(
                    type=RecommendationType.PERFORMANCE,
                    severity=Severity.MEDIUM,
                    message=f"{len(slow)} tool(s) taking >1s. Consider optimization.",
                    suggestion="Add caching, reduce scope, or optimize implementations",
                    related_tools=[s.name for s in slow],
                )
            )

        usage = metrics.token_usage
        if usage is not None and usage.percentage is not None and usage.percentage > TOKEN_USAGE_ALERT:
            recommendations.append(
                Recommendation(
                    type=RecommendationType.TOKEN_BUDGET,
                    severity=Severity.HIGH,
                    message=f"Token usage at {usage.percentage:.1f}%. Increase budget or enable compression.",
                    suggestion="Increase max tokens or use priority-based compression",
                    related_metrics={"percentage": usage.percentage, "budget": usage.budget},
                )
            )

        return recommendations

    # --- Rendering ---

    def format_markdown(self, report: ReflectionReport) -> str:
        summary = report.summary
        quality = report.quality_assessment
        effectiveness = report.tool_effectiveness

        lines = [
            "# Agentic Execution - Self-Reflection Report",
            "",
            f"**Generated:** {report.generated.isoformat()}",
            f"**Duration:** {summary.total_duration / 1000:.1f}s",
            "",
            "## Execution Summary",
            "",
            f"- **Iterations**: {summary.iterations}",
            f"- **Tool Calls**: {summary.tool_calls_executed}",
            f"- **Unique Tools**: {summary.unique_tools_used}",
            f"- **Investigation Depth**: {quality.investigation_depth.value}",
            f"- **Success Rate**: {summary.success_rate * 100:.1f}%",
            "",
            "## Tool Effectiveness Analysis",
            "",
            "| Tool | Calls | Success | Failures | Success Rate | Avg Duration |",
            "|------|-------|---------|----------|--------------|--------------|",
        ]
        for name, stats in effectiveness.tool_stats.items():
            lines.append(
                f"| {name} | {stats.total} | {stats.successes} | {stats.failures} | "
                f"{stats.success_rate * 100:.1f}% | {stats.avg_duration:.0f}ms |"
            )

        if effectiveness.failed_tools:
            lines += ["", "### Tools with Failures", ""]
            lines += [
                f"- **{t.name}**: {t.failures} failures ({t.rate * 100:.1f}% success)"
                for t in effectiveness.failed_tools
            ]

        if effectiveness.slow_tools:
            lines += ["", "### Slow Tools (>1s average)", ""]
            lines += [f"- **{t.name}**: {t.avg_duration / 1000:.2f}s average" for t in effectiveness.slow_tools]

        perf = report.performance_insights
        if perf.bottlenecks:
            lines += ["", "## Performance Bottlenecks", ""]
            lines += [f"- {b}" for b in perf.bottlenecks]

        if report.token_usage is not None:
            usage = report.token_usage
            lines += ["", "## Token Usage", "", f"- **Total**: {usage.total}"]
            if usage.percentage is not None:
                lines.append(f"- **Budget Used**: {usage.percentage:.1f}% of {usage.budget:.0f}")

        lines += [
            "",
            "## Quality Assessment",
            "",
            f"- **Overall Score**: {quality.overall * 100:.0f}%",
            f"- **Investigation Depth**: {quality.investigation_depth.value}",
            f"- **Tool Diversity**: {quality.tool_diversity} unique tools",
            f"- **Efficiency**: {quality.iteration_efficiency:.2f} tools per iteration",
            "",
        ]

        if report.recommendations:
            lines += ["## Recommendations", ""]
            for severity, heading in (
                (Severity.HIGH, "High Priority"),
                (Severity.MEDIUM, "Medium Priority"),
                (Severity.LOW, "Low Priority"),
            ):
                recs = [r for r in report.recommendations if r.severity == severity]
                if not recs:
                    continue
                lines += [f"### {heading}", ""]
                for i, rec in enumerate(recs, 1):
                    lines.append(f"{i}. **{rec.message}**")
                    if rec.suggestion:
                        lines.append(f"   - Suggestion: {rec.suggestion}")
                    lines.append("")

        if report.output:
            lines += ["## Final Output", "", "```", report.output, "```", ""]

        lines += ["---", "", "*Report generated by chuk-ai-agent-engine reflection*", ""]
        return "\n".join(lines)
