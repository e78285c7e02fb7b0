# chuk_ai_agent_engine/reflection/__init__.py
"""
Post-run reflection: metrics collection, quality scoring, recommendations
and report persistence.
"""

from .metrics import MetricsCollector, classify_depth
from .models import (
    AgenticExecutionMetrics,
    ExecutionSummary,
    InvestigationDepth,
    PerformanceInsights,
    QualityAssessment,
    Recommendation,
    RecommendationType,
    ReflectionConfig,
    ReflectionFormat,
    ReflectionReport,
    Severity,
    TimelineEvent,
    TokenUsageMetrics,
    ToolEffectivenessAnalysis,
    ToolExecutionMetric,
    ToolStats,
)
from .report import ReflectionReportGenerator
from .writer import reflection_filename, save_reflection

__all__ = [
    "AgenticExecutionMetrics",
    "ExecutionSummary",
    "InvestigationDepth",
    "MetricsCollector",
    "PerformanceInsights",
    "QualityAssessment",
    "Recommendation",
    "RecommendationType",
    "ReflectionConfig",
    "ReflectionFormat",
    "ReflectionReport",
    "ReflectionReportGenerator",
    "Severity",
    "TimelineEvent",
    "TokenUsageMetrics",
    "ToolEffectivenessAnalysis",
    "ToolExecutionMetric",
    "ToolStats",
    "classify_depth",
    "reflection_filename",
    "save_reflection",
]
