# chuk_ai_agent_engine/strategy/__init__.py
"""
Multi-phase tool-use strategies: configuration, the executor that runs
them, and prebuilt strategies.
"""

from .client import LLMClient
from .executor import StrategyContext, StrategyExecutor
from .factory import StrategyFactory
from .models import (
    Insight,
    IterationAction,
    LLMResponse,
    Phase,
    PhaseResult,
    Strategy,
    StrategyResult,
    StrategyState,
    ToolCallAction,
    ToolFormat,
    ToolResult,
    ToolUsagePolicy,
)

__all__ = [
    "Insight",
    "IterationAction",
    "LLMClient",
    "LLMResponse",
    "Phase",
    "PhaseResult",
    "Strategy",
    "StrategyContext",
    "StrategyExecutor",
    "StrategyFactory",
    "StrategyResult",
    "StrategyState",
    "ToolCallAction",
    "ToolFormat",
    "ToolResult",
    "ToolUsagePolicy",
]
