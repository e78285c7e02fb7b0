# chuk_ai_agent_engine/tools/__init__.py
"""
Callable tools: definitions, registry, execution accounting and schema export.
"""

from .models import (
    Tool,
    ToolBatchError,
    ToolBatchItem,
    ToolCapability,
    ToolContext,
    ToolCost,
    ToolDefinition,
    ToolExample,
    ToolUsageStats,
)
from .registry import ToolRegistry

__all__ = [
    "Tool",
    "ToolBatchError",
    "ToolBatchItem",
    "ToolCapability",
    "ToolContext",
    "ToolCost",
    "ToolDefinition",
    "ToolExample",
    "ToolRegistry",
    "ToolUsageStats",
]
