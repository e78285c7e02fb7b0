# chuk_ai_agent_engine/tools/models.py
"""
Data models for callable tools.

These models represent:
- Tool definitions (schema plus the capability that runs them)
- Per-tool usage statistics
- Batch execution items and their error wrappers
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, computed_field, field_validator

from chuk_ai_agent_engine.base_models import DictCompatModel

ToolContext = dict[str, Any]
"""Shared values handed to every capability (working directory, clients, ...)."""

ToolCapability = Callable[..., Any]
"""``(params, context) -> value``, sync or async."""


def _empty_schema() -> dict[str, Any]:
    return {"type": "object", "properties": {}}


class ToolCost(str, Enum):
    """Relative cost hint shown to strategies."""

    CHEAP = "cheap"
    MODERATE = "moderate"
    EXPENSIVE = "expensive"


class ToolExample(BaseModel):
    """Documented usage of a tool."""

    scenario: str
    params: dict[str, Any] = Field(default_factory=dict)
    expected_result: str | None = None


class ToolDefinition(BaseModel):
    """Everything about a tool except its capability."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=_empty_schema)
    category: str | None = None
    cost: ToolCost | None = None
    examples: list[ToolExample] | None = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Tool name must be non-empty")
        return v


class Tool(ToolDefinition):
    """A registered tool: definition plus ``execute(params, context)``."""

    execute: ToolCapability = Field(exclude=True)

    def definition(self) -> ToolDefinition:
        return ToolDefinition.model_validate(self.model_dump())


class ToolUsageStats(DictCompatModel):
    """Per-tool execution accounting."""

    name: str
    calls: int = 0
    failures: int = 0
    total_duration: float = Field(default=0.0, description="Milliseconds across all calls")

    @computed_field
    @property
    def successes(self) -> int:
        return self.calls - self.failures

    @computed_field
    @property
    def success_rate(self) -> float:
        return self.successes / self.calls if self.calls else 0.0

    @computed_field
    @property
    def avg_duration(self) -> float:
        return self.total_duration / self.calls if self.calls else 0.0

    def record(self, duration_ms: float, success: bool) -> None:
        self.calls += 1
        self.total_duration += duration_ms
        if not success:
            self.failures += 1


class ToolBatchItem(BaseModel):
    """One entry of a batch execution request."""

    name: str
    params: dict[str, Any] = Field(default_factory=dict)


class ToolBatchError(BaseModel):
    """Stands in for the result of a batch item that failed."""

    name: str
    error: str
    error_type: str
