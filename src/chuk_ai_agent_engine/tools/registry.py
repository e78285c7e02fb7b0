# chuk_ai_agent_engine/tools/registry.py
"""
ToolRegistry - name -> tool map with execution accounting.

Handles:
- Registration (last registration of a name wins)
- Execution of sync or async capabilities with per-tool statistics
- Batch execution with per-item failure isolation
- Export to OpenAI and Anthropic tool schemas
"""

from __future__ import annotations

import inspect
import logging
import time
from typing import Any

from chuk_ai_agent_engine.exceptions import ToolNotFoundError, ToolValidationError
from chuk_ai_agent_engine.tools.models import (
    Tool,
    ToolBatchError,
    ToolBatchItem,
    ToolContext,
    ToolDefinition,
    ToolUsageStats,
)

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Registry of callable tools.

    Examples:
        ```python
        registry = ToolRegistry.create({"working_directory": "/repo"})
        registry.register(Tool(name="read_file", description="Read a file", execute=read_file))

        content = await registry.execute("read_file", {"path": "main.py"})
        schemas = registry.to_openai_format()
        ```
    """

    def __init__(self, context: ToolContext | None = None, logger: logging.Logger | None = None) -> None:
        self._tools: dict[str, Tool] = {}
        self._stats: dict[str, ToolUsageStats] = {}
        self._context: ToolContext = dict(context or {})
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def create(cls, context: ToolContext | None = None, logger: logging.Logger | None = None) -> ToolRegistry:
        return cls(context=context, logger=logger)

    # --- Registration ---

    def register(self, tool: Tool) -> None:
        """Register ``tool``; an existing tool with the same name is replaced."""
        if not isinstance(tool, Tool):
            raise ToolValidationError(f"Expected Tool, got {type(tool).__name__}")
        if not tool.name or not tool.name.strip():
            raise ToolValidationError("Tool name must be non-empty")
        if not callable(tool.execute):
            raise ToolValidationError(f"Tool '{tool.name}' has no callable execute")

        if tool.name in self._tools:
            self._logger.debug(f"Replacing tool {tool.name}")
        self._tools[tool.name] = tool
        self._stats.setdefault(tool.name, ToolUsageStats(name=tool.name))
        self._logger.debug(f"Registered tool {tool.name}")

    def register_all(self, tools: list[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def unregister(self, name: str) -> bool:
        if name not in self._tools:
            return False
        del self._tools[name]
        self._stats.pop(name, None)
        self._logger.debug(f"Unregistered tool {name}")
        return True

    def clear(self) -> None:
        self._tools.clear()
        self._stats.clear()

    # --- Lookup ---

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def get_all(self) -> list[Tool]:
        return list(self._tools.values())

    def get_by_category(self, category: str) -> list[Tool]:
        return [t for t in self._tools.values() if t.category == category]

    def get_categories(self) -> list[str]:
        return sorted({t.category for t in self._tools.values() if t.category})

    def count(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    # --- Context ---

    def get_context(self) -> ToolContext:
        return dict(self._context)

    def update_context(self, updates: ToolContext) -> None:
        """Merge ``updates`` into the shared context."""
        self._context.update(updates)

    # --- Execution ---

    async def execute(self, name: str, params: dict[str, Any], context: ToolContext | None = None) -> Any:
        """
        Run a tool and record its outcome.

        Args:
            name: Registered tool name.
            params: Parsed arguments passed as the first positional argument.
            context: Per-call context merged over the registry context.

        Raises:
            ToolNotFoundError: If ``name`` is not registered.
            Exception: Whatever the capability raises, after it is counted
                as a failure.
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)

        merged = {**self._context, **(context or {})}
        stats = self._stats.setdefault(name, ToolUsageStats(name=name))
        start = time.perf_counter()

        try:
            result = tool.execute(params, merged)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            stats.record((time.perf_counter() - start) * 1000, success=False)
            self._logger.debug(f"Tool {name} failed after {stats.calls} calls")
            raise

        stats.record((time.perf_counter() - start) * 1000, success=True)
        return result

    async def execute_batch(self, items: list[ToolBatchItem | dict[str, Any]]) -> list[Any]:
        """
        Execute items in order; a failing item yields a :class:`ToolBatchError`
        in its slot and never stops the batch.
        """
        results: list[Any] = []
        for raw in items:
            item = raw if isinstance(raw, ToolBatchItem) else ToolBatchItem.model_validate(raw)
            try:
                results.append(await self.execute(item.name, item.params))
            except Exception as e:
                self._logger.warning(f"Batch item {item.name} failed: {e}")
                results.append(ToolBatchError(name=item.name, error=str(e), error_type=type(e).__name__))
        return results

    # --- Statistics ---

    def get_usage_stats(self) -> dict[str, ToolUsageStats]:
        return {name: stats.model_copy() for name, stats in self._stats.items()}

    def get_most_used(self, limit: int = 5) -> list[ToolUsageStats]:
        ranked = sorted(self._stats.values(), key=lambda s: s.calls, reverse=True)
        return [s.model_copy() for s in ranked[:limit]]

    def reset_stats(self) -> None:
        self._stats = {name: ToolUsageStats(name=name) for name in self._tools}

    # --- Export ---

    def get_definitions(self, names: list[str] | None = None) -> list[ToolDefinition]:
        """Definitions (without capabilities), optionally limited to ``names``."""
        tools = self._tools.values() if names is None else [self._tools[n] for n in names if n in self._tools]
        return [t.definition() for t in tools]

    def to_openai_format(self, names: list[str] | None = None) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": d.name,
                    "description": d.description,
                    "parameters": d.parameters,
                },
            }
            for d in self.get_definitions(names)
        ]

    def to_anthropic_format(self, names: list[str] | None = None) -> list[dict[str, Any]]:
        return [
            {
                "name": d.name,
                "description": d.description,
                "input_schema": d.parameters,
            }
            for d in self.get_definitions(names)
        ]
