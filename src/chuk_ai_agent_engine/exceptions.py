# chuk_ai_agent_engine/exceptions.py
"""
Error taxonomy for the agent engine.

Tool-level failures (``ToolExecutionError``) are always caught by the
strategy executor and turned into tool-result messages; they only reach
callers who use ``ToolRegistry`` directly. ``StrategyFatalError`` covers
anything that escapes the per-tool recovery boundary.
"""

from __future__ import annotations

from typing import Any


class AgentEngineError(Exception):
    """Base class for all engine errors."""


class ToolNotFoundError(AgentEngineError, KeyError):
    """Raised when executing a tool name that is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'Tool "{name}" not found')

    def __str__(self) -> str:
        return self.args[0]


class ToolValidationError(AgentEngineError, ValueError):
    """Raised when a tool definition is rejected at registration."""


class ToolExecutionError(AgentEngineError):
    """A tool capability raised, or its arguments could not be parsed.

    The underlying exception is chained as ``__cause__``.
    """

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        super().__init__(message)


class BudgetExceededError(AgentEngineError):
    """Raised only when the token budget policy is ``error``."""

    def __init__(self, usage: Any) -> None:
        self.usage = usage
        super().__init__(
            f"Token budget exceeded: {usage.used}/{usage.max} tokens ({usage.percentage:.1f}%)"
        )


class ConversationError(AgentEngineError):
    """A message could not be appended without breaking conversation invariants."""


class ConversationDeserializationError(ConversationError):
    """Persisted conversation state is malformed or incomplete."""


class StrategyFatalError(AgentEngineError):
    """An error escaped the per-tool recovery boundary and aborted the run."""

    def __init__(self, strategy_name: str, message: str) -> None:
        self.strategy_name = strategy_name
        super().__init__(f"Strategy '{strategy_name}' failed: {message}")
