# chuk_ai_agent_engine/strategy/executor.py
"""
StrategyExecutor - drives an LLM client through the phases of a strategy,
executing requested tools and recording every turn in the conversation.

Per-tool failures (capability errors, unknown tools, unparseable arguments)
are recovered locally: they become tool-result turns and bump the tool's
consecutive-failure counter. Once a tool reaches its phase's threshold the
circuit breaker answers for it without executing. Anything else that
escapes (LLM client errors, hook errors, budget errors) aborts the run.

Usage::

    executor = StrategyExecutor(llm).with_reflection(ReflectionConfig(output_path="reports"))
    result = await executor.execute(conversation, registry, StrategyFactory.investigate_then_respond())

    if not result.success:
        print(result.error)
"""

from __future__ import annotations

import inspect
import json
import logging
import time
from typing import Any

from pydantic import BaseModel

from chuk_ai_agent_engine.conversation.store import ConversationStore
from chuk_ai_agent_engine.exceptions import StrategyFatalError, ToolExecutionError
from chuk_ai_agent_engine.models.message import ToolCall
from chuk_ai_agent_engine.reflection.metrics import MetricsCollector
from chuk_ai_agent_engine.reflection.models import ReflectionConfig, ReflectionReport
from chuk_ai_agent_engine.reflection.report import ReflectionReportGenerator
from chuk_ai_agent_engine.reflection.writer import save_reflection
from chuk_ai_agent_engine.strategy.client import LLMClient
from chuk_ai_agent_engine.strategy.models import (
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
from chuk_ai_agent_engine.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class StrategyContext(BaseModel):
    """Handed to ``on_start``."""

    model_config = {"arbitrary_types_allowed": True}

    conversation: ConversationStore
    tools: ToolRegistry
    llm: Any  # LLMClient
    state: StrategyState


async def _invoke(hook: Any, *args: Any) -> Any:
    """Call an optional sync or async hook."""
    if hook is None:
        return None
    result = hook(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _parse_arguments(call: ToolCall) -> dict[str, Any]:
    name = call.function.name
    raw = call.function.arguments
    if not raw or not raw.strip():
        return {}

    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ToolExecutionError(name, f"Invalid JSON in tool arguments for {name}: {e}") from e

    if not isinstance(parsed, dict):
        raise ToolExecutionError(name, f"Tool arguments for {name} must be a JSON object")
    return parsed


class StrategyExecutor:
    """
    Runs strategies against a conversation and a tool registry.

    Args:
        llm: Client used for every completion.
        logger: Optional logger; the module logger is used otherwise.
        tool_format: Schema shape offered to the client.
        raise_on_fatal: Raise :class:`StrategyFatalError` instead of
            returning an unsuccessful result.
    """

    def __init__(
        self,
        llm: LLMClient,
        logger: logging.Logger | None = None,
        tool_format: ToolFormat | str = ToolFormat.OPENAI,
        raise_on_fatal: bool = False,
    ) -> None:
        self.llm = llm
        self.tool_format = ToolFormat(tool_format)
        self.raise_on_fatal = raise_on_fatal
        self._logger = logger or logging.getLogger(__name__)
        self._reflection_config: ReflectionConfig | None = None

    def with_reflection(self, config: ReflectionConfig) -> StrategyExecutor:
        """Collect metrics on every run and attach a reflection report to the result."""
        self._reflection_config = config
        return self

    # =========================================================================
    # Run
    # =========================================================================

    async def execute(
        self,
        conversation: ConversationStore,
        tools: ToolRegistry,
        strategy: Strategy,
    ) -> StrategyResult:
        start = time.perf_counter()
        state = StrategyState()
        phase_results: list[PhaseResult] = []
        metrics = (
            MetricsCollector(self._logger)
            if self._reflection_config is not None and self._reflection_config.enabled
            else None
        )

        self._logger.info(f"Starting strategy {strategy.name}")

        try:
            await _invoke(
                strategy.on_start,
                StrategyContext(conversation=conversation, tools=tools, llm=self.llm, state=state),
            )

            for phase in strategy.resolved_phases():
                if phase.skip_if is not None and await _invoke(phase.skip_if, state):
                    self._logger.debug(f"Skipping phase {phase.name}")
                    continue

                self._logger.debug(f"Starting phase {phase.name}")
                phase_result, stop = await self._execute_phase(conversation, tools, phase, state, strategy, metrics)
                phase_results.append(phase_result)

                await _invoke(strategy.on_phase_complete, phase_result, state)

                if stop:
                    self._logger.debug(f"Strategy {strategy.name} stopped by on_iteration")
                    break
                if strategy.should_continue is not None and not await _invoke(strategy.should_continue, state):
                    self._logger.debug(f"Strategy {strategy.name} decided to stop")
                    break

            result = StrategyResult(
                final_message=conversation.get_last_message(),
                phases=phase_results,
                total_iterations=state.total_iterations,
                tool_calls_executed=state.tool_calls_executed,
                duration=_elapsed_ms(start),
                success=True,
                conversation=conversation,
            )

            if metrics is not None:
                result.reflection = self._reflect(metrics, conversation, result)

            await _invoke(strategy.on_complete, result)

            self._logger.info(
                f"Strategy {strategy.name} complete: {result.total_iterations} iterations, "
                f"{result.tool_calls_executed} tool calls in {result.duration:.0f}ms"
            )
            return result

        except Exception as e:
            self._logger.exception(f"Strategy {strategy.name} failed")
            if self.raise_on_fatal:
                raise StrategyFatalError(strategy.name, str(e)) from e

            return StrategyResult(
                final_message=conversation.get_last_message(),
                phases=phase_results,
                total_iterations=state.total_iterations,
                tool_calls_executed=state.tool_calls_executed,
                duration=_elapsed_ms(start),
                success=False,
                error=f"{type(e).__name__}: {e}",
                conversation=conversation,
            )

    # =========================================================================
    # Phase
    # =========================================================================

    async def _execute_phase(
        self,
        conversation: ConversationStore,
        tools: ToolRegistry,
        phase: Phase,
        state: StrategyState,
        strategy: Strategy,
        metrics: MetricsCollector | None,
    ) -> tuple[PhaseResult, bool]:
        """Run one phase; the flag is True when ``on_iteration`` asked to stop the run."""
        state.phase = phase.name
        state.iteration = 0
        phase_start_tools = state.tool_calls_executed
        insights_start = len(state.insights)
        stop_run = False
        forbidden = phase.tool_usage == ToolUsagePolicy.FORBIDDEN

        if phase.instructions:
            conversation.as_user(phase.instructions)

        for i in range(phase.max_iterations):
            state.iteration += 1
            state.total_iterations += 1
            if metrics is not None:
                metrics.increment_iteration()

            self._logger.debug(f"Phase {phase.name} iteration {state.iteration}")

            action = await _invoke(strategy.on_iteration, i, state)
            if action is not None:
                action = IterationAction(action)
            if action == IterationAction.STOP:
                stop_run = True
                break
            if action == IterationAction.NEXT_PHASE:
                break

            schemas = None if forbidden else await self._tool_schemas(tools, phase, state, strategy)
            response = self._normalize(await self.llm.complete(conversation.to_messages(), schemas))

            if response.tool_calls:
                if forbidden:
                    self._logger.warning(f"Tool calls requested but forbidden in phase {phase.name}")
                    conversation.as_assistant(response.content)
                    continue

                conversation.as_assistant(response.content, response.tool_calls)
                for call in response.tool_calls:
                    await self._process_tool_call(call, conversation, tools, phase, state, strategy, metrics)
            else:
                conversation.as_assistant(response.content)

                if phase.tool_usage == ToolUsagePolicy.REQUIRED and state.tool_calls_executed == phase_start_tools:
                    self._logger.warning(f"No tools used but required in phase {phase.name}")
                elif phase.early_exit:
                    break

            in_phase = state.tool_calls_executed - phase_start_tools
            if phase.min_tool_calls and in_phase < phase.min_tool_calls:
                continue
            if phase.max_tool_calls and in_phase >= phase.max_tool_calls:
                break
            if phase.continue_if is not None and not await _invoke(phase.continue_if, state):
                break

        result = PhaseResult(
            name=phase.name,
            iterations=state.iteration,
            tool_calls=state.tool_calls_executed - phase_start_tools,
            success=True,
            insights=list(state.insights[insights_start:]),
        )
        return result, stop_run

    async def _tool_schemas(
        self,
        tools: ToolRegistry,
        phase: Phase,
        state: StrategyState,
        strategy: Strategy,
    ) -> list[dict[str, Any]] | None:
        available = tools.get_all()
        if phase.allowed_tools is not None:
            allowed = set(phase.allowed_tools)
            available = [t for t in available if t.name in allowed]
        if strategy.select_tools is not None:
            available = list(await _invoke(strategy.select_tools, available, state))

        if not available:
            return None

        names = [t.name for t in available]
        if self.tool_format == ToolFormat.ANTHROPIC:
            return tools.to_anthropic_format(names)
        return tools.to_openai_format(names)

    @staticmethod
    def _normalize(response: LLMResponse | dict[str, Any]) -> LLMResponse:
        if isinstance(response, LLMResponse):
            return response
        return LLMResponse.model_validate(response)

    # =========================================================================
    # Tool calls
    # =========================================================================

    async def _process_tool_call(
        self,
        call: ToolCall,
        conversation: ConversationStore,
        tools: ToolRegistry,
        phase: Phase,
        state: StrategyState,
        strategy: Strategy,
        metrics: MetricsCollector | None,
    ) -> None:
        name = call.function.name

        if phase.allowed_tools is not None and name not in phase.allowed_tools:
            self._logger.debug(f"Tool {name} not allowed in phase {phase.name}")
            return

        failures = state.tool_failures.get(name, 0)
        if failures >= phase.max_consecutive_tool_failures:
            self._logger.warning(f"Circuit breaker open for {name} after {failures} consecutive failures")
            conversation.as_tool(
                call.id,
                {"error": f"Tool temporarily disabled due to {failures} consecutive failures"},
                {"success": False, "circuitBreakerTriggered": True},
                tool_name=name,
            )
            return

        action = await _invoke(strategy.on_tool_call, call, state)
        if action is not None and ToolCallAction(action) == ToolCallAction.SKIP:
            self._logger.debug(f"Tool call {call.id} ({name}) skipped by on_tool_call")
            return

        start = time.perf_counter()
        try:
            params = _parse_arguments(call)
            try:
                value = await tools.execute(name, params)
            except ToolExecutionError:
                raise
            except Exception as e:
                raise ToolExecutionError(name, str(e)) from e

        except ToolExecutionError as error:
            duration = _elapsed_ms(start)
            self._logger.error(f"Tool {name} failed: {error}")

            cause = error.__cause__ or error
            conversation.as_tool(
                call.id,
                {"error": str(error)},
                {"success": False, "errorName": type(cause).__name__},
                tool_name=name,
            )
            state.errors.append(error)
            state.tool_failures[name] = state.tool_failures.get(name, 0) + 1

            if metrics is not None:
                metrics.record_tool_call(name, state.total_iterations, duration, False, str(error))

            await _invoke(
                strategy.on_tool_result,
                ToolResult(call_id=call.id, tool_name=name, error=error, duration=duration),
                state,
            )
            return

        duration = _elapsed_ms(start)
        conversation.as_tool(call.id, value, {"duration": duration, "success": True}, tool_name=name)
        state.tool_calls_executed += 1
        state.tool_failures[name] = 0

        if metrics is not None:
            metrics.record_tool_call(name, state.total_iterations, duration, True)

        await _invoke(
            strategy.on_tool_result,
            ToolResult(call_id=call.id, tool_name=name, result=value, duration=duration),
            state,
        )

    # =========================================================================
    # Reflection
    # =========================================================================

    def _reflect(
        self,
        metrics: MetricsCollector,
        conversation: ConversationStore,
        result: StrategyResult,
    ) -> ReflectionReport:
        config = self._reflection_config
        generator = ReflectionReportGenerator(self._logger)
        report = generator.generate(
            metrics.get_metrics(conversation.get_messages(), budget=conversation.budget),
            result,
            include_conversation=config.include_conversation,
            include_recommendations=config.include_recommendations,
        )

        if config.output_path is not None:
            try:
                save_reflection(report, config.output_path, config.format, generator)
            except OSError as e:
                self._logger.error(f"Failed to save reflection: {e}")

        return report
