# chuk_ai_agent_engine/strategy/factory.py
"""Prebuilt strategies for common investigation patterns."""

from __future__ import annotations

from chuk_ai_agent_engine.config import DEFAULT_MAX_ITERATIONS
from chuk_ai_agent_engine.strategy.models import (
    IterationAction,
    Phase,
    Strategy,
    StrategyState,
    ToolUsagePolicy,
)

# on_iteration index after which the adaptive strategy wraps up
ADAPTIVE_WRAP_UP_ITERATION = 15
ADAPTIVE_MAX_ITERATIONS = 20


class StrategyFactory:
    """
    Builders for the standard strategies.

    Usage::

        strategy = StrategyFactory.investigate_then_respond(max_investigation_steps=8)
        result = await executor.execute(conversation, registry, strategy)
    """

    @staticmethod
    def investigate_then_respond(
        max_investigation_steps: int = 5,
        require_minimum_tools: int = 1,
        final_synthesis: bool = True,
    ) -> Strategy:
        """Gather information with tools, then answer without them."""
        phases = [
            Phase(
                name="investigate",
                max_iterations=max_investigation_steps,
                tool_usage=ToolUsagePolicy.ENCOURAGED,
                min_tool_calls=require_minimum_tools,
                early_exit=False,
            )
        ]
        if final_synthesis:
            phases.append(
                Phase(
                    name="respond",
                    max_iterations=1,
                    tool_usage=ToolUsagePolicy.FORBIDDEN,
                    instructions="Based on your investigation, provide a comprehensive answer.",
                    require_final_answer=True,
                )
            )

        return Strategy(
            name="investigate-then-respond",
            description="Investigate using tools, then synthesize findings",
            max_iterations=max_investigation_steps + (1 if final_synthesis else 0),
            phases=phases,
        )

    @staticmethod
    def multi_pass_refinement(passes: int = 3, critique_between_passes: bool = True) -> Strategy:
        """Generate, then alternately critique and refine."""
        phases: list[Phase] = []
        for i in range(passes):
            phases.append(
                Phase(
                    name=f"pass-{i + 1}",
                    max_iterations=1,
                    tool_usage=ToolUsagePolicy.OPTIONAL,
                    instructions=(
                        "Generate your best response"
                        if i == 0
                        else "Refine your previous response based on the critique"
                    ),
                )
            )
            if critique_between_passes and i < passes - 1:
                phases.append(
                    Phase(
                        name=f"critique-{i + 1}",
                        max_iterations=1,
                        tool_usage=ToolUsagePolicy.FORBIDDEN,
                        instructions="Critique the previous response. What can be improved?",
                    )
                )

        return Strategy(
            name="multi-pass-refinement",
            description="Iteratively refine response through multiple passes",
            max_iterations=passes * 2,
            phases=phases,
        )

    @staticmethod
    def breadth_first(levels_deep: int = 3, tools_per_level: int = 4) -> Strategy:
        """Explore broadly at each level before going deeper."""
        phases = [
            Phase(
                name=f"level-{level + 1}",
                max_iterations=tools_per_level,
                tool_usage=ToolUsagePolicy.ENCOURAGED,
                min_tool_calls=1,
                max_tool_calls=tools_per_level,
                instructions=(
                    "Get a broad overview" if level == 0 else f"Dive deeper into areas discovered in level {level}"
                ),
            )
            for level in range(levels_deep)
        ]
        return Strategy(
            name="breadth-first",
            description="Explore broadly at each level before going deeper",
            max_iterations=levels_deep * tools_per_level,
            phases=phases,
        )

    @staticmethod
    def depth_first(max_depth: int = 5, backtrack_on_failure: bool = True) -> Strategy:
        """Single deep-dive phase; stops once more than two tool errors pile up."""

        def should_continue(state: StrategyState) -> bool:
            return not (backtrack_on_failure and len(state.errors) > 2)

        return Strategy(
            name="depth-first",
            description="Deep dive investigation path",
            max_iterations=max_depth,
            phases=[
                Phase(
                    name="deep-dive",
                    max_iterations=max_depth,
                    tool_usage=ToolUsagePolicy.ENCOURAGED,
                    adaptive_depth=True,
                )
            ],
            should_continue=should_continue,
        )

    @staticmethod
    def adaptive(max_iterations: int = ADAPTIVE_MAX_ITERATIONS) -> Strategy:
        """Keeps going while early; late in the run, stops unless tools have been used."""

        def on_iteration(iteration: int, state: StrategyState) -> IterationAction:
            if iteration < ADAPTIVE_WRAP_UP_ITERATION:
                return IterationAction.CONTINUE
            return IterationAction.CONTINUE if state.tool_calls_executed > 0 else IterationAction.STOP

        return Strategy(
            name="adaptive",
            description="Adapts strategy based on progress",
            max_iterations=max_iterations,
            on_iteration=on_iteration,
        )

    @staticmethod
    def simple(max_iterations: int = DEFAULT_MAX_ITERATIONS, allow_tools: bool = True) -> Strategy:
        """Basic tool-use loop that ends on the first plain answer."""
        return Strategy(
            name="simple",
            description="Simple iteration loop",
            max_iterations=max_iterations,
            phases=[
                Phase(
                    name="main",
                    max_iterations=max_iterations,
                    tool_usage=ToolUsagePolicy.ENCOURAGED if allow_tools else ToolUsagePolicy.FORBIDDEN,
                    early_exit=True,
                )
            ],
        )
