# examples/01_investigate_then_respond.py
"""
Investigate-then-respond with a scripted model.

Runs the two-phase strategy against a fake LLM that asks for one tool call
and then answers, and prints the reflection report.
"""
import asyncio
import json

from chuk_ai_agent_engine.conversation import ConversationStore
from chuk_ai_agent_engine.reflection import ReflectionConfig, ReflectionReportGenerator
from chuk_ai_agent_engine.strategy import LLMResponse, StrategyExecutor, StrategyFactory
from chuk_ai_agent_engine.tools import Tool, ToolRegistry


class FakeLLM:
    """Returns one tool call, then plain answers."""

    def __init__(self):
        self.turn = 0

    async def complete(self, messages, tools=None):
        self.turn += 1
        if self.turn == 1 and tools:
            return LLMResponse(
                content="Let me look at the file.",
                tool_calls=[
                    {
                        "id": "call_1",
                        "type": "function",
                        "function": {"name": "read_file", "arguments": json.dumps({"path": "main.py"})},
                    }
                ],
            )
        return LLMResponse(content="main.py defines a single entry point and looks fine.")


def read_file(params, context):
    return {"path": params["path"], "content": "def main():\n    print('hello')\n"}


async def main():
    conversation = ConversationStore.create(model="gpt-4o")
    conversation.add_system_message("You are a careful code reviewer.")
    conversation.add_user_message("Review main.py")

    tools = ToolRegistry.create()
    tools.register(
        Tool(
            name="read_file",
            description="Read a file from the workspace",
            parameters={"type": "object", "properties": {"path": {"type": "string"}}, "required": ["path"]},
            category="filesystem",
            execute=read_file,
        )
    )

    executor = StrategyExecutor(FakeLLM()).with_reflection(ReflectionConfig(enabled=True))
    result = await executor.execute(conversation, tools, StrategyFactory.investigate_then_respond())

    print(f"✅ success={result.success} iterations={result.total_iterations} tools={result.tool_calls_executed}")
    print(f"💬 {result.final_message.content}")
    if result.reflection is not None:
        print(ReflectionReportGenerator().format_markdown(result.reflection))


if __name__ == "__main__":
    asyncio.run(main())
