# tests/conftest.py
"""
Shared pytest fixtures and configuration for chuk_ai_agent_engine tests.

Token counting always uses the heuristic counter so no tokenizer files are
needed; LLM clients are scripted.
"""

import logging

import pytest

from chuk_ai_agent_engine.budget.counter import HeuristicTokenCounter
from chuk_ai_agent_engine.conversation.store import ConversationStore
from chuk_ai_agent_engine.strategy.models import LLMResponse

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logging.getLogger("chuk_ai_agent_engine").setLevel(logging.DEBUG)


class ScriptedLLM:
    """LLM client that replays canned responses and records every call."""

    def __init__(self, responses=None, default=None):
        self.responses = list(responses or [])
        self.default = default or LLMResponse(content="done")
        self.calls = []

    async def complete(self, messages, tools=None):
        self.calls.append({"messages": messages, "tools": tools})
        if not self.responses:
            return self.default
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def counter():
    return HeuristicTokenCounter()


@pytest.fixture
def make_llm():
    """Factory for scripted LLM clients."""
    return ScriptedLLM


@pytest.fixture
def conversation():
    store = ConversationStore.create(model="gpt-4o")
    store.add_system_message("You are a careful assistant.")
    store.add_user_message("What does main.py do?")
    return store
