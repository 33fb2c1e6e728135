import asyncio
import copy
from typing import Any

import pytest

from ingenium.bus.queue import MessageBus
from ingenium.providers.base import LLMProvider, LLMResponse, ToolCallRequest
from ingenium.session.manager import SessionManager


class ScriptedProvider(LLMProvider):
    """Replays canned responses in order; the last one repeats once the script runs out."""

    def __init__(self, responses: list[LLMResponse] | None = None):
        super().__init__()
        self.responses = list(responses or [LLMResponse(content="ok")])
        self.calls: list[list[dict[str, Any]]] = []

    async def chat(self, messages, tools=None, model=None, max_tokens=4096, temperature=0.7):
        self.calls.append(copy.deepcopy(messages))
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        return self.responses[index]

    def get_default_model(self) -> str:
        return "test-model"


class GatedProvider(ScriptedProvider):
    """Blocks every chat() call until the gate is opened."""

    def __init__(self, responses: list[LLMResponse] | None = None):
        super().__init__(responses)
        self.gate = asyncio.Event()
        self.entered = asyncio.Event()

    async def chat(self, messages, tools=None, model=None, max_tokens=4096, temperature=0.7):
        self.entered.set()
        await self.gate.wait()
        return await super().chat(messages, tools, model, max_tokens, temperature)


class AlwaysToolProvider(ScriptedProvider):
    """Never gives a final answer: every reply asks for the same tool."""

    def __init__(self, tool_name: str = "list_dir", arguments: dict[str, Any] | None = None):
        super().__init__()
        self.tool_name = tool_name
        self.arguments = arguments if arguments is not None else {"path": "."}

    async def chat(self, messages, tools=None, model=None, max_tokens=4096, temperature=0.7):
        self.calls.append(copy.deepcopy(messages))
        call = ToolCallRequest(id=f"call_{len(self.calls)}", name=self.tool_name, arguments=self.arguments)
        return LLMResponse(content=None, tool_calls=[call], finish_reason="tool_calls")


def tool_call(name: str, arguments: dict[str, Any], call_id: str = "call_1") -> LLMResponse:
    return LLMResponse(
        content=None,
        tool_calls=[ToolCallRequest(id=call_id, name=name, arguments=arguments)],
        finish_reason="tool_calls",
    )


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep ~/.ingenium (sessions, config, history) inside the test's tmp dir."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    return home


@pytest.fixture
def workspace(tmp_path):
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def bus():
    return MessageBus(poll_interval=0.05)


@pytest.fixture
def sessions(tmp_path):
    return SessionManager(tmp_path / "sessions")
