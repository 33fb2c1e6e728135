import asyncio
from typing import Any

from ingenium.agent.tools.base import ContextualTool, Tool
from ingenium.agent.tools.registry import ToolRegistry


class EchoTool(Tool):
    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echo the text back"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "text": {"type": "string", "minLength": 1},
                "times": {"type": "integer", "minimum": 1, "maximum": 3},
                "mode": {"type": "string", "enum": ["plain", "loud"]},
            },
            "required": ["text"],
        }

    async def execute(self, text: str, times: int = 1, mode: str = "plain", **kwargs: Any) -> str:
        out = " ".join([text] * times)
        return out.upper() if mode == "loud" else out


class ExplodingTool(EchoTool):
    @property
    def name(self) -> str:
        return "explode"

    async def execute(self, **kwargs: Any) -> str:
        raise RuntimeError("kaboom")


class CancelAwareTool(EchoTool):
    accepts_cancel = True

    @property
    def name(self) -> str:
        return "aware"

    async def execute(self, text: str, cancel_event: asyncio.Event | None = None, **kwargs: Any) -> str:
        return f"{text}:{cancel_event is not None}"


class RouteTool(ContextualTool):
    @property
    def name(self) -> str:
        return "route"

    @property
    def description(self) -> str:
        return "Report the routing context"

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {}}

    async def execute(self, **kwargs: Any) -> str:
        return ":".join(self.current_context)


async def test_execute_known_tool():
    registry = ToolRegistry()
    registry.register(EchoTool())
    assert await registry.execute("echo", {"text": "hi", "times": 2}) == "hi hi"


async def test_unknown_tool_returns_error_string():
    registry = ToolRegistry()
    result = await registry.execute("nope", {})
    assert result == "Error: Tool 'nope' not found"


async def test_invalid_params_are_reported_not_raised():
    registry = ToolRegistry()
    registry.register(EchoTool())

    result = await registry.execute("echo", {"times": 9, "mode": "quiet"})
    assert result.startswith("Error: Invalid parameters for tool 'echo'")
    assert "missing required text" in result
    assert "times must be <= 3" in result
    assert "mode must be one of" in result


async def test_bool_is_not_an_integer():
    errors = EchoTool().validate_params({"text": "x", "times": True})
    assert errors == ["times should be integer"]


async def test_tool_exception_becomes_error_string():
    registry = ToolRegistry()
    registry.register(ExplodingTool())
    result = await registry.execute("explode", {"text": "x"})
    assert result == "Error executing explode: kaboom"


async def test_cancelled_before_execute():
    registry = ToolRegistry()
    registry.register(EchoTool())
    event = asyncio.Event()
    event.set()
    assert await registry.execute("echo", {"text": "x"}, cancel_event=event) == "Error: Tool 'echo' cancelled"


async def test_cancel_event_passed_only_to_aware_tools():
    registry = ToolRegistry()
    registry.register(EchoTool())
    registry.register(CancelAwareTool())
    event = asyncio.Event()

    assert await registry.execute("aware", {"text": "a"}, cancel_event=event) == "a:True"
    assert await registry.execute("echo", {"text": "b"}, cancel_event=event) == "b"


def test_definitions_and_membership():
    registry = ToolRegistry()
    registry.register(EchoTool())
    defs = registry.get_definitions()
    assert defs == [{
        "type": "function",
        "function": {
            "name": "echo",
            "description": "Echo the text back",
            "parameters": EchoTool().parameters,
        },
    }]
    assert "echo" in registry
    assert registry.has("echo")
    assert registry.tool_names == ["echo"]

    registry.unregister("echo")
    registry.unregister("echo")
    assert len(registry) == 0


async def test_contextual_tool_route_is_per_task():
    tool = RouteTool("cli", "direct")
    assert await tool.execute() == "cli:direct"

    gate = asyncio.Event()

    async def handle(channel: str, chat_id: str) -> str:
        tool.set_context(channel, chat_id)
        await gate.wait()
        return await tool.execute()

    first = asyncio.create_task(handle("telegram", "1"))
    second = asyncio.create_task(handle("slack", "2"))
    await asyncio.sleep(0)
    gate.set()

    assert await first == "telegram:1"
    assert await second == "slack:2"
    assert tool.current_context == ("cli", "direct")
