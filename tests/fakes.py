"""Test doubles shared by the agent loop tests."""

from __future__ import annotations

from typing import Any, Callable

from adapters.registry import register_adapter
from agent.agent import Agent
from agent.messages import Message, ToolCallMessage


class ScriptedAdapter:
    """Adapter that replays canned turns and records every context it saw.

    Each scripted item is a list of messages, an exception to raise, or a
    callable receiving the context and returning a list of messages.
    """

    def __init__(self, *turns: Any):
        self.turns = list(turns)
        self.calls: list[tuple[Message, ...]] = []
        self.tool_names: list[list[str]] = []
        self.options: list[dict] = []

    async def __call__(self, options, context, tools) -> list[Message]:
        self.calls.append(tuple(context))
        self.tool_names.append([t.name for t in tools])
        self.options.append(dict(options))
        if not self.turns:
            raise AssertionError("ScriptedAdapter ran out of turns")
        turn = self.turns.pop(0)
        if isinstance(turn, BaseException):
            raise turn
        if callable(turn):
            turn = turn(context)
        return list(turn)


def scripted_agent(adapter: ScriptedAdapter, name: str = "scripted", **kwargs) -> Agent:
    register_adapter(name, adapter)
    options = kwargs.pop("options", {"api_key": "test-key"})
    return Agent(name, options, **kwargs)


def tool_call(name: str, call_id: str, args_text: str = "{}") -> ToolCallMessage:
    return ToolCallMessage(tool_name=name, call_id=call_id, args_text=args_text)


def add_tool_func(args: dict[str, Any]) -> int:
    return args["a"] + args["b"]


ADD_PARAMETERS = {
    "type": "object",
    "properties": {"a": {"type": "number"}, "b": {"type": "number"}},
    "required": ["a", "b"],
}


def fail(message: str) -> Callable[[Any], Any]:
    def _raise(args):
        raise RuntimeError(message)
    return _raise
