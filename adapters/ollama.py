"""Ollama adapter: native POST /api/chat of a local Ollama server."""

from __future__ import annotations

import json
from typing import Any, Mapping, Sequence

from adapters.base import endpoint, post_json, tool_definitions
from agent.exceptions import MalformedResponseError
from agent.messages import (
    AssistantMessage,
    Message,
    ParsedArguments,
    SystemMessage,
    ToolCallMessage,
    ToolResultMessage,
    UserMessage,
    parse_tool_arguments,
)
from tools.base_tool import Tool

PROVIDER = "Ollama"
DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3.2"
CHAT_PATH = "/api/chat"


async def ollama_adapter(
    options: Mapping[str, Any],
    context: Sequence[Message],
    tools: Sequence[Tool],
) -> list[Message]:
    """
    Produce the next model turn from a local Ollama server.

    Ollama is unauthenticated, so no credential is required.
    """
    payload = build_request(options, context, tools)
    url = endpoint(options, DEFAULT_BASE_URL, CHAT_PATH)
    data = await post_json(PROVIDER, url, payload, options)
    return parse_response(data, context)


def build_request(
    options: Mapping[str, Any],
    context: Sequence[Message],
    tools: Sequence[Tool],
) -> dict[str, Any]:
    messages = to_ollama_messages(context)
    system_prompt = options.get("system_prompt")
    if system_prompt:
        messages = [{"role": "system", "content": str(system_prompt)}] + messages

    payload: dict[str, Any] = {
        "model": options.get("model") or DEFAULT_MODEL,
        "messages": messages,
        "stream": False,
    }
    model_options = options.get("options")
    if isinstance(model_options, Mapping) and model_options:
        payload["options"] = dict(model_options)
    if tools:
        payload["tools"] = tool_definitions(tools)

    extra_body = options.get("extra_body")
    if isinstance(extra_body, Mapping):
        payload.update(extra_body)
    return payload


def to_ollama_messages(context: Sequence[Message]) -> list[dict[str, Any]]:
    """
    Map normalized messages to Ollama chat messages.

    Ollama tool calls carry arguments as objects and tool results are matched
    by tool name, so the name is looked up from the originating call.
    """
    out: list[dict[str, Any]] = []
    names_by_call_id: dict[str, str] = {}
    for m in context:
        if isinstance(m, (SystemMessage, UserMessage, AssistantMessage)):
            out.append({"role": m.role, "content": m.content})
        elif isinstance(m, ToolCallMessage):
            names_by_call_id[m.call_id] = m.tool_name
            parsed = parse_tool_arguments(m.args_text)
            arguments = parsed.value if isinstance(parsed, ParsedArguments) else {}
            call = {"function": {"name": m.tool_name, "arguments": arguments}}
            last = out[-1] if out else None
            if last is not None and "tool_calls" in last:
                last["tool_calls"].append(call)
            else:
                out.append({"role": "assistant", "content": "", "tool_calls": [call]})
        elif isinstance(m, ToolResultMessage):
            entry = {"role": "tool", "content": m.content}
            if m.call_id in names_by_call_id:
                entry["tool_name"] = names_by_call_id[m.call_id]
            out.append(entry)
    return out


def parse_response(data: dict[str, Any], context: Sequence[Message]) -> list[Message]:
    msg = data.get("message")
    if not isinstance(msg, dict):
        raise MalformedResponseError(f"{PROVIDER} API returned empty response", PROVIDER)

    tool_calls = msg.get("tool_calls") or []
    if not tool_calls:
        return [AssistantMessage(content=str(msg.get("content") or ""))]
    if not isinstance(tool_calls, list):
        raise MalformedResponseError(f"{PROVIDER} API returned malformed tool_calls", PROVIDER)

    # Ollama omits call ids; number them after the calls already in context
    # so ids stay unique within one conversation.
    seen = sum(1 for m in context if isinstance(m, ToolCallMessage))
    result: list[Message] = []
    for index, tc in enumerate(tool_calls, start=1):
        function = tc.get("function") if isinstance(tc, dict) else None
        if not isinstance(function, dict) or not function.get("name"):
            raise MalformedResponseError(
                f"{PROVIDER} API returned a tool call without a function name", PROVIDER
            )
        arguments = function.get("arguments")
        if arguments is None:
            args_text = "{}"
        elif isinstance(arguments, str):
            args_text = arguments
        else:
            args_text = json.dumps(arguments)
        result.append(ToolCallMessage(
            tool_name=str(function["name"]),
            call_id=str(tc.get("id") or f"call_{seen + index}"),
            args_text=args_text,
        ))
    return result
