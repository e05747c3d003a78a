"""OpenAI chat-completions adapter.

The translation helpers here are shared by every OpenAI-compatible provider
(see adapters/openrouter.py).
"""

from __future__ import annotations

import json
from typing import Any, Mapping, Sequence

from adapters.base import endpoint, post_json, require_option, tool_definitions
from agent.exceptions import MalformedResponseError
from agent.messages import (
    AssistantMessage,
    Message,
    SystemMessage,
    ToolCallMessage,
    ToolResultMessage,
    UserMessage,
)
from tools.base_tool import Tool

PROVIDER = "OpenAI"
DEFAULT_BASE_URL = "https://api.openai.com"
DEFAULT_MODEL = "gpt-5-nano"
COMPLETIONS_PATH = "/v1/chat/completions"


async def openai_adapter(
    options: Mapping[str, Any],
    context: Sequence[Message],
    tools: Sequence[Tool],
) -> list[Message]:
    """Produce the next model turn from the OpenAI chat-completions API."""
    return await chat_completions(
        PROVIDER,
        DEFAULT_BASE_URL,
        DEFAULT_MODEL,
        options,
        context,
        tools,
    )


async def chat_completions(
    provider: str,
    default_base_url: str,
    default_model: str,
    options: Mapping[str, Any],
    context: Sequence[Message],
    tools: Sequence[Tool],
    extra_headers: Mapping[str, str] | None = None,
) -> list[Message]:
    """Run one chat-completions round trip against an OpenAI-compatible API."""
    api_key = require_option(options, "api_key", provider)

    payload = build_request(options, context, tools, default_model)
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {api_key}",
        **(extra_headers or {}),
    }
    url = endpoint(options, default_base_url, COMPLETIONS_PATH)
    data = await post_json(provider, url, payload, options, headers)
    return parse_response(data, provider, context)


def build_request(
    options: Mapping[str, Any],
    context: Sequence[Message],
    tools: Sequence[Tool],
    default_model: str,
) -> dict[str, Any]:
    """Build the request body. Tool fields are omitted when no tools are registered."""
    messages = to_openai_messages(context)
    system_prompt = options.get("system_prompt")
    if system_prompt:
        messages = [{"role": "system", "content": str(system_prompt)}] + messages

    payload: dict[str, Any] = {
        "model": options.get("model") or default_model,
        "messages": messages,
    }
    if tools:
        payload["tools"] = tool_definitions(tools)
        payload["tool_choice"] = "auto"

    extra_body = options.get("extra_body")
    if isinstance(extra_body, Mapping):
        payload.update(extra_body)
    return payload


def to_openai_messages(context: Sequence[Message]) -> list[dict[str, Any]]:
    """
    Map normalized messages to the chat-completions schema.

    Adjacent ToolCallMessages are coalesced into one assistant message with
    several ``tool_calls``; any other message ends the group.
    """
    out: list[dict[str, Any]] = []
    for m in context:
        if isinstance(m, (SystemMessage, UserMessage, AssistantMessage)):
            out.append({"role": m.role, "content": m.content})
        elif isinstance(m, ToolResultMessage):
            out.append({"role": "tool", "content": m.content, "tool_call_id": m.call_id})
        elif isinstance(m, ToolCallMessage):
            call = {
                "id": m.call_id,
                "type": "function",
                "function": {"name": m.tool_name, "arguments": m.args_text or "{}"},
            }
            last = out[-1] if out else None
            if last is not None and "tool_calls" in last:
                last["tool_calls"].append(call)
            else:
                out.append({"role": "assistant", "tool_calls": [call]})
    return out


def parse_response(
    data: dict[str, Any],
    provider: str,
    context: Sequence[Message] = (),
) -> list[Message]:
    """
    Turn a chat-completions body into ToolCallMessages or one AssistantMessage.

    Calls that arrive without an id are numbered after the ToolCallMessages
    already in ``context`` so ids stay unique across rounds.
    """
    choices = data.get("choices")
    first = choices[0] if isinstance(choices, list) and choices else None
    msg = first.get("message") if isinstance(first, dict) else None
    if not isinstance(msg, dict):
        raise MalformedResponseError(f"{provider} API returned empty response", provider)

    tool_calls = msg.get("tool_calls") or []
    if tool_calls:
        if not isinstance(tool_calls, list):
            raise MalformedResponseError(f"{provider} API returned malformed tool_calls", provider)
        seen = sum(1 for m in context if isinstance(m, ToolCallMessage))
        return [
            _parse_tool_call(tc, seen + index, provider)
            for index, tc in enumerate(tool_calls)
        ]

    return [AssistantMessage(content=_content_text(msg.get("content")))]


def _parse_tool_call(tc: Any, index: int, provider: str) -> ToolCallMessage:
    function = tc.get("function") if isinstance(tc, dict) else None
    if not isinstance(function, dict) or not function.get("name"):
        raise MalformedResponseError(
            f"{provider} API returned a tool call without a function name", provider
        )
    arguments = function.get("arguments")
    if arguments is None:
        arguments = "{}"
    elif not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return ToolCallMessage(
        tool_name=str(function["name"]),
        call_id=str(tc.get("id") or f"call_{index}"),
        args_text=arguments,
    )


def _content_text(content: Any) -> str:
    """Flatten string or content-part list into plain text."""
    if content is None:
        return ""
    if isinstance(content, list):
        return "".join(
            str(part.get("text", "")) for part in content if isinstance(part, dict)
        )
    return str(content)
