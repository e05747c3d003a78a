"""OpenRouter adapter: OpenAI-compatible API with attribution headers."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from adapters.openai import chat_completions
from agent.messages import Message
from tools.base_tool import Tool

PROVIDER = "OpenRouter"
DEFAULT_BASE_URL = "https://openrouter.ai/api"
DEFAULT_MODEL = "openai/gpt-5-nano"


async def openrouter_adapter(
    options: Mapping[str, Any],
    context: Sequence[Message],
    tools: Sequence[Tool],
) -> list[Message]:
    """Produce the next model turn through OpenRouter."""
    return await chat_completions(
        PROVIDER,
        DEFAULT_BASE_URL,
        DEFAULT_MODEL,
        options,
        context,
        tools,
        extra_headers=attribution_headers(options),
    )


def attribution_headers(options: Mapping[str, Any]) -> dict[str, str]:
    """Optional app attribution headers (``http_referer``, ``title``)."""
    headers: dict[str, str] = {}
    if options.get("http_referer"):
        headers["HTTP-Referer"] = str(options["http_referer"])
    if options.get("title"):
        headers["X-Title"] = str(options["title"])
    return headers
