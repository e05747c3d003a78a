"""Adapter contract and the shared HTTP transport used by provider adapters.

An adapter is a stateless async callable::

    async def adapter(options, context, tools) -> list[Message]

It translates the normalized context into one provider's wire format, makes
one network call, and translates the reply back into either a single
AssistantMessage or one ToolCallMessage per requested invocation. It never
mutates the context it is given.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Mapping, Protocol, Sequence

import aiohttp

from agent.exceptions import (
    ConfigError,
    MalformedResponseError,
    ProviderApplicationError,
    ProviderHttpError,
    TransportError,
)
from agent.messages import Message
from tools.base_tool import Tool

DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 120.0
ERROR_EXCERPT_CHARS = 200


class Adapter(Protocol):
    """Call signature every provider adapter implements."""

    async def __call__(
        self,
        options: Mapping[str, Any],
        context: Sequence[Message],
        tools: Sequence[Tool],
    ) -> list[Message]:
        ...


def require_option(options: Mapping[str, Any], key: str, provider: str) -> str:
    """Return a non-empty string option or raise ConfigError before any I/O."""
    value = options.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{provider} adapter requires {key} in config")
    return value.strip()


def endpoint(options: Mapping[str, Any], default_base: str, path: str) -> str:
    """Join the configured (or default) base URL with an API path."""
    base = options.get("base_url") or default_base
    return f"{str(base).rstrip('/')}{path}"


def tool_definitions(tools: Sequence[Tool]) -> list[dict[str, Any]]:
    """Function-tool schema array shared by OpenAI-style providers."""
    return [
        {
            "type": "function",
            "function": {
                "name": t.name,
                "description": t.description,
                "parameters": t.parameters if t.parameters is not None else {},
            },
        }
        for t in tools
    ]


def build_timeout(options: Mapping[str, Any]) -> aiohttp.ClientTimeout:
    """Build a client timeout configuration from adapter options."""
    connect = float(options.get("connect_timeout") or DEFAULT_CONNECT_TIMEOUT)
    read = float(options.get("read_timeout") or DEFAULT_READ_TIMEOUT)
    return aiohttp.ClientTimeout(
        total=None,
        connect=connect,
        sock_connect=connect,
        sock_read=read,
    )


async def post_json(
    provider: str,
    url: str,
    payload: dict[str, Any],
    options: Mapping[str, Any],
    headers: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """
    POST a JSON payload and return the decoded JSON object.

    Every failure surfaces as exactly one categorized AdapterError subclass.
    """
    try:
        async with aiohttp.ClientSession(timeout=build_timeout(options)) as session:
            async with session.post(url, json=payload, headers=dict(headers or {})) as resp:
                status = resp.status
                raw = await resp.read()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        details = f"{e}" or type(e).__name__
        raise TransportError(f"Cannot connect to {provider} at {url}: {details}", provider) from e

    text = raw.decode("utf-8", errors="replace")
    if not 200 <= status < 300:
        raise ProviderHttpError(http_error_message(provider, status, text), status, provider)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(
            f"{provider} API returned invalid JSON: {text[:ERROR_EXCERPT_CHARS]}", provider
        ) from e
    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"{provider} API returned a non-object body: {text[:ERROR_EXCERPT_CHARS]}", provider
        )

    error = data.get("error")
    if error:
        raise ProviderApplicationError(f"{provider} API error: {error_text(error)}", provider)
    return data


def http_error_message(provider: str, status: int, text: str) -> str:
    """Prefer the structured error message; fall back to a raw body excerpt."""
    message = f"{provider} API HTTP {status}"
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        if text:
            message += f": {text[:ERROR_EXCERPT_CHARS]}"
        return message
    if isinstance(parsed, dict) and parsed.get("error"):
        return error_text(parsed["error"])
    return message


def error_text(error: Any) -> str:
    """Extract human-readable text from an ``error`` field (object or string)."""
    if isinstance(error, dict):
        return str(error.get("message") or json.dumps(error))
    return str(error)
