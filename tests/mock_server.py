"""In-process provider server for adapter tests, built on aiohttp's test utilities."""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable

from aiohttp import web
from aiohttp.test_utils import TestServer


@dataclass
class RecordedRequest:
    path: str
    headers: dict[str, str]
    body: Any


class MockProviderServer:
    """
    Serves POST ``path`` with ``handler(body)``.

    The handler returns a dict (sent as a 200 JSON response), a ready-made
    ``web.Response``, or an awaitable of either. Every request body and its
    headers are recorded in ``requests``.
    """

    def __init__(self, handler: Callable[[Any], Any], path: str = "/v1/chat/completions"):
        self.handler = handler
        self.path = path
        self.requests: list[RecordedRequest] = []
        app = web.Application()
        app.router.add_post(path, self._handle)
        self._server = TestServer(app)

    async def start(self) -> str:
        await self._server.start_server()
        return f"http://{self._server.host}:{self._server.port}"

    async def close(self) -> None:
        await self._server.close()

    async def _handle(self, request: web.Request) -> web.StreamResponse:
        body = await request.json()
        self.requests.append(RecordedRequest(request.path, dict(request.headers), body))
        reply = self.handler(body)
        if inspect.isawaitable(reply):
            reply = await reply
        if isinstance(reply, web.StreamResponse):
            return reply
        return web.json_response(reply)


def completion(content: str | None = None, tool_calls: list | None = None) -> dict:
    """Chat-completions response body with a single choice."""
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if tool_calls:
        message["tool_calls"] = tool_calls
    return {
        "id": "mock-id",
        "choices": [
            {
                "message": message,
                "finish_reason": "tool_calls" if tool_calls else "stop",
            }
        ],
    }


def function_call(call_id: str, name: str, arguments: str) -> dict:
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": arguments}}
