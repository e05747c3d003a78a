"""Flask application factory for the Tool Loop Agents web API."""

import asyncio
import dataclasses
import threading
from typing import Iterable

from flask import Flask, jsonify
from flask_cors import CORS

from agent.agent import Agent
from agent.config import AgentConfig
from agent.exceptions import (
    AdapterError,
    AgentError,
    ConfigError,
    LoopBoundExceeded,
    UnknownToolError,
)
from agent.messages import Message, UserMessage
from tools.base_tool import Tool
from tools.tool_registry import ToolRegistry

ERROR_STATUS = (
    (AdapterError, 502),
    (UnknownToolError, 422),
    (LoopBoundExceeded, 500),
    (ConfigError, 500),
)


def create_app(
    config: AgentConfig,
    adapter_name: str | None = None,
    tools: Iterable[Tool] = (),
) -> Flask:
    """Create and configure the Flask application.

    ``adapter_name`` overrides the configured adapter and ``tools`` are
    registered on every session's agent in addition to the builtin ones.
    """
    if adapter_name:
        config = dataclasses.replace(
            config, provider=dataclasses.replace(config.provider, adapter=adapter_name)
        )

    app = Flask(__name__)
    CORS(app)

    # Shared state
    app.config["agent_config"] = config
    app.config["extra_tools"] = list(tools)
    app.config["sessions"] = {}  # session_id -> SessionState

    # Register blueprints
    from web.routes.chat import chat_bp
    from web.routes.metrics import metrics_bp
    from web.routes.tools_routes import tools_bp

    app.register_blueprint(chat_bp, url_prefix="/api")
    app.register_blueprint(metrics_bp, url_prefix="/api")
    app.register_blueprint(tools_bp, url_prefix="/api")

    app.register_error_handler(AgentError, agent_error_response)

    return app


def error_body(message: str, kind: str, status: int):
    return jsonify({"error": message, "kind": kind}), status


def agent_error_response(e: AgentError):
    """Map a failure raised out of the agent loop to a JSON error response."""
    status = next((code for cls, code in ERROR_STATUS if isinstance(e, cls)), 500)
    return error_body(str(e), type(e).__name__, status)


def build_tool_registry(config: AgentConfig, extra_tools: Iterable[Tool]) -> ToolRegistry:
    """The tools a new session's agent starts with."""
    registry = ToolRegistry()
    if config.tool_execution.discover_builtin:
        registry.discover_tools()
    for t in extra_tools:
        registry.register(t)
    return registry


class SessionBusy(Exception):
    """Raised when a message is sent to a session whose loop is still running."""
    pass


class SessionState:
    """Holds the agent for one chat session."""

    def __init__(self, config: AgentConfig, session_id: str | None = None, tools: Iterable[Tool] = ()):
        self.config = config
        self.agent = Agent.from_config(config, session_id=session_id)
        for t in tools:
            self.agent.register_tool(t)
        self.is_running = False
        self._guard = threading.Lock()

    @property
    def session_id(self) -> str:
        return self.agent.session_id

    def send_message(self, text: str) -> list[Message]:
        """Run the agent loop for one user message on a private event loop."""
        with self._guard:
            if self.is_running:
                raise SessionBusy(f"Session {self.session_id} is already processing")
            self.is_running = True

        try:
            return _run_async(self.agent.run(UserMessage(text)))
        finally:
            self.is_running = False


def _run_async(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()
