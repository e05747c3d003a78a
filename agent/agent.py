"""Agent class: owns the conversation context and drives the tool-calling loop."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import os
import time
import uuid
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator, Mapping

from adapters.registry import get_adapter
from agent.exceptions import (
    AgentError,
    LoopBoundExceeded,
    MalformedResponseError,
    ToolExecutionError,
    UnknownToolError,
)
from agent.messages import (
    AssistantMessage,
    Message,
    RawArguments,
    ToolCallMessage,
    ToolResultMessage,
    parse_tool_arguments,
)
from tools.base_tool import Tool
from tools.tool_registry import ToolRegistry

if TYPE_CHECKING:
    from agent.config import AgentConfig
    from agent.telemetry import Telemetry
    from extensions.extension_manager import ExtensionManager

SUMMARY_CHARS = 200


class Agent:
    """
    Conversational agent bound to one provider adapter.

    The agent is the sole owner of ``context``: it only ever appends to it.
    ``run`` alternates between asking the adapter for the next model turn and
    executing the tool calls in that turn until the model answers with plain
    text. ``step`` performs a single adapter call and leaves any tool calls
    for the caller.
    """

    def __init__(
        self,
        adapter_name: str,
        options: Mapping[str, Any],
        *,
        max_rounds: int | None = None,
        tool_timeout: float | None = None,
        tool_timeouts: Mapping[str, float] | None = None,
        parallel_tools: bool = False,
        telemetry: "Telemetry | None" = None,
        extension_manager: "ExtensionManager | None" = None,
        log_dir: str | None = None,
        session_id: str | None = None,
    ):
        self.adapter_name = adapter_name
        self._adapter = get_adapter(adapter_name)
        self.options = dict(options)
        self.context: list[Message] = []
        self.tool_registry = ToolRegistry()
        self.max_rounds = max_rounds
        self.tool_timeout = tool_timeout
        self.tool_timeouts = dict(tool_timeouts or {})
        self.parallel_tools = parallel_tools
        self.telemetry = telemetry
        self.extension_manager = extension_manager
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self._lock = asyncio.Lock()
        self._logger = self._build_logger(log_dir)

    @classmethod
    def from_config(
        cls,
        config: "AgentConfig",
        session_id: str | None = None,
        extension_manager: "ExtensionManager | None" = None,
    ) -> "Agent":
        """Build an agent (telemetry, extensions, builtin tools) from file configuration."""
        from agent.telemetry import Telemetry
        from extensions.extension_manager import ExtensionManager

        session_id = session_id or uuid.uuid4().hex[:12]
        if extension_manager is None:
            extension_manager = ExtensionManager(config)
            extension_manager.discover_extensions()

        agent = cls(
            config.provider.adapter,
            config.provider.to_options(),
            max_rounds=config.max_rounds,
            tool_timeout=config.tool_execution.default_timeout,
            tool_timeouts=config.tool_execution.timeouts,
            parallel_tools=config.tool_execution.parallel,
            telemetry=Telemetry(config.telemetry, session_id),
            extension_manager=extension_manager,
            log_dir=config.log_dir,
            session_id=session_id,
        )
        if config.tool_execution.discover_builtin:
            agent.tool_registry.discover_tools()
            agent._logger.info(
                "Registered builtin tools: %s", ", ".join(agent.tool_registry.tool_names)
            )
        return agent

    # ── Tools ────────────────────────────────────────────────────────

    def register_tool(self, tool: Tool) -> None:
        """Register a tool; names must be unique per agent."""
        self.tool_registry.register(tool)

    @property
    def tools(self) -> list[Tool]:
        return self.tool_registry.tools

    def reset(self) -> None:
        """Start a new conversation. Registered tools are kept."""
        self.context = []

    def close(self) -> None:
        """Detach and close the per-session log handlers."""
        if self._logger.name == __name__:
            return
        for handler in list(self._logger.handlers):
            self._logger.removeHandler(handler)
            handler.close()

    # ── Public entry points ──────────────────────────────────────────

    async def step(self, message: Message, *, auto_append: bool = True) -> list[Message]:
        """
        Append ``message`` and perform exactly one adapter call.

        Returns the model's turn. Tool calls in it are not executed. With
        ``auto_append=False`` the agent's context is left as it was.
        """
        async with self._lock:
            with self._working_context(auto_append) as context:
                context.append(message)
                return await self._next_turn(context)

    async def run(
        self,
        message: Message,
        *,
        auto_append: bool = True,
        max_rounds: int | None = None,
    ) -> list[Message]:
        """
        Append ``message`` and loop until the model replies with plain text.

        Returns every message produced during this invocation: tool calls,
        tool results and the closing assistant message. ``max_rounds``
        overrides the agent default; None means no limit. With
        ``auto_append=False`` the agent's context is restored afterwards,
        including when the invocation fails.
        """
        limit = max_rounds if max_rounds is not None else self.max_rounds
        async with self._lock:
            with self._working_context(auto_append) as context:
                return await self._run_loop(context, message, limit)

    # ── Loop ─────────────────────────────────────────────────────────

    async def _run_loop(
        self,
        context: list[Message],
        seed: Message,
        limit: int | None,
    ) -> list[Message]:
        context.append(seed)
        await self._dispatch_hook("loop_start", agent=self, seed=seed)

        produced: list[Message] = []
        round_number = 0
        outcome = "error"
        try:
            while True:
                if limit is not None and round_number >= limit:
                    raise LoopBoundExceeded(limit)
                round_number += 1
                started = time.monotonic()

                turn = await self._next_turn(context)
                produced.extend(turn)

                if isinstance(turn[-1], AssistantMessage):
                    self._record_round(round_number, "reply", started)
                    outcome = "reply"
                    await self._dispatch_hook("loop_end", agent=self, messages=list(produced))
                    return produced

                calls = [m for m in turn if isinstance(m, ToolCallMessage)]
                if not calls:
                    raise MalformedResponseError(
                        f"Adapter '{self.adapter_name}' returned a turn with neither "
                        "tool calls nor a final reply",
                        self.adapter_name,
                    )

                results = await self._dispatch_tool_calls(context, calls)
                produced.extend(results)
                self._record_round(
                    round_number,
                    "tools:" + ",".join(c.tool_name for c in calls),
                    started,
                )
        except AgentError as e:
            outcome = type(e).__name__
            self._logger.error("Agent loop failed in round %d: %s", round_number, e)
            raise
        finally:
            if self.telemetry:
                self.telemetry.finalize(outcome)

    async def _next_turn(self, context: list[Message]) -> list[Message]:
        """Ask the adapter for the next turn and append it to ``context``."""
        snapshot = tuple(context)
        await self._dispatch_hook("before_adapter_call", agent=self, context=snapshot)

        self._logger.debug(
            "Calling adapter '%s' with %d message(s)", self.adapter_name, len(snapshot)
        )
        started = time.monotonic()
        try:
            turn = list(await self._adapter(self.options, snapshot, self.tool_registry.tools))
            if not turn:
                raise MalformedResponseError(
                    f"Adapter '{self.adapter_name}' returned no messages", self.adapter_name
                )
        except AgentError as e:
            self._record_adapter_call(len(snapshot), 0, started, error=str(e))
            raise

        context.extend(turn)
        self._record_adapter_call(len(snapshot), len(turn), started)
        await self._dispatch_hook("after_adapter_call", agent=self, messages=list(turn))
        return turn

    # ── Tool dispatch ────────────────────────────────────────────────

    async def _dispatch_tool_calls(
        self,
        context: list[Message],
        calls: list[ToolCallMessage],
    ) -> list[ToolResultMessage]:
        """Execute a batch of tool calls; results are appended in call order."""
        if self.parallel_tools:
            resolved = [(call, self._resolve_tool(call)) for call in calls]
            results = list(await asyncio.gather(
                *(self._execute_tool_call(call, tool) for call, tool in resolved)
            ))
            context.extend(results)
            return results

        results: list[ToolResultMessage] = []
        for call in calls:
            tool = self._resolve_tool(call)
            result = await self._execute_tool_call(call, tool)
            context.append(result)
            results.append(result)
        return results

    def _resolve_tool(self, call: ToolCallMessage) -> Tool:
        tool = self.tool_registry.find(call.tool_name)
        if tool is None:
            raise UnknownToolError(call.tool_name)
        return tool

    async def _execute_tool_call(self, call: ToolCallMessage, tool: Tool) -> ToolResultMessage:
        """Run one tool. Failures become error results instead of exceptions."""
        await self._dispatch_hook("tool_execute_before", agent=self, tool_call=call)
        self._logger.info("Executing tool '%s' (call %s)", call.tool_name, call.call_id)
        started = time.monotonic()

        arguments = parse_tool_arguments(call.args_text)
        if isinstance(arguments, RawArguments):
            result = ToolResultMessage(
                call_id=call.call_id,
                content=f"Invalid tool arguments: {arguments.error}",
                is_error=True,
            )
        else:
            try:
                output = await self._invoke(tool, arguments.value)
                result = ToolResultMessage(call_id=call.call_id, content=stringify_result(output))
            except Exception as e:
                result = ToolResultMessage(
                    call_id=call.call_id,
                    content=str(e) or type(e).__name__,
                    is_error=True,
                )

        if result.is_error:
            self._logger.warning("Tool '%s' failed: %s", call.tool_name, result.content)

        if self.telemetry:
            self.telemetry.record_tool_call(
                tool_name=call.tool_name,
                call_id=call.call_id,
                duration_ms=(time.monotonic() - started) * 1000,
                is_error=result.is_error,
                result_summary=result.content[:SUMMARY_CHARS],
            )
        await self._dispatch_hook(
            "tool_execute_after", agent=self, tool_call=call, result=result
        )
        return result

    async def _invoke(self, tool: Tool, args: Any) -> Any:
        """Call ``execute``; coroutine results are awaited under the tool's timeout."""
        output = tool.execute(args)
        if inspect.isawaitable(output):
            timeout = self._timeout_for(tool.name)
            if timeout is not None:
                try:
                    return await asyncio.wait_for(_own_timeout_as_error(output), timeout)
                except asyncio.TimeoutError:
                    raise ToolExecutionError(
                        f"Tool '{tool.name}' timed out after {timeout}s"
                    ) from None
            return await output
        return output

    def _timeout_for(self, tool_name: str) -> float | None:
        return self.tool_timeouts.get(tool_name, self.tool_timeout)

    # ── Disposable context ───────────────────────────────────────────

    @contextmanager
    def _working_context(self, auto_append: bool) -> Iterator[list[Message]]:
        """Yield the context to mutate; a private copy when not auto-appending."""
        if auto_append:
            yield self.context
            return

        original = self.context
        self.context = list(original)
        try:
            yield self.context
        finally:
            self.context = original

    # ── Telemetry / hooks / logging ──────────────────────────────────

    def _record_adapter_call(
        self,
        context_size: int,
        returned: int,
        started: float,
        error: str | None = None,
    ) -> None:
        if not self.telemetry:
            return
        self.telemetry.record_adapter_call(
            adapter=self.adapter_name,
            model=self.options.get("model"),
            context_size=context_size,
            returned=returned,
            latency_ms=(time.monotonic() - started) * 1000,
            error=error,
        )

    def _record_round(self, round_number: int, decision: str, started: float) -> None:
        if not self.telemetry:
            return
        self.telemetry.record_round(
            round_number, decision, (time.monotonic() - started) * 1000
        )

    async def _dispatch_hook(self, hook_name: str, **kwargs):
        """Dispatch a lifecycle hook to the extension manager if available."""
        if self.extension_manager:
            await self.extension_manager.dispatch(hook_name, **kwargs)

    def _build_logger(self, log_dir: str | None) -> logging.Logger:
        if not log_dir:
            return logging.getLogger(__name__)

        os.makedirs(log_dir, exist_ok=True)
        logger = logging.getLogger(f"agent.loop.{self.session_id}")
        if logger.handlers:
            return logger

        logger.setLevel(logging.INFO)
        log_path = os.path.join(log_dir, "agent.log")
        handler = logging.FileHandler(log_path, encoding="utf-8")
        formatter = logging.Formatter(
            fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.propagate = False
        return logger


async def _own_timeout_as_error(awaitable: Any) -> Any:
    """Await a tool result; a TimeoutError raised by the tool keeps its own message."""
    try:
        return await awaitable
    except asyncio.TimeoutError as e:
        raise ToolExecutionError(str(e) or type(e).__name__) from e


def stringify_result(output: Any) -> str:
    """Tool output as text: strings pass through, everything else becomes JSON."""
    if isinstance(output, str):
        return output
    return json.dumps(output, ensure_ascii=False, default=str)
