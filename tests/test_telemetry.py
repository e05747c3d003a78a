import asyncio
import json
from pathlib import Path

import pytest

from agent.config import TelemetryConfig
from agent.exceptions import LoopBoundExceeded
from agent.messages import AssistantMessage, UserMessage
from agent.telemetry import Telemetry
from tools.base_tool import FunctionTool

from fakes import ScriptedAdapter, scripted_agent, tool_call


def _events(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text().strip().splitlines()]


def test_telemetry_records_events(tmp_path: Path):
    config = TelemetryConfig(
        enabled=True,
        log_dir=str(tmp_path),
        otel_enabled=False,
        otel_endpoint=None,
        otel_service_name="tool-loop-agents",
    )
    telemetry = Telemetry(config, session_id="sess123")

    telemetry.record_adapter_call(
        adapter="openai",
        model="gpt-5-nano",
        context_size=1,
        returned=1,
        latency_ms=123.4,
    )
    telemetry.record_tool_call(
        tool_name="calculator",
        call_id="call_1",
        duration_ms=5.5,
        is_error=False,
        result_summary="8",
    )
    telemetry.record_round(round_number=1, decision="tools:calculator", duration_ms=200.0)
    telemetry.finalize("reply")

    summary = telemetry.summary()
    assert summary.total_rounds == 1
    assert summary.outcome == "reply"
    assert summary.tool_calls[0].call_id == "call_1"

    events = [e["event"] for e in _events(tmp_path / "sess123.jsonl")]
    assert events == ["adapter_call", "tool_call", "loop_round", "session_summary"]


def test_telemetry_disabled_no_log(tmp_path: Path):
    config = TelemetryConfig(enabled=False, log_dir=str(tmp_path))
    telemetry = Telemetry(config, session_id="sess456")
    telemetry.record_adapter_call(
        adapter="openai",
        model=None,
        context_size=1,
        returned=1,
        latency_ms=1.0,
    )
    assert not (tmp_path / "sess456.jsonl").exists()
    assert telemetry.summary().adapter_calls == []


async def _run(agent, message):
    return await agent.run(message)


def test_agent_loop_emits_telemetry(tmp_path: Path):
    telemetry = Telemetry(TelemetryConfig(enabled=True, log_dir=str(tmp_path)), session_id="loop1")
    adapter = ScriptedAdapter(
        [tool_call("double", "c1", '{"n": 2}')],
        [AssistantMessage("4")],
    )
    agent = scripted_agent(adapter, telemetry=telemetry, session_id="loop1")
    agent.register_tool(FunctionTool("double", "", lambda args: args["n"] * 2))

    asyncio.run(_run(agent, UserMessage("double 2")))

    events = _events(tmp_path / "loop1.jsonl")
    assert [e["event"] for e in events] == [
        "adapter_call", "tool_call", "loop_round",
        "adapter_call", "loop_round", "session_summary",
    ]
    assert events[0]["adapter"] == "scripted"
    assert events[0]["context_size"] == 1
    assert events[1]["result_summary"] == "4"
    assert events[2]["decision"] == "tools:double"
    assert events[4]["decision"] == "reply"
    assert events[-1]["outcome"] == "reply"


def test_failed_loop_records_outcome(tmp_path: Path):
    telemetry = Telemetry(TelemetryConfig(enabled=True, log_dir=str(tmp_path)), session_id="loop2")
    adapter = ScriptedAdapter([tool_call("double", "c1", '{"n": 1}')])
    agent = scripted_agent(adapter, telemetry=telemetry, max_rounds=1)
    agent.register_tool(FunctionTool("double", "", lambda args: args["n"] * 2))

    with pytest.raises(LoopBoundExceeded):
        asyncio.run(_run(agent, UserMessage("loop")))

    assert telemetry.summary().outcome == "LoopBoundExceeded"
