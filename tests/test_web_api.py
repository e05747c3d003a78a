import json
import logging
from pathlib import Path

from adapters.registry import register_adapter
from agent.config import load_config
from agent.exceptions import ProviderHttpError
from agent.messages import AssistantMessage
from tools.base_tool import FunctionTool
from web.app import create_app

from fakes import ADD_PARAMETERS, ScriptedAdapter, add_tool_func, tool_call


def _make_app(tmp_path: Path, config_data: dict, adapter: ScriptedAdapter | None = None):
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"data_dir": str(tmp_path / "data"), **config_data}))
    config = load_config(str(config_path))
    adapter_name = None
    if adapter is not None:
        adapter_name = "web-scripted"
        register_adapter(adapter_name, adapter)
    app = create_app(
        config,
        adapter_name=adapter_name,
        tools=[FunctionTool("add", "Add two numbers", add_tool_func, ADD_PARAMETERS)],
    )
    app.testing = True
    return app


def test_send_runs_loop_and_returns_messages(tmp_path):
    adapter = ScriptedAdapter(
        [tool_call("add", "call_1", '{"a":3,"b":5}')],
        [AssistantMessage("3+5=8")],
    )
    client = _make_app(tmp_path, {}, adapter).test_client()

    resp = client.post("/api/chat/send", json={"message": "Calculate 3+5"})

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["reply"] == "3+5=8"
    assert [m["role"] for m in data["messages"]] == ["tool_call", "tool_result", "assistant"]
    assert data["messages"][1] == {"role": "tool_result", "call_id": "call_1", "content": "8", "is_error": False}

    history = client.get(f"/api/chat/history/{data['session_id']}").get_json()
    assert [m["role"] for m in history["history"]] == ["user", "tool_call", "tool_result", "assistant"]


def test_session_is_reused(tmp_path):
    adapter = ScriptedAdapter([AssistantMessage("one")], [AssistantMessage("two")])
    client = _make_app(tmp_path, {}, adapter).test_client()

    first = client.post("/api/chat/send", json={"message": "hi"}).get_json()
    second = client.post(
        "/api/chat/send", json={"message": "again", "session_id": first["session_id"]}
    ).get_json()

    assert second["session_id"] == first["session_id"]
    assert len(adapter.calls[1]) == 3

    sessions = client.get("/api/chat/sessions").get_json()["sessions"]
    assert sessions == [{"session_id": first["session_id"], "message_count": 4, "is_running": False}]


def test_send_validation(tmp_path):
    client = _make_app(tmp_path, {}, ScriptedAdapter()).test_client()

    resp = client.post("/api/chat/send", json={})
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "No message provided", "kind": "BadRequest"}

    resp = client.post("/api/chat/send", json={"message": "hi", "session_id": "missing"})
    assert resp.status_code == 404


def test_adapter_failure_maps_to_502(tmp_path):
    adapter = ScriptedAdapter(ProviderHttpError("Invalid API key", 401, "Fake"))
    client = _make_app(tmp_path, {}, adapter).test_client()

    resp = client.post("/api/chat/send", json={"message": "hi"})

    assert resp.status_code == 502
    assert resp.get_json() == {"error": "Invalid API key", "kind": "ProviderHttpError"}


def test_unknown_tool_maps_to_422(tmp_path):
    adapter = ScriptedAdapter([tool_call("unregistered_tool", "c1")])
    client = _make_app(tmp_path, {}, adapter).test_client()

    resp = client.post("/api/chat/send", json={"message": "hi"})

    assert resp.status_code == 422
    assert resp.get_json()["kind"] == "UnknownToolError"


def test_unknown_adapter_maps_to_500(tmp_path):
    client = _make_app(tmp_path, {"provider": {"adapter": "nonexistent"}}).test_client()

    resp = client.post("/api/chat/send", json={"message": "hi"})

    assert resp.status_code == 500
    assert resp.get_json() == {"error": 'Adapter "nonexistent" not found', "kind": "AdapterNotFoundError"}


def test_running_session_conflict(tmp_path):
    adapter = ScriptedAdapter([AssistantMessage("one")])
    app = _make_app(tmp_path, {}, adapter)
    client = app.test_client()
    session_id = client.post("/api/chat/send", json={"message": "hi"}).get_json()["session_id"]

    app.config["sessions"][session_id].is_running = True
    resp = client.post("/api/chat/send", json={"message": "again", "session_id": session_id})

    assert resp.status_code == 409
    assert resp.get_json()["kind"] == "SessionBusy"


def test_delete_session(tmp_path):
    adapter = ScriptedAdapter([AssistantMessage("one")])
    client = _make_app(tmp_path, {}, adapter).test_client()
    session_id = client.post("/api/chat/send", json={"message": "hi"}).get_json()["session_id"]

    assert client.delete(f"/api/chat/session/{session_id}").get_json() == {"status": "deleted"}
    assert client.delete(f"/api/chat/session/{session_id}").status_code == 404
    assert client.get(f"/api/chat/history/{session_id}").status_code == 404


def test_delete_session_closes_log_handler(tmp_path):
    adapter = ScriptedAdapter([AssistantMessage("one")])
    app = _make_app(tmp_path, {}, adapter)
    client = app.test_client()
    session_id = client.post("/api/chat/send", json={"message": "hi"}).get_json()["session_id"]
    logger = logging.getLogger(f"agent.loop.{session_id}")
    (handler,) = logger.handlers

    client.delete(f"/api/chat/session/{session_id}")

    assert logger.handlers == []
    assert handler.stream is None


def test_tools_listing(tmp_path):
    client = _make_app(tmp_path, {}).test_client()

    tools = client.get("/api/tools").get_json()["tools"]

    names = [t["name"] for t in tools]
    assert {"calculator", "current_time", "add"} <= set(names)
    add = next(t for t in tools if t["name"] == "add")
    assert add["parameters"] == ADD_PARAMETERS


def test_tools_listing_without_builtin(tmp_path):
    client = _make_app(tmp_path, {"tool_execution": {"discover_builtin": False}}).test_client()

    tools = client.get("/api/tools").get_json()["tools"]

    assert [t["name"] for t in tools] == ["add"]


def test_metrics_disabled(tmp_path):
    client = _make_app(tmp_path, {}).test_client()
    assert client.get("/api/metrics").get_json() == {"enabled": False, "sessions": []}


def test_metrics_enabled(tmp_path):
    adapter = ScriptedAdapter(
        [tool_call("add", "call_1", '{"a":1,"b":2}')],
        [AssistantMessage("3")],
    )
    client = _make_app(tmp_path, {"telemetry": {"enabled": True}}, adapter).test_client()
    session_id = client.post("/api/chat/send", json={"message": "hi"}).get_json()["session_id"]

    data = client.get("/api/metrics").get_json()

    assert data["enabled"] is True
    (entry,) = data["sessions"]
    assert entry["session_id"] == session_id
    assert entry["adapter"] == "web-scripted"
    assert entry["metrics"]["total_rounds"] == 2
    assert entry["metrics"]["outcome"] == "reply"
    totals = entry["totals"]
    assert totals["rounds"] == 2
    assert totals["adapter_calls"] == 2
    assert totals["adapter_errors"] == 0
    assert totals["tool_calls"] == 1
    assert totals["tool_errors"] == 0
    assert totals["outcome"] == "reply"


def test_cors_headers(tmp_path):
    client = _make_app(tmp_path, {}).test_client()
    resp = client.get("/api/tools", headers={"Origin": "http://example.com"})
    # older flask-cors answers "*", newer releases echo the request origin
    assert resp.headers.get("Access-Control-Allow-Origin") in ("*", "http://example.com")
