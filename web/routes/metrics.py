"""Metrics API routes: adapter calls, tool calls and loop rounds per session."""

from flask import Blueprint, current_app, jsonify

metrics_bp = Blueprint("metrics", __name__)


def _session_totals(summary: dict) -> dict:
    adapter_calls = summary["adapter_calls"]
    tool_calls = summary["tool_calls"]
    latencies = [c["latency_ms"] for c in adapter_calls]
    return {
        "rounds": summary["total_rounds"],
        "adapter_calls": len(adapter_calls),
        "adapter_errors": sum(1 for c in adapter_calls if c["error"]),
        "avg_adapter_latency_ms": sum(latencies) / len(latencies) if latencies else 0.0,
        "tool_calls": len(tool_calls),
        "tool_errors": sum(1 for c in tool_calls if c["is_error"]),
        "outcome": summary["outcome"],
    }


@metrics_bp.route("/metrics", methods=["GET"])
def get_metrics():
    """
    Return loop telemetry for active sessions.

    Each entry carries per-session totals (rounds, adapter calls and their
    latency, tool calls and failures) next to the full recorded summary.
    """
    config = current_app.config["agent_config"]
    if not config.telemetry.enabled:
        return jsonify({"enabled": False, "sessions": []})

    result = []
    for sid, session in current_app.config["sessions"].items():
        telemetry = session.agent.telemetry
        if telemetry is None:
            continue
        summary = telemetry.summary_dict()
        result.append({
            "session_id": sid,
            "adapter": session.agent.adapter_name,
            "totals": _session_totals(summary),
            "metrics": summary,
        })

    return jsonify({
        "enabled": True,
        "log_dir": config.telemetry.log_dir,
        "sessions": result,
    })
