"""Tool listing route."""

from flask import Blueprint, current_app, jsonify

from web.app import build_tool_registry

tools_bp = Blueprint("tools", __name__)


@tools_bp.route("/tools", methods=["GET"])
def list_tools():
    """List the tools every new session is created with."""
    registry = build_tool_registry(
        current_app.config["agent_config"],
        current_app.config["extra_tools"],
    )
    schemas = registry.get_tool_schemas()
    return jsonify({
        "tools": [
            {"name": t.name, "description": t.description, "parameters": schemas[t.name]}
            for t in registry
        ],
    })
