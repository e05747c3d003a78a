"""Chat API routes: send messages, read and delete sessions."""

from flask import Blueprint, request, jsonify, current_app

from agent.messages import AssistantMessage, message_to_dict
from web.app import SessionBusy, SessionState, error_body

chat_bp = Blueprint("chat", __name__)


@chat_bp.route("/chat/send", methods=["POST"])
def send_message():
    """Send a user message and run the agent loop to its final reply."""
    data = request.get_json(silent=True) or {}
    message = data.get("message")
    session_id = data.get("session_id")

    if not isinstance(message, str) or not message.strip():
        return error_body("No message provided", "BadRequest", 400)
    if session_id is not None and not isinstance(session_id, str):
        return error_body("session_id must be a string", "BadRequest", 400)

    sessions = current_app.config["sessions"]

    # Get or create session
    if session_id:
        session = sessions.get(session_id)
        if session is None:
            return error_body("Session not found", "SessionNotFound", 404)
    else:
        session = SessionState(
            current_app.config["agent_config"],
            tools=current_app.config["extra_tools"],
        )
        sessions[session.session_id] = session

    try:
        produced = session.send_message(message.strip())
    except SessionBusy as e:
        return error_body(str(e), "SessionBusy", 409)

    last = produced[-1] if produced else None
    return jsonify({
        "session_id": session.session_id,
        "messages": [message_to_dict(m) for m in produced],
        "reply": last.content if isinstance(last, AssistantMessage) else None,
    })


@chat_bp.route("/chat/history/<session_id>")
def get_history(session_id):
    """Get the full conversation context for a session."""
    session = current_app.config["sessions"].get(session_id)
    if session is None:
        return error_body("Session not found", "SessionNotFound", 404)

    return jsonify({
        "session_id": session_id,
        "history": [message_to_dict(m) for m in session.agent.context],
        "is_running": session.is_running,
    })


@chat_bp.route("/chat/sessions", methods=["GET"])
def list_sessions():
    """List all active sessions."""
    sessions = current_app.config["sessions"]
    result = [
        {
            "session_id": sid,
            "message_count": len(session.agent.context),
            "is_running": session.is_running,
        }
        for sid, session in sessions.items()
    ]
    return jsonify({"sessions": result})


@chat_bp.route("/chat/session/<session_id>", methods=["DELETE"])
def delete_session(session_id):
    """Delete a session."""
    sessions = current_app.config["sessions"]
    if session_id not in sessions:
        return error_body("Session not found", "SessionNotFound", 404)
    sessions.pop(session_id).agent.close()
    return jsonify({"status": "deleted"})
