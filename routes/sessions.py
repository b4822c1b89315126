"""
Session and preference endpoints as a Flask Blueprint.
"""

from flask import Blueprint, request, jsonify

from chat_logger import get_logger
from routes import chat_services

logger = get_logger("chatdeck")

sessions_bp = Blueprint("sessions", __name__)


def _not_found(session_id: str):
    return jsonify({"success": False, "error": f"Session not found: {session_id}"}), 404


@sessions_bp.route("/state", methods=["GET"])
def get_state():
    """Full observable state: sessions, active id, active messages, loading."""
    return jsonify(chat_services()["store"].snapshot())


@sessions_bp.route("/sessions", methods=["GET"])
def list_sessions():
    store = chat_services()["store"]
    return jsonify({
        "sessions": [{"id": s.id, "name": s.name, "message_count": len(s.messages)} for s in store.sessions],
        "activeSessionId": store.active_session_id,
    })


@sessions_bp.route("/sessions", methods=["POST"])
def create_session():
    store = chat_services()["store"]
    session_id = store.create_session()
    return jsonify({"success": True, "session_id": session_id, "state": store.snapshot()}), 201


@sessions_bp.route("/sessions/<session_id>", methods=["GET"])
def get_session(session_id):
    session = chat_services()["store"].get_session(session_id)
    if session is None:
        return _not_found(session_id)
    return jsonify({"session": session.to_dict()})


@sessions_bp.route("/sessions/<session_id>", methods=["PATCH"])
def rename_session(session_id):
    body = request.get_json(silent=True)
    name = body.get("name") if isinstance(body, dict) else None
    if not isinstance(name, str) or not name.strip():
        return jsonify({"success": False, "error": "Send JSON with a non-empty 'name' field."}), 400

    store = chat_services()["store"]
    if not store.rename_session(session_id, name.strip()):
        return _not_found(session_id)
    return jsonify({"success": True, "state": store.snapshot()})


@sessions_bp.route("/sessions/<session_id>/activate", methods=["POST"])
def switch_session(session_id):
    store = chat_services()["store"]
    if not store.switch_session(session_id):
        return _not_found(session_id)
    return jsonify({"success": True, "state": store.snapshot()})


@sessions_bp.route("/sessions/<session_id>", methods=["DELETE"])
def delete_session(session_id):
    store = chat_services()["store"]
    if not store.delete_session(session_id):
        return _not_found(session_id)
    return jsonify({"success": True, "state": store.snapshot()})


# ═══════════════════════════════════════════
# THEME
# ═══════════════════════════════════════════

@sessions_bp.route("/theme", methods=["GET"])
def get_theme():
    return jsonify(chat_services()["theme"].preferences.to_dict())


@sessions_bp.route("/theme/toggle", methods=["POST"])
def toggle_theme():
    theme = chat_services()["theme"]
    theme.toggle_theme()
    return jsonify(theme.preferences.to_dict())


@sessions_bp.route("/theme", methods=["PATCH"])
def update_theme():
    body = request.get_json(silent=True)
    if not isinstance(body, dict) or "accentColor" not in body:
        return jsonify({"success": False, "error": "Send JSON with an 'accentColor' field."}), 400

    theme = chat_services()["theme"]
    try:
        theme.set_accent_color(body["accentColor"])
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    logger.debug(f"Accent color set | color={theme.preferences.accent_color}")
    return jsonify(theme.preferences.to_dict())
