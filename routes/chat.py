"""
Chat endpoints as a Flask Blueprint: submitting turns and editing the
active session's messages.
"""

from flask import Blueprint, request, jsonify

from chat_logger import get_logger
from models import RequestOutcome
from routes import chat_services

logger = get_logger("chatdeck")

chat_bp = Blueprint("chat", __name__)


@chat_bp.route("/chat", methods=["POST"])
def chat():
    """
    Send one user turn to the completion service.

    Request:
        POST /chat
        {"message": "hello", "wait": false}

    Response:
        202 with the store state once dispatched, or 200 with the reply when
        "wait" is true. 409 when a reply is still pending for this session.
    """
    body = request.get_json(silent=True)
    if not isinstance(body, dict) or not isinstance(body.get("message"), str):
        logger.warning("POST /chat | Invalid JSON body")
        return jsonify({
            "success": False,
            "error": "Invalid request. Send JSON with a 'message' field.",
        }), 400

    message = body["message"]
    if not message.strip():
        return jsonify({"success": False, "error": "Message is empty."}), 400

    services = chat_services()
    client = services["client"]
    store = services["store"]

    handle = client.submit(message)
    if handle is None:
        return jsonify({
            "success": False,
            "error": "A reply is still pending for this session.",
            "state": store.snapshot(),
        }), 409

    if not body.get("wait"):
        return jsonify({
            "success": True,
            "session_id": handle.session_id,
            "state": store.snapshot(),
        }), 202

    # The watchdog settles every request within loading_timeout
    handle.wait(client.settings.loading_timeout + 1)
    return jsonify({
        "success": handle.outcome is RequestOutcome.COMPLETED,
        "session_id": handle.session_id,
        "outcome": handle.outcome.value if handle.outcome else None,
        "error_kind": handle.error_kind.value if handle.error_kind else None,
        "reply": handle.reply.to_dict() if handle.reply else None,
        "state": store.snapshot(),
    }), 200


@chat_bp.route("/messages", methods=["POST"])
def add_message():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"success": False, "error": "Invalid JSON body"}), 400

    store = chat_services()["store"]
    try:
        message = store.add_message(body)
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    return jsonify({"success": True, "message": message.to_dict(), "state": store.snapshot()}), 201


@chat_bp.route("/messages", methods=["DELETE"])
def clear_messages():
    store = chat_services()["store"]
    store.clear_current_session()
    return jsonify({"success": True, "state": store.snapshot()})


@chat_bp.route("/loading", methods=["PUT"])
def set_loading():
    """Set the loading flag; anything but a JSON boolean resets it to false."""
    body = request.get_json(silent=True)
    store = chat_services()["store"]
    store.set_loading(body.get("loading") if isinstance(body, dict) else None)
    return jsonify({"success": True, "loading": store.loading})
