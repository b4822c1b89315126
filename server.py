"""
Chatdeck: Chat API Backend
Runs on port 5009 and serves the session store over JSON.

Usage:
    python server.py

Endpoints:
    POST http://localhost:5009/chat       {"message": "...", "wait": false}
    GET  http://localhost:5009/state
    GET  http://localhost:5009/health
"""

from datetime import datetime, timezone

from dotenv import load_dotenv

load_dotenv()

from flask import Flask, jsonify
from flask_cors import CORS

# ─── Internal imports ───
import app_config
from chat_logger import get_logger, mask_secret
from core import SessionStore, ThemeStore, PersistenceAdapter, JsonFileStorage
from services import CompletionClient
from routes import EXTENSION_KEY, chat_services
from routes.chat import chat_bp
from routes.sessions import sessions_bp

logger = get_logger("chatdeck")


def build_services(storage_dir: str = None, background_writes: bool = True) -> dict:
    """Construct the stores and completion client, restoring persisted state."""
    storage = JsonFileStorage(storage_dir or app_config.STORAGE_DIR)

    store = SessionStore(
        persistence=PersistenceAdapter(storage, app_config.CHAT_STORAGE_KEY, background=background_writes),
    )
    store.load()
    store.ensure_active_session()

    theme = ThemeStore(
        persistence=PersistenceAdapter(storage, app_config.THEME_STORAGE_KEY, background=background_writes),
    )
    theme.load()

    return {
        "store": store,
        "theme": theme,
        "client": CompletionClient(store),
    }


def create_app(services: dict = None) -> Flask:
    """
    Flask app factory.

    *services* holds "store", "theme" and "client"; when omitted they are
    built from app_config.
    """
    services = services or build_services()

    app = Flask(__name__)
    CORS(app)
    app.extensions[EXTENSION_KEY] = services

    app.register_blueprint(chat_bp)
    app.register_blueprint(sessions_bp)

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        current = chat_services()
        return jsonify({
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "api_configured": current["client"].api_configured,
            "sessions": len(current["store"].sessions),
            "loading": current["store"].loading,
        })

    return app


def shutdown(services: dict) -> None:
    """Cancel in-flight requests and drain queued state writes."""
    services["client"].close()
    services["store"].close()
    services["theme"].close()


# ═══════════════════════════════════════════
# STARTUP
# ═══════════════════════════════════════════

if __name__ == "__main__":
    print("=" * 60)
    print("  Chatdeck Chat API Server")
    print("=" * 60)
    print()

    services = build_services()
    app = create_app(services)

    logger.info(
        f"Server starting | port={app_config.PORT} | model={app_config.COMPLETION_MODEL} | "
        f"api_key={mask_secret(app_config.OPENROUTER_API_KEY)} | storage={app_config.STORAGE_DIR}"
    )
    print(f"🚀 Starting server on http://localhost:{app_config.PORT}")
    print(f"   POST http://localhost:{app_config.PORT}/chat")
    print(f"   GET  http://localhost:{app_config.PORT}/state")
    print(f"   GET  http://localhost:{app_config.PORT}/health")
    print()

    try:
        app.run(
            host="0.0.0.0",
            port=app_config.PORT,
            debug=app_config.DEBUG,
            use_reloader=False,
        )
    finally:
        shutdown(services)
