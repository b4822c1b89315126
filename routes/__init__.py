"""HTTP routes - Flask blueprints for the UI-facing API surface."""

from flask import current_app

EXTENSION_KEY = "chatdeck"


def chat_services() -> dict:
    """The store, theme store and completion client registered by create_app()."""
    return current_app.extensions[EXTENSION_KEY]
