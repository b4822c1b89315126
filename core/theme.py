"""
Theme preference store: dark mode and accent colour, persisted on its
own key independently of chat state.
"""

import threading
from typing import Optional

from models import ThemePreferences
from chat_logger import get_logger

logger = get_logger("chatdeck")


class ThemeStore:

    def __init__(self, persistence=None):
        self._persistence = persistence
        self._lock = threading.Lock()
        self._prefs = ThemePreferences()

    @property
    def preferences(self) -> ThemePreferences:
        with self._lock:
            return ThemePreferences(self._prefs.is_dark_mode, self._prefs.accent_color)

    def toggle_theme(self) -> bool:
        """Flip dark mode and return the new value."""
        with self._lock:
            self._prefs.is_dark_mode = not self._prefs.is_dark_mode
            self._persist()
            return self._prefs.is_dark_mode

    def set_accent_color(self, color: str) -> None:
        if not isinstance(color, str) or not color.strip():
            raise ValueError("Accent color must be a non-empty string")
        with self._lock:
            self._prefs.accent_color = color.strip()
            self._persist()

    def load(self) -> bool:
        if self._persistence is None:
            return False
        record: Optional[dict] = self._persistence.load()
        if not record:
            return False
        dark = record.get("isDarkMode", False)
        accent = record.get("accentColor", "blue")
        with self._lock:
            self._prefs = ThemePreferences(
                is_dark_mode=dark if isinstance(dark, bool) else False,
                accent_color=accent if isinstance(accent, str) and accent else "blue",
            )
        logger.debug(f"Theme restored | dark={self._prefs.is_dark_mode} | accent={self._prefs.accent_color}")
        return True

    def close(self) -> None:
        if self._persistence is not None:
            self._persistence.close()

    def _persist(self) -> None:
        if self._persistence is not None:
            self._persistence.save(self._prefs.to_dict())
