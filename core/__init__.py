"""Core package - exports core functionality."""

from .session import SessionStore
from .theme import ThemeStore
from .persistence import (
    PersistenceAdapter,
    JsonFileStorage,
    MemoryStorage,
)

__all__ = [
    "SessionStore",
    "ThemeStore",
    "PersistenceAdapter",
    "JsonFileStorage",
    "MemoryStorage",
]
