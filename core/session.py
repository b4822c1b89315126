"""
Session Management

SessionStore owns every chat session, the active session pointer, the
active message cache and the loading flag. One instance is constructed at
startup and handed to whatever needs it.

Invariants kept by every mutation:
  - active_session_id is None or a key of the sessions map
  - active_messages always equals the active session's messages
  - loading is a real bool
"""

import threading
import uuid
from typing import Callable, Dict, List, Optional, Any

from models import ChatSession, Message, MessageLike
from chat_logger import get_logger, sanitize_log_string

logger = get_logger("chatdeck")


def _new_session_id() -> str:
    return uuid.uuid4().hex


class SessionStore:
    """Thread-safe container of chat sessions (see module docstring)."""

    def __init__(
        self,
        persistence=None,
        id_factory: Callable[[], str] = _new_session_id,
    ):
        self._persistence = persistence
        self._id_factory = id_factory
        self._lock = threading.RLock()

        # Insertion order of the dict is creation order
        self._sessions: Dict[str, ChatSession] = {}
        self._active_session_id: Optional[str] = None
        self._active_messages: List[Message] = []
        self._loading = False

    # ─── Read access ───

    @property
    def sessions(self) -> List[ChatSession]:
        with self._lock:
            return [s.copy() for s in self._sessions.values()]

    @property
    def active_session_id(self) -> Optional[str]:
        with self._lock:
            return self._active_session_id

    @property
    def active_messages(self) -> List[Message]:
        with self._lock:
            return list(self._active_messages)

    @property
    def loading(self) -> bool:
        with self._lock:
            return self._loading

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        with self._lock:
            session = self._sessions.get(session_id)
            return session.copy() if session else None

    def snapshot(self) -> Dict[str, Any]:
        """Observable state in the shape the presentation layer reads."""
        with self._lock:
            return {
                "sessions": [s.to_dict() for s in self._sessions.values()],
                "activeSessionId": self._active_session_id,
                "activeMessages": [m.to_dict() for m in self._active_messages],
                "loading": self._loading,
            }

    # ─── Session lifecycle ───

    def create_session(self) -> str:
        with self._lock:
            session_id = self._id_factory()
            while session_id in self._sessions:
                session_id = self._id_factory()
            session = ChatSession(id=session_id, name=f"Chat {len(self._sessions) + 1}")
            self._sessions[session_id] = session
            self._active_session_id = session_id
            self._active_messages = []
            self._loading = False
            logger.info(f"Session created | session={session_id} | name=\"{session.name}\"")
            self._persist()
            return session_id

    def rename_session(self, session_id: str, new_name: str) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            session.name = new_name
            logger.info(f"Session renamed | session={session_id} | name=\"{sanitize_log_string(new_name)}\"")
            self._persist()
            return True

    def switch_session(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            self._active_session_id = session_id
            self._active_messages = list(session.messages)
            logger.debug(f"Session switched | session={session_id}")
            self._persist()
            return True

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            if self._sessions.pop(session_id, None) is None:
                return False
            if session_id == self._active_session_id:
                # First remaining session in creation order, or nothing
                next_session = next(iter(self._sessions.values()), None)
                self._active_session_id = next_session.id if next_session else None
                self._active_messages = list(next_session.messages) if next_session else []
            logger.info(
                f"Session deleted | session={session_id} | "
                f"active={self._active_session_id} | remaining={len(self._sessions)}"
            )
            self._persist()
            return True

    def ensure_active_session(self) -> str:
        """Return the active session id, activating or creating one if needed."""
        with self._lock:
            if self._active_session_id is not None:
                return self._active_session_id
            if self._sessions:
                first = next(iter(self._sessions.values()))
                self._active_session_id = first.id
                self._active_messages = list(first.messages)
                self._persist()
                return first.id
            return self.create_session()

    # ─── Messages ───

    def add_message(self, message: MessageLike, session_id: Optional[str] = None) -> Optional[Message]:
        """
        Append a message, stamping a timestamp when it has none.

        Without *session_id* the message goes to the active session, which is
        created first if there is none. With *session_id* it goes to that
        session; if the session is gone nothing is stored and None is returned.

        Raises:
            ValueError: unknown role or non-string content
        """
        if not isinstance(message, Message):
            message = Message.from_dict(message)

        with self._lock:
            if session_id is None:
                session_id = self.ensure_active_session()
            session = self._sessions.get(session_id)
            if session is None:
                logger.warning(f"Message dropped, session no longer exists | session={session_id}")
                return None

            session.messages.append(message)
            if session_id == self._active_session_id:
                self._active_messages.append(message)
            self._persist()
            return message

    def clear_current_session(self) -> None:
        with self._lock:
            session = self._sessions.get(self._active_session_id) if self._active_session_id else None
            if session is None:
                return
            session.messages.clear()
            self._active_messages = []
            logger.info(f"Session cleared | session={session.id}")
            self._persist()

    # ─── Loading flag ───

    def set_loading(self, status) -> None:
        with self._lock:
            if isinstance(status, bool):
                self._loading = status
            else:
                logger.error(f"set_loading received non-boolean value: {status!r}")
                self._loading = False

    def reset_loading(self) -> None:
        """Emergency reset used when a request hangs."""
        self.set_loading(False)

    # ─── Persistence ───

    def to_record(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "sessions": [s.to_dict() for s in self._sessions.values()],
                "currentSessionId": self._active_session_id,
                "messages": [m.to_dict() for m in self._active_messages],
            }

    def load(self) -> bool:
        """
        Restore state from the persistence adapter.

        The active message cache is rebuilt from the session itself, and a
        stale currentSessionId falls back to the first session. Returns
        True when a record was restored.
        """
        if self._persistence is None:
            return False
        record = self._persistence.load()
        if not record:
            return False

        raw_sessions = record.get("sessions")
        if not isinstance(raw_sessions, list):
            raw_sessions = []

        sessions: Dict[str, ChatSession] = {}
        for raw in raw_sessions:
            try:
                session = ChatSession.from_dict(raw)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping unreadable persisted session | error={e}")
                continue
            sessions.setdefault(session.id, session)

        active_id = record.get("currentSessionId")
        if not isinstance(active_id, str) or active_id not in sessions:
            active_id = next(iter(sessions), None)

        with self._lock:
            self._sessions = sessions
            self._active_session_id = active_id
            self._active_messages = list(sessions[active_id].messages) if active_id else []
            self._loading = False
        logger.info(f"Restored {len(sessions)} session(s) | active={active_id}")
        return True

    def close(self) -> None:
        """Drain queued writes and stop the persistence worker."""
        if self._persistence is not None:
            self._persistence.close()

    def _persist(self) -> None:
        # Called with the lock held so queued writes keep mutation order
        if self._persistence is not None:
            self._persistence.save(self.to_record())
