"""
Data models for the Chatdeck chat client.
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Dict, Any, Mapping, Union


class Role(Enum):
    USER      = "user"
    ASSISTANT = "assistant"


class ErrorKind(Enum):
    NETWORK          = "network"
    AUTHENTICATION   = "authentication"
    RATE_LIMIT       = "rate_limit"
    TIMEOUT          = "timeout"
    INVALID_RESPONSE = "invalid_response"
    UNKNOWN          = "unknown"


class RequestOutcome(Enum):
    """How a dispatched completion request ended."""
    COMPLETED = "completed"    # assistant reply appended
    FAILED    = "failed"       # error message appended
    CANCELLED = "cancelled"    # superseded, nothing appended
    TIMED_OUT = "timed_out"    # watchdog fired


def utc_now_iso() -> str:
    """Current time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Message:
    role: Role
    content: str
    timestamp: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp,
        }

    def to_api(self) -> Dict[str, str]:
        """Shape sent to the completion endpoint (no timestamp)."""
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Message":
        """
        Build a Message from a plain mapping.
        A missing, empty or non-string timestamp is stamped with the current time.

        Raises:
            ValueError: unknown role or non-string content
        """
        role = data.get("role")
        if isinstance(role, str):
            role = Role(role)
        if not isinstance(role, Role):
            raise ValueError(f"Unsupported message role: {role!r}")
        content = data.get("content")
        if not isinstance(content, str):
            raise ValueError("Message content must be a string")
        timestamp = data.get("timestamp")
        if not isinstance(timestamp, str) or not timestamp:
            timestamp = utc_now_iso()
        return cls(role=role, content=content, timestamp=timestamp)


MessageLike = Union[Message, Mapping[str, Any]]


@dataclass
class ChatSession:
    id: str
    name: str
    messages: List[Message] = field(default_factory=list)

    def copy(self) -> "ChatSession":
        # Messages are frozen, so a shallow list copy is enough to avoid aliasing
        return ChatSession(id=self.id, name=self.name, messages=list(self.messages))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChatSession":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or "Chat"),
            messages=[Message.from_dict(m) for m in data.get("messages") or []],
        )


@dataclass
class ThemePreferences:
    is_dark_mode: bool = False
    accent_color: str = "blue"

    def to_dict(self) -> Dict[str, Any]:
        return {"isDarkMode": self.is_dark_mode, "accentColor": self.accent_color}

