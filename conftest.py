"""
Pytest configuration and fixtures for chatdeck tests.

Provides an in-memory session store, fast completion settings and a fake
HTTP session that replays canned responses instead of calling the network.
"""

import json
import threading

import pytest
import requests

from core import SessionStore, ThemeStore, PersistenceAdapter, MemoryStorage
from services import CompletionClient, CompletionSettings


def make_response(status_code: int = 200, payload=None, raw: bytes = None) -> requests.Response:
    """Build a real requests.Response carrying *payload* as JSON."""
    response = requests.Response()
    response.status_code = status_code
    response.headers["Content-Type"] = "application/json"
    response._content = raw if raw is not None else json.dumps(payload).encode("utf-8")
    return response


def completion_payload(content: str) -> dict:
    return {
        "id": "gen-123",
        "model": "openai/gpt-3.5-turbo",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


class FakeHttpSession:
    """
    Stands in for requests.Session.

    Each post() pops the next outcome: a Response is returned, an exception
    is raised. With ``block=True`` post() hangs until release() or close();
    close() makes the hung call fail like an aborted connection, unless
    ``abortable=False`` in which case the call keeps waiting for release().
    """

    def __init__(self, outcomes=(), block: bool = False, abortable: bool = True):
        self.outcomes = list(outcomes)
        self.abortable = abortable
        self.calls = []
        self.requested = threading.Event()
        self.closed = threading.Event()
        self._released = threading.Event()
        if not block:
            self._released.set()

    def post(self, url, headers=None, json=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "json": json, "timeout": timeout})
        self.requested.set()
        while not self._released.wait(0.01):
            if self.abortable and self.closed.is_set():
                raise requests.ConnectionError("Connection aborted: session closed")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def release(self):
        self._released.set()

    def close(self):
        self.closed.set()


def session_factory(*fakes):
    """Hand out the given fake sessions in order, one per request."""
    queue = list(fakes)
    lock = threading.Lock()

    def factory():
        with lock:
            return queue.pop(0)
    return factory


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return SessionStore(persistence=PersistenceAdapter(storage, "chat-storage"))


@pytest.fixture
def theme(storage):
    return ThemeStore(persistence=PersistenceAdapter(storage, "theme-storage"))


@pytest.fixture
def settings():
    return CompletionSettings(
        api_key="sk-or-test-0123456789",
        api_url="https://openrouter.test/api/v1/chat/completions",
        model="openai/gpt-3.5-turbo",
        temperature=0.7,
        max_tokens=1000,
        request_timeout=5.0,
        loading_timeout=5.0,
        max_retries=3,
        retry_delay=0.01,
        app_title="Chatdeck",
        app_referer="http://localhost:5009",
    )


@pytest.fixture
def make_client(store, settings):
    """Build CompletionClients over the shared store; all are closed afterwards."""
    clients = []

    def _make(*fakes, **overrides):
        for key, value in overrides.items():
            setattr(settings, key, value)
        client = CompletionClient(store, settings=settings, http_session_factory=session_factory(*fakes))
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.close()
