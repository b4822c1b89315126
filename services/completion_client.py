"""
Completion client: one HTTP request per user turn.

Flow of submit():
  1. Append the user message and raise the loading flag
  2. Cancel whatever request this client still had in flight
  3. POST the session history on a worker thread (connectivity failures
     are retried with a linearly growing delay)
  4. Append exactly one assistant message: the reply, or a readable error
  5. Drop the loading flag

A watchdog timer armed on dispatch guarantees step 5 happens even when
the transport hangs.
"""

import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests as http_requests

import app_config
from models import ErrorKind, Message, RequestOutcome, Role, utc_now_iso
from chat_logger import get_logger, redact_bearer, sanitize_log_string
from services.api_check import check_api_config

logger = get_logger("chatdeck")


# ══════════════════════════════════════════════════════════════
# SETTINGS
# ══════════════════════════════════════════════════════════════

@dataclass
class CompletionSettings:
    api_key: str
    api_url: str
    model: str
    temperature: float = 0.7
    max_tokens: int = 1000
    request_timeout: float = 20.0
    loading_timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0
    app_title: str = ""
    app_referer: str = ""

    @classmethod
    def from_config(cls) -> "CompletionSettings":
        """Read the deployment settings from app_config at call time."""
        return cls(
            api_key=app_config.OPENROUTER_API_KEY,
            api_url=app_config.COMPLETION_API_URL,
            model=app_config.COMPLETION_MODEL,
            temperature=app_config.COMPLETION_TEMPERATURE,
            max_tokens=app_config.COMPLETION_MAX_TOKENS,
            request_timeout=app_config.REQUEST_TIMEOUT_SECONDS,
            loading_timeout=app_config.LOADING_TIMEOUT_SECONDS,
            max_retries=app_config.MAX_RETRIES,
            retry_delay=app_config.RETRY_DELAY_SECONDS,
            app_title=app_config.APP_TITLE,
            app_referer=app_config.APP_REFERER,
        )


# ══════════════════════════════════════════════════════════════
# ERRORS
# ══════════════════════════════════════════════════════════════

USER_MESSAGES = {
    ErrorKind.NETWORK: "Network error: Unable to connect to the API. Please check your internet connection.",
    ErrorKind.AUTHENTICATION: "Authentication failed: the API key was rejected. Please check your configuration.",
    ErrorKind.RATE_LIMIT: "Rate limit reached: too many requests. Please wait a moment and try again.",
    ErrorKind.TIMEOUT: "The request timed out. Please try again.",
    ErrorKind.INVALID_RESPONSE: "Invalid response from the API. Please try again.",
    ErrorKind.UNKNOWN: "An error occurred. Please try again.",
}


class CompletionError(Exception):
    """A classified failure that ends up in the chat as an assistant message."""

    def __init__(self, kind: ErrorKind, detail: str = "", user_message: Optional[str] = None):
        super().__init__(detail or kind.value)
        self.kind = kind
        self.detail = detail
        self.user_message = user_message or USER_MESSAGES[kind]


class RequestCancelled(Exception):
    """Raised inside the worker when its request was superseded or aborted."""


# ══════════════════════════════════════════════════════════════
# REQUEST HANDLE
# ══════════════════════════════════════════════════════════════

class CancellationToken:

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to *timeout* seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)


class PendingRequest:
    """Handle for one dispatched completion request."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        self.token = CancellationToken()
        self.outcome: Optional[RequestOutcome] = None
        self.reply: Optional[Message] = None
        self.error_kind: Optional[ErrorKind] = None
        self._done = threading.Event()
        self._lock = threading.Lock()
        self._http = None
        self._watchdog: Optional[threading.Timer] = None

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)

    def _bind_transport(self, http) -> None:
        with self._lock:
            self._http = http
        if self.token.cancelled:
            self._close_transport()

    def _close_transport(self) -> None:
        # Closing the session is how an in-flight transport gets aborted
        with self._lock:
            http, self._http = self._http, None
        if http is not None:
            http.close()

    def _disarm(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()

    def _finish(self, outcome: RequestOutcome, reply: Optional[Message] = None,
                error_kind: Optional[ErrorKind] = None) -> None:
        self.outcome = outcome
        self.reply = reply
        self.error_kind = error_kind
        self._done.set()


# ══════════════════════════════════════════════════════════════
# CLIENT
# ══════════════════════════════════════════════════════════════

class CompletionClient:
    """Sends the active session's history to the completion endpoint."""

    def __init__(self, store, settings: Optional[CompletionSettings] = None,
                 http_session_factory=None):
        self.store = store
        self.settings = settings or CompletionSettings.from_config()
        self._http_session_factory = http_session_factory or http_requests.Session
        self._lock = threading.Lock()
        self._pending: Optional[PendingRequest] = None
        self.api_configured = check_api_config(self.settings.api_key)

    @property
    def pending(self) -> Optional[PendingRequest]:
        with self._lock:
            return self._pending

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {self.settings.api_key}",
        }
        if self.settings.app_referer:
            headers["HTTP-Referer"] = self.settings.app_referer
        if self.settings.app_title:
            headers["X-Title"] = self.settings.app_title
        return headers

    def build_payload(self, history: List[Message]) -> Dict[str, Any]:
        return {
            "model": self.settings.model,
            "messages": [m.to_api() for m in history],
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
        }

    # ─── Dispatch ───

    def submit(self, user_text: str) -> Optional[PendingRequest]:
        """
        Send one user turn. Returns the request handle, or None when the text
        is blank or a request is already pending for the active session.
        """
        if not isinstance(user_text, str) or not user_text.strip():
            logger.debug("Submit ignored: empty message")
            return None

        with self._lock:
            current = self._pending
            if (
                current is not None
                and not current.done
                and self.store.loading
                and current.session_id == self.store.active_session_id
            ):
                logger.info(f"Submit rejected: request already pending | session={current.session_id}")
                return None

            session_id = self.store.ensure_active_session()
            if self.store.add_message({"role": Role.USER.value, "content": user_text}, session_id=session_id) is None:
                return None
            self.store.set_loading(True)

            if current is not None and not current.done:
                self._cancel(current)

            session = self.store.get_session(session_id)
            payload = self.build_payload(session.messages if session else [])

            handle = PendingRequest(session_id)
            handle._watchdog = threading.Timer(
                self.settings.loading_timeout, self._on_watchdog, args=(handle,)
            )
            handle._watchdog.daemon = True
            self._pending = handle

        logger.info(
            f"Completion dispatched | session={session_id} | model={self.settings.model} | "
            f"history={len(payload['messages'])} | message=\"{sanitize_log_string(user_text[:200])}\""
        )
        handle._watchdog.start()
        worker = threading.Thread(
            target=self._run, args=(handle, payload),
            name=f"completion-{session_id[:8]}", daemon=True,
        )
        worker.start()
        return handle

    def close(self) -> None:
        """Cancel whatever is in flight and drop the loading flag."""
        with self._lock:
            current, self._pending = self._pending, None
            if current is not None and not current.done:
                self._cancel(current)
                self.store.set_loading(False)

    def _cancel(self, handle: PendingRequest) -> None:
        # Caller holds self._lock; the superseding request owns the loading flag
        handle.token.cancel()
        handle._disarm()
        handle._finish(RequestOutcome.CANCELLED)
        logger.debug(f"Completion cancelled | session={handle.session_id}")
        handle._close_transport()

    # ─── Worker ───

    def _run(self, handle: PendingRequest, payload: Dict[str, Any]) -> None:
        http = self._http_session_factory()
        handle._bind_transport(http)
        try:
            text = self._request_completion(http, payload, handle.token)
            outcome, error_kind = RequestOutcome.COMPLETED, None
        except RequestCancelled:
            logger.debug(f"Dropped result of cancelled request | session={handle.session_id}")
            return
        except CompletionError as e:
            if handle.token.cancelled:
                return
            logger.error(
                f"Completion failed | session={handle.session_id} | "
                f"kind={e.kind.value} | error={sanitize_log_string(redact_bearer(e.detail))}"
            )
            text, outcome, error_kind = e.user_message, RequestOutcome.FAILED, e.kind
        except Exception as e:
            if handle.token.cancelled:
                return
            logger.exception(f"Unexpected completion failure | session={handle.session_id} | error={e}")
            text, outcome, error_kind = USER_MESSAGES[ErrorKind.UNKNOWN], RequestOutcome.FAILED, ErrorKind.UNKNOWN
        finally:
            handle._close_transport()

        with self._lock:
            if handle.token.cancelled or handle.done:
                logger.debug(f"Dropped late result | session={handle.session_id}")
                return
            handle._disarm()
            self._settle(handle, text, outcome, error_kind)

    def _on_watchdog(self, handle: PendingRequest) -> None:
        with self._lock:
            if handle.token.cancelled or handle.done:
                return
            logger.warning(
                f"Completion watchdog fired after {self.settings.loading_timeout:.0f}s | "
                f"session={handle.session_id} | forcing loading off"
            )
            handle.token.cancel()
            self._settle(handle, USER_MESSAGES[ErrorKind.TIMEOUT], RequestOutcome.TIMED_OUT, ErrorKind.TIMEOUT)
        handle._close_transport()

    def _settle(self, handle: PendingRequest, text: str, outcome: RequestOutcome,
                error_kind: Optional[ErrorKind]) -> None:
        # Caller holds self._lock
        reply = self.store.add_message(
            Message(role=Role.ASSISTANT, content=text, timestamp=utc_now_iso()),
            session_id=handle.session_id,
        )
        if self._pending is handle:
            self._pending = None
            self.store.set_loading(False)
        handle._finish(outcome, reply, error_kind)
        if outcome is RequestOutcome.COMPLETED:
            logger.info(f"Completion resolved | session={handle.session_id} | chars={len(text)}")

    # ─── Transport ───

    def _request_completion(self, http, payload: Dict[str, Any], token: CancellationToken) -> str:
        attempt = 0
        while True:
            if token.cancelled:
                raise RequestCancelled()
            try:
                response = http.post(
                    self.settings.api_url,
                    headers=self._headers(),
                    json=payload,
                    timeout=self.settings.request_timeout,
                )
            except http_requests.Timeout as e:
                # ConnectTimeout is also a ConnectionError; treat it as a timeout
                raise CompletionError(ErrorKind.TIMEOUT, str(e)) from e
            except http_requests.ConnectionError as e:
                if token.cancelled:
                    raise RequestCancelled() from e
                if attempt >= self.settings.max_retries:
                    raise CompletionError(ErrorKind.NETWORK, str(e)) from e
                attempt += 1
                delay = self.settings.retry_delay * attempt
                logger.warning(
                    f"Retrying API call ({attempt}/{self.settings.max_retries}) "
                    f"in {delay:.1f}s | error={redact_bearer(str(e))}"
                )
                if token.wait(delay):
                    raise RequestCancelled() from e
                continue
            except http_requests.RequestException as e:
                raise CompletionError(ErrorKind.UNKNOWN, str(e)) from e

            return parse_completion_response(response)


def _error_detail(response) -> str:
    try:
        message = response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        message = None
    return message or f"API request failed with status {response.status_code}"


def parse_completion_response(response) -> str:
    """
    Map an HTTP response onto reply text or a CompletionError.

    Raises:
        CompletionError: non-2xx status or a body without choice content
    """
    status = response.status_code
    if status in (401, 403):
        raise CompletionError(ErrorKind.AUTHENTICATION, _error_detail(response))
    if status == 429:
        raise CompletionError(ErrorKind.RATE_LIMIT, _error_detail(response))
    if not 200 <= status < 300:
        detail = _error_detail(response)
        raise CompletionError(ErrorKind.UNKNOWN, detail, user_message=f"API Error: {detail}")

    try:
        data = response.json()
    except ValueError as e:
        raise CompletionError(ErrorKind.INVALID_RESPONSE, f"body is not JSON: {e}") from e

    # Some gateways answer 200 with an error object instead of choices
    if isinstance(data, dict) and "choices" not in data and isinstance(data.get("error"), dict):
        detail = data["error"].get("message") or "unknown error"
        raise CompletionError(ErrorKind.UNKNOWN, detail, user_message=f"API Error: {detail}")

    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise CompletionError(ErrorKind.INVALID_RESPONSE, f"missing choices[0].message.content: {e!r}") from e
    if not isinstance(content, str) or not content:
        raise CompletionError(ErrorKind.INVALID_RESPONSE, "empty completion content")
    return content
