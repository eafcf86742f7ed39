"""Session state for the single-user generation workflow.

The front-end flow is modelled as an explicit finite-state machine::

    checking_credential -> unauthenticated | idle
    idle -> generating -> succeeded | failed -> idle

Every state change goes through :data:`TRANSITIONS`; pairs that are not in
the table raise :class:`InvalidTransitionError`. The exposed
:class:`GenerationResult` is derived from the state, so a result can never be
loading and failed at once.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from functools import lru_cache
from typing import Dict, Optional, Tuple

from pydantic import SecretStr

from .config import get_settings
from .errors import ServiceErrorKind
from .schemas import GenerationResult

logger = logging.getLogger(__name__)

CREDENTIAL_ERROR_MARKERS = (
    "Requested entity was not found",
    "API Key not found",
    "API key not valid",
    "API_KEY_INVALID",
)
REAUTHENTICATE_MESSAGE = "Session expired or API Key invalid. Please reconnect."
MISSING_CREDENTIAL_MESSAGE = "API Key not found. Please set VISIONCRAFT_GEMINI_API_KEY or connect a key."
INTERRUPTED_MESSAGE = "Generation was interrupted. Please try again."


class SessionState(str, Enum):
    CHECKING_CREDENTIAL = "checking_credential"
    UNAUTHENTICATED = "unauthenticated"
    IDLE = "idle"
    GENERATING = "generating"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class SessionEvent(str, Enum):
    CREDENTIAL_FOUND = "credential_found"
    CREDENTIAL_MISSING = "credential_missing"
    CREDENTIAL_CONNECTED = "credential_connected"
    SUBMIT = "submit"
    SUCCEED = "succeed"
    FAIL = "fail"
    CREDENTIAL_REJECTED = "credential_rejected"
    RESET = "reset"


_READY_STATES = (SessionState.IDLE, SessionState.SUCCEEDED, SessionState.FAILED)

TRANSITIONS: Dict[Tuple[SessionState, SessionEvent], SessionState] = {
    (SessionState.CHECKING_CREDENTIAL, SessionEvent.CREDENTIAL_FOUND): SessionState.IDLE,
    (SessionState.CHECKING_CREDENTIAL, SessionEvent.CREDENTIAL_MISSING): SessionState.UNAUTHENTICATED,
    (SessionState.CHECKING_CREDENTIAL, SessionEvent.CREDENTIAL_CONNECTED): SessionState.IDLE,
    (SessionState.UNAUTHENTICATED, SessionEvent.CREDENTIAL_CONNECTED): SessionState.IDLE,
    (SessionState.GENERATING, SessionEvent.SUCCEED): SessionState.SUCCEEDED,
    (SessionState.GENERATING, SessionEvent.FAIL): SessionState.FAILED,
    (SessionState.GENERATING, SessionEvent.CREDENTIAL_REJECTED): SessionState.UNAUTHENTICATED,
}
for _state in _READY_STATES:
    TRANSITIONS[(_state, SessionEvent.SUBMIT)] = SessionState.GENERATING
    TRANSITIONS[(_state, SessionEvent.RESET)] = SessionState.IDLE
    TRANSITIONS[(_state, SessionEvent.CREDENTIAL_CONNECTED)] = SessionState.IDLE
    TRANSITIONS[(_state, SessionEvent.CREDENTIAL_REJECTED)] = SessionState.UNAUTHENTICATED


class InvalidTransitionError(RuntimeError):
    def __init__(self, state: SessionState, event: SessionEvent) -> None:
        super().__init__(f"Cannot apply '{event.value}' while the session is '{state.value}'.")
        self.state = state
        self.event = event


def next_state(state: SessionState, event: SessionEvent) -> SessionState:
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransitionError(state, event) from None


def is_credential_error(message: str, kind: Optional[ServiceErrorKind] = None) -> bool:
    if kind is ServiceErrorKind.INVALID_CREDENTIAL:
        return True
    return any(marker in message for marker in CREDENTIAL_ERROR_MARKERS)


class Session:
    """In-memory state of the one user driving this backend."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = SessionState.CHECKING_CREDENTIAL
        self._credential = SecretStr("")
        self._image_url = ""
        self._error: Optional[str] = None
        self._description = ""

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def has_credential(self) -> bool:
        return bool(self._credential.get_secret_value())

    @property
    def credential(self) -> str:
        return self._credential.get_secret_value()

    @property
    def description(self) -> str:
        return self._description

    @property
    def result(self) -> GenerationResult:
        with self._lock:
            return self._result_locked()

    def _result_locked(self) -> GenerationResult:
        if self._state is SessionState.GENERATING:
            return GenerationResult(loading=True)
        if self._state is SessionState.SUCCEEDED:
            return GenerationResult(image_url=self._image_url)
        if self._state in (SessionState.FAILED, SessionState.UNAUTHENTICATED) and self._error:
            return GenerationResult(error=self._error)
        return GenerationResult()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def _apply(self, event: SessionEvent) -> SessionState:
        new_state = next_state(self._state, event)
        logger.debug("Session %s --%s--> %s", self._state.value, event.value, new_state.value)
        self._state = new_state
        return new_state

    def check_credential(self, api_key: str) -> SessionState:
        """Resolve the initial credential check; later calls are no-ops."""
        with self._lock:
            if self._state is not SessionState.CHECKING_CREDENTIAL:
                return self._state
            if api_key:
                self._credential = SecretStr(api_key)
                logger.info("API Key detected from configuration.")
                return self._apply(SessionEvent.CREDENTIAL_FOUND)
            logger.warning("No API Key found in configuration.")
            return self._apply(SessionEvent.CREDENTIAL_MISSING)

    def connect(self, api_key: str) -> SessionState:
        with self._lock:
            self._apply(SessionEvent.CREDENTIAL_CONNECTED)
            self._credential = SecretStr(api_key)
            self._clear_outcome()
            return self._state

    def begin_generation(self, description: str) -> str:
        """Move to ``generating`` and hand back the credential to use.

        Raises :class:`InvalidTransitionError` when a request is already in
        flight or no credential is connected.
        """
        with self._lock:
            self._apply(SessionEvent.SUBMIT)
            self._clear_outcome()
            self._description = description
            return self._credential.get_secret_value()

    def complete(self, image_url: str) -> None:
        with self._lock:
            self._apply(SessionEvent.SUCCEED)
            self._image_url = image_url

    def fail(self, message: str, kind: Optional[ServiceErrorKind] = None) -> bool:
        """Record a failed generation; returns True when the credential was rejected."""
        with self._lock:
            if is_credential_error(message, kind):
                logger.warning("Credential rejected, reconnect required: %s", message)
                self._apply(SessionEvent.CREDENTIAL_REJECTED)
                self._credential = SecretStr("")
                self._error = REAUTHENTICATE_MESSAGE
                return True
            self._apply(SessionEvent.FAIL)
            self._error = message or "Something went wrong during generation."
            return False

    def abandon_generation(self, message: str) -> bool:
        """Fail a generation that ended without an outcome; returns True if one was pending."""
        with self._lock:
            if self._state is not SessionState.GENERATING:
                return False
            logger.warning("Generation ended without an outcome, marking it failed.")
            self._apply(SessionEvent.FAIL)
            self._error = message
            return True

    def reset(self) -> None:
        """Back to ``idle`` ("New Design")."""
        with self._lock:
            self._apply(SessionEvent.RESET)
            self._clear_outcome()
            self._description = ""

    def _clear_outcome(self) -> None:
        self._image_url = ""
        self._error = None


@lru_cache
def get_session() -> Session:
    session = Session()
    session.check_credential(get_settings().gemini_api_key.get_secret_value())
    return session
