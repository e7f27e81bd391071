#!/usr/bin/env python3
"""
Voice session: the state machine around one recognition attempt.
"""

import enum
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Union

import structlog

from .config import Config, default_config
from .errors import RecognitionFailure, TranscriptEmpty, UnsupportedEnvironment, VoiceChatbotError
from .models import RecognitionError, RecognitionEvent, ResolvedTranscript
from .transcript import interim_text, resolve

logger = structlog.get_logger(__name__)


class RecognitionProvider(Protocol):
    """Speech recognizer consumed by ``VoiceSession``.

    Callbacks are invoked on the event loop thread.
    """
    continuous: bool
    interim_results: bool
    max_alternatives: int
    language: str
    on_result: Optional[Callable[[RecognitionEvent], None]]
    on_error: Optional[Callable[[RecognitionError], None]]
    on_end: Optional[Callable[[], None]]

    def start(self) -> None: ...

    def stop(self) -> None: ...


# Returns None when recognition is not available here
RecognizerFactory = Callable[[], Optional[RecognitionProvider]]


class SessionState(enum.Enum):
    IDLE = "idle"
    LISTENING = "listening"


@dataclass(frozen=True)
class ResultReceived:
    event: RecognitionEvent


@dataclass(frozen=True)
class ErrorReceived:
    error: RecognitionError


@dataclass(frozen=True)
class EndReceived:
    pass


SessionEvent = Union[ResultReceived, ErrorReceived, EndReceived]


class VoiceSession:
    """
    Drives a single recognition attempt from ``start()`` back to ``IDLE``.

    Provider callbacks are turned into ``SessionEvent`` objects and handled by
    ``dispatch``. At most one underlying provider exists at a time; events
    from a provider that has been released are dropped.
    """

    def __init__(self, recognizer_factory: RecognizerFactory, config: Optional[Config] = None,
                 on_transcript: Optional[Callable[[ResolvedTranscript], None]] = None,
                 on_error: Optional[Callable[[VoiceChatbotError], None]] = None,
                 on_interim: Optional[Callable[[str], None]] = None,
                 on_state_change: Optional[Callable[[SessionState], None]] = None):
        self.config = config or default_config
        self._factory = recognizer_factory
        self.on_transcript = on_transcript
        self.on_error = on_error
        self.on_interim = on_interim
        self.on_state_change = on_state_change
        self._state = SessionState.IDLE
        self._provider: Optional[RecognitionProvider] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def listening(self) -> bool:
        return self._state is SessionState.LISTENING

    def start(self) -> bool:
        """Begin listening. Returns True if a new recognition attempt started."""
        if self.listening:
            logger.debug("Session already listening; start ignored")
            return False

        try:
            provider = self._factory()
        except UnsupportedEnvironment as e:
            self._report(e)
            return False
        if provider is None:
            self._report(UnsupportedEnvironment("speech recognition is not available"))
            return False

        provider.continuous = self.config.continuous
        provider.interim_results = self.config.interim_results
        provider.max_alternatives = self.config.max_alternatives
        provider.language = self.config.language
        provider.on_result = lambda event: self._dispatch_from(provider, ResultReceived(event))
        provider.on_error = lambda error: self._dispatch_from(provider, ErrorReceived(error))
        provider.on_end = lambda: self._dispatch_from(provider, EndReceived())

        self._provider = provider
        self._set_state(SessionState.LISTENING)
        try:
            provider.start()
        except Exception as e:
            self._release()
            self._set_state(SessionState.IDLE)
            self._report(RecognitionFailure("start-failed", str(e)))
            return False
        logger.info("Listening", language=self.config.language)
        return True

    def stop(self) -> None:
        """Force the session back to IDLE and release the recognizer."""
        provider = self._provider
        if provider is None:
            return
        self._release()
        try:
            provider.stop()
        except Exception as e:
            logger.warning("Recognizer stop failed", error=str(e))
        self._set_state(SessionState.IDLE)
        logger.info("Stopped listening")

    def dispatch(self, event: SessionEvent) -> None:
        """Single entry point for recognizer events."""
        if isinstance(event, ResultReceived):
            self._handle_result(event.event)
        elif isinstance(event, ErrorReceived):
            self._handle_error(event.error)
        elif isinstance(event, EndReceived):
            self._handle_end()
        else:
            raise TypeError(f"unknown session event: {event!r}")

    def _dispatch_from(self, provider: RecognitionProvider, event: SessionEvent) -> None:
        if provider is not self._provider:
            logger.debug("Dropping event from released recognizer", session_event=type(event).__name__)
            return
        self.dispatch(event)

    def _handle_result(self, event: RecognitionEvent) -> None:
        if not self.listening:
            return

        if not event.is_final:
            text = interim_text(event)
            if text and self.on_interim:
                self.on_interim(text)
            return

        transcript = resolve(event, self.config.confidence_threshold)
        if transcript is None:
            logger.info("Transcript empty; nothing to send", kind=TranscriptEmpty.__name__)
        else:
            logger.info("Transcript resolved", text=transcript.text, ambiguous=transcript.ambiguous)
            if self.on_transcript:
                self.on_transcript(transcript)

        if not self.config.continuous:
            self._finish()

    def _handle_error(self, error: RecognitionError) -> None:
        if not self.listening:
            return
        self._finish()
        self._report(RecognitionFailure(error.code, error.message))

    def _handle_end(self) -> None:
        if not self.listening:
            return
        self._finish()

    def _finish(self) -> None:
        self._release()
        self._set_state(SessionState.IDLE)

    def _release(self) -> None:
        provider, self._provider = self._provider, None
        if provider is not None:
            provider.on_result = None
            provider.on_error = None
            provider.on_end = None

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        self._state = state
        if self.on_state_change:
            self.on_state_change(state)

    def _report(self, error: VoiceChatbotError) -> None:
        if isinstance(error, RecognitionFailure):
            logger.error("Speech recognition error", code=error.code, detail=str(error))
        else:
            logger.error("Speech recognition unsupported", detail=str(error))
        if self.on_error:
            self.on_error(error)
