"""Pytest configuration and shared fakes for the recognizer, speaker and chat backend."""
import sys
from pathlib import Path
from typing import List, Optional

import pytest

# Ensure the project root is on sys.path so 'voice_chatbot' resolves during tests
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from voice_chatbot.config import Config
from voice_chatbot.errors import NetworkFailure
from voice_chatbot.models import (ChatRequest, RecognitionAlternative, RecognitionError, RecognitionEvent,
                                  RecognitionResult, Utterance, VoiceCatalogEntry)


def make_event(*alternatives, is_final=True, start_index=0, previous=()):
    """Build a RecognitionEvent with one result made of (transcript, confidence) pairs."""
    result = RecognitionResult(
        alternatives=tuple(RecognitionAlternative(transcript=t, confidence=c) for t, c in alternatives),
        is_final=is_final,
    )
    return RecognitionEvent(start_index=start_index, results=tuple(previous) + (result,))


class FakeRecognizer:
    def __init__(self):
        self.continuous = None
        self.interim_results = None
        self.max_alternatives = None
        self.language = None
        self.on_result = None
        self.on_error = None
        self.on_end = None
        self.start_calls = 0
        self.stop_calls = 0
        self.fail_on_start = False

    def start(self):
        self.start_calls += 1
        if self.fail_on_start:
            raise RuntimeError("microphone busy")

    def stop(self):
        self.stop_calls += 1

    def emit_result(self, event):
        if self.on_result:
            self.on_result(event)

    def emit_error(self, code):
        if self.on_error:
            self.on_error(RecognitionError(code=code))

    def emit_end(self):
        if self.on_end:
            self.on_end()


class FakeRecognizerFactory:
    def __init__(self, supported=True):
        self.supported = supported
        self.created: List[FakeRecognizer] = []

    def __call__(self) -> Optional[FakeRecognizer]:
        if not self.supported:
            return None
        recognizer = FakeRecognizer()
        self.created.append(recognizer)
        return recognizer

    @property
    def last(self) -> FakeRecognizer:
        return self.created[-1]


class FakeSpeaker:
    def __init__(self, voices=()):
        self.on_voices_changed = None
        self.voices = list(voices)
        self.calls: List[str] = []
        self.utterances: List[Utterance] = []
        self.speaking = False

    def get_voices(self):
        return list(self.voices)

    def set_voices(self, voices):
        self.voices = list(voices)
        if self.on_voices_changed:
            self.on_voices_changed()

    def speak(self, utterance):
        self.calls.append("speak")
        self.utterances.append(utterance)
        self.speaking = True

    def cancel(self):
        self.calls.append("cancel")
        self.speaking = False

    def pause(self):
        self.calls.append("pause")

    def resume(self):
        self.calls.append("resume")

    def start(self, utterance):
        if utterance.on_start:
            utterance.on_start()

    def finish(self, utterance):
        self.speaking = False
        if utterance.on_end:
            utterance.on_end()

    def fail(self, utterance, error="synthesis-failed"):
        self.speaking = False
        if utterance.on_error:
            utterance.on_error(error)


class FakeTransport:
    def __init__(self, replies=()):
        self.replies = list(replies)
        self.requests: List[ChatRequest] = []
        self.closed = False

    async def send(self, request):
        self.requests.append(request)
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def aclose(self):
        self.closed = True


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def recognizer_factory():
    return FakeRecognizerFactory()


@pytest.fixture
def speaker():
    return FakeSpeaker(voices=[
        VoiceCatalogEntry(name="Generic", lang="fr-FR"),
        VoiceCatalogEntry(name="Daniel", lang="en-US"),
    ])


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def network_failure():
    return NetworkFailure("connection refused")
