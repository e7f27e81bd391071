#!/usr/bin/env python3
"""
Failure taxonomy for the Voice Chatbot.

Every failure is handled by the component that owns it; these types exist so
the owner can log (and, for network failures, report) what went wrong.
"""

from typing import Optional


class VoiceChatbotError(Exception):
    """Base class for all voice chatbot failures."""


class UnsupportedEnvironment(VoiceChatbotError):
    """No recognition or synthesis capability is available."""


class RecognitionFailure(VoiceChatbotError):
    """The recognition provider reported an error before producing a result."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code


class TranscriptEmpty(VoiceChatbotError):
    """A final result normalized to no usable text."""


class NetworkFailure(VoiceChatbotError):
    """The chat transport failed, rejected, or answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SynthesisFailure(VoiceChatbotError):
    """The synthesis provider reported a playback error."""
