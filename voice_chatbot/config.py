#!/usr/bin/env python3
"""
Configuration settings for the Voice Chatbot using Pydantic.
"""

import json
import math
from pathlib import Path
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


DEFAULT_VOICE_MARKERS = [
    "Enhanced", "Premium", "Neural", "Natural",
    "Samantha", "Daniel", "Karen", "Moira", "Alex", "Google",
]


class Config(BaseModel):
    """
    Configuration class for the Voice Chatbot using Pydantic for validation.

    This provides type checking, validation, and automatic documentation of all settings.
    """

    model_config = ConfigDict(
        extra='forbid',  # Don't allow extra fields
        validate_assignment=True,  # Validate on assignment
        frozen=False,  # Allow modification after creation
    )

    # Recognition Configuration
    continuous: bool = Field(
        default=False,
        description="Keep the recognizer running after the first final result"
    )

    interim_results: bool = Field(
        default=False,
        description="Ask the recognizer for non-final results (UI feedback only)"
    )

    max_alternatives: int = Field(
        default=5,
        description="Maximum number of ranked alternatives per result",
        ge=1,
        le=20
    )

    language: str = Field(
        default="en-US",
        description="Recognition language tag"
    )

    confidence_threshold: float = Field(
        default=0.8,
        description="Minimum confidence to accept the best alternative without disambiguation",
        ge=0.0,
        le=1.0
    )

    # Audio Configuration
    sample_rate: int = Field(
        default=16000,
        description="Audio sample rate in Hz",
        ge=8000,
        le=48000
    )

    frame_ms: Literal[10, 20, 30] = Field(
        default=30,
        description="Milliseconds per frame for capture + VAD (webrtcvad accepts 10, 20 or 30)"
    )

    vad_aggressiveness: int = Field(
        default=2,
        description="Voice Activity Detection aggressiveness (0-3, higher = more aggressive)",
        ge=0,
        le=3
    )

    min_utterance_ms: int = Field(
        default=300,
        description="Minimum voiced audio required to accept an utterance (ms)",
        ge=100,
        le=5000
    )

    trailing_silence_ms: int = Field(
        default=600,
        description="Silence duration to mark end of utterance (ms)",
        ge=50,
        le=5000
    )

    listen_timeout_sec: float = Field(
        default=8.0,
        description="Give up with a no-speech error when nothing is said within this time",
        gt=0.0,
        le=120.0
    )

    # Speech-to-Text Configuration
    whisper_model: str = Field(
        default="small.en",
        description="faster-whisper model to use for speech-to-text"
    )

    whisper_compute: Literal["auto", "cpu", "cuda"] = Field(
        default="auto",
        description="Compute device for the Whisper model"
    )

    # Text-to-Speech Configuration
    tts_backend: Literal["pyttsx3", "edge-tts"] = Field(
        default="pyttsx3",
        description="TTS backend to use"
    )

    speech_rate: float = Field(default=1.0, description="Utterance rate multiplier", gt=0.0, le=10.0)
    speech_pitch: float = Field(default=1.0, description="Utterance pitch", ge=0.0, le=2.0)
    speech_volume: float = Field(default=1.0, description="Utterance volume", ge=0.0, le=1.0)

    keepalive_interval_sec: float = Field(
        default=14.0,
        description="Pause/resume period that keeps long utterances from being dropped",
        gt=0.0
    )

    voice_markers: List[str] = Field(
        default_factory=lambda: list(DEFAULT_VOICE_MARKERS),
        description="Name fragments that identify high quality voices"
    )

    # Chat Configuration
    transport: Literal["http", "ollama"] = Field(
        default="http",
        description="Chat backend transport"
    )

    chat_endpoint: str = Field(
        default="http://localhost:8080/api/chat",
        description="Endpoint receiving the POSTed chat request"
    )

    chat_model: str = Field(
        default="gpt-3.5-turbo",
        description="Model name sent with each chat request"
    )

    available_models: List[str] = Field(
        default_factory=lambda: ["gpt-3.5-turbo", "gpt-4"],
        description="Models the user may switch between"
    )

    send_history: bool = Field(
        default=False,
        description="Send the ordered conversation history as 'context' with each request"
    )

    request_timeout_sec: float = Field(
        default=30.0,
        description="Chat request timeout in seconds",
        gt=0.0
    )

    ollama_host: Optional[str] = Field(
        default=None,
        description="Ollama server URL (None uses the client default)"
    )

    ollama_model: str = Field(
        default="llama3.1:8b-instruct-q4_K_M",
        description="Ollama model name used by the ollama transport"
    )

    system_prompt: str = Field(
        default="""
You are a helpful voice assistant. Keep responses concise (1-2 sentences typically). Speak as if having a natural conversation.
""",
        description="System prompt for the ollama transport"
    )

    # Behaviour
    speak_errors: bool = Field(
        default=False,
        description="Also speak the synthetic error message when the chat request fails"
    )

    error_message: str = Field(
        default="Sorry, I couldn't reach the assistant. Please try again.",
        description="Assistant message appended when the chat request fails"
    )

    # Computed properties (derived from other fields)
    @computed_field
    @property
    def frame_samples(self) -> int:
        """Number of audio samples per frame."""
        return int(self.sample_rate * self.frame_ms / 1000)

    @computed_field
    @property
    def min_voiced_frames(self) -> int:
        """Minimum number of voiced frames required."""
        return math.ceil(self.min_utterance_ms / self.frame_ms)

    @computed_field
    @property
    def trailing_silence_frames(self) -> int:
        """Number of silence frames to mark end of utterance."""
        return math.ceil(self.trailing_silence_ms / self.frame_ms)

    @field_validator('available_models')
    @classmethod
    def validate_available_models(cls, v):
        """Ensure there is at least one model to choose from."""
        if not v:
            raise ValueError("available_models cannot be empty")
        return v

    @field_validator('chat_endpoint')
    @classmethod
    def validate_chat_endpoint(cls, v):
        if not v.startswith(("http://", "https://")):
            raise ValueError("chat_endpoint must be an http(s) URL")
        return v

    @field_validator('error_message', 'system_prompt')
    @classmethod
    def validate_not_blank(cls, v):
        """Ensure prompt-like text is not empty."""
        if not v.strip():
            raise ValueError("value cannot be empty")
        return v

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Config":
        """Load a configuration from a JSON file; missing keys keep their defaults."""
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        # Files written from model_dump_config() carry derived values too
        for key in cls.model_computed_fields:
            data.pop(key, None)
        return cls.model_validate(data)

    def model_dump_config(self) -> dict:
        """Return configuration as a dictionary, including computed fields."""
        return self.model_dump()


# Default configuration instance
default_config = Config()
