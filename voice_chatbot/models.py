#!/usr/bin/env python3
"""
Data model shared by the recognition, synthesis and conversation components.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra='forbid')


class RecognitionAlternative(_Record):
    """One ranked hypothesis produced by the recognizer."""
    transcript: str
    confidence: float = Field(ge=0.0, le=1.0)


class RecognitionResult(_Record):
    alternatives: Tuple[RecognitionAlternative, ...] = ()
    is_final: bool = False


class RecognitionEvent(_Record):
    """A batch of results; only results at or after ``start_index`` are new."""
    start_index: int = Field(default=0, ge=0)
    results: Tuple[RecognitionResult, ...] = ()

    @property
    def new_results(self) -> Tuple[RecognitionResult, ...]:
        return self.results[self.start_index:]

    @property
    def is_final(self) -> bool:
        return any(result.is_final for result in self.new_results)


class RecognitionError(_Record):
    code: str
    message: str = ""


class ResolvedTranscript(_Record):
    """Tagged resolution: ``Resolved(text)`` when not ambiguous, ``Ambiguous(candidates)`` otherwise."""
    text: str = Field(min_length=1)
    ambiguous: bool = False
    candidates: Tuple[str, ...] = ()


class VoiceCatalogEntry(_Record):
    name: str
    lang: str = ""
    identifier: str = ""

    @model_validator(mode='before')
    @classmethod
    def _default_identifier(cls, data):
        if isinstance(data, dict) and not data.get('identifier'):
            data = {**data, 'identifier': data.get('name', '')}
        return data


@dataclass(eq=False)
class Utterance:
    """A unit of text submitted to the synthesis provider for playback.

    The provider calls ``on_start``/``on_end``/``on_error`` on the event loop
    thread; ``on_error`` receives a short error description.
    """
    text: str
    voice: Optional[VoiceCatalogEntry] = None
    rate: float = 1.0
    pitch: float = 1.0
    volume: float = 1.0
    on_start: Optional[Callable[[], None]] = field(default=None, repr=False)
    on_end: Optional[Callable[[], None]] = field(default=None, repr=False)
    on_error: Optional[Callable[[str], None]] = field(default=None, repr=False)


Author = Literal["user", "assistant"]


class ConversationMessage(_Record):
    text: str
    author: Author
    sequence: int = Field(ge=1)
    is_error: bool = False

    @property
    def is_user(self) -> bool:
        return self.author == "user"

    def as_chat_dict(self) -> Dict[str, Any]:
        """Role/content form used for chat history."""
        return {"role": self.author, "content": self.text}


class ChatRequest(_Record):
    message: str
    model: Optional[str] = None
    context: Optional[Tuple[Dict[str, Any], ...]] = None

    def to_payload(self) -> Dict[str, Any]:
        """JSON body for the chat endpoint; optional fields are omitted when unset."""
        payload: Dict[str, Any] = {"message": self.message}
        if self.model is not None:
            payload["model"] = self.model
        if self.context is not None:
            payload["context"] = [dict(item) for item in self.context]
        return payload
