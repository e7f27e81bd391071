#!/usr/bin/env python3
"""
Conversation pipeline: user transcript -> chat request -> assistant reply -> speech.
"""

import asyncio
import itertools
from typing import Callable, Dict, List, Optional, Tuple

import structlog

from .config import Config, default_config
from .errors import NetworkFailure, TranscriptEmpty, VoiceChatbotError
from .models import Author, ChatRequest, ConversationMessage
from .synthesis import VoiceSynthesisCoordinator
from .transport import ChatTransport

logger = structlog.get_logger(__name__)


class ConversationPipeline:
    """
    Owns the conversation state for one session.

    Messages are append-only and kept in arrival order. The user message is
    appended before the chat request is sent; exactly one assistant message
    (reply or error) follows each request.
    """

    def __init__(self, transport: ChatTransport, synthesis: Optional[VoiceSynthesisCoordinator] = None,
                 config: Optional[Config] = None,
                 on_message: Optional[Callable[[ConversationMessage], None]] = None,
                 on_error: Optional[Callable[[VoiceChatbotError], None]] = None,
                 on_pending_change: Optional[Callable[[bool], None]] = None):
        self.config = config or default_config
        self.transport = transport
        self.synthesis = synthesis
        self.on_message = on_message
        self.on_error = on_error
        self.on_pending_change = on_pending_change
        self._messages: List[ConversationMessage] = []
        self._sequence = itertools.count(1)
        self._in_flight = 0
        self._model = self.config.chat_model

    @property
    def messages(self) -> Tuple[ConversationMessage, ...]:
        return tuple(self._messages)

    @property
    def pending_request(self) -> bool:
        return self._in_flight > 0

    @property
    def model(self) -> str:
        return self._model

    @model.setter
    def model(self, name: str) -> None:
        if name not in self.config.available_models:
            raise ValueError(f"unknown model {name!r}; choose from {self.config.available_models}")
        self._model = name
        logger.info("Chat model selected", model=name)

    def newest_first(self) -> List[ConversationMessage]:
        """Messages in display order (latest on top)."""
        return list(reversed(self._messages))

    def history(self) -> List[Dict[str, str]]:
        """Conversation so far as role/content dicts, without error entries."""
        return [m.as_chat_dict() for m in self._messages if not m.is_error]

    async def on_transcript(self, text: str) -> Optional[ConversationMessage]:
        """Handle one resolved transcript; returns the assistant message appended, if any."""
        if not text or not text.strip():
            logger.info("Transcript empty; no request issued", kind=TranscriptEmpty.__name__)
            return None

        context = tuple(self.history()) if self.config.send_history else None
        self._append(text, "user")
        request = ChatRequest(message=text, model=self._model, context=context)

        self._set_in_flight(+1)
        try:
            reply = await self.transport.send(request)
        except Exception as e:
            failure = e if isinstance(e, NetworkFailure) else NetworkFailure(repr(e))
            logger.error("Chat request failed", error=str(failure), status=failure.status_code)
            message = self._append(self.config.error_message, "assistant", is_error=True)
            if self.on_error:
                self.on_error(failure)
            if self.config.speak_errors:
                self._speak_later(message.text)
            return message
        finally:
            self._set_in_flight(-1)

        message = self._append(reply, "assistant")
        self._speak_later(reply)
        return message

    def replay(self, sequence: int) -> bool:
        """Speak an assistant message again."""
        for message in self._messages:
            if message.sequence == sequence and not message.is_user:
                self._speak_later(message.text)
                return True
        return False

    def _append(self, text: str, author: Author, is_error: bool = False) -> ConversationMessage:
        message = ConversationMessage(text=text, author=author, sequence=next(self._sequence), is_error=is_error)
        self._messages.append(message)
        logger.info("Message", sequence=message.sequence, author=author, text=text)
        if self.on_message:
            self.on_message(message)
        return message

    def _speak_later(self, text: str) -> None:
        if self.synthesis is None:
            return
        asyncio.get_running_loop().call_soon(self.synthesis.speak, text)

    def _set_in_flight(self, delta: int) -> None:
        was_pending = self.pending_request
        self._in_flight += delta
        if self.pending_request != was_pending and self.on_pending_change:
            self.on_pending_change(self.pending_request)
