#!/usr/bin/env python3
"""
Voice Chatbot Module
====================

A push-to-talk voice assistant: listen -> resolve transcript -> chat request ->
append reply -> speak reply, with a deterministic, ordered conversation log.

Features
--------
1. Voice session state machine: one recognition attempt at a time, every
   outcome (result, empty result, error, end, stop) returns to idle.
2. Transcript resolution: the most confident recognizer alternative is used when
   it clears the confidence threshold; otherwise all alternatives are offered as
   "A OR B".
3. Speech synthesis coordination: English high-quality voice selection, one
   audible utterance at a time, keep-alive watchdog for long replies.
4. Conversation pipeline: optimistic user message, one assistant reply or error
   entry per request, replies spoken without blocking input.
5. Providers: microphone + webrtcvad + faster-whisper recognition, pyttsx3
   (offline, default) or edge-tts synthesis, HTTP or Ollama chat backends.

Quick Start
-----------
```python
from voice_chatbot import VoiceChatbot
import asyncio

async def main():
    chatbot = VoiceChatbot()
    await chatbot.run()

if __name__ == '__main__':
    asyncio.run(main())
```
"""

from .core import VoiceChatbot
from .config import Config
from .errors import (NetworkFailure, RecognitionFailure, SynthesisFailure, TranscriptEmpty,
                     UnsupportedEnvironment, VoiceChatbotError)
from .models import (ChatRequest, ConversationMessage, RecognitionAlternative, RecognitionError,
                     RecognitionEvent, RecognitionResult, ResolvedTranscript, Utterance, VoiceCatalogEntry)
from .pipeline import ConversationPipeline
from .recognition import SessionState, VoiceSession
from .synthesis import VoiceSynthesisCoordinator, select_voice
from .transcript import normalize, resolve
from .transport import HttpChatTransport, OllamaChatTransport, create_transport

__version__ = "1.0.0"
__all__ = [
    'VoiceChatbot',
    'Config',
    'VoiceChatbotError',
    'UnsupportedEnvironment',
    'RecognitionFailure',
    'TranscriptEmpty',
    'NetworkFailure',
    'SynthesisFailure',
    'ChatRequest',
    'ConversationMessage',
    'RecognitionAlternative',
    'RecognitionError',
    'RecognitionEvent',
    'RecognitionResult',
    'ResolvedTranscript',
    'Utterance',
    'VoiceCatalogEntry',
    'ConversationPipeline',
    'SessionState',
    'VoiceSession',
    'VoiceSynthesisCoordinator',
    'select_voice',
    'normalize',
    'resolve',
    'HttpChatTransport',
    'OllamaChatTransport',
    'create_transport',
]
