#!/usr/bin/env python3
"""
Core voice chatbot application: wires recognition, conversation and speech.
"""

import argparse
import asyncio
import sys
from typing import Optional, Set

import structlog

from .audio import create_recognizer
from .config import Config, default_config
from .errors import VoiceChatbotError
from .logging_config import configure_logging
from .models import ConversationMessage, ResolvedTranscript
from .pipeline import ConversationPipeline
from .recognition import RecognizerFactory, SessionState, VoiceSession
from .speakers import create_speaker
from .synthesis import SynthesisProvider, VoiceSynthesisCoordinator
from .transport import ChatTransport, create_transport

logger = structlog.get_logger(__name__)


class VoiceChatbot:
    """
    Push-to-talk voice chatbot.

    listen -> resolve transcript -> chat request -> append reply -> speak reply
    """

    def __init__(self, config: Optional[Config] = None,
                 recognizer_factory: Optional[RecognizerFactory] = None,
                 speaker: Optional[SynthesisProvider] = None,
                 transport: Optional[ChatTransport] = None):
        """Initialize the chatbot; components not given are built from the configuration."""
        self.config = config or default_config
        self._recognizer_factory = recognizer_factory
        self._speaker = speaker
        self._transport = transport
        self.session: Optional[VoiceSession] = None
        self.synthesis: Optional[VoiceSynthesisCoordinator] = None
        self.pipeline: Optional[ConversationPipeline] = None
        self._idle = asyncio.Event()
        self._heard = asyncio.Event()
        self._tasks: Set[asyncio.Task] = set()

    async def initialize(self):
        """Initialize all components; must run inside the event loop."""
        logger.info("Booting voice chatbot", transport=self.config.transport, tts=self.config.tts_backend)
        if self._recognizer_factory is None:
            self._recognizer_factory = create_recognizer(self.config)
        if self._speaker is None:
            self._speaker = create_speaker(self.config)
        if self._transport is None:
            self._transport = create_transport(self.config)

        self.synthesis = VoiceSynthesisCoordinator(self._speaker, self.config)
        self.pipeline = ConversationPipeline(
            self._transport, self.synthesis, self.config,
            on_message=self._show_message,
        )
        self.session = VoiceSession(
            self._recognizer_factory, self.config,
            on_transcript=self._handle_transcript,
            on_error=self._handle_error,
            on_interim=lambda text: print(f"… {text}", flush=True),
            on_state_change=self._handle_state,
        )
        self._idle.set()

    def _handle_transcript(self, transcript: ResolvedTranscript):
        task = asyncio.get_running_loop().create_task(self.pipeline.on_transcript(transcript.text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._heard.set()

    def _handle_state(self, state: SessionState):
        if state is SessionState.LISTENING:
            self._idle.clear()
            print("🎤 Listening…", flush=True)
        else:
            self._idle.set()
            print("🛑 Stopped listening.", flush=True)

    def _handle_error(self, error: VoiceChatbotError):
        print(f"[Voice] {error}", flush=True)

    def _show_message(self, message: ConversationMessage):
        who = "You" if message.is_user else "Assistant"
        print(f"[{message.sequence}] {who}: {message.text}", flush=True)

    async def process_turn(self) -> bool:
        """Run one listen/answer turn. Returns False if listening could not start.

        In continuous mode the turn ends after the first transcript; the
        session is then stopped so the prompt comes back.
        """
        self._heard.clear()
        if not self.session.start():
            return False
        if self.config.continuous:
            await self._wait_first(self._idle.wait(), self._heard.wait())
            self.session.stop()
        else:
            await self._idle.wait()
        if self._tasks:
            await asyncio.gather(*self._tasks)
        return True

    @staticmethod
    async def _wait_first(*waits):
        tasks = [asyncio.ensure_future(w) for w in waits]
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in tasks:
                task.cancel()

    async def _prompt(self) -> str:
        return await asyncio.to_thread(
            input, "Press Enter to talk, r <n> to replay a reply, a model name to switch, q to quit: ")

    async def run(self):
        """Run the main chatbot loop."""
        await self.initialize()

        try:
            while True:
                command = (await self._prompt()).strip()
                if command.lower() in ("q", "quit", "exit"):
                    break
                if command.startswith("r ") and command[2:].strip().isdigit():
                    if not self.pipeline.replay(int(command[2:])):
                        print("No assistant message with that number.")
                    continue
                if command:
                    try:
                        self.pipeline.model = command
                    except ValueError as e:
                        print(e)
                    continue
                if not await self.process_turn():
                    print("Voice input is not available; check the microphone setup.")
                    break
        except (KeyboardInterrupt, EOFError):
            print("\nExiting…")
        finally:
            await self.cleanup()

    async def cleanup(self):
        """Clean up resources."""
        if self.session:
            self.session.stop()
        if self.synthesis:
            self.synthesis.close()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._transport:
            await self._transport.aclose()
        close = getattr(self._speaker, "close", None)
        if close is not None:
            await close()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="voice-chatbot", description="Push-to-talk voice chatbot")
    parser.add_argument("--config", help="JSON configuration file")
    parser.add_argument("--transport", choices=["http", "ollama"])
    parser.add_argument("--tts", choices=["pyttsx3", "edge-tts"])
    parser.add_argument("--endpoint", help="chat endpoint for the http transport")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-format", choices=["console", "json"], default="console")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Config:
    config = Config.from_file(args.config) if args.config else default_config.model_copy()
    if args.transport:
        config.transport = args.transport
    if args.tts:
        config.tts_backend = args.tts
    if args.endpoint:
        config.chat_endpoint = args.endpoint
    return config


def main(argv=None):
    """Console entry point."""
    args = parse_args(argv)
    configure_logging(args.log_level, args.log_format)
    chatbot = VoiceChatbot(build_config(args))
    try:
        asyncio.run(chatbot.run())
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == '__main__':
    sys.exit(main())
