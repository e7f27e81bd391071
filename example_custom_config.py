#!/usr/bin/env python3
"""
Example usage of the Voice Chatbot module with custom configuration.

This demonstrates how to customize the chatbot behavior by modifying the configuration.
"""

import asyncio

from voice_chatbot import Config, VoiceChatbot
from voice_chatbot.logging_config import configure_logging


def custom_config() -> Config:
    """Custom configuration example."""
    return Config(
        # Answer with a local model instead of the HTTP endpoint
        transport="ollama",
        ollama_model="llama3.1:8b-instruct-q4_K_M",
        # Neural voices
        tts_backend="edge-tts",
        # Accept fewer "A OR B" transcripts
        confidence_threshold=0.6,
        # More aggressive voice detection
        vad_aggressiveness=3,
        # Give the model the whole conversation and read failures aloud
        send_history=True,
        speak_errors=True,
    )


async def main():
    """Run the chatbot with custom configuration."""
    chatbot = VoiceChatbot(config=custom_config())
    await chatbot.run()


if __name__ == '__main__':
    configure_logging(log_level="DEBUG")
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nGoodbye!")
