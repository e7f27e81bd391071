#!/usr/bin/env python3
"""
Runner script for the Voice Chatbot.

This script provides a simple way to run the chatbot with default settings.
For more advanced usage, import the module and create a custom configuration.

Usage:
    python run_chatbot.py
"""

import asyncio

from voice_chatbot import VoiceChatbot
from voice_chatbot.logging_config import configure_logging


async def main():
    """Run the chatbot with default configuration."""
    chatbot = VoiceChatbot()
    await chatbot.run()


if __name__ == '__main__':
    configure_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
