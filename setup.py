#!/usr/bin/env python3
"""
Setup script for the Voice Chatbot module.
"""

from setuptools import setup, find_packages

with open("voice_chatbot/README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="voice-chatbot",
    version="1.0.0",
    description="A push-to-talk voice assistant with a deterministic, ordered conversation transcript",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio :: Speech",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
    ],
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "ollama>=0.4",
        "pyttsx3",
        "pydantic>=2.0.0",
        "httpx>=0.24",
        "structlog>=22.1",
    ],
    extras_require={
        "microphone": [
            "sounddevice",
            "webrtcvad",
            "faster-whisper",
        ],
        "edge-tts": [
            "edge-tts",
            "pydub",
            "simpleaudio",
        ],
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
        "all": [
            "sounddevice",
            "webrtcvad",
            "faster-whisper",
            "edge-tts",
            "pydub",
            "simpleaudio",
        ],
    },
    entry_points={
        "console_scripts": [
            "voice-chatbot=voice_chatbot.core:main",
        ],
    },
    include_package_data=True,
    package_data={"voice_chatbot": ["README.md"]},
    zip_safe=False,
)
