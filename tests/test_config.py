"""Configuration validation and loading."""
import json

import pytest
from pydantic import ValidationError

from voice_chatbot.config import Config, default_config


def test_defaults():
    config = Config()
    assert config.confidence_threshold == 0.8
    assert config.keepalive_interval_sec == 14.0
    assert config.chat_endpoint == "http://localhost:8080/api/chat"
    assert config.chat_model == "gpt-3.5-turbo"
    assert config.available_models == ["gpt-3.5-turbo", "gpt-4"]
    assert config.speak_errors is False
    assert config.send_history is False
    assert (config.speech_rate, config.speech_pitch, config.speech_volume) == (1.0, 1.0, 1.0)
    assert "Neural" in config.voice_markers


def test_computed_frame_sizes():
    config = Config(sample_rate=16000, frame_ms=30, min_utterance_ms=300, trailing_silence_ms=600)
    assert config.frame_samples == 480
    assert config.min_voiced_frames == 10
    assert config.trailing_silence_frames == 20


@pytest.mark.parametrize("field, value", [
    ("confidence_threshold", 1.2),
    ("keepalive_interval_sec", 0),
    ("frame_ms", 25),
    ("chat_endpoint", "localhost:8080"),
    ("available_models", []),
    ("error_message", "   "),
    ("tts_backend", "coqui"),
])
def test_invalid_values_rejected(field, value):
    with pytest.raises(ValidationError):
        Config(**{field: value})


def test_extra_fields_forbidden():
    with pytest.raises(ValidationError):
        Config(unknown=True)


def test_assignment_is_validated():
    config = Config()
    with pytest.raises(ValidationError):
        config.speech_volume = 3.0


def test_from_file_round_trip(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(Config(chat_model="gpt-4", send_history=True).model_dump_config()))
    config = Config.from_file(path)
    assert config.chat_model == "gpt-4"
    assert config.send_history is True


def test_from_file_partial(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"transport": "ollama"}))
    config = Config.from_file(path)
    assert config.transport == "ollama"
    assert config.chat_model == default_config.chat_model
