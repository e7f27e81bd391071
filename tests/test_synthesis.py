"""Voice selection, playback coordination and the keep-alive watchdog."""
import asyncio

import pytest
from structlog.testing import capture_logs

from conftest import FakeSpeaker
from voice_chatbot.config import Config
from voice_chatbot.models import VoiceCatalogEntry
from voice_chatbot.synthesis import VoiceSynthesisCoordinator, select_voice


def voice(name, lang):
    return VoiceCatalogEntry(name=name, lang=lang)


def test_select_voice_falls_back_to_any_english():
    assert select_voice([voice("Generic", "fr-FR"), voice("Daniel", "en-US")]) == voice("Daniel", "en-US")


def test_select_voice_prefers_marked_voices():
    catalog = [voice("Basic", "en-GB"), voice("Ava (Premium)", "en-US"), voice("Jenny Neural", "en-US")]
    assert select_voice(catalog).name == "Ava (Premium)"


def test_marker_requires_english():
    catalog = [voice("Amelie Enhanced", "fr-CA"), voice("Plain", "en-AU")]
    assert select_voice(catalog).name == "Plain"


def test_select_voice_none_without_english():
    assert select_voice([voice("Anna", "de-DE")]) is None
    assert select_voice([]) is None


def test_language_match_is_case_insensitive():
    assert select_voice([voice("Fred", "EN_us")]).name == "Fred"


def test_catalog_loaded_at_construction(speaker):
    coordinator = VoiceSynthesisCoordinator(speaker, Config())
    assert len(coordinator.catalog) == 2
    assert coordinator.voice.name == "Daniel"


def test_catalog_updates_arrive_later():
    speaker = FakeSpeaker()
    coordinator = VoiceSynthesisCoordinator(speaker, Config())
    assert coordinator.voice is None
    speaker.set_voices([voice("Samantha", "en-US")])
    assert coordinator.voice.name == "Samantha"


@pytest.mark.asyncio
async def test_speak_uses_selected_voice_and_defaults(speaker):
    coordinator = VoiceSynthesisCoordinator(speaker, Config())
    utterance = coordinator.speak("Hi there")
    assert speaker.utterances == [utterance]
    assert utterance.text == "Hi there"
    assert utterance.voice.name == "Daniel"
    assert (utterance.rate, utterance.pitch, utterance.volume) == (1.0, 1.0, 1.0)
    assert speaker.calls == ["speak"]
    coordinator.cancel()


@pytest.mark.asyncio
async def test_second_speak_cancels_first_once(speaker):
    coordinator = VoiceSynthesisCoordinator(speaker, Config())
    ended = []
    coordinator.on_playback_end = ended.append
    first = coordinator.speak("first")
    first_on_end = first.on_end
    second = coordinator.speak("second")
    assert speaker.calls == ["speak", "cancel", "speak"]
    assert coordinator.current is second
    # The superseded utterance's callbacks are gone
    assert first.on_end is None
    first_on_end()
    assert ended == []
    assert coordinator.current is second
    coordinator.cancel()


@pytest.mark.asyncio
async def test_end_clears_current_and_watchdog(speaker):
    coordinator = VoiceSynthesisCoordinator(speaker, Config())
    started, ended = [], []
    coordinator.on_playback_start = started.append
    coordinator.on_playback_end = ended.append
    utterance = coordinator.speak("hello")
    assert coordinator.watchdog_active
    speaker.start(utterance)
    speaker.finish(utterance)
    assert started == ["hello"]
    assert ended == ["hello"]
    assert coordinator.current is None
    assert not coordinator.watchdog_active
    # Nothing playing, so the next speak does not cancel
    coordinator.speak("again")
    assert speaker.calls == ["speak", "speak"]
    coordinator.cancel()


@pytest.mark.asyncio
async def test_watchdog_pauses_and_resumes_while_speaking(speaker):
    coordinator = VoiceSynthesisCoordinator(speaker, Config(keepalive_interval_sec=0.01))
    utterance = coordinator.speak("a very long answer")
    await asyncio.sleep(0.1)
    assert speaker.calls.count("pause") >= 2
    assert speaker.calls.count("pause") == speaker.calls.count("resume")
    speaker.finish(utterance)
    cycles = speaker.calls.count("pause")
    await asyncio.sleep(0.05)
    assert speaker.calls.count("pause") == cycles
    assert not coordinator.watchdog_active


@pytest.mark.asyncio
async def test_watchdog_stops_when_provider_goes_quiet(speaker):
    coordinator = VoiceSynthesisCoordinator(speaker, Config(keepalive_interval_sec=0.01))
    coordinator.speak("text")
    speaker.speaking = False  # cancelled behind our back
    await asyncio.sleep(0.03)
    assert "pause" not in speaker.calls
    assert not coordinator.watchdog_active


@pytest.mark.asyncio
async def test_cancel_stops_watchdog(speaker):
    coordinator = VoiceSynthesisCoordinator(speaker, Config(keepalive_interval_sec=0.01))
    coordinator.speak("text")
    coordinator.cancel()
    assert not coordinator.watchdog_active
    assert speaker.calls == ["speak", "cancel"]
    await asyncio.sleep(0.03)
    assert "pause" not in speaker.calls
    coordinator.cancel()
    assert speaker.calls == ["speak", "cancel"]


@pytest.mark.asyncio
async def test_playback_error_is_logged_and_cleared(speaker):
    coordinator = VoiceSynthesisCoordinator(speaker, Config())
    utterance = coordinator.speak("text")
    with capture_logs() as logs:
        speaker.fail(utterance, "audio-busy")
    assert logs[0]["error"] == "audio-busy"
    assert logs[0]["log_level"] == "error"
    assert coordinator.current is None
    assert not coordinator.watchdog_active


def test_speak_without_provider_is_a_noop():
    coordinator = VoiceSynthesisCoordinator(None, Config())
    with capture_logs() as logs:
        assert coordinator.speak("hello") is None
    assert logs[0]["log_level"] == "warning"


def test_speak_outside_event_loop_plays_without_watchdog(speaker):
    coordinator = VoiceSynthesisCoordinator(speaker, Config())
    utterance = coordinator.speak("hello")
    assert utterance is not None
    assert coordinator.current is utterance
    assert not coordinator.watchdog_active
    assert speaker.calls == ["speak"]

    speaker.finish(utterance)
    assert coordinator.current is None


@pytest.mark.asyncio
async def test_close_detaches_from_provider(speaker):
    coordinator = VoiceSynthesisCoordinator(speaker, Config())
    coordinator.speak("bye")
    coordinator.close()
    assert speaker.on_voices_changed is None
    assert coordinator.current is None
