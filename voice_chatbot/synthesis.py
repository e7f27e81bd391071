#!/usr/bin/env python3
"""
Speech synthesis coordination: voice selection, playback and keep-alive.
"""

import asyncio
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, Tuple

import structlog

from .config import DEFAULT_VOICE_MARKERS, Config, default_config
from .models import Utterance, VoiceCatalogEntry

logger = structlog.get_logger(__name__)


class SynthesisProvider(Protocol):
    """Text-to-speech engine driven by ``VoiceSynthesisCoordinator``.

    ``on_voices_changed`` is called (on the event loop thread) whenever the
    voice list may have changed. Utterance callbacks are also invoked on the
    event loop thread.
    """
    on_voices_changed: Optional[Callable[[], None]]

    @property
    def speaking(self) -> bool: ...

    def get_voices(self) -> List[VoiceCatalogEntry]: ...

    def speak(self, utterance: Utterance) -> None: ...

    def cancel(self) -> None: ...

    def pause(self) -> None: ...

    def resume(self) -> None: ...


def _is_english(voice: VoiceCatalogEntry) -> bool:
    return voice.lang.lower().startswith("en")


def select_voice(catalog: Iterable[VoiceCatalogEntry],
                 markers: Sequence[str] = DEFAULT_VOICE_MARKERS) -> Optional[VoiceCatalogEntry]:
    """Pick a voice: marked English voice, then any English voice, else None.

    Matching is first-match in catalog order.
    """
    catalog = list(catalog)
    for voice in catalog:
        if _is_english(voice) and any(marker in voice.name for marker in markers):
            return voice
    for voice in catalog:
        if _is_english(voice):
            return voice
    return None


class VoiceSynthesisCoordinator:
    """
    Sole owner of the synthesis provider.

    At most one utterance is audible: ``speak`` cancels the active one first.
    While an utterance plays, a watchdog issues pause()/resume() every
    ``keepalive_interval_sec`` so long text is not dropped by the engine.
    """

    def __init__(self, provider: Optional[SynthesisProvider], config: Optional[Config] = None,
                 on_playback_start: Optional[Callable[[str], None]] = None,
                 on_playback_end: Optional[Callable[[str], None]] = None):
        self.config = config or default_config
        self.provider = provider
        self.on_playback_start = on_playback_start
        self.on_playback_end = on_playback_end
        self._catalog: Tuple[VoiceCatalogEntry, ...] = ()
        self._voice: Optional[VoiceCatalogEntry] = None
        self._current: Optional[Utterance] = None
        self._watchdog: Optional[asyncio.TimerHandle] = None

        if provider is not None:
            provider.on_voices_changed = self.refresh_catalog
            self.refresh_catalog()

    @property
    def catalog(self) -> Tuple[VoiceCatalogEntry, ...]:
        return self._catalog

    @property
    def voice(self) -> Optional[VoiceCatalogEntry]:
        """Voice used for new utterances (None means the provider default)."""
        return self._voice

    @property
    def current(self) -> Optional[Utterance]:
        return self._current

    @property
    def watchdog_active(self) -> bool:
        return self._watchdog is not None

    def refresh_catalog(self) -> None:
        """Reload the voice list from the provider and reselect the voice."""
        if self.provider is None:
            return
        try:
            voices = tuple(self.provider.get_voices())
        except Exception as e:
            logger.warning("Could not load voice catalog", error=str(e))
            return
        self.update_catalog(voices)

    def update_catalog(self, voices: Iterable[VoiceCatalogEntry]) -> None:
        self._catalog = tuple(voices)
        self._voice = select_voice(self._catalog, self.config.voice_markers)
        logger.debug("Voice catalog updated", voices=len(self._catalog),
                     selected=self._voice.name if self._voice else None)

    def speak(self, text: str) -> Optional[Utterance]:
        """Play ``text``, replacing whatever is currently playing."""
        if self.provider is None:
            logger.warning("Speech synthesis unsupported; no provider configured")
            return None
        if not text.strip():
            return None

        self.cancel()

        utterance = Utterance(
            text=text,
            voice=self._voice,
            rate=self.config.speech_rate,
            pitch=self.config.speech_pitch,
            volume=self.config.speech_volume,
        )
        utterance.on_start = lambda: self._handle_start(utterance)
        utterance.on_end = lambda: self._handle_end(utterance)
        utterance.on_error = lambda error: self._handle_error(utterance, error)

        self._current = utterance
        try:
            self.provider.speak(utterance)
        except Exception as e:
            self._current = None
            logger.error("Speech synthesis error", error=str(e))
            return None
        if self._current is utterance:
            self._schedule_keepalive()
        return utterance

    def cancel(self) -> None:
        """Stop the active utterance (if any) and its keep-alive watchdog."""
        self._stop_keepalive()
        if self._current is None:
            return
        cancelled, self._current = self._current, None
        cancelled.on_start = cancelled.on_end = cancelled.on_error = None
        try:
            self.provider.cancel()
        except Exception as e:
            logger.warning("Cancel failed", error=str(e))

    def close(self) -> None:
        self.cancel()
        if self.provider is not None and self.provider.on_voices_changed == self.refresh_catalog:
            self.provider.on_voices_changed = None

    def _schedule_keepalive(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; keep-alive disabled for this utterance")
            return
        self._watchdog = loop.call_later(self.config.keepalive_interval_sec, self._keepalive)

    def _keepalive(self) -> None:
        self._watchdog = None
        if self._current is None or not self.provider.speaking:
            return
        self.provider.pause()
        self.provider.resume()
        self._schedule_keepalive()

    def _stop_keepalive(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None

    def _handle_start(self, utterance: Utterance) -> None:
        if utterance is not self._current:
            return
        if self.on_playback_start:
            self.on_playback_start(utterance.text)

    def _handle_end(self, utterance: Utterance) -> None:
        if utterance is not self._current:
            return
        self._stop_keepalive()
        self._current = None
        if self.on_playback_end:
            self.on_playback_end(utterance.text)

    def _handle_error(self, utterance: Utterance, error: str) -> None:
        if utterance is not self._current:
            return
        self._stop_keepalive()
        self._current = None
        logger.error("Speech synthesis error", error=error)
        if self.on_playback_end:
            self.on_playback_end(utterance.text)
