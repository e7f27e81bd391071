#!/usr/bin/env python3
"""
Text-to-Speech providers for the Voice Chatbot.
"""

import asyncio
import io
import queue
import threading
from typing import List, Optional, Tuple

import pyttsx3
import structlog

from .config import Config, default_config
from .errors import SynthesisFailure
from .models import Utterance, VoiceCatalogEntry

logger = structlog.get_logger(__name__)


def _voice_lang(voice) -> str:
    """Language tag of a pyttsx3 voice ('en-US' style), '' if unknown."""
    for lang in getattr(voice, 'languages', None) or []:
        if isinstance(lang, bytes):
            lang = lang.decode('utf-8', errors='ignore')
        lang = ''.join(ch for ch in str(lang) if ch.isprintable()).strip().replace('_', '-')
        if lang:
            return lang
    return ''


class Pyttsx3Provider:
    """Threaded pyttsx3 engine.

    The engine lives on its own thread; results are posted back to the event
    loop. pyttsx3 cannot pause, so ``pause``/``resume`` do nothing.
    Construction raises ``SynthesisFailure`` when the engine cannot start.
    """

    INIT_TIMEOUT_SEC = 10.0

    def __init__(self, config: Optional[Config] = None):
        self.config = config or default_config
        self.on_voices_changed = None
        self.loop = asyncio.get_running_loop()
        self._voices: List[VoiceCatalogEntry] = []
        self._queue: 'queue.Queue[Optional[Tuple[int, Utterance]]]' = queue.Queue()
        self._generation = 0
        self._playing_generation = -1
        self._active: Optional[Utterance] = None
        self._engine = None
        self._ready = threading.Event()
        self._init_error: Optional[Exception] = None
        self.thread = threading.Thread(target=self._worker, name="pyttsx3-speaker", daemon=True)
        self.thread.start()

        if not self._ready.wait(self.INIT_TIMEOUT_SEC):
            self._queue.put(None)
            raise SynthesisFailure("pyttsx3 engine did not start in time")
        if self._init_error is not None:
            raise SynthesisFailure(f"pyttsx3 failed to initialise: {self._init_error}") from self._init_error

    @property
    def speaking(self) -> bool:
        return self._active is not None

    def get_voices(self) -> List[VoiceCatalogEntry]:
        return list(self._voices)

    def speak(self, utterance: Utterance) -> None:
        self._active = utterance
        if not self.thread.is_alive():
            self._notify(self._generation, utterance, 'on_error', "pyttsx3 engine is not running")
            return
        self._queue.put((self._generation, utterance))

    def cancel(self) -> None:
        # Everything queued or playing before this point is dropped
        self._generation += 1
        self._active = None

    def pause(self) -> None:
        pass

    def resume(self) -> None:
        pass

    async def close(self):
        self.cancel()
        self._queue.put(None)
        await asyncio.to_thread(self.thread.join, 1)

    def _set_voices(self, voices: List[VoiceCatalogEntry]) -> None:
        self._voices = voices
        if self.on_voices_changed:
            self.on_voices_changed()

    def _notify(self, generation: int, utterance: Utterance, name: str, *args) -> None:
        def deliver():
            if generation != self._generation:
                return
            if name in ('on_end', 'on_error') and self._active is utterance:
                self._active = None
            callback = getattr(utterance, name)
            if callback is not None:
                callback(*args)
        self.loop.call_soon_threadsafe(deliver)

    def _on_word(self, name, location, length):
        if self._playing_generation != self._generation:
            self._engine.stop()

    def _worker(self):
        try:
            engine = pyttsx3.init()
            voices = [
                VoiceCatalogEntry(name=getattr(v, 'name', '') or v.id, lang=_voice_lang(v), identifier=v.id)
                for v in engine.getProperty('voices') or []
            ]
            base_rate = engine.getProperty('rate') or 200
            engine.connect('started-word', self._on_word)
        except Exception as e:
            self._init_error = e
            self._ready.set()
            return
        self._engine = engine
        self._ready.set()
        self.loop.call_soon_threadsafe(self._set_voices, voices)

        while True:
            item = self._queue.get()
            if item is None:
                break
            generation, utterance = item
            if generation != self._generation:
                continue  # cancelled before it started
            self._playing_generation = generation
            try:
                if utterance.voice is not None:
                    engine.setProperty('voice', utterance.voice.identifier)
                engine.setProperty('rate', int(base_rate * utterance.rate))
                engine.setProperty('volume', utterance.volume)
                self._notify(generation, utterance, 'on_start')
                engine.say(utterance.text)
                engine.runAndWait()
            except Exception as e:
                self._notify(generation, utterance, 'on_error', str(e))
                continue
            self._notify(generation, utterance, 'on_end')


class EdgeTTSProvider:
    """Edge TTS provider; per-utterance synthesis & playback.

    Uses edge-tts to synthesize MP3 -> pydub to decode -> simpleaudio to play.
    The voice list is fetched from the service in the background.
    """

    DEFAULT_VOICE = 'en-US-AriaNeural'

    def __init__(self, config: Optional[Config] = None):
        self.config = config or default_config
        try:
            import edge_tts  # noqa: F401
            import pydub  # noqa: F401
            import simpleaudio  # noqa: F401
        except ImportError:
            logger.error("edge-tts backend missing packages", hint="pip install voice-chatbot[edge-tts]")
            raise
        self.on_voices_changed = None
        self._voices: List[VoiceCatalogEntry] = []
        self._task: Optional[asyncio.Task] = None
        self._play = None
        self._active: Optional[Utterance] = None
        self._voices_task = asyncio.get_running_loop().create_task(self._load_voices())

    @property
    def speaking(self) -> bool:
        return self._active is not None

    def get_voices(self) -> List[VoiceCatalogEntry]:
        return list(self._voices)

    async def _load_voices(self):
        import edge_tts

        try:
            voices = await edge_tts.list_voices()
        except Exception as e:
            logger.warning("Could not fetch edge-tts voices", error=str(e))
            return
        self._voices = [VoiceCatalogEntry(name=v["ShortName"], lang=v.get("Locale", "")) for v in voices]
        if self.on_voices_changed:
            self.on_voices_changed()

    def speak(self, utterance: Utterance) -> None:
        self._active = utterance
        self._task = asyncio.get_running_loop().create_task(self._run(utterance))

    def cancel(self) -> None:
        self._active = None
        if self._play is not None:
            self._play.stop()
            self._play = None
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def pause(self) -> None:
        pass

    def resume(self) -> None:
        pass

    async def close(self):
        self.cancel()
        self._voices_task.cancel()

    async def _synthesize(self, utterance: Utterance) -> bytes:
        import edge_tts

        voice = utterance.voice.identifier if utterance.voice else self.DEFAULT_VOICE
        communicate = edge_tts.Communicate(
            utterance.text,
            voice=voice,
            rate=f"{round((utterance.rate - 1.0) * 100):+d}%",
            volume=f"{round((utterance.volume - 1.0) * 100):+d}%",
            pitch=f"{round((utterance.pitch - 1.0) * 50):+d}Hz",
        )
        audio_bytes = bytearray()
        async for chunk in communicate.stream():
            if chunk["type"] == "audio":
                audio_bytes.extend(chunk["data"])
        if not audio_bytes:
            raise SynthesisFailure("edge-tts returned no audio")
        return bytes(audio_bytes)

    async def _run(self, utterance: Utterance):
        from pydub import AudioSegment
        import simpleaudio as sa

        try:
            data = await self._synthesize(utterance)
            # Decode / resample
            audio_seg = await asyncio.to_thread(AudioSegment.from_file, io.BytesIO(data), format="mp3")
            audio_seg = audio_seg.set_channels(1).set_sample_width(2)
            if utterance.on_start:
                utterance.on_start()
            self._play = sa.play_buffer(audio_seg.raw_data, num_channels=1, bytes_per_sample=2,
                                        sample_rate=audio_seg.frame_rate)
            while self._play is not None and self._play.is_playing():
                await asyncio.sleep(0.05)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if self._active is utterance:
                self._active = None
            if utterance.on_error:
                utterance.on_error(str(e))
            return
        if self._active is utterance:
            self._active = None
        if utterance.on_end:
            utterance.on_end()


def create_speaker(config: Optional[Config] = None):
    """Factory function to create the synthesis provider named in the configuration.

    Must be called from the event loop; returns None when no backend works.
    """
    config = config or default_config
    try:
        if config.tts_backend == 'edge-tts':
            return EdgeTTSProvider(config)
        return Pyttsx3Provider(config)
    except Exception as e:
        logger.error("Speech synthesis unavailable", backend=config.tts_backend, error=str(e))
        return None
