#!/usr/bin/env python3
"""
Microphone recognition provider: sounddevice capture, webrtcvad segmentation,
faster-whisper transcription.

sounddevice, webrtcvad and faster-whisper are optional (``microphone`` extra)
and imported lazily.
"""

import asyncio
import math
import queue
import threading
import time
from typing import Callable, List, Optional, Tuple

import numpy as np
import structlog

from .config import Config, default_config
from .models import RecognitionAlternative, RecognitionError, RecognitionEvent, RecognitionResult

logger = structlog.get_logger(__name__)


class NoSpeech(Exception):
    """Nothing was said before the listen timeout."""


class UtteranceDetector:
    """Segments microphone audio into utterances using WebRTC VAD.

    Logic:
      - Collect fixed-size frames from the microphone.
      - Wait until ``min_voiced_frames`` consecutive voiced frames are observed.
      - After start, keep frames until ``trailing_silence_frames`` consecutive non-voiced frames.
      - Return utterance as float32 numpy array normalized to [-1,1].
    """

    def __init__(self, config=None, aggressiveness=None):
        import webrtcvad

        self.config = config or default_config
        if aggressiveness is None:
            aggressiveness = self.config.vad_aggressiveness
        self.vad = webrtcvad.Vad(aggressiveness)

    def is_speech(self, frame: bytes) -> bool:
        try:
            return self.vad.is_speech(frame, self.config.sample_rate)
        except Exception:
            # If VAD fails (rare), treat as silence
            return False

    def segment(self, frames: Callable[[], Optional[bytes]], deadline: float,
                stop: threading.Event) -> Optional[np.ndarray]:
        """Consume frames until an utterance completes.

        ``frames`` returns the next frame or None when none is ready yet.
        Raises ``NoSpeech`` if speech has not started by ``deadline``
        (``time.monotonic()`` based); returns None if stopped.
        """
        started = False
        voiced_count = 0
        silence_count = 0
        collected: List[bytes] = []

        while not stop.is_set():
            if not started and time.monotonic() > deadline:
                raise NoSpeech()
            frame = frames()
            if frame is None:
                continue
            is_speech = self.is_speech(frame)
            if not started:
                if is_speech:
                    voiced_count += 1
                    collected.append(frame)
                    if voiced_count >= self.config.min_voiced_frames:
                        started = True
                else:
                    # Reset (noise or short blips)
                    voiced_count = 0
                    collected.clear()
                continue
            # After started
            collected.append(frame)
            if is_speech:
                silence_count = 0
            else:
                silence_count += 1
                if silence_count >= self.config.trailing_silence_frames:
                    break  # end of utterance

        if stop.is_set() or not collected:
            return None
        # Remove trailing silence frames for cleaner STT input
        if silence_count:
            collected = collected[:-silence_count] or collected
        pcm = b''.join(collected)
        return np.frombuffer(pcm, dtype=np.int16).astype(np.float32) / 32768.0

    def record_once(self, stop: threading.Event, timeout: float) -> Optional[np.ndarray]:
        """Blocking capture of a single utterance from the default input device."""
        import sounddevice as sd

        q: 'queue.Queue[bytes]' = queue.Queue()

        def callback(indata, frames, time_info, status):  # sounddevice RawInputStream callback
            q.put(bytes(indata))

        def next_frame() -> Optional[bytes]:
            try:
                return q.get(timeout=0.1)
            except queue.Empty:
                return None

        with sd.RawInputStream(
            samplerate=self.config.sample_rate,
            blocksize=self.config.frame_samples,
            channels=1,
            dtype='int16',
            callback=callback,
        ):
            return self.segment(next_frame, time.monotonic() + timeout, stop)


class WhisperSTT:
    """faster-whisper wrapper producing a transcript and a confidence score."""

    def __init__(self, config=None, model_name=None, compute=None):
        from faster_whisper import WhisperModel

        self.config = config or default_config
        model_name = model_name or self.config.whisper_model
        self.device = self._select_device(compute or self.config.whisper_compute)
        compute_type = "float16" if self.device == "cuda" else "int8"
        self.model = WhisperModel(model_name, device=self.device, compute_type=compute_type)

    def _select_device(self, compute: str) -> str:
        if compute == 'cpu':
            return 'cpu'
        try:
            import ctranslate2
            has_cuda = ctranslate2.get_cuda_device_count() > 0
        except Exception:
            has_cuda = False
        if compute == 'cuda' and not has_cuda:
            logger.warning("CUDA requested but not available, falling back to CPU")
        return 'cuda' if has_cuda else 'cpu'

    def transcribe(self, audio: np.ndarray, language: Optional[str] = None) -> RecognitionAlternative:
        if audio.dtype != np.float32:
            audio = audio.astype(np.float32)
        lang = language.split('-')[0].lower() if language else None
        segments, _info = self.model.transcribe(audio, language=lang, beam_size=5)
        segments = list(segments)
        text = ' '.join(s.text.strip() for s in segments).strip()
        if not segments:
            return RecognitionAlternative(transcript="", confidence=0.0)
        avg_logprob = sum(s.avg_logprob for s in segments) / len(segments)
        confidence = min(1.0, max(0.0, math.exp(avg_logprob)))
        return RecognitionAlternative(transcript=text, confidence=confidence)


class WhisperRecognizer:
    """Recognition provider backed by the local microphone and Whisper.

    ``start`` returns immediately; capture and transcription run on a worker
    thread and every callback is delivered on the event loop that called
    ``start``.
    """

    def __init__(self, config: Optional[Config] = None,
                 models: Optional[Callable[[], Tuple[UtteranceDetector, WhisperSTT]]] = None):
        self.config = config or default_config
        self.continuous = self.config.continuous
        self.interim_results = self.config.interim_results
        self.max_alternatives = self.config.max_alternatives
        self.language = self.config.language
        self.on_result = None
        self.on_error = None
        self.on_end = None
        self._models = models or (lambda: (UtteranceDetector(self.config), WhisperSTT(self.config)))
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("recognizer already started")
        self._loop = asyncio.get_running_loop()
        self._thread = threading.Thread(target=self._worker, name="whisper-recognizer", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def _post(self, name: str, *args) -> None:
        def deliver():
            callback = getattr(self, name)
            if callback is not None:
                callback(*args)
        self._loop.call_soon_threadsafe(deliver)

    def _worker(self) -> None:
        try:
            detector, stt = self._models()
            while not self._stop.is_set():
                audio = detector.record_once(self._stop, self.config.listen_timeout_sec)
                if audio is None:
                    break
                alternative = stt.transcribe(audio, self.language)
                event = RecognitionEvent(results=(RecognitionResult(alternatives=(alternative,), is_final=True),))
                self._post("on_result", event)
                if not self.continuous:
                    break
        except NoSpeech:
            self._post("on_error", RecognitionError(code="no-speech", message="no speech detected"))
        except Exception as e:
            code = "audio-capture" if type(e).__module__.startswith("sounddevice") else "recognizer-failed"
            self._post("on_error", RecognitionError(code=code, message=str(e)))
        finally:
            self._post("on_end")


class MicrophoneRecognition:
    """Recognizer factory for ``VoiceSession``.

    Each call returns a fresh ``WhisperRecognizer`` (or None when capture is
    not possible here); the VAD and Whisper model are loaded once and shared.
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or default_config
        self._lock = threading.Lock()
        self._models: Optional[Tuple[UtteranceDetector, WhisperSTT]] = None
        self._available: Optional[bool] = None

    def available(self) -> bool:
        if self._available is None:
            self._available = self._probe()
        return self._available

    def _probe(self) -> bool:
        try:
            import sounddevice as sd
            import webrtcvad  # noqa: F401
            import faster_whisper  # noqa: F401
        except (ImportError, OSError) as e:
            logger.warning("Microphone recognition unavailable", error=str(e),
                           hint="pip install voice-chatbot[microphone]")
            return False
        try:
            sd.query_devices(kind='input')
        except Exception as e:
            logger.warning("No audio input device", error=str(e))
            return False
        return True

    def models(self) -> Tuple[UtteranceDetector, WhisperSTT]:
        with self._lock:
            if self._models is None:
                logger.info("Loading speech models", whisper_model=self.config.whisper_model)
                self._models = (UtteranceDetector(self.config), WhisperSTT(self.config))
            return self._models

    def __call__(self) -> Optional[WhisperRecognizer]:
        if not self.available():
            return None
        return WhisperRecognizer(self.config, models=self.models)


def create_recognizer(config: Optional[Config] = None) -> MicrophoneRecognition:
    """Factory function returning the recognizer factory used by ``VoiceSession``."""
    return MicrophoneRecognition(config)
