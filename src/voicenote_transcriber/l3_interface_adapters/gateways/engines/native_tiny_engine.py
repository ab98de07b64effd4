"""Engine: whisper-tiny on whisper.cpp, with on-device language identification."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from voicenote_transcriber.l1_entities.audio import PcmBuffer
from voicenote_transcriber.l1_entities.config import LanguageConfig
from voicenote_transcriber.l1_entities.device import DeviceInfo
from voicenote_transcriber.l1_entities.errors import EngineAlreadyInitializedError, ErrorKind
from voicenote_transcriber.l1_entities.outcome import (
    Failure,
    Readiness,
    Success,
    TranscriptionOutcome,
    TranscriptionResult,
)
from voicenote_transcriber.l2_use_cases.ports.language_identifier import LanguageIdentifier
from voicenote_transcriber.l2_use_cases.ports.model_artifacts import ModelArtifactStore
from voicenote_transcriber.l2_use_cases.ports.speech_runtime import SpeechRuntime

log = logging.getLogger('vnt.engine')

DEFAULT_MIN_MEMORY_MB = 1900


class NativeTinyEngine:
    """Local whisper-tiny model.

    Available when the device has at least ``min_memory_mb`` total memory and
    the model is either present or downloadable right now. ``transcribe`` is
    CPU-bound (tens of seconds per 30 s of audio on slow devices) and must run
    on a worker thread.
    """

    engine_id = 'whisper-tiny'
    engine_name = 'Whisper Tiny (whisper.cpp)'
    requires_model = True

    def __init__(
        self,
        models: ModelArtifactStore,
        runtime_factory: Callable[[], SpeechRuntime],
        language_identifier: LanguageIdentifier,
        language: LanguageConfig,
        min_memory_mb: int = DEFAULT_MIN_MEMORY_MB,
    ) -> None:
        self._models = models
        self._runtime_factory = runtime_factory
        self._identifier = language_identifier
        self._language = language
        self._min_memory_mb = min_memory_mb
        self._runtime: SpeechRuntime | None = None
        self._lock = threading.Lock()

    def is_available(self, device: DeviceInfo) -> bool:
        if device.total_memory_mb < self._min_memory_mb:
            log.debug(
                'Insufficient memory for %s: %dMB < %dMB', self.engine_id, device.total_memory_mb, self._min_memory_mb
            )
            return False
        if self._models.are_models_present():
            return True
        readiness = self._models.can_download(device)
        log.debug('%s model absent; download readiness: %s', self.engine_id, readiness.value)
        return readiness == Readiness.READY

    def initialize(self, device: DeviceInfo) -> TranscriptionOutcome:
        """Load the runtime, fetching the model first when absent. Callers gate the fetch on consent."""
        with self._lock:
            if self._runtime is not None:
                raise EngineAlreadyInitializedError(f'{self.engine_id} already has a live runtime; call cleanup() first')

            if not self._models.are_models_present():
                log.info('Model not found, attempting download...')
                result = self._models.download(device, lambda p: log.debug('Download progress: %d%%', p))
                if not result.ok:
                    log.error('Model download failed: %s', result.error)
                    return Failure(ErrorKind.MODEL_NOT_DOWNLOADED, result.error)

            model_path = self._models.model_file()
            runtime = self._runtime_factory()
            try:
                runtime.load_model(str(model_path))
            except Exception as e:
                log.error('Error initializing %s from %s', self.engine_id, model_path, exc_info=True)
                runtime.close()
                return Failure(ErrorKind.INITIALIZATION_FAILED, f'{type(e).__name__}: {e}')

            self._runtime = runtime
            log.info('%s initialized from %s', self.engine_id, model_path)
            return Success()

    def transcribe(self, pcm: PcmBuffer) -> TranscriptionOutcome:
        runtime = self._runtime
        if runtime is None:
            log.error('%s runtime not initialized', self.engine_id)
            return Failure(ErrorKind.INITIALIZATION_FAILED, 'runtime not initialized')
        if len(pcm) == 0:
            return Failure(ErrorKind.AUDIO_FILE_INVALID, 'empty audio buffer')

        started = time.monotonic()
        try:
            text = runtime.transcribe(pcm.samples, language='auto').strip()
        except Exception as e:
            log.error('Error during transcription', exc_info=True)
            return Failure(ErrorKind.UNKNOWN, f'{type(e).__name__}: {e}')
        log.info('Transcription completed in %dms: %d chars', (time.monotonic() - started) * 1000, len(text))

        return Success(
            TranscriptionResult(
                text=text,
                language_code=self.detect_language(text),
                engine_id=self.engine_id,
            )
        )

    def detect_language(self, text: str) -> str:
        """Identify *text*'s language. Never fails: falls back to the configured default."""
        if not text.strip():
            return self._language.fallback
        try:
            detected = self._identifier.identify(text)
        except Exception:
            log.error('Error detecting language, defaulting to %s', self._language.fallback, exc_info=True)
            return self._language.fallback
        code = self._language.normalize(detected)
        if code != detected:
            log.warning('Detected language %r mapped to %r', detected, code)
        return code

    def cleanup(self) -> None:
        with self._lock:
            runtime, self._runtime = self._runtime, None
        if runtime is not None:
            try:
                runtime.close()
            except Exception:
                log.error('Error during %s cleanup', self.engine_id, exc_info=True)
            log.debug('%s cleaned up', self.engine_id)

    def estimate_duration(self, audio_seconds: float) -> float:
        return audio_seconds * 2
