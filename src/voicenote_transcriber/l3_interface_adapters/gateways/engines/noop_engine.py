"""Engine: always-available fallback that declines every request."""

from __future__ import annotations

import logging

from voicenote_transcriber.l1_entities.audio import PcmBuffer
from voicenote_transcriber.l1_entities.device import DeviceInfo
from voicenote_transcriber.l1_entities.errors import ErrorKind
from voicenote_transcriber.l1_entities.outcome import Failure, Success, TranscriptionOutcome

log = logging.getLogger('vnt.engine')


class NoOpEngine:
    """Keeps the pipeline free of a null-engine branch when nothing else can run."""

    engine_id = 'noop'
    engine_name = 'No Transcription'
    requires_model = False

    def is_available(self, device: DeviceInfo) -> bool:
        return True

    def initialize(self, device: DeviceInfo) -> TranscriptionOutcome:
        return Success()

    def transcribe(self, pcm: PcmBuffer) -> TranscriptionOutcome:
        log.debug('NoOpEngine: transcription requested but no engine available')
        return Failure(ErrorKind.ENGINE_UNAVAILABLE, 'no transcription engine available on this device')

    def cleanup(self) -> None:
        pass

    def estimate_duration(self, audio_seconds: float) -> float:
        return 0.0
