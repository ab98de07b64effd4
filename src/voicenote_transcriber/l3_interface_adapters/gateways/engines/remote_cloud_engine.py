"""Engine: remote cloud transcription placeholder.

Only the capability shape lives here; no network client is wired in.
"""

from __future__ import annotations

import logging

from voicenote_transcriber.l1_entities.audio import PcmBuffer
from voicenote_transcriber.l1_entities.device import DeviceInfo
from voicenote_transcriber.l1_entities.errors import ErrorKind
from voicenote_transcriber.l1_entities.outcome import Failure, Success, TranscriptionOutcome

log = logging.getLogger('vnt.engine')


class RemoteCloudEngine:
    engine_id = 'remote-cloud'
    engine_name = 'Remote Cloud (stub)'
    requires_model = False

    def __init__(self, credential: str | None = None) -> None:
        self._credential = credential

    def is_available(self, device: DeviceInfo) -> bool:
        if not self._credential:
            log.debug('Remote credential not configured')
            return False
        return device.is_online

    def initialize(self, device: DeviceInfo) -> TranscriptionOutcome:
        if not self._credential:
            return Failure(ErrorKind.API_KEY_MISSING, 'no remote credential configured')
        return Success()

    def transcribe(self, pcm: PcmBuffer) -> TranscriptionOutcome:
        log.debug('Remote engine is a stub; %d samples not sent', len(pcm))
        return Failure(ErrorKind.ENGINE_UNAVAILABLE, 'remote engine not implemented')

    def cleanup(self) -> None:
        pass

    def estimate_duration(self, audio_seconds: float) -> float:
        return audio_seconds / 4
