"""Port: pluggable inference engine."""

from __future__ import annotations

from typing import Protocol

from voicenote_transcriber.l1_entities.audio import PcmBuffer
from voicenote_transcriber.l1_entities.device import DeviceInfo
from voicenote_transcriber.l1_entities.outcome import TranscriptionOutcome


class InferenceEngine(Protocol):
    """Capability interface every engine variant implements."""

    engine_id: str
    engine_name: str
    requires_model: bool

    def is_available(self, device: DeviceInfo) -> bool:
        """Whether this engine can run on *device* right now."""
        ...

    def initialize(self, device: DeviceInfo) -> TranscriptionOutcome:
        """Prepare the engine against the *device* snapshot the job selected it for. ``Success(None)`` or ``Failure``."""
        ...

    def transcribe(self, pcm: PcmBuffer) -> TranscriptionOutcome:
        """``Success(TranscriptionResult)`` or ``Failure``. Blocking; call off the interactive thread."""
        ...

    def cleanup(self) -> None:
        """Release native resources. Safe to call more than once."""
        ...

    def estimate_duration(self, audio_seconds: float) -> float:
        """Rough processing time in seconds for *audio_seconds* of audio."""
        ...
