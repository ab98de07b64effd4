"""Transcription job entities: request, state machine states, outcome."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from voicenote_transcriber.l1_entities.errors import ErrorKind
from voicenote_transcriber.l1_entities.stats import TranscriptionStats


@dataclass(frozen=True)
class TranscriptionRequest:
    entity_id: str
    audio_path: str
    consent_granted: bool

    @property
    def key(self) -> str:
        return f'transcription:{self.entity_id}:{self.audio_path}'


class JobState(enum.Enum):
    STARTED = 'started'
    STATS_RECONCILED = 'stats_reconciled'
    ENGINE_RESOLVED = 'engine_resolved'
    MODEL_READY = 'model_ready'
    AUDIO_DECODED = 'audio_decoded'
    TRANSCRIBED = 'transcribed'
    FINALIZED = 'finalized'
    CANCELLED = 'cancelled'


@dataclass(frozen=True)
class JobOutcome:
    """Where a job ended. ``FINALIZED`` carries success or an error kind; ``CANCELLED`` leaves stats pending."""

    state: JobState
    succeeded: bool = False
    error: ErrorKind | None = None
    stats: TranscriptionStats | None = None
    reached: tuple[JobState, ...] = ()

    @property
    def failed(self) -> bool:
        return self.state == JobState.FINALIZED and not self.succeeded

    @property
    def cancelled(self) -> bool:
        return self.state == JobState.CANCELLED
