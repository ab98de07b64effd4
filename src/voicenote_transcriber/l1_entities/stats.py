"""Transcription statistics entity: the durable projection of one attempt."""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, Field


class StatsStatus(str, enum.Enum):
    PENDING = 'pending'
    SUCCESS = 'success'
    FAILED = 'failed'

    @property
    def is_terminal(self) -> bool:
        return self is not StatsStatus.PENDING


class TranscriptionStats(BaseModel):
    """One transcription attempt for one (entity_id, audio_file_path) pair."""

    id: int | None = None
    entity_id: str
    entity_name: str | None = None
    status: StatsStatus = StatsStatus.PENDING

    start_time: datetime
    end_time: datetime | None = None
    duration_ms: int | None = None

    audio_file_path: str
    audio_file_size_bytes: int = 0
    audio_duration_seconds: float | None = None

    transcription_text: str | None = None
    transcription_length: int | None = None
    detected_language: str | None = None

    error_message: str | None = None
    engine_id: str | None = None
    processing_speed_ratio: float | None = Field(
        default=None,
        description='Processing seconds divided by audio seconds; lower is faster',
    )

    def matches(self, entity_id: str, audio_path: str) -> bool:
        return self.entity_id == entity_id and self.audio_file_path == audio_path


class StatsSummary(BaseModel):
    """Aggregates over all records, for diagnostic surfaces."""

    total: int = 0
    success: int = 0
    failed: int = 0
    pending: int = 0
    average_duration_ms: float | None = None
    average_transcription_length: float | None = None
    average_speed_ratio: float | None = None
    longest: TranscriptionStats | None = None
    slowest: TranscriptionStats | None = None
    fastest: TranscriptionStats | None = None
