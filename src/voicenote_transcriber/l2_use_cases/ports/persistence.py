"""Ports: statistics persistence and the owning-entity boundary."""

from __future__ import annotations

from typing import Protocol

from voicenote_transcriber.l1_entities.stats import StatsStatus, StatsSummary, TranscriptionStats


class StatsRepository(Protocol):
    """Narrow read/update capability over transcription statistics."""

    def find_pending_for(self, entity_id: str, audio_path: str) -> TranscriptionStats | None: ...

    def find_latest_for(self, entity_id: str, audio_path: str) -> TranscriptionStats | None: ...

    def insert(self, stats: TranscriptionStats) -> int:
        """Store a new record and return its id."""
        ...

    def update_by_id(self, stats: TranscriptionStats) -> None:
        """Replace the record with ``stats.id``."""
        ...

    def list(self, status: StatsStatus | None = None, entity_id: str | None = None) -> list[TranscriptionStats]: ...

    def summary(self) -> StatsSummary: ...


class EntityGateway(Protocol):
    """The entity that owns a voice note (opaque to the pipeline)."""

    def exists(self, entity_id: str) -> bool: ...

    def entity_name(self, entity_id: str) -> str | None: ...

    def update_transcript(self, entity_id: str, text: str, language_code: str) -> None: ...
