"""Gateways: JSON-file persistence (implement StatsRepository and EntityGateway ports)."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path

from pydantic import TypeAdapter

from voicenote_transcriber.l1_entities.stats import StatsStatus, StatsSummary, TranscriptionStats

log = logging.getLogger('vnt.persist')

_STATS_LIST = TypeAdapter(list[TranscriptionStats])


def _atomic_write(path: Path, text: str) -> None:
    tmp = path.with_suffix(path.suffix + '.tmp')
    tmp.write_text(text, encoding='utf-8')
    os.replace(tmp, path)


def _mean(values: list[float]) -> float | None:
    return sum(values) / len(values) if values else None


class JsonStatsRepository:
    """Transcription statistics in one JSON file. Thread-safe within a process."""

    def __init__(self, data_dir: Path) -> None:
        self._path = data_dir / 'transcription_stats.json'
        self._lock = threading.Lock()
        data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def find_pending_for(self, entity_id: str, audio_path: str) -> TranscriptionStats | None:
        with self._lock:
            for record in self._read():
                if record.matches(entity_id, audio_path) and record.status == StatsStatus.PENDING:
                    return record
        return None

    def find_latest_for(self, entity_id: str, audio_path: str) -> TranscriptionStats | None:
        with self._lock:
            matching = [r for r in self._read() if r.matches(entity_id, audio_path)]
        return max(matching, key=lambda r: r.id or 0, default=None)

    def insert(self, stats: TranscriptionStats) -> int:
        with self._lock:
            records = self._read()
            new_id = max((r.id or 0 for r in records), default=0) + 1
            records.append(stats.model_copy(update={'id': new_id}))
            self._write(records)
        log.debug('Inserted stats %d (%s, %s)', new_id, stats.entity_id, stats.status.value)
        return new_id

    def update_by_id(self, stats: TranscriptionStats) -> None:
        if stats.id is None:
            raise ValueError('Cannot update stats without an id')
        with self._lock:
            records = self._read()
            for i, record in enumerate(records):
                if record.id == stats.id:
                    records[i] = stats
                    break
            else:
                raise KeyError(f'No stats record with id {stats.id}')
            self._write(records)
        log.debug('Updated stats %d → %s', stats.id, stats.status.value)

    def list(self, status: StatsStatus | None = None, entity_id: str | None = None) -> list[TranscriptionStats]:
        with self._lock:
            records = self._read()
        if status is not None:
            records = [r for r in records if r.status == status]
        if entity_id is not None:
            records = [r for r in records if r.entity_id == entity_id]
        return sorted(records, key=lambda r: r.start_time, reverse=True)

    def summary(self) -> StatsSummary:
        with self._lock:
            records = self._read()
        done = [r for r in records if r.status == StatsStatus.SUCCESS]
        timed = [r for r in done if r.duration_ms is not None]
        return StatsSummary(
            total=len(records),
            success=len(done),
            failed=sum(1 for r in records if r.status == StatsStatus.FAILED),
            pending=sum(1 for r in records if r.status == StatsStatus.PENDING),
            average_duration_ms=_mean([r.duration_ms for r in timed]),
            average_transcription_length=_mean(
                [r.transcription_length for r in done if r.transcription_length is not None]
            ),
            average_speed_ratio=_mean(
                [r.processing_speed_ratio for r in done if r.processing_speed_ratio is not None]
            ),
            longest=max(done, key=lambda r: r.transcription_length or 0, default=None),
            slowest=max(timed, key=lambda r: r.duration_ms, default=None),
            fastest=min(timed, key=lambda r: r.duration_ms, default=None),
        )

    def delete_all(self) -> int:
        with self._lock:
            count = len(self._read())
            self._write([])
        log.info('Deleted %d stats records', count)
        return count

    def delete_for_entity(self, entity_id: str) -> int:
        with self._lock:
            records = self._read()
            kept = [r for r in records if r.entity_id != entity_id]
            self._write(kept)
        return len(records) - len(kept)

    def _read(self) -> list[TranscriptionStats]:
        if not self._path.exists():
            return []
        return _STATS_LIST.validate_json(self._path.read_bytes())

    def _write(self, records: list[TranscriptionStats]) -> None:
        _atomic_write(self._path, _STATS_LIST.dump_json(records, indent=2).decode('utf-8'))


class JsonEntityStore:
    """Minimal owning-entity store: id → name plus the transcript written back on success."""

    def __init__(self, data_dir: Path) -> None:
        self._path = data_dir / 'entities.json'
        self._lock = threading.Lock()
        data_dir.mkdir(parents=True, exist_ok=True)

    def register(self, entity_id: str, name: str | None = None) -> None:
        with self._lock:
            data = self._read()
            data.setdefault(entity_id, {'name': name, 'transcription': None, 'transcription_language': None})
            self._write(data)

    def exists(self, entity_id: str) -> bool:
        with self._lock:
            return entity_id in self._read()

    def entity_name(self, entity_id: str) -> str | None:
        with self._lock:
            return self._read().get(entity_id, {}).get('name')

    def transcript(self, entity_id: str) -> tuple[str | None, str | None]:
        with self._lock:
            entry = self._read().get(entity_id, {})
        return entry.get('transcription'), entry.get('transcription_language')

    def update_transcript(self, entity_id: str, text: str, language_code: str) -> None:
        with self._lock:
            data = self._read()
            if entity_id not in data:
                raise KeyError(f'Unknown entity: {entity_id}')
            data[entity_id]['transcription'] = text
            data[entity_id]['transcription_language'] = language_code
            self._write(data)
        log.debug('Wrote %d-char transcript (%s) to entity %s', len(text), language_code, entity_id)

    def _read(self) -> dict:
        if not self._path.exists():
            return {}
        return json.loads(self._path.read_text(encoding='utf-8'))

    def _write(self, data: dict) -> None:
        _atomic_write(self._path, json.dumps(data, indent=2, ensure_ascii=False))
