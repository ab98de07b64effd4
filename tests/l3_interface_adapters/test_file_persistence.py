"""Tests for the JSON file persistence gateways."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from voicenote_transcriber.l1_entities.stats import StatsStatus, TranscriptionStats
from voicenote_transcriber.l3_interface_adapters.gateways.file_persistence import (
    JsonEntityStore,
    JsonStatsRepository,
)

_T0 = datetime(2026, 3, 1, 9, 0, 0)


def _stats(entity='note-1', path='/a.m4a', status=StatsStatus.PENDING, minutes=0, **extra) -> TranscriptionStats:
    return TranscriptionStats(
        entity_id=entity,
        audio_file_path=path,
        status=status,
        start_time=_T0 + timedelta(minutes=minutes),
        **extra,
    )


class TestJsonStatsRepository:
    def test_insert_assigns_incrementing_ids(self, tmp_path: Path):
        repo = JsonStatsRepository(tmp_path)
        assert repo.insert(_stats()) == 1
        assert repo.insert(_stats(path='/b.m4a')) == 2

    def test_survives_reopen(self, tmp_path: Path):
        JsonStatsRepository(tmp_path).insert(_stats(entity_name='Morning dose'))
        (record,) = JsonStatsRepository(tmp_path).list()
        assert record.id == 1
        assert record.entity_name == 'Morning dose'
        assert record.start_time == _T0

    def test_find_pending_for_pair(self, tmp_path: Path):
        repo = JsonStatsRepository(tmp_path)
        repo.insert(_stats(status=StatsStatus.FAILED))
        pending_id = repo.insert(_stats())
        repo.insert(_stats(path='/other.m4a'))
        assert repo.find_pending_for('note-1', '/a.m4a').id == pending_id
        assert repo.find_pending_for('note-2', '/a.m4a') is None

    def test_find_latest_for_pair(self, tmp_path: Path):
        repo = JsonStatsRepository(tmp_path)
        assert repo.find_latest_for('note-1', '/a.m4a') is None
        repo.insert(_stats(status=StatsStatus.FAILED))
        repo.insert(_stats(status=StatsStatus.SUCCESS))
        assert repo.find_latest_for('note-1', '/a.m4a').status == StatsStatus.SUCCESS

    def test_update_by_id(self, tmp_path: Path):
        repo = JsonStatsRepository(tmp_path)
        stats_id = repo.insert(_stats())
        record = repo.find_pending_for('note-1', '/a.m4a')
        repo.update_by_id(record.model_copy(update={'status': StatsStatus.SUCCESS, 'transcription_text': 'hi'}))

        assert repo.find_pending_for('note-1', '/a.m4a') is None
        (stored,) = repo.list()
        assert stored.id == stats_id
        assert stored.transcription_text == 'hi'

    def test_update_without_id_raises(self, tmp_path: Path):
        with pytest.raises(ValueError, match='without an id'):
            JsonStatsRepository(tmp_path).update_by_id(_stats())

    def test_update_unknown_id_raises(self, tmp_path: Path):
        with pytest.raises(KeyError):
            JsonStatsRepository(tmp_path).update_by_id(_stats(id=7))

    def test_list_filters_and_orders_newest_first(self, tmp_path: Path):
        repo = JsonStatsRepository(tmp_path)
        repo.insert(_stats(status=StatsStatus.SUCCESS, minutes=1))
        repo.insert(_stats(entity='note-2', status=StatsStatus.FAILED, minutes=2))
        repo.insert(_stats(status=StatsStatus.SUCCESS, path='/b.m4a', minutes=3))

        assert [r.id for r in repo.list()] == [3, 2, 1]
        assert [r.id for r in repo.list(status=StatsStatus.SUCCESS)] == [3, 1]
        assert [r.id for r in repo.list(entity_id='note-2')] == [2]

    def test_summary(self, tmp_path: Path):
        repo = JsonStatsRepository(tmp_path)
        repo.insert(
            _stats(
                status=StatsStatus.SUCCESS,
                duration_ms=1000,
                transcription_length=10,
                processing_speed_ratio=0.5,
            )
        )
        repo.insert(
            _stats(
                path='/b.m4a',
                status=StatsStatus.SUCCESS,
                duration_ms=3000,
                transcription_length=40,
                processing_speed_ratio=1.5,
            )
        )
        repo.insert(_stats(path='/c.m4a', status=StatsStatus.FAILED, duration_ms=50))
        repo.insert(_stats(path='/d.m4a'))

        summary = repo.summary()
        assert (summary.total, summary.success, summary.failed, summary.pending) == (4, 2, 1, 1)
        assert summary.average_duration_ms == pytest.approx(2000)
        assert summary.average_transcription_length == pytest.approx(25)
        assert summary.average_speed_ratio == pytest.approx(1.0)
        assert summary.longest.audio_file_path == '/b.m4a'
        assert summary.slowest.audio_file_path == '/b.m4a'
        assert summary.fastest.audio_file_path == '/a.m4a'

    def test_empty_summary(self, tmp_path: Path):
        summary = JsonStatsRepository(tmp_path).summary()
        assert summary.total == 0
        assert summary.average_duration_ms is None
        assert summary.fastest is None

    def test_delete_all_and_per_entity(self, tmp_path: Path):
        repo = JsonStatsRepository(tmp_path)
        repo.insert(_stats())
        repo.insert(_stats(entity='note-2'))
        repo.insert(_stats(entity='note-2', path='/b.m4a'))

        assert repo.delete_for_entity('note-2') == 2
        assert [r.entity_id for r in repo.list()] == ['note-1']
        assert repo.delete_all() == 1
        assert repo.list() == []

    def test_concurrent_inserts_get_unique_ids(self, tmp_path: Path):
        repo = JsonStatsRepository(tmp_path)
        ids: list[int] = []
        lock = threading.Lock()

        def _insert(i: int):
            new_id = repo.insert(_stats(path=f'/{i}.m4a'))
            with lock:
                ids.append(new_id)

        threads = [threading.Thread(target=_insert, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sorted(ids) == list(range(1, 9))


class TestJsonEntityStore:
    def test_register_and_lookup(self, tmp_path: Path):
        store = JsonEntityStore(tmp_path)
        assert not store.exists('note-1')
        store.register('note-1', 'Morning dose')
        assert store.exists('note-1')
        assert store.entity_name('note-1') == 'Morning dose'

    def test_register_keeps_existing_entry(self, tmp_path: Path):
        store = JsonEntityStore(tmp_path)
        store.register('note-1', 'Morning dose')
        store.update_transcript('note-1', 'hello', 'en')
        store.register('note-1', 'Renamed')
        assert store.entity_name('note-1') == 'Morning dose'
        assert store.transcript('note-1') == ('hello', 'en')

    def test_update_transcript_persists(self, tmp_path: Path):
        JsonEntityStore(tmp_path).register('note-1')
        JsonEntityStore(tmp_path).update_transcript('note-1', 'Tomar dos pastillas', 'es')
        assert JsonEntityStore(tmp_path).transcript('note-1') == ('Tomar dos pastillas', 'es')

    def test_update_unknown_entity_raises(self, tmp_path: Path):
        with pytest.raises(KeyError):
            JsonEntityStore(tmp_path).update_transcript('ghost', 'text', 'en')

    def test_unknown_entity_name_is_none(self, tmp_path: Path):
        assert JsonEntityStore(tmp_path).entity_name('ghost') is None
        assert JsonEntityStore(tmp_path).transcript('ghost') == (None, None)
