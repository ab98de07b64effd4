"""Use case: schedule a transcription job for a freshly recorded clip."""

from __future__ import annotations

import logging
from collections.abc import Callable

from voicenote_transcriber.l1_entities.audio import container_for
from voicenote_transcriber.l1_entities.job import TranscriptionRequest
from voicenote_transcriber.l1_entities.stats import StatsStatus
from voicenote_transcriber.l2_use_cases.ports.audio_decoder import AudioDecoder
from voicenote_transcriber.l2_use_cases.ports.persistence import EntityGateway, StatsRepository
from voicenote_transcriber.l2_use_cases.ports.task_queue import Constraints, DeviceProbe, TaskQueue
from voicenote_transcriber.l2_use_cases.transcription_job import TranscriptionJob, build_pending_stats
from voicenote_transcriber.l2_use_cases.utils.keyed_lock import KeyedLock

log = logging.getLogger('vnt.scheduler')


class JobScheduler:
    """Creates the pending stats record synchronously, then defers the job to the task queue."""

    def __init__(
        self,
        job: TranscriptionJob,
        queue: TaskQueue,
        stats: StatsRepository,
        entities: EntityGateway,
        decoder: AudioDecoder,
        device_probe: DeviceProbe,
        constraints: Constraints | None = None,
        pair_locks: KeyedLock | None = None,
    ) -> None:
        self._job = job
        self._queue = queue
        self._stats = stats
        self._entities = entities
        self._decoder = decoder
        self._device_probe = device_probe
        self._constraints = constraints or Constraints(requires_charging=True, requires_battery_not_low=True)
        self._pair_locks = pair_locks or KeyedLock()

    def schedule(self, entity_id: str, audio_path: str, consent_granted: bool) -> None:
        if not consent_granted:
            log.debug('Transcription disabled for entity %s (no consent)', entity_id)
            return

        request = TranscriptionRequest(entity_id=entity_id, audio_path=audio_path, consent_granted=True)

        with self._pair_locks.hold(request.key):
            latest = self._stats.find_latest_for(entity_id, audio_path)
            if latest is not None and latest.status in (StatsStatus.PENDING, StatsStatus.SUCCESS):
                log.info('Skipping %s: stats %s already %s', request.key, latest.id, latest.status.value)
                if latest.status == StatsStatus.SUCCESS:
                    return
            else:
                self._insert_pending(request)

        # A pending row without a queued task (e.g. after a restart) still needs a runner.
        self._enqueue(request)

    def _insert_pending(self, request: TranscriptionRequest) -> None:
        try:
            probe = self._decoder.probe(request.audio_path, container_for(request.audio_path))
            pending = build_pending_stats(
                request, probe.size_bytes, probe.duration_seconds, self._entities.entity_name(request.entity_id)
            )
            stats_id = self._stats.insert(pending)
            log.debug('Created pending stats %s for %s', stats_id, request.key)
        except Exception:
            # The job reconciles its own record, so a failed insert here is not fatal.
            log.error('Error creating pending stats for %s', request.key, exc_info=True)

    def cancel(self, entity_id: str, audio_path: str) -> bool:
        key = TranscriptionRequest(entity_id=entity_id, audio_path=audio_path, consent_granted=True).key
        return self._queue.cancel(key)

    def _enqueue(self, request: TranscriptionRequest) -> None:
        accepted = self._queue.submit(request.key, self._task_for(request), self._constraints)
        if accepted:
            log.info('Enqueued %s (constraints: %s)', request.key, self._constraints)
        else:
            log.debug('%s already queued; not enqueuing again', request.key)

    def _task_for(self, request: TranscriptionRequest) -> Callable[[Callable[[], bool]], object]:
        def _task(is_cancelled: Callable[[], bool]) -> object:
            return self._job.run(request, self._device_probe.snapshot(), is_cancelled)

        return _task
