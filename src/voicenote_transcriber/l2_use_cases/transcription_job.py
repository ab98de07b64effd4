"""Use case: one transcription job. Steps: reconcile stats, pick engine, ensure model, decode, transcribe."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime

from voicenote_transcriber.l1_entities.audio import PcmBuffer, container_for
from voicenote_transcriber.l1_entities.config import EngineConfig
from voicenote_transcriber.l1_entities.device import DeviceInfo
from voicenote_transcriber.l1_entities.errors import AudioFileInvalidError, ErrorKind
from voicenote_transcriber.l1_entities.job import JobOutcome, JobState, TranscriptionRequest
from voicenote_transcriber.l1_entities.outcome import Failure, TranscriptionResult
from voicenote_transcriber.l1_entities.stats import StatsStatus, TranscriptionStats
from voicenote_transcriber.l2_use_cases.ports.audio_decoder import AudioDecoder
from voicenote_transcriber.l2_use_cases.ports.inference_engine import InferenceEngine
from voicenote_transcriber.l2_use_cases.ports.model_artifacts import ModelArtifactStore
from voicenote_transcriber.l2_use_cases.ports.persistence import EntityGateway, StatsRepository
from voicenote_transcriber.l2_use_cases.select_engine_use_case import EngineSelector
from voicenote_transcriber.l2_use_cases.utils.keyed_lock import KeyedLock

log = logging.getLogger('vnt.job')


class _Abort(Exception):
    """Internal: unwinds the state machine to the failed terminal state."""

    def __init__(self, error: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.error = error
        self.message = message


class _Cancelled(Exception):
    """Internal: the enclosing runner cancelled this execution."""


def build_pending_stats(
    request: TranscriptionRequest,
    size_bytes: int,
    duration_seconds: float | None,
    entity_name: str | None = None,
) -> TranscriptionStats:
    return TranscriptionStats(
        entity_id=request.entity_id,
        entity_name=entity_name,
        status=StatsStatus.PENDING,
        start_time=datetime.now(),
        audio_file_path=request.audio_path,
        audio_file_size_bytes=size_bytes,
        audio_duration_seconds=duration_seconds,
    )


class TranscriptionJob:
    """Runs the job state machine. Never raises: every path ends in a ``JobOutcome``.

    Transitions: STARTED → STATS_RECONCILED → ENGINE_RESOLVED → MODEL_READY →
    AUDIO_DECODED → TRANSCRIBED → FINALIZED. Any failure jumps straight to
    FINALIZED(failed). Cancellation releases the engine and leaves the stats
    record pending so a later schedule resumes from it.
    """

    def __init__(
        self,
        stats: StatsRepository,
        entities: EntityGateway,
        selector: EngineSelector,
        models: ModelArtifactStore,
        decoder: AudioDecoder,
        engine_config: EngineConfig,
        pair_locks: KeyedLock | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._stats = stats
        self._entities = entities
        self._selector = selector
        self._models = models
        self._decoder = decoder
        self._engine_config = engine_config
        self._pair_locks = pair_locks or KeyedLock()
        self._clock = clock

    def run(
        self,
        request: TranscriptionRequest,
        device: DeviceInfo,
        is_cancelled: Callable[[], bool] = lambda: False,
    ) -> JobOutcome:
        reached: list[JobState] = [JobState.STARTED]

        invalid = self._validate(request)
        if invalid is not None:
            log.error('Invalid job input: entity=%r audio=%r (%s)', request.entity_id, request.audio_path, invalid)
            return JobOutcome(state=JobState.FINALIZED, error=invalid, reached=tuple(reached))

        with self._pair_locks.hold(request.key):
            return self._run_locked(request, device, is_cancelled, reached)

    def _validate(self, request: TranscriptionRequest) -> ErrorKind | None:
        if not request.audio_path:
            return ErrorKind.AUDIO_FILE_INVALID
        try:
            if not request.entity_id or not self._entities.exists(request.entity_id):
                return ErrorKind.UNKNOWN
        except Exception:
            log.error('Entity lookup failed for %s', request.entity_id, exc_info=True)
            return ErrorKind.UNKNOWN
        return None

    def _run_locked(
        self,
        request: TranscriptionRequest,
        device: DeviceInfo,
        is_cancelled: Callable[[], bool],
        reached: list[JobState],
    ) -> JobOutcome:
        started = self._clock()
        record: TranscriptionStats | None = None
        engine: InferenceEngine | None = None

        def _advance(state: JobState) -> None:
            if is_cancelled():
                raise _Cancelled
            reached.append(state)
            log.debug('Job %s → %s', request.key, state.value)

        try:
            record = self._reconcile(request)
            _advance(JobState.STATS_RECONCILED)

            engine = self._selector.select(device, self._engine_config)
            _advance(JobState.ENGINE_RESOLVED)

            self._ensure_ready(engine, request, device)
            _advance(JobState.MODEL_READY)

            pcm = self._decode(request.audio_path)
            _advance(JobState.AUDIO_DECODED)

            result = self._transcribe(engine, pcm)
            _advance(JobState.TRANSCRIBED)

            record = self._finalize_success(record, result, pcm, started)
            self._entities.update_transcript(request.entity_id, result.text, result.language_code)
            reached.append(JobState.FINALIZED)
            log.info(
                'Transcribed %s for entity %s: %d chars in %dms (speed ratio: %s)',
                request.audio_path,
                request.entity_id,
                len(result.text),
                record.duration_ms,
                record.processing_speed_ratio,
            )
            return JobOutcome(state=JobState.FINALIZED, succeeded=True, stats=record, reached=tuple(reached))

        except _Cancelled:
            log.info('Job %s cancelled; stats left pending', request.key)
            reached.append(JobState.CANCELLED)
            return JobOutcome(state=JobState.CANCELLED, stats=record, reached=tuple(reached))

        except _Abort as e:
            log.warning('Job %s failed: %s: %s', request.key, e.error.value, e.message)
            return self._finalize_failure(record, e.error, e.message, engine, started, reached)

        except Exception as e:
            log.error('Unexpected error in job %s', request.key, exc_info=True)
            return self._finalize_failure(
                record, ErrorKind.UNKNOWN, f'{type(e).__name__}: {e}', engine, started, reached
            )

        finally:
            if engine is not None:
                try:
                    engine.cleanup()
                except Exception:
                    log.error('Engine cleanup failed for %s', engine.engine_id, exc_info=True)

    def _reconcile(self, request: TranscriptionRequest) -> TranscriptionStats:
        existing = self._stats.find_pending_for(request.entity_id, request.audio_path)
        if existing is not None:
            log.debug('Found existing stats entry %s for %s', existing.id, request.key)
            return existing

        probe = self._decoder.probe(request.audio_path, container_for(request.audio_path))
        pending = build_pending_stats(
            request, probe.size_bytes, probe.duration_seconds, self._entities.entity_name(request.entity_id)
        )
        stats_id = self._stats.insert(pending)
        log.debug('Created new stats entry %s for %s', stats_id, request.key)
        return pending.model_copy(update={'id': stats_id})

    def _ensure_ready(self, engine: InferenceEngine, request: TranscriptionRequest, device: DeviceInfo) -> None:
        if engine.requires_model and not self._models.are_models_present():
            if not request.consent_granted:
                raise _Abort(ErrorKind.MODEL_NOT_DOWNLOADED, 'model absent and consent not granted for download')
            result = self._models.download(device, lambda p: log.debug('Download progress: %d%%', p))
            if not result.ok:
                raise _Abort(ErrorKind.MODEL_NOT_DOWNLOADED, result.error)

        init = engine.initialize(device)
        if isinstance(init, Failure):
            raise _Abort(init.error, init.message or f'{engine.engine_id} failed to initialize')

    def _decode(self, audio_path: str) -> PcmBuffer:
        try:
            return self._decoder.decode(audio_path, container_for(audio_path))
        except AudioFileInvalidError as e:
            raise _Abort(ErrorKind.AUDIO_FILE_INVALID, str(e)) from e

    @staticmethod
    def _transcribe(engine: InferenceEngine, pcm: PcmBuffer) -> TranscriptionResult:
        outcome = engine.transcribe(pcm)
        if isinstance(outcome, Failure):
            raise _Abort(outcome.error or ErrorKind.UNKNOWN, outcome.message or f'{engine.engine_id} returned failure')
        return outcome.data

    def _finalize_success(
        self,
        record: TranscriptionStats,
        result: TranscriptionResult,
        pcm: PcmBuffer,
        started: float,
    ) -> TranscriptionStats:
        elapsed = self._clock() - started
        audio_seconds = record.audio_duration_seconds or pcm.duration_seconds
        ratio = elapsed / audio_seconds if audio_seconds > 0 else None
        final = record.model_copy(
            update={
                'status': StatsStatus.SUCCESS,
                'end_time': datetime.now(),
                'duration_ms': int(elapsed * 1000),
                'audio_duration_seconds': audio_seconds,
                'transcription_text': result.text,
                'transcription_length': len(result.text),
                'detected_language': result.language_code,
                'engine_id': result.engine_id,
                'processing_speed_ratio': ratio,
                'error_message': None,
            }
        )
        self._stats.update_by_id(final)
        return final

    def _finalize_failure(
        self,
        record: TranscriptionStats | None,
        error: ErrorKind,
        message: str,
        engine: InferenceEngine | None,
        started: float,
        reached: list[JobState],
    ) -> JobOutcome:
        reached.append(JobState.FINALIZED)
        if record is None:
            return JobOutcome(state=JobState.FINALIZED, error=error, reached=tuple(reached))

        elapsed = self._clock() - started
        final = record.model_copy(
            update={
                'status': StatsStatus.FAILED,
                'end_time': datetime.now(),
                'duration_ms': int(elapsed * 1000),
                'engine_id': engine.engine_id if engine is not None else None,
                'error_message': f'{error.value}: {message}' if message else error.value,
            }
        )
        try:
            self._stats.update_by_id(final)
        except Exception:
            log.error('Error recording failure stats for %s', record.id, exc_info=True)
        return JobOutcome(state=JobState.FINALIZED, error=error, stats=final, reached=tuple(reached))
