"""Gateway: Hugging Face model artifact manager (implements ModelArtifactStore port)."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from pathlib import Path

from huggingface_hub import hf_hub_download
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from voicenote_transcriber.l1_entities.config import ModelConfig
from voicenote_transcriber.l1_entities.device import DeviceInfo
from voicenote_transcriber.l1_entities.errors import DownloadDeadlineExceeded, ModelDownloadError
from voicenote_transcriber.l1_entities.outcome import DownloadResult, Readiness
from voicenote_transcriber.l3_interface_adapters.gateways.paths import MODELS_DIR

log = logging.getLogger('vnt.model')

# In-flight downloads keyed by destination file, shared by every manager instance.
_INFLIGHT: dict[str, Future] = {}
_INFLIGHT_LOCK = threading.Lock()


class _NotReady(Exception):
    def __init__(self, readiness: Readiness) -> None:
        super().__init__(readiness.value)
        self.readiness = readiness


def _make_progress_class(
    callback: Callable[[int], None] | None,
    deadline: float,
    clock: Callable[[], float] = time.monotonic,
) -> type:
    """Create a tqdm-compatible class that reports progress and enforces *deadline*."""

    class _ProgressReporter:
        def __init__(self, *args, **kwargs):
            self.total: int = kwargs.get('total', 0) or 0
            self.n: int = 0
            if self.total > 0 and callback is not None:
                callback(0)

        def update(self, n: int = 1) -> None:
            if clock() >= deadline:
                raise DownloadDeadlineExceeded('Download deadline exceeded mid-transfer')
            self.n += n
            if self.total > 0 and callback is not None:
                callback(min(int(self.n / self.total * 100), 100))

        def close(self) -> None:
            pass

        def set_description(self, *a, **kw) -> None:
            pass

        def set_description_str(self, *a, **kw) -> None:
            pass

        def refresh(self) -> None:
            pass

        def __enter__(self):
            return self

        def __exit__(self, *args):
            self.close()

    return _ProgressReporter


def _is_timeout(exc: BaseException | None) -> bool:
    while exc is not None:
        if isinstance(exc, (DownloadDeadlineExceeded, TimeoutError)) or 'Timeout' in type(exc).__name__:
            return True
        exc = exc.__cause__
    return False


class HfModelArtifactManager:
    """Ensures the whisper.cpp model file is present, downloading it from HF when allowed.

    Transfers happen only on an unmetered network with at least
    ``min_free_storage_mb`` free. Each call makes up to ``max_attempts``
    attempts with exponential backoff inside an overall deadline, verifies the
    byte size, and discards partial or corrupt files. Concurrent callers for
    the same file share one in-flight transfer.
    """

    def __init__(
        self,
        config: ModelConfig,
        models_dir: Path | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._dir = models_dir or (Path(config.directory) if config.directory else MODELS_DIR)
        self._sleep = sleep
        self._clock = clock

    @property
    def engine_id(self) -> str:
        return self._config.engine_id

    def model_file(self) -> Path:
        return self._dir / self._config.filename

    def are_models_present(self) -> bool:
        path = self.model_file()
        if not path.is_file():
            return False
        size = path.stat().st_size
        if self._config.expected_size_bytes > 0:
            return size == self._config.expected_size_bytes
        return size > 0

    def can_download(self, device: DeviceInfo) -> Readiness:
        if self.are_models_present():
            return Readiness.ALREADY_PRESENT
        if not device.is_unmetered:
            return Readiness.NO_WIFI
        if device.available_storage_mb < self._config.min_free_storage_mb:
            return Readiness.INSUFFICIENT_STORAGE
        return Readiness.READY

    def download(
        self,
        device: DeviceInfo,
        progress_callback: Callable[[int], None] | None = None,
    ) -> DownloadResult:
        key = str(self.model_file().resolve())
        with _INFLIGHT_LOCK:
            inflight = _INFLIGHT.get(key)
            if inflight is None:
                inflight = Future()
                _INFLIGHT[key] = inflight
                leader = True
            else:
                leader = False

        if not leader:
            log.info('Download of %s already in progress; waiting for it', self._config.filename)
            return inflight.result()

        result = DownloadResult(error='download aborted')
        try:
            result = self._download_with_retry(device, progress_callback)
        except Exception as e:
            log.error('Unexpected error downloading %s', self._config.filename, exc_info=True)
            result = DownloadResult(error=f'{type(e).__name__}: {e}')
        finally:
            with _INFLIGHT_LOCK:
                _INFLIGHT.pop(key, None)
            inflight.set_result(result)
        return result

    def delete_models(self) -> bool:
        try:
            self.model_file().unlink(missing_ok=True)
            self._discard_partials()
        except OSError:
            log.error('Error deleting model %s', self.model_file(), exc_info=True)
            return False
        log.info('Model deleted: %s', self.model_file())
        return True

    def model_size_mb(self) -> int:
        path = self.model_file()
        return path.stat().st_size // (1024 * 1024) if path.is_file() else 0

    def _download_with_retry(
        self,
        device: DeviceInfo,
        progress_callback: Callable[[int], None] | None,
    ) -> DownloadResult:
        if self.are_models_present():
            return DownloadResult()

        cfg = self._config
        deadline = self._clock() + cfg.timeout_seconds
        attempts = 0

        def _deadline_passed(_state: RetryCallState) -> bool:
            return self._clock() >= deadline

        def _before_sleep(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            log.warning('Download attempt %d of %d failed: %s', state.attempt_number, cfg.max_attempts, exc)

        retrying = Retrying(
            stop=stop_after_attempt(cfg.max_attempts) | _deadline_passed,
            wait=wait_exponential(multiplier=cfg.backoff_base_seconds),
            retry=retry_if_exception_type(ModelDownloadError),
            sleep=self._sleep,
            before_sleep=_before_sleep,
            reraise=True,
        )

        log.info('Starting model download: %s', cfg.url)
        try:
            for attempt in retrying:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    log.debug('Download attempt %d of %d', attempts, cfg.max_attempts)
                    self._attempt(device, progress_callback, deadline)
        except _NotReady as e:
            log.warning('Cannot download: %s', e.readiness.value)
            return DownloadResult(error=e.readiness.value, attempts=attempts)
        except ModelDownloadError as e:
            timed_out = _is_timeout(e) or self._clock() >= deadline
            log.error('Model download failed after %d attempts: %s', attempts, e)
            reason = f'timeout: {e}' if timed_out else str(e)
            return DownloadResult(error=reason, timed_out=timed_out, attempts=attempts)

        if progress_callback is not None:
            progress_callback(100)
        log.info('Model downloaded successfully: %s', self.model_file())
        return DownloadResult(attempts=attempts)

    def _attempt(
        self,
        device: DeviceInfo,
        progress_callback: Callable[[int], None] | None,
        deadline: float,
    ) -> None:
        readiness = self.can_download(device)
        if readiness == Readiness.ALREADY_PRESENT:
            return
        if readiness != Readiness.READY:
            raise _NotReady(readiness)
        if self._clock() >= deadline:
            raise DownloadDeadlineExceeded('Download deadline exceeded before transfer')

        self._dir.mkdir(parents=True, exist_ok=True)
        self._discard()
        try:
            downloaded = hf_hub_download(
                repo_id=self._config.repo_id,
                filename=self._config.filename,
                local_dir=self._dir,
                force_download=True,
                tqdm_class=_make_progress_class(progress_callback, deadline, self._clock),
            )
        except ModelDownloadError:
            self._discard()
            raise
        except Exception as e:
            self._discard()
            raise ModelDownloadError(f'{type(e).__name__}: {e}') from e

        path = Path(downloaded)
        size = path.stat().st_size if path.is_file() else 0
        expected = self._config.expected_size_bytes
        if expected > 0 and size != expected:
            self._discard()
            raise ModelDownloadError(f'Size mismatch for {path.name}: got {size} bytes, expected {expected}')
        log.debug('Downloaded %s (%dMB)', path.name, size // (1024 * 1024))

    def _discard(self) -> None:
        self.model_file().unlink(missing_ok=True)
        self._discard_partials()

    def _discard_partials(self) -> None:
        partial_dir = self._dir / '.cache' / 'huggingface' / 'download'
        if partial_dir.is_dir():
            for partial in partial_dir.glob(f'{self._config.filename}*.incomplete'):
                partial.unlink(missing_ok=True)
