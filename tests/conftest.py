"""Shared test fixtures and protocol-conforming fakes."""

from __future__ import annotations

import wave
from collections.abc import Callable
from pathlib import Path

import numpy as np
import pytest

from voicenote_transcriber.l1_entities.audio import AudioContainer, AudioProbe, PcmBuffer
from voicenote_transcriber.l1_entities.config import AppConfig
from voicenote_transcriber.l1_entities.device import DeviceInfo, NetworkClass
from voicenote_transcriber.l1_entities.errors import AudioFileInvalidError, ErrorKind
from voicenote_transcriber.l1_entities.outcome import (
    DownloadResult,
    Failure,
    Readiness,
    Success,
    TranscriptionOutcome,
    TranscriptionResult,
)
from voicenote_transcriber.l1_entities.stats import StatsStatus, StatsSummary, TranscriptionStats
from voicenote_transcriber.l2_use_cases.ports.task_queue import Constraints, Task
from voicenote_transcriber.l4_frameworks_and_drivers.config import build_app_config

_MB = 1024 * 1024


def make_device(
    memory_mb: int = 3000,
    storage_mb: int = 500,
    network: NetworkClass = NetworkClass.UNMETERED,
    is_charging: bool = True,
    battery_low: bool = False,
) -> DeviceInfo:
    return DeviceInfo(
        total_memory_bytes=memory_mb * _MB,
        available_storage_bytes=storage_mb * _MB,
        network=network,
        is_charging=is_charging,
        battery_low=battery_low,
    )


def write_wav(
    path: Path,
    samples: np.ndarray,
    sample_rate: int = 16000,
    channels: int = 1,
    sample_width: int = 2,
) -> Path:
    """Write float samples in [-1, 1] (shape (n,) or (n, channels)) as integer PCM."""
    scale = {1: 127, 2: 32767, 4: 2147483647}[sample_width]
    dtype = {1: np.uint8, 2: '<i2', 4: '<i4'}[sample_width]
    ints = np.round(np.asarray(samples, dtype=np.float64) * scale)
    if sample_width == 1:
        ints = ints + 128
    with wave.open(str(path), 'wb') as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(sample_width)
        wf.setframerate(sample_rate)
        wf.writeframes(ints.astype(dtype).tobytes())
    return path


def sine(seconds: float, sample_rate: int = 16000, freq: float = 440.0, amplitude: float = 0.5) -> np.ndarray:
    t = np.arange(int(seconds * sample_rate)) / sample_rate
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


# --- Protocol-conforming Fakes ---


class FakeStatsRepository:
    """In-memory StatsRepository for L2 tests."""

    def __init__(self) -> None:
        self.records: dict[int, TranscriptionStats] = {}
        self.insert_calls = 0
        self.update_calls: list[TranscriptionStats] = []
        self.fail_updates = False

    def find_pending_for(self, entity_id: str, audio_path: str) -> TranscriptionStats | None:
        for record in self.records.values():
            if record.matches(entity_id, audio_path) and record.status == StatsStatus.PENDING:
                return record
        return None

    def find_latest_for(self, entity_id: str, audio_path: str) -> TranscriptionStats | None:
        matching = [r for r in self.records.values() if r.matches(entity_id, audio_path)]
        return max(matching, key=lambda r: r.id, default=None)

    def insert(self, stats: TranscriptionStats) -> int:
        self.insert_calls += 1
        new_id = len(self.records) + 1
        self.records[new_id] = stats.model_copy(update={'id': new_id})
        return new_id

    def update_by_id(self, stats: TranscriptionStats) -> None:
        if self.fail_updates:
            raise OSError('disk full')
        self.update_calls.append(stats)
        self.records[stats.id] = stats

    def list(self, status: StatsStatus | None = None, entity_id: str | None = None) -> list[TranscriptionStats]:
        return [
            r
            for r in self.records.values()
            if (status is None or r.status == status) and (entity_id is None or r.entity_id == entity_id)
        ]

    def summary(self) -> StatsSummary:
        return StatsSummary(total=len(self.records))

    def for_pair(self, entity_id: str, audio_path: str) -> list[TranscriptionStats]:
        return [r for r in self.records.values() if r.matches(entity_id, audio_path)]


class FakeEntityGateway:
    """In-memory EntityGateway: known ids, names, and written-back transcripts."""

    def __init__(self, entities: dict[str, str | None] | None = None) -> None:
        self.entities = dict(entities if entities is not None else {'note-1': 'Morning dose'})
        self.transcripts: dict[str, tuple[str, str]] = {}

    def exists(self, entity_id: str) -> bool:
        return entity_id in self.entities

    def entity_name(self, entity_id: str) -> str | None:
        return self.entities.get(entity_id)

    def update_transcript(self, entity_id: str, text: str, language_code: str) -> None:
        self.transcripts[entity_id] = (text, language_code)


class FakeModelStore:
    """ModelArtifactStore fake with scriptable presence and download result."""

    def __init__(
        self,
        present: bool = True,
        readiness: Readiness = Readiness.READY,
        download_result: DownloadResult | None = None,
        model_path: Path = Path('/fake/models/ggml-tiny.bin'),
    ) -> None:
        self.present = present
        self.readiness = readiness
        self.download_result = download_result or DownloadResult(attempts=1)
        self.download_calls: list[DeviceInfo] = []
        self._model_path = model_path

    def are_models_present(self) -> bool:
        return self.present

    def can_download(self, device: DeviceInfo) -> Readiness:
        return Readiness.ALREADY_PRESENT if self.present else self.readiness

    def download(
        self,
        device: DeviceInfo,
        progress_callback: Callable[[int], None] | None = None,
    ) -> DownloadResult:
        self.download_calls.append(device)
        if self.download_result.ok:
            self.present = True
            if progress_callback is not None:
                progress_callback(100)
        return self.download_result

    def model_file(self) -> Path:
        return self._model_path


class FakeEngine:
    """InferenceEngine fake recording its lifecycle calls."""

    def __init__(
        self,
        engine_id: str = 'whisper-tiny',
        available: bool = True,
        requires_model: bool = True,
        init_outcome: TranscriptionOutcome | None = None,
        transcribe_outcome: TranscriptionOutcome | None = None,
    ) -> None:
        self.engine_id = engine_id
        self.engine_name = f'Fake {engine_id}'
        self.requires_model = requires_model
        self.available = available
        self.init_outcome = init_outcome or Success()
        self.transcribe_outcome = transcribe_outcome or Success(
            TranscriptionResult(text='take two tablets after breakfast', language_code='en', engine_id=engine_id)
        )
        self.init_calls = 0
        self.init_devices: list[DeviceInfo] = []
        self.cleanup_calls = 0
        self.transcribe_calls: list[PcmBuffer] = []
        self.on_transcribe: Callable[[], None] | None = None

    def is_available(self, device: DeviceInfo) -> bool:
        return self.available

    def initialize(self, device: DeviceInfo) -> TranscriptionOutcome:
        self.init_calls += 1
        self.init_devices.append(device)
        return self.init_outcome

    def transcribe(self, pcm: PcmBuffer) -> TranscriptionOutcome:
        self.transcribe_calls.append(pcm)
        if self.on_transcribe is not None:
            self.on_transcribe()
        return self.transcribe_outcome

    def cleanup(self) -> None:
        self.cleanup_calls += 1

    def estimate_duration(self, audio_seconds: float) -> float:
        return audio_seconds * 2


class FakeDecoder:
    """AudioDecoder fake: fixed PCM (or a decode error) and a fixed probe."""

    def __init__(
        self,
        seconds: float = 10.0,
        size_bytes: int = 160_044,
        error: str | None = None,
        probe_duration: float | None = None,
    ) -> None:
        self.pcm = PcmBuffer(samples=np.zeros(int(seconds * 16000), dtype=np.float32))
        self.size_bytes = size_bytes
        self.error = error
        self.probe_duration = probe_duration if probe_duration is not None else seconds
        self.decode_calls: list[tuple[str, AudioContainer | None]] = []
        self.probe_calls: list[str] = []

    def decode(self, path: str, container_hint: AudioContainer | None = None) -> PcmBuffer:
        self.decode_calls.append((path, container_hint))
        if self.error is not None:
            raise AudioFileInvalidError(self.error)
        return self.pcm

    def probe(self, path: str, container_hint: AudioContainer | None = None) -> AudioProbe:
        self.probe_calls.append(path)
        return AudioProbe(size_bytes=self.size_bytes, duration_seconds=self.probe_duration)


class FakeRuntime:
    """SpeechRuntime fake for the native engine."""

    def __init__(self, text: str = 'hello world', load_error: Exception | None = None) -> None:
        self.text = text
        self.load_error = load_error
        self.transcribe_error: Exception | None = None
        self.loaded_paths: list[str] = []
        self.transcribe_calls: list[tuple[np.ndarray, str]] = []
        self.close_calls = 0

    def load_model(self, model_path: str) -> None:
        if self.load_error is not None:
            raise self.load_error
        self.loaded_paths.append(model_path)

    def transcribe(self, audio: np.ndarray, language: str = 'auto') -> str:
        self.transcribe_calls.append((audio, language))
        if self.transcribe_error is not None:
            raise self.transcribe_error
        return self.text

    def close(self) -> None:
        self.close_calls += 1


class FakeIdentifier:
    """LanguageIdentifier fake returning a fixed code or raising."""

    def __init__(self, code: str = 'en', error: Exception | None = None) -> None:
        self.code = code
        self.error = error
        self.calls: list[str] = []

    def identify(self, text: str) -> str:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.code


class FakeDeviceProbe:
    def __init__(self, device: DeviceInfo | None = None) -> None:
        self.device = device or make_device()
        self.calls = 0

    def snapshot(self) -> DeviceInfo:
        self.calls += 1
        return self.device


class RecordingQueue:
    """TaskQueue fake: keeps submitted tasks until ``run_all``; duplicate keys are rejected."""

    def __init__(self) -> None:
        self.tasks: dict[str, tuple[Task, Constraints]] = {}
        self.submit_calls: list[str] = []
        self.cancelled: list[str] = []
        self.results: dict[str, object] = {}

    def submit(self, key: str, task: Task, constraints: Constraints) -> bool:
        self.submit_calls.append(key)
        if key in self.tasks:
            return False
        self.tasks[key] = (task, constraints)
        return True

    def cancel(self, key: str) -> bool:
        if self.tasks.pop(key, None) is None:
            return False
        self.cancelled.append(key)
        return True

    def run_all(self) -> dict[str, object]:
        while self.tasks:
            key, (task, _constraints) = next(iter(self.tasks.items()))
            del self.tasks[key]
            self.results[key] = task(lambda: False)
        return self.results


def failure(kind: ErrorKind, message: str = '') -> Failure:
    return Failure(kind, message)


# --- Fixtures ---


@pytest.fixture
def default_config() -> AppConfig:
    return build_app_config({})


@pytest.fixture
def device() -> DeviceInfo:
    return make_device()


@pytest.fixture
def fake_stats() -> FakeStatsRepository:
    return FakeStatsRepository()


@pytest.fixture
def fake_entities() -> FakeEntityGateway:
    return FakeEntityGateway()


@pytest.fixture
def fake_models() -> FakeModelStore:
    return FakeModelStore()


@pytest.fixture
def fake_decoder() -> FakeDecoder:
    return FakeDecoder()


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def fake_identifier() -> FakeIdentifier:
    return FakeIdentifier()


@pytest.fixture
def sample_config_yaml(tmp_path: Path) -> Path:
    content = """\
engine:
  min_memory_mb: 1500
model:
  max_attempts: 5
language:
  fallback: de
  supported: [de, en, fr]
scheduler:
  requires_charging: false
"""
    path = tmp_path / 'config.yaml'
    path.write_text(content, encoding='utf-8')
    return path
