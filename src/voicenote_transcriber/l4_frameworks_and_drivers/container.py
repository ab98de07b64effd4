"""Dependency container: composition root for wiring all layers together."""

from __future__ import annotations

from pathlib import Path

from voicenote_transcriber.l1_entities.config import AppConfig, EngineConfig
from voicenote_transcriber.l2_use_cases.ports.audio_decoder import AudioDecoder
from voicenote_transcriber.l2_use_cases.ports.config_loader import ConfigLoader
from voicenote_transcriber.l2_use_cases.ports.inference_engine import InferenceEngine
from voicenote_transcriber.l2_use_cases.ports.language_identifier import LanguageIdentifier
from voicenote_transcriber.l2_use_cases.ports.task_queue import Constraints, DeviceProbe
from voicenote_transcriber.l2_use_cases.schedule_transcription_use_case import JobScheduler
from voicenote_transcriber.l2_use_cases.select_engine_use_case import (
    NATIVE_ENGINE_ID,
    REMOTE_ENGINE_ID,
    EngineSelector,
)
from voicenote_transcriber.l2_use_cases.transcription_job import TranscriptionJob
from voicenote_transcriber.l2_use_cases.utils.keyed_lock import KeyedLock
from voicenote_transcriber.l3_interface_adapters.gateways.audio_codec import AudioCodec
from voicenote_transcriber.l3_interface_adapters.gateways.engines.native_tiny_engine import NativeTinyEngine
from voicenote_transcriber.l3_interface_adapters.gateways.engines.noop_engine import NoOpEngine
from voicenote_transcriber.l3_interface_adapters.gateways.engines.remote_cloud_engine import RemoteCloudEngine
from voicenote_transcriber.l3_interface_adapters.gateways.file_persistence import JsonEntityStore, JsonStatsRepository
from voicenote_transcriber.l3_interface_adapters.gateways.hf_model_manager import HfModelArtifactManager
from voicenote_transcriber.l3_interface_adapters.gateways.langdetect_identifier import LangdetectIdentifier
from voicenote_transcriber.l3_interface_adapters.gateways.paths import DATA_DIR
from voicenote_transcriber.l3_interface_adapters.gateways.whisper_transcriber import WhisperCppRuntime
from voicenote_transcriber.l3_interface_adapters.gateways.yaml_config_loader import YamlConfigLoader
from voicenote_transcriber.l4_frameworks_and_drivers.device_probe import PsutilDeviceProbe
from voicenote_transcriber.l4_frameworks_and_drivers.task_queue import ThreadPoolTaskQueue


class DependencyContainer:
    """Creates and wires all concrete instances. Easy to override for testing."""

    def __init__(
        self,
        config: AppConfig,
        data_dir: Path | None = None,
        device_probe: DeviceProbe | None = None,
        decoder: AudioDecoder | None = None,
        language_identifier: LanguageIdentifier | None = None,
        ignore_constraints: bool = False,
    ) -> None:
        self.config = config
        self.data_dir = data_dir or (Path(config.storage.directory) if config.storage.directory else DATA_DIR)

        self.device_probe: DeviceProbe = device_probe or PsutilDeviceProbe(self.data_dir, config.device.network)
        self.stats = JsonStatsRepository(self.data_dir)
        self.entities = JsonEntityStore(self.data_dir)
        self.decoder: AudioDecoder = decoder or AudioCodec()
        self.language_identifier: LanguageIdentifier = language_identifier or LangdetectIdentifier()
        self.models = HfModelArtifactManager(
            config.model,
            models_dir=None if config.model.directory else self.data_dir / 'models',
        )

        self.selector = EngineSelector(
            factories={
                REMOTE_ENGINE_ID: self._remote_engine,
                NATIVE_ENGINE_ID: self._native_engine,
            },
            fallback=lambda _config: NoOpEngine(),
        )
        self.pair_locks = KeyedLock()
        self.job = TranscriptionJob(
            stats=self.stats,
            entities=self.entities,
            selector=self.selector,
            models=self.models,
            decoder=self.decoder,
            engine_config=config.engine,
            pair_locks=self.pair_locks,
        )
        self.queue = ThreadPoolTaskQueue(max_workers=config.scheduler.max_workers)
        constraints = (
            Constraints()
            if ignore_constraints
            else Constraints(
                requires_charging=config.scheduler.requires_charging,
                requires_battery_not_low=config.scheduler.requires_battery_not_low,
            )
        )
        self.scheduler = JobScheduler(
            job=self.job,
            queue=self.queue,
            stats=self.stats,
            entities=self.entities,
            decoder=self.decoder,
            device_probe=self.device_probe,
            constraints=constraints,
            pair_locks=self.pair_locks,
        )

    def _remote_engine(self, engine_config: EngineConfig) -> InferenceEngine:
        return RemoteCloudEngine(credential=engine_config.remote_credential)

    def _native_engine(self, engine_config: EngineConfig) -> InferenceEngine:
        return NativeTinyEngine(
            models=self.models,
            runtime_factory=lambda: WhisperCppRuntime(n_threads=engine_config.n_threads),
            language_identifier=self.language_identifier,
            language=self.config.language,
            min_memory_mb=engine_config.min_memory_mb,
        )

    @staticmethod
    def config_loader() -> ConfigLoader:
        return YamlConfigLoader()
