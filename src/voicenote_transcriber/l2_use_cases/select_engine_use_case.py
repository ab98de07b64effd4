"""Use case: pick the inference engine for one job from the current device snapshot."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from voicenote_transcriber.l1_entities.config import EngineConfig
from voicenote_transcriber.l1_entities.device import DeviceInfo
from voicenote_transcriber.l2_use_cases.ports.inference_engine import InferenceEngine

log = logging.getLogger('vnt.engine')

REMOTE_ENGINE_ID = 'remote-cloud'
NATIVE_ENGINE_ID = 'whisper-tiny'
NOOP_ENGINE_ID = 'noop'

# Highest priority first; NoOp is the unconditional fallback and is not listed.
PRIORITY = (REMOTE_ENGINE_ID, NATIVE_ENGINE_ID)

EngineFactory = Callable[[EngineConfig], InferenceEngine]


class EngineSelector:
    """Deterministic remote → native → NoOp selection.

    Holds factories rather than engines: every call builds fresh candidates so
    memory pressure and connectivity are judged per job, never cached.
    """

    def __init__(self, factories: Mapping[str, EngineFactory], fallback: EngineFactory) -> None:
        self._factories = dict(factories)
        self._fallback = fallback

    def select(self, device: DeviceInfo, config: EngineConfig) -> InferenceEngine:
        if config.preferred:
            forced = self.create_by_id(config.preferred, device, config)
            if forced is not None:
                log.info('Selected preferred engine: %s', forced.engine_id)
                return forced
            log.warning('Preferred engine %s unavailable, auto-selecting', config.preferred)

        for engine_id in PRIORITY:
            engine = self._available(engine_id, device, config)
            if engine is not None:
                log.info('Selected engine: %s (%s)', engine.engine_id, engine.engine_name)
                return engine

        log.info('No engine available, using %s', NOOP_ENGINE_ID)
        return self._fallback(config)

    def create_by_id(self, engine_id: str, device: DeviceInfo, config: EngineConfig) -> InferenceEngine | None:
        """Build a specific engine, or None when unknown or unavailable on *device*."""
        if engine_id == NOOP_ENGINE_ID:
            return self._fallback(config)
        if engine_id not in self._factories:
            log.warning('Unknown engine ID: %s', engine_id)
            return None
        return self._available(engine_id, device, config)

    def available_engine_ids(self, device: DeviceInfo, config: EngineConfig) -> list[str]:
        return [eid for eid in PRIORITY if self._available(eid, device, config) is not None]

    def _available(self, engine_id: str, device: DeviceInfo, config: EngineConfig) -> InferenceEngine | None:
        factory = self._factories.get(engine_id)
        if factory is None:
            return None
        try:
            engine = factory(config)
            if engine.is_available(device):
                return engine
        except Exception:
            log.error('Availability check failed for %s', engine_id, exc_info=True)
            return None
        log.debug('Engine %s not available on this device', engine_id)
        return None
