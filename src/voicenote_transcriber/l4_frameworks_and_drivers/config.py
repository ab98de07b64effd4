"""Infrastructure defaults for AppConfig: lives in L4, not domain."""

from __future__ import annotations

import copy

from voicenote_transcriber.l1_entities.config import AppConfig
from voicenote_transcriber.l3_interface_adapters.gateways.yaml_config_loader import deep_merge

APP_CONFIG_DEFAULTS: dict = {
    'engine': {
        'min_memory_mb': 1900,
        'remote_credential': None,
        'preferred': None,
        'n_threads': None,
    },
    'model': {
        'engine_id': 'whisper-tiny',
        'repo_id': 'ggerganov/whisper.cpp',
        'filename': 'ggml-tiny.bin',
        'expected_size_bytes': 77_691_713,
        'directory': None,
        'min_free_storage_mb': 100,
        'max_attempts': 3,
        'timeout_seconds': 300.0,
        'backoff_base_seconds': 2.0,
    },
    'language': {
        'fallback': 'en',
        'supported': [],
    },
    'scheduler': {
        'requires_charging': True,
        'requires_battery_not_low': True,
        'max_workers': 2,
        'poll_interval_seconds': 30.0,
    },
    'storage': {
        'directory': None,
    },
    'device': {
        'network': None,
    },
}


def build_app_config(raw: dict) -> AppConfig:
    """Merge *raw* user overrides on top of defaults, then validate."""
    merged = copy.deepcopy(APP_CONFIG_DEFAULTS)
    deep_merge(merged, raw)
    return AppConfig.model_validate(merged)
