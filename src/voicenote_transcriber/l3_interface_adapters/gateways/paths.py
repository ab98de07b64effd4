"""Shared path constants for configuration, models, and stored data."""

from __future__ import annotations

from platformdirs import user_config_path, user_data_path

CONFIG_DIR = user_config_path('voicenote-transcriber')
DATA_DIR = user_data_path('voicenote-transcriber')
MODELS_DIR = DATA_DIR / 'models'

DEFAULT_CONFIG_PATHS = [
    CONFIG_DIR / 'config.yaml',
    CONFIG_DIR / 'config.yml',
]
