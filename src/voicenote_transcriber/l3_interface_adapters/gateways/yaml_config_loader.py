"""Gateway: YAML configuration loader (implements ConfigLoader port)."""

from __future__ import annotations

from pathlib import Path

import yaml

from voicenote_transcriber.l3_interface_adapters.gateways.paths import DEFAULT_CONFIG_PATHS


class YamlConfigLoader:
    """Reads user YAML config (explicit path or platform default) and merges overrides.

    Validation against the schema happens in ``build_app_config`` once defaults
    are layered underneath.
    """

    def __init__(self, default_paths: list[Path] | None = None) -> None:
        self._default_paths = default_paths if default_paths is not None else DEFAULT_CONFIG_PATHS

    def load_raw(
        self,
        config_path: str | None = None,
        overrides: dict | None = None,
    ) -> dict:
        data: dict = {}
        if config_path is not None:
            path = Path(config_path)
            if not path.exists():
                raise FileNotFoundError(f'Config file not found: {path}')
            data = _read_mapping(path)
        else:
            for default_path in self._default_paths:
                if default_path.exists():
                    data = _read_mapping(default_path)
                    break
        if overrides:
            deep_merge(data, overrides)
        return data


def _read_mapping(path: Path) -> dict:
    data = yaml.safe_load(path.read_text(encoding='utf-8')) or {}
    if not isinstance(data, dict):
        raise ValueError(f'Config file must contain a mapping at top level: {path}')
    return data


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base
