"""Configuration Pydantic models: pure schema, no infrastructure defaults."""

from __future__ import annotations

from pydantic import BaseModel, Field


class EngineConfig(BaseModel):
    min_memory_mb: int
    remote_credential: str | None = None
    preferred: str | None = None  # force a specific engine id; None = auto-select
    n_threads: int | None = Field(default=None, ge=1)  # None = whisper.cpp default


class ModelConfig(BaseModel):
    engine_id: str
    repo_id: str
    filename: str
    expected_size_bytes: int
    directory: str | None = None  # None → platform data dir
    min_free_storage_mb: int
    max_attempts: int = Field(ge=1)
    timeout_seconds: float
    backoff_base_seconds: float

    @property
    def url(self) -> str:
        return f'https://huggingface.co/{self.repo_id}/resolve/main/{self.filename}'


class LanguageConfig(BaseModel):
    fallback: str
    supported: list[str] = Field(default_factory=list)  # empty = accept any detected code

    def normalize(self, code: str | None) -> str:
        """Map a detected code onto the configured set, falling back when unknown."""
        if not code or code == 'und':
            return self.fallback
        primary = code.lower().split('-')[0]
        if self.supported and primary not in self.supported:
            return self.fallback
        return primary


class SchedulerConfig(BaseModel):
    requires_charging: bool
    requires_battery_not_low: bool
    max_workers: int = Field(ge=1)
    poll_interval_seconds: float


class StorageConfig(BaseModel):
    directory: str | None = None  # None → platform data dir


class DeviceConfig(BaseModel):
    network: str | None = None  # 'unmetered' | 'metered' | 'offline'; None = probe


class AppConfig(BaseModel):
    engine: EngineConfig
    model: ModelConfig
    language: LanguageConfig
    scheduler: SchedulerConfig
    storage: StorageConfig
    device: DeviceConfig = Field(default_factory=DeviceConfig)
