"""Domain error types."""

from __future__ import annotations

import enum


class ErrorKind(enum.Enum):
    """Why a transcription attempt failed. Persisted as the stats error message prefix."""

    AUDIO_FILE_INVALID = 'audio_file_invalid'
    MODEL_NOT_DOWNLOADED = 'model_not_downloaded'
    NETWORK_UNAVAILABLE = 'network_unavailable'
    DEVICE_INCOMPATIBLE = 'device_incompatible'
    INITIALIZATION_FAILED = 'initialization_failed'
    ENGINE_UNAVAILABLE = 'engine_unavailable'
    API_KEY_MISSING = 'api_key_missing'
    QUOTA_EXCEEDED = 'quota_exceeded'
    UNKNOWN = 'unknown'


class AudioFileInvalidError(Exception):
    """Raised when an audio clip is missing, empty, or cannot be parsed."""


class ModelDownloadError(Exception):
    """Raised by a single download attempt (transfer error, size mismatch, deadline)."""


class DownloadDeadlineExceeded(ModelDownloadError):
    """Raised when the overall download deadline passes mid-transfer."""


class EngineAlreadyInitializedError(RuntimeError):
    """Raised when an engine instance is asked to build a second live runtime."""
