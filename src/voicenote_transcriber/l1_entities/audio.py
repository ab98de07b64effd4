"""Audio entities: container hint, decoded PCM buffer, clip probe."""

from __future__ import annotations

import enum
from dataclasses import dataclass

import numpy as np

from voicenote_transcriber.l1_entities.audio_constants import SAMPLE_RATE


class AudioContainer(enum.Enum):
    M4A = 'm4a'
    WAV = 'wav'


_EXTENSIONS = {
    'wav': AudioContainer.WAV,
    'wave': AudioContainer.WAV,
    'm4a': AudioContainer.M4A,
    'mp4': AudioContainer.M4A,
    'aac': AudioContainer.M4A,
}


def container_for(path: str) -> AudioContainer | None:
    """Map a file extension to a container, or None when unsupported."""
    suffix = path.rsplit('.', 1)[-1].lower() if '.' in path else ''
    return _EXTENSIONS.get(suffix)


@dataclass(frozen=True)
class PcmBuffer:
    """Mono float32 samples at 16 kHz in [-1.0, 1.0]. Consumed by one engine call."""

    samples: np.ndarray
    sample_rate: int = SAMPLE_RATE

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def duration_seconds(self) -> float:
        return len(self.samples) / self.sample_rate


@dataclass(frozen=True)
class AudioProbe:
    """Clip metadata captured synchronously at schedule time."""

    size_bytes: int
    duration_seconds: float | None = None
