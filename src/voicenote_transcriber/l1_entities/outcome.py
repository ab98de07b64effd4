"""Engine and download outcomes: typed results instead of exceptions at port boundaries."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Union

from voicenote_transcriber.l1_entities.errors import ErrorKind


@dataclass(frozen=True)
class TranscriptionResult:
    """Text produced by an engine plus the language it was identified as."""

    text: str
    language_code: str
    engine_id: str = 'unknown'
    confidence: float = 1.0


@dataclass(frozen=True)
class Success:
    data: Any = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    error: ErrorKind
    message: str = ''

    @property
    def ok(self) -> bool:
        return False

    def describe(self) -> str:
        return f'{self.error.value}: {self.message}' if self.message else self.error.value


TranscriptionOutcome = Union[Success, Failure]


class Readiness(enum.Enum):
    READY = 'ready'
    NO_WIFI = 'no_wifi'
    INSUFFICIENT_STORAGE = 'insufficient_storage'
    ALREADY_PRESENT = 'already_present'


@dataclass(frozen=True)
class DownloadResult:
    """Result of ensuring a model artifact: either success or failure with reason."""

    error: str = ''
    timed_out: bool = False
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return not self.error
