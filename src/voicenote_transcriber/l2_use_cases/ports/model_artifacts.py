"""Port: model artifact presence and download."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from voicenote_transcriber.l1_entities.device import DeviceInfo
from voicenote_transcriber.l1_entities.outcome import DownloadResult, Readiness


class ModelArtifactStore(Protocol):
    """Ensures an engine's model file is on local storage."""

    def are_models_present(self) -> bool: ...

    def can_download(self, device: DeviceInfo) -> Readiness: ...

    def download(
        self,
        device: DeviceInfo,
        progress_callback: Callable[[int], None] | None = None,
    ) -> DownloadResult:
        """Fetch and verify the artifact. Callers must have checked consent."""
        ...

    def model_file(self) -> Path: ...
