"""Port: audio clip decoding."""

from __future__ import annotations

from typing import Protocol

from voicenote_transcriber.l1_entities.audio import AudioContainer, AudioProbe, PcmBuffer


class AudioDecoder(Protocol):
    def decode(self, path: str, container_hint: AudioContainer | None = None) -> PcmBuffer:
        """Decode *path* to 16 kHz mono. Raises AudioFileInvalidError."""
        ...

    def probe(self, path: str, container_hint: AudioContainer | None = None) -> AudioProbe:
        """File size and duration. Never raises."""
        ...
