"""Port: text language identification."""

from __future__ import annotations

from typing import Protocol


class LanguageIdentifier(Protocol):
    def identify(self, text: str) -> str:
        """Return an ISO 639-1 code, or 'und' when undetermined. May raise."""
        ...
