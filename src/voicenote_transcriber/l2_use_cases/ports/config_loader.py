"""Port: configuration loader."""

from __future__ import annotations

from typing import Protocol


class ConfigLoader(Protocol):
    """Abstract configuration loader."""

    def load_raw(
        self,
        config_path: str | None = None,
        overrides: dict | None = None,
    ) -> dict:
        """Read and merge user configuration into a plain dict (before validation)."""
        ...
