"""Gateway: on-device text language identification (implements LanguageIdentifier port)."""

from __future__ import annotations

import threading

from langdetect import DetectorFactory, detect_langs
from langdetect.lang_detect_exception import LangDetectException

_INIT_LOCK = threading.Lock()
_seeded = False


def _seed_once() -> None:
    # langdetect is probabilistic; a fixed seed makes identical text yield identical codes.
    global _seeded
    with _INIT_LOCK:
        if not _seeded:
            DetectorFactory.seed = 0
            _seeded = True


class LangdetectIdentifier:
    """Identifies the language of a transcript. Returns 'und' below *min_confidence*."""

    def __init__(self, min_confidence: float = 0.5) -> None:
        self._min_confidence = min_confidence
        _seed_once()

    def identify(self, text: str) -> str:
        try:
            candidates = detect_langs(text)
        except LangDetectException:
            return 'und'
        if not candidates:
            return 'und'
        best = candidates[0]
        if best.prob < self._min_confidence:
            return 'und'
        return best.lang.split('-')[0]
