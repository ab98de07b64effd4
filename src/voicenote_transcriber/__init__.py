"""voicenote-transcriber: on-device transcription of recorded voice notes."""

__version__ = '0.3.0'
