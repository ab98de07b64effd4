"""Audio constants shared across layers."""

SAMPLE_RATE = 16000
