"""Gateway: audio codec (implements AudioDecoder port).

WAV is read with soundfile. Compressed containers (M4A/AAC and anything else
ffmpeg can read) are transcoded by an ffmpeg subprocess into a 16-bit WAV
stream at the source rate and channel layout, and that stream is read by
soundfile from memory, so downmix, normalization and resampling always go
through the same numpy path.

Resampling is linear interpolation: cheap and good enough for short voice
clips, but not band-limited, so content above 8 kHz aliases.
"""

from __future__ import annotations

import io
import logging
import shutil
import subprocess  # noqa: S404 -- intentional: shells out to ffmpeg with a fixed arg list, not shell=True
from pathlib import Path
from typing import BinaryIO

import numpy as np
import soundfile as sf

from voicenote_transcriber.l1_entities.audio import AudioContainer, AudioProbe, PcmBuffer, container_for
from voicenote_transcriber.l1_entities.audio_constants import SAMPLE_RATE
from voicenote_transcriber.l1_entities.errors import AudioFileInvalidError

log = logging.getLogger('vnt.codec')

_FFMPEG_TIMEOUT = 300  # seconds
_FFPROBE_TIMEOUT = 30  # seconds


def read_frames(source: str | BinaryIO, name: str = '<bytes>') -> tuple[np.ndarray, int]:
    """Read any libsndfile-readable stream as float32 frames of shape (n, channels).

    Raises:
        AudioFileInvalidError: the stream cannot be parsed, whatever the underlying error.
    """
    try:
        frames, sample_rate = sf.read(source, dtype='float32', always_2d=True)
    except Exception as exc:
        raise AudioFileInvalidError(f'Cannot decode audio {name}: {exc}') from exc
    if sample_rate < 1 or frames.shape[1] < 1:
        raise AudioFileInvalidError(f'Invalid channel count or sample rate in {name}')
    return np.clip(np.nan_to_num(frames), -1.0, 1.0), int(sample_rate)


def downmix(frames: np.ndarray) -> np.ndarray:
    """Average channel amplitudes sample-wise."""
    if frames.ndim == 1:
        return frames.astype(np.float32)
    if frames.shape[1] == 1:
        return frames[:, 0].astype(np.float32)
    return frames.mean(axis=1, dtype=np.float64).astype(np.float32)


def resample_linear(samples: np.ndarray, source_rate: int, target_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Linear-interpolation resampler. Output length is ``floor(len * target / source)``."""
    if source_rate == target_rate or len(samples) == 0:
        return samples.astype(np.float32)
    ratio = source_rate / target_rate
    out_len = len(samples) * target_rate // source_rate
    positions = np.arange(out_len, dtype=np.float64) * ratio
    resampled = np.interp(positions, np.arange(len(samples), dtype=np.float64), samples.astype(np.float64))
    return resampled.astype(np.float32)


def wav_bytes_to_pcm(data: bytes, source: str = '<bytes>') -> PcmBuffer:
    return frames_to_pcm(*read_frames(io.BytesIO(data), source), source)


def frames_to_pcm(frames: np.ndarray, sample_rate: int, source: str = '<bytes>') -> PcmBuffer:
    mono = downmix(frames)
    if len(mono) == 0:
        raise AudioFileInvalidError(f'Audio file contains no samples: {source}')
    if sample_rate != SAMPLE_RATE:
        log.debug('Resampling %s from %d Hz to %d Hz', source, sample_rate, SAMPLE_RATE)
    samples = np.clip(resample_linear(mono, sample_rate, SAMPLE_RATE), -1.0, 1.0)
    if len(samples) == 0:
        raise AudioFileInvalidError(f'Audio file too short to resample: {source}')
    return PcmBuffer(samples=samples, sample_rate=SAMPLE_RATE)


def _transcode_to_wav(path: Path) -> bytes:
    """Run ffmpeg to turn any container into a 16-bit WAV stream, keeping rate and channels."""
    if shutil.which('ffmpeg') is None:
        raise AudioFileInvalidError(
            'ffmpeg is required but not found on PATH.\n  macOS:  brew install ffmpeg\n  Debian: apt install ffmpeg'
        )

    cmd = [
        'ffmpeg',
        '-i',
        str(path),
        '-vn',
        '-acodec',
        'pcm_s16le',
        '-f',
        'wav',
        '-v',
        'quiet',
        'pipe:1',
    ]

    try:
        result = subprocess.run(cmd, capture_output=True, timeout=_FFMPEG_TIMEOUT)  # noqa: S603
    except subprocess.TimeoutExpired as exc:
        raise AudioFileInvalidError(f'ffmpeg timed out after {_FFMPEG_TIMEOUT}s processing: {path}') from exc
    except OSError as exc:
        raise AudioFileInvalidError(f'Failed to launch ffmpeg: {exc}') from exc

    if result.returncode != 0:
        stderr = result.stderr.decode('utf-8', errors='replace').strip()
        raise AudioFileInvalidError(f'ffmpeg exited with code {result.returncode} for: {path}\n{stderr}')

    if not result.stdout:
        raise AudioFileInvalidError(f'ffmpeg produced no audio output for: {path}')

    return result.stdout


def _ffprobe_duration(path: Path) -> float | None:
    if shutil.which('ffprobe') is None:
        return None
    cmd = [
        'ffprobe',
        '-v',
        'quiet',
        '-show_entries',
        'format=duration',
        '-of',
        'default=noprint_wrappers=1:nokey=1',
        str(path),
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, timeout=_FFPROBE_TIMEOUT)  # noqa: S603
    except (subprocess.TimeoutExpired, OSError):
        log.warning('ffprobe failed for %s', path, exc_info=True)
        return None
    try:
        return float(result.stdout.decode('utf-8').strip())
    except ValueError:
        return None


class AudioCodec:
    """Decodes recorded clips into 16 kHz mono ``PcmBuffer``. Stateless."""

    def decode(self, path: str, container_hint: AudioContainer | None = None) -> PcmBuffer:
        """Raises:
        AudioFileInvalidError: missing, zero-length, unsupported, or undecodable clip.
        """
        file = Path(path)
        if not file.is_file():
            raise AudioFileInvalidError(f'Audio file not found: {path}')
        if file.stat().st_size == 0:
            raise AudioFileInvalidError(f'Audio file is empty: {path}')

        container = container_hint or container_for(path)
        if container is None:
            raise AudioFileInvalidError(f'Unsupported audio format: {file.suffix or "<none>"}')

        if container == AudioContainer.WAV:
            pcm = frames_to_pcm(*read_frames(str(file), path), path)
        else:
            pcm = wav_bytes_to_pcm(_transcode_to_wav(file), path)
        log.debug('Decoded %s: %d samples (%.2fs)', file.name, len(pcm), pcm.duration_seconds)
        return pcm

    def probe(self, path: str, container_hint: AudioContainer | None = None) -> AudioProbe:
        file = Path(path)
        try:
            size = file.stat().st_size
        except OSError:
            return AudioProbe(size_bytes=0)

        container = container_hint or container_for(path)
        duration: float | None = None
        if container == AudioContainer.WAV:
            try:
                duration = sf.info(str(file)).duration
            except Exception:
                log.warning('Failed to get audio duration for %s', path, exc_info=True)
        elif container is not None:
            duration = _ffprobe_duration(file)
        return AudioProbe(size_bytes=size, duration_seconds=duration)
