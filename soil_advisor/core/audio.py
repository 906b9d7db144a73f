"""
PCM and base64 conversions for the live audio stream.
Pure functions; no device or network access.
"""

import base64
from dataclasses import dataclass

import numpy as np

from . import config


@dataclass(frozen=True)
class AudioBlob:
    """One outbound audio frame as sent on the wire."""

    data: str  # base64 PCM
    mime_type: str = config.INPUT_MIME_TYPE


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """
    Convert float samples in [-1, 1] to little-endian int16 PCM.
    Out-of-range samples are clamped to the int16 limits.
    """
    scaled = np.asarray(samples, dtype=np.float32) * 32768.0
    clipped = np.clip(scaled, -32768, 32767)
    return clipped.astype("<i2").tobytes()


def pcm16_to_float(pcm: bytes, channels: int = config.CHANNELS) -> np.ndarray:
    """
    Convert int16 PCM bytes to float32 samples normalized to [-1, 1).
    A trailing odd byte is ignored. Multi-channel input is de-interleaved
    into shape (frames, channels).
    """
    usable = len(pcm) - (len(pcm) % config.SAMPLE_WIDTH)
    audio_np = np.frombuffer(pcm[:usable], dtype="<i2").astype(np.float32)
    audio_np /= 32768.0
    if channels > 1:
        frames = len(audio_np) // channels
        return audio_np[: frames * channels].reshape(frames, channels)
    return audio_np


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_base64(data: str) -> bytes:
    return base64.b64decode(data)


def create_blob(samples: np.ndarray) -> AudioBlob:
    """Encode a captured float block for transmission."""
    return AudioBlob(data=encode_base64(float_to_pcm16(samples)))


def decode_audio_chunk(data: str, channels: int = config.CHANNELS) -> np.ndarray:
    """Decode an inbound base64 PCM chunk to float samples."""
    return pcm16_to_float(decode_base64(data), channels=channels)


def duration_seconds(num_frames: int, sample_rate: int) -> float:
    """Duration of `num_frames` samples at `sample_rate`."""
    if num_frames <= 0:
        return 0.0
    return num_frames / float(sample_rate)
