"""
Resampling and PCM16 encoding of captured audio.

Captured blocks arrive as float32 samples at the device's native rate. They are
box-filtered down (or interpolated up, for slower devices) to the 16 kHz input rate, clamped into signed 16-bit PCM and
wrapped in an immutable AudioFrame. Everything here is a pure transform so it can
run inside the audio callback without touching the network.
"""

import base64
import re
from dataclasses import dataclass
from typing import Dict

import numpy as np

from voice_intake.config.constants import (
    AUDIO_CHANNELS,
    INPUT_SAMPLE_RATE,
    PCM16_MAX,
)
from voice_intake.errors import DecodeFault

RATE_PATTERN = re.compile(r"rate=(\d+)")


@dataclass(frozen=True)
class AudioFrame:
    """A block of little-endian PCM16 mono samples."""

    samples: bytes
    sample_rate: int
    channels: int = AUDIO_CHANNELS

    def __post_init__(self):
        if self.channels != AUDIO_CHANNELS:
            raise ValueError("Only mono audio frames are supported")
        if len(self.samples) % 2:
            raise ValueError("PCM16 frame must contain an even number of bytes")

    @property
    def sample_count(self) -> int:
        return len(self.samples) // 2

    @property
    def duration(self) -> float:
        """Frame length in seconds."""
        return self.sample_count / self.sample_rate

    @property
    def mime_type(self) -> str:
        return f"audio/pcm;rate={self.sample_rate}"


def downsample(samples: np.ndarray, input_rate: int,
               target_rate: int = INPUT_SAMPLE_RATE) -> np.ndarray:
    """
    Resize a block of float samples to the target rate with a box filter.

    Each output sample is the mean of the input samples that fall into its
    window. Matching rates pass the block through unchanged.

    Args:
        samples: float32 samples at `input_rate`
        input_rate: Native capture rate in Hz
        target_rate: Desired output rate in Hz

    Returns:
        np.ndarray: float32 samples at `target_rate`
    """
    samples = np.asarray(samples, dtype=np.float32)
    if input_rate == target_rate:
        return samples
    if samples.size == 0:
        return np.zeros(0, dtype=np.float32)

    ratio = input_rate / target_rate
    new_length = int(round(samples.size / ratio))
    output = np.zeros(new_length, dtype=np.float32)

    # Window k covers [round(k * ratio), round((k + 1) * ratio))
    edges = np.round(np.arange(new_length + 1) * ratio).astype(np.int64)
    edges = np.clip(edges, 0, samples.size)
    sums = np.concatenate(([0.0], np.cumsum(samples, dtype=np.float64)))
    counts = edges[1:] - edges[:-1]
    totals = sums[edges[1:]] - sums[edges[:-1]]
    filled = counts > 0
    output[filled] = (totals[filled] / counts[filled]).astype(np.float32)
    return output


def upsample(samples: np.ndarray, input_rate: int, target_rate: int) -> np.ndarray:
    """Linearly interpolate float samples up to a higher rate."""
    samples = np.asarray(samples, dtype=np.float32)
    if input_rate == target_rate or samples.size == 0:
        return samples
    new_length = int(round(samples.size * target_rate / input_rate))
    positions = np.arange(new_length) * (input_rate / target_rate)
    return np.interp(positions, np.arange(samples.size), samples).astype(np.float32)


def float_to_pcm16(samples: np.ndarray) -> bytes:
    """Clamp float samples to [-1, 1] and round them to PCM16 bytes."""
    clamped = np.clip(np.asarray(samples, dtype=np.float32), -1.0, 1.0)
    return np.round(clamped * PCM16_MAX).astype("<i2").tobytes()


def decode_pcm16(data: bytes) -> np.ndarray:
    """Convert PCM16 bytes to float32 samples, the inverse of `float_to_pcm16`."""
    if len(data) % 2:
        raise DecodeFault(f"PCM16 payload has odd length {len(data)}")
    return np.frombuffer(data, dtype="<i2").astype(np.float32) / PCM16_MAX


def encode_block(samples: np.ndarray, input_rate: int,
                 target_rate: int = INPUT_SAMPLE_RATE) -> AudioFrame:
    """Resample one capture block and package it as a PCM16 frame."""
    if input_rate < target_rate:
        resampled = upsample(samples, input_rate, target_rate)
    else:
        resampled = downsample(samples, input_rate, target_rate)
    return AudioFrame(samples=float_to_pcm16(resampled), sample_rate=target_rate)


def frame_to_blob(frame: AudioFrame) -> Dict[str, str]:
    """Base64 envelope used on the relay connection."""
    return {
        "data": base64.b64encode(frame.samples).decode("utf-8"),
        "mimeType": frame.mime_type,
    }


def blob_to_frame(data: str, mime_type: str, default_rate: int) -> AudioFrame:
    """
    Decode a base64 PCM16 payload into a frame.

    Raises:
        DecodeFault: The payload is not valid base64 PCM16
    """
    if not data:
        raise DecodeFault("Empty audio payload")
    try:
        raw = base64.b64decode(data, validate=True)
    except ValueError as e:
        raise DecodeFault(f"Invalid base64 audio payload: {e}") from e
    if len(raw) % 2:
        raise DecodeFault(f"PCM16 payload has odd length {len(raw)}")
    return AudioFrame(samples=raw, sample_rate=parse_mime_rate(mime_type, default_rate))


def parse_mime_rate(mime_type: str, default: int) -> int:
    """Read the `rate=` parameter of an audio mime type."""
    match = RATE_PATTERN.search(mime_type or "")
    return int(match.group(1)) if match else default
