"""
Client-side audio helpers.

- resampler: box-filter downsampling of captured blocks and PCM16 encoding
- playback: gapless playback scheduling with barge-in support
"""

from voice_intake.audio.playback import OutputClock, PlaybackScheduler, ScheduledBuffer
from voice_intake.audio.resampler import (
    AudioFrame,
    blob_to_frame,
    decode_pcm16,
    downsample,
    encode_block,
    float_to_pcm16,
    frame_to_blob,
)

__all__ = [
    "AudioFrame",
    "OutputClock",
    "PlaybackScheduler",
    "ScheduledBuffer",
    "blob_to_frame",
    "decode_pcm16",
    "downsample",
    "encode_block",
    "float_to_pcm16",
    "frame_to_blob",
]
