"""
Gapless playback scheduling of the agent's synthesized speech.

Incoming 24 kHz PCM16 chunks are decoded and placed back to back on a
sample-accurate output clock: buffer N+1 starts exactly where buffer N ends, but
never before the clock's current position. The output device callback pulls mixed
samples through `render()`, which also advances the clock and retires finished
buffers. On barge-in, `interrupt()` drops every pending buffer and rewinds the
scheduling cursor to "now" so new speech starts without stale lag.
"""

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np

from voice_intake.audio.resampler import blob_to_frame, decode_pcm16, float_to_pcm16
from voice_intake.config.constants import LOGGER_NAME, OUTPUT_SAMPLE_RATE
from voice_intake.errors import DecodeFault

logger = logging.getLogger(LOGGER_NAME)


class OutputClock:
    """Output-device clock measured in rendered sample frames."""

    def __init__(self, sample_rate: int = OUTPUT_SAMPLE_RATE):
        self.sample_rate = sample_rate
        self._position = 0

    @property
    def position(self) -> int:
        return self._position

    def now(self) -> float:
        """Current output time in seconds."""
        return self._position / self.sample_rate

    def advance(self, frames: int) -> None:
        self._position += frames


@dataclass
class ScheduledBuffer:
    """One decoded chunk placed on the output timeline."""

    buffer_id: int
    start: int
    samples: np.ndarray = field(repr=False)
    stopped: bool = False

    @property
    def end(self) -> int:
        return self.start + self.samples.size


class PlaybackScheduler:
    """
    Schedules decoded speech chunks for gapless, ordered playback.

    All public methods are safe to call from both the event loop and the audio
    device callback thread.
    """

    def __init__(self, clock: Optional[OutputClock] = None,
                 sample_rate: int = OUTPUT_SAMPLE_RATE,
                 on_ended: Optional[Callable[[ScheduledBuffer], None]] = None):
        self.sample_rate = sample_rate
        self.clock = clock or OutputClock(sample_rate)
        self._next_start = self.clock.position
        self._active: List[ScheduledBuffer] = []
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._on_ended = on_ended

    @property
    def active(self) -> Tuple[ScheduledBuffer, ...]:
        with self._lock:
            return tuple(self._active)

    @property
    def next_start_time(self) -> float:
        """Start time in seconds the next scheduled buffer would receive."""
        with self._lock:
            return max(self._next_start, self.clock.position) / self.sample_rate

    def schedule(self, samples: np.ndarray) -> ScheduledBuffer:
        """Place decoded float samples right after the previously scheduled buffer."""
        samples = np.asarray(samples, dtype=np.float32)
        with self._lock:
            start = max(self._next_start, self.clock.position)
            buffer = ScheduledBuffer(next(self._ids), start, samples)
            self._next_start = buffer.end
            self._active.append(buffer)
        return buffer

    def schedule_chunk(self, data: str, mime_type: str = "") -> Optional[ScheduledBuffer]:
        """
        Decode a base64 PCM16 chunk and schedule it.

        Returns:
            The scheduled buffer, or None when the chunk was corrupt and dropped
        """
        try:
            frame = blob_to_frame(data, mime_type, self.sample_rate)
            samples = decode_pcm16(frame.samples)
        except DecodeFault as e:
            logger.warning(f"Dropping undecodable audio chunk: {e}")
            return None
        if frame.sample_rate != self.sample_rate:
            logger.warning(
                f"Dropping audio chunk at {frame.sample_rate} Hz, expected {self.sample_rate} Hz"
            )
            return None
        return self.schedule(samples)

    def interrupt(self) -> int:
        """
        Stop all scheduled playback immediately.

        Returns:
            int: Number of buffers that were stopped
        """
        with self._lock:
            stopped = self._active
            for buffer in stopped:
                buffer.stopped = True
            self._active = []
            self._next_start = self.clock.position
        logger.debug(f"Playback interrupted, stopped {len(stopped)} buffers")
        return len(stopped)

    def render(self, frame_count: int) -> np.ndarray:
        """
        Mix the active buffers for the next `frame_count` output frames.

        Advances the output clock and removes buffers that finished playing.
        """
        output = np.zeros(frame_count, dtype=np.float32)
        finished: List[ScheduledBuffer] = []
        with self._lock:
            window_start = self.clock.position
            window_end = window_start + frame_count
            for buffer in self._active:
                lo = max(buffer.start, window_start)
                hi = min(buffer.end, window_end)
                if lo < hi:
                    output[lo - window_start:hi - window_start] += (
                        buffer.samples[lo - buffer.start:hi - buffer.start]
                    )
            self.clock.advance(frame_count)
            remaining = []
            for buffer in self._active:
                if buffer.end <= window_end:
                    finished.append(buffer)
                else:
                    remaining.append(buffer)
            self._active = remaining
        if self._on_ended:
            for buffer in finished:
                self._on_ended(buffer)
        return output

    def render_pcm16(self, frame_count: int) -> bytes:
        """Render the next window as PCM16 bytes for the output device."""
        return float_to_pcm16(self.render(frame_count))
