"""
Gapless playback scheduling for inbound model audio.

Chunks arrive asynchronously and of varying length. Each one is placed on the
output timeline right after the previously scheduled chunk, tracked with a
running "next start time" cursor. The output device pulls mixed blocks with
`render()`, which also advances the output clock.
"""

import logging
import threading
from dataclasses import dataclass

import numpy as np

from . import config
from .audio import duration_seconds

logger = logging.getLogger(__name__)


@dataclass
class ScheduledChunk:
    """A decoded chunk placed on the output timeline."""

    samples: np.ndarray
    start_time: float
    sample_rate: int
    stopped: bool = False

    @property
    def duration(self) -> float:
        return duration_seconds(len(self.samples), self.sample_rate)

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    @property
    def start_frame(self) -> int:
        return int(round(self.start_time * self.sample_rate))


class PlaybackScheduler:
    """
    Owns the playback cursor and the set of pending chunks.

    `schedule()` and `interrupt()` are called from the session's event loop;
    `render()` is called from the audio device thread, so all state is
    guarded by a lock.
    """

    def __init__(self, sample_rate: int = config.OUTPUT_SAMPLE_RATE):
        self.sample_rate = sample_rate
        self._lock = threading.Lock()
        self._pending: list[ScheduledChunk] = []
        self._next_start_time = 0.0
        self._frames_rendered = 0

    @property
    def current_time(self) -> float:
        """Output clock: seconds of audio rendered so far."""
        with self._lock:
            return self._frames_rendered / float(self.sample_rate)

    @property
    def next_start_time(self) -> float:
        with self._lock:
            return self._next_start_time

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def pending(self) -> list[ScheduledChunk]:
        """Snapshot of scheduled or playing chunks, in arrival order."""
        with self._lock:
            return list(self._pending)

    def schedule(self, samples: np.ndarray) -> ScheduledChunk:
        """
        Place a chunk right after the previous one, or at the current output
        time if the cursor has fallen behind it.
        """
        samples = np.asarray(samples, dtype=np.float32).reshape(-1)
        with self._lock:
            now = self._frames_rendered / float(self.sample_rate)
            start = max(self._next_start_time, now)
            chunk = ScheduledChunk(
                samples=samples, start_time=start, sample_rate=self.sample_rate
            )
            self._next_start_time = start + chunk.duration
            self._pending.append(chunk)
        return chunk

    def interrupt(self) -> int:
        """
        Hard-stop every scheduled chunk and reset the cursor to zero.

        Returns:
            Number of chunks that were stopped
        """
        with self._lock:
            stopped = len(self._pending)
            for chunk in self._pending:
                chunk.stopped = True
            self._pending.clear()
            # TODO: reset to the output clock instead of zero once resumption
            # misalignment is measured on real devices.
            self._next_start_time = 0.0
        if stopped:
            logger.debug("Interrupted playback, stopped %d chunk(s)", stopped)
        return stopped

    def render(self, frame_count: int) -> np.ndarray:
        """
        Mix the next `frame_count` output frames and advance the clock.
        Chunks that finish within this block are retired.
        """
        block = np.zeros(frame_count, dtype=np.float32)
        with self._lock:
            block_start = self._frames_rendered
            block_end = block_start + frame_count
            finished: list[ScheduledChunk] = []

            for chunk in self._pending:
                chunk_start = chunk.start_frame
                chunk_end = chunk_start + len(chunk.samples)
                lo = max(chunk_start, block_start)
                hi = min(chunk_end, block_end)
                if hi > lo:
                    block[lo - block_start : hi - block_start] += chunk.samples[
                        lo - chunk_start : hi - chunk_start
                    ]
                if chunk_end <= block_end:
                    finished.append(chunk)

            for chunk in finished:
                self._pending.remove(chunk)
            self._frames_rendered = block_end

        np.clip(block, -1.0, 1.0, out=block)
        return block

    def reset(self) -> None:
        """Drop everything and restart the output clock (new session)."""
        with self._lock:
            for chunk in self._pending:
                chunk.stopped = True
            self._pending.clear()
            self._next_start_time = 0.0
            self._frames_rendered = 0
