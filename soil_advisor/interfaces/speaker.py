"""
Speaker output interface using PyAudio.
"""

import logging

import pyaudio

from ..core import config
from ..core.errors import DeviceUnavailable
from ..core.playback import PlaybackScheduler

logger = logging.getLogger(__name__)


class SpeakerOutput:
    """
    Plays model audio through the default output device.

    The PortAudio callback pulls each block from a PlaybackScheduler, so the
    scheduler's clock advances exactly with what the device has consumed.
    """

    def __init__(
        self,
        sample_rate: int = config.OUTPUT_SAMPLE_RATE,
        frames_per_buffer: int = config.PLAYBACK_FRAMES_PER_BUFFER,
    ):
        self.sample_rate = sample_rate
        self.frames_per_buffer = frames_per_buffer

        self._scheduler: PlaybackScheduler | None = None
        self._pa: pyaudio.PyAudio | None = None
        self._stream: pyaudio.Stream | None = None

    def _callback(
        self,
        in_data: bytes | None,
        frame_count: int,
        time_info: dict[str, float],
        status_flags: int,
    ) -> tuple[bytes, int]:
        """PyAudio callback."""
        scheduler = self._scheduler
        if scheduler is None:
            return (b"\x00" * frame_count * 4, pyaudio.paContinue)
        block = scheduler.render(frame_count)
        return (block.tobytes(), pyaudio.paContinue)

    def start(self, scheduler: PlaybackScheduler) -> None:
        """
        Open the output stream.

        Raises:
            DeviceUnavailable: no output device, or it refused to open
        """
        self._scheduler = scheduler
        if self._stream is not None:
            return  # Already running

        self._pa = pyaudio.PyAudio()
        try:
            self._stream = self._pa.open(
                format=pyaudio.paFloat32,
                channels=config.CHANNELS,
                rate=self.sample_rate,
                output=True,
                frames_per_buffer=self.frames_per_buffer,
                stream_callback=self._callback,
            )
            self._stream.start_stream()
        except (IOError, OSError) as e:
            self.stop()
            raise DeviceUnavailable(f"Audio output unavailable: {e}") from e
        logger.info("Speaker output started at %d Hz", self.sample_rate)

    def stop(self) -> None:
        """Close the output stream. Safe to call when never started."""
        if self._stream is not None:
            try:
                self._stream.stop_stream()
            finally:
                self._stream.close()
                self._stream = None

        if self._pa is not None:
            self._pa.terminate()
            self._pa = None

        self._scheduler = None

    def is_active(self) -> bool:
        return self._stream is not None and self._stream.is_active()
