"""
Microphone input interface using PyAudio.
"""

import logging
from typing import Callable, Protocol

import numpy as np
import pyaudio

from ..core import config
from ..core.errors import DeviceUnavailable

logger = logging.getLogger(__name__)


class AudioCallback(Protocol):
    """Protocol for captured block callbacks."""

    def __call__(self, samples: np.ndarray) -> None: ...


class MicrophoneInput:
    """
    Microphone input using PyAudio.

    Captures float32 mono audio from the default microphone in fixed-size
    blocks and hands each block to a callback on the PortAudio thread.
    """

    def __init__(
        self,
        on_audio: AudioCallback | None = None,
        sample_rate: int = config.INPUT_SAMPLE_RATE,
        channels: int = config.CHANNELS,
        frames_per_buffer: int = config.CAPTURE_FRAMES_PER_BUFFER,
    ):
        self.on_audio = on_audio
        self.sample_rate = sample_rate
        self.channels = channels
        self.frames_per_buffer = frames_per_buffer

        self._pa: pyaudio.PyAudio | None = None
        self._stream: pyaudio.Stream | None = None

    def _callback(
        self,
        in_data: bytes | None,
        frame_count: int,
        time_info: dict[str, float],
        status_flags: int,
    ) -> tuple[None, int]:
        """PyAudio callback."""
        if in_data is not None and self.on_audio:
            samples = np.frombuffer(in_data, dtype=np.float32)
            if self.channels > 1:
                samples = samples[:: self.channels]
            try:
                self.on_audio(samples)
            except Exception:
                logger.exception("Capture callback failed")  # keep the audio thread alive
        return (None, pyaudio.paContinue)

    def start(self, on_audio: Callable[[np.ndarray], None] | None = None) -> None:
        """
        Start capturing audio from the default microphone.

        Raises:
            DeviceUnavailable: no input device, or the device refused to open
        """
        if on_audio is not None:
            self.on_audio = on_audio
        if self._stream is not None:
            return  # Already running

        self._pa = pyaudio.PyAudio()
        try:
            self._pa.get_default_input_device_info()
            self._stream = self._pa.open(
                format=pyaudio.paFloat32,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.frames_per_buffer,
                stream_callback=self._callback,
            )
            self._stream.start_stream()
        except (IOError, OSError) as e:
            self.stop()
            raise DeviceUnavailable(f"Microphone unavailable: {e}") from e
        logger.info("Microphone capture started at %d Hz", self.sample_rate)

    def stop(self) -> None:
        """Stop capturing audio. Safe to call when never started."""
        if self._stream is not None:
            try:
                self._stream.stop_stream()
            finally:
                self._stream.close()
                self._stream = None

        if self._pa is not None:
            self._pa.terminate()
            self._pa = None

    def is_active(self) -> bool:
        """Check if the stream is active."""
        return self._stream is not None and self._stream.is_active()

    def __enter__(self) -> "MicrophoneInput":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()
