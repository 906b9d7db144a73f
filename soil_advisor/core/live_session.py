"""
Live voice session with the remote assistant.

State machine: IDLE -> CONNECTING -> OPEN -> CLOSING -> IDLE.
Any failure after CONNECTING begins goes through the same cleanup as stop().

The session owns all mutable conversation state: the two transcript
accumulators, the playback scheduler and the outbound frame queue. Captured
audio crosses from the device thread to the event loop only through
`loop.call_soon_threadsafe`, and a sender task drains the queue to the
connection, so the capture callback never waits on the network.
"""

import asyncio
import binascii
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Callable, Protocol

import numpy as np

from . import config
from .audio import AudioBlob, create_blob, decode_audio_chunk
from .errors import SoilAdvisorError
from .models import Speaker
from .playback import PlaybackScheduler
from .transcript import Transcript

logger = logging.getLogger(__name__)

CONNECTING_MESSAGE = "Connecting to the live assistant..."
CONNECTED_MESSAGE = "Connected! Start speaking."
ENDED_MESSAGE = "Conversation ended."
CLOSED_MESSAGE = "Connection closed."


class SessionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


@dataclass(frozen=True)
class ServerEvent:
    """Vendor-neutral view of one message from the live endpoint."""

    input_text: str = ""
    output_text: str = ""
    audio: str | None = None  # base64 int16 PCM, 24 kHz mono
    turn_complete: bool = False
    interrupted: bool = False


class LiveConnection(Protocol):
    async def send_audio(self, blob: AudioBlob) -> None: ...

    def receive(self) -> AsyncIterator[ServerEvent]: ...

    async def close(self) -> None: ...


class LiveTransport(Protocol):
    async def connect(self) -> LiveConnection: ...


class AudioInput(Protocol):
    """Capture device; `on_audio` receives float32 blocks on a device thread."""

    def start(self, on_audio: Callable[[np.ndarray], None]) -> None: ...

    def stop(self) -> None: ...


class AudioOutput(Protocol):
    """Playback device pulling mixed blocks from a scheduler."""

    def start(self, scheduler: PlaybackScheduler) -> None: ...

    def stop(self) -> None: ...


class LiveSession:
    """
    One bidirectional audio conversation at a time.

    All coroutines must run on a single event loop; only the capture
    callback is invoked from another thread.
    """

    def __init__(
        self,
        transport: LiveTransport,
        microphone: AudioInput,
        speaker: AudioOutput,
        scheduler: PlaybackScheduler | None = None,
        transcript: Transcript | None = None,
        send_queue_max: int = config.SEND_QUEUE_MAX,
    ):
        self._transport = transport
        self._microphone = microphone
        self._speaker = speaker
        self.scheduler = scheduler or PlaybackScheduler()
        self.transcript = transcript or Transcript()
        self.send_queue_max = send_queue_max

        self._state = SessionState.IDLE
        self.interrupted = False
        self.dropped_frames = 0

        self._input_text = ""
        self._output_text = ""

        self._loop: asyncio.AbstractEventLoop | None = None
        self._connection: LiveConnection | None = None
        self._send_queue: asyncio.Queue[AudioBlob] | None = None
        self._tasks: list[asyncio.Task] = []
        self._attempt = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state in (SessionState.CONNECTING, SessionState.OPEN)

    def _set_state(self, state: SessionState) -> None:
        if state is not self._state:
            logger.info("Live session %s -> %s", self._state.value, state.value)
            self._state = state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Acquire the audio devices and open the remote session.

        A no-op while a session is connecting, open or closing. Failures are
        reported as system transcript entries, never raised.
        """
        if self._state is not SessionState.IDLE:
            logger.debug("start() ignored in state %s", self._state.value)
            return

        self._set_state(SessionState.CONNECTING)
        self.transcript.clear()
        self.transcript.system(CONNECTING_MESSAGE)
        self._input_text = ""
        self._output_text = ""
        self.interrupted = False
        self.dropped_frames = 0
        self.scheduler.reset()
        self._loop = asyncio.get_running_loop()
        self._send_queue = asyncio.Queue(maxsize=self.send_queue_max)

        self._attempt += 1
        attempt = self._attempt

        try:
            self._microphone.start(self._on_capture)
            self._speaker.start(self.scheduler)
            connection = await self._transport.connect()
        except Exception as e:
            if isinstance(e, SoilAdvisorError):
                logger.warning("Failed to start live session: %s", e)
            else:
                logger.exception("Unexpected error starting live session")
            if attempt == self._attempt and self._state is SessionState.CONNECTING:
                self.transcript.system(f"Failed to start: {e}")
                await self._cleanup()
            return

        if attempt != self._attempt or self._state is not SessionState.CONNECTING:
            # stop() ran while the handshake was pending
            await self._close_connection(connection)
            return

        self._connection = connection
        self._set_state(SessionState.OPEN)
        self.transcript.system(CONNECTED_MESSAGE)
        self._tasks = [
            asyncio.create_task(self._send_loop(), name="live-send"),
            asyncio.create_task(self._receive_loop(), name="live-receive"),
        ]

    async def stop(self) -> None:
        """
        End the conversation and release every resource.
        Idempotent: calling it while idle does nothing.
        """
        if self._state in (SessionState.IDLE, SessionState.CLOSING):
            return
        await self._cleanup(ENDED_MESSAGE)

    async def handle_error(self, exc: BaseException) -> None:
        """Transport failure: report it, then clean up like stop()."""
        if not self.is_active:
            return
        logger.error("Live session error: %s", exc, exc_info=exc)
        self.transcript.system(f"Error: {exc}. Please try again.")
        await self._cleanup(ENDED_MESSAGE)

    async def _cleanup(self, message: str | None = None) -> None:
        self._set_state(SessionState.CLOSING)
        if message:
            self.transcript.system(message)

        current = asyncio.current_task()
        tasks = [t for t in self._tasks if t is not current]
        for task in tasks:
            task.cancel()
        self._tasks = []

        try:
            self._microphone.stop()
        except Exception:
            logger.exception("Error releasing microphone")
        try:
            self._speaker.stop()
        except Exception:
            logger.exception("Error closing speaker")
        self.scheduler.reset()

        connection, self._connection = self._connection, None
        if connection is not None:
            await self._close_connection(connection)

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._send_queue = None
        self._input_text = ""
        self._output_text = ""
        self.interrupted = False
        self._set_state(SessionState.IDLE)

    async def _close_connection(self, connection: LiveConnection) -> None:
        try:
            await connection.close()
        except Exception:
            logger.exception("Error closing live session")

    # ------------------------------------------------------------------
    # Outbound audio
    # ------------------------------------------------------------------

    def _on_capture(self, samples: np.ndarray) -> None:
        """Device-thread callback: encode and hand off, never block."""
        loop = self._loop
        if loop is None or self._state is not SessionState.OPEN:
            return
        blob = create_blob(samples)
        try:
            loop.call_soon_threadsafe(self._enqueue_frame, blob)
        except RuntimeError:
            pass  # loop already closed

    def _enqueue_frame(self, blob: AudioBlob) -> None:
        if self._state is not SessionState.OPEN or self._send_queue is None:
            return
        try:
            self._send_queue.put_nowait(blob)
        except asyncio.QueueFull:
            self.dropped_frames += 1
            logger.debug("Send queue full, dropped frame (%d total)", self.dropped_frames)

    async def _send_loop(self) -> None:
        queue = self._send_queue
        connection = self._connection
        if queue is None or connection is None:
            return
        try:
            while True:
                blob = await queue.get()
                await connection.send_audio(blob)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self.handle_error(e)

    # ------------------------------------------------------------------
    # Inbound messages
    # ------------------------------------------------------------------

    async def _receive_loop(self) -> None:
        connection = self._connection
        if connection is None:
            return
        try:
            async for event in connection.receive():
                self.handle_event(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self.handle_error(e)
            return

        if self._state is SessionState.OPEN:
            logger.info("Live endpoint closed the session")
            self.transcript.system(CLOSED_MESSAGE)
            await self._cleanup()

    def handle_event(self, event: ServerEvent) -> None:
        """Apply one server message to the transcript and playback state."""
        if event.output_text:
            self._output_text += event.output_text
        if event.input_text:
            self._input_text += event.input_text

        if event.turn_complete:
            self._flush_turn()

        if event.audio:
            self._play(event.audio)

        if event.interrupted:
            self._interrupt()

    def _flush_turn(self) -> None:
        if self._input_text.strip():
            self.transcript.append(Speaker.USER, self._input_text)
        if self._output_text.strip():
            self.transcript.append(Speaker.MODEL, self._output_text)
        self._input_text = ""
        self._output_text = ""

    def _play(self, audio_b64: str) -> None:
        try:
            samples = decode_audio_chunk(audio_b64)
        except (binascii.Error, ValueError):
            logger.warning("Skipping undecodable audio chunk")
            return
        if samples.size == 0:
            return
        self.interrupted = False
        self.scheduler.schedule(samples)

    def _interrupt(self) -> None:
        stopped = self.scheduler.interrupt()
        self.interrupted = True
        # partial text of the cut-off turn is dropped, not flushed
        self._input_text = ""
        self._output_text = ""
        logger.info("Model turn interrupted, stopped %d chunk(s)", stopped)

    @property
    def pending_text(self) -> tuple[str, str]:
        """Current (caller, model) accumulators."""
        return self._input_text, self._output_text
