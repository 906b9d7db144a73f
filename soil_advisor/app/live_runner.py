"""
Runs the live session on a dedicated asyncio loop thread so synchronous UI
handlers can start and stop it.
"""

import asyncio
import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable

from ..core.live_session import LiveSession, SessionState
from ..core.models import TranscriptionEntry

logger = logging.getLogger(__name__)


class LiveRunner:
    """Owns the event loop thread and the session that lives on it."""

    def __init__(self, session_factory: Callable[[], LiveSession]):
        self._session_factory = session_factory
        self._session: LiveSession | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                self._loop = asyncio.new_event_loop()
                self._thread = threading.Thread(
                    target=self._loop.run_forever, name="live-session", daemon=True
                )
                self._thread.start()
            return self._loop

    @property
    def session(self) -> LiveSession:
        if self._session is None:
            self._session = self._session_factory()
        return self._session

    def start(self) -> Future:
        """Schedule session start; returns immediately."""
        loop = self._ensure_loop()
        return asyncio.run_coroutine_threadsafe(self.session.start(), loop)

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the session and wait up to `timeout` seconds for cleanup.
        A cleanup that overruns keeps going on the loop thread.
        """
        if self._session is None or self._loop is None:
            return
        future = asyncio.run_coroutine_threadsafe(self._session.stop(), self._loop)
        try:
            future.result(timeout=timeout)
        except FutureTimeoutError:
            logger.warning("Live session still closing after %.1fs", timeout)

    def state(self) -> SessionState:
        if self._session is None:
            return SessionState.IDLE
        return self._session.state

    def entries(self) -> list[TranscriptionEntry]:
        if self._session is None:
            return []
        return self._session.transcript.entries()

    def shutdown(self) -> None:
        """Stop the session and the loop thread."""
        try:
            self.stop()
        except Exception:
            logger.exception("Error stopping live session during shutdown")
        with self._lock:
            loop, self._loop = self._loop, None
            thread, self._thread = self._thread, None
        if loop is not None:
            loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout=1.0)
        if loop is not None:
            loop.close()
