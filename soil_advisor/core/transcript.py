"""
Append-only conversation log for the live assistant.
"""

import threading

from .models import Speaker, TranscriptionEntry


class Transcript:
    """Thread-safe transcript; the UI reads it while the session appends."""

    def __init__(self):
        self._entries: list[TranscriptionEntry] = []
        self._lock = threading.Lock()

    def append(self, speaker: Speaker, text: str) -> TranscriptionEntry:
        entry = TranscriptionEntry(speaker=speaker, text=text)
        with self._lock:
            self._entries.append(entry)
        return entry

    def system(self, text: str) -> TranscriptionEntry:
        return self.append(Speaker.SYSTEM, text)

    def entries(self) -> list[TranscriptionEntry]:
        """Get a copy of all entries."""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
