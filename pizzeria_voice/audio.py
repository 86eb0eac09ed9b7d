# pizzeria_voice/audio.py
import base64
import binascii
import time
from typing import Callable


def b64_decoded_len(data_b64: str) -> int:
    """Byte length of a base64 payload; 0 if it is not valid base64."""
    try:
        return len(base64.b64decode(data_b64, validate=True))
    except (binascii.Error, ValueError):
        return 0


class AudioCommitBuffer:
    """
    Decides when an appended input_audio_buffer should be committed.

    Every chunk is appended upstream as soon as it arrives; the commit is held
    back until at least `min_bytes` of audio accumulated AND `min_interval_ms`
    passed since the previous commit. `every_append=True` commits after each
    chunk instead.
    """

    def __init__(self, min_bytes: int = 4096, min_interval_ms: int = 500,
                 every_append: bool = False, clock: Callable[[], float] = time.monotonic) -> None:
        self.min_bytes = min_bytes
        self.min_interval_ms = min_interval_ms
        self.every_append = every_append
        self._clock = clock
        self._pending_bytes = 0
        self._last_commit = clock()

    @property
    def pending_bytes(self) -> int:
        return self._pending_bytes

    def add(self, nbytes: int) -> bool:
        """Record an appended chunk; True means commit now."""
        self._pending_bytes += max(nbytes, 0)
        if self.every_append:
            return True
        elapsed_ms = (self._clock() - self._last_commit) * 1000.0
        return self._pending_bytes >= self.min_bytes and elapsed_ms >= self.min_interval_ms

    def committed(self) -> None:
        self._pending_bytes = 0
        self._last_commit = self._clock()

    def reset(self) -> None:
        self.committed()
