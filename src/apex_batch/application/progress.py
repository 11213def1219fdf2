"""Progress sinks."""

import logging
import queue
import threading
from typing import Optional

from apex_batch.shared.logging import get_logger
from apex_batch.shared.types import ProgressCallback

logger = get_logger(__name__)

_STOP = object()


class LoggingProgressSink:
    """Writes progress messages to a logger."""

    def __init__(self, target: Optional[logging.Logger] = None, level: int = logging.INFO):
        self._logger = target or get_logger("progress")
        self._level = level

    def __call__(self, message: str) -> None:
        self._logger.log(self._level, message)


class BufferedProgressSink:
    """
    Forwards messages to a target callback from a background thread.

    Workers only enqueue, so a slow consumer never holds up the pool. When
    the buffer is full the oldest message is dropped.
    """

    def __init__(self, target: ProgressCallback, maxsize: int = 1000):
        self._target = target
        self._queue: "queue.Queue" = queue.Queue(maxsize=maxsize)
        self._put_lock = threading.Lock()
        self._closed = False
        self.dropped = 0
        self._thread = threading.Thread(target=self._drain, name="progress-sink", daemon=True)
        self._thread.start()

    def __call__(self, message: str) -> None:
        with self._put_lock:
            if self._closed:
                return
            while True:
                try:
                    self._queue.put_nowait(message)
                    return
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                        self.dropped += 1
                    except queue.Empty:
                        pass

    def _drain(self) -> None:
        while True:
            message = self._queue.get()
            if message is _STOP:
                return
            try:
                self._target(message)
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """Deliver what is buffered and stop the forwarding thread."""
        with self._put_lock:
            if self._closed:
                return
            self._closed = True
            while True:
                try:
                    self._queue.put(_STOP, timeout=0.1)
                    break
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                        self.dropped += 1
                    except queue.Empty:
                        pass
        self._thread.join(timeout)
        if self.dropped:
            logger.debug(f"Dropped {self.dropped} progress message(s)")

    def __enter__(self) -> "BufferedProgressSink":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
