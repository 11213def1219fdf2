"""Cooperative pause control shared between a caller and the worker pool."""

import threading
from enum import Enum

from apex_batch.shared.logging import get_logger

logger = get_logger(__name__)


class PauseState(str, Enum):
    RUNNING = "running"
    PAUSE_REQUESTED = "pause_requested"
    PAUSED = "paused"


class PauseController:
    """
    Thread-safe pause state machine.

    RUNNING -> PAUSE_REQUESTED on request_pause(), from any thread.
    PAUSE_REQUESTED -> PAUSED once the pool has stopped claiming work.
    Any state -> RUNNING on resume(), which must precede the next run.

    Workers poll should_stop() between scripts, never while one is running.
    The lock is reentrant: a SIGINT handler calling request_pause() may run
    on the main thread while that thread is inside one of these methods.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._state = PauseState.RUNNING

    @property
    def state(self) -> PauseState:
        with self._lock:
            return self._state

    def request_pause(self) -> None:
        with self._lock:
            if self._state is PauseState.RUNNING:
                self._state = PauseState.PAUSE_REQUESTED
                logger.info("Pause requested")

    def mark_paused(self) -> None:
        with self._lock:
            if self._state is PauseState.PAUSE_REQUESTED:
                self._state = PauseState.PAUSED

    def resume(self) -> None:
        with self._lock:
            if self._state is not PauseState.RUNNING:
                logger.info("Resuming")
            self._state = PauseState.RUNNING

    def should_stop(self) -> bool:
        with self._lock:
            return self._state is not PauseState.RUNNING
