"""Bounded worker pool draining a precomputed list of work units."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from apex_batch.application.pause import PauseController
from apex_batch.domain.exceptions import ExecutionError
from apex_batch.domain.models import ExecutionResult, UnitOutcome, WorkUnit
from apex_batch.domain.protocols import IExecutor
from apex_batch.infrastructure.storage.results import ResultRecorder
from apex_batch.shared.logging import get_logger
from apex_batch.shared.metrics import MetricsCollector
from apex_batch.shared.types import ProgressCallback

logger = get_logger(__name__)

DEFAULT_CONCURRENCY = 5


def effective_concurrency(limit: Optional[int]) -> int:
    """Non-positive or missing limits fall back to the default pool size."""
    if limit is None or limit <= 0:
        return DEFAULT_CONCURRENCY
    return limit


@dataclass
class PoolOutcome:
    """What a pool run did."""

    successful: int
    failed: int
    claimed: int
    stopped_by_pause: bool


class CompletionWatermark:
    """
    Tracks the longest prefix of the pending list whose units all finished.

    Completion order across workers is arbitrary; on_advance is called with
    the last unit of the prefix each time the prefix grows. Calls are
    serialized, so checkpoint writes never race each other.
    """

    def __init__(self, units: Sequence[WorkUnit], on_advance: Callable[[WorkUnit], None]):
        self._units = units
        self._done = [False] * len(units)
        self._next = 0
        self._on_advance = on_advance
        self._lock = threading.Lock()

    @property
    def last_completed(self) -> Optional[WorkUnit]:
        with self._lock:
            return self._units[self._next - 1] if self._next else None

    def mark_done(self, index: int) -> None:
        with self._lock:
            self._done[index] = True
            start = self._next
            while self._next < len(self._done) and self._done[self._next]:
                self._next += 1
            if self._next > start:
                self._on_advance(self._units[self._next - 1])


class _PoolRun:
    """Shared state of one pool run: the claim cursor and the counters."""

    def __init__(self, pending: Sequence[WorkUnit], should_stop: Callable[[], bool]):
        self.pending = pending
        self.total = len(pending)
        self._should_stop = should_stop
        self._cursor = 0
        self._aborted = False
        self._lock = threading.Lock()
        self.successful = 0
        self.failed = 0

    def claim(self) -> Optional[int]:
        """Hand out the next index, or None once drained, paused or aborted."""
        with self._lock:
            if self._aborted or self._cursor >= self.total:
                return None
            if self._should_stop():
                return None
            index = self._cursor
            self._cursor += 1
            return index

    def abort(self) -> None:
        with self._lock:
            self._aborted = True

    def count(self, success: bool):
        with self._lock:
            if success:
                self.successful += 1
            else:
                self.failed += 1
            return self.successful, self.failed

    @property
    def claimed(self) -> int:
        with self._lock:
            return self._cursor


class WorkerPool:
    """
    Runs pending units on a fixed number of worker threads.

    Every worker repeatedly claims the next index of the shared pending
    list until the list is drained or a pause is requested, so each unit is
    claimed by exactly one worker. A failing unit is recorded and counted;
    it never stops the pool.
    """

    def __init__(
        self,
        executor: IExecutor,
        recorder: ResultRecorder,
        pause: PauseController,
        concurrency_limit: Optional[int] = DEFAULT_CONCURRENCY,
        on_progress: Optional[ProgressCallback] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self._executor = executor
        self._recorder = recorder
        self._pause = pause
        self.concurrency_limit = effective_concurrency(concurrency_limit)
        self._on_progress = on_progress
        self._metrics = metrics or MetricsCollector()

    def run(
        self,
        pending: List[WorkUnit],
        target_org: str,
        on_unit_done: Optional[Callable[[int], None]] = None,
        stop_check: Optional[Callable[[], bool]] = None
    ) -> PoolOutcome:
        """
        Execute the pending units.

        Args:
            pending: Units to execute, in claim order
            target_org: Org every unit runs against
            on_unit_done: Called with the pending index after a unit's
                result has been recorded
            stop_check: Extra stop condition polled with the pause
                controller before every claim

        Returns:
            PoolOutcome; stopped_by_pause is True when units were left
            unclaimed because of a pause
        """
        def should_stop() -> bool:
            return self._pause.should_stop() or (stop_check is not None and stop_check())

        run = _PoolRun(pending, should_stop)
        if not pending:
            return PoolOutcome(successful=0, failed=0, claimed=0, stopped_by_pause=False)

        workers = min(self.concurrency_limit, len(pending))
        logger.info(f"Starting {workers} worker(s) for {len(pending)} script(s)")

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="apex-worker") as pool:
            futures = [
                pool.submit(self._worker, run, target_org, on_unit_done)
                for _ in range(workers)
            ]

        errors = [f.exception() for f in futures if f.exception() is not None]
        if errors:
            raise errors[0]

        claimed = run.claimed
        return PoolOutcome(
            successful=run.successful,
            failed=run.failed,
            claimed=claimed,
            stopped_by_pause=claimed < run.total,
        )

    def _worker(self, run: _PoolRun, target_org: str, on_unit_done) -> None:
        try:
            while True:
                index = run.claim()
                if index is None:
                    return
                self._process(run, index, target_org)
                if on_unit_done is not None:
                    on_unit_done(index)
        except BaseException:
            run.abort()
            raise

    def _process(self, run: _PoolRun, index: int, target_org: str) -> None:
        unit = run.pending[index]
        logger.debug(f"Claimed {index + 1}/{run.total}: {unit.file_name}")
        self._notify(f"Processing script {index + 1}/{run.total}: {unit.file_name}")

        started = time.monotonic()
        try:
            output = self._executor.execute(unit, target_org)
            result = ExecutionResult(
                unit=unit,
                outcome=UnitOutcome.SUCCESS,
                stdout=output.stdout,
                stderr=output.stderr,
            )
        except ExecutionError as e:
            logger.warning(f"Script {unit.file_name} failed: {e.message}")
            result = ExecutionResult(
                unit=unit,
                outcome=UnitOutcome.FAILURE,
                stdout=e.stdout,
                stderr=e.stderr,
                error=e.message,
            )
        except Exception as e:
            logger.exception(f"Unexpected error while executing {unit.file_name}")
            result = ExecutionResult(
                unit=unit,
                outcome=UnitOutcome.FAILURE,
                error=f"{type(e).__name__}: {e}",
            )
        self._metrics.record_metric("unit_duration", time.monotonic() - started)

        self._recorder.record(result)
        successful, failed = run.count(result.success)
        self._metrics.increment_counter(result.outcome.value)

        self._notify(f"Progress: {successful} successful, {failed} failed")

    def _notify(self, message: str) -> None:
        if self._on_progress is None:
            return
        try:
            self._on_progress(message)
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")
