"""Resumable batch executor."""

import threading
from pathlib import Path
from typing import List, Optional, Tuple

from apex_batch.application.pause import PauseController, PauseState
from apex_batch.application.progress import BufferedProgressSink
from apex_batch.application.resume import ResumePlan, compute_pending
from apex_batch.application.scheduler import (
    DEFAULT_CONCURRENCY,
    CompletionWatermark,
    WorkerPool,
)
from apex_batch.domain.exceptions import JobAlreadyRunningError, StorageError, ValidationError
from apex_batch.domain.models import BatchSummary, Job, JobPaths, WorkUnit
from apex_batch.domain.protocols import IExecutor
from apex_batch.infrastructure.storage.checkpoint import CheckpointStore
from apex_batch.infrastructure.storage.namespace import NamespaceResolver
from apex_batch.infrastructure.storage.results import ResultRecorder
from apex_batch.infrastructure.storage.units import DEFAULT_EXTENSION, list_units, write_units
from apex_batch.shared.logging import get_logger
from apex_batch.shared.metrics import MetricsCollector
from apex_batch.shared.types import PathLike, ProgressCallback

logger = get_logger(__name__)


class BatchExecutor:
    """
    Runs the scripts of a job with bounded concurrency, pausing and resuming
    through on-disk markers.

    A run:
      1. resolves the job namespace and clears a stale pause marker
      2. lists the scripts and drops those before the checkpoint
      3. drains the rest with a WorkerPool, moving the checkpoint forward as
         the completed prefix grows
      4. clears checkpoint and pause marker when everything ran, or writes
         the pause marker when a pause stopped it

    The pause controller is injected so several executors can coexist in one
    process; request_pause() affects every run of this executor.
    """

    def __init__(
        self,
        base_dir: PathLike,
        executor: IExecutor,
        pause: Optional[PauseController] = None,
        concurrency_limit: Optional[int] = DEFAULT_CONCURRENCY,
        unit_extension: str = DEFAULT_EXTENSION,
        progress_buffer: int = 1000,
        watch_pause_marker: bool = True
    ):
        """
        Args:
            base_dir: Storage root holding scripts, results and checkpoints
            executor: Runs a single script against an org
            pause: Pause controller (a fresh one if None)
            concurrency_limit: Default pool size; non-positive means 5
            unit_extension: File extension of generated scripts
            progress_buffer: Messages buffered for a slow progress callback
            watch_pause_marker: Also stop when another process writes the
                job's pause marker during a run
        """
        self.resolver = NamespaceResolver(base_dir)
        self.pause = pause or PauseController()
        self.concurrency_limit = concurrency_limit
        self.unit_extension = unit_extension
        self.progress_buffer = progress_buffer
        self.watch_pause_marker = watch_pause_marker
        self._executor = executor
        self._active_jobs = set()
        self._active_lock = threading.Lock()

    @property
    def base_dir(self) -> Path:
        return self.resolver.base_dir

    def resolve_paths(self, job_name: str) -> JobPaths:
        """Resolve and create the namespace of a job."""
        return self.resolver.resolve(job_name)

    def directories(self, job_name: str) -> Tuple[Path, Path]:
        """Return (unit_dir, results_dir) of a job."""
        return self.resolver.directories(job_name)

    def checkpoint_store(self, job_name: str) -> CheckpointStore:
        return CheckpointStore(self.resolve_paths(job_name))

    def request_pause(self) -> None:
        self.pause.request_pause()

    def resume(self) -> None:
        self.pause.resume()

    def generate_units(self, job: Job, on_progress: Optional[ProgressCallback] = None) -> List[Path]:
        """
        Write one script per record id of the job.

        Raises:
            ValidationError: If a record id is unusable; nothing is written
            StorageError: If the scripts cannot be written
        """
        paths = self.resolve_paths(job.name)
        try:
            return write_units(
                paths.unit_dir,
                job.record_ids,
                job.apex_template,
                extension=self.unit_extension,
                on_progress=on_progress,
            )
        except ValueError as e:
            raise ValidationError(f"Cannot generate scripts for job '{job.name}': {e}") from e
        except OSError as e:
            raise StorageError(f"Cannot write scripts to {paths.unit_dir}: {e}") from e

    def run(
        self,
        job: Job,
        on_progress: Optional[ProgressCallback] = None,
        concurrency_limit: Optional[int] = None
    ) -> BatchSummary:
        """
        Execute every pending script of the job.

        Args:
            job: Job to run; only name and target org are used
            on_progress: Optional callback receiving progress lines
            concurrency_limit: Pool size for this run (defaults to the
                executor's)

        Returns:
            BatchSummary of the scripts executed by this call

        Raises:
            StorageError: If the job namespace cannot be prepared
            JobAlreadyRunningError: If this executor is already running the job
        """
        paths = self.resolve_paths(job.name)
        self._acquire(paths.job_key)
        sink = BufferedProgressSink(on_progress, self.progress_buffer) if on_progress else None
        try:
            return self._run(job, paths, sink, concurrency_limit)
        finally:
            if sink is not None:
                sink.close()
            self._release(paths.job_key)

    def _run(self, job: Job, paths: JobPaths, sink, concurrency_limit: Optional[int]) -> BatchSummary:
        def notify(message: str) -> None:
            if sink is not None:
                sink(message)
            else:
                logger.info(message)

        metrics = MetricsCollector()
        metrics.start_timer("batch")

        store = CheckpointStore(paths)
        try:
            store.clear_pause_marker()
        except OSError as e:
            raise StorageError(f"Cannot clear pause marker {paths.pause_file}: {e}") from e

        if self.pause.state is not PauseState.RUNNING:
            logger.warning("Run started while paused; call resume() first to process scripts")

        try:
            units = list_units(paths.unit_dir, self.unit_extension)
        except OSError as e:
            raise StorageError(f"Cannot list scripts in {paths.unit_dir}: {e}") from e

        plan = compute_pending(units, store.load_checkpoint())
        self._report_plan(plan, notify)
        notify(f"Total scripts to process: {len(plan.pending)}")

        pool = WorkerPool(
            self._executor,
            ResultRecorder(paths.results_dir),
            self.pause,
            concurrency_limit=concurrency_limit if concurrency_limit is not None else self.concurrency_limit,
            on_progress=sink,
            metrics=metrics,
        )

        def advance_checkpoint(unit: WorkUnit) -> None:
            try:
                store.write_checkpoint(unit.path)
            except OSError as e:
                raise StorageError(f"Cannot write checkpoint {paths.checkpoint_file}: {e}") from e

        watermark = CompletionWatermark(plan.pending, advance_checkpoint)
        outcome = pool.run(
            plan.pending,
            job.target_org,
            on_unit_done=watermark.mark_done,
            stop_check=store.is_pause_marker_present if self.watch_pause_marker else None,
        )

        summary = BatchSummary(
            successful=outcome.successful,
            failed=outcome.failed,
            skipped=plan.skipped,
            paused=outcome.stopped_by_pause,
            resume_point_missing=plan.resume_point_missing,
            duration_seconds=metrics.stop_timer("batch"),
        )
        self._log_metrics(metrics)

        if outcome.stopped_by_pause:
            store.write_pause_marker()
            self.pause.mark_paused()
            remaining = len(plan.pending) - outcome.claimed
            notify(
                f"Batch paused: {summary.successful} successful, {summary.failed} failed, "
                f"{remaining} remaining"
            )
        else:
            store.clear_all()
            notify(
                f"Batch complete: {summary.successful} successful, {summary.failed} failed, "
                f"{summary.total} total"
            )

        return summary

    @staticmethod
    def _log_metrics(metrics: MetricsCollector) -> None:
        summary = metrics.get_summary()
        durations = summary["metrics"].get("unit_duration")
        counters = ", ".join(f"{name}={count}" for name, count in sorted(summary["counters"].items()))
        if durations:
            logger.info(
                f"Script timings: {durations['count']} run, avg {durations['avg']:.2f}s, "
                f"max {durations['max']:.2f}s ({counters})"
            )
        logger.debug(f"Run metrics: {summary}")

    @staticmethod
    def _report_plan(plan: ResumePlan, notify) -> None:
        if plan.resume_point_missing:
            logger.warning(f"Checkpoint {plan.checkpoint} matches no script; starting from the beginning")
            notify(f"Resume point not found: {plan.checkpoint}; processing all {len(plan.pending)} scripts")
        elif plan.resuming:
            notify(f"Resuming after checkpoint: {Path(plan.checkpoint).name} ({plan.skipped} already done)")

    def _acquire(self, key: str) -> None:
        with self._active_lock:
            if key in self._active_jobs:
                raise JobAlreadyRunningError(f"Job '{key}' is already running")
            self._active_jobs.add(key)

    def _release(self, key: str) -> None:
        with self._active_lock:
            self._active_jobs.discard(key)
