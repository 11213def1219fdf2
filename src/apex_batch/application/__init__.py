"""Application layer package."""

from apex_batch.application.batch_executor import BatchExecutor
from apex_batch.application.orgs import OrgDirectory
from apex_batch.application.pause import PauseController, PauseState
from apex_batch.application.progress import BufferedProgressSink, LoggingProgressSink
from apex_batch.application.resume import ResumePlan, compute_pending
from apex_batch.application.scheduler import WorkerPool, CompletionWatermark, PoolOutcome
from apex_batch.application.service import JobService

__all__ = [
    "BatchExecutor",
    "OrgDirectory",
    "PauseController",
    "PauseState",
    "BufferedProgressSink",
    "LoggingProgressSink",
    "ResumePlan",
    "compute_pending",
    "WorkerPool",
    "CompletionWatermark",
    "PoolOutcome",
    "JobService",
]
