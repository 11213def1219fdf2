"""Domain layer package."""

from apex_batch.domain.models import (
    Job,
    JobPaths,
    WorkUnit,
    ExecutionOutput,
    ExecutionResult,
    UnitOutcome,
    BatchSummary,
    JobStatus,
    JobRecord,
    PrepareResult,
    OrgInfo,
    job_key,
)
from apex_batch.domain.exceptions import (
    DomainException,
    StorageError,
    ExecutionError,
    QueryError,
    JobNotFoundError,
    JobAlreadyRunningError,
    ConfigurationError,
    ValidationError,
)
from apex_batch.domain.protocols import (
    IExecutor,
    IRecordQuery,
    IJobStore,
    IOrgLister,
)

__all__ = [
    # Models
    "Job",
    "JobPaths",
    "WorkUnit",
    "ExecutionOutput",
    "ExecutionResult",
    "UnitOutcome",
    "BatchSummary",
    "JobStatus",
    "JobRecord",
    "PrepareResult",
    "OrgInfo",
    "job_key",
    # Exceptions
    "DomainException",
    "StorageError",
    "ExecutionError",
    "QueryError",
    "JobNotFoundError",
    "JobAlreadyRunningError",
    "ConfigurationError",
    "ValidationError",
    # Protocols
    "IExecutor",
    "IRecordQuery",
    "IJobStore",
    "IOrgLister",
]
