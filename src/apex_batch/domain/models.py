"""Domain models for batch script execution."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, List


def job_key(job_name: str) -> str:
    """Canonical, case-insensitive key for a job name."""
    return job_name.strip().lower()


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class JobStatus(str, Enum):
    """Lifecycle of a job as persisted in the metadata store."""

    PREPARED = "prepared"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"


class UnitOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class Job:
    """A named batch of scripts sharing a target org and a template."""

    name: str
    target_org: str
    apex_template: str = ""
    record_ids: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("Job name must not be empty")
        if not self.target_org:
            raise ValueError("Target org must not be empty")

    @property
    def key(self) -> str:
        return job_key(self.name)


@dataclass(frozen=True)
class JobPaths:
    """On-disk locations owned by one job."""

    job_key: str
    unit_dir: Path
    results_dir: Path
    checkpoint_file: Path
    pause_file: Path


@dataclass(frozen=True)
class WorkUnit:
    """One generated script, identified by its record id."""

    record_id: str
    path: Path

    @property
    def file_name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class ExecutionOutput:
    """Captured output of a successful script run."""

    stdout: str = ""
    stderr: str = ""


@dataclass
class ExecutionResult:
    """Outcome of executing a single work unit."""

    unit: WorkUnit
    outcome: UnitOutcome
    stdout: str = ""
    stderr: str = ""
    error: Optional[str] = None
    finished_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def success(self) -> bool:
        return self.outcome is UnitOutcome.SUCCESS


@dataclass
class BatchSummary:
    """Aggregate counters returned by a run."""

    successful: int = 0
    failed: int = 0
    skipped: int = 0
    paused: bool = False
    resume_point_missing: bool = False
    duration_seconds: float = 0.0

    @property
    def total(self) -> int:
        return self.successful + self.failed

    def to_dict(self) -> Dict[str, Any]:
        """Counters in the shape stored with the job metadata."""
        return {
            "successful": self.successful,
            "failed": self.failed,
            "total": self.total,
        }


@dataclass
class JobRecord:
    """Persisted metadata for a job."""

    job_name: str
    target_org: str = ""
    soql_query: str = ""
    apex_template: str = ""
    status: JobStatus = JobStatus.PREPARED
    timestamp: str = field(default_factory=utc_now_iso)
    result: Optional[Dict[str, int]] = None


@dataclass
class PrepareResult:
    """Result of preparing a job's scripts."""

    record_count: int
    unit_dir: Path


@dataclass(frozen=True)
class OrgInfo:
    """An authenticated org known to the sf CLI."""

    alias: str
    username: str
    instance_url: str = ""
    is_dev_hub: bool = False
    is_default_dev_hub: bool = False
    is_default_org: bool = False
    is_scratch: bool = False
    expiration_date: Optional[str] = None

    def __post_init__(self):
        if not self.username:
            raise ValueError("Org username must not be empty")
