"""Protocol definitions for dependency inversion."""

from typing import Protocol, List, Optional, Dict, Any

from apex_batch.domain.models import WorkUnit, ExecutionOutput, JobRecord, OrgInfo


class IExecutor(Protocol):
    """Runs one script against a target org."""

    def execute(self, unit: WorkUnit, target_org: str) -> ExecutionOutput:
        """Execute the unit; raise ExecutionError on failure."""
        ...


class IRecordQuery(Protocol):
    """Finds the record ids that make up a job."""

    def query_ids(self, soql: str, target_org: str) -> List[str]:
        """Return the ids matched by the query."""
        ...


class IJobStore(Protocol):
    """Key-value persistence of job metadata."""

    def get(self, job_name: str) -> Optional[JobRecord]:
        """Find a job by name, ignoring case."""
        ...

    def save(self, job_name: str, **fields: Any) -> JobRecord:
        """Merge fields into the stored job and return it."""
        ...

    def list_jobs(self) -> Dict[str, JobRecord]:
        """Return all stored jobs."""
        ...


class IOrgLister(Protocol):
    """Lists the orgs a target can be chosen from."""

    def list_orgs(self) -> List[OrgInfo]:
        """Return the usable orgs, preferred ones first."""
        ...
