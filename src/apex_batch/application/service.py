"""Job-level operations: prepare, run, pause and resume by name."""

from typing import Dict, List, Optional

from apex_batch.application.batch_executor import BatchExecutor
from apex_batch.application.orgs import OrgDirectory
from apex_batch.domain.exceptions import JobAlreadyRunningError, JobNotFoundError
from apex_batch.domain.models import (
    BatchSummary,
    Job,
    JobRecord,
    JobStatus,
    OrgInfo,
    PrepareResult,
)
from apex_batch.domain.protocols import IJobStore, IRecordQuery
from apex_batch.shared.logging import get_logger
from apex_batch.shared.types import ProgressCallback

logger = get_logger(__name__)


class JobService:
    """Keeps job metadata in step with what the batch executor does."""

    def __init__(
        self,
        executor: BatchExecutor,
        job_store: IJobStore,
        record_query: Optional[IRecordQuery] = None,
        org_directory: Optional[OrgDirectory] = None
    ):
        self.executor = executor
        self.job_store = job_store
        self.record_query = record_query
        self.org_directory = org_directory

    def get_job(self, job_name: str) -> Optional[JobRecord]:
        return self.job_store.get(job_name)

    def list_jobs(self) -> Dict[str, JobRecord]:
        return self.job_store.list_jobs()

    def list_orgs(self, refresh: bool = False) -> List[OrgInfo]:
        if self.org_directory is None:
            raise RuntimeError("No org directory configured")
        return self.org_directory.get_orgs(refresh=refresh)

    def prepare(
        self,
        job_name: str,
        soql_query: str,
        apex_template: str,
        target_org: str,
        on_progress: Optional[ProgressCallback] = None
    ) -> PrepareResult:
        """
        Query the record ids of a job and generate its scripts.

        Returns:
            PrepareResult with the number of records and the script directory
        """
        if self.record_query is None:
            raise RuntimeError("No record query configured")

        record_ids = self.record_query.query_ids(soql_query, target_org)
        job = Job(name=job_name, target_org=target_org, apex_template=apex_template, record_ids=record_ids)
        self.executor.generate_units(job, on_progress=on_progress)

        self.job_store.save(
            job_name,
            target_org=target_org,
            soql_query=soql_query,
            apex_template=apex_template,
            status=JobStatus.PREPARED,
        )

        unit_dir, _ = self.executor.directories(job_name)
        logger.info(f"Prepared job {job_name}: {len(record_ids)} record(s) in {unit_dir}")
        return PrepareResult(record_count=len(record_ids), unit_dir=unit_dir)

    def run(
        self,
        job_name: str,
        target_org: Optional[str] = None,
        apex_template: Optional[str] = None,
        soql_query: Optional[str] = None,
        concurrency_limit: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> BatchSummary:
        """
        Run a job, filling missing details from its stored metadata.

        Raises:
            JobNotFoundError: If no target org is given or stored for the job
        """
        record = self.job_store.get(job_name)
        target_org = target_org or (record.target_org if record else None)
        if not target_org:
            raise JobNotFoundError(f"No data found for job: {job_name}")

        template = apex_template if apex_template is not None else (record.apex_template if record else "")
        job = Job(name=job_name, target_org=target_org, apex_template=template)

        self.job_store.save(
            job_name,
            target_org=target_org,
            apex_template=template,
            soql_query=soql_query,
            status=JobStatus.RUNNING,
        )

        try:
            summary = self.executor.run(job, on_progress=on_progress, concurrency_limit=concurrency_limit)
        except JobAlreadyRunningError:
            # the active run owns the stored status
            raise
        except Exception:
            self.job_store.save(job_name, status=JobStatus.FAILED)
            raise

        status = JobStatus.PAUSED if summary.paused else JobStatus.COMPLETED
        self.job_store.save(job_name, status=status, result=summary.to_dict())
        return summary

    def resume(
        self,
        job_name: str,
        concurrency_limit: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None
    ) -> BatchSummary:
        """
        Resume a paused or interrupted job from its checkpoint.

        Raises:
            JobNotFoundError: If no metadata is stored for the job
        """
        record = self.job_store.get(job_name)
        if record is None:
            raise JobNotFoundError(f"No data found for job: {job_name}")

        self.executor.resume()
        return self.run(
            record.job_name,
            target_org=record.target_org,
            apex_template=record.apex_template,
            concurrency_limit=concurrency_limit,
            on_progress=on_progress,
        )

    def pause(self, job_name: str) -> None:
        """
        Pause a job.

        Stops in-process runs of the executor and writes the job's pause
        marker, which a run in another process picks up before its next claim.

        Raises:
            JobNotFoundError: If no metadata is stored for the job
        """
        if self.job_store.get(job_name) is None:
            raise JobNotFoundError(f"No data found for job: {job_name}")

        self.executor.request_pause()
        self.executor.checkpoint_store(job_name).write_pause_marker()
        self.job_store.save(job_name, status=JobStatus.PAUSED)
