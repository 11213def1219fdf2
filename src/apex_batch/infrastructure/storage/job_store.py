"""JSON-file persistence of job metadata."""

import json
import threading
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Dict, Optional

from apex_batch.domain.models import JobRecord, JobStatus, job_key, utc_now_iso
from apex_batch.infrastructure.storage.atomic import atomic_write_text
from apex_batch.shared.logging import get_logger
from apex_batch.shared.types import PathLike

logger = get_logger(__name__)

JOBS_FILENAME = "jobs.json"

_RECORD_FIELDS = {f.name for f in fields(JobRecord)}


def _record_from_dict(name: str, data: Dict[str, Any]) -> JobRecord:
    values = {k: v for k, v in data.items() if k in _RECORD_FIELDS}
    values["job_name"] = name
    try:
        values["status"] = JobStatus(values.get("status", JobStatus.PREPARED))
    except ValueError:
        logger.warning(f"Unknown status {values.get('status')!r} for job {name}")
        values["status"] = JobStatus.PREPARED
    return JobRecord(**values)


def _record_to_dict(record: JobRecord) -> Dict[str, Any]:
    data = asdict(record)
    data["status"] = record.status.value
    return data


class JsonJobStore:
    """
    Stores all jobs in one JSON object keyed by job name.

    Lookups ignore case; the name used when a job was first saved is kept
    as its key.
    """

    def __init__(self, path: PathLike):
        self.path = Path(path)
        self._lock = threading.Lock()

    @classmethod
    def in_directory(cls, base_dir: PathLike) -> "JsonJobStore":
        return cls(Path(base_dir) / JOBS_FILENAME)

    def _read(self) -> Dict[str, Dict[str, Any]]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable job store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed job store {self.path}")
            return {}
        return data

    @staticmethod
    def _find_key(jobs: Dict[str, Any], job_name: str) -> Optional[str]:
        wanted = job_key(job_name)
        for name in jobs:
            if job_key(name) == wanted:
                return name
        return None

    def get(self, job_name: str) -> Optional[JobRecord]:
        """Find a job by name, ignoring case."""
        with self._lock:
            jobs = self._read()
        name = self._find_key(jobs, job_name)
        if name is None or not isinstance(jobs[name], dict):
            return None
        return _record_from_dict(name, jobs[name])

    def save(self, job_name: str, **updates: Any) -> JobRecord:
        """
        Merge updates into the stored job, creating it if needed.

        The timestamp is refreshed on every save unless given explicitly.

        Returns:
            The stored record
        """
        unknown = set(updates) - _RECORD_FIELDS
        if unknown:
            raise ValueError(f"Unknown job fields: {sorted(unknown)}")

        with self._lock:
            jobs = self._read()
            name = self._find_key(jobs, job_name) or job_name
            existing = jobs.get(name)
            data = dict(existing) if isinstance(existing, dict) else {}
            data.update({k: v for k, v in updates.items() if v is not None})
            if "timestamp" not in updates:
                data["timestamp"] = utc_now_iso()

            record = _record_from_dict(name, data)
            jobs[name] = _record_to_dict(record)
            atomic_write_text(self.path, json.dumps(jobs, indent=2))

        logger.debug(f"Saved job {name}: status={record.status.value}")
        return record

    def list_jobs(self) -> Dict[str, JobRecord]:
        with self._lock:
            jobs = self._read()
        return {name: _record_from_dict(name, data) for name, data in jobs.items() if isinstance(data, dict)}
