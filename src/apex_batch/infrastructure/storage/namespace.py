"""Maps job names onto their on-disk namespace."""

from pathlib import Path
from typing import Tuple

from apex_batch.domain.models import JobPaths, job_key
from apex_batch.domain.exceptions import StorageError
from apex_batch.shared.logging import get_logger
from apex_batch.shared.types import PathLike

logger = get_logger(__name__)

UNITS_DIRNAME = "apex_files"
RESULTS_DIRNAME = "execution_results"
CHECKPOINTS_DIRNAME = "checkpoints"


class NamespaceResolver:
    """
    Resolves the directories and marker files of a job.

    Layout under the storage root::

        apex_files/<key>/                  generated scripts
        execution_results/<key>/           one artifact per executed script
        checkpoints/checkpoint_<key>.txt   last executed script
        checkpoints/pause_<key>.txt        present while a run is paused

    ``<key>`` is the lower-cased job name, so "Foo", "foo" and "FOO" share
    one namespace.
    """

    def __init__(self, base_dir: PathLike):
        self.base_dir = Path(base_dir)

    def key_for(self, job_name: str) -> str:
        if job_name is None or not job_name.strip():
            raise ValueError("Job name must not be empty")
        key = job_key(job_name)
        if "/" in key or "\\" in key or key in (".", ".."):
            raise ValueError(f"Invalid job name: {job_name!r}")
        return key

    def directories(self, job_name: str) -> Tuple[Path, Path]:
        """Return (unit_dir, results_dir) without touching the filesystem."""
        key = self.key_for(job_name)
        return (
            self.base_dir / UNITS_DIRNAME / key,
            self.base_dir / RESULTS_DIRNAME / key,
        )

    def resolve(self, job_name: str, create: bool = True) -> JobPaths:
        """
        Resolve all paths of a job.

        Args:
            job_name: Job name in any casing
            create: Create the directories if they do not exist

        Returns:
            JobPaths for the job

        Raises:
            StorageError: If a directory cannot be created
        """
        key = self.key_for(job_name)
        unit_dir, results_dir = self.directories(job_name)
        checkpoint_dir = self.base_dir / CHECKPOINTS_DIRNAME

        paths = JobPaths(
            job_key=key,
            unit_dir=unit_dir,
            results_dir=results_dir,
            checkpoint_file=checkpoint_dir / f"checkpoint_{key}.txt",
            pause_file=checkpoint_dir / f"pause_{key}.txt",
        )

        if create:
            for directory in (unit_dir, results_dir, checkpoint_dir):
                try:
                    directory.mkdir(parents=True, exist_ok=True)
                except OSError as e:
                    raise StorageError(f"Cannot create directory {directory}: {e}") from e
            logger.debug(f"Namespace ready for job '{key}' under {self.base_dir}")

        return paths
