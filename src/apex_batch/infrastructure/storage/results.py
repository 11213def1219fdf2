"""Per-script result artifacts."""

from datetime import datetime
from pathlib import Path
from typing import Optional

from apex_batch.domain.models import ExecutionResult, UnitOutcome
from apex_batch.shared.logging import get_logger

logger = get_logger(__name__)

MAX_NAME_ATTEMPTS = 1000


def artifact_timestamp(moment: datetime) -> str:
    """ISO-like UTC timestamp with ':' and '.' replaced by '-'."""
    return moment.strftime("%Y-%m-%dT%H-%M-%S-%fZ")


def format_result(result: ExecutionResult) -> str:
    if result.outcome is UnitOutcome.SUCCESS:
        return f"STDOUT:\n{result.stdout}\n\nSTDERR:\n{result.stderr}"
    return (
        f"ERROR:\n{result.error or ''}\n\n"
        f"STDOUT:\n{result.stdout}\n\n"
        f"STDERR:\n{result.stderr}"
    )


class ResultRecorder:
    """
    Writes one text artifact per executed script.

    Artifacts are named ``<outcome>_<record id>_<timestamp>.txt`` and are
    never overwritten: a clash gets a numeric suffix. Recording is best
    effort, so write failures are logged and never raised.
    """

    def __init__(self, results_dir: Path):
        self.results_dir = results_dir

    def record(self, result: ExecutionResult) -> Optional[Path]:
        """
        Write the artifact for one result.

        Returns:
            Path of the artifact, or None if it could not be written
        """
        stem = (
            f"{result.outcome.value}_{result.unit.record_id}_"
            f"{artifact_timestamp(result.finished_at)}"
        )
        content = format_result(result)

        try:
            self.results_dir.mkdir(parents=True, exist_ok=True)
            for attempt in range(MAX_NAME_ATTEMPTS):
                name = f"{stem}.txt" if attempt == 0 else f"{stem}-{attempt}.txt"
                path = self.results_dir / name
                try:
                    with open(path, "x", encoding="utf-8") as f:
                        f.write(content)
                except FileExistsError:
                    continue
                return path
            logger.error(f"No free artifact name for {stem} in {self.results_dir}")
        except Exception as e:
            logger.error(f"Failed to write result for {result.unit.file_name}: {e}")
        return None
