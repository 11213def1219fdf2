"""Checkpoint and pause marker management."""

from pathlib import Path
from typing import Optional

from apex_batch.domain.models import JobPaths
from apex_batch.infrastructure.storage.atomic import atomic_write_text
from apex_batch.shared.logging import get_logger
from apex_batch.shared.types import PathLike

logger = get_logger(__name__)


class CheckpointStore:
    """
    Persists the resume state of one job.

    The checkpoint file holds the path of the last script executed within
    the completed prefix of a run. The pause file is an empty sentinel whose
    presence means the previous run was paused on purpose.
    """

    def __init__(self, paths: JobPaths):
        self.checkpoint_file = paths.checkpoint_file
        self.pause_file = paths.pause_file

    def load_checkpoint(self) -> Optional[str]:
        """
        Load the checkpoint if one exists.

        Returns:
            The checkpointed unit path, or None if the file is missing,
            empty or unreadable
        """
        try:
            value = self.checkpoint_file.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable checkpoint {self.checkpoint_file}: {e}")
            return None

        if not value:
            return None

        logger.debug(f"Loaded checkpoint: {value}")
        return value

    def write_checkpoint(self, unit_path: PathLike) -> None:
        atomic_write_text(self.checkpoint_file, str(unit_path))
        logger.debug(f"Checkpoint -> {unit_path}")

    def write_pause_marker(self) -> None:
        atomic_write_text(self.pause_file, "")
        logger.info(f"Wrote pause marker: {self.pause_file}")

    def is_pause_marker_present(self) -> bool:
        return self.pause_file.exists()

    def clear_pause_marker(self) -> None:
        self._remove(self.pause_file)

    def clear_all(self) -> None:
        """Remove both checkpoint and pause marker."""
        self._remove(self.checkpoint_file)
        self._remove(self.pause_file)

    @staticmethod
    def _remove(path: Path) -> None:
        try:
            path.unlink()
            logger.debug(f"Removed {path}")
        except FileNotFoundError:
            pass
