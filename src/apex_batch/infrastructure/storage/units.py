"""Generation and enumeration of work-unit script files."""

from pathlib import Path
from typing import Iterable, List, Optional

from apex_batch.domain.models import WorkUnit
from apex_batch.shared.logging import get_logger
from apex_batch.shared.types import ProgressCallback

logger = get_logger(__name__)

DEFAULT_EXTENSION = ".apex"


def render_unit(record_id: str, template: str) -> str:
    """Bind a template to one record id."""
    return f"Id recordId = '{record_id}';\n{template}"


def _validate_record_id(record_id: str) -> None:
    if any(ch in record_id for ch in ("/", "\\", "'", "\n", "\r")) or record_id in (".", ".."):
        raise ValueError(f"Invalid record id: {record_id!r}")


def write_units(
    unit_dir: Path,
    record_ids: Iterable[str],
    template: str,
    extension: str = DEFAULT_EXTENSION,
    on_progress: Optional[ProgressCallback] = None,
) -> List[Path]:
    """
    Render one script per record id into unit_dir.

    File names are the lower-cased record id, so ids differing only in case
    map to the same file. Existing files are overwritten. Every id is
    validated before the first file is written.

    Returns:
        Paths of the files written, in input order

    Raises:
        ValueError: If a record id cannot be used as a file name
    """
    ids = [(raw_id or "").strip() for raw_id in record_ids]
    ids = [record_id for record_id in ids if record_id]
    for record_id in ids:
        _validate_record_id(record_id)

    unit_dir.mkdir(parents=True, exist_ok=True)
    written = []
    seen = set()

    for record_id in ids:
        normalized = record_id.lower()
        if normalized in seen:
            logger.debug(f"Skipping duplicate record id {record_id}")
            continue
        seen.add(normalized)

        file_path = unit_dir / f"{normalized}{extension}"
        file_path.write_text(render_unit(record_id, template), encoding="utf-8")
        written.append(file_path)

        message = f"Generated Apex file for ID: {record_id}"
        logger.debug(message)
        if on_progress:
            on_progress(message)

    logger.info(f"Generated {len(written)} script(s) in {unit_dir}")
    return written


def list_units(unit_dir: Path, extension: str = DEFAULT_EXTENSION) -> List[WorkUnit]:
    """
    List the work units of a job in processing order.

    Only regular files whose name ends with the extension (any case) are
    returned. The order is by file name, so repeated listings of an
    unchanged directory agree, which checkpoint comparison relies on.
    A missing or empty directory yields an empty list.
    """
    if not unit_dir.is_dir():
        return []

    suffix = extension.lower()
    names = sorted(
        entry.name for entry in unit_dir.iterdir()
        if entry.name.lower().endswith(suffix) and entry.is_file()
    )

    return [
        WorkUnit(record_id=name[:-len(suffix)].lower(), path=unit_dir / name)
        for name in names
    ]
