"""Local cache of the org list."""

import json
from dataclasses import asdict, fields
from pathlib import Path
from typing import List, Optional

from apex_batch.domain.models import OrgInfo
from apex_batch.infrastructure.storage.atomic import atomic_write_text
from apex_batch.shared.logging import get_logger
from apex_batch.shared.types import PathLike

logger = get_logger(__name__)

ORGS_FILENAME = "orgs.json"

_ORG_FIELDS = {f.name for f in fields(OrgInfo)}


class OrgCache:
    """
    Keeps the last fetched org list in ``orgs.json``.

    Neither load() nor save() raises: a cache that cannot be read is
    treated as absent, and a failed write is only logged.
    """

    def __init__(self, path: PathLike):
        self.path = Path(path)

    @classmethod
    def in_directory(cls, base_dir: PathLike) -> "OrgCache":
        return cls(Path(base_dir) / ORGS_FILENAME)

    def load(self) -> Optional[List[OrgInfo]]:
        """Return the cached orgs, or None if there is no usable cache."""
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return [OrgInfo(**{k: v for k, v in entry.items() if k in _ORG_FIELDS}) for entry in data]
        except FileNotFoundError:
            return None
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable org cache {self.path}: {e}")
            return None

    def save(self, orgs: List[OrgInfo]) -> None:
        try:
            atomic_write_text(self.path, json.dumps([asdict(org) for org in orgs], indent=2))
            logger.debug(f"Saved {len(orgs)} org(s) to {self.path}")
        except OSError as e:
            logger.error(f"Could not save org cache {self.path}: {e}")
