"""Org listing backed by a local cache."""

from typing import List

from apex_batch.domain.exceptions import DomainException
from apex_batch.domain.models import OrgInfo
from apex_batch.domain.protocols import IOrgLister
from apex_batch.infrastructure.storage.org_cache import OrgCache
from apex_batch.shared.logging import get_logger

logger = get_logger(__name__)


class OrgDirectory:
    """Serves the org list from the cache and refreshes it from the sf CLI."""

    def __init__(self, lister: IOrgLister, cache: OrgCache):
        self.lister = lister
        self.cache = cache

    def get_orgs(self, refresh: bool = False) -> List[OrgInfo]:
        """
        Return the known orgs.

        Without refresh the cached list is returned when there is one. A
        fetch that fails during a refresh falls back to the cached list.

        Args:
            refresh: Ask the sf CLI even if a cached list exists

        Returns:
            Orgs with the default org first

        Raises:
            DomainException: If fetching fails and no cached list exists
        """
        if not refresh:
            cached = self.cache.load()
            if cached is not None:
                logger.info(f"Loaded {len(cached)} org(s) from {self.cache.path}")
                return cached

        try:
            orgs = self.lister.list_orgs()
        except DomainException as e:
            if not refresh:
                raise
            cached = self.cache.load()
            if cached is None:
                raise
            logger.warning(f"Refreshing orgs failed ({e}); using cached list")
            return cached

        self.cache.save(orgs)
        return orgs
