"""Storage infrastructure."""

from apex_batch.infrastructure.storage.namespace import NamespaceResolver
from apex_batch.infrastructure.storage.units import list_units, write_units, render_unit
from apex_batch.infrastructure.storage.checkpoint import CheckpointStore
from apex_batch.infrastructure.storage.results import ResultRecorder
from apex_batch.infrastructure.storage.job_store import JsonJobStore
from apex_batch.infrastructure.storage.org_cache import OrgCache

__all__ = [
    'NamespaceResolver',
    'list_units',
    'write_units',
    'render_unit',
    'CheckpointStore',
    'ResultRecorder',
    'JsonJobStore',
    'OrgCache',
]
