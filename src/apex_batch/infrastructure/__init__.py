"""Infrastructure layer package."""

from apex_batch.infrastructure.config import ConfigLoader, BatchConfig
from apex_batch.infrastructure.storage import (
    NamespaceResolver,
    CheckpointStore,
    ResultRecorder,
    JsonJobStore,
)
from apex_batch.infrastructure.salesforce import SfApexExecutor, SfRecordQuery

__all__ = [
    "ConfigLoader",
    "BatchConfig",
    "NamespaceResolver",
    "CheckpointStore",
    "ResultRecorder",
    "JsonJobStore",
    "SfApexExecutor",
    "SfRecordQuery",
]
