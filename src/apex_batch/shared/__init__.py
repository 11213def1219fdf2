"""Shared utilities package."""

from apex_batch.shared.logging import setup_logger, get_logger
from apex_batch.shared.retry import RetryStrategy
from apex_batch.shared.metrics import MetricsCollector
from apex_batch.shared.shell import run_cmd
from apex_batch.shared.types import PathLike, ProgressCallback

__all__ = [
    "setup_logger",
    "get_logger",
    "RetryStrategy",
    "MetricsCollector",
    "run_cmd",
    "PathLike",
    "ProgressCallback",
]
