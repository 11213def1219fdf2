"""Presentation layer package."""

from apex_batch.presentation.cli import main, create_service_from_config

__all__ = ["main", "create_service_from_config"]
