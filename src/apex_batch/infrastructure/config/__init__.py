"""Configuration package."""

from apex_batch.infrastructure.config.loader import ConfigLoader, BatchConfig

__all__ = ["ConfigLoader", "BatchConfig"]
