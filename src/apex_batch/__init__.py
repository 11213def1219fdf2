"""Resumable, concurrent execution of generated Apex scripts."""

__version__ = "1.0.0"
