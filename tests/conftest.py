import logging
import os
import sys
import threading
import time

import pytest

# Ensure src/ is on sys.path so 'apex_batch' is importable without install
SRC = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src'))
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from apex_batch.domain.exceptions import ExecutionError  # noqa: E402
from apex_batch.domain.models import ExecutionOutput  # noqa: E402
from apex_batch.infrastructure.storage.units import write_units  # noqa: E402


class FakeExecutor:
    """In-memory executor recording every call.

    Record ids listed in ``fail_ids`` raise ExecutionError. ``on_execute``
    runs after each call and may request a pause.
    """

    def __init__(self, fail_ids=(), delay=0.0, on_execute=None):
        self.fail_ids = {i.lower() for i in fail_ids}
        self.delay = delay
        self.on_execute = on_execute
        self.calls = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def execute(self, unit, target_org):
        with self._lock:
            self.calls.append(unit.record_id)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            count = len(self.calls)
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.on_execute is not None:
                self.on_execute(count, unit)
            if unit.record_id in self.fail_ids:
                raise ExecutionError("Command failed with exit code 1", stdout="partial", stderr="boom")
            return ExecutionOutput(stdout=f"ran {unit.record_id} on {target_org}", stderr="")
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers that setup_logger() attached during a test."""
    yield
    logger = logging.getLogger("apex_batch")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def base_dir(tmp_path):
    return tmp_path / "store"


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture
def executor_factory():
    """Build FakeExecutors with custom failures, delays or hooks."""
    return FakeExecutor


@pytest.fixture
def make_units(base_dir):
    """Write n scripts for a job and return their record ids in order."""

    def _make(job_name, n, template="System.debug(recordId);"):
        ids = [f"rec{i:03d}" for i in range(n)]
        write_units(base_dir / "apex_files" / job_name.lower(), ids, template)
        return ids

    return _make
