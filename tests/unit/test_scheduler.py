"""
Unit tests for the worker pool and completion watermark.
"""

from unittest.mock import Mock

import pytest

from apex_batch.application.pause import PauseController
from apex_batch.application.scheduler import (
    DEFAULT_CONCURRENCY,
    CompletionWatermark,
    WorkerPool,
    effective_concurrency,
)
from apex_batch.domain.exceptions import StorageError
from apex_batch.domain.models import UnitOutcome, WorkUnit
from apex_batch.infrastructure.storage.results import ResultRecorder
from apex_batch.shared.metrics import MetricsCollector


def _units(tmp_path, n):
    return [WorkUnit(record_id=f"r{i:02d}", path=tmp_path / f"r{i:02d}.apex") for i in range(n)]


@pytest.mark.parametrize("limit,expected", [(None, DEFAULT_CONCURRENCY), (0, 5), (-2, 5), (1, 1), (8, 8)])
def test_effective_concurrency(limit, expected):
    assert effective_concurrency(limit) == expected


class TestCompletionWatermark:
    """Test CompletionWatermark."""

    def test_advances_over_completed_prefix_only(self, tmp_path):
        units = _units(tmp_path, 4)
        advanced = []
        watermark = CompletionWatermark(units, advanced.append)

        watermark.mark_done(1)
        assert advanced == []
        assert watermark.last_completed is None

        watermark.mark_done(0)
        assert advanced == [units[1]]

        watermark.mark_done(3)
        watermark.mark_done(2)
        assert advanced == [units[1], units[3]]
        assert watermark.last_completed == units[3]


class TestWorkerPool:
    """Test WorkerPool."""

    @pytest.fixture
    def recorder(self, tmp_path):
        return ResultRecorder(tmp_path / "results")

    def test_empty_input(self, executor_factory, recorder):
        pool = WorkerPool(executor_factory(), recorder, PauseController())
        outcome = pool.run([], "dev")

        assert (outcome.successful, outcome.failed, outcome.claimed) == (0, 0, 0)
        assert not outcome.stopped_by_pause

    @pytest.mark.parametrize("n,k", [(1, 1), (7, 3), (10, 5), (3, 10)])
    def test_each_unit_executed_once(self, executor_factory, tmp_path, recorder, n, k):
        executor = executor_factory(fail_ids={"r01"})
        pool = WorkerPool(executor, recorder, PauseController(), concurrency_limit=k)

        outcome = pool.run(_units(tmp_path, n), "dev")

        assert sorted(executor.calls) == [f"r{i:02d}" for i in range(n)]
        assert outcome.successful + outcome.failed == n
        assert outcome.failed == (1 if n > 1 else 0)
        assert not outcome.stopped_by_pause

    def test_concurrency_is_bounded(self, executor_factory, tmp_path, recorder):
        executor = executor_factory(delay=0.02)
        WorkerPool(executor, recorder, PauseController(), concurrency_limit=3).run(_units(tmp_path, 10), "dev")

        assert executor.max_active <= 3

    def test_failures_are_recorded(self, executor_factory, tmp_path, recorder):
        executor = executor_factory(fail_ids={"r00"})
        WorkerPool(executor, recorder, PauseController(), concurrency_limit=1).run(_units(tmp_path, 2), "dev")

        names = sorted(p.name for p in recorder.results_dir.iterdir())
        assert names[0].startswith("failure_r00_")
        assert names[1].startswith("success_r01_")

    def test_unexpected_exception_is_a_failure(self, tmp_path, recorder):
        executor = Mock()
        executor.execute.side_effect = RuntimeError("kaboom")

        outcome = WorkerPool(executor, recorder, PauseController()).run(_units(tmp_path, 2), "dev")

        assert outcome.failed == 2
        artifact = next(recorder.results_dir.iterdir()).read_text(encoding="utf-8")
        assert "RuntimeError: kaboom" in artifact

    def test_pause_stops_claiming(self, executor_factory, tmp_path, recorder):
        pause = PauseController()
        executor = executor_factory(on_execute=lambda count, unit: count == 2 and pause.request_pause())

        outcome = WorkerPool(executor, recorder, pause, concurrency_limit=1).run(_units(tmp_path, 5), "dev")

        assert outcome.claimed == 2
        assert outcome.successful == 2
        assert outcome.stopped_by_pause

    def test_stop_check_stops_claiming(self, executor_factory, tmp_path, recorder):
        executor = executor_factory()
        pool = WorkerPool(executor, recorder, PauseController(), concurrency_limit=1)

        outcome = pool.run(_units(tmp_path, 4), "dev", stop_check=lambda: len(executor.calls) >= 1)

        assert outcome.claimed == 1
        assert outcome.stopped_by_pause

    def test_unit_done_callback_failure_aborts(self, executor_factory, tmp_path, recorder):
        executor = executor_factory()
        pool = WorkerPool(executor, recorder, PauseController(), concurrency_limit=2)

        def fail(index):
            raise StorageError("disk full")

        with pytest.raises(StorageError):
            pool.run(_units(tmp_path, 10), "dev", on_unit_done=fail)
        assert len(executor.calls) <= 2

    def test_progress_messages_and_metrics(self, executor_factory, tmp_path, recorder):
        messages = []
        metrics = MetricsCollector()
        pool = WorkerPool(executor_factory(fail_ids={"r00"}), recorder, PauseController(),
                          concurrency_limit=1, on_progress=messages.append, metrics=metrics)

        pool.run(_units(tmp_path, 2), "dev")

        assert messages[0] == "Processing script 1/2: r00.apex"
        assert messages[-1] == "Progress: 1 successful, 1 failed"
        assert metrics.get_counter(UnitOutcome.SUCCESS.value) == 1
        assert metrics.get_counter(UnitOutcome.FAILURE.value) == 1

    def test_broken_progress_callback_is_ignored(self, executor_factory, tmp_path, recorder):
        def broken(message):
            raise IOError("closed")

        outcome = WorkerPool(executor_factory(), recorder, PauseController(), on_progress=broken).run(
            _units(tmp_path, 3), "dev")

        assert outcome.successful == 3
