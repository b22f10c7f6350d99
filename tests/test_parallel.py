"""
Tests for the execution strategies.

Tests cover:
- ExecutorStrategy implementations (ThreadPool, Sequential)
- run() blocking and exception propagation
- One-at-a-time execution inside an engine's single worker
"""

import sys
import threading
import time
from pathlib import Path

import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from lifewrap.engines import BasicEngine
from lifewrap.parallel import SequentialStrategy, ThreadPoolStrategy
from lifewrap.prompting import SummaryLevel


class TestSequentialStrategy:
    """Test SequentialStrategy for deterministic execution."""

    def test_sequential_map_returns_results_in_order(self):
        """Sequential strategy processes items in submission order."""
        strategy = SequentialStrategy()
        results = list(strategy.map(lambda x: x * 2, [1, 2, 3, 4, 5]))
        assert results == [2, 4, 6, 8, 10]

    def test_sequential_submit_returns_completed_future(self):
        """Submit returns a Future that is already complete."""
        strategy = SequentialStrategy()
        future = strategy.submit(lambda x: x + 10, 5)
        assert future.done()
        assert future.result() == 15

    def test_sequential_submit_captures_exceptions(self):
        """Submit captures exceptions in the Future."""
        strategy = SequentialStrategy()

        def raise_error(x):
            raise ValueError("Test error")

        future = strategy.submit(raise_error, 1)
        assert future.done()
        with pytest.raises(ValueError, match="Test error"):
            future.result()

    def test_sequential_run_reraises(self):
        """run() re-raises the task's exception in the caller."""
        def raise_error(x):
            raise KeyError(x)

        with pytest.raises(KeyError):
            SequentialStrategy().run(raise_error, "missing")

    def test_sequential_shutdown_is_noop(self):
        """Shutdown does nothing for sequential strategy."""
        strategy = SequentialStrategy()
        strategy.shutdown()
        strategy.shutdown(wait=False, cancel_futures=True)

    def test_sequential_context_manager(self):
        """Sequential strategy works as context manager."""
        with SequentialStrategy() as strategy:
            result = list(strategy.map(str.upper, ["a", "b", "c"]))
        assert result == ["A", "B", "C"]


class TestThreadPoolStrategy:
    """Test ThreadPoolStrategy."""

    def test_threadpool_default_is_single_worker(self):
        """Engines get one serialized worker by default."""
        strategy = ThreadPoolStrategy()
        assert strategy.max_workers == 1
        strategy.shutdown()

    def test_threadpool_rejects_zero_workers(self):
        """At least one worker is required."""
        with pytest.raises(ValueError):
            ThreadPoolStrategy(max_workers=0)

    def test_threadpool_run_returns_result(self):
        """run() blocks until the worker finishes."""
        with ThreadPoolStrategy(thread_name_prefix="test-engine") as strategy:
            assert strategy.run(lambda x: x * 2, 21, timeout=1) == 42

    def test_threadpool_runs_off_caller_thread(self):
        """Work happens on a named worker thread."""
        with ThreadPoolStrategy(thread_name_prefix="local-engine") as strategy:
            name = strategy.run(lambda _: threading.current_thread().name, None, timeout=1)
        assert name.startswith("local-engine")
        assert name != threading.current_thread().name

    def test_single_worker_serializes_calls(self):
        """With one worker, submitted tasks never overlap."""
        active = []
        overlaps = []
        lock = threading.Lock()

        def task(x):
            with lock:
                active.append(x)
                if len(active) > 1:
                    overlaps.append(list(active))
            time.sleep(0.02)
            with lock:
                active.remove(x)
            return x

        with ThreadPoolStrategy(max_workers=1) as strategy:
            futures = [strategy.submit(task, i) for i in range(5)]
            results = [f.result(timeout=2) for f in futures]

        assert results == [0, 1, 2, 3, 4]
        assert overlaps == []

    def test_threadpool_map_processes_all_items(self):
        """ThreadPool processes all items."""
        with ThreadPoolStrategy(max_workers=2) as strategy:
            results = list(strategy.map(lambda x: x * 2, [1, 2, 3, 4]))
        assert sorted(results) == [2, 4, 6, 8]


class TestEngineWorker:
    """Test engines running on their default worker thread."""

    def test_concurrent_callers_share_one_engine(self):
        """Requests from several threads all complete on the engine worker."""
        engine = BasicEngine()
        results = []
        errors = []

        def call(i):
            try:
                summary = engine.summarize(SummaryLevel.CHUNK, f"Caller {i} went for a walk in the park today.")
                results.append(summary)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=call, args=(i,)) for i in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        engine.close()

        assert errors == []
        assert len(results) == 6
        assert engine.statistics()['summaries_generated'] == 6
