"""
Execution strategies for engine work.

Each summarization engine owns one strategy and routes every request through
it. With ``ThreadPoolStrategy(max_workers=1)`` that gives each engine a single
serialized background worker: calls queue up instead of interleaving, so a
model load can never race a generation on the same engine, and the calling
thread only waits on a Future.

Tests inject ``SequentialStrategy`` to run the same code path inline and
deterministically.

Usage:
    strategy = ThreadPoolStrategy(max_workers=1, thread_name_prefix="local-engine")
    result = strategy.run(engine_step, request)

    # Tests
    strategy = SequentialStrategy()
"""

from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Iterator, TypeVar

T = TypeVar('T')
R = TypeVar('R')


class ExecutorStrategy(ABC):
    """
    Abstract execution strategy.

    Attributes:
        max_workers: Number of concurrent workers (1 for serialized engines).
    """

    max_workers: int

    @abstractmethod
    def submit(self, fn: Callable[[T], R], item: T) -> Future:
        """
        Submit a single task for execution.

        Returns:
            Future object that will contain the result.
        """

    @abstractmethod
    def map(self, fn: Callable[[T], R], items: list[T]) -> Iterator[R]:
        """Map function over items, yielding results in submission order."""

    @abstractmethod
    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        """Release worker resources."""

    def run(self, fn: Callable[[T], R], item: T, timeout: float | None = None) -> R:
        """
        Submit a task and block until it finishes.

        Exceptions raised by ``fn`` are re-raised in the calling thread.
        """
        return self.submit(fn, item).result(timeout=timeout)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True)
        return False


class ThreadPoolStrategy(ExecutorStrategy):
    """
    Thread-backed execution.

    Engines use ``max_workers=1``: llama.cpp inference releases the GIL and
    HTTP calls block on sockets, so a dedicated worker thread keeps the
    caller responsive while preserving one-at-a-time access to the engine's
    mutable state.

    Args:
        max_workers: Maximum concurrent threads (default 1).
        thread_name_prefix: Name prefix for worker threads, shown in logs.
    """

    def __init__(self, max_workers: int = 1, thread_name_prefix: str = "lifewrap"):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=thread_name_prefix,
        )
        self.max_workers = max_workers

    def submit(self, fn: Callable[[T], R], item: T) -> Future:
        return self._executor.submit(fn, item)

    def map(self, fn: Callable[[T], R], items: list[T]) -> Iterator[R]:
        return self._executor.map(fn, items)

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=cancel_futures)


class SequentialStrategy(ExecutorStrategy):
    """
    Inline execution for tests and debugging.

    Runs each task immediately in the caller's thread and wraps the outcome
    in an already-completed Future, so it is a drop-in replacement for
    ThreadPoolStrategy.
    """

    def __init__(self):
        self.max_workers = 1

    def submit(self, fn: Callable[[T], R], item: T) -> Future:
        future: Future = Future()
        try:
            future.set_result(fn(item))
        except Exception as e:
            future.set_exception(e)
        return future

    def map(self, fn: Callable[[T], R], items: list[T]) -> Iterator[R]:
        for item in items:
            yield fn(item)

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        """Nothing to release."""
