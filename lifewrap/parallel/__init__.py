"""
Execution strategies used to serialize work inside each engine.

Components:
    ExecutorStrategy - Abstract base class defining the execution interface
    ThreadPoolStrategy - Thread-backed execution (one worker per engine)
    SequentialStrategy - Inline execution (tests/debugging)
"""

from .executor_strategy import (
    ExecutorStrategy,
    SequentialStrategy,
    ThreadPoolStrategy,
)

__all__ = [
    'ExecutorStrategy',
    'ThreadPoolStrategy',
    'SequentialStrategy',
]
