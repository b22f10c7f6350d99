"""
Summarization package: result types, extractive heuristics and calendar
periods.

    from lifewrap.summarization import (
        SourceUnit, StructuredSummary,          # data passed to/from engines
        extractive_summarize, merge_summaries,  # model-free text reduction
        period_bounds, iter_periods,            # rollup calendar
    )

The hierarchy pipeline depends on the coordinator and engines, which in
turn use this package, so it is imported from its own module:

    from lifewrap.summarization.hierarchy import SummaryPipeline

Hierarchy:
    chunk -> session -> day -> week -> month -> year -> yearRollup
"""

from .extractive import extractive_summarize, merge_summaries
from .periods import iter_periods, period_bounds
from .result_types import SourceUnit, StructuredSummary

__all__ = [
    'SourceUnit',
    'StructuredSummary',
    'extractive_summarize',
    'merge_summaries',
    'period_bounds',
    'iter_periods',
]
