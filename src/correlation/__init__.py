from __future__ import annotations

# Public API re-exports (keep small & stable)
from .contingency import AttributePair, ContingencyMatrix, CramerResult, merged
from .accumulator import PartitionAccumulator, accumulate, declare_pairs
from .aggregator import PairAggregator, format_score, merge_partials
from .counters import JobCounters
from ..utils.errors import (
    CorrelationError,
    MalformedMatrixError,
    SchemaError,
    SchemaMismatchError,
    UnrecognizedCategoryError,
)
