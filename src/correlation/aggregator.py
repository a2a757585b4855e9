from __future__ import annotations
from typing import Iterable, List, Optional, Tuple, Union
import logging

from ..schema.feature_schema import FeatureSchema
from .contingency import AttributePair, ContingencyMatrix, CramerResult
from ..utils.errors import SchemaMismatchError
from .counters import JobCounters

DEFAULT_SCALE = 1000
UNDEFINED = "undefined"

Serialized = Union[str, bytes]


def format_score(v: Optional[float], scale: int = DEFAULT_SCALE, undefined_marker: str = UNDEFINED) -> str:
    """
    Render a Cramer's V value for the output line.

    - undefined (None)  -> ``undefined_marker``
    - scale > 1         -> round(v * scale) as an integer, half to even
    - scale == 1        -> v with 6 decimals
    """
    if v is None:
        return undefined_marker
    if scale < 1:
        raise ValueError(f"correlation scale must be >= 1, got {scale}")
    if scale == 1:
        return f"{v:.6f}"
    return str(int(round(v * scale)))


def merge_partials(values: Iterable[Serialized]) -> ContingencyMatrix:
    """
    Deserialize and merge partial matrices in arrival order. The first partial
    fixes the shape; any other shape raises SchemaMismatchError.
    """
    total: Optional[ContingencyMatrix] = None
    for v in values:
        part = ContingencyMatrix.deserialize(v)
        if total is None:
            total = ContingencyMatrix(part.rows, part.cols)
        total.merge(part)
    if total is None:
        raise ValueError("no partial matrices to merge")
    return total


class PairAggregator:
    """
    Reduce side of the job: merges every partial matrix emitted for one
    attribute pair and renders the pair's score line.

    Shape disagreements and corrupt partials propagate (SchemaMismatchError,
    MalformedMatrixError); there is no safe partial result to emit.
    """

    def __init__(
        self,
        schema: FeatureSchema,
        *,
        field_delim_out: str = ",",
        scale: int = DEFAULT_SCALE,
        undefined_marker: str = UNDEFINED,
        include_chi2: bool = False,
        log: Optional[logging.Logger] = None,
    ) -> None:
        if scale < 1:
            raise ValueError(f"correlation scale must be >= 1, got {scale}")
        self.schema = schema
        self.field_delim_out = field_delim_out
        self.scale = int(scale)
        self.undefined_marker = undefined_marker
        self.include_chi2 = include_chi2
        self.counters = JobCounters()
        self._log = log or logging.getLogger(__name__)

    def expected_shape(self, key: AttributePair) -> Tuple[int, int]:
        src = self.schema.categorical_field(key.source)
        dst = self.schema.categorical_field(key.dest)
        return src.size, dst.size

    def aggregate(self, key: AttributePair, values: Iterable[Serialized]) -> ContingencyMatrix:
        rows, cols = self.expected_shape(key)
        total = ContingencyMatrix(rows, cols)
        parts = 0
        for v in values:
            part = ContingencyMatrix.deserialize(v)
            if part.shape != total.shape:
                raise SchemaMismatchError(total.shape, part.shape, key)
            total.merge(part)
            parts += 1
        self._log.debug("pair aggregated", extra={"pair": key.to_wire(), "partials": parts, "n": total.total})
        return total

    def score(self, key: AttributePair, merged: ContingencyMatrix) -> str:
        stats: CramerResult = merged.cramer_stats()
        src = self.schema.find_by_ordinal(key.source)
        dst = self.schema.find_by_ordinal(key.dest)

        cols: List[str] = [src.name, dst.name, format_score(stats.v, self.scale, self.undefined_marker)]
        if self.include_chi2:
            cols += [f"{stats.chi2:.6f}", str(stats.dof), f"{stats.p_value:.6g}", str(stats.n)]

        self.counters.pairs_scored += 1
        if not stats.defined:
            self.counters.undefined_scores += 1
            self._log.info(
                "cramer index undefined",
                extra={"pair": key.to_wire(), "n": stats.n, "source": src.name, "dest": dst.name},
            )
        return self.field_delim_out.join(cols)

    def reduce(self, key: AttributePair, values: Iterable[Serialized]) -> str:
        return self.score(key, self.aggregate(key, values))
