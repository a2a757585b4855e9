from __future__ import annotations

"""
Contingency matrix for one (source, destination) attribute pair.

Design goals
------------
- Dense int64 counts (numpy), fixed shape for the matrix lifetime.
- Elementwise merge is commutative and associative, so partial matrices can be
  combined in any order and any grouping.
- Compact text wire format: ``rows,cols,c00,c01,...`` (row-major), exactly
  reversible.
- Cramer's V is ``None`` when it is undefined (no observations, or a single
  observed category on either side). Callers render the marker.

Public API
----------
- AttributePair(source, dest)
- ContingencyMatrix(rows, cols)
- CramerResult
- merged(*matrices)              -> ContingencyMatrix
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple, Union
import math

import numpy as np
import pandas as pd
from scipy import stats as _st

from ..utils.errors import MalformedMatrixError, SchemaMismatchError

WIRE_DELIM = ","


@dataclass(frozen=True, order=True)
class AttributePair:
    """Shuffle key: ordinals of the source and destination attributes."""
    source: int
    dest: int

    def __post_init__(self) -> None:
        if self.source == self.dest:
            raise ValueError(f"attribute pair needs two distinct ordinals, got {self.source} twice")

    def to_wire(self) -> str:
        return f"{self.source}{WIRE_DELIM}{self.dest}"

    @classmethod
    def from_wire(cls, text: str) -> "AttributePair":
        parts = text.strip().split(WIRE_DELIM)
        if len(parts) != 2:
            raise ValueError(f"attribute pair key must hold two ordinals: {text!r}")
        return cls(int(parts[0]), int(parts[1]))

    def __str__(self) -> str:
        return f"({self.source}, {self.dest})"


@dataclass(frozen=True)
class CramerResult:
    n: int
    chi2: float
    dof: int
    k: int
    p_value: float
    v: Optional[float]

    @property
    def defined(self) -> bool:
        return self.v is not None


class ContingencyMatrix:
    """
    Co-occurrence counts between the categories of two attributes.

    Rows index source categories, columns index destination categories.
    """

    __slots__ = ("_counts",)

    def __init__(self, rows: int, cols: int) -> None:
        if int(rows) < 1 or int(cols) < 1:
            raise ValueError(f"matrix dimensions must be positive, got {rows}x{cols}")
        self._counts = np.zeros((int(rows), int(cols)), dtype=np.int64)

    @classmethod
    def from_counts(cls, counts: Union[Sequence[Sequence[int]], np.ndarray]) -> "ContingencyMatrix":
        arr = np.asarray(counts)
        if arr.ndim != 2:
            raise ValueError("counts must be a 2D table")
        if arr.size and not np.issubdtype(arr.dtype, np.integer):
            raise ValueError("counts must be integers")
        if (arr < 0).any():
            raise ValueError("counts must be non-negative")
        m = cls(arr.shape[0], arr.shape[1])
        m._counts[:, :] = arr
        return m

    # ------------------------------ shape / access ------------------------------

    @property
    def rows(self) -> int:
        return int(self._counts.shape[0])

    @property
    def cols(self) -> int:
        return int(self._counts.shape[1])

    @property
    def shape(self) -> Tuple[int, int]:
        return self.rows, self.cols

    @property
    def counts(self) -> np.ndarray:
        out = self._counts.view()
        out.flags.writeable = False
        return out

    def __getitem__(self, ij: Tuple[int, int]) -> int:
        i, j = ij
        self._check_cell(i, j)
        return int(self._counts[i, j])

    def _check_cell(self, i: int, j: int) -> None:
        # numpy would wrap negative indices silently
        if not (0 <= i < self.rows and 0 <= j < self.cols):
            raise IndexError(f"cell ({i}, {j}) outside {self.rows}x{self.cols} matrix")

    def increment(self, i: int, j: int) -> None:
        self._check_cell(i, j)
        self._counts[i, j] += 1

    @property
    def total(self) -> int:
        return int(self._counts.sum())

    def row_totals(self) -> np.ndarray:
        return self._counts.sum(axis=1)

    def col_totals(self) -> np.ndarray:
        return self._counts.sum(axis=0)

    def copy(self) -> "ContingencyMatrix":
        return ContingencyMatrix.from_counts(self._counts.copy())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ContingencyMatrix):
            return NotImplemented
        return self.shape == other.shape and bool(np.array_equal(self._counts, other._counts))

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return f"ContingencyMatrix({self.rows}x{self.cols}, total={self.total})"

    # ------------------------------ merge ------------------------------

    def merge(self, other: "ContingencyMatrix") -> "ContingencyMatrix":
        """Add ``other`` into this matrix cell by cell. Returns ``self``."""
        if other.shape != self.shape:
            raise SchemaMismatchError(self.shape, other.shape)
        self._counts += other._counts
        return self

    # ------------------------------ wire format ------------------------------

    def serialize(self) -> str:
        cells = self._counts.ravel()
        return WIRE_DELIM.join([str(self.rows), str(self.cols), *(str(int(c)) for c in cells)])

    @classmethod
    def deserialize(cls, data: Union[str, bytes]) -> "ContingencyMatrix":
        if isinstance(data, (bytes, bytearray)):
            try:
                data = data.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedMatrixError("serialized matrix is not valid UTF-8") from e
        text = (data or "").strip()
        if not text:
            raise MalformedMatrixError("empty serialized matrix")

        tokens = text.split(WIRE_DELIM)
        try:
            values = [int(t) for t in tokens]
        except ValueError as e:
            raise MalformedMatrixError(f"non-integer token in serialized matrix: {text[:80]!r}") from e
        if len(values) < 2:
            raise MalformedMatrixError("serialized matrix lacks dimensions")

        rows, cols = values[0], values[1]
        if rows < 1 or cols < 1:
            raise MalformedMatrixError(f"invalid dimensions {rows}x{cols}")
        cells = values[2:]
        if len(cells) != rows * cols:
            raise MalformedMatrixError(
                f"expected {rows * cols} counts for a {rows}x{cols} matrix, found {len(cells)}"
            )
        if any(c < 0 for c in cells):
            raise MalformedMatrixError("negative count in serialized matrix")

        m = cls(rows, cols)
        m._counts[:, :] = np.asarray(cells, dtype=np.int64).reshape(rows, cols)
        return m

    # ------------------------------ statistics ------------------------------

    def cramer_stats(self) -> CramerResult:
        """
        Pearson chi-square and Cramer's V over the observed categories.

        - n == 0, or fewer than two observed categories on either side -> v is None.
        - Cells whose expected count is 0 contribute nothing to chi2.
        - V is clamped to [0, 1].

        Time: O(r*c). Space: O(r*c) for the expected table.
        """
        obs = self._counts.astype(float)
        n = int(self._counts.sum())
        if n == 0:
            return CramerResult(n=0, chi2=0.0, dof=0, k=0, p_value=1.0, v=None)

        rowsum = obs.sum(axis=1)
        colsum = obs.sum(axis=0)
        expected = np.outer(rowsum, colsum) / float(n)
        with np.errstate(divide="ignore", invalid="ignore"):
            chi2 = float(np.where(expected > 0.0, np.square(obs - expected) / expected, 0.0).sum())

        r_obs = int(np.count_nonzero(rowsum))
        c_obs = int(np.count_nonzero(colsum))
        k = min(r_obs - 1, c_obs - 1)
        dof = (r_obs - 1) * (c_obs - 1)
        if k <= 0:
            return CramerResult(n=n, chi2=chi2, dof=dof, k=0, p_value=1.0, v=None)

        p = float(_st.chi2.sf(chi2, dof))
        v = math.sqrt(max(chi2 / (n * k), 0.0))
        v = float(max(0.0, min(1.0, v)))
        p = float(max(0.0, min(1.0, p)))
        return CramerResult(n=n, chi2=chi2, dof=dof, k=k, p_value=p, v=v)

    def cramer_index(self) -> Optional[float]:
        return self.cramer_stats().v

    # ------------------------------ inspection ------------------------------

    def to_frame(
        self,
        row_labels: Optional[Sequence[str]] = None,
        col_labels: Optional[Sequence[str]] = None,
    ) -> pd.DataFrame:
        return pd.DataFrame(
            self._counts.copy(),
            index=list(row_labels) if row_labels is not None else None,
            columns=list(col_labels) if col_labels is not None else None,
        )


def merged(*matrices: ContingencyMatrix) -> ContingencyMatrix:
    """New matrix holding the elementwise sum of ``matrices`` (at least one)."""
    return merge_all(matrices)


def merge_all(matrices: Iterable[ContingencyMatrix]) -> ContingencyMatrix:
    it = iter(matrices)
    try:
        first = next(it)
    except StopIteration:
        raise ValueError("nothing to merge") from None
    acc = first.copy()
    for m in it:
        acc.merge(m)
    return acc
