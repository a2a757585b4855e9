from __future__ import annotations
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union
from types import MappingProxyType
import logging
import re

from ..schema.feature_schema import FeatureField, FeatureSchema
from ..utils.errors import UnrecognizedCategoryError
from ..utils.fp import unique_stable
from .contingency import AttributePair, ContingencyMatrix
from .counters import JobCounters

Emission = Tuple[AttributePair, str]


def declare_pairs(source_attributes: Iterable[int], dest_attributes: Iterable[int]) -> List[AttributePair]:
    """
    Cross product of source x destination ordinals, source outer, destination
    inner, self-pairs skipped. Repeated ordinals are declared once.
    """
    srcs = unique_stable(int(s) for s in source_attributes)
    dsts = unique_stable(int(d) for d in dest_attributes)
    return [AttributePair(s, d) for s in srcs for d in dsts if s != d]


class PartitionAccumulator:
    """
    Map side of the job: owns one contingency matrix per declared attribute
    pair for a single input partition and emits each exactly once at the end.

    Error policy for records:
    - blank line: ignored.
    - bytes that do not decode with ``encoding``: record discarded.
    - fewer fields than the highest ordinal in use: whole record discarded.
    - value outside its field's categories: only the pairs using that field
      skip this record; the other pairs still count it.
    """

    def __init__(
        self,
        field_delim_regex: str = ",",
        log: Optional[logging.Logger] = None,
        encoding: str = "utf-8",
    ) -> None:
        self.encoding = encoding
        self._splitter = re.compile(field_delim_regex)
        self._log = log or logging.getLogger(__name__)
        self._pairs: List[AttributePair] = []
        self._matrices: Dict[AttributePair, ContingencyMatrix] = {}
        self._fields: Dict[int, FeatureField] = {}
        self._max_ordinal = -1
        self._ready = False
        self._closed = False
        self.counters = JobCounters()

    # ------------------------------ lifecycle ------------------------------

    def setup(
        self,
        source_attributes: Sequence[int],
        dest_attributes: Sequence[int],
        schema: FeatureSchema,
    ) -> "PartitionAccumulator":
        pairs = declare_pairs(source_attributes, dest_attributes)
        fields: Dict[int, FeatureField] = {}
        matrices: Dict[AttributePair, ContingencyMatrix] = {}
        for pair in pairs:
            src = fields.get(pair.source) or schema.categorical_field(pair.source)
            dst = fields.get(pair.dest) or schema.categorical_field(pair.dest)
            fields[pair.source] = src
            fields[pair.dest] = dst
            self._log.debug("declare pair", extra={"pair": pair.to_wire(), "shape": [src.size, dst.size]})
            matrices[pair] = ContingencyMatrix(src.size, dst.size)

        self._pairs = pairs
        self._matrices = matrices
        self._fields = fields
        self._max_ordinal = max(fields, default=-1)
        self._ready = True
        self._closed = False
        return self

    @property
    def pairs(self) -> Tuple[AttributePair, ...]:
        return tuple(self._pairs)

    @property
    def matrices(self) -> Mapping[AttributePair, ContingencyMatrix]:
        return MappingProxyType(self._matrices)

    def _check_open(self) -> None:
        if not self._ready:
            raise RuntimeError("accumulator used before setup()")
        if self._closed:
            raise RuntimeError("accumulator already finished")

    # ------------------------------ map ------------------------------

    def process(self, record: Union[str, bytes]) -> None:
        self._check_open()
        if isinstance(record, (bytes, bytearray)):
            try:
                record = record.decode(self.encoding)
            except UnicodeDecodeError as e:
                self.counters.records += 1
                self.counters.malformed_records += 1
                self._log.debug("undecodable record discarded", extra={"error": str(e)})
                return
        line = record.rstrip("\r\n")
        if not line.strip():
            self.counters.blank_records += 1
            return

        self.counters.records += 1
        items = self._splitter.split(line)
        if len(items) <= self._max_ordinal:
            self.counters.malformed_records += 1
            self._log.debug("short record discarded", extra={"fields": len(items), "needed": self._max_ordinal + 1})
            return

        # resolve each ordinal once per record; None marks an unrecognized value
        index: Dict[int, Optional[int]] = {}
        for ordinal, fld in self._fields.items():
            try:
                index[ordinal] = fld.category_index(items[ordinal])
            except UnrecognizedCategoryError as e:
                index[ordinal] = None
                self.counters.unrecognized_values += 1
                self._log.debug(str(e))

        for pair in self._pairs:
            i = index[pair.source]
            j = index[pair.dest]
            if i is None or j is None:
                self.counters.skipped_increments += 1
                continue
            self._matrices[pair].increment(i, j)
            self.counters.pair_increments += 1

    def process_all(self, records: Iterable[Union[str, bytes]]) -> "PartitionAccumulator":
        for r in records:
            self.process(r)
        return self

    def finish(self) -> List[Emission]:
        """Serialize every matrix once, in declaration order, and close."""
        self._check_open()
        out = [(pair, self._matrices[pair].serialize()) for pair in self._pairs]
        self._closed = True
        self.counters.partitions += 1
        self._log.debug(
            "partition finished",
            extra={"pairs": len(out), "counters": self.counters.as_dict()},
        )
        return out


def accumulate(
    records: Iterable[str],
    source_attributes: Sequence[int],
    dest_attributes: Sequence[int],
    schema: FeatureSchema,
    *,
    field_delim_regex: str = ",",
) -> Dict[AttributePair, ContingencyMatrix]:
    """Build the partial matrices for ``records`` without any job machinery."""
    acc = PartitionAccumulator(field_delim_regex).setup(source_attributes, dest_attributes, schema)
    acc.process_all(records)
    return {pair: acc.matrices[pair].copy() for pair in acc.pairs}
