from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from src.correlation.accumulator import PartitionAccumulator, accumulate, declare_pairs
from src.correlation.contingency import AttributePair, ContingencyMatrix, merged
from src.utils.errors import SchemaError


def test_declare_pairs_source_outer_dest_inner_without_self_pairs():
    pairs = declare_pairs([1, 2, 3], [3, 4, 1])
    assert [(p.source, p.dest) for p in pairs] == [
        (1, 3), (1, 4),
        (2, 3), (2, 4), (2, 1),
        (3, 4), (3, 1),
    ]
    # reproducible
    assert declare_pairs([1, 2, 3], [3, 4, 1]) == pairs

def test_declare_pairs_dedupes_repeated_ordinals():
    assert declare_pairs([1, 1, 2], [2, 2]) == [AttributePair(1, 2)]

def test_setup_allocates_zero_matrices_sized_by_cardinality(ab_schema):
    acc = PartitionAccumulator().setup([1, 3], [2, 3], ab_schema)
    assert acc.pairs == (AttributePair(1, 2), AttributePair(1, 3), AttributePair(3, 2))
    assert acc.matrices[AttributePair(1, 3)].shape == (2, 3)
    assert acc.matrices[AttributePair(3, 2)].shape == (3, 2)
    assert all(m.total == 0 for m in acc.matrices.values())

def test_setup_rejects_unknown_or_non_categorical_fields(ab_schema):
    with pytest.raises(SchemaError):
        PartitionAccumulator().setup([1], [9], ab_schema)
    with pytest.raises(SchemaError):
        PartitionAccumulator().setup([0], [1], ab_schema)

def test_scenario_builds_expected_matrix(ab_schema, records):
    out = accumulate(records, [1], [2], ab_schema)
    assert out[AttributePair(1, 2)] == ContingencyMatrix.from_counts([[3, 1], [1, 3]])

def test_matches_pandas_crosstab(ab_schema):
    rng = np.random.default_rng(11)
    left = rng.choice(["A", "B"], size=300)
    tri = rng.choice(["x", "y", "z"], size=300, p=[0.5, 0.3, 0.2])
    lines = [f"r{i},{a},A,{t},only" for i, (a, t) in enumerate(zip(left, tri))]

    got = accumulate(lines, [1], [3], ab_schema)[AttributePair(1, 3)]
    ref = pd.crosstab(pd.Series(left), pd.Series(tri)).reindex(index=["A", "B"], columns=["x", "y", "z"], fill_value=0)
    np.testing.assert_array_equal(got.counts, ref.to_numpy())

def test_partials_over_disjoint_splits_merge_to_whole(ab_schema, records):
    pairs = ([1, 3], [2])
    whole = accumulate(records, *pairs, ab_schema)
    parts = [accumulate(records[i:i + 3], *pairs, ab_schema) for i in range(0, len(records), 3)]
    for key, m in whole.items():
        assert merged(*(p[key] for p in parts)) == m

def test_unrecognized_value_skips_only_affected_pairs(ab_schema):
    acc = PartitionAccumulator().setup([1], [2, 3], ab_schema)
    acc.process("r1,A,B,q,only")   # 'q' is not a tri category
    acc.process("r2,C,A,x,only")   # 'C' is not a left category
    m12 = acc.matrices[AttributePair(1, 2)]
    m13 = acc.matrices[AttributePair(1, 3)]
    assert m12 == ContingencyMatrix.from_counts([[0, 1], [0, 0]])
    assert m13.total == 0
    assert acc.counters.unrecognized_values == 2
    assert acc.counters.skipped_increments == 3
    assert acc.counters.pair_increments == 1

def test_short_and_blank_records(ab_schema):
    acc = PartitionAccumulator().setup([1], [3], ab_schema)
    acc.process("")
    acc.process("   \n")
    acc.process("r1,A,B")          # ordinal 3 missing
    acc.process("r2,B,A,z,only\n")
    assert acc.counters.blank_records == 2
    assert acc.counters.malformed_records == 1
    assert acc.counters.records == 2
    assert acc.matrices[AttributePair(1, 3)][1, 2] == 1

def test_values_are_stripped_and_regex_delimiter(ab_schema):
    acc = PartitionAccumulator(field_delim_regex=r"\s*;\s*").setup([1], [2], ab_schema)
    acc.process("r1 ; A ;B; x ; only")
    assert acc.matrices[AttributePair(1, 2)][0, 1] == 1

def test_finish_emits_each_pair_once_in_declaration_order(ab_schema, records):
    acc = PartitionAccumulator().setup([1, 2], [2, 1, 3], ab_schema)
    acc.process_all(records)
    out = acc.finish()
    assert [k for k, _ in out] == list(acc.pairs)
    assert len(out) == len(set(k for k, _ in out))
    assert dict(out)[AttributePair(1, 2)] == "2,2,3,1,1,3"
    assert acc.counters.partitions == 1

def test_finish_closes_accumulator(ab_schema):
    acc = PartitionAccumulator().setup([1], [2], ab_schema)
    acc.finish()
    with pytest.raises(RuntimeError):
        acc.process("r1,A,A,x,only")
    with pytest.raises(RuntimeError):
        acc.finish()

def test_process_before_setup_fails():
    with pytest.raises(RuntimeError):
        PartitionAccumulator().process("a,b")

def test_bytes_records_are_decoded_and_bad_bytes_discarded(ab_schema):
    acc = PartitionAccumulator().setup([1], [2], ab_schema)
    acc.process_all([b"r1,A,B,x,only", b"r2,\xff\xfe,A,x,only", b"", "r3,B,B,x,only"])
    assert acc.matrices[AttributePair(1, 2)] == ContingencyMatrix.from_counts([[0, 1], [0, 1]])
    assert acc.counters.records == 3
    assert acc.counters.malformed_records == 1
    assert acc.counters.blank_records == 1
    assert acc.counters.unrecognized_values == 0
