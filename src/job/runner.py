from __future__ import annotations

"""
Single-machine map/reduce driver for the Cramer correlation job.

Phases
------
1. split    : input files -> InputSplit descriptors (path, first line, line
              count; never spanning files)
2. map      : one PartitionAccumulator per split, run in a worker pool; each
              task streams its own lines from storage and emits at most one
              serialized matrix per attribute pair
3. shuffle  : group emissions by AttributePair, route each key to exactly one
              reducer with a stable hash partitioner, keys sorted per reducer
4. reduce   : one PairAggregator per reducer, at most ``num_reducers`` at once
5. commit   : ``part-r-NNNNN`` per reducer, then ``_SUCCESS``

Workers share nothing but the read-only FeatureSchema. A structural failure
(SchemaMismatchError, MalformedMatrixError) aborts the whole run before the
commit, so no ``_SUCCESS`` marker is written. Rerunning always recomputes from
the input; stale output of a failed run must be removed first
(``job.overwrite = true`` does that).
"""

from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar
import logging

from ..config_model.model import RootCfg, ScoringCfg
from ..correlation.accumulator import Emission, PartitionAccumulator
from ..correlation.aggregator import PairAggregator
from ..correlation.contingency import AttributePair
from ..correlation.counters import JobCounters
from ..io.readers import InputSplit, iter_splits, read_split
from ..io.storage import Storage, build_storage_from_config
from ..io.writers import prepare_output, write_part, write_success
from ..schema.feature_schema import FeatureSchema, load_schema
from ..utils.fp import group_by
from ..utils.log import get_job_logger

T = TypeVar("T")
R = TypeVar("R")

ReducerInput = List[Tuple[AttributePair, List[str]]]


@dataclass(frozen=True)
class MapOutput:
    split_id: int
    emissions: List[Emission]
    counters: JobCounters


@dataclass(frozen=True)
class ReduceOutput:
    reducer: int
    lines: List[str]
    counters: JobCounters


@dataclass
class JobResult:
    output_path: str
    parts: List[str] = field(default_factory=list)
    lines: List[str] = field(default_factory=list)
    counters: JobCounters = field(default_factory=JobCounters)
    num_splits: int = 0


# ------------------------------ tasks (module level: picklable) ------------------------------

def run_map_task(
    split: InputSplit,
    *,
    storage: Storage,
    schema: FeatureSchema,
    source_attributes: Sequence[int],
    dest_attributes: Sequence[int],
    field_delim_regex: str,
    log_name: str = __name__,
) -> MapOutput:
    log = logging.getLogger(log_name)
    acc = PartitionAccumulator(field_delim_regex, log=log).setup(source_attributes, dest_attributes, schema)
    acc.process_all(read_split(storage, split))
    emissions = acc.finish()
    log.debug("map task done", extra={"split_id": split.split_id, "path": split.path, "lines": len(split)})
    return MapOutput(split_id=split.split_id, emissions=emissions, counters=acc.counters)


def run_reduce_task(
    task: Tuple[int, ReducerInput],
    *,
    schema: FeatureSchema,
    scoring: ScoringCfg,
    field_delim_out: str,
    log_name: str = __name__,
) -> ReduceOutput:
    reducer, groups = task
    agg = PairAggregator(
        schema,
        field_delim_out=field_delim_out,
        scale=scoring.correlation_scale,
        undefined_marker=scoring.undefined_marker,
        include_chi2=scoring.include_chi2,
        log=logging.getLogger(log_name),
    )
    lines = [agg.reduce(key, values) for key, values in groups]
    return ReduceOutput(reducer=reducer, lines=lines, counters=agg.counters)


# ------------------------------ shuffle ------------------------------

def partition_for(key: AttributePair, num_reducers: int) -> int:
    """Stable across processes and runs (unlike hash() of a str)."""
    return (key.source * 31 + key.dest) % num_reducers


def shuffle(outputs: Sequence[MapOutput], num_reducers: int) -> List[ReducerInput]:
    """
    Route every emission to one reducer. Values for a key keep split order;
    keys are sorted within each reducer.
    """
    ordered = sorted(outputs, key=lambda o: o.split_id)
    flat = [e for o in ordered for e in o.emissions]
    by_key: Dict[AttributePair, List[Emission]] = group_by(lambda e: e[0], flat)

    buckets: List[ReducerInput] = [[] for _ in range(num_reducers)]
    for key in sorted(by_key):
        buckets[partition_for(key, num_reducers)].append((key, [v for _, v in by_key[key]]))
    return buckets


# ------------------------------ execution ------------------------------

def _run_parallel(kind: str, workers: int, fn: Callable[[T], R], items: Sequence[T]) -> List[R]:
    # Executor.map keeps input order; the first worker exception is re-raised here
    if kind == "serial" or workers <= 1 or len(items) <= 1:
        return [fn(x) for x in items]
    pool_cls = ProcessPoolExecutor if kind == "process" else ThreadPoolExecutor
    with pool_cls(max_workers=min(workers, len(items))) as pool:
        return list(pool.map(fn, items))


def run_job(
    cfg: RootCfg,
    *,
    storage: Optional[Storage] = None,
    log: Optional[logging.Logger] = None,
) -> JobResult:
    cfg.require_runnable()
    job = cfg.job
    log = log or get_job_logger(cfg, "job")
    storage = storage or build_storage_from_config(cfg)

    schema = load_schema(cfg.feature_schema.feature_schema_file_path)
    # fail on bad declarations before touching input or output
    pairs = PartitionAccumulator(job.field_delim_regex).setup(
        job.source_attributes, job.dest_attributes, schema
    ).pairs
    log.info("job setup", extra={"pairs": [p.to_wire() for p in pairs], "reducers": job.num_reducers})

    prepare_output(storage, job.output_path, overwrite=job.overwrite)

    files = storage.list_inputs(job.input_paths)
    splits = list(iter_splits(storage, files, job.split_size))
    log.info("input split", extra={"files": len(files), "splits": len(splits)})

    map_fn = partial(
        run_map_task,
        storage=storage,
        schema=schema,
        source_attributes=tuple(job.source_attributes),
        dest_attributes=tuple(job.dest_attributes),
        field_delim_regex=job.field_delim_regex,
        log_name=log.name,
    )
    map_outputs = _run_parallel(job.executor, job.num_mappers, map_fn, splits)

    buckets = shuffle(map_outputs, job.num_reducers)
    log.info(
        "shuffle done",
        extra={"messages": sum(len(o.emissions) for o in map_outputs), "keys_per_reducer": [len(b) for b in buckets]},
    )

    reduce_fn = partial(
        run_reduce_task,
        schema=schema,
        scoring=cfg.scoring,
        field_delim_out=job.field_delim_out,
        log_name=log.name,
    )
    reduce_outputs = _run_parallel(job.executor, job.num_reducers, reduce_fn, list(enumerate(buckets)))

    result = JobResult(output_path=job.output_path, num_splits=len(splits))
    for out in sorted(reduce_outputs, key=lambda r: r.reducer):
        result.parts.append(write_part(storage, job.output_path, out.reducer, out.lines))
        result.lines.extend(out.lines)
    write_success(storage, job.output_path)

    result.counters = JobCounters.total([o.counters for o in map_outputs] + [r.counters for r in reduce_outputs])
    log.info("job finished", extra={"output": job.output_path, "counters": result.counters.as_dict()})
    return result
