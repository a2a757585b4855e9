from __future__ import annotations
from dataclasses import asdict, dataclass, fields
from typing import Dict, Iterable


@dataclass
class JobCounters:
    """Per-partition (or per-job, once summed) processing counts."""
    records: int = 0
    blank_records: int = 0
    malformed_records: int = 0
    unrecognized_values: int = 0
    skipped_increments: int = 0
    pair_increments: int = 0
    partitions: int = 0
    pairs_scored: int = 0
    undefined_scores: int = 0

    def merge(self, other: "JobCounters") -> "JobCounters":
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))
        return self

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)

    @classmethod
    def total(cls, parts: Iterable["JobCounters"]) -> "JobCounters":
        out = cls()
        for p in parts:
            out.merge(p)
        return out
