from __future__ import annotations
from dataclasses import dataclass
from io import StringIO
from itertools import islice
from typing import Iterator, List, Sequence
import pandas as pd

from ..utils.fp import count
from .storage import Storage, is_data_file

DEFAULT_SPLIT_SIZE = 100_000

SCORE_COLUMNS = ("source", "dest", "score")
CHI2_COLUMNS = ("chi2", "dof", "p_value", "n")


@dataclass(frozen=True)
class InputSplit:
    """
    A contiguous run of ``length`` lines of one input file starting at line
    ``offset``; the unit of map work. Only the descriptor travels to the
    worker, which reads its own lines.
    """
    split_id: int
    path: str
    offset: int
    length: int

    def __len__(self) -> int:
        return self.length


def _chomp(raw: bytes) -> bytes:
    # records end at b"\n" only; a trailing b"\r" belongs to the line ending
    if raw.endswith(b"\n"):
        raw = raw[:-1]
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    return raw


def iter_raw_lines(storage: Storage, path: str) -> Iterator[bytes]:
    """Stream the raw records of one file, line endings removed, undecoded."""
    with storage.open(path, "rb") as f:
        for raw in f:
            yield _chomp(raw)


def count_lines(storage: Storage, path: str) -> int:
    return count(iter_raw_lines(storage, path))


def read_split(storage: Storage, split: InputSplit) -> Iterator[bytes]:
    """Stream exactly the lines a split covers."""
    with storage.open(split.path, "rb") as f:
        for raw in islice(f, split.offset, split.offset + split.length):
            yield _chomp(raw)


def iter_splits(
    storage: Storage,
    paths: Sequence[str],
    split_size: int = DEFAULT_SPLIT_SIZE,
) -> Iterator[InputSplit]:
    """
    Cut every input file into splits of at most ``split_size`` lines.
    Splits never span files; ids are assigned in file order. Files are
    scanned once for their line count, nothing is kept in memory.
    """
    if split_size < 1:
        raise ValueError("split size must be >= 1")
    sid = 0
    for path in paths:
        total = count_lines(storage, path)
        for offset in range(0, total, split_size):
            yield InputSplit(split_id=sid, path=path, offset=offset, length=min(split_size, total - offset))
            sid += 1


def read_scores(
    storage: Storage,
    output_dir: str,
    *,
    delim: str = ",",
    include_chi2: bool = False,
    undefined_marker: str = "undefined",
) -> pd.DataFrame:
    """
    Load every ``part-r-*`` file of a finished job into one DataFrame.
    Undefined scores become NaN.
    """
    names = list(SCORE_COLUMNS) + (list(CHI2_COLUMNS) if include_chi2 else [])
    parts = sorted(p for p in storage.ls(output_dir) if is_data_file(p) and "part-r-" in p)
    frames: List[pd.DataFrame] = []
    for p in parts:
        text = storage.read_bytes(p).decode("utf-8")
        if not text.strip():
            continue
        frames.append(pd.read_csv(
            StringIO(text), sep=delim, header=None, names=names,
            na_values=[undefined_marker], keep_default_na=False, dtype={"source": str, "dest": str},
        ))
    if not frames:
        return pd.DataFrame(columns=names)
    return pd.concat(frames, ignore_index=True)
