from __future__ import annotations
from typing import Callable, Dict, Hashable, Iterable, List, TypeVar

from toolz import groupby as _groupby
from more_itertools import ilen as _ilen, unique_everseen as _unique_everseen

A = TypeVar("A")
K = TypeVar("K", bound=Hashable)


def count(it: Iterable[A]) -> int:
    # consumes the iterable without materializing it
    return _ilen(it)


def unique_stable(seq: Iterable[A]) -> List[A]:
    # Delegate to more-itertools; preserves first-seen order
    return list(_unique_everseen(seq))


def group_by(key: Callable[[A], K], seq: Iterable[A]) -> Dict[K, List[A]]:
    # toolz.groupby keeps arrival order inside each group
    return _groupby(key, seq)
