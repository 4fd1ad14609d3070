from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def map_ordered(fn: Callable[[T], R], items: Iterable[T], *, max_workers: int = 1) -> List[R]:
    """
    Apply fn to every item; results come back in input order.
    max_workers=1 runs inline on the calling thread.
    """
    items = list(items)
    if max_workers <= 1 or len(items) <= 1:
        return [fn(it) for it in items]
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="licsync") as ex:
        return list(ex.map(fn, items))
