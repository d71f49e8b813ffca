"""Key partitioning and per-partition parallel execution.

Stages that are embarrassingly parallel by key (decade) split their input
into partitions, hand each partition to a worker, and concatenate the
per-partition results in ascending key order. Partitions are never merged:
any ordering a stage establishes is local to one partition, and callers
must not read a global order into the concatenated stream.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, ProcessPoolExecutor, as_completed
from typing import (
    Any,
    Callable,
    Dict,
    Hashable,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Type,
    TypeVar,
)

from setproctitle import setproctitle
from tqdm import tqdm

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
T = TypeVar("T")
R = TypeVar("R")

__all__ = [
    "partition_by_key",
    "map_partitions",
    "concat_partitions",
    "sort_partitions",
]


def partition_by_key(records: Iterable[T], key: Callable[[T], K]) -> Dict[K, List[T]]:
    """Group records into lists by key, preserving arrival order inside each list."""
    partitions: Dict[K, List[T]] = {}
    for rec in records:
        k = key(rec)
        bucket = partitions.get(k)
        if bucket is None:
            partitions[k] = bucket = []
        bucket.append(rec)
    return partitions


def _init_worker() -> None:
    setproctitle("ngt:partition-worker")


def map_partitions(
    func: Callable[..., R],
    tasks: Mapping[K, Tuple[Any, ...]],
    *,
    workers: int = 1,
    executor_class: Optional[Type[Executor]] = None,
    desc: str = "Partitions",
    progress: bool = False,
) -> Dict[K, R]:
    """
    Run ``func(key, *args)`` for every ``key -> args`` entry in ``tasks``.

    With ``workers <= 1`` everything runs inline in the calling process.
    Otherwise tasks are submitted to ``executor_class`` (default
    ProcessPoolExecutor; ``func`` and its arguments must then be picklable).
    Completion order between keys is unspecified; results come back keyed.
    Any task failure is re-raised after logging.
    """
    results: Dict[K, R] = {}
    if not tasks:
        return results

    with tqdm(total=len(tasks), desc=desc, unit="parts", disable=not progress) as pbar:
        if workers <= 1:
            for k, args in tasks.items():
                results[k] = func(k, *args)
                pbar.update(1)
            return results

        executor_class = executor_class or ProcessPoolExecutor
        kwargs: Dict[str, Any] = {"max_workers": workers}
        if issubclass(executor_class, ProcessPoolExecutor):
            kwargs["initializer"] = _init_worker

        with executor_class(**kwargs) as executor:
            futures = {executor.submit(func, k, *args): k for k, args in tasks.items()}
            for fut in as_completed(futures):
                k = futures[fut]
                try:
                    results[k] = fut.result()
                except Exception:
                    logger.exception("%s: partition %r failed", desc, k)
                    raise
                finally:
                    pbar.update(1)

    return results


def concat_partitions(results: Mapping[K, Sequence[T]]) -> Iterator[T]:
    """Yield each partition's items in turn, partitions in ascending key order."""
    for k in sorted(results):
        yield from results[k]


def _sort_one(_key: Any, items: List[T], sort_key: Callable[[T], Any]) -> List[T]:
    return sorted(items, key=sort_key)


def sort_partitions(
    partitions: Mapping[K, List[T]],
    sort_key: Callable[[T], Any],
    *,
    workers: int = 1,
    executor_class: Optional[Type[Executor]] = None,
    progress: bool = False,
) -> Iterator[T]:
    """
    Sort each partition independently by ``sort_key`` and concatenate.

    The result is ordered within each partition only.
    """
    tasks = {k: (items, sort_key) for k, items in partitions.items()}
    sorted_parts = map_partitions(
        _sort_one,
        tasks,
        workers=workers,
        executor_class=executor_class,
        desc="Sorting partitions",
        progress=progress,
    )
    return concat_partitions(sorted_parts)
