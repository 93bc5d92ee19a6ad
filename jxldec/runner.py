# jxldec/runner.py
"""
Bounded worker pool handed to the decode engine.

Thread count is resolved once:
  n > 0      -> n worker threads
  0          -> no multithreading (work runs inline)
  -1 / None  -> JXLDEC_NUM_THREADS if set, else os.cpu_count()
"""
from __future__ import annotations
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional

from jxldec.utils import env_int

__all__ = ["default_num_threads", "resolve_num_threads", "ThreadRunner"]


def default_num_threads() -> int:
    envw = env_int("JXLDEC_NUM_THREADS")
    if envw is not None and envw >= 0:
        return envw
    return os.cpu_count() or 1


def resolve_num_threads(flag: Optional[int]) -> int:
    if flag is not None and flag > -1:
        return int(flag)
    return default_num_threads()


class ThreadRunner:
    def __init__(self, num_threads: int):
        self.num_threads = max(0, int(num_threads))
        self._pool: Optional[ThreadPoolExecutor] = None

    def __enter__(self) -> "ThreadRunner":
        if self.num_threads > 0:
            self._pool = ThreadPoolExecutor(max_workers=self.num_threads,
                                            thread_name_prefix="jxldec")
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def close(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def map(self, fn: Callable, items: Iterable) -> List:
        """Ordered results; exceptions from `fn` propagate to the caller."""
        items = list(items)
        if self._pool is None or len(items) <= 1:
            return [fn(x) for x in items]
        return list(self._pool.map(fn, items))
