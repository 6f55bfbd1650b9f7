"""Per-timestep worker pool with disjoint output claims."""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Hashable, Iterator, Mapping, Optional, Sequence
import numpy as np
from numpy.typing import NDArray


logger = logging.getLogger(__name__)

NUM_THREADS_ENV = "QCOLLOCATE_NUM_THREADS"


@dataclass(frozen=True)
class ParallelConfig:
    """
    Threading configuration for per-timestep loops.

    Threading is off unless enabled here or through QCOLLOCATE_NUM_THREADS.
    Enabled loops share one long-lived pool per worker count.
    """

    enabled: bool = False
    max_workers: Optional[int] = None  # None: os.cpu_count()
    min_tasks: int = 16                # below this, run serially

    @classmethod
    def from_env(cls) -> "ParallelConfig":
        """Read the worker count from QCOLLOCATE_NUM_THREADS (unset or 1: serial)."""
        raw = os.environ.get(NUM_THREADS_ENV)
        if raw is None or raw.strip() == "":
            return cls()
        try:
            n = int(raw)
        except ValueError:
            raise ValueError(
                f"{NUM_THREADS_ENV} must be an integer, got {raw!r}"
            ) from None
        if n < 1:
            raise ValueError(f"{NUM_THREADS_ENV} must be >= 1, got {n}")
        return cls(enabled=n > 1, max_workers=n)


_config = ParallelConfig.from_env()

# One long-lived pool per worker count, created on first use
_executors: dict[int, ThreadPoolExecutor] = {}
_executors_lock = threading.Lock()


def get_parallel_config() -> ParallelConfig:
    return _config


def set_parallel_config(config: ParallelConfig) -> ParallelConfig:
    """Replace the module default and shut down cached pools; returns the previous config."""
    global _config
    previous = _config
    _config = config
    shutdown_executors()
    logger.debug("parallel config set to %s", config)
    return previous


@contextmanager
def parallel_config(config: ParallelConfig) -> Iterator[ParallelConfig]:
    """Use config as the module default inside a with block."""
    previous = set_parallel_config(config)
    try:
        yield config
    finally:
        set_parallel_config(previous)


def get_executor(max_workers: int) -> ThreadPoolExecutor:
    """The cached pool with max_workers threads, created if needed."""
    with _executors_lock:
        pool = _executors.get(max_workers)
        if pool is None:
            pool = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="qcollocate"
            )
            _executors[max_workers] = pool
            logger.debug("started worker pool with %d threads", max_workers)
        return pool


def active_executors() -> int:
    """Number of cached worker pools."""
    with _executors_lock:
        return len(_executors)


def shutdown_executors() -> None:
    """Shut down and drop every cached pool."""
    with _executors_lock:
        pools = list(_executors.values())
        _executors.clear()
    for pool in pools:
        pool.shutdown(wait=True)


class DisjointPartition:
    """
    A set of tasks, each claiming a fixed set of indices in an output buffer.

    Claims are checked once at construction: no index may be claimed by
    two tasks. Tasks may then run concurrently, each writing only the
    indices it claimed, and the result does not depend on scheduling order.
    """

    def __init__(self, claims: Mapping[Hashable, Sequence]):
        """
        Args:
            claims: Task key -> sequence of index collections it writes
        """
        self.keys = list(claims.keys())
        self.claims = {
            key: tuple(np.asarray(c, dtype=np.intp) for c in claims[key])
            for key in self.keys
        }
        self._check_disjoint()

    def _check_disjoint(self) -> None:
        arrays = [c for key in self.keys for c in self.claims[key]]
        if not arrays:
            return
        flat = np.concatenate(arrays)
        unique, counts = np.unique(flat, return_counts=True)
        if np.any(counts > 1):
            shared = unique[counts > 1]
            raise ValueError(
                f"parallel tasks claim overlapping output indices: {shared[:10].tolist()}"
            )

    def __len__(self) -> int:
        return len(self.keys)

    def scatter(
        self,
        out: NDArray,
        block_fn: Callable[[Hashable], Sequence],
        config: Optional[ParallelConfig] = None,
    ) -> NDArray:
        """
        Write block_fn(key)[k] into out[claims[key][k]] for every task.

        Args:
            out: Output buffer, written in place
            block_fn: Computes one task's blocks, in claim order
            config: Threading config (module default if None)

        Returns:
            out
        """
        def work(key):
            for idx, block in zip(self.claims[key], block_fn(key)):
                out[idx] = block

        self.run(work, config)
        return out

    def run(
        self,
        fn: Callable[[Hashable], None],
        config: Optional[ParallelConfig] = None,
    ) -> None:
        """Run fn(key) for every task, on a thread pool if configured."""
        config = config or get_parallel_config()

        if not config.enabled or len(self.keys) < max(config.min_tasks, 2):
            for key in self.keys:
                fn(key)
            return

        pool = get_executor(config.max_workers or os.cpu_count() or 4)
        futures = [pool.submit(fn, key) for key in self.keys]
        # Wait for every task, then re-raise the first error
        errors = [f.exception() for f in futures]
        for error in errors:
            if error is not None:
                raise error
