"""Indexing and threading utilities."""

from qcollocate.utils.indexing import slice_indices, index, timestep_slices
from qcollocate.utils.parallel import (
    DisjointPartition,
    ParallelConfig,
    get_parallel_config,
    set_parallel_config,
    parallel_config,
    shutdown_executors,
)

__all__ = [
    "slice_indices",
    "index",
    "timestep_slices",
    "DisjointPartition",
    "ParallelConfig",
    "get_parallel_config",
    "set_parallel_config",
    "parallel_config",
    "shutdown_executors",
]
