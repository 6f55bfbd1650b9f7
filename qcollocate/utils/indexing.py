"""Index utilities for the flattened decision vector."""

from typing import Iterable, Sequence, Union
import numpy as np
from numpy.typing import NDArray


LocalIndices = Union[range, Sequence[int], NDArray]


def slice_indices(t: int, local: LocalIndices, dim: int) -> Union[range, NDArray]:
    """
    Map a component's local indices at timestep t into the flat vector.

    The flat vector is laid out as contiguous per-timestep blocks of width
    dim, so the absolute indices are local + t * dim.

    Args:
        t: Timestep index (0-based)
        local: Local indices within a timestep block (range or int array)
        dim: Block width

    Returns:
        A range for range input, an integer array otherwise
    """
    if t < 0:
        raise IndexError(f"timestep must be nonnegative, got {t}")

    if isinstance(local, range):
        if len(local) > 0 and (local.start < 0 or local.stop > dim):
            raise IndexError(f"local range {local} outside block of width {dim}")
        offset = t * dim
        return range(local.start + offset, local.stop + offset)

    local = np.asarray(local, dtype=np.intp)
    if local.size > 0 and (local.min() < 0 or local.max() >= dim):
        raise IndexError(f"local indices outside block of width {dim}")
    return local + t * dim


def index(t: int, i: int, dim: int) -> int:
    """Absolute flat index of local index i at timestep t."""
    if t < 0 or not 0 <= i < dim:
        raise IndexError(f"index ({t}, {i}) outside block of width {dim}")
    return t * dim + i


def timestep_slices(
    times: Iterable[int], local: LocalIndices, dim: int
) -> list[Union[range, NDArray]]:
    """Slices of one component at each timestep in times."""
    return [slice_indices(t, local, dim) for t in times]


def as_index_array(indices: Union[range, NDArray]) -> NDArray:
    """Convert a resolved slice into an integer array."""
    return np.asarray(indices, dtype=np.intp)
