"""Sparse symmetric triplet helpers for Hessian assembly."""

from typing import Sequence, Union
import numpy as np
import scipy.sparse
from numpy.typing import NDArray


def empty_structure() -> NDArray:
    return np.zeros((0, 2), dtype=np.intp)


def empty_values() -> NDArray:
    return np.zeros(0)


def as_structure(pairs) -> NDArray:
    """Normalize a list of (row, col) pairs to an (nnz, 2) integer array."""
    structure = np.asarray(pairs, dtype=np.intp)
    if structure.size == 0:
        return empty_structure()
    return structure.reshape(-1, 2)


def upper(structure: NDArray) -> NDArray:
    """Swap each (row, col) so that row <= col."""
    structure = as_structure(structure)
    return np.sort(structure, axis=1)


def shift_structure(structure: NDArray, offset: int) -> NDArray:
    """Shift local (i, j) offsets by a flat base offset."""
    return as_structure(structure) + offset


def concat_structures(structures: Sequence[NDArray]) -> NDArray:
    """Concatenate structures, preserving order and duplicates."""
    structures = [as_structure(s) for s in structures]
    if not structures:
        return empty_structure()
    return np.concatenate(structures, axis=0)


def concat_values(values: Sequence[NDArray]) -> NDArray:
    values = [np.asarray(v, dtype=float).ravel() for v in values]
    if not values:
        return empty_values()
    return np.concatenate(values)


def values_at(H: Union[NDArray, scipy.sparse.spmatrix], structure: NDArray) -> NDArray:
    """Entries of H at each (row, col) of structure, in order."""
    structure = as_structure(structure)
    if structure.shape[0] == 0:
        return empty_values()
    if scipy.sparse.issparse(H):
        H = H.tocsr()
        return np.asarray(H[structure[:, 0], structure[:, 1]]).ravel().astype(float)
    return np.asarray(H)[structure[:, 0], structure[:, 1]].astype(float)


def dense_to_triplets(
    H: Union[NDArray, scipy.sparse.spmatrix],
    upper_only: bool = True,
) -> tuple[NDArray, NDArray]:
    """
    Convert a (dense or sparse) symmetric matrix into triplet form.

    Args:
        H: Square matrix
        upper_only: Keep only entries with row <= col

    Returns:
        (structure, values) of the stored nonzeros, row-major order
    """
    A = scipy.sparse.coo_matrix(H)
    if upper_only:
        A = scipy.sparse.triu(A, format="coo")
    A.sum_duplicates()
    A.eliminate_zeros()
    order = np.lexsort((A.col, A.row))
    structure = np.column_stack([A.row[order], A.col[order]]).astype(np.intp)
    return as_structure(structure), np.asarray(A.data[order], dtype=float)


def triplets_to_sparse(
    structure: NDArray,
    values: NDArray,
    n: int,
    symmetric: bool = True,
) -> scipy.sparse.csr_matrix:
    """
    Assemble an n x n matrix from triplets, summing duplicate entries.

    With symmetric=True each off-diagonal entry is mirrored, so a triangle
    stored by a term yields the full symmetric matrix.
    """
    structure = as_structure(structure)
    values = np.asarray(values, dtype=float).ravel()
    if structure.shape[0] != values.shape[0]:
        raise ValueError(
            f"structure has {structure.shape[0]} entries but values has {values.shape[0]}"
        )

    rows, cols = structure[:, 0], structure[:, 1]
    if symmetric:
        off = rows != cols
        rows, cols, values = (
            np.concatenate([rows, cols[off]]),
            np.concatenate([cols, rows[off]]),
            np.concatenate([values, values[off]]),
        )
    return scipy.sparse.coo_matrix((values, (rows, cols)), shape=(n, n)).tocsr()


def duplicate_entries(structure: NDArray) -> NDArray:
    """(row, col) pairs that occur more than once, after folding to row <= col."""
    structure = upper(structure)
    if structure.shape[0] == 0:
        return empty_structure()
    unique, counts = np.unique(structure, axis=0, return_counts=True)
    return unique[counts > 1]
