"""Isomorphisms and sparse triplet helpers."""

from qcollocate.algebra.isomorphisms import (
    ket_to_iso,
    iso_to_ket,
    operator_to_iso_vec,
    iso_vec_to_operator,
    iso_vec_subspace_indices,
)
from qcollocate.algebra.sparse import (
    dense_to_triplets,
    triplets_to_sparse,
    values_at,
    duplicate_entries,
)

__all__ = [
    "ket_to_iso",
    "iso_to_ket",
    "operator_to_iso_vec",
    "iso_vec_to_operator",
    "iso_vec_subspace_indices",
    "dense_to_triplets",
    "triplets_to_sparse",
    "values_at",
    "duplicate_entries",
]
