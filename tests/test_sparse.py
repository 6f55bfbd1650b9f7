"""Tests for sparse triplet helpers."""

import numpy as np
import pytest
import scipy.sparse

from qcollocate.algebra.sparse import (
    as_structure,
    concat_structures,
    dense_to_triplets,
    duplicate_entries,
    shift_structure,
    triplets_to_sparse,
    upper,
    values_at,
)


def test_as_structure_empty():
    s = as_structure([])
    assert s.shape == (0, 2)
    assert s.dtype == np.intp


def test_upper_and_shift():
    s = upper([(3, 1), (0, 2)])
    assert np.array_equal(s, [[1, 3], [0, 2]])
    assert np.array_equal(shift_structure(s, 10), [[11, 13], [10, 12]])


def test_concat_keeps_duplicates_in_order():
    s = concat_structures([[(0, 0)], [(0, 0), (1, 2)]])
    assert np.array_equal(s, [[0, 0], [0, 0], [1, 2]])
    assert np.array_equal(duplicate_entries(s), [[0, 0]])


def test_duplicate_entries_folds_triangles():
    assert np.array_equal(duplicate_entries([(0, 1), (1, 0)]), [[0, 1]])
    assert duplicate_entries([(0, 1), (1, 1)]).shape == (0, 2)


def test_triplets_to_sparse_mirrors_and_sums():
    structure = [(0, 0), (0, 1), (0, 0)]
    H = triplets_to_sparse(structure, [1.0, 2.0, 3.0], 2).toarray()
    assert np.allclose(H, [[4.0, 2.0], [2.0, 0.0]])

    H = triplets_to_sparse(structure, [1.0, 2.0, 3.0], 2, symmetric=False).toarray()
    assert np.allclose(H, [[4.0, 2.0], [0.0, 0.0]])

    with pytest.raises(ValueError):
        triplets_to_sparse(structure, [1.0], 2)


def test_dense_to_triplets_round_trip():
    H = np.array([[2.0, -1.0, 0.0], [-1.0, 2.0, -1.0], [0.0, -1.0, 2.0]])
    structure, values = dense_to_triplets(H)
    assert np.all(structure[:, 0] <= structure[:, 1])
    assert np.array_equal(structure, [[0, 0], [0, 1], [1, 1], [1, 2], [2, 2]])
    assert np.allclose(triplets_to_sparse(structure, values, 3).toarray(), H)
    assert np.allclose(values_at(H, structure), values)
    assert np.allclose(values_at(scipy.sparse.csr_matrix(H), structure), values)
