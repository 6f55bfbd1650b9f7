"""Tests for the real isomorphisms of kets and operators."""

import numpy as np
import pytest

from qcollocate.algebra.isomorphisms import (
    iso_overlap_directions,
    iso_to_ket,
    iso_vec_dim,
    iso_vec_subspace_indices,
    iso_vec_to_operator,
    ket_to_iso,
    operator_to_iso_vec,
    validate_subspace,
)


def random_operator(N):
    return np.random.randn(N, N) + 1j * np.random.randn(N, N)


def test_ket_iso():
    psi = np.array([1.0 + 2.0j, -0.5j])
    assert np.allclose(ket_to_iso(psi), [1.0, 0.0, 2.0, -0.5])
    assert np.allclose(iso_to_ket(ket_to_iso(psi)), psi)


def test_operator_iso_vec_layout():
    """Columns are stacked as [Re col; Im col]."""
    U = np.array([[1.0, 2.0j], [3.0, 4.0 + 1.0j]])
    assert np.allclose(operator_to_iso_vec(U), [1.0, 3.0, 0.0, 0.0, 0.0, 4.0, 2.0, 1.0])
    assert np.allclose(iso_vec_to_operator(operator_to_iso_vec(U)), U)


def test_iso_vec_dim():
    assert iso_vec_dim(8) == 2
    assert iso_vec_dim(18) == 3
    with pytest.raises(ValueError):
        iso_vec_dim(10)


def test_subspace_indices_select_block():
    """Selected iso entries form the iso vector of the subspace block."""
    np.random.seed(0)
    U = random_operator(3)
    subspace = [0, 2]
    idx = iso_vec_subspace_indices(3, subspace)
    block = U[np.ix_(subspace, subspace)]
    assert np.allclose(operator_to_iso_vec(U)[idx], operator_to_iso_vec(block))


def test_subspace_indices_full():
    assert np.array_equal(iso_vec_subspace_indices(2), np.arange(8))
    assert np.array_equal(iso_vec_subspace_indices(2, []), np.arange(8))


def test_validate_subspace():
    assert validate_subspace(None, 3) is None
    assert validate_subspace([], 3) is None
    assert np.array_equal(validate_subspace([2, 0], 3), [0, 2])
    with pytest.raises(ValueError):
        validate_subspace([0, 3], 3)
    with pytest.raises(ValueError):
        validate_subspace([1, 1], 3)


def test_overlap_directions():
    """g1·x + i g2·x equals Σ conj(G) X."""
    np.random.seed(1)
    G, X = random_operator(2), random_operator(2)
    g1, g2 = iso_overlap_directions(operator_to_iso_vec(G), 4)
    x = operator_to_iso_vec(X)
    assert np.isclose(g1 @ x + 1j * (g2 @ x), np.trace(G.conj().T @ X))

    psi, phi = G[:, 0], X[:, 0]
    g1, g2 = iso_overlap_directions(ket_to_iso(psi), 4)
    assert np.isclose(g1 @ ket_to_iso(phi) + 1j * (g2 @ ket_to_iso(phi)), np.vdot(psi, phi))
