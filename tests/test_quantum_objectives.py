"""Tests for final-time fidelity objectives."""

import numpy as np
import pytest

from qcollocate import (
    ConfigurationError,
    LossKind,
    TrajectoryLayout,
    quantum_objective,
    quantum_state_objective,
    quantum_unitary_objective,
    unitary_infidelity_objective,
)
from qcollocate.algebra.isomorphisms import (
    iso_vec_subspace_indices,
    ket_to_iso,
    operator_to_iso_vec,
)
from qcollocate.algebra.sparse import triplets_to_sparse


X_GATE = np.array([[0.0, 1.0], [1.0, 0.0]], dtype=complex)


def fd_gradient(f, x, eps=1e-6):
    grad = np.zeros_like(x)
    for i in range(len(x)):
        e = np.zeros_like(x)
        e[i] = eps
        grad[i] = (f(x + e) - f(x - e)) / (2 * eps)
    return grad


def fd_hessian(g, x, eps=1e-6):
    H = np.zeros((len(x), len(x)))
    for j in range(len(x)):
        e = np.zeros_like(x)
        e[j] = eps
        H[:, j] = (g(x + e) - g(x - e)) / (2 * eps)
    return 0.5 * (H + H.T)


def dense_hessian(objective, Z):
    return triplets_to_sparse(
        objective.hessian_structure(), objective.hessian(Z), len(Z)
    ).toarray()


def state_layout():
    return TrajectoryLayout.from_dims(
        {"ψ̃1": 4, "ψ̃2": 4, "a": 1},
        T=3,
        timestep=0.2,
        goal={
            "ψ̃1": ket_to_iso(np.array([0.0, 1.0])),
            "ψ̃2": ket_to_iso(np.array([1.0, 0.0])),
        },
    )


def gate_layout():
    return TrajectoryLayout.from_dims(
        {"Ũ⃗": 8, "a": 2, "da": 2},
        T=5,
        timestep=0.1,
        goal={"Ũ⃗": operator_to_iso_vec(X_GATE)},
    )


def test_state_objective_reads_final_timestep():
    layout = state_layout()
    obj = quantum_state_objective(layout, "ψ̃1", Q=10.0)
    Z = np.zeros(layout.size)
    # |0⟩ at the final step is orthogonal to the goal |1⟩
    Z[layout.indices("ψ̃1", 2)] = ket_to_iso(np.array([1.0, 0.0]))
    assert np.isclose(obj.loss(Z), 10.0)
    Z[layout.indices("ψ̃1", 2)] = ket_to_iso(np.array([0.0, 1.0j]))
    assert np.isclose(obj.loss(Z), 0.0)


def test_state_objective_support():
    np.random.seed(0)
    layout = state_layout()
    obj = quantum_state_objective(layout, "ψ̃1")
    Z = np.random.randn(layout.size)
    final = list(layout.indices("ψ̃1", 2))
    mask = np.ones(layout.size, dtype=bool)
    mask[final] = False
    assert np.allclose(obj.gradient(Z)[mask], 0.0)

    structure = obj.hessian_structure()
    assert np.all(np.isin(structure, final))
    assert np.all(structure[:, 0] <= structure[:, 1])
    assert len(structure) == 10


def test_multiple_names():
    np.random.seed(1)
    layout = state_layout()
    obj = quantum_objective(layout, names=["ψ̃1", "ψ̃2"], Q=[1.0, 3.0])
    assert len(obj.hessian_structure()) == 20
    Z = np.random.randn(layout.size)
    assert np.allclose(obj.gradient(Z), fd_gradient(obj.loss, Z), atol=1e-5)
    assert np.allclose(dense_hessian(obj, Z), fd_hessian(obj.gradient, Z), atol=1e-4)


def test_explicit_goal_overrides_layout():
    layout = state_layout()
    goal = ket_to_iso(np.array([1.0, 0.0]))
    obj = quantum_objective(layout, name="ψ̃1", goals=goal, Q=1.0)
    Z = np.zeros(layout.size)
    Z[layout.indices("ψ̃1", 2)] = goal
    assert np.isclose(obj.loss(Z), 0.0)


def test_quantum_objective_errors():
    layout = state_layout()
    with pytest.raises(ConfigurationError):
        quantum_objective(layout)
    with pytest.raises(ConfigurationError):
        quantum_objective(layout, name="a")
    with pytest.raises(ConfigurationError):
        quantum_objective(layout, names=["ψ̃1", "ψ̃2"], Q=[1.0])
    with pytest.raises(ConfigurationError):
        quantum_objective(layout, name="ψ̃1", goals=np.zeros(6))
    with pytest.raises(ConfigurationError):
        quantum_objective(layout, name="missing", goals=np.zeros(4))


def test_without_hessian():
    assert not quantum_state_objective(state_layout(), "ψ̃1", eval_hessian=False).has_hessian


def test_unitary_objective():
    np.random.seed(2)
    layout = gate_layout()
    obj = unitary_infidelity_objective(layout, Q=100.0)
    Z = np.random.randn(layout.size)
    Z[layout.indices("Ũ⃗", layout.T - 1)] = operator_to_iso_vec(X_GATE)
    assert np.isclose(obj.loss(Z), 0.0)

    Z = np.random.randn(layout.size)
    assert np.allclose(obj.gradient(Z), fd_gradient(obj.loss, Z), atol=1e-4)
    assert np.allclose(dense_hessian(obj, Z), fd_hessian(obj.gradient, Z), atol=1e-3)

    same = quantum_unitary_objective(layout, "Ũ⃗", Q=100.0)
    assert np.isclose(same.loss(Z), obj.loss(Z))
    assert np.allclose(same.hessian(Z), obj.hessian(Z))
    assert same.terms[0].loss is LossKind.UNITARY_INFIDELITY


def test_unitary_objective_zero_overlap():
    """The identity against an X goal gives finite derivatives."""
    layout = gate_layout()
    obj = unitary_infidelity_objective(layout, Q=100.0)
    Z = np.zeros(layout.size)
    Z[layout.indices("Ũ⃗", layout.T - 1)] = operator_to_iso_vec(np.eye(2))
    assert np.isclose(obj.loss(Z), 100.0)
    assert np.all(np.isfinite(obj.gradient(Z)))
    assert np.all(np.isfinite(obj.hessian(Z)))


def test_unitary_objective_subspace():
    """Value and derivatives only involve the subspace block of the final unitary."""
    np.random.seed(3)
    N = 3
    subspace = [0, 2]
    goal = operator_to_iso_vec(np.eye(N))
    layout = TrajectoryLayout.from_dims({"Ũ⃗": 2 * N * N}, T=2, timestep=0.1)
    obj = unitary_infidelity_objective(layout, goal=goal, Q=1.0, subspace=subspace)
    Z = np.random.randn(layout.size)
    assert np.allclose(obj.gradient(Z), fd_gradient(obj.loss, Z), atol=1e-6)
    assert np.allclose(dense_hessian(obj, Z), fd_hessian(obj.gradient, Z), atol=1e-5)

    support = layout.indices("Ũ⃗", layout.T - 1).start + iso_vec_subspace_indices(N, subspace)
    structure = obj.hessian_structure()
    assert len(structure) == 8 * 9 // 2
    assert np.all(np.isin(structure, support))

    outside = np.setdiff1d(np.arange(layout.size), support)
    assert np.allclose(obj.gradient(Z)[outside], 0.0)
    # Entries outside the subspace do not change the loss
    Z_moved = Z.copy()
    Z_moved[outside] += 1.0
    assert np.isclose(obj.loss(Z_moved), obj.loss(Z))


def test_unitary_objective_errors():
    N = 3
    goal = operator_to_iso_vec(np.eye(N))
    layout = TrajectoryLayout.from_dims({"Ũ⃗": 2 * N * N}, T=2, timestep=0.1)
    with pytest.raises(ConfigurationError):
        unitary_infidelity_objective(layout, goal=goal, subspace=[0, 5])
    with pytest.raises(ConfigurationError):
        unitary_infidelity_objective(layout)
