"""Tests for term records, the factory registry and persistence."""

import json

import numpy as np
import pytest

from qcollocate import (
    ConfigurationError,
    TrajectoryLayout,
    infidelity_robustness_objective,
    l1_regularizer,
    load_objective,
    minimum_time_objective,
    objective_from_records,
    quadratic_regularizer,
    quadratic_smoothness_regularizer,
    quantum_unitary_objective,
    save_objective,
    unitary_infidelity_objective,
)
from qcollocate.algebra.isomorphisms import operator_to_iso_vec
from qcollocate.core.records import (
    MinimumTimeRecord,
    TermKind,
    record_from_dict,
    record_to_dict,
)
from qcollocate.objectives.registry import build_term, check_registry, register_term


def free_time_layout():
    X = np.array([[0.0, 1.0], [1.0, 0.0]], dtype=complex)
    return TrajectoryLayout.from_dims(
        {"Ũ⃗": 8, "a": 2, "da": 2, "Δt": 1},
        T=5,
        timestep="Δt",
        initial={"a": np.zeros(2)},
        goal={"Ũ⃗": operator_to_iso_vec(X)},
    )


def random_point(layout):
    Z = np.random.randn(layout.size)
    Z[layout.timestep_indices()] = np.random.uniform(0.05, 0.2, layout.T)
    return Z


def gate_objective(layout):
    return (
        unitary_infidelity_objective(layout, Q=50.0, subspace=[0, 1])
        + quantum_unitary_objective(layout, "Ũ⃗", Q=2.0)
        + quadratic_regularizer(layout, "a", R=[1.0, 2.0], times=[1, 2], values=np.ones((2, 2)))
        + quadratic_smoothness_regularizer(layout, "da", R=0.5)
        + minimum_time_objective(layout, D=0.1)
        + infidelity_robustness_objective(layout, np.array([[1.0, 0.5j], [-0.5j, -1.0]]))
    )


def assert_same_objective(a, b, Z):
    assert np.isclose(a.loss(Z), b.loss(Z))
    assert np.allclose(a.gradient(Z), b.gradient(Z))
    assert a.has_hessian == b.has_hessian
    if a.has_hessian:
        assert np.array_equal(a.hessian_structure(), b.hessian_structure())
        assert np.allclose(a.hessian(Z), b.hessian(Z))


def test_every_kind_registered():
    check_registry()


def test_terms_in_order():
    objective = gate_objective(free_time_layout())
    kinds = [t.kind for t in objective.terms]
    assert kinds == [
        TermKind.UNITARY_INFIDELITY,
        TermKind.QUANTUM,
        TermKind.QUADRATIC_REGULARIZER,
        TermKind.QUADRATIC_SMOOTHNESS,
        TermKind.MINIMUM_TIME,
        TermKind.INFIDELITY_ROBUSTNESS,
    ]


def test_rebuild_from_records():
    np.random.seed(0)
    layout = free_time_layout()
    objective = gate_objective(layout)
    rebuilt = objective_from_records(objective.terms, layout)
    assert_same_objective(objective, rebuilt, random_point(layout))


def test_dict_round_trip_is_json():
    for record in gate_objective(free_time_layout()).terms:
        data = json.loads(json.dumps(record_to_dict(record)))
        assert data["type"] == record.kind.value
        restored = record_from_dict(data)
        assert type(restored) is type(record)


def test_save_and_load(tmp_path):
    np.random.seed(1)
    layout = free_time_layout()
    objective = gate_objective(layout)
    path = tmp_path / "objective.json"
    save_objective(path, objective)
    payload = json.loads(path.read_text(encoding="utf-8"))
    assert [t["type"] for t in payload["terms"]][0] == "UnitaryInfidelityObjective"

    loaded = load_objective(path, layout)
    assert_same_objective(objective, loaded, random_point(layout))
    robustness = loaded.terms[-1]
    assert np.iscomplexobj(robustness.H_error)
    assert np.allclose(robustness.H_error, objective.terms[-1].H_error)


def test_l1_record_round_trip():
    layout = TrajectoryLayout.from_dims({"s1_u": 1, "s2_u": 1}, T=2, timestep=0.1)
    obj = l1_regularizer(layout, "u", R=3.0)
    rebuilt = build_term(record_from_dict(record_to_dict(obj.terms[0])), layout)
    Z = np.array([1.0, 2.0, 3.0, 4.0])
    assert np.isclose(rebuilt.loss(Z), 30.0)


def test_unknown_type_rejected():
    with pytest.raises(ConfigurationError):
        record_from_dict({"type": "MysteryObjective"})
    with pytest.raises(ConfigurationError):
        record_from_dict({"D": 1.0})
    with pytest.raises(ConfigurationError):
        record_from_dict({"type": "MinimumTimeObjective", "D": 1.0, "extra": 2})


def test_loaded_records_are_validated():
    layout = free_time_layout()
    data = record_to_dict(MinimumTimeRecord(D=1.0))
    assert build_term(record_from_dict(data), layout).loss(np.zeros(layout.size)) == 0.0

    bad = {
        "type": "QuadraticSmoothnessRegularizer",
        "name": "a",
        "times": [3],
        "R": {"array": [1.0, 1.0]},
        "eval_hessian": True,
    }
    with pytest.raises(ConfigurationError):
        build_term(record_from_dict(bad), layout)


def test_duplicate_registration_rejected():
    with pytest.raises(ValueError):
        register_term(TermKind.MINIMUM_TIME)(lambda layout, record: None)


def test_build_term_rejects_non_records():
    with pytest.raises(ConfigurationError):
        build_term(object(), free_time_layout())
