"""Objective terms for trajectory optimization."""

from qcollocate.objectives.registry import (
    register_term,
    build_term,
    objective_from_records,
    save_objective,
    load_objective,
    check_registry,
)
from qcollocate.objectives.quantum import (
    quantum_objective,
    quantum_state_objective,
    quantum_unitary_objective,
    unitary_infidelity_objective,
)
from qcollocate.objectives.regularizers import (
    quadratic_regularizer,
    quadratic_smoothness_regularizer,
    l1_regularizer,
    slack_names,
)
from qcollocate.objectives.minimum_time import minimum_time_objective
from qcollocate.objectives.robustness import infidelity_robustness_objective

check_registry()

__all__ = [
    "register_term",
    "build_term",
    "objective_from_records",
    "save_objective",
    "load_objective",
    "quantum_objective",
    "quantum_state_objective",
    "quantum_unitary_objective",
    "unitary_infidelity_objective",
    "quadratic_regularizer",
    "quadratic_smoothness_regularizer",
    "l1_regularizer",
    "slack_names",
    "minimum_time_objective",
    "infidelity_robustness_objective",
]
