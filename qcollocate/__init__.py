"""
qcollocate: objective assembly for quantum trajectory optimization.

This library builds NLP objectives over a flattened, time-indexed decision
vector, in the form consumed by interior-point solvers:
- Loss and exact gradient for every term
- Exact sparse Hessians in (row, col) triplet form
- Additive composition of heterogeneous terms with +
- Persistence of term parameters for rebuilding objectives
"""

__version__ = "0.1.0"

from qcollocate.core.errors import ConfigurationError
from qcollocate.core.layout import TrajectoryLayout
from qcollocate.core.objective import Objective
from qcollocate.losses.base import LossKind
from qcollocate.objectives import (
    quantum_objective,
    quantum_state_objective,
    quantum_unitary_objective,
    unitary_infidelity_objective,
    quadratic_regularizer,
    quadratic_smoothness_regularizer,
    l1_regularizer,
    minimum_time_objective,
    infidelity_robustness_objective,
    objective_from_records,
    save_objective,
    load_objective,
)
from qcollocate.optimization.interface import ObjectiveEvaluator

__all__ = [
    "ConfigurationError",
    "TrajectoryLayout",
    "Objective",
    "LossKind",
    "quantum_objective",
    "quantum_state_objective",
    "quantum_unitary_objective",
    "unitary_infidelity_objective",
    "quadratic_regularizer",
    "quadratic_smoothness_regularizer",
    "l1_regularizer",
    "minimum_time_objective",
    "infidelity_robustness_objective",
    "objective_from_records",
    "save_objective",
    "load_objective",
    "ObjectiveEvaluator",
]
