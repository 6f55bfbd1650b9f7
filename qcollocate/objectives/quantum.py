"""Fidelity objectives on the final state or unitary."""

import logging
from typing import Optional, Sequence, Union
import numpy as np
from numpy.typing import NDArray

from qcollocate.algebra.sparse import concat_structures, concat_values, shift_structure
from qcollocate.core.errors import ConfigurationError
from qcollocate.core.layout import TrajectoryLayout
from qcollocate.core.objective import Objective
from qcollocate.core.records import (
    QuantumObjectiveRecord,
    TermKind,
    UnitaryInfidelityRecord,
)
from qcollocate.losses.base import Loss, LossKind
from qcollocate.losses.infidelity import UnitaryInfidelityLoss, make_loss
from qcollocate.objectives.registry import register_term


logger = logging.getLogger(__name__)


def _as_goal_tuple(goals) -> tuple:
    if isinstance(goals, np.ndarray) and goals.ndim == 1:
        return (goals,)
    if isinstance(goals, (list, tuple)) and len(goals) > 0 and np.isscalar(goals[0]):
        return (np.asarray(goals, dtype=float),)
    return tuple(goals)


def _goal_from_layout(layout: TrajectoryLayout, name: str) -> NDArray:
    if name not in layout.goal:
        raise ConfigurationError(f"no goal given for {name!r} and none in the trajectory")
    return layout.goal[name]


def _check_component(layout: TrajectoryLayout, name: str, goal: NDArray) -> None:
    if name not in layout.components:
        raise ConfigurationError(f"component {name!r} not in trajectory")
    if np.size(goal) != layout.dims[name]:
        raise ConfigurationError(
            f"goal for {name!r} has length {np.size(goal)}, expected {layout.dims[name]}"
        )


def _final_time_objective(
    layout: TrajectoryLayout,
    losses: Sequence[Loss],
    Q: Sequence[float],
    eval_hessian: bool,
    record,
) -> Objective:
    """
    Σᵢ Qᵢ lᵢ(component i at the final timestep).

    Each loss owns the slice of its component in the last timestep block,
    so its Hessian pattern is shifted by (T - 1) * dim + component offset.
    """
    final = layout.T - 1
    slices = [layout.indices(l.name, final) for l in losses]

    def loss(Z: NDArray) -> float:
        Z = np.asarray(Z)
        return float(sum(q * l.value(Z[s]) for q, l, s in zip(Q, losses, slices)))

    def gradient(Z: NDArray) -> NDArray:
        Z = np.asarray(Z)
        grad = np.zeros(layout.size)
        for q, l, s in zip(Q, losses, slices):
            grad[s] += q * l.gradient(Z[s])
        return grad

    hessian, hessian_structure = None, None

    if eval_hessian:
        structure = concat_structures(
            [shift_structure(l.hessian_structure, s.start) for l, s in zip(losses, slices)]
        )

        def hessian_structure() -> NDArray:
            return structure.copy()

        def hessian(Z: NDArray) -> NDArray:
            Z = np.asarray(Z)
            return concat_values(
                [q * l.hessian_values(Z[s]) for q, l, s in zip(Q, losses, slices)]
            )

    logger.debug(
        "built %s on %s at t=%d (hessian=%s)",
        record.kind.value, [l.name for l in losses], final, eval_hessian,
    )
    return Objective(loss, gradient, hessian, hessian_structure, (record,))


@register_term(TermKind.QUANTUM)
def _build_quantum(layout: TrajectoryLayout, record: QuantumObjectiveRecord) -> Objective:
    for name, goal in zip(record.names, record.goals):
        _check_component(layout, name, goal)
    try:
        losses = [make_loss(record.loss, n, g) for n, g in zip(record.names, record.goals)]
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    return _final_time_objective(layout, losses, record.Q, record.eval_hessian, record)


def quantum_objective(
    layout: TrajectoryLayout,
    names: Optional[Sequence[str]] = None,
    name: Optional[str] = None,
    goals=None,
    loss: LossKind = LossKind.STATE_INFIDELITY,
    Q: Union[float, Sequence[float]] = 100.0,
    eval_hessian: bool = True,
) -> Objective:
    """
    Weighted fidelity loss on one or more components at the final timestep.

    Args:
        layout: Trajectory layout
        names: Components to evaluate (or a single name)
        name: Single component, when names is not given
        goals: Iso goal vector per name (trajectory goals if None)
        loss: Loss primitive kind
        Q: Weight, scalar or one per name
        eval_hessian: Provide the exact sparse Hessian

    Returns:
        Objective
    """
    if names is None and name is None:
        raise ConfigurationError("name or names must be specified")
    names = (name,) if names is None else tuple(names)

    if goals is None:
        goals = tuple(_goal_from_layout(layout, n) for n in names)
    goals = _as_goal_tuple(goals)
    if len(goals) != len(names):
        raise ConfigurationError(f"got {len(goals)} goals for {len(names)} names")

    if np.isscalar(Q):
        Q = (float(Q),) * len(names)
    elif len(Q) != len(names):
        raise ConfigurationError(f"got {len(Q)} weights for {len(names)} names")

    record = QuantumObjectiveRecord(
        names=names, goals=goals, loss=loss, Q=Q, eval_hessian=eval_hessian
    )
    return _build_quantum(layout, record)


def quantum_state_objective(
    layout: TrajectoryLayout, name: str, Q: float = 100.0, **kwargs
) -> Objective:
    """State infidelity of name against its trajectory goal."""
    return quantum_objective(
        layout, name=name, goals=_goal_from_layout(layout, name),
        loss=LossKind.STATE_INFIDELITY, Q=Q, **kwargs,
    )


def quantum_unitary_objective(
    layout: TrajectoryLayout, name: str, Q: float = 100.0, **kwargs
) -> Objective:
    """Unitary infidelity of name against its trajectory goal."""
    return quantum_objective(
        layout, name=name, goals=_goal_from_layout(layout, name),
        loss=LossKind.UNITARY_INFIDELITY, Q=Q, **kwargs,
    )


@register_term(TermKind.UNITARY_INFIDELITY)
def _build_unitary_infidelity(
    layout: TrajectoryLayout, record: UnitaryInfidelityRecord
) -> Objective:
    _check_component(layout, record.name, record.goal)
    try:
        l = UnitaryInfidelityLoss(record.name, record.goal, subspace=record.subspace)
    except ValueError as e:
        raise ConfigurationError(str(e)) from e
    return _final_time_objective(layout, [l], (record.Q,), record.eval_hessian, record)


def unitary_infidelity_objective(
    layout: TrajectoryLayout,
    name: str = "Ũ⃗",
    goal: Optional[NDArray] = None,
    Q: float = 100.0,
    eval_hessian: bool = True,
    subspace: Optional[Sequence[int]] = None,
) -> Objective:
    """
    Unitary infidelity at the final timestep, optionally on a subspace.

    Args:
        layout: Trajectory layout
        name: Unitary iso vector component
        goal: Iso vector of the target unitary (trajectory goal if None)
        Q: Weight
        eval_hessian: Provide the exact sparse Hessian
        subspace: Computational basis indices taking part (None: all)

    Returns:
        Objective
    """
    if goal is None:
        goal = _goal_from_layout(layout, name)
    record = UnitaryInfidelityRecord(
        name=name, goal=goal, Q=Q, eval_hessian=eval_hessian, subspace=subspace
    )
    return _build_unitary_infidelity(layout, record)
