"""Quadratic, smoothness and L1 regularizers over trajectory components."""

import logging
from typing import Optional, Sequence, Union
import numpy as np
from numpy.typing import NDArray

from qcollocate.algebra.sparse import as_structure, empty_structure, empty_values, upper
from qcollocate.core.errors import ConfigurationError
from qcollocate.core.layout import TrajectoryLayout
from qcollocate.core.objective import Objective
from qcollocate.core.records import (
    L1RegularizerRecord,
    QuadraticRegularizerRecord,
    QuadraticSmoothnessRecord,
    TermKind,
)
from qcollocate.objectives.registry import register_term
from qcollocate.utils.indexing import as_index_array
from qcollocate.utils.parallel import DisjointPartition


logger = logging.getLogger(__name__)


def weight_vector(R: Union[float, Sequence[float]], width: int, what: str) -> NDArray:
    """Broadcast a scalar weight, or check a per-dimension weight vector."""
    if np.isscalar(R):
        R = np.full(width, float(R))
    R = np.asarray(R, dtype=float)
    if R.shape != (width,):
        raise ConfigurationError(f"{what}: R has shape {R.shape}, expected ({width},)")
    if np.any(R < 0):
        raise ConfigurationError(f"{what}: R must be nonnegative")
    return R


def time_indices(times: Optional[Sequence[int]], layout: TrajectoryLayout, what: str) -> tuple:
    """Validated time index set; all timesteps if None."""
    if times is None:
        return tuple(range(layout.T))
    times = tuple(int(t) for t in times)
    if len(times) == 0:
        raise ConfigurationError(f"{what}: times must not be empty")
    if len(set(times)) != len(times):
        raise ConfigurationError(f"{what}: times must be unique")
    if min(times) < 0 or max(times) >= layout.T:
        raise ConfigurationError(f"{what}: times must lie in [0, {layout.T})")
    return times


def _require_component(layout: TrajectoryLayout, name: str, what: str) -> None:
    if name not in layout.components:
        raise ConfigurationError(f"{what}: component {name!r} not in trajectory")


# -------------------------------------------
# Quadratic regularizer
# -------------------------------------------

@register_term(TermKind.QUADRATIC_REGULARIZER)
def _build_quadratic_regularizer(
    layout: TrajectoryLayout, record: QuadraticRegularizerRecord
) -> Objective:
    """
    Σₜ ½ Δtₜ² (vₜ - v₀ₜ)ᵀ(R ⊙ (vₜ - v₀ₜ)).

    In free time, with rₜ = vₜ - v₀ₜ, the nonzero second derivatives per t are
        ∂²/∂v²     = Δt² R            (diagonal)
        ∂²/∂v∂Δt   = 2 Δt R ⊙ r       (stored once, row <= col)
        ∂²/∂Δt²    = rᵀ(R ⊙ r)
    With a fixed step only the diagonal block remains.
    """
    what = "QuadraticRegularizer"
    name = record.name
    _require_component(layout, name, what)
    width = layout.dims[name]
    R = weight_vector(record.R, width, what)
    times = time_indices(record.times, layout, what)

    if record.values is None:
        v0 = np.zeros((width, len(times)))
    elif record.values.shape != (width, len(times)):
        raise ConfigurationError(
            f"{what}: values has shape {record.values.shape}, expected {(width, len(times))}"
        )
    else:
        v0 = record.values

    free_time = layout.free_time
    dt_name = None
    if record.timestep_name is not None and not free_time:
        raise ConfigurationError(
            f"{what}: timestep_name {record.timestep_name!r} given, "
            "but the trajectory has a fixed timestep"
        )
    if free_time:
        dt_name = record.timestep_name or layout.timestep
        _require_component(layout, dt_name, what)
        if layout.dims[dt_name] != 1:
            raise ConfigurationError(f"{what}: timestep component {dt_name!r} must have width 1")
        if dt_name == name:
            raise ConfigurationError(f"{what}: cannot regularize the timestep {name!r} in free time")

    v_slices = {t: as_index_array(layout.indices(name, t)) for t in times}
    dt_index = {t: layout.indices(dt_name, t)[0] for t in times} if free_time else {}
    column = {t: k for k, t in enumerate(times)}

    def residual(Z: NDArray, t: int) -> NDArray:
        return Z[v_slices[t]] - v0[:, column[t]]

    def step(Z: NDArray, t: int) -> float:
        return Z[dt_index[t]] if free_time else layout.timestep

    def loss(Z: NDArray) -> float:
        Z = np.asarray(Z)
        J = 0.0
        for t in times:
            r = step(Z, t) * residual(Z, t)
            J += 0.5 * r @ (R * r)
        return float(J)

    if free_time:
        gradient_claims = {t: (v_slices[t], [dt_index[t]]) for t in times}
    else:
        gradient_claims = {t: (v_slices[t],) for t in times}
    gradient_partition = DisjointPartition(gradient_claims)

    def gradient(Z: NDArray) -> NDArray:
        Z = np.asarray(Z)

        def block(t):
            r = residual(Z, t)
            dt = step(Z, t)
            if free_time:
                return R * dt**2 * r, dt * (r @ (R * r))
            return (R * dt**2 * r,)

        return gradient_partition.scatter(np.zeros(layout.size), block)

    hessian, hessian_structure = None, None

    if record.eval_hessian:
        block_size = 2 * width + 1 if free_time else width

        blocks = []
        for t in times:
            v = v_slices[t]
            blocks.append(np.column_stack([v, v]))
            if free_time:
                dt = np.full(width, dt_index[t])
                blocks.append(upper(np.column_stack([v, dt])))
                blocks.append(as_structure([(dt_index[t], dt_index[t])]))
        structure = np.concatenate(blocks, axis=0) if blocks else empty_structure()

        value_partition = DisjointPartition({
            t: (np.arange(k * block_size, (k + 1) * block_size),)
            for k, t in enumerate(times)
        })

        def hessian_structure() -> NDArray:
            return structure.copy()

        def hessian(Z: NDArray) -> NDArray:
            Z = np.asarray(Z)

            def block(t):
                dt = step(Z, t)
                if free_time:
                    r = residual(Z, t)
                    return (np.concatenate([R * dt**2, 2 * dt * R * r, [r @ (R * r)]]),)
                return (R * dt**2,)

            return value_partition.scatter(np.zeros(len(times) * block_size), block)

    logger.debug(
        "built %s on %r over %d timesteps (free_time=%s, hessian=%s)",
        what, name, len(times), free_time, record.eval_hessian,
    )
    return Objective(loss, gradient, hessian, hessian_structure, (record,))


def quadratic_regularizer(
    layout: TrajectoryLayout,
    name: str,
    R: Union[float, Sequence[float]],
    times: Optional[Sequence[int]] = None,
    values: Optional[NDArray] = None,
    eval_hessian: bool = True,
    timestep_name: Optional[str] = None,
) -> Objective:
    """
    Running quadratic cost ½ Δt² (v - v₀)ᵀ(R ⊙ (v - v₀)) summed over times.

    Args:
        layout: Trajectory layout
        name: Regularized component
        R: Nonnegative weight, scalar or per dimension
        times: Timesteps to include (all if None)
        values: Reference v₀ of shape (width, len(times)), zero if None
        eval_hessian: Provide the exact sparse Hessian
        timestep_name: Step-size component (the layout's if None)

    Returns:
        Objective
    """
    what = "QuadraticRegularizer"
    _require_component(layout, name, what)
    width = layout.dims[name]
    R = weight_vector(R, width, what)
    times = time_indices(times, layout, what)
    record = QuadraticRegularizerRecord(
        name=name, times=times, R=R, values=values,
        eval_hessian=eval_hessian, timestep_name=timestep_name,
    )
    return _build_quadratic_regularizer(layout, record)


# -------------------------------------------
# Quadratic smoothness regularizer
# -------------------------------------------

@register_term(TermKind.QUADRATIC_SMOOTHNESS)
def _build_quadratic_smoothness(
    layout: TrajectoryLayout, record: QuadraticSmoothnessRecord
) -> Objective:
    """
    Σ ½ Δvᵀ(R ⊙ Δv) over consecutive members of times.

    The cost is exactly quadratic, so its Hessian values depend only on R
    and the number of timesteps and are computed once here.
    """
    what = "QuadraticSmoothnessRegularizer"
    name = record.name
    _require_component(layout, name, what)
    R = weight_vector(record.R, layout.dims[name], what)
    times = time_indices(record.times, layout, what)
    if len(times) < 2:
        raise ConfigurationError(f"{what}: needs at least two timesteps")
    if any(b <= a for a, b in zip(times, times[1:])):
        raise ConfigurationError(f"{what}: times must be strictly increasing")

    v_slices = [as_index_array(layout.indices(name, t)) for t in times]
    last = len(times) - 1

    def loss(Z: NDArray) -> float:
        Z = np.asarray(Z)
        J = 0.0
        for k in range(last):
            dv = Z[v_slices[k + 1]] - Z[v_slices[k]]
            J += 0.5 * dv @ (R * dv)
        return float(J)

    # Task k gathers both pair terms touching timestep k and writes only its own slice
    gradient_partition = DisjointPartition({k: (v_slices[k],) for k in range(len(times))})

    def gradient(Z: NDArray) -> NDArray:
        Z = np.asarray(Z)

        def block(k):
            v = Z[v_slices[k]]
            g = np.zeros_like(R)
            if k > 0:
                g += R * (v - Z[v_slices[k - 1]])
            if k < last:
                g -= R * (Z[v_slices[k + 1]] - v)
            return (g,)

        return gradient_partition.scatter(np.zeros(layout.size), block)

    hessian, hessian_structure = None, None

    if record.eval_hessian:
        diagonal = [np.column_stack([v, v]) for v in v_slices]
        off_diagonal = [
            np.column_stack([v_slices[k], v_slices[k + 1]]) for k in range(last)
        ]
        structure = np.concatenate(diagonal + off_diagonal, axis=0)

        values = np.concatenate(
            [R]
            + [2 * R] * (len(times) - 2)
            + [R]
            + [-R] * last
        )

        def hessian_structure() -> NDArray:
            return structure.copy()

        def hessian(Z: NDArray) -> NDArray:
            return values.copy()

    logger.debug(
        "built %s on %r over %d timesteps (hessian=%s)",
        what, name, len(times), record.eval_hessian,
    )
    return Objective(loss, gradient, hessian, hessian_structure, (record,))


def quadratic_smoothness_regularizer(
    layout: TrajectoryLayout,
    name: str,
    R: Union[float, Sequence[float]],
    times: Optional[Sequence[int]] = None,
    eval_hessian: bool = True,
) -> Objective:
    """
    Finite-difference cost ½ (vₜ₊₁ - vₜ)ᵀ(R ⊙ (vₜ₊₁ - vₜ)) over consecutive times.

    Args:
        layout: Trajectory layout
        name: Regularized component
        R: Nonnegative weight, scalar or per dimension
        times: Strictly increasing timesteps, at least two (all if None)
        eval_hessian: Provide the exact sparse Hessian

    Returns:
        Objective
    """
    what = "QuadraticSmoothnessRegularizer"
    _require_component(layout, name, what)
    R = weight_vector(R, layout.dims[name], what)
    times = time_indices(times, layout, what)
    record = QuadraticSmoothnessRecord(name=name, times=times, R=R, eval_hessian=eval_hessian)
    return _build_quadratic_smoothness(layout, record)


# -------------------------------------------
# L1 regularizer
# -------------------------------------------

def slack_names(name: str) -> tuple[str, str]:
    """Names of the two nonnegative slack components of an L1-regularized component."""
    return f"s1_{name}", f"s2_{name}"


@register_term(TermKind.L1_REGULARIZER)
def _build_l1_regularizer(layout: TrajectoryLayout, record: L1RegularizerRecord) -> Objective:
    """
    Σₜ R·(s1ₜ + s2ₜ), the objective half of |v| = s1 - s2 with s1, s2 >= 0.

    The linear constraint coupling the slacks to v is built elsewhere; this
    term never reads v. Being linear, its Hessian is structurally empty.
    """
    what = "L1Regularizer"
    times = time_indices(record.times, layout, what)
    s1_name, s2_name = slack_names(record.name)
    for s in (s1_name, s2_name):
        if s not in layout.components:
            raise ConfigurationError(
                f"{what}: slack component {s!r} not in trajectory; "
                "add the L1 slack variables before building this term"
            )
    if layout.dims[s1_name] != layout.dims[s2_name]:
        raise ConfigurationError(f"{what}: slack components {s1_name!r}, {s2_name!r} differ in width")
    R = weight_vector(record.R, layout.dims[s1_name], what)

    s1_slices = {t: as_index_array(layout.indices(s1_name, t)) for t in times}
    s2_slices = {t: as_index_array(layout.indices(s2_name, t)) for t in times}

    def loss(Z: NDArray) -> float:
        Z = np.asarray(Z)
        return float(sum(R @ (Z[s1_slices[t]] + Z[s2_slices[t]]) for t in times))

    gradient_partition = DisjointPartition({t: (s1_slices[t], s2_slices[t]) for t in times})

    def gradient(Z: NDArray) -> NDArray:
        return gradient_partition.scatter(np.zeros(layout.size), lambda t: (R, R))

    hessian, hessian_structure = None, None

    if record.eval_hessian:
        def hessian_structure() -> NDArray:
            return empty_structure()

        def hessian(Z: NDArray) -> NDArray:
            return empty_values()

    logger.debug("built %s on %r over %d timesteps", what, record.name, len(times))
    return Objective(loss, gradient, hessian, hessian_structure, (record,))


def l1_regularizer(
    layout: TrajectoryLayout,
    name: str,
    R: Union[float, Sequence[float]],
    times: Optional[Sequence[int]] = None,
    eval_hessian: bool = True,
) -> Objective:
    """
    L1 penalty on name through its slack components s1_<name>, s2_<name>.

    Args:
        layout: Trajectory layout containing both slack components
        name: Regularized component
        R: Nonnegative weight, scalar or per slack dimension
        times: Timesteps to include; if None, all timesteps, skipping the
            first when name has a fixed initial value
        eval_hessian: Provide the (empty) Hessian

    Returns:
        Objective
    """
    what = "L1Regularizer"
    s1_name, _ = slack_names(name)
    if s1_name not in layout.components:
        raise ConfigurationError(f"{what}: slack component {s1_name!r} not in trajectory")
    R = weight_vector(R, layout.dims[s1_name], what)

    if times is None:
        times = range(1 if name in layout.initial else 0, layout.T)
    times = time_indices(times, layout, what)

    record = L1RegularizerRecord(name=name, R=R, times=times, eval_hessian=eval_hessian)
    return _build_l1_regularizer(layout, record)
