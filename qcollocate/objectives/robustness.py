"""Second-order robustness objective for unitary trajectories."""

import logging
from typing import Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from qcollocate.algebra.isomorphisms import (
    iso_vec_dim,
    iso_vec_subspace_indices,
    iso_vec_to_operator,
    operator_to_iso_vec,
    validate_subspace,
)
from qcollocate.core.errors import ConfigurationError
from qcollocate.core.layout import TrajectoryLayout
from qcollocate.core.objective import Objective
from qcollocate.core.records import InfidelityRobustnessRecord, TermKind
from qcollocate.objectives.registry import register_term
from qcollocate.utils.indexing import slice_indices
from qcollocate.utils.parallel import DisjointPartition


logger = logging.getLogger(__name__)


@register_term(TermKind.INFIDELITY_ROBUSTNESS)
def _build_infidelity_robustness(
    layout: TrajectoryLayout, record: InfidelityRobustnessRecord
) -> Objective:
    """
    Penalize the first-order infidelity sensitivity to an error operator Hₑ.

    In the control frame the error operator averages to

        R = 1 / (‖Hₑ‖ Σₜ Δtₜ) · Σₜ Δtₜ Uₜᴴ Hₑ Uₜ

    and the loss is ‖R‖²_F / n, n the subspace dimension. With
    Aₜ = Uₜᴴ Hₑ Uₜ / ‖Hₑ‖ and T = Σ Δt the gradient per timestep is

        ∂L/∂Uₜ  = 4 Δtₜ / (n ‖Hₑ‖ T) · Hₑ Uₜ R
        ∂L/∂Δtₜ = 2 / (n T) · Re tr(R (Aₜ - R))

    Every Uₜ couples to every other through R, so the Hessian is dense and
    is not provided.
    """
    what = "InfidelityRobustnessObjective"
    name = record.name
    if name not in layout.components:
        raise ConfigurationError(f"{what}: component {name!r} not in trajectory")

    try:
        N = iso_vec_dim(layout.dims[name])
        subspace = validate_subspace(record.subspace, N)
    except ValueError as e:
        raise ConfigurationError(f"{what}: {e}") from e
    n = N if subspace is None else len(subspace)

    H = record.H_error
    if H.shape != (n, n):
        raise ConfigurationError(f"{what}: error operator has shape {H.shape}, expected {(n, n)}")
    if not np.allclose(H, H.conj().T):
        raise ConfigurationError(f"{what}: error operator must be Hermitian")
    H_norm = np.linalg.norm(H)
    if H_norm == 0:
        raise ConfigurationError(f"{what}: error operator must be nonzero")

    local = layout.components[name].start + iso_vec_subspace_indices(N, subspace)
    U_slices = [slice_indices(t, local, layout.dim) for t in range(layout.T)]
    free_time = layout.free_time
    dt_indices = layout.timestep_indices() if free_time else None

    def frame(Z: NDArray, t: int) -> tuple[NDArray, NDArray]:
        U = iso_vec_to_operator(Z[U_slices[t]])
        return U, U.conj().T @ H @ U / H_norm

    def toggle(Z: NDArray) -> tuple[NDArray, NDArray, float]:
        dts = layout.timesteps(Z)
        total = float(np.sum(dts))
        R = sum(dts[t] * frame(Z, t)[1] for t in range(layout.T)) / total
        return R, dts, total

    def loss(Z: NDArray) -> float:
        R, _, _ = toggle(np.asarray(Z))
        return float(np.real(np.vdot(R, R))) / n

    if free_time:
        claims = {t: (U_slices[t], [dt_indices[t]]) for t in range(layout.T)}
    else:
        claims = {t: (U_slices[t],) for t in range(layout.T)}
    partition = DisjointPartition(claims)

    def gradient(Z: NDArray) -> NDArray:
        Z = np.asarray(Z)
        R, dts, total = toggle(Z)

        def block(t):
            U, A = frame(Z, t)
            dU = 4 * dts[t] / (n * H_norm * total) * (H @ U @ R)
            if free_time:
                dt = 2 / (n * total) * np.real(np.trace(R @ (A - R)))
                return operator_to_iso_vec(dU), dt
            return (operator_to_iso_vec(dU),)

        return partition.scatter(np.zeros(layout.size), block)

    logger.debug(
        "built %s on %r (n=%d, free_time=%s); no Hessian", what, name, n, free_time
    )
    return Objective(loss, gradient, None, None, (record,))


def infidelity_robustness_objective(
    layout: TrajectoryLayout,
    H_error: NDArray,
    name: str = "Ũ⃗",
    subspace: Optional[Sequence[int]] = None,
    eval_hessian: bool = False,
) -> Objective:
    """
    Robustness of the unitary trajectory to a Hermitian error operator.

    Args:
        layout: Trajectory layout
        H_error: Hermitian error operator, sized to the subspace
        name: Unitary iso vector component
        subspace: Computational basis indices taking part (None: all)
        eval_hessian: Must be False; the Hessian is dense and not provided,
            so the solver needs a quasi-Newton Hessian approximation

    Returns:
        Objective without a Hessian
    """
    if eval_hessian:
        raise ConfigurationError(
            "InfidelityRobustnessObjective has no exact Hessian; "
            "use a quasi-Newton Hessian approximation"
        )
    record = InfidelityRobustnessRecord(H_error=H_error, name=name, subspace=subspace)
    return _build_infidelity_robustness(layout, record)
