"""Minimum-time objective."""

import logging
import numpy as np
from numpy.typing import NDArray

from qcollocate.algebra.sparse import empty_structure, empty_values
from qcollocate.core.errors import ConfigurationError
from qcollocate.core.layout import TrajectoryLayout
from qcollocate.core.objective import Objective
from qcollocate.core.records import MinimumTimeRecord, TermKind
from qcollocate.objectives.registry import register_term


logger = logging.getLogger(__name__)


@register_term(TermKind.MINIMUM_TIME)
def _build_minimum_time(layout: TrajectoryLayout, record: MinimumTimeRecord) -> Objective:
    if not layout.free_time:
        raise ConfigurationError(
            "MinimumTimeObjective: trajectory does not have a free timestep"
        )
    D = float(record.D)
    dt_indices = layout.timestep_indices()

    def loss(Z: NDArray) -> float:
        return D * float(np.sum(np.asarray(Z)[dt_indices]))

    def gradient(Z: NDArray) -> NDArray:
        grad = np.zeros(layout.size)
        grad[dt_indices] = D
        return grad

    hessian, hessian_structure = None, None

    if record.eval_hessian:
        def hessian_structure() -> NDArray:
            return empty_structure()

        def hessian(Z: NDArray) -> NDArray:
            return empty_values()

    logger.debug("built MinimumTimeObjective with D=%g over %d steps", D, len(dt_indices))
    return Objective(loss, gradient, hessian, hessian_structure, (record,))


def minimum_time_objective(
    layout: TrajectoryLayout, D: float = 1.0, eval_hessian: bool = True
) -> Objective:
    """
    D · Σₜ Δtₜ over the step-size variables of a free-time trajectory.

    Raises:
        ConfigurationError: if the trajectory has a fixed timestep
    """
    return _build_minimum_time(layout, MinimumTimeRecord(D=D, eval_hessian=eval_hessian))
