"""Solver interface for an assembled objective."""

import logging
from typing import Callable, Optional, Tuple
import numpy as np
import scipy.sparse
from numpy.typing import NDArray

from qcollocate.algebra.sparse import duplicate_entries, triplets_to_sparse
from qcollocate.core.layout import TrajectoryLayout
from qcollocate.core.objective import Objective


logger = logging.getLogger(__name__)


class ObjectiveEvaluator:
    """
    Provides L(Z), ∇L(Z), and the sparse Hessian of L to an NLP solver.

    Only the objective part of the Lagrangian Hessian is assembled here;
    constraint Hessians belong to the constraint set.
    """

    def __init__(self, objective: Objective, layout: TrajectoryLayout):
        """
        Initialize the evaluator.

        Args:
            objective: Composite objective
            layout: Layout the objective's terms were built against
        """
        self.objective = objective
        self.layout = layout
        self.n = layout.size

        # Structure is value-independent: query it once
        self._structure: Optional[NDArray] = None
        if objective.has_hessian:
            self._structure = np.asarray(objective.hessian_structure(), dtype=np.intp).reshape(-1, 2)
            self._check_structure()

        logger.debug(
            "evaluator over %d variables, %d terms, hessian=%s",
            self.n, len(objective.terms), objective.has_hessian,
        )

    @property
    def has_hessian(self) -> bool:
        return self._structure is not None

    def _check_structure(self) -> None:
        structure = self._structure
        if structure.size and (structure.min() < 0 or structure.max() >= self.n):
            raise ValueError(f"Hessian structure indexes outside [0, {self.n})")

        duplicates = duplicate_entries(structure)
        if len(duplicates) == 0:
            return
        diagonal = duplicates[:, 0] == duplicates[:, 1]
        if np.any(~diagonal):
            logger.warning(
                "%d off-diagonal Hessian entries are stored by more than one term "
                "and will be summed, e.g. %s",
                int(np.sum(~diagonal)), duplicates[~diagonal][:5].tolist(),
            )
        if np.any(diagonal):
            logger.debug("%d diagonal Hessian entries are shared by terms", int(np.sum(diagonal)))

    def _check_input(self, x: NDArray) -> NDArray:
        x = np.asarray(x, dtype=float)
        if x.shape != (self.n,):
            raise ValueError(f"expected a vector of length {self.n}, got shape {x.shape}")
        return x

    def _require_hessian(self) -> None:
        if self._structure is None:
            raise NotImplementedError(
                "objective has no exact Hessian; use a quasi-Newton approximation"
            )

    def objective_value(self, x: NDArray) -> float:
        """L(x)."""
        return float(self.objective.loss(self._check_input(x)))

    def gradient(self, x: NDArray) -> NDArray:
        """∇L(x), length dim * T."""
        return np.asarray(self.objective.gradient(self._check_input(x)), dtype=float)

    def hessianstructure(self) -> Tuple[NDArray, NDArray]:
        """
        (rows, cols) of the stored Hessian entries, lower triangle.

        Terms store row <= col; transposing gives the lower-triangular
        convention of interior-point solvers.
        """
        self._require_hessian()
        return self._structure[:, 1].copy(), self._structure[:, 0].copy()

    def hessian(
        self,
        x: NDArray,
        lagrange: Optional[NDArray] = None,
        obj_factor: float = 1.0,
    ) -> NDArray:
        """
        Objective Hessian values scaled by obj_factor, paired with hessianstructure().

        Args:
            x: Decision vector
            lagrange: Constraint multipliers (unused; constraints are external)
            obj_factor: Objective scaling

        Returns:
            Values of length len(hessianstructure()[0])
        """
        self._require_hessian()
        values = np.asarray(self.objective.hessian(self._check_input(x)), dtype=float)
        if values.shape != (self._structure.shape[0],):
            raise ValueError(
                f"Hessian has {values.shape[0]} values for {self._structure.shape[0]} entries"
            )
        return obj_factor * values

    def hessian_matrix(self, x: NDArray) -> scipy.sparse.csr_matrix:
        """Full symmetric objective Hessian, duplicates summed."""
        values = self.hessian(x)
        return triplets_to_sparse(self._structure, values, self.n, symmetric=True)

    def scipy_interface(self) -> Tuple[Callable, Callable, Optional[Callable]]:
        """
        Returns (fun, jac, hess) for scipy.optimize.minimize.

        hess is None when the objective has no exact Hessian.
        """
        hess = self.hessian_matrix if self.has_hessian else None
        return self.objective_value, self.gradient, hess
