"""State and unitary infidelity losses in the real isomorphic representation."""

from typing import Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from qcollocate.algebra.isomorphisms import (
    iso_overlap_directions,
    iso_vec_dim,
    iso_vec_subspace_indices,
    validate_subspace,
)
from qcollocate.losses.base import Loss, LossKind, upper_block_structure


class StateInfidelityLoss(Loss):
    """
    l(ψ̃) = 1 - |⟨ψ_goal, ψ⟩|² for an iso ket ψ̃ = [Re ψ; Im ψ].

    With p + iq = ⟨ψ_goal, ψ⟩ = g1·ψ̃ + i g2·ψ̃ the loss is quadratic in ψ̃,
    so its Hessian -2(g1 g1ᵀ + g2 g2ᵀ) is constant.
    """

    def __init__(self, name: str, goal: NDArray):
        goal = np.asarray(goal, dtype=float)
        if goal.ndim != 1 or len(goal) % 2 != 0:
            raise ValueError("state goal must be an iso ket of even length")
        super().__init__(name, len(goal))
        self.goal = goal
        self._g1, self._g2 = iso_overlap_directions(goal, len(goal))
        self._structure = upper_block_structure(np.arange(self.width))

    def _overlap(self, x: NDArray) -> tuple[float, float]:
        return float(self._g1 @ x), float(self._g2 @ x)

    def value(self, x: NDArray) -> float:
        p, q = self._overlap(x)
        return 1.0 - (p**2 + q**2)

    def gradient(self, x: NDArray) -> NDArray:
        p, q = self._overlap(x)
        return -2.0 * (p * self._g1 + q * self._g2)

    def hessian(self, x: NDArray) -> NDArray:
        return -2.0 * (np.outer(self._g1, self._g1) + np.outer(self._g2, self._g2))

    @property
    def hessian_structure(self) -> NDArray:
        return self._structure


class UnitaryInfidelityLoss(Loss):
    """
    l(Ũ⃗) = 1 - |tr(G_sᴴ U_s)| / n for the subspace blocks of goal and U.

    Only iso entries of the subspace block take part, so the gradient and
    Hessian vanish outside them. A missing or empty subspace is the full
    space.

    The loss is not differentiable where the overlap tr(G_sᴴ U_s) is zero.
    There the gradient and Hessian are returned as zeros, a valid element
    of the generalized gradient, instead of NaN.
    """

    def __init__(
        self,
        name: str,
        goal: NDArray,
        subspace: Optional[Sequence[int]] = None,
    ):
        goal = np.asarray(goal, dtype=float)
        super().__init__(name, len(goal))
        N = iso_vec_dim(self.width)
        self.goal = goal
        self.subspace = validate_subspace(subspace, N)
        self.n = N if self.subspace is None else len(self.subspace)

        self.subspace_indices = iso_vec_subspace_indices(N, self.subspace)
        self._g1, self._g2 = iso_overlap_directions(goal[self.subspace_indices], 2 * self.n)
        self._structure = upper_block_structure(self.subspace_indices)

    def _overlap(self, x: NDArray) -> tuple[float, float, float]:
        xs = np.asarray(x)[self.subspace_indices]
        p, q = float(self._g1 @ xs), float(self._g2 @ xs)
        return p, q, np.hypot(p, q)

    def fidelity(self, x: NDArray) -> float:
        return self._overlap(x)[2] / self.n

    def value(self, x: NDArray) -> float:
        return 1.0 - self.fidelity(x)

    def gradient(self, x: NDArray) -> NDArray:
        p, q, r = self._overlap(x)
        grad = np.zeros(self.width)
        if r == 0.0:
            return grad
        grad[self.subspace_indices] = -(p * self._g1 + q * self._g2) / (r * self.n)
        return grad

    def hessian(self, x: NDArray) -> NDArray:
        p, q, r = self._overlap(x)
        if r == 0.0:
            return np.zeros((self.width, self.width))
        w = p * self._g1 + q * self._g2
        H_s = (np.outer(self._g1, self._g1) + np.outer(self._g2, self._g2)) / r
        H_s -= np.outer(w, w) / r**3

        H = np.zeros((self.width, self.width))
        H[np.ix_(self.subspace_indices, self.subspace_indices)] = -H_s / self.n
        return H

    @property
    def hessian_structure(self) -> NDArray:
        return self._structure


LOSSES: dict[LossKind, type] = {
    LossKind.STATE_INFIDELITY: StateInfidelityLoss,
    LossKind.UNITARY_INFIDELITY: UnitaryInfidelityLoss,
}


def make_loss(kind: LossKind, name: str, goal: NDArray, **kwargs) -> Loss:
    """Instantiate a loss primitive by kind."""
    return LOSSES[LossKind(kind)](name, goal, **kwargs)
