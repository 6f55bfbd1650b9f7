"""Loss primitive over a single component's sub-vector."""

from abc import ABC, abstractmethod
from enum import Enum
import numpy as np
from numpy.typing import NDArray


class LossKind(Enum):
    """Closed set of loss primitives a fidelity objective can use."""
    STATE_INFIDELITY = "InfidelityLoss"
    UNITARY_INFIDELITY = "UnitaryInfidelityLoss"


class Loss(ABC):
    """
    Scalar loss l(x) of one component, with exact first and second derivatives.

    hessian_structure lists the (i, j) offsets, local to the component and
    with i <= j, where the Hessian can be nonzero. It depends only on the
    analytic form of the loss, never on x.
    """

    def __init__(self, name: str, width: int):
        self.name = name
        self.width = width

    @abstractmethod
    def value(self, x: NDArray) -> float:
        ...

    @abstractmethod
    def gradient(self, x: NDArray) -> NDArray:
        """∇l(x), same length as x."""
        ...

    @abstractmethod
    def hessian(self, x: NDArray) -> NDArray:
        """Dense symmetric ∇²l(x), shape (width, width)."""
        ...

    @property
    @abstractmethod
    def hessian_structure(self) -> NDArray:
        """Local nonzero offsets, shape (nnz, 2)."""
        ...

    def hessian_values(self, x: NDArray) -> NDArray:
        """∇²l(x) read at hessian_structure, same order."""
        structure = self.hessian_structure
        return self.hessian(x)[structure[:, 0], structure[:, 1]]

    def __call__(self, x: NDArray) -> float:
        return self.value(x)


def upper_block_structure(support: NDArray) -> NDArray:
    """All (i, j) with i <= j drawn from support, row-major."""
    support = np.asarray(support, dtype=np.intp)
    rows, cols = np.triu_indices(len(support))
    return np.column_stack([support[rows], support[cols]])
