"""Additive objective terms for the NLP solver."""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional
import numpy as np
from numpy.typing import NDArray

from qcollocate.algebra.sparse import concat_structures, concat_values
from qcollocate.core.errors import ConfigurationError
from qcollocate.core.records import TermRecord


logger = logging.getLogger(__name__)

LossFn = Callable[[NDArray], float]
GradientFn = Callable[[NDArray], NDArray]
HessianFn = Callable[[NDArray], NDArray]
StructureFn = Callable[[], NDArray]


@dataclass(frozen=True)
class Objective:
    """
    Loss, gradient and optional sparse Hessian over the flat decision vector.

    hessian(Z) returns values paired by position with hessian_structure(),
    an (nnz, 2) array of (row, col) with row <= col. The structure does not
    depend on Z. Either both Hessian callbacks are set, or neither is.

    Objectives combine with +, which returns a new Objective:
        - losses and gradients add,
        - Hessian structures and values concatenate (obj1's entries first),
        - a side without a Hessian contributes nothing to the Hessian,
        - term records concatenate.

    Concatenation is not a merge. Two terms that store the same (row, col)
    both keep their entry and consumers sum them, so overlap between terms
    silently adds rather than fails.
    """

    loss: LossFn
    gradient: GradientFn
    hessian: Optional[HessianFn] = None
    hessian_structure: Optional[StructureFn] = None
    terms: tuple[TermRecord, ...] = ()

    def __post_init__(self):
        if (self.hessian is None) != (self.hessian_structure is None):
            raise ConfigurationError(
                "hessian and hessian_structure must both be given or both omitted"
            )
        object.__setattr__(self, "terms", tuple(self.terms))

    @property
    def has_hessian(self) -> bool:
        return self.hessian is not None

    def __add__(self, other: Optional["Objective"]) -> "Objective":
        if other is None:
            return self
        if not isinstance(other, Objective):
            return NotImplemented
        return combine(self, other)

    def __radd__(self, other) -> "Objective":
        # Supports sum(objectives) and None + obj
        if other is None or (isinstance(other, (int, float)) and other == 0):
            return self
        return NotImplemented

    @classmethod
    def from_terms(cls, objectives: Iterable[Optional["Objective"]]) -> "Objective":
        """Left fold of + over objectives; None entries are skipped."""
        result = None
        for obj in objectives:
            if obj is None:
                continue
            result = obj if result is None else result + obj
        if result is None:
            raise ConfigurationError("cannot build an objective from no terms")
        return result


def combine(obj1: Objective, obj2: Objective) -> Objective:
    """obj1 + obj2."""

    def loss(Z: NDArray) -> float:
        return obj1.loss(Z) + obj2.loss(Z)

    def gradient(Z: NDArray) -> NDArray:
        return np.asarray(obj1.gradient(Z)) + np.asarray(obj2.gradient(Z))

    if obj1.has_hessian and obj2.has_hessian:
        def hessian(Z: NDArray) -> NDArray:
            return concat_values([obj1.hessian(Z), obj2.hessian(Z)])

        def hessian_structure() -> NDArray:
            return concat_structures([obj1.hessian_structure(), obj2.hessian_structure()])

    elif obj1.has_hessian or obj2.has_hessian:
        side = obj1 if obj1.has_hessian else obj2
        dropped = obj2 if side is obj1 else obj1
        logger.debug(
            "combining with Hessian-free terms %s; Hessian covers the other side only",
            [t.kind.value for t in dropped.terms],
        )
        hessian, hessian_structure = side.hessian, side.hessian_structure

    else:
        hessian, hessian_structure = None, None

    return Objective(
        loss=loss,
        gradient=gradient,
        hessian=hessian,
        hessian_structure=hessian_structure,
        terms=obj1.terms + obj2.terms,
    )
