"""Loss primitives over a single trajectory component."""

from qcollocate.losses.base import Loss, LossKind
from qcollocate.losses.infidelity import (
    StateInfidelityLoss,
    UnitaryInfidelityLoss,
    make_loss,
)

__all__ = [
    "Loss",
    "LossKind",
    "StateInfidelityLoss",
    "UnitaryInfidelityLoss",
    "make_loss",
]
