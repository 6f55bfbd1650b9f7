"""Interface for external NLP solvers."""

from qcollocate.optimization.interface import ObjectiveEvaluator

__all__ = [
    "ObjectiveEvaluator",
]
