"""Fixed-schema records of objective terms, and their JSON persistence."""

import json
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Optional, Union
import numpy as np
from numpy.typing import NDArray

from qcollocate.core.errors import ConfigurationError
from qcollocate.losses.base import LossKind


class TermKind(Enum):
    """Closed set of objective term kinds."""
    QUANTUM = "QuantumObjective"
    UNITARY_INFIDELITY = "UnitaryInfidelityObjective"
    QUADRATIC_REGULARIZER = "QuadraticRegularizer"
    QUADRATIC_SMOOTHNESS = "QuadraticSmoothnessRegularizer"
    L1_REGULARIZER = "L1Regularizer"
    MINIMUM_TIME = "MinimumTimeObjective"
    INFIDELITY_ROBUSTNESS = "InfidelityRobustnessObjective"


def _times(times) -> tuple[int, ...]:
    return tuple(int(t) for t in times)


def _float_array(a) -> NDArray:
    return np.asarray(a, dtype=float)


@dataclass(frozen=True, eq=False)
class QuantumObjectiveRecord:
    kind: ClassVar[TermKind] = TermKind.QUANTUM

    names: tuple[str, ...]
    goals: tuple[NDArray, ...]
    loss: LossKind
    Q: tuple[float, ...]
    eval_hessian: bool = True

    def __post_init__(self):
        object.__setattr__(self, "names", tuple(self.names))
        object.__setattr__(self, "goals", tuple(_float_array(g) for g in self.goals))
        object.__setattr__(self, "loss", LossKind(self.loss))
        object.__setattr__(self, "Q", tuple(float(q) for q in self.Q))


@dataclass(frozen=True, eq=False)
class UnitaryInfidelityRecord:
    kind: ClassVar[TermKind] = TermKind.UNITARY_INFIDELITY

    name: str
    goal: NDArray
    Q: float = 100.0
    eval_hessian: bool = True
    subspace: Optional[tuple[int, ...]] = None

    def __post_init__(self):
        object.__setattr__(self, "goal", _float_array(self.goal))
        if self.subspace is not None:
            object.__setattr__(self, "subspace", tuple(int(i) for i in self.subspace))


@dataclass(frozen=True, eq=False)
class QuadraticRegularizerRecord:
    kind: ClassVar[TermKind] = TermKind.QUADRATIC_REGULARIZER

    name: str
    times: tuple[int, ...]
    R: NDArray
    values: Optional[NDArray] = None
    eval_hessian: bool = True
    timestep_name: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "times", _times(self.times))
        object.__setattr__(self, "R", _float_array(self.R))
        if self.values is not None:
            object.__setattr__(self, "values", _float_array(self.values))


@dataclass(frozen=True, eq=False)
class QuadraticSmoothnessRecord:
    kind: ClassVar[TermKind] = TermKind.QUADRATIC_SMOOTHNESS

    name: str
    times: tuple[int, ...]
    R: NDArray
    eval_hessian: bool = True

    def __post_init__(self):
        object.__setattr__(self, "times", _times(self.times))
        object.__setattr__(self, "R", _float_array(self.R))


@dataclass(frozen=True, eq=False)
class L1RegularizerRecord:
    kind: ClassVar[TermKind] = TermKind.L1_REGULARIZER

    name: str
    R: NDArray
    times: tuple[int, ...]
    eval_hessian: bool = True

    def __post_init__(self):
        object.__setattr__(self, "R", _float_array(self.R))
        object.__setattr__(self, "times", _times(self.times))


@dataclass(frozen=True, eq=False)
class MinimumTimeRecord:
    kind: ClassVar[TermKind] = TermKind.MINIMUM_TIME

    D: float = 1.0
    eval_hessian: bool = True


@dataclass(frozen=True, eq=False)
class InfidelityRobustnessRecord:
    kind: ClassVar[TermKind] = TermKind.INFIDELITY_ROBUSTNESS

    H_error: NDArray
    name: str = "Ũ⃗"
    subspace: Optional[tuple[int, ...]] = None

    def __post_init__(self):
        object.__setattr__(self, "H_error", np.asarray(self.H_error, dtype=complex))
        if self.subspace is not None:
            object.__setattr__(self, "subspace", tuple(int(i) for i in self.subspace))


TermRecord = Union[
    QuantumObjectiveRecord,
    UnitaryInfidelityRecord,
    QuadraticRegularizerRecord,
    QuadraticSmoothnessRecord,
    L1RegularizerRecord,
    MinimumTimeRecord,
    InfidelityRobustnessRecord,
]

RECORD_TYPES: dict[TermKind, type] = {
    cls.kind: cls
    for cls in (
        QuantumObjectiveRecord,
        UnitaryInfidelityRecord,
        QuadraticRegularizerRecord,
        QuadraticSmoothnessRecord,
        L1RegularizerRecord,
        MinimumTimeRecord,
        InfidelityRobustnessRecord,
    )
}


def _encode(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        if np.iscomplexobj(value):
            return {"real": value.real.tolist(), "imag": value.imag.tolist()}
        return {"array": value.tolist()}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (tuple, list)):
        return [_encode(v) for v in value]
    if isinstance(value, np.generic):
        return value.item()
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, dict):
        if "array" in value:
            return np.asarray(value["array"], dtype=float)
        if "real" in value and "imag" in value:
            return np.asarray(value["real"]) + 1j * np.asarray(value["imag"])
        raise ConfigurationError(f"cannot decode record field {value!r}")
    if isinstance(value, list):
        return tuple(_decode(v) for v in value)
    return value


def record_to_dict(record: TermRecord) -> dict:
    """JSON-safe dict of a record, tagged with its term type."""
    out = {"type": record.kind.value}
    for f in fields(record):
        out[f.name] = _encode(getattr(record, f.name))
    return out


def record_from_dict(data: dict) -> TermRecord:
    """Inverse of record_to_dict; unknown types and fields are rejected."""
    data = dict(data)
    try:
        kind = TermKind(data.pop("type"))
    except (KeyError, ValueError):
        raise ConfigurationError(f"unknown objective term type in {data!r}") from None

    cls = RECORD_TYPES[kind]
    allowed = {f.name for f in fields(cls)}
    unknown = set(data) - allowed
    if unknown:
        raise ConfigurationError(f"unknown fields for {kind.value}: {sorted(unknown)}")

    return cls(**{k: _decode(v) for k, v in data.items()})


def dump_records(path: Union[str, Path], records) -> None:
    """Write records to a JSON file."""
    payload = {"terms": [record_to_dict(r) for r in records]}
    Path(path).write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


def load_records(path: Union[str, Path]) -> list[TermRecord]:
    """Read records written by dump_records."""
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return [record_from_dict(d) for d in payload["terms"]]
