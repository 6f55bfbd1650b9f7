"""Closed registry from term kind to term factory, and reconstruction."""

import logging
from pathlib import Path
from typing import Callable, Iterable, Union

from qcollocate.core.errors import ConfigurationError
from qcollocate.core.layout import TrajectoryLayout
from qcollocate.core.objective import Objective
from qcollocate.core.records import (
    RECORD_TYPES,
    TermKind,
    TermRecord,
    dump_records,
    load_records,
)


logger = logging.getLogger(__name__)

TermFactory = Callable[[TrajectoryLayout, TermRecord], Objective]

_FACTORIES: dict[TermKind, TermFactory] = {}


def register_term(kind: TermKind) -> Callable[[TermFactory], TermFactory]:
    """Register the factory that rebuilds terms of one kind from their record."""

    def decorator(factory: TermFactory) -> TermFactory:
        if kind in _FACTORIES:
            raise ValueError(f"a factory for {kind.value} is already registered")
        _FACTORIES[kind] = factory
        return factory

    return decorator


def check_registry() -> None:
    """Every term kind must have both a record type and a factory."""
    missing = [k.value for k in TermKind if k not in _FACTORIES or k not in RECORD_TYPES]
    if missing:
        raise RuntimeError(f"term kinds without a record type or factory: {missing}")


def build_term(record: TermRecord, layout: TrajectoryLayout) -> Objective:
    """Rebuild one term against a layout."""
    kind = getattr(record, "kind", None)
    if kind not in _FACTORIES:
        raise ConfigurationError(f"no factory registered for record {record!r}")
    return _FACTORIES[kind](layout, record)


def objective_from_records(
    records: Iterable[TermRecord], layout: TrajectoryLayout
) -> Objective:
    """Rebuild every term and sum them, in order."""
    return Objective.from_terms(build_term(r, layout) for r in records)


def save_objective(path: Union[str, Path], objective: Objective) -> None:
    """Persist an objective's term records as JSON."""
    dump_records(path, objective.terms)
    logger.debug("saved %d objective terms to %s", len(objective.terms), path)


def load_objective(path: Union[str, Path], layout: TrajectoryLayout) -> Objective:
    """Load term records saved by save_objective and rebuild the objective."""
    records = load_records(path)
    logger.debug("loaded %d objective terms from %s", len(records), path)
    return objective_from_records(records, layout)
