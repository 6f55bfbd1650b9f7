"""Core abstractions: layout, objective algebra, term records."""

from qcollocate.core.errors import ConfigurationError
from qcollocate.core.layout import TrajectoryLayout
from qcollocate.core.objective import Objective, combine
from qcollocate.core.records import TermKind, TermRecord, record_to_dict, record_from_dict

__all__ = [
    "ConfigurationError",
    "TrajectoryLayout",
    "Objective",
    "combine",
    "TermKind",
    "TermRecord",
    "record_to_dict",
    "record_from_dict",
]
