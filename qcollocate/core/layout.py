"""Named, time-indexed layout of the flattened decision vector."""

from dataclasses import dataclass, field
from functools import cached_property
from typing import Mapping, Optional, Union
import numpy as np
from numpy.typing import NDArray

from qcollocate.core.errors import ConfigurationError
from qcollocate.utils.indexing import slice_indices, index


@dataclass(frozen=True)
class TrajectoryLayout:
    """
    Read-only view of a trajectory's decision-vector layout.

    Every component occupies the same local range in every timestep block;
    only the block offset t * dim changes with t.
    """

    components: Mapping[str, range]
    T: int
    timestep: Union[float, str]  # fixed step, or name of the step-size component
    initial: Mapping[str, NDArray] = field(default_factory=dict)
    final: Mapping[str, NDArray] = field(default_factory=dict)
    goal: Mapping[str, NDArray] = field(default_factory=dict)

    def __post_init__(self):
        if self.T < 1:
            raise ConfigurationError(f"T must be >= 1, got {self.T}")

        claimed = np.zeros(self.dim, dtype=bool)
        for name, r in self.components.items():
            if not isinstance(r, range) or r.step != 1 or len(r) == 0:
                raise ConfigurationError(
                    f"component {name!r} must be a nonempty contiguous range"
                )
            if r.start < 0:
                raise ConfigurationError(f"component {name!r} has negative offset")
            if claimed[r.start:r.stop].any():
                raise ConfigurationError(f"component {name!r} overlaps another component")
            claimed[r.start:r.stop] = True

        if isinstance(self.timestep, str):
            if self.timestep not in self.components:
                raise ConfigurationError(
                    f"timestep component {self.timestep!r} not in layout"
                )
            if len(self.components[self.timestep]) != 1:
                raise ConfigurationError("timestep component must have width 1")
        elif not self.timestep > 0:
            raise ConfigurationError(f"fixed timestep must be positive, got {self.timestep}")

        for refs in (self.initial, self.final, self.goal):
            for name, value in refs.items():
                if name not in self.components:
                    raise ConfigurationError(f"reference for unknown component {name!r}")
                if np.size(value) != len(self.components[name]):
                    raise ConfigurationError(
                        f"reference for {name!r} has length {np.size(value)}, "
                        f"expected {len(self.components[name])}"
                    )

    @classmethod
    def from_dims(
        cls,
        dims: Mapping[str, int],
        T: int,
        timestep: Union[float, str],
        initial: Optional[Mapping[str, NDArray]] = None,
        final: Optional[Mapping[str, NDArray]] = None,
        goal: Optional[Mapping[str, NDArray]] = None,
    ) -> "TrajectoryLayout":
        """Lay out components back to back in the order given."""
        components = {}
        offset = 0
        for name, width in dims.items():
            components[name] = range(offset, offset + width)
            offset += width
        return cls(
            components=components,
            T=T,
            timestep=timestep,
            initial=dict(initial or {}),
            final=dict(final or {}),
            goal=dict(goal or {}),
        )

    @cached_property
    def dim(self) -> int:
        """Per-timestep block width."""
        return max((r.stop for r in self.components.values()), default=0)

    @cached_property
    def dims(self) -> dict[str, int]:
        return {name: len(r) for name, r in self.components.items()}

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self.components.keys())

    @property
    def free_time(self) -> bool:
        """Whether the step size is a decision variable."""
        return isinstance(self.timestep, str)

    @property
    def size(self) -> int:
        """Length of the flattened decision vector."""
        return self.dim * self.T

    def indices(self, name: str, t: int) -> range:
        """Absolute flat indices of component name at timestep t."""
        if not 0 <= t < self.T:
            raise IndexError(f"timestep {t} outside [0, {self.T})")
        return slice_indices(t, self.components[name], self.dim)

    def timestep_indices(self) -> NDArray:
        """Flat index of the step-size variable at each timestep."""
        if not self.free_time:
            raise ConfigurationError("trajectory does not have a free timestep")
        local = self.components[self.timestep].start
        return np.array([index(t, local, self.dim) for t in range(self.T)], dtype=np.intp)

    def timesteps(self, Z: NDArray) -> NDArray:
        """Step sizes at every timestep."""
        if self.free_time:
            return np.asarray(Z)[self.timestep_indices()]
        return np.full(self.T, float(self.timestep))

    def flatten(self, data: Mapping[str, NDArray]) -> NDArray:
        """
        Assemble the flat vector from per-component (width, T) arrays.

        Components missing from data are left at zero.
        """
        Z = np.zeros((self.T, self.dim))
        for name, values in data.items():
            values = np.asarray(values, dtype=float).reshape(len(self.components[name]), self.T)
            Z[:, self.components[name]] = values.T
        return Z.ravel()

    def unflatten(self, Z: NDArray) -> dict[str, NDArray]:
        """Split the flat vector into per-component (width, T) arrays."""
        Z = np.asarray(Z).reshape(self.T, self.dim)
        return {name: Z[:, r].T.copy() for name, r in self.components.items()}
