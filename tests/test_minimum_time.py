"""Tests for the minimum-time objective."""

import numpy as np
import pytest

from qcollocate import ConfigurationError, TrajectoryLayout, minimum_time_objective


def test_minimum_time():
    layout = TrajectoryLayout.from_dims({"x": 1, "Δt": 1}, T=3, timestep="Δt")
    obj = minimum_time_objective(layout, D=2.0)
    Z = np.array([5.0, 0.1, -5.0, 0.2, 7.0, 0.3])
    assert np.isclose(obj.loss(Z), 1.2)
    assert np.allclose(obj.gradient(Z), [0.0, 2.0, 0.0, 2.0, 0.0, 2.0])
    assert obj.hessian_structure().shape == (0, 2)
    assert len(obj.hessian(Z)) == 0


def test_minimum_time_without_hessian():
    layout = TrajectoryLayout.from_dims({"Δt": 1}, T=2, timestep="Δt")
    assert not minimum_time_objective(layout, eval_hessian=False).has_hessian


def test_fixed_timestep_rejected():
    layout = TrajectoryLayout.from_dims({"x": 1}, T=3, timestep=0.1)
    with pytest.raises(ConfigurationError):
        minimum_time_objective(layout)
