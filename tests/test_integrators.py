import math

import numpy as np
import pytest

from mechlab.errors import IntegratorUsageError
from mechlab.integrators import integrate, integrate_rk4, integrate_velocity_verlet, rk4_step


def _harmonic(t, y, p):
    return np.array([y[1], -y[0]])


def test_rk4_exponential_growth():
    out = integrate_rk4(lambda t, y, p: y, 0.0, [1.0], 0.1, 10, {})
    assert abs(out.y[-1][0] - math.e) < 5e-4
    assert out.steps == 10
    assert out.t[-1] == pytest.approx(1.0)


def test_rk4_harmonic_radius_bounded():
    out = integrate_rk4(_harmonic, 0.0, [1.0, 0.0], 0.01, 2000, {})
    radius = np.hypot(out.y[:, 0], out.y[:, 1])
    assert radius.max() - radius.min() < 0.02


def test_verlet_energy_bounded():
    out = integrate_velocity_verlet(_harmonic, 0.0, [1.0, 0.0], 0.05, 3000, {})
    energy = 0.5 * (out.y[:, 0] ** 2 + out.y[:, 1] ** 2)
    assert energy.max() - energy.min() < 0.02


def test_verlet_rejects_odd_state():
    with pytest.raises(IntegratorUsageError):
        integrate_velocity_verlet(lambda t, y, p: y, 0.0, [1.0, 2.0, 3.0], 0.01, 10, {})


def test_output_shapes_and_time_grid():
    out = integrate("rk4", _harmonic, 2.0, [1.0, 0.0], 0.25, 4, {})
    assert out.y.shape == (5, 2)
    assert np.allclose(out.t, [2.0, 2.25, 2.5, 2.75, 3.0])
    # first frame is y0 verbatim
    assert out.y[0].tolist() == [1.0, 0.0]


def test_input_state_not_mutated():
    y0 = np.array([1.0, 0.0])
    integrate_rk4(_harmonic, 0.0, y0, 0.1, 5, {})
    assert y0.tolist() == [1.0, 0.0]


def test_unknown_kind():
    with pytest.raises(IntegratorUsageError):
        integrate("euler", _harmonic, 0.0, [1.0, 0.0], 0.1, 1, {})


def test_non_finite_values_propagate():
    out = integrate_rk4(lambda t, y, p: y * y, 0.0, [1.0], 0.5, 20, {})
    assert not np.isfinite(out.y[-1][0])


def test_rk4_step_matches_integrate():
    y1 = rk4_step(_harmonic, 0.0, np.array([1.0, 0.0]), 0.1, {})
    out = integrate_rk4(_harmonic, 0.0, [1.0, 0.0], 0.1, 1, {})
    assert np.allclose(y1, out.y[1])
