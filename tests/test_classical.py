import math

import numpy as np
import pytest

from mechlab.errors import InvalidExpression
from mechlab.integrators import integrate_rk4, integrate_velocity_verlet
from mechlab.systems import Context, get_system


def _run(system, params, y0, dt, steps):
    return integrate_rk4(system.rhs, 0.0, y0, dt, steps, system.merged_params(params))


def test_projectile_matches_parabola():
    system = get_system("projectile")
    out = _run(system, {"g": 9.81}, [0.0, 0.0, 5.0, 10.0], 0.01, 200)
    t = out.t[-1]
    assert out.y[-1][0] == pytest.approx(5.0 * t, abs=5e-5)
    assert out.y[-1][1] == pytest.approx(10.0 * t - 0.5 * 9.81 * t * t, abs=5e-5)


def test_orbit_conserves_energy_and_angular_momentum():
    system = get_system("orbit")
    params = system.merged_params({"mu": 1.0})
    out = _run(system, params, [1.0, 0.0, 0.0, 1.0], 0.01, 3000)
    energy = np.array([system.energy(s, params) for s in out.y])
    momentum = out.y[:, 0] * out.y[:, 3] - out.y[:, 1] * out.y[:, 2]
    assert energy.max() - energy.min() < 1e-3
    assert momentum.max() - momentum.min() < 1e-3


def test_orbit_energy_at_origin_is_infinite():
    system = get_system("orbit")
    assert system.energy(np.array([0.0, 0.0, 1.0, 0.0]), system.params) == math.inf


def test_oscillator_verlet_supported():
    system = get_system("oscillator")
    assert system.supports("verlet")
    out = integrate_velocity_verlet(system.rhs, 0.0, [1.0, 0.0], 0.01, 628, system.params)
    assert out.y[-1][0] == pytest.approx(1.0, abs=1e-2)


def test_projectile_is_rk4_only():
    assert get_system("projectile").integrators == ("rk4",)
    assert not get_system("doublependulum").supports("verlet")


def test_double_pendulum_rest_and_energy():
    system = get_system("doublependulum")
    params = system.params
    assert np.allclose(system.rhs(0.0, np.zeros(4), params), 0.0, atol=1e-12)
    out = _run(system, params, [0.2, 0.0, 0.2, 0.0], 0.002, 4000)
    energy = np.array([system.energy(s, params) for s in out.y])
    assert energy.max() - energy.min() < 2e-2


def test_driven_oscillator_starts_from_rest_and_responds():
    system = get_system("drivendampedoscillator")
    out = _run(system, {}, system.initial_state(system.params), 0.01, 2000)
    assert np.all(np.isfinite(out.y))
    assert np.abs(out.y[:, 0]).max() > 0.1


def test_potential1d_harmonic_motion():
    system = get_system("potential1d").with_context(Context(expression="0.5 * x^2"))
    out = _run(system, {"m": 1.0, "gradStep": 1e-4}, [1.0, 0.0], 0.005, 1200)
    t = out.t[-1]
    assert out.y[-1][0] == pytest.approx(math.cos(t), abs=5e-3)
    assert out.y[-1][1] == pytest.approx(-math.sin(t), abs=5e-3)


def test_potential1d_anharmonic_derived_values():
    system = get_system("potential1d").with_context(Context(expression="0.5 * x^2 + 0.1 * x^4"))
    derived = system.derived(np.array([0.8, -0.2]), {"m": 2.0, "gradStep": 1e-4})
    assert math.isfinite(derived["potential"])
    assert derived["force"] == pytest.approx(-(0.8 + 0.4 * 0.8 ** 3), rel=1e-4)


def test_potential1d_rejects_foreign_variables():
    with pytest.raises(InvalidExpression, match="only use variable x"):
        get_system("potential1d").with_context(Context(expression="x + y"))


def test_bound_expression_does_not_leak_into_registry():
    bound = get_system("potential1d").with_context(Context(expression="x^4"))
    default = get_system("potential1d")
    state = np.array([2.0, 0.0])
    assert bound.energy(state, default.params) == pytest.approx(16.0)
    assert default.energy(state, default.params) == pytest.approx(2.0)


def test_skijump_friction_slows_skier():
    system = get_system("skijump").with_context(Context(hill_profile=[(0.0, 5.0), (200.0, -55.0)]))
    low = _run(system, {"g": 9.81, "m": 75.0, "muK": 0.02}, [0.0, 0.0], 0.01, 500)
    high = _run(system, {"g": 9.81, "m": 75.0, "muK": 0.2}, [0.0, 0.0], 0.01, 500)
    v_low, v_high = low.y[-1][1], high.y[-1][1]
    assert v_low > 0
    assert v_high > 0
    assert v_high < v_low


def test_skijump_flat_track_decelerates():
    system = get_system("skijump").with_context(Context(hill_profile=[(0.0, 2.0), (200.0, 2.0)]))
    out = _run(system, {"g": 9.81, "m": 75.0, "muK": 0.1}, [0.0, 5.0], 0.01, 250)
    assert 0 < out.y[-1][1] < 5


MUSCLE_PARAMS = {
    "m": 0.8,
    "fMax": 14.0,
    "kPassive": 22.0,
    "lSlack": 1.0,
    "damping": 2.4,
    "load": 0.0,
    "u": 0.7,
    "tau": 0.07,
    "lFloor": 0.5,
}


def test_muscle_activation_tracks_drive():
    system = get_system("muscleactivation")
    d = system.rhs(0.0, np.array([1.0, 0.0, 0.2]), {**MUSCLE_PARAMS, "u": 0.8, "tau": 0.05})
    assert d[2] > 0
    low = system.rhs(0.0, np.array([1.05, 0.0, 0.15]), MUSCLE_PARAMS)
    high = system.rhs(0.0, np.array([1.05, 0.0, 0.9]), MUSCLE_PARAMS)
    assert high[1] < low[1]


def test_muscle_drawn_curve_changes_force():
    base = get_system("muscleactivation")
    strong = base.with_context(Context(muscle_curve=[(0.5, 0.2), (1.0, 0.95), (1.6, 0.3)]))
    weak = base.with_context(Context(muscle_curve=[(0.5, 0.2), (1.0, 0.25), (1.6, 0.2)]))
    state = np.array([1.0, 0.0, 0.7])
    assert strong.derived(state, MUSCLE_PARAMS)["activeForce"] > weak.derived(state, MUSCLE_PARAMS)["activeForce"]


def test_muscle_shortens_against_low_load():
    system = get_system("muscleactivation")
    params = {**MUSCLE_PARAMS, "load": 0.4, "u": 0.9, "tau": 0.06}
    out = _run(system, params, [1.1, 0.0, 0.1], 0.005, 700)
    assert out.y[-1][0] < 1.1
