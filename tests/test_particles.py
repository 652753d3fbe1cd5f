import math

import numpy as np
import pytest

from mechlab.errors import MalformedState
from mechlab.integrators import integrate, integrate_rk4
from mechlab.systems import get_system
from mechlab.systems.charges import predicted_scatter_degrees
from mechlab.systems.patchybinding import initial_state as patchy_initial_state


def _run(system_id, overrides, y0, dt, steps, kind="rk4"):
    system = get_system(system_id)
    params = system.merged_params(overrides)
    if y0 is None:
        y0 = system.initial_state(params)
    return system, params, integrate(kind, system.rhs, 0.0, y0, dt, steps, params)


def test_charged_particle_in_uniform_field_follows_parabola():
    overrides = {"q": 2.0, "m": 4.0, "ex0": 3.0, "ey0": -2.0, "sourceStrength": 0.0}
    _, _, out = _run("chargedparticle", overrides, [0.2, -0.1, 1.1, -0.4], 0.01, 300)
    t = out.t[-1]
    assert out.y[-1][0] == pytest.approx(0.2 + 1.1 * t + 0.75 * t * t, abs=1e-4)
    assert out.y[-1][1] == pytest.approx(-0.1 - 0.4 * t - 0.5 * t * t, abs=1e-4)


def test_positive_source_pushes_positive_charge_outwards():
    system = get_system("chargedparticle")
    params = system.merged_params({"ex0": 0.0, "ey0": 0.0, "sourceStrength": 2.0})
    accel = system.rhs(0.0, np.array([1.0, 0.5, 0.0, 0.0]), params)
    assert accel[2] > 0 and accel[3] > 0
    flipped = system.rhs(0.0, np.array([1.0, 0.5, 0.0, 0.0]), {**params, "q": -1.0})
    assert flipped[2] == pytest.approx(-accel[2])
    assert flipped[3] == pytest.approx(-accel[3])


def test_charged_particle_verlet_conserves_energy():
    system, params, out = _run("chargedparticle", {"sourceStrength": 0.3}, [-1.3, 1.0, 1.0, 0.0], 0.005, 1000, kind="verlet")
    energy = np.array([system.energy(state, params) for state in out.y])
    assert energy.max() - energy.min() < 1e-2


def test_rutherford_angle_matches_prediction():
    system, params, out = _run("rutherford", {}, None, 0.01, 800)
    final = system.derived(out.y[-1], params)
    assert final["predictedDeg"] == pytest.approx(predicted_scatter_degrees(params))
    assert final["scatterDeg"] > 10.0
    assert abs(final["angleErrorDeg"]) < 2.0


def test_rutherford_conserves_energy_and_angular_momentum():
    system, params, out = _run("rutherford", {}, None, 0.01, 800)
    energy = np.array([system.energy(state, params) for state in out.y])
    lz = np.array([system.derived(state, params)["lz"] for state in out.y])
    assert energy.max() - energy.min() < 1e-4
    assert lz.max() - lz.min() < 1e-4


def test_attractive_target_bends_the_other_way():
    system, params, out = _run("rutherford", {"qTarget": -1.0}, None, 0.01, 800, kind="verlet")
    final = system.derived(out.y[-1], params)
    assert final["kappa"] == -1.0
    assert final["scatterDeg"] < 0
    assert final["predictedDeg"] < 0


def test_uniform_flow_moves_tracer_linearly():
    overrides = {"uniformU": 1.0, "uniformV": -0.2, "sourceStrength": 0.0, "vortexStrength": 0.0}
    _, _, out = _run("flowfield", overrides, [-1.0, 0.5], 0.02, 250)
    assert out.y[-1][0] == pytest.approx(4.0, abs=1e-9)
    assert out.y[-1][1] == pytest.approx(-0.5, abs=1e-9)


def test_source_and_vortex_directions():
    system = get_system("flowfield")
    source = system.merged_params({"uniformU": 0.0, "sourceStrength": 2.0})
    u, v = system.rhs(0.0, np.array([1.0, 0.5]), source)
    assert u > 0 and v > 0
    vortex = system.merged_params({"uniformU": 0.0, "vortexStrength": 1.0})
    u, v = system.rhs(0.0, np.array([1.0, 0.0]), vortex)
    assert v > 0
    assert abs(u) < 1e-8


def test_dense_particle_sinks_and_light_particle_rises():
    _, _, heavy = _run("fluidparticle", {"rhoParticle": 2000.0}, None, 0.01, 200)
    assert heavy.y[-1][3] < 0
    assert heavy.y[-1][1] < 0
    _, _, light = _run("fluidparticle", {"rhoParticle": 900.0}, None, 0.01, 200)
    assert light.y[-1][3] > 0


def test_viscosity_lowers_terminal_speed():
    at_rest = [0.0, 0.0, 0.0, 0.0]
    _, _, thick = _run("fluidparticle", {"rhoParticle": 1800.0, "mu": 0.2}, at_rest, 0.01, 800)
    _, _, thin = _run("fluidparticle", {"rhoParticle": 1800.0, "mu": 0.001}, at_rest, 0.01, 800)
    assert abs(thick.y[-1][3]) < abs(thin.y[-1][3])


def test_cart_pole_upright_is_an_unstable_equilibrium():
    system = get_system("cartpole")
    assert np.allclose(system.rhs(0.0, np.zeros(4), system.params), 0.0)
    assert system.rhs(0.0, np.array([0.0, 0.0, 0.05, 0.0]), system.params)[3] > 0
    out = integrate_rk4(system.rhs, 0.0, system.initial_state(system.params), 0.005, 100, system.params)
    assert out.y[-1][2] > 0.1


def test_cart_pole_push_accelerates_cart():
    system = get_system("cartpole")
    params = system.merged_params({"u": 5.0})
    rates = system.rhs(0.0, np.zeros(4), params)
    assert rates[1] == pytest.approx(5.0 / params["mCart"])
    assert rates[3] < 0
    assert not system.supports("verlet")


def test_patchy_rejects_wrong_length():
    system = get_system("patchybinding")
    with pytest.raises(MalformedState, match="expected 12, got 11"):
        system.rhs(0.0, np.zeros(11), system.params)


def test_patchy_initial_state_overrides():
    y0 = patchy_initial_state(vx1=0.0, theta2=math.pi)
    assert y0.shape == (12,)
    assert y0[6] == 0.0
    assert y0[5] == pytest.approx(math.pi)
    assert y0[0] == -2.8


def test_patchy_encounter_closes_distance_and_loses_energy():
    system, params, out = _run("patchybinding", {}, None, 0.01, 1000)
    start = system.derived(out.y[0], params)
    end = system.derived(out.y[-1], params)
    assert end["distance"] < start["distance"]
    assert system.energy(out.y[-1], params) < system.energy(out.y[0], params)
    assert np.all(np.isfinite(out.y))


def test_facing_patches_score_full_contact():
    system = get_system("patchybinding")
    facing = patchy_initial_state(x1=-0.71, y1=0.0, theta1=0.0, x2=0.71, y2=0.0, theta2=math.pi,
                                  vx1=0.0, vy1=0.0, vx2=0.0, vy2=0.0)
    obs = system.derived(facing, system.params)
    assert obs["distance"] == pytest.approx(1.42)
    assert obs["contactScore"] == pytest.approx(1.0)
    assert obs["boundProxy"] == 1.0
    turned = facing.copy()
    turned[2] = math.pi
    assert system.derived(turned, system.params)["contactScore"] == pytest.approx(0.0)
