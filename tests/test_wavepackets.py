import math

import numpy as np
import pytest

from mechlab.errors import MalformedState
from mechlab.integrators import integrate_rk4
from mechlab.systems import get_system


def _evolve(system_id, params, dt, steps):
    system = get_system(system_id)
    params = system.merged_params(params)
    out = integrate_rk4(system.rhs, 0.0, system.initial_state(params), dt, steps, params)
    return system, params, out


def _series(system, params, states, key):
    return np.array([system.derived(s, params)[key] for s in states])


SCHRODINGER = {
    "m": 1.0,
    "gridPoints": 96,
    "xMin": -10.0,
    "xMax": 10.0,
    "packetX0": -4.5,
    "packetSigma": 0.8,
    "packetK0": 2.8,
    "barrierCenter": 0.0,
    "barrierWidth": 0.35,
    "barrierHeight": 0.0,
    "absorberStrength": 0.0,
    "absorberFraction": 0.14,
}


def test_schrodinger_initial_norm():
    system = get_system("schrodinger1d")
    params = system.merged_params(SCHRODINGER)
    assert system.derived(system.initial_state(params), params)["norm"] == pytest.approx(1.0, abs=1e-6)


def test_schrodinger_norm_drift_without_absorber():
    system, params, out = _evolve("schrodinger1d", SCHRODINGER, 0.0015, 900)
    norms = _series(system, params, out.y, "norm")
    assert norms.max() - norms.min() < 0.015


def test_schrodinger_higher_barrier_reflects_more():
    base = {**SCHRODINGER, "packetX0": -4.8, "packetK0": 3.0, "absorberStrength": 0.8}
    reflection = {}
    for height in (1.4, 7.5):
        system, params, out = _evolve("schrodinger1d", {**base, "barrierHeight": height}, 0.002, 1250)
        reflection[height] = system.derived(out.y[-1], params)["reflection"]
    assert reflection[7.5] > reflection[1.4]


def test_schrodinger_rejects_malformed_state():
    system = get_system("schrodinger1d")
    with pytest.raises(MalformedState):
        system.rhs(0.0, np.zeros(5), system.params)


TUNNELING = {
    "m": 1.0,
    "hbar": 1.0,
    "gridPoints": 128,
    "xMin": -12.0,
    "xMax": 12.0,
    "packetX0": -6.0,
    "packetSigma": 0.8,
    "packetK0": 2.9,
    "barrierHeight": 5.0,
    "barrierWidth": 0.6,
    "wellWidth": 2.2,
    "doubleBarrier": 1.0,
    "absorberStrength": 0.0,
    "absorberFraction": 0.12,
}


def test_tunneling_norm_drift_without_absorber():
    system, params, out = _evolve("tunneling1d", TUNNELING, 0.0018, 2400)
    norms = _series(system, params, out.y, "norm")
    assert abs(norms[0] - 1.0) < 1e-6
    assert norms.max() - norms.min() < 0.02


def test_tunneling_probabilities_partition():
    system = get_system("tunneling1d")
    params = system.merged_params(TUNNELING)
    obs = system.derived(system.initial_state(params), params)
    total = obs["reflection"] + obs["transmission"] + obs["barrierOccupancy"]
    assert total == pytest.approx(1.0)
    assert obs["reflection"] > 0.99
    assert obs["packetEnergy"] == pytest.approx(2.9 ** 2 / 2)
    assert obs["barrierThreshold"] == pytest.approx(1.1 + 0.6)


DOUBLE_SLIT = {
    "m": 1.0,
    "hbar": 1.0,
    "gridPoints": 201,
    "xMin": -12.0,
    "xMax": 12.0,
    "slitSeparation": 3.0,
    "slitWidth": 0.35,
    "slitAmpRatio": 1.0,
    "carrierK": 0.0,
    "absorberStrength": 0.0,
    "absorberFraction": 0.12,
}


def test_double_slit_norm_drift():
    params = {**DOUBLE_SLIT, "gridPoints": 181, "slitPhase": 0.0}
    system, params, out = _evolve("doubleslit", params, 0.0018, 2200)
    norms = _series(system, params, out.y, "norm")
    assert norms.max() - norms.min() < 0.018


def test_double_slit_pi_phase_suppresses_center():
    centers = {}
    for phase in (0.0, math.pi):
        system, params, out = _evolve("doubleslit", {**DOUBLE_SLIT, "slitPhase": phase}, 0.0018, 2600)
        centers[phase] = system.derived(out.y[-1], params)["centerDensity"]
    assert centers[0.0] > 6 * centers[math.pi]


DOUBLE_SLIT_2D = {
    "m": 1.0,
    "hbar": 1.0,
    "gridX": 30,
    "gridY": 38,
    "xMin": -7.0,
    "xMax": 7.0,
    "yMin": -6.0,
    "yMax": 6.0,
    "packetX0": 0.0,
    "packetY0": -4.2,
    "packetSigmaX": 0.8,
    "packetSigmaY": 0.65,
    "packetKx": 0.0,
    "packetKy": 7.5,
    "barrierY": -1.0,
    "barrierThickness": 0.2,
    "slitSeparation": 2.4,
    "slitWidth": 0.5,
    "barrierHeight": 220.0,
    "rightSlitOpen": 1.0,
    "detectorY": 3.8,
    "absorberStrength": 0.0,
    "absorberFraction": 0.12,
}


def test_double_slit_2d_norm():
    system = get_system("doubleslit2d")
    params = system.merged_params(DOUBLE_SLIT_2D)
    y0 = system.initial_state(params)
    assert y0.shape == (2 * 30 * 38,)
    assert system.derived(y0, params)["norm"] == pytest.approx(1.0, abs=1e-6)


def test_double_slit_2d_norm_drift_without_absorber():
    system, params, out = _evolve("doubleslit2d", DOUBLE_SLIT_2D, 0.0035, 200)
    norms = _series(system, params, out.y, "norm")
    assert norms.max() - norms.min() < 0.02


def test_double_slit_2d_rejects_wrong_length():
    system = get_system("doubleslit2d")
    with pytest.raises(MalformedState):
        system.rhs(0.0, np.zeros(2 * 30 * 38 + 2), system.merged_params(DOUBLE_SLIT_2D))


QHO = {"m": 1.0, "omega": 1.0, "hbar": 1.0}


def test_qho_superposition_normalized():
    params = {**QHO, "gridPoints": 120, "xMin": -7.0, "xMax": 7.0, "c0": 1.0, "c1": 0.65, "c2": 0.35,
              "phi1": math.pi / 3, "phi2": math.pi / 7}
    system = get_system("qho1d")
    params = system.merged_params(params)
    assert system.derived(system.initial_state(params), params)["norm"] == pytest.approx(1.0, abs=1e-6)


def test_qho_ground_state_stays_centered():
    params = {**QHO, "gridPoints": 128, "xMin": -8.0, "xMax": 8.0, "c0": 1.0, "c1": 0.0, "c2": 0.0}
    system, params, out = _evolve("qho1d", params, 0.0015, 2400)
    x_mean = _series(system, params, out.y, "xMean")
    norms = _series(system, params, out.y, "norm")
    energy = np.array([system.energy(s, params) for s in out.y])
    assert np.abs(x_mean).max() < 0.05
    assert norms.max() - norms.min() < 0.015
    assert energy.max() - energy.min() < 0.03


def test_qho_superposition_oscillates():
    params = {**QHO, "gridPoints": 112, "xMin": -7.0, "xMax": 7.0, "c0": 1.0, "c1": 0.85, "c2": 0.0}
    system, params, out = _evolve("qho1d", params, 0.002, 3500)
    x_mean = _series(system, params, out.y, "xMean")
    assert x_mean.max() - x_mean.min() > 0.25
    assert x_mean.max() > 0.02
    assert x_mean.min() < -0.02


def test_double_well_norm_and_initial_side():
    system, params, out = _evolve("doublewell", {}, 0.002, 500)
    norms = _series(system, params, out.y, "norm")
    first = system.derived(out.y[0], params)
    assert first["leftProb"] > 0.99
    assert norms.max() - norms.min() < 0.01
