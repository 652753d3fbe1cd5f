import numpy as np
import pytest

from mechlab.integrators import integrate_rk4
from mechlab.systems import get_system
from mechlab.systems.tightbinding import lcg_uniform, tight_binding_config


def _evolve(system, params, dt, steps, y0=None):
    params = system.merged_params(params)
    start = system.initial_state(params) if y0 is None else y0
    return params, integrate_rk4(system.rhs, 0.0, start, dt, steps, params)


CHAIN = {
    "hop": 1.0,
    "hbar": 1.0,
    "epsilon0": 0.0,
    "impuritySite": -1.0,
    "impurityStrength": 0.0,
}


def test_tight_binding_initial_state():
    system = get_system("tightbinding")
    params = system.merged_params({**CHAIN, "sites": 84, "packetCenter": 16, "packetWidth": 2.8, "packetK": 1.0})
    y0 = system.initial_state(params)
    assert y0.shape == (2 * 84,)
    assert system.derived(y0, params)["norm"] == pytest.approx(1.0, abs=1e-9)


def test_tight_binding_clean_periodic_chain_conserves():
    system = get_system("tightbinding")
    params, out = _evolve(
        system,
        {**CHAIN, "sites": 72, "periodic": 1, "disorderW": 0, "packetCenter": 18, "packetWidth": 2.6, "packetK": 1.1},
        0.02,
        1300,
    )
    norms = np.array([system.derived(s, params)["norm"] for s in out.y])
    energy = np.array([system.energy(s, params) for s in out.y])
    assert norms.max() - norms.min() < 0.012
    assert energy.max() - energy.min() < 0.02


def test_tight_binding_disorder_localizes():
    system = get_system("tightbinding")
    base = {**CHAIN, "sites": 88, "periodic": 0, "packetCenter": 18, "packetWidth": 2.8, "packetK": 1.05}
    clean_params, clean = _evolve(system, {**base, "disorderW": 0.0, "disorderSeed": 2}, 0.02, 1200)
    dis_params, dis = _evolve(system, {**base, "disorderW": 4.4, "disorderSeed": 13}, 0.02, 1200)
    clean_obs = system.derived(clean.y[-1], clean_params)
    dis_obs = system.derived(dis.y[-1], dis_params)
    assert dis_obs["ipr"] > clean_obs["ipr"]
    assert dis_obs["rightProb"] < clean_obs["rightProb"]


def test_disorder_is_reproducible_per_seed():
    assert np.array_equal(lcg_uniform(7, 10), lcg_uniform(7, 10))
    assert not np.array_equal(lcg_uniform(7, 10), lcg_uniform(8, 10))
    values = lcg_uniform(3, 1000)
    assert values.min() >= 0.0
    assert values.max() < 1.0


def test_impurity_shifts_one_site():
    cfg = tight_binding_config({"sites": 40, "disorderW": 0.0, "impuritySite": 5, "impurityStrength": 2.5})
    assert cfg.onsite[5] == pytest.approx(2.5)
    assert np.count_nonzero(cfg.onsite) == 1


QFT = {
    "mass": 1.0,
    "damping": 0.0,
    "periodic": 1.0,
    "packetWidth": 1.0,
    "packetPiScale": 0.0,
}


def test_qft_initial_state_finite():
    system = get_system("qftlattice")
    params = system.merged_params({**QFT, "gridPoints": 80, "xMin": -8, "xMax": 8, "lambda": 0.08,
                                   "packetCenter": -2, "packetAmp": 0.7, "packetK": 1.3})
    y0 = system.initial_state(params)
    assert y0.shape == (160,)
    assert np.all(np.isfinite(y0))


def test_qft_zero_field_stays_at_rest():
    system = get_system("qftlattice")
    params = system.merged_params({**QFT, "gridPoints": 64, "xMin": -8, "xMax": 8, "lambda": 0.2, "packetAmp": 0.0})
    d = system.rhs(0.0, np.zeros(128), params)
    assert np.all(np.abs(d) < 1e-12)


def test_qft_free_field_conserves_energy():
    system = get_system("qftlattice")
    params, out = _evolve(
        system,
        {**QFT, "gridPoints": 72, "xMin": -9, "xMax": 9, "lambda": 0.0, "packetCenter": -2, "packetAmp": 0.5,
         "packetK": 1.6},
        0.006,
        1400,
    )
    energy = np.array([system.energy(s, params) for s in out.y])
    assert energy.max() - energy.min() < 0.03


def test_qft_damping_drains_energy():
    system = get_system("qftlattice")
    params, out = _evolve(system, {**QFT, "damping": 0.5}, 0.01, 400)
    assert system.energy(out.y[-1], params) < system.energy(out.y[0], params)
