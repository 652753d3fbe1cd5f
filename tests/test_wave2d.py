import numpy as np
import pytest

from mechlab.engine import Engine
from mechlab.errors import MalformedState
from mechlab.grid import divisor_shape
from mechlab.integrators import integrate, integrate_rk4
from mechlab.systems import get_system
from mechlab.systems.wave2d import wave_2d_config

UNDAMPED = {"damping": 0.0, "edgeDamping": 0.0}
SMOOTH = {**UNDAMPED, "dropSigma": 1.0}


def test_initial_state_layout():
    system = get_system("wave2d")
    y0 = system.initial_state(system.params)
    assert y0.shape == (2 * 48 * 48,)
    obs = system.derived(y0, system.params)
    assert 0.8 < obs["centerEta"] <= 1.0
    assert obs["peakAbsEta"] == pytest.approx(obs["centerEta"])
    assert obs["rmsSpeed"] == 0.0


def test_ripple_spreads_outwards():
    system = get_system("wave2d")
    params = system.merged_params(UNDAMPED)
    out = integrate_rk4(system.rhs, 0.0, system.initial_state(params), 0.015, 60, params)
    start = system.derived(out.y[0], params)
    end = system.derived(out.y[-1], params)
    assert end["rmsRadius"] > start["rmsRadius"]
    assert end["centerEta"] < start["centerEta"]
    assert np.all(np.isfinite(out.y))


def test_undamped_periodic_energy_is_nearly_conserved():
    system = get_system("wave2d")
    params = system.merged_params({**SMOOTH, "periodic": 1})
    out = integrate_rk4(system.rhs, 0.0, system.initial_state(params), 0.01, 200, params)
    energy = np.array([system.energy(state, params) for state in out.y])
    assert abs(energy[-1] - energy[0]) / energy[0] < 0.05


def test_damping_drains_energy():
    system = get_system("wave2d")
    params = system.merged_params({"dropSigma": 1.0, "damping": 0.5, "edgeDamping": 0.3})
    out = integrate_rk4(system.rhs, 0.0, system.initial_state(params), 0.015, 150, params)
    assert system.energy(out.y[-1], params) < 0.7 * system.energy(out.y[0], params)


def test_edge_band_only_near_walls():
    cfg = wave_2d_config({"gridX": 30, "gridY": 30, "edgeDamping": 0.3})
    assert cfg.edge_weight[0, 0] == pytest.approx(1.0)
    assert cfg.edge_weight[15, 15] == 0.0
    assert not wave_2d_config({"gridX": 30, "gridY": 30, "periodic": 1}).edge_weight.any()


def test_verlet_supported():
    system = get_system("wave2d")
    params = system.merged_params(SMOOTH)
    out = integrate("verlet", system.rhs, 0.0, system.initial_state(params), 0.01, 50, params)
    energy = np.array([system.energy(state, params) for state in out.y])
    assert np.all(np.isfinite(energy))
    assert abs(energy[-1] - energy[0]) / energy[0] < 0.05


def test_grid_recovered_from_state_length():
    cfg = wave_2d_config({"gridX": 48, "gridY": 48}, 2 * 30 * 20)
    assert cfg.grid.cells == 600
    assert min(cfg.grid.nx, cfg.grid.ny) >= 3


def test_prime_cell_count_is_malformed():
    system = get_system("wave2d")
    with pytest.raises(MalformedState, match="Wave2D"):
        system.rhs(0.0, np.zeros(2 * 53), system.params)
    reply = Engine().handle({"type": "simulate", "systemId": "wave2d", "dt": 0.01, "steps": 1, "y0": [0.0] * 106})
    assert reply["category"] == "malformed_state"


def test_divisor_shape_respects_minimum_side():
    assert divisor_shape(80, 2.0) == (10, 8)
    assert divisor_shape(53, 1.0) is None
    assert divisor_shape(8, 1.0) is None
    nx, ny = divisor_shape(2 * 37, 1.0, min_side=2)
    assert {nx, ny} == {2, 37}
