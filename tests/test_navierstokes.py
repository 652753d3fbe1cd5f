import numpy as np
import pytest

from mechlab.systems import get_system
from mechlab.engine import Engine
from mechlab.errors import MalformedState
from mechlab.systems.navierstokes import HEADER, PARAMS, config_for_state, flow_config


def test_initial_state_layout():
    system = get_system("navierstokes2d")
    y0 = system.initial_state(system.params)
    nx, ny = PARAMS["gridX"], PARAMS["gridY"]
    assert y0.shape == (HEADER + 3 * nx * ny,)
    assert y0[:4].tolist() == [nx, ny, PARAMS["obstacleX"], PARAMS["obstacleY"]]


def test_simulate_frames_and_echo():
    system = get_system("navierstokes2d")
    y0 = system.initial_state(system.params)
    out = system.simulate(0.0, y0, 0.025, 20, system.params)
    assert out.y.shape == (21, y0.shape[0])
    assert np.array_equal(out.y[0], y0)
    assert out.t[-1] == pytest.approx(0.5)
    assert np.all(np.isfinite(out.y))


def test_obstacle_cells_carry_no_velocity():
    system = get_system("navierstokes2d")
    params = system.params
    out = system.simulate(0.0, system.initial_state(params), 0.025, 10, params)
    cfg = config_for_state(out.y[-1], params)
    cells = cfg.cells
    u = out.y[-1][HEADER:HEADER + cells].reshape(cfg.ny, cfg.nx)
    v = out.y[-1][HEADER + cells:HEADER + 2 * cells].reshape(cfg.ny, cfg.nx)
    assert cfg.mask.any()
    assert np.all(u[cfg.mask] == 0.0)
    assert np.all(v[cfg.mask] == 0.0)


def test_flow_develops_around_obstacle():
    system = get_system("navierstokes2d")
    params = system.params
    out = system.simulate(0.0, system.initial_state(params), 0.025, 40, params)
    obs = system.derived(out.y[-1], params)
    assert obs["speedMax"] > 0.0
    assert obs["vortAbsMean"] > 0.0
    assert obs["reynolds"] == pytest.approx(PARAMS["inflowU"] * 2 * PARAMS["obstacleR"] / PARAMS["nu"])


def test_state_length_overrides_requested_grid():
    # a 30 x 20 state wins over the gridX/gridY params
    length = HEADER + 3 * 30 * 20
    cfg = flow_config(PARAMS, length, (30.0, 20.0))
    assert (cfg.nx, cfg.ny) == (30, 20)


def test_shape_recovered_without_header():
    length = HEADER + 3 * 40 * 20
    cfg = flow_config(PARAMS, length, (0.0, 0.0))
    assert cfg.nx * cfg.ny == 800
    assert cfg.state_length == length


def test_empty_state_uses_rest_profile():
    system = get_system("navierstokes2d")
    out = system.simulate(0.0, [], 0.025, 2, system.params)
    assert out.y.shape[0] == 3
    assert out.y[0].shape[0] == HEADER + 3 * PARAMS["gridX"] * PARAMS["gridY"]


def test_dt_and_steps_floors():
    system = get_system("navierstokes2d")
    out = system.simulate(0.0, [], 1e-9, 0, system.params)
    assert out.y.shape[0] == 2
    assert out.t[1] == pytest.approx(1e-4)


def test_lower_viscosity_keeps_more_vorticity():
    system = get_system("navierstokes2d")
    vorticity = {}
    for nu in (0.01, 0.1):
        params = system.merged_params({"nu": nu})
        out = system.simulate(0.0, system.initial_state(params), 0.025, 40, params)
        vorticity[nu] = system.derived(out.y[-1], params)["vortAbsMean"]
    assert vorticity[0.01] >= vorticity[0.1]


def test_degenerate_shape_is_never_chosen():
    # 80 cells with a bogus 2 x 40 header still resolves to a grid at least 3 wide
    length = HEADER + 3 * 80
    cfg = flow_config(PARAMS, length, (2.0, 40.0))
    assert cfg.nx >= 3 and cfg.ny >= 3
    assert cfg.nx * cfg.ny == 80
    system = get_system("navierstokes2d")
    y0 = np.zeros(length)
    y0[:2] = [2.0, 40.0]
    out = system.simulate(0.0, y0, 0.025, 3, system.params)
    assert out.y.shape == (4, length)
    assert np.all(np.isfinite(out.y))


def test_prime_cell_count_is_malformed():
    length = HEADER + 3 * 53
    with pytest.raises(MalformedState, match="at least 3x3"):
        flow_config(PARAMS, length, (0.0, 0.0))
    with pytest.raises(MalformedState):
        flow_config(PARAMS, HEADER + 3 * 80 + 1, None)


def test_malformed_flow_state_reported_by_engine():
    reply = Engine().handle(
        {"type": "simulate", "systemId": "navierstokes2d", "dt": 0.025, "steps": 2, "y0": [0.0] * (HEADER + 3 * 53)}
    )
    assert reply["type"] == "error"
    assert reply["category"] == "malformed_state"
