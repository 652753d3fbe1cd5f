import numpy as np
import pytest

from mechlab.systems import get_system
from mechlab.systems.percolation import analyze, pack, percolation_config, snapshot_for

SMALL = {"gridSize": 20, "pOcc": 0.6, "trials": 20, "scanMin": 0.3, "scanMax": 0.85, "scanPoints": 5, "seed": 4}


def test_vertical_column_spans():
    occupancy = np.zeros((6, 6), dtype=bool)
    occupancy[:, 2] = True
    occupancy[0, 4] = True
    snap = analyze(occupancy)
    assert snap.cluster_count == 2
    assert snap.spans
    assert snap.spanning_mask[:, 2].all()
    assert not snap.spanning_mask[0, 4]
    assert snap.largest_fraction == pytest.approx(6 / 36)


def test_diagonal_sites_are_not_connected():
    occupancy = np.eye(5, dtype=bool)
    snap = analyze(occupancy)
    assert snap.cluster_count == 5
    assert not snap.spans


def test_empty_lattice():
    snap = analyze(np.zeros((8, 8), dtype=bool))
    assert snap.cluster_count == 0
    assert snap.stats()["largestFrac"] == 0.0


def test_reversed_scan_range_is_swapped():
    cfg = percolation_config({"scanMin": 0.9, "scanMax": 0.2})
    assert (cfg.scan_min, cfg.scan_max) == (0.2, 0.9)


def test_same_seed_same_snapshot():
    cfg = percolation_config(SMALL)
    assert np.array_equal(snapshot_for(cfg).occupancy, snapshot_for(cfg).occupancy)


def test_simulate_single_frame_with_scan():
    system = get_system("percolation")
    params = system.merged_params(SMALL)
    out = system.simulate(0.0, [], 1.0, 50, params)
    assert out.y.shape == (1, 1 + 3 * 20 * 20 + 5)
    assert out.derived["scanP"].tolist() == pytest.approx([0.3, 0.4375, 0.575, 0.7125, 0.85])
    span = out.derived["scanSpanProb"]
    assert span[0] < 0.2
    assert span[-1] > 0.8
    occupied = out.derived["scanOccupiedFrac"]
    assert occupied[-1] > occupied[0]


def test_observables_read_packed_stats():
    system = get_system("percolation")
    cfg = percolation_config(SMALL)
    snap = snapshot_for(cfg)
    obs = system.derived(pack(snap), SMALL)
    assert obs == pytest.approx(snap.stats())
