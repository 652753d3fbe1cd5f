import pytest

from mechlab.transfer_matrix import barrier_layers, barrier_stack, transmission, transmission_spectrum

SCAN = {
    "m": 1.0,
    "hbar": 1.0,
    "barrierHeight": 5.0,
    "barrierWidth": 0.6,
    "wellWidth": 2.2,
    "scanEmin": 0.12,
    "scanEmax": 7.0,
    "scanPoints": 220,
}


def test_double_barrier_resonance_beats_single_barrier():
    single = transmission_spectrum({**SCAN, "doubleBarrier": 0})
    double = transmission_spectrum({**SCAN, "doubleBarrier": 1})
    assert single.energy.shape == (220,)
    assert double.transmission.max() > single.transmission.max() + 0.08


def test_packet_energy_transmission_in_range():
    layers = barrier_layers(5.0, 0.6, 2.2, True)
    value = transmission(1.7 ** 2 / 2, layers)
    assert 0.0 <= value <= 1.2


def test_non_positive_energy_gives_zero():
    layers = barrier_layers(5.0, 0.6, 2.2, False)
    assert transmission(0.0, layers) == 0.0
    assert transmission(-1.0, layers) == 0.0


def test_free_space_is_transparent():
    assert transmission(2.0, []) == pytest.approx(1.0)
    assert transmission(2.0, barrier_layers(0.0, 0.6, 2.2, True)) == pytest.approx(1.0)


def test_tall_barrier_blocks_low_energy():
    assert transmission(0.2, barrier_layers(50.0, 2.0, 1.0, False)) < 1e-6


def test_barrier_stack_clamps():
    stack = barrier_stack({"barrierWidth": 0.0, "wellWidth": -3.0, "scanEmin": 5.0, "scanEmax": 1.0,
                           "scanPoints": 5, "barrierHeight": -2.0})
    assert stack.barrier_width == 0.05
    assert stack.well_width == 0.05
    assert stack.barrier_height == 0.0
    assert stack.scan_emax > stack.scan_emin
    assert stack.scan_points == 40
    assert stack.double_barrier
