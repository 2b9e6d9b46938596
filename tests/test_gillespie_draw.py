import numpy as np
import pytest

from lattice_ssa.core import first_reaction_draw, gillespie_draw
from lattice_ssa.errors import SimulationError


class FixedRNG:
    """Returns preset uniforms in order."""

    def __init__(self, values):
        self.values = list(values)

    def random(self, n=None):
        if n is None:
            return self.values.pop(0)
        out = np.array(self.values[:n], dtype=float)
        del self.values[:n]
        return out


def test_direct_waiting_time_and_selection():
    a = np.array([1.0, 2.0, 1.0])
    tau, idx = gillespie_draw(a, FixedRNG([np.exp(-1.0), 0.3]))
    assert tau == pytest.approx(1.0 / 4.0)
    # 0.3 * 4 = 1.2 lies in the second bin [1, 3)
    assert idx == 1


def test_direct_never_selects_zero_propensity():
    a = np.array([0.0, 0.0, 1.0, 0.0])
    for u in (0.0, 0.5, 0.999999):
        _, idx = gillespie_draw(a, FixedRNG([0.5, u]))
        assert idx == 2


def test_direct_ties_resolved_by_index_order():
    a = np.array([1.0, 1.0])
    _, idx = gillespie_draw(a, FixedRNG([0.5, 0.5]))
    # u2*a0 == 1.0 is the boundary; it belongs to the second channel
    assert idx == 1
    _, idx = gillespie_draw(a, FixedRNG([0.5, 0.49]))
    assert idx == 0


def test_direct_zero_total():
    tau, idx = gillespie_draw(np.zeros(5), FixedRNG([]))
    assert tau == np.inf
    assert idx == -1


def test_direct_reuses_cumulative_buffer():
    a = np.array([1.0, 3.0])
    buf = np.empty_like(a)
    gillespie_draw(a, FixedRNG([0.5, 0.5]), cumulative=buf)
    assert buf.tolist() == [1.0, 4.0]


def test_negative_propensity_is_rejected():
    with pytest.raises(SimulationError):
        gillespie_draw(np.array([1.0, -0.5]), FixedRNG([0.5, 0.5]), check_negative=True)
    with pytest.raises(SimulationError):
        first_reaction_draw(np.array([1.0, -0.5]), FixedRNG([0.5, 0.5]), check_negative=True)


def test_first_reaction_picks_earliest_candidate():
    a = np.array([1.0, 0.0, 2.0])
    # candidates: -log(0.5)/1 = 0.69, -log(0.5)/2 = 0.35
    tau, idx = first_reaction_draw(a, FixedRNG([0.5, 0.5]))
    assert idx == 2
    assert tau == pytest.approx(np.log(2.0) / 2.0)


def test_first_reaction_ties_go_to_lowest_index():
    a = np.array([0.0, 1.0, 1.0])
    _, idx = first_reaction_draw(a, FixedRNG([0.25, 0.25]))
    assert idx == 1


def test_first_reaction_zero_total():
    assert first_reaction_draw(np.zeros(3), FixedRNG([])) == (np.inf, -1)


def test_direct_selection_frequencies():
    rng = np.random.default_rng(0)
    a = np.array([1.0, 3.0])
    picks = np.array([gillespie_draw(a, rng)[1] for _ in range(4000)])
    assert abs(np.mean(picks == 1) - 0.75) < 0.03
