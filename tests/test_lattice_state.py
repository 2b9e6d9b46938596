import pickle

import numpy as np
import pytest

from lattice_ssa.errors import ConfigurationError, SimulationError, TopologyError
from lattice_ssa.lattice import (
    LatticeDomain,
    LatticeState,
    add_box_barrier,
    build_lattice,
    random_lattice,
)
from lattice_ssa.reactions import EMPTY
from lattice_ssa.topology import Hexagonal, NearestNeighbor


def test_domain_validation():
    with pytest.raises(ConfigurationError):
        LatticeDomain(ndims=4)
    with pytest.raises(ConfigurationError):
        LatticeDomain(ndims=2, extent=(3,), boundary="zero-flux")
    with pytest.raises(ConfigurationError):
        LatticeDomain(ndims=2, boundary="periodic")
    with pytest.raises(ConfigurationError):
        LatticeDomain(ndims=1, extent=(3,), boundary="unbounded")
    with pytest.raises(ConfigurationError):
        LatticeDomain(ndims=1, extent=(0,), boundary="zero-flux")


def test_domain_neighbor_lookup():
    zf = LatticeDomain(ndims=2, extent=(3, 4), boundary="zero-flux")
    assert zf.neighbor((0, 0), (-1, 0)) is None
    assert zf.neighbor((0, 0), (1, 0)) == (1, 0)
    assert zf.n_sites == 12

    per = LatticeDomain(ndims=2, extent=(3, 4), boundary="periodic")
    assert per.neighbor((0, 0), (-1, 0)) == (2, 0)
    assert per.neighbor((2, 3), (0, 1)) == (2, 0)

    free = LatticeDomain(ndims=1)
    assert free.neighbor((-5,), (-1,)) == (-6,)
    assert free.n_sites is None


def test_periodic_axis_of_one_site_has_no_neighbor():
    ring = LatticeDomain(ndims=1, extent=(1,), boundary="periodic")
    assert ring.neighbor((0,), (1,)) is None
    assert ring.neighbor((0,), (-1,)) is None

    strip = LatticeDomain(ndims=2, extent=(1, 3), boundary="periodic")
    assert strip.neighbor((0, 0), (1, 0)) is None
    assert strip.neighbor((0, 0), (0, -1)) == (0, 2)


def test_domain_dict_roundtrip():
    d = LatticeDomain(ndims=3, extent=(2, 3, 4), boundary="periodic")
    assert LatticeDomain.from_dict(d.to_dict()) == d


def test_boundary_sites_of_a_box():
    d = LatticeDomain(ndims=2, extent=(4, 4), boundary="zero-flux")
    assert len(list(d.boundary_sites())) == 12


def test_build_lattice_from_codes():
    state = build_lattice([(0, 0), (0, 1)], [1, 2], NearestNeighbor(), {"Rabbit": 1, "Wolf": 2})
    assert state.get((0, 0)) == "Rabbit"
    assert state.get((0, 1)) == "Wolf"
    assert state.get((5, 5)) is EMPTY
    assert state.domain.boundary == "unbounded"
    assert state.counts() == {"Rabbit": 1, "Wolf": 1}


def test_build_lattice_from_names_and_array():
    coords = np.array([[0], [2], [4]])
    state = build_lattice(coords, ["A", "B", "A"], "nearest-neighbor", ["A", "B"], extent=(5,))
    assert state.domain.boundary == "zero-flux"
    assert state.coordinates_of("A") == [(0,), (4,)]


def test_build_lattice_length_mismatch():
    with pytest.raises(ConfigurationError):
        build_lattice([(0, 0), (0, 1)], [1], NearestNeighbor(), ["A"])


def test_build_lattice_duplicate_coordinate():
    with pytest.raises(ConfigurationError, match="duplicate"):
        build_lattice([(1, 1), (1, 1)], [1, 1], NearestNeighbor(), ["A"])


def test_build_lattice_unknown_code():
    with pytest.raises(ConfigurationError):
        build_lattice([(0, 0)], [3], NearestNeighbor(), ["A", "B"])


def test_build_lattice_hexagonal_needs_2d():
    with pytest.raises(TopologyError):
        build_lattice([(0, 0, 0)], [1], Hexagonal(), ["A"])


def test_build_lattice_outside_extent():
    with pytest.raises(ConfigurationError):
        build_lattice([(5, 0)], [1], NearestNeighbor(), ["A"], extent=(3, 3))


def test_barrier_sites_are_pinned():
    state = build_lattice([(0,), (1,)], ["W", "A"], NearestNeighbor(), ["A", "W"], extent=(3,), barrier="W")
    assert state.is_pinned((0,))
    assert not state.is_pinned((1,))

    with pytest.raises(SimulationError):
        state.set((0,), "A")
    with pytest.raises(SimulationError):
        state.clear((0,))


def test_set_outside_bounded_domain_fails():
    state = LatticeState(LatticeDomain(ndims=1, extent=(3,), boundary="zero-flux"), ("A",))
    with pytest.raises(SimulationError):
        state.set((3,), "A")


def test_place_unknown_symbol():
    state = LatticeState(LatticeDomain(ndims=1), ("A",))
    with pytest.raises(ConfigurationError):
        state.place((0,), "B")


def test_arrays_roundtrip():
    state = build_lattice([(2, 1), (0, 0), (1, 3)], ["B", "A", "W"], NearestNeighbor(), ["A", "B", "W"],
                          extent=(4, 4), barrier="W")
    coords, types, pinned = state.to_arrays()

    assert coords.tolist() == [[0, 0], [1, 3], [2, 1]]
    assert types.tolist() == [1, 3, 2]
    assert pinned.tolist() == [False, True, False]

    back = LatticeState.from_arrays(state.domain, state.alphabet, coords, types, pinned)
    assert back.snapshot() == state.snapshot()


def test_snapshot_is_independent_of_state():
    state = build_lattice([(0,)], ["A"], NearestNeighbor(), ["A"])
    snap = state.snapshot()
    state.set((1,), "A")
    assert snap.n_agents == 1
    assert state.n_agents == 2
    with pytest.raises(TypeError):
        snap.sites[(2,)] = "A"


def test_snapshot_pickles_and_restores_state():
    state = build_lattice([(0,), (1,)], ["W", "A"], NearestNeighbor(), ["A", "W"], extent=(3,), barrier="W")
    snap = pickle.loads(pickle.dumps(state.snapshot()))
    assert snap == state.snapshot()

    restored = snap.to_state()
    assert restored.is_pinned((0,))
    assert restored.get((1,)) == "A"


def test_add_box_barrier():
    state = LatticeState(LatticeDomain(ndims=2, extent=(5, 5), boundary="zero-flux"), ("A", "W"))
    assert add_box_barrier(state, "W") == 16
    assert len(state.pinned) == 16

    unbounded = LatticeState(LatticeDomain(ndims=2), ("W",))
    with pytest.raises(ConfigurationError):
        add_box_barrier(unbounded, "W")


def test_random_lattice_densities():
    state = random_lattice((100, 100), {"Rabbit": 0.2, "Wolf": 0.05}, seed=0)
    counts = state.counts()
    assert counts == {"Rabbit": 2000, "Wolf": 500}
    assert all(state.domain.contains(c) for c, _ in state.occupied())


def test_random_lattice_is_seeded():
    a = random_lattice((10, 10), {"A": 0.3}, seed=5)
    b = random_lattice((10, 10), {"A": 0.3}, seed=5)
    assert a.snapshot() == b.snapshot()


def test_random_lattice_with_barrier():
    state = random_lattice((6, 6), {"A": 0.5}, barrier="W", alphabet=("A",), seed=1)
    assert state.alphabet == ("A", "W")
    assert state.counts() == {"A": 8, "W": 20}
    assert all(state.is_pinned(c) for c in state.coordinates_of("W"))


def test_random_lattice_rejects_overfull_densities():
    with pytest.raises(ConfigurationError):
        random_lattice((4, 4), {"A": 0.7, "B": 0.5})


def test_random_lattice_rounding_never_overfills(caplog):
    # round(1.5) + round(1.5) asks for 4 of the 3 sites
    state = random_lattice((3,), {"A": 0.5, "B": 0.5}, seed=0)
    assert state.counts() == {"A": 2, "B": 1}
    assert "only 1 remain" in caplog.text
