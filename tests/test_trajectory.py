import numpy as np
import pytest

from lattice_ssa.errors import SimulationError
from lattice_ssa.lattice import build_lattice
from lattice_ssa.results import Trajectory


def _snaps():
    s0 = build_lattice([(0,)], ["A"], "nearest-neighbor", ["A", "B"]).snapshot()
    s1 = build_lattice([(0,), (1,)], ["A", "B"], "nearest-neighbor", ["A", "B"]).snapshot()
    s2 = build_lattice([(1,)], ["B"], "nearest-neighbor", ["A", "B"]).snapshot()
    return s0, s1, s2


def _traj():
    s0, s1, s2 = _snaps()
    traj = Trajectory(alphabet=("A", "B"))
    traj.append(0.0, s0)
    traj.append(1.0, s1)
    traj.append(2.0, s2)
    return traj


def test_append_requires_strictly_increasing_times():
    s0, s1, _ = _snaps()
    traj = Trajectory(alphabet=("A", "B"))
    traj.append(0.5, s0)
    with pytest.raises(SimulationError):
        traj.append(0.5, s1)
    with pytest.raises(SimulationError):
        traj.append(0.1, s1)
    assert len(traj) == 1


def test_frozen_trajectory_rejects_appends():
    traj = _traj().freeze()
    with pytest.raises(SimulationError):
        traj.append(5.0, traj.snapshots[0])


def test_iteration_is_restartable_and_ordered():
    traj = _traj()
    first = list(traj)
    second = list(traj)
    assert first == second
    assert [t for t, _ in first] == [0.0, 1.0, 2.0]


def test_nearest_and_at():
    traj = _traj()
    assert traj.nearest(0.4)[0] == 0.0
    assert traj.nearest(0.6)[0] == 1.0
    # equidistant: earlier sample wins
    assert traj.nearest(0.5)[0] == 0.0
    assert traj.nearest(-3.0)[0] == 0.0
    assert traj.nearest(9.0)[0] == 2.0

    assert traj.at(1.9)[0] == 1.0
    assert traj.at(2.0)[0] == 2.0
    with pytest.raises(IndexError):
        traj.at(-0.1)


def test_counts_and_count_matrix():
    traj = _traj()
    counts = traj.counts()
    assert counts["A"].tolist() == [1, 1, 0]
    assert counts["B"].tolist() == [0, 1, 1]
    assert traj.count_matrix().shape == (2, 3)
    assert traj.total_agents().tolist() == [1, 2, 1]
    assert np.allclose(traj.times, [0.0, 1.0, 2.0])
    assert traj.n_steps == 3


def test_empty_trajectory_nearest():
    with pytest.raises(IndexError):
        Trajectory(alphabet=("A",)).nearest(0.0)
