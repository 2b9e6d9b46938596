import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from lattice_ssa.animation_util import hex_to_cartesian, plot_lattice_snapshot, plot_population_time_series
from lattice_ssa.core import LatticeModel


def _model(shape="nearest-neighbor"):
    m = LatticeModel()
    m.rules("A + 0 --> 0 + A, d\nA + 0 --> A + B, b", rate_names="d b")
    m.topology(shape, ndims=2)
    m.build(rates=[1.0, 0.5])
    return m


def test_hex_to_cartesian():
    xy = hex_to_cartesian(np.array([[0, 0], [1, 0], [0, 1]]))
    assert np.allclose(xy[0], [0.0, 0.0])
    assert np.allclose(xy[1], [1.0, 0.0])
    assert np.allclose(xy[2], [0.5, np.sqrt(3.0) / 2.0])
    # all six neighbours of the origin sit at unit distance
    hex_offsets = np.array([[1, 0], [-1, 0], [0, 1], [0, -1], [1, -1], [-1, 1]])
    assert np.allclose(np.linalg.norm(hex_to_cartesian(hex_offsets), axis=1), 1.0)


def test_plot_population_time_series(tmp_path):
    m = _model()
    init = m.random_lattice((8, 8), {"A": 0.2}, seed=0)
    traj = m.run(init, tfinal=1.0, n_samples=11, seed=0)

    out = tmp_path / "pop.png"
    fig = plot_population_time_series(traj, save_path=str(out), show=False)

    assert out.exists()
    labels = [line.get_label() for line in fig.axes[0].get_lines()]
    assert "A" in labels and "Total" in labels


def test_plot_population_ensemble():
    m = _model()
    init = m.random_lattice((8, 8), {"A": 0.2}, seed=0)
    trajs = m.run_repeats(init, tfinal=1.0, n_samples=6, repeats=3, progress=False)

    fig = plot_population_time_series(trajs, show=False)
    labels = [line.get_label() for line in fig.axes[0].get_lines()]
    assert "A (mean of 3)" in labels


@pytest.mark.parametrize("shape,layout", [("nearest-neighbor", "square"), ("hexagonal", "hex")])
def test_plot_lattice_snapshot(tmp_path, shape, layout):
    m = _model(shape)
    init = m.random_lattice((10, 10), {"A": 0.3}, barrier="W", seed=2)

    out = tmp_path / f"{layout}.png"
    fig = plot_lattice_snapshot(init.snapshot(), layout=layout, save_path=str(out), show=False)

    assert out.exists()
    # one collection for A, one for the barrier
    assert len(fig.axes[0].collections) == 2


def test_plot_lattice_snapshot_rejects_hex_in_1d():
    m = LatticeModel().rules("A --> 0, k", rate_names="k").topology(ndims=1).build(rates=[1.0])
    init = m.lattice([(0,)], ["A"])
    with pytest.raises(ValueError):
        plot_lattice_snapshot(init.snapshot(), layout="hex", show=False)
