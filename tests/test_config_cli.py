import json
from pathlib import Path
import signal
import textwrap

import pytest

from lattice_ssa.cli import build_initial, build_model, main
from lattice_ssa.config import load_config
from lattice_ssa.errors import ConfigurationError
from lattice_ssa.results import load_results


CONFIG = """
name: growth
model:
  rules: |
    A + 0 --> 0 + A, d
    A + 0 --> A + A, b
  rate_names: d b
  rates: {d: 1.0, b: 0.2}
topology:
  shape: nearest-neighbor
  ndims: 2
domain:
  extent: [8, 8]
  boundary: periodic
initial:
  densities: {A: 0.25}
run:
  tfinal: 1.0
  n_samples: 11
  seed: 3
output:
  prefix: {prefix}
"""


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "experiment.yaml"
    path.write_text(textwrap.dedent(text))
    return path


def test_load_config(tmp_path: Path):
    cfg = load_config(_write(tmp_path, CONFIG.replace("{prefix}", str(tmp_path / "out"))))

    assert cfg.name == "growth"
    assert cfg.model.rates == {"d": 1.0, "b": 0.2}
    assert cfg.topology.ndims == 2
    assert cfg.domain.extent == (8, 8)
    assert cfg.domain.boundary == "periodic"
    assert cfg.initial.densities == {"A": 0.25}
    assert not cfg.initial.explicit
    assert cfg.run.tfinal == 1.0
    assert cfg.run.n_samples == 11
    assert cfg.run.repeats == 1
    assert cfg.output.prefix == tmp_path / "out"


def test_config_builds_model_and_initial_state(tmp_path: Path):
    cfg = load_config(_write(tmp_path, CONFIG.replace("{prefix}", str(tmp_path / "out"))))
    m = build_model(cfg)
    init = build_initial(m, cfg)

    assert m.model.n_channels == 8
    assert init.counts() == {"A": 16}
    assert init.domain.boundary == "periodic"


def test_explicit_initial_sites(tmp_path: Path):
    text = """
    model:
      rules: "A --> 0, k"
      rate_names: [k]
      rates: [1.0]
    topology:
      ndims: 1
    initial:
      coords: [[0], [3]]
      types: [A, A]
    """
    cfg = load_config(_write(tmp_path, text))
    assert cfg.domain.boundary == "unbounded"
    init = build_initial(build_model(cfg), cfg)
    assert init.coordinates_of("A") == [(0,), (3,)]


@pytest.mark.parametrize(
    "text",
    [
        "model: {rules: 'A --> 0, k', rate_names: k, rates: [1.0]}\n",
        "model: {rules: 'A --> 0, k', rate_names: k, rates: [1.0]}\n"
        "topology: {ndims: 2}\ndomain: {extent: [4]}\ninitial: {densities: {A: 0.1}}\n",
        "model: {rules: 'A --> 0, k', rate_names: k, rates: [1.0]}\n"
        "initial: {densities: {A: 0.1}}\n",
        "model: {rules: 'A --> 0, k', rate_names: k, rates: [1.0]}\n"
        "domain: {extent: [4, 4]}\ninitial: {densities: {A: 0.1}}\nrun: {tfinal: 0}\n",
        "- not a mapping\n",
    ],
)
def test_invalid_configs(tmp_path: Path, text):
    with pytest.raises(ConfigurationError):
        load_config(_write(tmp_path, text))


def test_cli_runs_and_saves(tmp_path: Path, capsys):
    prefix = tmp_path / "out" / "growth"
    path = _write(tmp_path, CONFIG.replace("{prefix}", str(tmp_path / "ignored")))

    rc = main(["--config", str(path), "--out", str(prefix), "--seed", "5", "--tfinal", "0.5"])

    assert rc == 0
    traj, meta = load_results(prefix)
    assert traj.times[-1] == pytest.approx(0.5)
    assert meta["experiment"]["seed"] == 5
    assert meta["model"]["n_channels"] == 8
    assert "Run status" in capsys.readouterr().out


def test_cli_quiet_with_plot(tmp_path: Path, capsys):
    prefix = tmp_path / "plotted"
    path = _write(tmp_path, CONFIG.replace("{prefix}", str(prefix)))

    rc = main(["--config", str(path), "--plot", "--quiet"])

    assert rc == 0
    assert (tmp_path / "plotted_population.png").exists()
    assert (tmp_path / "plotted_final.png").exists()
    assert "Initializing" not in capsys.readouterr().out


def test_cli_repeats_write_one_file_per_run(tmp_path: Path):
    prefix = tmp_path / "ens"
    path = _write(tmp_path, CONFIG.replace("{prefix}", str(prefix)))

    assert main(["--config", str(path), "--repeats", "2", "--quiet"]) == 0
    assert (tmp_path / "ens_r000.npz").exists()
    assert (tmp_path / "ens_r001.json").exists()


def test_cli_missing_config(tmp_path: Path, capsys):
    assert main(["--config", str(tmp_path / "nope.yaml")]) == 1
    assert "not found" in capsys.readouterr().err


def test_cli_interrupt_stops_repeats(tmp_path: Path, monkeypatch, capsys):
    prefix = tmp_path / "ens"
    path = _write(tmp_path, CONFIG.replace("{prefix}", str(prefix)))

    # deliver SIGINT as soon as the handler is installed
    installed = []

    def fake_signal(signum, handler):
        if not installed:
            installed.append(handler)
            handler(signum, None)
        return signal.SIG_DFL

    monkeypatch.setattr("lattice_ssa.cli.signal.signal", fake_signal)

    assert main(["--config", str(path), "--repeats", "3"]) == 0
    assert (tmp_path / "ens_r000.npz").exists()
    assert not (tmp_path / "ens_r001.npz").exists()
    with open(tmp_path / "ens_r000.json") as f:
        assert json.load(f)["run"]["status"] == "cancelled"
    assert "interrupted" in capsys.readouterr().out
