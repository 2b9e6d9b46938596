"""
Lattice SSA command line runner.

Usage:
    lattice-ssa --config experiment.yaml [options]

Examples:
    lattice-ssa --config examples/predator_prey.yaml
    lattice-ssa --config examples/predator_prey.yaml --seed 42 --tfinal 50 --plot
    lattice-ssa --config examples/predator_prey.yaml --out results/pp --quiet
"""
from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

import numpy as np

from .config import ExperimentConfig, load_config
from .core import LatticeModel
from .errors import LatticeSSAError, SimulationError
from .lattice import LatticeState
from .results import Trajectory, save_results

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="lattice-ssa",
        description="Exact stochastic simulation of agents on a lattice",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument("--config", type=Path, required=True,
                        help="Path to YAML experiment file")

    parser.add_argument("--seed", type=int, default=None,
                        help="Override run seed")
    parser.add_argument("--tfinal", type=float, default=None,
                        help="Override final simulation time")
    parser.add_argument("--repeats", type=int, default=None,
                        help="Override number of independent runs")
    parser.add_argument("--out", type=Path, default=None,
                        help="Output prefix for <prefix>.npz / <prefix>.json")

    parser.add_argument("--plot", action="store_true", default=False,
                        help="Save population and final-snapshot plots next to the results")
    parser.add_argument("--quiet", action="store_true", default=False,
                        help="Suppress stdout output")

    return parser.parse_args(argv)


def build_model(config: ExperimentConfig) -> LatticeModel:
    m = LatticeModel(algorithm=config.run.algorithm)
    m.rules(config.model.rules, rate_names=config.model.rate_names)
    m.topology(config.topology.shape, ndims=config.topology.ndims)
    m.build(rates=config.model.rates)
    return m


def build_initial(m: LatticeModel, config: ExperimentConfig) -> LatticeState:
    init = config.initial
    dom = config.domain
    if init.explicit:
        type_list = list(m.table.alphabet)
        if dom.barrier is not None and dom.barrier not in type_list:
            type_list.append(dom.barrier)
        return m.lattice(
            init.coords, init.types,
            type_list=type_list,
            extent=dom.extent,
            boundary=dom.boundary,
            barrier=dom.barrier,
        )
    seed = init.seed if init.seed is not None else config.run.seed
    return m.random_lattice(
        dom.extent, init.densities,
        boundary=dom.boundary, barrier=dom.barrier, seed=seed,
    )


def _prefix_for(prefix: Path, r: int, repeats: int) -> Path:
    if repeats == 1:
        return prefix
    return prefix.with_name(f"{prefix.name}_r{r:03d}")


def _plot(trajs: List[Trajectory], config: ExperimentConfig, prefix: Path, quiet: bool) -> None:
    import matplotlib
    matplotlib.use("Agg")
    from .animation_util import plot_lattice_snapshot, plot_population_time_series

    layout = "hex" if config.topology.shape.lower().startswith("hex") else "square"
    exclude = [config.domain.barrier] if config.domain.barrier else []

    pop_path = config.output.plot_path or prefix.with_name(f"{prefix.name}_population.png")
    plot_population_time_series(trajs if len(trajs) > 1 else trajs[0], exclude=exclude,
                                title=config.name, save_path=str(pop_path), show=False)

    _, last = trajs[0][len(trajs[0]) - 1]
    snap_path = prefix.with_name(f"{prefix.name}_final.png")
    plot_lattice_snapshot(last, layout=layout, save_path=str(snap_path), show=False)
    if not quiet:
        print(f"Plots saved: {pop_path}, {snap_path}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        print(f"Error: Configuration file not found: {args.config}", file=sys.stderr)
        return 1
    except (LatticeSSAError, ValueError, KeyError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    # CLI overrides
    if args.seed is not None:
        config.run.seed = args.seed
    if args.tfinal is not None:
        config.run.tfinal = args.tfinal
    if args.repeats is not None:
        config.run.repeats = args.repeats
    if args.out is not None:
        config.output.prefix = args.out
    config.output.plot = config.output.plot or args.plot
    config.quiet = config.quiet or args.quiet
    quiet = config.quiet

    try:
        m = build_model(config)
        initial = build_initial(m, config)
    except LatticeSSAError as e:
        print(f"Error building model: {e}", file=sys.stderr)
        return 1

    if not quiet:
        print("Initializing simulation...")
        print(f"  Experiment: {config.name}")
        print(f"  Topology: {m.shape.name}, {config.topology.ndims}D, {m.model.n_channels} channels")
        print(f"  Domain: extent={config.domain.extent}, boundary={config.domain.boundary}")
        print(f"  Agents: {initial.counts()}")
        print(f"  Algorithm: {m.algorithm}, tfinal={config.run.tfinal}, repeats={config.run.repeats}")

    sample_times = np.linspace(0.0, config.run.tfinal, config.run.n_samples)

    cancel = threading.Event()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: cancel.set())
    try:
        if config.run.repeats == 1:
            trajs = [m.run(initial, tfinal=config.run.tfinal, sample_times=sample_times,
                           seed=config.run.seed, cancel=cancel)]
        else:
            trajs = m.run_repeats(
                initial,
                tfinal=config.run.tfinal,
                sample_times=sample_times,
                repeats=config.run.repeats,
                seed=config.run.seed,
                parallel=config.run.parallel,
                n_jobs=config.run.n_jobs,
                progress=not quiet,
                cancel=cancel,
            )
    except SimulationError as e:
        print(f"Simulation failed: {e}", file=sys.stderr)
        if e.trajectory is not None and len(e.trajectory):
            save_results(e.trajectory, config.output.prefix, meta={"experiment": config.to_dict()})
        return 2
    finally:
        signal.signal(signal.SIGINT, previous)

    if cancel.is_set() and not quiet:
        print("\nSimulation interrupted by user; saving partial trajectory.")

    prefix = Path(config.output.prefix)
    meta = {"experiment": config.to_dict(), "model": m.metadata()}
    for r, traj in enumerate(trajs):
        save_results(traj, _prefix_for(prefix, r, config.run.repeats), meta=meta)

    if not quiet:
        last = trajs[0].snapshots[-1] if len(trajs[0]) else None
        print(f"\nRun status: {trajs[0].status}, events: {trajs[0].meta.get('n_events')}")
        if last is not None:
            print(f"Final counts: {last.counts()}")

    if config.output.plot and len(trajs[0]):
        _plot(trajs, config, prefix, quiet)

    return 0


if __name__ == "__main__":
    sys.exit(main())
