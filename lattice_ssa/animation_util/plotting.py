from __future__ import annotations

from typing import Literal, Optional, Sequence, Union

import numpy as np
import matplotlib.pyplot as plt
import matplotlib as mpl

from ..lattice import LatticeSnapshot
from ..results import Trajectory


# ------------------------------------------------------------
# Styling helpers
# ------------------------------------------------------------
def setup_cinematic_style():
    plt.style.use("dark_background")

    colors = {
        "species_a": "#4DC3FF",
        "species_b": "#FF4D6D",
        "species_c": "#4DFF9E",
        "species_d": "#FFD700",
        "barrier": "#8A8A9A",
        "background": "#0A0A12",
        "grid": "#1E1E2E",
        "text": "#E8E8F0",
        "total": "#FFFFFF",
    }

    mpl.rcParams["figure.dpi"] = 100
    mpl.rcParams["savefig.dpi"] = 300
    mpl.rcParams["font.size"] = 12
    mpl.rcParams["font.family"] = "serif"
    mpl.rcParams["axes.titlepad"] = 20

    return colors


def _species_color(colors: dict, i: int) -> str:
    key = f"species_{chr(97 + i)}"
    return colors.get(key, plt.cm.tab10(i % 10))


def _style_ax(ax, colors: dict) -> None:
    ax.set_facecolor(colors["background"])
    ax.grid(True, alpha=0.2, color=colors["grid"])
    ax.tick_params(colors=colors["text"])


def _finish(fig, colors: dict, save_path: Optional[str], show: bool, what: str):
    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=300, facecolor=colors["background"], edgecolor="none", bbox_inches="tight")
        print(f"{what} saved to: {save_path}")
    if show:
        plt.show()
    return fig


# ------------------------------------------------------------
# Population time series
# ------------------------------------------------------------
def plot_population_time_series(
    traj: Union[Trajectory, Sequence[Trajectory]],
    *,
    show_total: bool = True,
    exclude: Sequence[str] = (),
    title: str = "Population Time Series",
    save_path: Optional[str] = None,
    show: bool = True,
):
    """
    Agent counts per type against time.

    A list of trajectories is drawn as faint individual runs plus the
    ensemble mean.
    """
    colors = setup_cinematic_style()
    trajs = [traj] if isinstance(traj, Trajectory) else list(traj)
    if not trajs:
        raise ValueError("need at least one trajectory")

    alphabet = trajs[0].alphabet

    fig, ax = plt.subplots(figsize=(12, 6), facecolor=colors["background"])
    _style_ax(ax, colors)

    single = len(trajs) == 1
    for i, sp in enumerate(alphabet):
        if sp in exclude:
            continue
        c = _species_color(colors, i)
        stack = []
        for tr in trajs:
            counts = tr.counts()[sp]
            stack.append(counts)
            if not single:
                ax.plot(tr.times, counts, color=c, linewidth=0.8, alpha=0.25)
        t = trajs[0].times
        if single:
            ax.step(t, stack[0], where="post", color=c, linewidth=2.5, label=sp)
        elif all(s.shape == stack[0].shape for s in stack):
            ax.plot(t, np.mean(stack, axis=0), color=c, linewidth=2.5, label=f"{sp} (mean of {len(trajs)})")

    if show_total and single:
        total = sum(trajs[0].counts()[sp] for sp in alphabet if sp not in exclude)
        ax.step(trajs[0].times, total, where="post", color=colors["total"],
                linestyle="--", linewidth=2, alpha=0.8, label="Total")

    ax.set_xlabel("Time", fontsize=13, color=colors["text"])
    ax.set_ylabel("Agents", fontsize=13, color=colors["text"])
    ax.set_title(title, fontsize=16, color=colors["text"], fontweight="bold")
    ax.legend(loc="best", framealpha=0.9, facecolor=colors["background"], edgecolor=colors["grid"], fontsize=10)

    return _finish(fig, colors, save_path, show, "Population plot")


# ------------------------------------------------------------
# Lattice snapshot
# ------------------------------------------------------------
def hex_to_cartesian(coords: np.ndarray) -> np.ndarray:
    """Axial (q, r) hexagon coordinates -> cartesian centres."""
    coords = np.asarray(coords, dtype=float).reshape(-1, 2)
    x = coords[:, 0] + 0.5 * coords[:, 1]
    y = (np.sqrt(3.0) / 2.0) * coords[:, 1]
    return np.stack([x, y], axis=1)


def plot_lattice_snapshot(
    snapshot: LatticeSnapshot,
    *,
    layout: Literal["square", "hex"] = "square",
    z_slice: int = 0,
    ax=None,
    title: Optional[str] = None,
    marker_size: Optional[float] = None,
    save_path: Optional[str] = None,
    show: bool = True,
):
    """
    Draw the occupied sites of one snapshot, coloured by type.

    1D lattices are drawn on a single row; 3D lattices show the plane
    z == z_slice. Pinned sites are drawn in the barrier colour.
    """
    if layout not in ("square", "hex"):
        raise ValueError("layout must be one of: 'square', 'hex'")

    colors = setup_cinematic_style()
    ndims = snapshot.domain.ndims
    if layout == "hex" and ndims != 2:
        raise ValueError("hexagonal layout needs a 2D snapshot")

    coords, types, pinned = snapshot.to_arrays()
    if ndims == 1:
        coords = np.concatenate([coords, np.zeros_like(coords)], axis=1)
    elif ndims == 3:
        keep = coords[:, 2] == int(z_slice)
        coords, types, pinned = coords[keep, :2], types[keep], pinned[keep]

    xy = hex_to_cartesian(coords) if layout == "hex" else coords.astype(float)

    fig = None
    if ax is None:
        fig, ax = plt.subplots(figsize=(9, 9), facecolor=colors["background"])
    else:
        fig = ax.figure
    ax.set_facecolor(colors["background"])
    ax.tick_params(colors=colors["text"])

    if marker_size is None:
        extent = snapshot.domain.extent
        span = max(extent[:2]) if extent else max(1, int(np.ptp(coords)) + 1 if coords.size else 1)
        marker_size = max(4.0, 40000.0 / float(span * span))

    mk = "h" if layout == "hex" else "s"
    for i, sp in enumerate(snapshot.alphabet):
        sel = (types == i + 1) & ~pinned
        if sel.any():
            ax.scatter(xy[sel, 0], xy[sel, 1], s=marker_size, marker=mk,
                       color=_species_color(colors, i), label=sp, linewidths=0)
    if pinned.any():
        ax.scatter(xy[pinned, 0], xy[pinned, 1], s=marker_size, marker=mk,
                   color=colors["barrier"], label="barrier", linewidths=0)

    ax.set_aspect("equal")
    if title is None:
        title = f"Lattice snapshot ({snapshot.n_agents} agents)"
    ax.set_title(title, fontsize=14, color=colors["text"])
    if snapshot.n_agents:
        ax.legend(loc="upper right", framealpha=0.9, facecolor=colors["background"],
                  edgecolor=colors["grid"], fontsize=9, markerscale=1.0)

    return _finish(fig, colors, save_path, show, "Snapshot plot")
