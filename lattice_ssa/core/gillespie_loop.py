from __future__ import annotations
import numpy as np

from ..errors import SimulationError


def _check_nonnegative(propensities: np.ndarray) -> None:
    mn = float(propensities.min(initial=0.0))
    if mn < 0.0 or np.isnan(mn):
        j = int(np.argmin(propensities))
        raise SimulationError(f"propensities must be nonnegative: idx={j}, val={propensities[j]}")


def gillespie_draw(
    propensities: np.ndarray,
    rng: np.random.Generator,
    cumulative: np.ndarray | None = None,
    *,
    check_negative: bool = False,
):
    """
    Direct method: one exponential waiting time for the whole system,
    then the firing channel chosen proportionally to its propensity.

    Channels with equal propensity are resolved by flat index order
    (the lowest index whose cumulative sum exceeds the draw wins),
    never by an extra random draw.

    Returns (tau, idx); (inf, -1) when no channel can fire.
    """
    if propensities.ndim != 1:
        raise ValueError("propensities must be a 1D array")

    if check_negative:
        _check_nonnegative(propensities)

    if propensities.size == 0:
        return np.inf, -1

    if cumulative is None:
        cumulative = np.cumsum(propensities)
    else:
        if cumulative.shape != propensities.shape:
            raise ValueError("cumulative must have same shape as propensities")
        np.cumsum(propensities, out=cumulative)

    a0 = float(cumulative[-1])
    if a0 <= 0.0:
        return np.inf, -1

    u1, u2 = rng.random(2)
    tau = np.log(1.0 / u1) / a0
    # first channel whose cumulative sum exceeds u2*a0; never a zero-propensity channel
    idx = int(np.searchsorted(cumulative, u2 * a0, side="right"))
    if idx >= propensities.size:
        idx = int(np.flatnonzero(propensities > 0.0)[-1])
    return tau, idx


def first_reaction_draw(
    propensities: np.ndarray,
    rng: np.random.Generator,
    *,
    check_negative: bool = False,
):
    """
    First-Reaction method: an independent exponential candidate time for
    every channel with positive propensity; the earliest one fires.

    Returns (tau, idx); (inf, -1) when no channel can fire.
    """
    if propensities.ndim != 1:
        raise ValueError("propensities must be a 1D array")

    if check_negative:
        _check_nonnegative(propensities)

    active = np.flatnonzero(propensities > 0.0)
    if active.size == 0:
        return np.inf, -1

    u = rng.random(active.size)
    candidates = np.log(1.0 / u) / propensities[active]
    k = int(np.argmin(candidates))
    return float(candidates[k]), int(active[k])
