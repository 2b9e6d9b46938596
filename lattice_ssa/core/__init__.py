from .gillespie_loop import first_reaction_draw, gillespie_draw
from .propensity import PropensityTable
from .engine import (
    ALGORITHMS,
    Direct,
    Event,
    FirstReaction,
    LatticeSSAEngine,
    RunStatus,
    get_algorithm,
    mean_counts,
    simulate,
)
from .user_api import LatticeModel

__all__ = [
    "first_reaction_draw",
    "gillespie_draw",
    "PropensityTable",
    "ALGORITHMS",
    "Direct",
    "Event",
    "FirstReaction",
    "LatticeSSAEngine",
    "RunStatus",
    "get_algorithm",
    "mean_counts",
    "simulate",
    "LatticeModel",
]
