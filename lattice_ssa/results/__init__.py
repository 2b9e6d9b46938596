from .trajectory import Trajectory
from .io import save_results, load_results
from .io import save_npz, load_npz
from .io import save_snapshot, load_snapshot, save_all

__all__ = [
    "Trajectory",
    "save_results",
    "load_results",
    "save_npz",
    "load_npz",
    "save_snapshot",
    "load_snapshot",
    "save_all",
]
