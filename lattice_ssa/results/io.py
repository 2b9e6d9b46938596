from __future__ import annotations

from pathlib import Path
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Dict, Optional, Tuple, Union

import json
import numpy as np

from ..lattice import LatticeDomain, LatticeSnapshot
from .trajectory import Trajectory


PathLike = Union[str, Path]


def _json_safe(obj: Any) -> Any:
    if isinstance(obj, Mapping):
        return {str(k): _json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_safe(v) for v in obj]
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    return obj


def _pack_snapshots(traj: Trajectory) -> Dict[str, np.ndarray]:
    """
    Flatten all snapshots into CSR-style arrays.

    Sample k owns rows offsets[k]:offsets[k+1] of coords/types/pinned.
    """
    ndims = traj.snapshots[0].domain.ndims if len(traj) else 1
    coords, types, pinned = [], [], []
    offsets = [0]
    for snap in traj.snapshots:
        c, t, p = snap.to_arrays()
        coords.append(c)
        types.append(t)
        pinned.append(p)
        offsets.append(offsets[-1] + t.shape[0])

    return {
        "coords": np.concatenate(coords, axis=0) if coords else np.zeros((0, ndims), dtype=np.int64),
        "types": np.concatenate(types) if types else np.zeros(0, dtype=np.int64),
        "pinned": np.concatenate(pinned) if pinned else np.zeros(0, dtype=bool),
        "offsets": np.asarray(offsets, dtype=np.int64),
    }


def _snapshot_from_arrays(domain: LatticeDomain, alphabet, coords, types, pinned) -> LatticeSnapshot:
    sites = {}
    pins = set()
    for c, t, p in zip(coords, types, pinned):
        key = tuple(int(x) for x in c)
        sites[key] = alphabet[int(t) - 1]
        if p:
            pins.add(key)
    return LatticeSnapshot(
        domain=domain,
        alphabet=tuple(alphabet),
        sites=MappingProxyType(sites),
        pinned=frozenset(pins),
    )


def _unpack_trajectory(arrays, domain: LatticeDomain, alphabet, run_meta: Dict[str, Any]) -> Trajectory:
    time = np.asarray(arrays["time"], dtype=float)
    offsets = np.asarray(arrays["offsets"], dtype=np.int64)
    coords = np.asarray(arrays["coords"], dtype=np.int64)
    types = np.asarray(arrays["types"], dtype=np.int64)
    pinned = np.asarray(arrays["pinned"], dtype=bool)

    if offsets.shape[0] != time.shape[0] + 1:
        raise ValueError("Loaded offsets do not match the number of samples")

    traj = Trajectory(alphabet=tuple(alphabet), meta=dict(run_meta))
    for k, t in enumerate(time):
        s, e = int(offsets[k]), int(offsets[k + 1])
        traj.append(float(t), _snapshot_from_arrays(domain, alphabet, coords[s:e], types[s:e], pinned[s:e]))
    return traj.freeze()


def _domain_of(traj: Trajectory) -> Optional[LatticeDomain]:
    if len(traj) == 0:
        return None
    return traj.snapshots[0].domain


# ============================================================
# Pair format: <prefix>.npz + <prefix>.json
# ============================================================
def save_results(
    traj: Trajectory,
    path_prefix: PathLike,
    *,
    meta: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Save a Trajectory to:
      - <path_prefix>.npz  (arrays: time, counts, packed snapshots)
      - <path_prefix>.json (alphabet, domain, run + experiment metadata)
    """
    path_prefix = Path(path_prefix)
    path_prefix.parent.mkdir(parents=True, exist_ok=True)

    npz_path = path_prefix.with_suffix(".npz")
    json_path = path_prefix.with_suffix(".json")

    packed = _pack_snapshots(traj)
    np.savez_compressed(
        npz_path,
        time=traj.times,
        counts=traj.count_matrix(),
        **packed,
    )

    domain = _domain_of(traj)
    meta_out: Dict[str, Any] = dict(meta or {})
    meta_out.setdefault("alphabet", list(traj.alphabet))
    meta_out.setdefault("domain", domain.to_dict() if domain is not None else None)
    meta_out.setdefault("run", _json_safe(traj.meta))
    meta_out.setdefault(
        "shapes",
        {
            "time": list(traj.times.shape),
            "counts": list(traj.count_matrix().shape),
            "coords": list(packed["coords"].shape),
        },
    )

    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(_json_safe(meta_out), f, indent=2)

    print(f"Results saved to:\n  {npz_path}\n  {json_path}")


def load_results(path_prefix: PathLike) -> Tuple[Trajectory, Dict[str, Any]]:
    """
    Load a Trajectory saved by save_results().

    Returns
    -------
    (Trajectory, meta_dict)
    """
    path_prefix = Path(path_prefix)
    npz_path = path_prefix.with_suffix(".npz")
    json_path = path_prefix.with_suffix(".json")

    if not npz_path.exists():
        raise FileNotFoundError(f"Missing npz file: {npz_path}")
    if not json_path.exists():
        raise FileNotFoundError(f"Missing json file: {json_path}")

    with open(json_path, "r", encoding="utf-8") as f:
        meta = json.load(f)

    alphabet = tuple(meta.get("alphabet", []))
    dom_meta = meta.get("domain")
    domain = LatticeDomain.from_dict(dom_meta) if dom_meta is not None else LatticeDomain(ndims=1)

    with np.load(npz_path) as data:
        traj = _unpack_trajectory(data, domain, alphabet, meta.get("run", {}))

    # Light validation
    if "counts" in meta.get("shapes", {}) and list(traj.count_matrix().shape) != meta["shapes"]["counts"]:
        raise ValueError("Loaded snapshots do not match the saved count shape")

    return traj, meta


# ============================================================
# Single-file format: <file>.npz with meta_json
# ============================================================
def save_npz(
    traj: Trajectory,
    path: PathLike,
    *,
    meta: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Save a Trajectory to a single self-contained .npz file.

    Stores:
      - time, counts and packed snapshot arrays
      - alphabet + domain
      - meta_json: JSON string with run and experiment metadata
    """
    path = str(path)
    domain = _domain_of(traj)

    payload: Dict[str, Any] = {
        "time": traj.times,
        "counts": traj.count_matrix(),
        "alphabet": np.array(list(traj.alphabet), dtype=str),
        "domain_json": json.dumps(domain.to_dict() if domain is not None else None),
        **_pack_snapshots(traj),
    }

    meta_out: Dict[str, Any] = dict(meta or {})
    meta_out.setdefault("run", traj.meta)
    payload["meta_json"] = json.dumps(_json_safe(meta_out))

    np.savez_compressed(path, **payload)
    print(f"Results saved to single file: {path}")


def load_npz(path: PathLike) -> Tuple[Trajectory, Dict[str, Any]]:
    """
    Load a self-contained .npz file produced by save_npz().

    Returns
    -------
    (Trajectory, meta_dict)
    """
    with np.load(str(path)) as data:
        alphabet = tuple(str(s) for s in data["alphabet"].tolist())
        dom_meta = json.loads(str(data["domain_json"]))
        domain = LatticeDomain.from_dict(dom_meta) if dom_meta is not None else LatticeDomain(ndims=1)

        meta: Dict[str, Any] = {}
        if "meta_json" in data.files:
            meta = json.loads(str(data["meta_json"]))

        traj = _unpack_trajectory(data, domain, alphabet, meta.get("run", {}))

    return traj, meta


# ============================================================
# Snapshots
# ============================================================
def save_snapshot(snapshot: LatticeSnapshot, path: PathLike) -> None:
    """Save one LatticeSnapshot to a .npz file."""
    coords, types, pinned = snapshot.to_arrays()
    np.savez_compressed(
        str(path),
        coords=coords,
        types=types,
        pinned=pinned,
        alphabet=np.array(list(snapshot.alphabet), dtype=str),
        domain_json=json.dumps(snapshot.domain.to_dict()),
    )


def load_snapshot(path: PathLike) -> LatticeSnapshot:
    with np.load(str(path)) as data:
        alphabet = tuple(str(s) for s in data["alphabet"].tolist())
        domain = LatticeDomain.from_dict(json.loads(str(data["domain_json"])))
        return _snapshot_from_arrays(domain, alphabet, data["coords"], data["types"], data["pinned"])


# ============================================================
# Convenience wrapper: save BOTH formats with one call
# ============================================================
def save_all(
    traj: Trajectory,
    path_prefix: PathLike,
    *,
    meta: Optional[Dict[str, Any]] = None,
    also_write_single_npz: bool = True,
) -> None:
    """
    Save:
      - <prefix>.npz + <prefix>.json
      - optionally also <prefix>.full.npz (single file)
    """
    path_prefix = Path(path_prefix)
    save_results(traj, path_prefix, meta=meta)

    if also_write_single_npz:
        save_npz(traj, path_prefix.with_suffix(".full.npz"), meta=meta)
