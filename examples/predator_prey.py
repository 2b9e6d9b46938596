import numpy as np
from lattice_ssa.core import LatticeModel, mean_counts
from lattice_ssa.results.io import save_npz, load_npz
from lattice_ssa.animation_util import plot_lattice_snapshot, plot_population_time_series

# -----------------------------
# Build model
# -----------------------------
m = LatticeModel(algorithm="direct")

m.rules("""
    Rabbit + 0 --> Rabbit + Rabbit, beta
    Wolf + Rabbit --> Wolf + Wolf, gamma
    Wolf --> 0, delta
    Rabbit + 0 --> 0 + Rabbit, hop
    Wolf + 0 --> 0 + Wolf, hop
""", rate_names="beta gamma delta hop")

m.topology("nearest-neighbor", ndims=2)
m.build(rates={"beta": 1.0, "gamma": 1.0, "delta": 0.5, "hop": 2.0})
m.describe_reactions()

# -----------------------------
# Initial conditions
# -----------------------------
init = m.random_lattice((100, 100), {"Rabbit": 0.2, "Wolf": 0.05}, boundary="periodic", seed=3)
print("Initial counts:", init.counts())

# -----------------------------
# Run simulation
# -----------------------------
total_time = 20.0
sample_times = np.linspace(0.0, total_time, 201)
repeats = 8
seed = 1

trajs = m.run_repeats(
    init,
    tfinal=total_time,
    sample_times=sample_times,
    repeats=repeats,
    seed=seed,
    parallel=True,
    n_jobs=-1,
    progress=True,
)

t, means = mean_counts(trajs)
print("Mean final counts:", {sp: float(v[-1]) for sp, v in means.items()})

# -----------------------------
# Save results + metadata
# -----------------------------
meta = m.metadata()
meta.update({
    "model": "rabbits and wolves",
    "total_time": float(total_time),
    "repeats": int(repeats),
    "seed": int(seed),
})

out_npz = "predator_prey_r000.npz"
save_npz(trajs[0], out_npz, meta=meta)
print("Saved:", out_npz)

loaded, loaded_meta = load_npz(out_npz)
print("Loaded status:", loaded.status, "samples:", len(loaded))

# -----------------------------
# Plot
# -----------------------------
plot_population_time_series(trajs, title="Rabbits and wolves")
plot_lattice_snapshot(trajs[0].snapshots[-1])
