from .plotting import hex_to_cartesian, plot_lattice_snapshot, plot_population_time_series, setup_cinematic_style

__all__ = ["hex_to_cartesian", "plot_lattice_snapshot", "plot_population_time_series", "setup_cinematic_style"]
