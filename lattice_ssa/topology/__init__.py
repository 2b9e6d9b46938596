from .neighborhoods import Hexagonal, NearestNeighbor, NeighborhoodShape, VonNeumann, get_shape
from .enumeration import Channel, EnumeratedModel, ParameterVector, bind_parameters, enumerate_channels

__all__ = [
    "Hexagonal",
    "NearestNeighbor",
    "NeighborhoodShape",
    "VonNeumann",
    "get_shape",
    "Channel",
    "EnumeratedModel",
    "ParameterVector",
    "bind_parameters",
    "enumerate_channels",
]
