import pickle

import numpy as np
import pytest

from lattice_ssa.errors import ConfigurationError, TopologyError
from lattice_ssa.reactions import compile_rules
from lattice_ssa.topology import (
    Hexagonal,
    NearestNeighbor,
    VonNeumann,
    bind_parameters,
    enumerate_channels,
    get_shape,
)


def test_nearest_neighbor_offsets():
    nn = NearestNeighbor()
    assert nn.offsets(1) == ((-1,), (1,))
    assert nn.offsets(2) == ((-1, 0), (1, 0), (0, -1), (0, 1))
    assert nn.cardinality(3) == 6
    assert VonNeumann is NearestNeighbor


def test_hexagonal_offsets_are_2d_only():
    hx = Hexagonal()
    offs = hx.offsets(2)
    assert len(offs) == 6
    assert len(set(offs)) == 6
    # symmetric: every offset has its inverse
    assert all(tuple(-x for x in o) in offs for o in offs)

    with pytest.raises(TopologyError):
        hx.offsets(3)
    with pytest.raises(TopologyError):
        hx.offsets(1)


def test_invalid_dimensionality():
    with pytest.raises(TopologyError):
        NearestNeighbor().offsets(4)
    with pytest.raises(TopologyError):
        NearestNeighbor().offsets(2.0)
    assert NearestNeighbor().offsets(np.int64(2)) == NearestNeighbor().offsets(2)


def test_get_shape_by_name():
    assert isinstance(get_shape("nearest-neighbor"), NearestNeighbor)
    assert isinstance(get_shape("hex"), Hexagonal)
    assert isinstance(get_shape(Hexagonal), Hexagonal)
    with pytest.raises(TopologyError):
        get_shape("moore")


def _table():
    return compile_rules(
        """
        Rabbit + 0 --> Rabbit + Rabbit, beta
        Rabbit + Wolf --> Wolf + Wolf, gamma
        Wolf --> 0, delta
        """,
        "beta gamma delta",
    )


def test_enumeration_counts_and_order():
    model = enumerate_channels(_table(), "nearest-neighbor", 2, [1.0, 0.5, 0.2])

    # two pair rules x 4 offsets + one single-site rule
    assert model.n_channels == 9
    assert [ch.index for ch in model.channels] == list(range(9))
    assert [ch.rule_index for ch in model.channels] == [0] * 4 + [1] * 4 + [2]
    assert model.channels[0].offset == (-1, 0)
    assert model.channels[8].offset is None
    assert model.channels[4].rate == 0.5
    assert model.rates == {"beta": 1.0, "gamma": 0.5, "delta": 0.2}
    assert model.channel_indices_for("Wolf") == (8,)


def test_enumeration_is_deterministic():
    a = enumerate_channels(_table(), Hexagonal(), 2, {"beta": 1.0, "gamma": 0.5, "delta": 0.2})
    b = enumerate_channels(_table(), "hexagonal", 2, [1.0, 0.5, 0.2])
    assert [(c.rule_index, c.offset, c.rate) for c in a.channels] == [
        (c.rule_index, c.offset, c.rate) for c in b.channels
    ]


def test_hexagonal_in_3d_is_rejected_at_enumeration():
    with pytest.raises(TopologyError):
        enumerate_channels(_table(), "hexagonal", 3, [1.0, 0.5, 0.2])


def test_parameter_vector_length_mismatch():
    with pytest.raises(ConfigurationError, match="3 rate"):
        enumerate_channels(_table(), "nearest-neighbor", 2, [1.0, 0.5])


def test_parameter_mapping_must_match_names():
    with pytest.raises(ConfigurationError, match="missing"):
        bind_parameters(_table(), {"beta": 1.0, "gamma": 0.5})


@pytest.mark.parametrize("bad", [-1.0, float("nan"), float("inf"), "fast"])
def test_invalid_rate_values(bad):
    with pytest.raises(ConfigurationError):
        bind_parameters(_table(), [1.0, bad, 0.2])


def test_barrier_symbols_have_only_zero_rate_channels():
    table = compile_rules("A + 0 --> 0 + A, d\nW --> 0, k", "d k")
    model = enumerate_channels(table, "nearest-neighbor", 1, [1.0, 0.0])
    assert model.barrier_symbols == ("W",)


def test_enumerated_rates_are_read_only():
    model = enumerate_channels(_table(), "nearest-neighbor", 2, [1.0, 0.5, 0.2])
    with pytest.raises(TypeError):
        model.rates["beta"] = 9.0
    assert model.rates["beta"] == 1.0

    restored = pickle.loads(pickle.dumps(model))
    assert restored == model
    assert restored.channel_indices_for("Wolf") == (8,)
    with pytest.raises(TypeError):
        restored.rates["beta"] = 9.0
