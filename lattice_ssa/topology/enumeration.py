from __future__ import annotations
from dataclasses import dataclass, field
import math
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Sequence, Tuple, Union

from ..errors import ConfigurationError
from ..reactions import EMPTY, Rule, RuleTable, Symbol
from .neighborhoods import NeighborhoodShape, Offset, get_shape

ParameterVector = Union[Sequence[float], Mapping[str, float]]


@dataclass(frozen=True)
class Channel:
    """
    One site-local instantiation of a rule.

    A pair rule becomes one channel per neighbour offset; a single-site
    rule becomes one channel with offset None. The rate is per channel:
    it is not divided by the number of neighbours.
    """
    index: int
    rule_index: int
    rule: Rule
    offset: Optional[Offset]
    rate: float

    @property
    def left(self) -> Symbol:
        return self.rule.reactants.left

    @property
    def right(self) -> Optional[Symbol]:
        return self.rule.reactants.right

    @property
    def left_product(self) -> Symbol:
        return self.rule.products.left

    @property
    def right_product(self) -> Optional[Symbol]:
        return self.rule.products.right

    @property
    def label(self) -> str:
        if self.offset is None:
            return self.rule.label
        return f"{self.rule.label}@{self.offset}"


def bind_parameters(table: RuleTable, params: ParameterVector) -> Dict[str, float]:
    """
    Bind a parameter vector to the table's declared rate names.

    A sequence must follow the declared order exactly; a mapping must name
    exactly the declared rates. Values must be finite and non-negative.
    """
    if isinstance(params, Mapping):
        keys = set(params.keys())
        expected = set(table.rate_names)
        if keys != expected:
            missing = sorted(expected - keys)
            extra = sorted(keys - expected)
            raise ConfigurationError(
                f"parameter names do not match declared rates: missing={missing}, unexpected={extra}"
            )
        values = [params[name] for name in table.rate_names]
    else:
        values = list(params)
        if len(values) != table.n_rates:
            raise ConfigurationError(
                f"parameter vector has {len(values)} value(s) but {table.n_rates} rate(s) were declared "
                f"({', '.join(table.rate_names)})"
            )

    bound: Dict[str, float] = {}
    for name, v in zip(table.rate_names, values):
        try:
            v = float(v)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"rate '{name}' is not a number: {v!r}") from e
        if not math.isfinite(v):
            raise ConfigurationError(f"rate '{name}' must be finite, got {v}")
        if v < 0:
            raise ConfigurationError(f"rate '{name}' must be >= 0, got {v}")
        bound[name] = v
    return bound


@dataclass(frozen=True)
class EnumeratedModel:
    """
    Immutable set of lattice-local reaction channels.

    Channel order is rule order, then neighbour-offset order, so
    enumerating the same inputs always yields the same model.
    """
    rule_table: RuleTable
    shape: NeighborhoodShape
    ndims: int
    rates: Mapping[str, float]
    channels: Tuple[Channel, ...]
    _by_left: Mapping[Symbol, Tuple[int, ...]] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        by_left: Dict[Symbol, list] = {}
        for ch in self.channels:
            by_left.setdefault(ch.left, []).append(ch.index)
        object.__setattr__(self, "rates", MappingProxyType(dict(self.rates)))
        object.__setattr__(self, "_by_left", MappingProxyType({k: tuple(v) for k, v in by_left.items()}))

    def __reduce__(self):
        return (EnumeratedModel, (self.rule_table, self.shape, self.ndims, dict(self.rates), self.channels))

    @property
    def n_channels(self) -> int:
        return len(self.channels)

    @property
    def alphabet(self) -> Tuple[str, ...]:
        return self.rule_table.alphabet

    @property
    def offsets(self) -> Tuple[Offset, ...]:
        return self.shape.offsets(self.ndims)

    @property
    def reactant_symbols(self) -> Tuple[Symbol, ...]:
        """Symbols that anchor at least one channel."""
        return tuple(self._by_left.keys())

    @property
    def barrier_symbols(self) -> Tuple[Symbol, ...]:
        """
        Agent symbols that can never act: every channel they anchor has
        rate zero, or they anchor none at all.
        """
        out = []
        for sym in self.alphabet:
            idx = self._by_left.get(sym, ())
            if all(self.channels[i].rate == 0.0 for i in idx):
                out.append(sym)
        return tuple(out)

    def channels_for(self, symbol: Symbol) -> Tuple[Channel, ...]:
        return tuple(self.channels[i] for i in self._by_left.get(symbol, ()))

    def channel_indices_for(self, symbol: Symbol) -> Tuple[int, ...]:
        return self._by_left.get(symbol, ())

    def describe(self) -> None:
        print("\n=== Enumerated channels ===")
        print(f"shape={self.shape.name}, ndims={self.ndims}, n_channels={self.n_channels}")
        for ch in self.channels:
            off = "site" if ch.offset is None else str(ch.offset)
            print(f"  [{ch.index}] {ch.rule}    offset={off}    rate={ch.rate}")
        print()


def enumerate_channels(
    rule_table: RuleTable,
    shape: Union[str, NeighborhoodShape],
    ndims: int,
    params: ParameterVector,
) -> EnumeratedModel:
    """
    Expand a RuleTable over a neighbourhood shape into site-local channels.

    Raises
    ------
    TopologyError
        if the shape is not defined for `ndims` (e.g. hexagonal in 3D).
    ConfigurationError
        if the parameter vector does not match the declared rate names.
    """
    shape = get_shape(shape)
    offsets = shape.offsets(ndims)
    rates = bind_parameters(rule_table, params)

    channels = []
    for rule_index, rule in enumerate(rule_table.rules):
        rate = rates[rule.rate_name]
        if rule.is_pair_rule:
            if rule.reactants.left is EMPTY:
                raise ConfigurationError(f"{rule.label}: anchor reactant must be an agent")
            for off in offsets:
                channels.append(Channel(len(channels), rule_index, rule, off, rate))
        else:
            channels.append(Channel(len(channels), rule_index, rule, None, rate))

    return EnumeratedModel(
        rule_table=rule_table,
        shape=shape,
        ndims=int(ndims),
        rates=dict(rates),
        channels=tuple(channels),
    )
