from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from ..errors import ConfigurationError


class EmptySite(Enum):
    """Reserved marker for an unoccupied lattice site."""
    EMPTY = "∅"

    def __repr__(self) -> str:
        return "EMPTY"

    def __str__(self) -> str:
        return "0"


EMPTY = EmptySite.EMPTY

# A site is either empty or holds one agent named by a string
Symbol = Union[str, EmptySite]

EMPTY_TOKENS = ("0", "∅")


def format_symbol(symbol: Optional[Symbol]) -> str:
    if symbol is None:
        return ""
    return str(symbol)


@dataclass(frozen=True)
class SitePair:
    """
    Occupants of the two sites a rule touches.

    left  : the site the rule is anchored on ("self")
    right : the neighbouring site, or None for single-site rules
    """
    left: Symbol
    right: Optional[Symbol] = None

    @property
    def arity(self) -> int:
        return 1 if self.right is None else 2

    def __iter__(self):
        yield self.left
        if self.right is not None:
            yield self.right

    def swapped(self) -> "SitePair":
        if self.right is None:
            raise ValueError("cannot swap a single-site pair")
        return SitePair(left=self.right, right=self.left)

    def __str__(self) -> str:
        return " + ".join(format_symbol(s) for s in self)


@dataclass(frozen=True)
class Rule:
    """
    One interaction rule, e.g. ``Rabbit + 0 --> Rabbit + Rabbit, beta``.

    Positional convention:
      reactants.left  becomes products.left  (on the anchor site)
      reactants.right becomes products.right (on the neighbour site)
    """
    label: str
    reactants: SitePair
    products: SitePair
    rate_name: str
    line: Optional[int] = None

    def __post_init__(self):
        if self.reactants.arity != self.products.arity:
            raise ConfigurationError(
                f"{self.label}: reactant/product arity mismatch "
                f"({self.reactants.arity} vs {self.products.arity})"
            )

    @property
    def arity(self) -> int:
        return self.reactants.arity

    @property
    def is_pair_rule(self) -> bool:
        return self.reactants.arity == 2

    @property
    def net_agent_change(self) -> int:
        """Number of agents created (positive) or destroyed (negative) by one firing."""
        before = sum(1 for s in self.reactants if s is not EMPTY)
        after = sum(1 for s in self.products if s is not EMPTY)
        return after - before

    def __str__(self) -> str:
        return f"{self.reactants} --> {self.products}, {self.rate_name}"
