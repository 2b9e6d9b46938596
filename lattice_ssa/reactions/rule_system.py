from __future__ import annotations
from dataclasses import dataclass
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..errors import ConfigurationError
from .reaction_types import EMPTY, EMPTY_TOKENS, Rule, SitePair, Symbol

_ARROW = re.compile(r"\s*(?:-->|->|→)\s*")
_SYMBOL = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

RateNames = Union[str, Sequence[str]]


@dataclass(frozen=True)
class RuleTable:
    """
    Compiled interaction rules.

    Rates are kept symbolic (by name); numerical values are only bound
    when the table is enumerated over a lattice topology.
    """
    rules: Tuple[Rule, ...]
    rate_names: Tuple[str, ...]
    alphabet: Tuple[str, ...]

    def __post_init__(self):
        if len(self.rules) == 0:
            raise ConfigurationError("rule table must contain at least one rule")
        if len(set(self.rate_names)) != len(self.rate_names):
            raise ConfigurationError("rate names must be unique")

    @property
    def n_rules(self) -> int:
        return len(self.rules)

    @property
    def n_rates(self) -> int:
        return len(self.rate_names)

    @property
    def symbol_index(self) -> Dict[Symbol, int]:
        """Integer type codes: 0 is the empty site, agents start at 1."""
        codes: Dict[Symbol, int] = {EMPTY: 0}
        for i, sp in enumerate(self.alphabet):
            codes[sp] = i + 1
        return codes

    def rate_index(self, rate_name: str) -> int:
        return self.rate_names.index(rate_name)

    def rules_using(self, rate_name: str) -> List[Rule]:
        return [r for r in self.rules if r.rate_name == rate_name]

    def describe(self) -> None:
        """
        Pretty-print the rules and the declared parameter order.
        """
        print("\n=== Interaction rules ===")
        for idx, rule in enumerate(self.rules, start=1):
            print(f"[{idx}] {rule.label}: {rule.reactants} --> {rule.products}    (rate='{rule.rate_name}')")
        print(f"\nAgent types : {', '.join(self.alphabet)}")
        print(f"Rate order  : {', '.join(self.rate_names)}")
        print()


def _normalise_rate_names(rate_names: RateNames) -> Tuple[str, ...]:
    if isinstance(rate_names, str):
        names = [n for n in re.split(r"[\s,]+", rate_names.strip()) if n]
    else:
        names = [str(n).strip() for n in rate_names]
    if len(names) == 0:
        raise ConfigurationError("at least one rate name must be declared")
    seen = set()
    for n in names:
        if n in seen:
            raise ConfigurationError(f"rate name '{n}' declared more than once")
        seen.add(n)
    return tuple(names)


def _parse_symbol(token: str, lineno: int) -> Symbol:
    token = token.strip()
    if token in EMPTY_TOKENS:
        return EMPTY
    if not _SYMBOL.match(token):
        raise ConfigurationError(f"line {lineno}: invalid symbol '{token}'")
    return token


def _parse_side(side: str, lineno: int) -> SitePair:
    tokens = [t for t in side.split("+")]
    if any(t.strip() == "" for t in tokens):
        raise ConfigurationError(f"line {lineno}: empty term in '{side.strip()}'")
    if len(tokens) == 1:
        return SitePair(left=_parse_symbol(tokens[0], lineno))
    if len(tokens) == 2:
        return SitePair(
            left=_parse_symbol(tokens[0], lineno),
            right=_parse_symbol(tokens[1], lineno),
        )
    raise ConfigurationError(
        f"line {lineno}: a rule touches at most two sites, got {len(tokens)} terms in '{side.strip()}'"
    )


def parse_rule(line: str, lineno: int = 1, label: Optional[str] = None) -> Rule:
    """
    Parse one rule of the form ``A + B --> C + D, k`` or ``A --> B, k``.

    A pair rule whose anchor reactant is empty (``0 + A --> ...``) is
    rewritten with both pairs swapped, so the anchor always holds an agent.
    """
    if "," not in line:
        raise ConfigurationError(f"line {lineno}: missing ', <rate name>' in '{line.strip()}'")
    body, rate_name = line.rsplit(",", 1)
    rate_name = rate_name.strip()
    if not rate_name:
        raise ConfigurationError(f"line {lineno}: missing rate name in '{line.strip()}'")

    parts = _ARROW.split(body.strip())
    if len(parts) != 2:
        raise ConfigurationError(f"line {lineno}: expected exactly one arrow in '{line.strip()}'")

    reactants = _parse_side(parts[0], lineno)
    products = _parse_side(parts[1], lineno)

    if reactants.arity != products.arity:
        raise ConfigurationError(
            f"line {lineno}: {reactants.arity} reactant site(s) but {products.arity} product site(s) "
            f"in '{line.strip()}'"
        )

    if reactants.arity == 1 and reactants.left is EMPTY:
        raise ConfigurationError(f"line {lineno}: a single-site rule must act on an agent, not the empty site")

    if reactants.arity == 2:
        if reactants.left is EMPTY and reactants.right is EMPTY:
            raise ConfigurationError(f"line {lineno}: at least one reactant must be an agent")
        if reactants.left is EMPTY:
            reactants = reactants.swapped()
            products = products.swapped()

    if label is None:
        label = f"R{lineno}"

    return Rule(
        label=label,
        reactants=reactants,
        products=products,
        rate_name=rate_name,
        line=lineno,
    )


def _rule_lines(text: str) -> Iterable[Tuple[int, str]]:
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.split("#", 1)[0].strip()
        if line:
            yield lineno, line


def compile_rules(text: str, rate_names: RateNames) -> RuleTable:
    """
    Compile a block of interaction rules into a RuleTable.

    Parameters
    ----------
    text : str
        One rule per line, ``#`` starts a comment.
    rate_names : str or sequence of str
        Declared parameter order. Every name must be used by at least one
        rule and every rule must reference a declared name.

    Example
    -------
    >>> table = compile_rules('''
    ...     Rabbit + 0 --> Rabbit + Rabbit, beta
    ...     Rabbit + Wolf --> Wolf + Wolf, gamma
    ...     Wolf --> 0, delta
    ... ''', "beta gamma delta")
    """
    declared = _normalise_rate_names(rate_names)

    rules: List[Rule] = []
    alphabet: List[str] = []
    n = 0
    for lineno, line in _rule_lines(text):
        n += 1
        rule = parse_rule(line, lineno=lineno, label=f"R{n}")

        if rule.rate_name not in declared:
            raise ConfigurationError(
                f"line {lineno}: rule '{rule}' references undeclared rate '{rule.rate_name}'. "
                f"Declared: {list(declared)}"
            )

        for sym in list(rule.reactants) + list(rule.products):
            if sym is not EMPTY and sym not in alphabet:
                alphabet.append(sym)

        rules.append(rule)

    if not rules:
        raise ConfigurationError("no rules found in rule text")

    used = {r.rate_name for r in rules}
    unused = [name for name in declared if name not in used]
    if unused:
        raise ConfigurationError(f"declared rate(s) not used by any rule: {unused}")

    return RuleTable(rules=tuple(rules), rate_names=declared, alphabet=tuple(alphabet))
