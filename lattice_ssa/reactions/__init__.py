from .reaction_types import EMPTY, EmptySite, Rule, SitePair, Symbol
from .rule_system import RuleTable, compile_rules, parse_rule

__all__ = ["EMPTY", "EmptySite", "Rule", "SitePair", "Symbol", "RuleTable", "compile_rules", "parse_rule"]
