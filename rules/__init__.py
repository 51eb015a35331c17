"""Rules package.

This package contains the rule engine that decides when a frame's risk
level must be escalated, based on conditions such as a high panic index,
people inside a restricted zone, counter-flow movement, or weapons in
view. Rules are configured in the YAML settings and loaded at runtime.
"""

from .rule_engine import RuleEngine

__all__ = ["RuleEngine"]
