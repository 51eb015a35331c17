"""Risk escalation rule engine.

The `RuleEngine` class evaluates configured conditions against the
per-frame crowd context (panic index, zone violations, counter-flow,
object histogram, ...) and reports which rules fired. Each rule is a dict
with a `type` naming a registered handler plus any parameters the handler
reads, for example ``{"type": "zone_violation", "threshold": 3}``.
"""

from __future__ import annotations

from typing import List, Dict, Any, Callable

RuleHandler = Callable[[Dict[str, Any], Dict[str, Any]], bool]


class RuleEngine:
    """Evaluate escalation rules against a frame context."""

    def __init__(self, rules: List[Dict[str, Any]] | None = None) -> None:
        """
        Parameters
        ----------
        rules : list of dict, optional
            Rule definitions. Every rule needs a `type`; the remaining keys
            are passed to the handler untouched.
        """
        self.rules: List[Dict[str, Any]] = list(rules or [])
        self.custom_handlers: Dict[str, RuleHandler] = {}

    def register_handler(self, name: str, handler: RuleHandler) -> None:
        """Register a rule handler.

        When a rule's `type` matches `name`, the handler is called with the
        context dictionary and the rule itself and returns `True` if the
        rule fires.
        """
        self.custom_handlers[name] = handler

    def evaluate(self, context: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Evaluate all rules against the current context.

        Returns
        -------
        events : list of dict
            One entry per fired rule with the rule and the context.

        Raises
        ------
        KeyError
            If a rule names a type with no registered handler.
        """
        triggered_events = []
        for rule in self.rules:
            rule_type = rule.get("type")
            handler = self.custom_handlers.get(rule_type)
            if handler is None:
                raise KeyError(f"No handler registered for rule type '{rule_type}'")
            if handler(context, rule):
                triggered_events.append({"rule": rule, "context": context})
        return triggered_events
