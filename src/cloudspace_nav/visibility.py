from __future__ import annotations

import logging
from typing import Callable

from .exceptions import PredicateFailure
from .models import ModuleDescriptor, UserContext, VisibilityRule

logger = logging.getLogger(__name__)

RuleStrategy = Callable[[VisibilityRule, UserContext, "VisibilityRuleRegistry"], bool]


def _always(rule: VisibilityRule, user: UserContext, rules: "VisibilityRuleRegistry") -> bool:
    return True


def _never(rule: VisibilityRule, user: UserContext, rules: "VisibilityRuleRegistry") -> bool:
    return False


def _role_in(rule: VisibilityRule, user: UserContext, rules: "VisibilityRuleRegistry") -> bool:
    role = (user.role or "").strip().upper()
    return bool(role) and role in {item.strip().upper() for item in rule.roles}


def _user_type_in(rule: VisibilityRule, user: UserContext, rules: "VisibilityRuleRegistry") -> bool:
    name = (user.user_type_name or "").strip().lower()
    return bool(name) and name in {item.strip().lower() for item in rule.user_types}


def _email_domain_in(rule: VisibilityRule, user: UserContext, rules: "VisibilityRuleRegistry") -> bool:
    email = (user.email or "").strip().lower()
    if "@" not in email:
        return False
    domain = email.rsplit("@", 1)[1]
    return domain in {item.strip().lower().lstrip("@") for item in rule.domains}


def _all_of(rule: VisibilityRule, user: UserContext, rules: "VisibilityRuleRegistry") -> bool:
    return all(rules.evaluate(child, user) for child in rule.rules)


def _any_of(rule: VisibilityRule, user: UserContext, rules: "VisibilityRuleRegistry") -> bool:
    return any(rules.evaluate(child, user) for child in rule.rules)


DEFAULT_STRATEGIES: dict[str, RuleStrategy] = {
    "always": _always,
    "never": _never,
    "role_in": _role_in,
    "user_type_in": _user_type_in,
    "email_domain_in": _email_domain_in,
    "all_of": _all_of,
    "any_of": _any_of,
}


class VisibilityRuleRegistry:
    """Strategy table mapping rule names to visibility predicates.

    Unknown rule names hide the module. A strategy that raises hides only the
    module it was evaluated for.
    """

    def __init__(self, strategies: dict[str, RuleStrategy] | None = None) -> None:
        self._strategies: dict[str, RuleStrategy] = dict(DEFAULT_STRATEGIES)
        if strategies:
            self._strategies.update(strategies)

    def register(self, name: str, strategy: RuleStrategy) -> None:
        self._strategies[name] = strategy

    def names(self) -> set[str]:
        return set(self._strategies)

    def evaluate(self, rule: VisibilityRule, user: UserContext) -> bool:
        strategy = self._strategies.get(rule.rule)
        if strategy is None:
            logger.warning("visibility_rule_unknown", extra={"rule": rule.rule})
            return False
        try:
            return bool(strategy(rule, user, self))
        except PredicateFailure:
            raise
        except Exception as exc:
            raise PredicateFailure(rule.rule, str(exc)) from exc

    def is_visible(self, module: ModuleDescriptor, user: UserContext) -> bool:
        if module.visibility is None:
            return True
        try:
            return self.evaluate(module.visibility, user)
        except PredicateFailure as exc:
            logger.warning(
                "visibility_rule_failed",
                extra={"module_id": module.id, "rule": exc.rule, "error": str(exc)},
            )
            return False
