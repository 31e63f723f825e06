"""Convenience constructors for engines, testers and rules."""

import re
import uuid
from typing import Any

from proxy_rules.defaults import get_all_default_rule_sets, get_default_rule_sets_by_category
from proxy_rules.models import (
    Rule,
    RuleCategory,
    RuleCondition,
    RuleEngineConfig,
    RulePriority,
    RuleType,
)
from proxy_rules.rules import RuleEngine
from proxy_rules.tester import RuleTester


_IP_PREFIX = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}")


def create_rule_engine(**overrides: Any) -> RuleEngine:
    """Engine with default configuration, overridden by keyword."""
    return RuleEngine(RuleEngineConfig(**overrides))


def create_rule_tester(engine: RuleEngine | None = None) -> RuleTester:
    return RuleTester(engine if engine is not None else create_rule_engine())


def quick_test_pattern(rule_type: RuleType, pattern: str, url: str) -> bool:
    """True if a lone rule with ``pattern`` matches ``url``."""
    engine = create_rule_engine(enable_cache=False, enable_stats=False)
    engine.add_rule(
        Rule(id="test-rule", name="Test Rule", type=rule_type, pattern=pattern, profile_id="test")
    )
    result = engine.test_url(url)
    return result.winning_rule is not None


def load_default_rule_sets(
    engine: RuleEngine, categories: list[RuleCategory] | None = None
) -> int:
    """Add bundled rules to ``engine`` and return how many were added.

    Without ``categories`` only rule sets enabled by default are loaded.
    Naming categories loads those sets whether or not they are enabled by
    default. Disabled rules inside a set are always skipped.
    """
    if categories is None:
        rule_sets = [s for s in get_all_default_rule_sets() if s.enabled]
    else:
        rule_sets = [s for c in categories for s in get_default_rule_sets_by_category(c)]

    added = 0
    for rule_set in rule_sets:
        for rule in rule_set.rules:
            if rule.enabled:
                engine.add_rule(rule)
                added += 1
    return added


def detect_rule_type(pattern: str) -> RuleType:
    """Guess a rule type from the shape of a pattern."""
    if "*" in pattern:
        return RuleType.WILDCARD
    if _IP_PREFIX.match(pattern):
        return RuleType.IP_RANGE
    if pattern.startswith("^") or ".*" in pattern:
        return RuleType.REGEX
    return RuleType.DOMAIN


def domains_to_rules(
    domains: list[str], profile_id: str, priority: int = RulePriority.NORMAL
) -> list[Rule]:
    """One domain or wildcard rule per entry of a plain host list."""
    return [
        Rule(
            id=f"domain-rule-{index}",
            name=f"Rule for {domain}",
            type=RuleType.WILDCARD if "*" in domain else RuleType.DOMAIN,
            pattern=domain,
            profile_id=profile_id,
            priority=priority,
        )
        for index, domain in enumerate(domains)
    ]


def create_rule(
    name: str,
    pattern: str,
    profile_id: str,
    *,
    type: RuleType | None = None,
    priority: int = RulePriority.NORMAL,
    description: str | None = None,
    tags: list[str] | None = None,
    conditions: list[RuleCondition] | None = None,
) -> Rule:
    """Build a rule with a generated id, detecting its type if not given."""
    return Rule(
        id=f"rule-{uuid.uuid4().hex[:12]}",
        name=name,
        type=type or detect_rule_type(pattern),
        pattern=pattern,
        profile_id=profile_id,
        priority=priority,
        description=description,
        tags=list(tags or []),
        conditions=list(conditions or []),
    )
