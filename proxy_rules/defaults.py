"""Bundled default rule sets."""

import copy
import time
from functools import lru_cache
from importlib import resources
from typing import Any

import yaml

from proxy_rules.models import Rule, RuleCategory, RuleSet


DATA_FILE = "default_rule_sets.yaml"


def rule_id(set_id: str, index: int) -> str:
    return f"{set_id}-rule-{index}"


@lru_cache(maxsize=1)
def _load_data() -> dict[str, Any]:
    text = resources.files("proxy_rules").joinpath("data", DATA_FILE).read_text(encoding="utf-8")
    return yaml.safe_load(text) or {}


def _build_rule_set(data: dict[str, Any], version: str) -> RuleSet:
    set_id = data["id"]
    rules = []
    for index, rule_data in enumerate(data.get("rules", []), start=1):
        rule = Rule.from_dict({"id": rule_id(set_id, index), **rule_data})
        rules.append(rule)
    return RuleSet(
        id=set_id,
        name=data["name"],
        description=data.get("description"),
        category=RuleCategory(data["category"]),
        enabled=bool(data.get("enabled", False)),
        is_system=True,
        version=version,
        rules=rules,
    )


def get_all_default_rule_sets() -> list[RuleSet]:
    """Fresh copies of every bundled rule set."""
    data = _load_data()
    version = str(data.get("version", "1.0.0"))
    return [_build_rule_set(s, version) for s in data.get("rule_sets", [])]


def get_default_rule_set_by_id(set_id: str) -> RuleSet | None:
    return next((s for s in get_all_default_rule_sets() if s.id == set_id), None)


def get_default_rule_sets_by_category(category: RuleCategory) -> list[RuleSet]:
    category = RuleCategory(category)
    return [s for s in get_all_default_rule_sets() if s.category == category]


def get_common_bypass_domains() -> list[str]:
    """Hosts that normally bypass any proxy."""
    return list(_load_data().get("common_bypass_domains", []))


def create_custom_rule_set(
    name: str, description: str, base: RuleSet | None = None
) -> RuleSet:
    """Start a user rule set, optionally cloned from ``base``.

    The new set is disabled and in the custom category. Cloned rules get
    fresh ids scoped to the new set.
    """
    set_id = f"custom-{int(time.time() * 1000)}"
    rules = []
    if base is not None:
        for index, rule in enumerate(base.rules, start=1):
            clone = copy.deepcopy(rule)
            clone.id = rule_id(set_id, index)
            clone.stats = None
            clone.created_at = None
            clone.updated_at = None
            rules.append(clone)

    return RuleSet(
        id=set_id,
        name=name,
        description=description,
        category=RuleCategory.CUSTOM,
        enabled=False,
        is_system=False,
        version=base.version if base and base.version else "1.0.0",
        rules=rules,
    )
