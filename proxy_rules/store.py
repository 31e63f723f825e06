"""Indexed, priority-ordered rule collection."""

from typing import Iterator

from proxy_rules.models import Rule


def priority_key(rule: Rule) -> tuple[int, str]:
    """Sort key: priority descending, then name ascending."""
    return (-int(rule.priority), rule.name)


class RuleStore:
    """Rules by id, plus a view sorted for evaluation.

    The sorted view is rebuilt on every mutation.
    """

    def __init__(self) -> None:
        self._rules: dict[str, Rule] = {}
        self._by_priority: list[Rule] = []

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._rules

    def __iter__(self) -> Iterator[Rule]:
        """Iterate in evaluation order."""
        return iter(self._by_priority)

    def get(self, rule_id: str) -> Rule | None:
        return self._rules.get(rule_id)

    def put(self, rule: Rule) -> None:
        """Insert or replace by id."""
        self._rules[rule.id] = rule
        self._reorder()

    def remove(self, rule_id: str) -> Rule | None:
        removed = self._rules.pop(rule_id, None)
        if removed is not None:
            self._reorder()
        return removed

    def clear(self) -> None:
        self._rules.clear()
        self._by_priority = []

    def all(self) -> list[Rule]:
        """Rules in insertion order."""
        return list(self._rules.values())

    def by_priority(self) -> list[Rule]:
        return list(self._by_priority)

    def _reorder(self) -> None:
        self._by_priority = sorted(self._rules.values(), key=priority_key)
