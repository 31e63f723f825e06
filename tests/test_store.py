"""Tests for the rule store."""

from proxy_rules.models import Rule, RulePriority, RuleType
from proxy_rules.store import RuleStore


def make_rule(rule_id: str, name: str, priority: int) -> Rule:
    return Rule(
        id=rule_id,
        name=name,
        type=RuleType.DOMAIN,
        pattern="example.com",
        profile_id="proxy",
        priority=priority,
    )


class TestRuleStore:
    """Tests for RuleStore."""

    def test_priority_order(self):
        """Test rules iterate by descending priority."""
        store = RuleStore()
        store.put(make_rule("low", "Low", RulePriority.LOW))
        store.put(make_rule("critical", "Critical", RulePriority.CRITICAL))
        store.put(make_rule("normal", "Normal", RulePriority.NORMAL))

        assert [r.id for r in store] == ["critical", "normal", "low"]
        assert [r.id for r in store.all()] == ["low", "critical", "normal"]

    def test_tie_break_by_name(self):
        """Test equal priorities sort by name regardless of insertion order."""
        store = RuleStore()
        store.put(make_rule("2", "Bravo", 500))
        store.put(make_rule("3", "Charlie", 500))
        store.put(make_rule("1", "Alpha", 500))

        assert [r.name for r in store.by_priority()] == ["Alpha", "Bravo", "Charlie"]

    def test_put_replaces_same_id(self):
        """Test re-adding an id replaces the rule."""
        store = RuleStore()
        store.put(make_rule("r1", "First", 100))
        store.put(make_rule("r1", "Second", 900))

        assert len(store) == 1
        assert store.get("r1").name == "Second"

    def test_remove(self):
        """Test removing rules, including unknown ids."""
        store = RuleStore()
        store.put(make_rule("r1", "One", 100))

        assert store.remove("missing") is None
        assert store.remove("r1").id == "r1"
        assert len(store) == 0
        assert list(store) == []

    def test_clear(self):
        """Test clearing the store."""
        store = RuleStore()
        store.put(make_rule("r1", "One", 100))
        store.clear()
        assert "r1" not in store
        assert store.by_priority() == []
