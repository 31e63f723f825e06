"""Rules engine for URL to proxy profile routing."""

import copy
import dataclasses
import logging
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Iterator

from proxy_rules.cache import ResultCache
from proxy_rules.conditions import ConditionEvaluator
from proxy_rules.matchers import MATCH_TYPES, MATCHERS
from proxy_rules.models import (
    Diagnostic,
    Rule,
    RuleEngineConfig,
    RuleMatch,
    RuleStats,
    RuleTestResult,
    RuleValidationResult,
    URLComponents,
)
from proxy_rules.store import RuleStore
from proxy_rules.urls import parse_url
from proxy_rules.validation import validate_rule


logger = logging.getLogger(__name__)

# Fields the engine owns; updates never overwrite them.
_PROTECTED_FIELDS = ("id", "created_at", "updated_at")
_RULE_FIELDS = frozenset(f.name for f in dataclasses.fields(Rule))


class RuleValidationError(ValueError):
    """A rule failed validation; the store was left unchanged."""

    def __init__(self, errors: list[str], rule_id: str | None = None):
        self.errors = list(errors)
        self.rule_id = rule_id
        super().__init__(f"Invalid rule: {', '.join(self.errors)}")


class RuleNotFoundError(KeyError):
    """No rule with the given id exists."""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Rule with id {rule_id} not found")


class RuleEngine:
    """Decides which proxy profile a URL should use.

    Rules are evaluated in priority order (highest first, ties broken by
    name). Every matching rule is reported; the first one wins. Results
    are cached per URL until the rule set changes or the TTL expires.

    Mutations and lookups share one lock so rules can be reloaded from
    another thread while URLs are being tested.
    """

    def __init__(
        self,
        config: RuleEngineConfig | None = None,
        conditions: ConditionEvaluator | None = None,
        on_diagnostic: Callable[[Diagnostic], None] | None = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.config = config or RuleEngineConfig()
        self.conditions = conditions or ConditionEvaluator()
        self.on_diagnostic = on_diagnostic
        self._store = RuleStore()
        self._cache = ResultCache(self.config.cache_ttl, timer=timer)
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._store)

    def validate_rule(self, rule: Rule) -> RuleValidationResult:
        """Validate a rule against this engine's configuration and size."""
        with self._lock:
            count = len(self._store) - (1 if rule.id in self._store else 0)
            return validate_rule(rule, self.config, count)

    def add_rule(self, rule: Rule) -> RuleValidationResult:
        """Add a rule, replacing any rule with the same id.

        The engine stores its own copy and stamps ``created_at`` and
        ``updated_at``. Raises RuleValidationError if the rule is invalid.
        """
        with self._lock:
            validation = self.validate_rule(rule)
            self._check(rule, validation)

            now = datetime.now(timezone.utc)
            stored = copy.deepcopy(rule)
            stored.created_at = now
            stored.updated_at = now
            self._store.put(stored)
            self._cache.clear()

        logger.debug(f"Added rule {rule.id} ({rule.type}: {rule.pattern})")
        return validation

    def update_rule(self, rule_id: str, **changes: Any) -> RuleValidationResult:
        """Merge ``changes`` into an existing rule and re-validate it."""
        with self._lock:
            existing = self._store.get(rule_id)
            if existing is None:
                raise RuleNotFoundError(rule_id)

            unknown = sorted(set(changes) - _RULE_FIELDS)
            if unknown:
                errors = [f"Unknown rule field: {name}" for name in unknown]
                logger.error(f"Rejected update to rule {rule_id!r}: {', '.join(errors)}")
                raise RuleValidationError(errors, rule_id)

            for name in _PROTECTED_FIELDS:
                changes.pop(name, None)
            updated = dataclasses.replace(
                existing,
                updated_at=datetime.now(timezone.utc),
                **copy.deepcopy(changes),
            )

            validation = self.validate_rule(updated)
            self._check(updated, validation)

            self._store.put(updated)
            self._cache.clear()

        logger.debug(f"Updated rule {rule_id}: {sorted(changes)}")
        return validation

    def remove_rule(self, rule_id: str) -> None:
        """Remove a rule. Unknown ids are ignored."""
        with self._lock:
            if self._store.remove(rule_id) is not None:
                logger.debug(f"Removed rule {rule_id}")
            self._cache.clear()

    def clear_rules(self) -> None:
        with self._lock:
            self._store.clear()
            self._cache.clear()

    def replace_rules(self, rules: Iterable[Rule]) -> list[RuleValidationResult]:
        """Swap in a whole new rule set.

        All rules are validated before anything changes; if any is invalid,
        RuleValidationError is raised and the current rules stay in place.
        """
        now = datetime.now(timezone.utc)
        staged = RuleStore()
        results = []
        for rule in rules:
            count = len(staged) - (1 if rule.id in staged else 0)
            validation = validate_rule(rule, self.config, count)
            self._check(rule, validation)
            stored = copy.deepcopy(rule)
            stored.created_at = now
            stored.updated_at = now
            staged.put(stored)
            results.append(validation)

        with self._lock:
            self._store = staged
            self._cache.clear()

        logger.info(f"Loaded {len(staged)} rules")
        return results

    # Getters return copies; changes go through add_rule or update_rule.

    def get_rule(self, rule_id: str) -> Rule | None:
        with self._lock:
            return copy.deepcopy(self._store.get(rule_id))

    def get_rules(self) -> list[Rule]:
        """All rules in insertion order."""
        with self._lock:
            return copy.deepcopy(self._store.all())

    def get_rules_by_priority(self) -> list[Rule]:
        """All rules in evaluation order."""
        with self._lock:
            return copy.deepcopy(self._store.by_priority())

    def get_rule_stats(self) -> dict[str, RuleStats]:
        """Statistics for every rule that has matched at least once."""
        with self._lock:
            return {
                rule.id: copy.deepcopy(rule.stats)
                for rule in self._store.all()
                if rule.stats
            }

    @contextmanager
    def locked(self) -> Iterator["RuleEngine"]:
        """Hold the engine lock so several calls run as one step."""
        with self._lock:
            yield self

    def test_url(self, url: str) -> RuleTestResult:
        """Evaluate every enabled rule against ``url``.

        Never raises, whatever the URL or rule patterns look like.
        """
        with self._lock:
            if self.config.enable_cache:
                cached = self._cache.get(url)
                if cached is not None:
                    return cached

            result = self._evaluate(url, record_stats=self.config.enable_stats)

            if self.config.enable_cache:
                self._cache.put(url, result)
            return result

    def dry_run(self, url: str) -> RuleTestResult:
        """Evaluate ``url`` without touching the cache or statistics."""
        with self._lock:
            return self._evaluate(url, record_stats=False)

    def _evaluate(self, url: str, record_stats: bool) -> RuleTestResult:
        start = time.perf_counter()
        components = parse_url(url)
        matches: list[RuleMatch] = []

        for rule in self._store:
            if not rule.enabled:
                continue

            rule_start = time.perf_counter()
            match = self._match_rule(rule, components)
            if match.matched:
                if record_stats:
                    self._update_stats(rule, (time.perf_counter() - rule_start) * 1000)
                # Results outlive the store and may be cached.
                match.rule = copy.deepcopy(rule)
                matches.append(match)

        winning_rule = matches[0].rule if matches else None
        return RuleTestResult(
            url=url,
            url_components=components,
            matches=matches,
            winning_rule=winning_rule,
            recommended_profile_id=winning_rule.profile_id if winning_rule else None,
            execution_time=(time.perf_counter() - start) * 1000,
            timestamp=datetime.now(timezone.utc),
        )

    def _match_rule(self, rule: Rule, components: URLComponents) -> RuleMatch:
        if rule.conditions and not self.conditions.passes(rule.conditions):
            return RuleMatch(matched=False, details={"gated": True})

        matcher = MATCHERS.get(rule.type)
        if matcher is None:
            self._report("unknown_type", f"Unknown rule type: {rule.type}", rule.id)
            return RuleMatch(matched=False)

        outcome = matcher(rule.pattern, components)
        if outcome.error:
            self._report("pattern_error", outcome.error, rule.id)

        return RuleMatch(
            matched=outcome.matched,
            rule=rule if outcome.matched else None,
            confidence=outcome.confidence,
            details={"match_type": MATCH_TYPES[rule.type]},
        )

    def _update_stats(self, rule: Rule, match_time: float) -> None:
        if rule.stats is None:
            rule.stats = RuleStats()

        stats = rule.stats
        stats.match_count += 1
        stats.last_matched = datetime.now(timezone.utc)
        if stats.avg_match_time is None:
            stats.avg_match_time = match_time
        else:
            stats.avg_match_time += (match_time - stats.avg_match_time) / stats.match_count

    def _check(self, rule: Rule, validation: RuleValidationResult) -> None:
        if not validation.is_valid:
            logger.error(f"Rejected rule {rule.id!r}: {', '.join(validation.errors)}")
            raise RuleValidationError(validation.errors, rule.id)
        for warning in validation.warnings:
            logger.warning(f"Rule {rule.id}: {warning}")

    def _report(self, kind: str, message: str, rule_id: str | None) -> None:
        if self.config.debug:
            logger.debug(f"[{kind}] rule {rule_id}: {message}")
        if self.on_diagnostic is None:
            return
        try:
            self.on_diagnostic(Diagnostic(kind, message, rule_id))
        except Exception as e:
            logger.error(f"Diagnostic callback failed: {e}")
