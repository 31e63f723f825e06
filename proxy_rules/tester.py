"""Rule testing harness built on top of a RuleEngine."""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from proxy_rules.models import (
    Rule,
    RulePriority,
    RuleTestResult,
    RuleType,
    RuleValidationResult,
)
from proxy_rules.rules import RuleEngine
from proxy_rules.validation import validate_pattern


logger = logging.getLogger(__name__)


@dataclass
class TestScenario:
    """An expectation about how the engine treats one URL."""
    __test__ = False

    name: str
    url: str
    should_match: bool
    expected_profile_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TestScenario":
        return cls(
            name=str(data.get("name") or data.get("url", "")),
            url=str(data.get("url", "")),
            should_match=bool(data.get("should_match", True)),
            expected_profile_id=data.get("expected_profile_id"),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class TestScenarioResult:
    __test__ = False

    scenario: TestScenario
    result: RuleTestResult
    passed: bool
    failure_reason: str | None = None


@dataclass
class BatchTestResult:
    total_tests: int
    passed: int
    failed: int
    results: list[TestScenarioResult]
    execution_time: float


class PatternExample(NamedTuple):
    """A canonical pattern with URLs it should and should not match."""
    pattern: str
    description: str
    matching_urls: list[str]
    non_matching_urls: list[str]


class PatternTestResult(NamedTuple):
    url: str
    matches: bool


PATTERN_EXAMPLES: dict[RuleType, list[PatternExample]] = {
    RuleType.DOMAIN: [
        PatternExample(
            "example.com",
            "Matches example.com and all subdomains",
            ["https://example.com", "https://www.example.com", "https://api.example.com"],
            ["https://example.org", "https://notexample.com"],
        ),
        PatternExample(
            "api.github.com",
            "Matches api.github.com and its subdomains only",
            ["https://api.github.com/users", "https://api.github.com/repos"],
            ["https://github.com", "https://www.github.com"],
        ),
    ],
    RuleType.WILDCARD: [
        PatternExample(
            "*.example.com",
            "Matches all subdomains of example.com",
            ["https://www.example.com", "https://api.example.com", "https://blog.example.com"],
            ["https://example.com", "https://example.org"],
        ),
        PatternExample(
            "*google*",
            'Matches any domain containing "google"',
            ["https://google.com", "https://mail.google.com", "https://googleanalytics.com"],
            ["https://bing.com", "https://yahoo.com"],
        ),
    ],
    RuleType.REGEX: [
        PatternExample(
            r"^https://[^/]*\.example\.com/api/.*",
            "Matches API endpoints on example.com subdomains",
            ["https://api.example.com/api/users", "https://www.example.com/api/v1/data"],
            ["https://example.com/home", "https://api.example.com/docs"],
        ),
        PatternExample(
            r".*\.(jpg|jpeg|png|gif)$",
            "Matches image URLs",
            ["https://example.com/image.jpg", "https://cdn.site.com/photo.png"],
            ["https://example.com/document.pdf", "https://example.com/page.html"],
        ),
    ],
    RuleType.IP_RANGE: [
        PatternExample(
            "192.168.1.0/24",
            "Matches local network 192.168.1.x",
            ["http://192.168.1.1", "http://192.168.1.100", "http://192.168.1.255"],
            ["http://192.168.2.1", "http://10.0.0.1"],
        ),
        PatternExample(
            "10.0.0.1-10.0.0.100",
            "Matches IP range from 10.0.0.1 to 10.0.0.100",
            ["http://10.0.0.1", "http://10.0.0.50", "http://10.0.0.100"],
            ["http://10.0.0.101", "http://10.0.1.1"],
        ),
    ],
    RuleType.SCHEME: [
        PatternExample(
            "https",
            "Matches only HTTPS URLs",
            ["https://example.com", "https://secure.site.com"],
            ["http://example.com", "ftp://files.com"],
        ),
        PatternExample(
            "http,https",
            "Matches both HTTP and HTTPS URLs",
            ["http://example.com", "https://secure.site.com"],
            ["ftp://files.com", "ws://websocket.com"],
        ),
    ],
}


class RuleTester:
    """Validation and expectation testing on top of an engine."""

    def __init__(self, engine: RuleEngine):
        self.engine = engine

    def test_url(self, url: str) -> RuleTestResult:
        return self.engine.test_url(url)

    def run_batch_tests(self, scenarios: list[TestScenario]) -> BatchTestResult:
        """Run every scenario and report which expectations held."""
        start = time.perf_counter()
        results = []

        for scenario in scenarios:
            result = self.engine.test_url(scenario.url)
            reason = self._failure_reason(scenario, result)
            results.append(
                TestScenarioResult(
                    scenario=scenario,
                    result=result,
                    passed=reason is None,
                    failure_reason=reason,
                )
            )
            if reason:
                logger.info(f"Scenario {scenario.name!r} failed: {reason}")

        passed = sum(1 for r in results if r.passed)
        return BatchTestResult(
            total_tests=len(results),
            passed=passed,
            failed=len(results) - passed,
            results=results,
            execution_time=(time.perf_counter() - start) * 1000,
        )

    def _failure_reason(self, scenario: TestScenario, result: RuleTestResult) -> str | None:
        has_match = result.winning_rule is not None

        if scenario.should_match and not has_match:
            return "Expected to match but no rules matched"
        if not scenario.should_match and has_match:
            return f'Expected no match but rule "{result.winning_rule.name}" matched'
        if (
            scenario.expected_profile_id
            and result.recommended_profile_id != scenario.expected_profile_id
        ):
            return (
                f"Expected profile {scenario.expected_profile_id} "
                f"but got {result.recommended_profile_id}"
            )
        return None

    def validate_pattern(self, rule_type: RuleType, pattern: str) -> RuleValidationResult:
        return validate_pattern(rule_type, pattern)

    def get_pattern_examples(self, rule_type: RuleType) -> list[PatternExample]:
        return list(PATTERN_EXAMPLES.get(RuleType(rule_type), []))

    def generate_test_scenarios(
        self, rule_type: RuleType, pattern: str, profile_id: str
    ) -> list[TestScenario]:
        """Build scenarios from the canonical example for ``pattern``, if any."""
        example = next(
            (e for e in self.get_pattern_examples(rule_type) if e.pattern == pattern), None
        )
        if example is None:
            return []

        scenarios = [
            TestScenario(
                name=f"Should match: {url}",
                url=url,
                should_match=True,
                expected_profile_id=profile_id,
            )
            for url in example.matching_urls
        ]
        scenarios.extend(
            TestScenario(name=f"Should not match: {url}", url=url, should_match=False)
            for url in example.non_matching_urls
        )
        return scenarios

    def test_pattern(
        self, rule_type: RuleType, pattern: str, urls: list[str]
    ) -> list[PatternTestResult]:
        """Check which of ``urls`` a pattern matches.

        A throwaway rule is registered for the duration of the call and
        removed afterwards. Evaluation bypasses the cache and statistics so
        the engine's rules and stats are left as they were.
        """
        temp_id = f"pattern-test-{uuid.uuid4().hex}"
        rule = Rule(
            id=temp_id,
            name="Pattern Test",
            type=rule_type,
            pattern=pattern,
            profile_id="pattern-test",
            priority=RulePriority.NORMAL,
        )

        # Other threads must never see the throwaway rule.
        with self.engine.locked():
            self.engine.add_rule(rule)
            try:
                results = []
                for url in urls:
                    test_result = self.engine.dry_run(url)
                    matched = any(m.rule.id == temp_id for m in test_result.matches)
                    results.append(PatternTestResult(url, matched))
                return results
            finally:
                self.engine.remove_rule(temp_id)
