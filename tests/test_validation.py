"""Tests for rule and pattern validation."""

import pytest

from proxy_rules.models import (
    Rule,
    RuleCondition,
    RuleEngineConfig,
    RuleType,
    RuleValidationResult,
    RuleValidator,
)
from proxy_rules.validation import validate_pattern, validate_rule


def make_rule(**overrides) -> Rule:
    fields = {
        "id": "r1",
        "name": "Rule",
        "type": RuleType.DOMAIN,
        "pattern": "example.com",
        "profile_id": "proxy",
    }
    fields.update(overrides)
    return Rule(**fields)


class TestValidateRule:
    """Tests for validate_rule."""

    @pytest.fixture
    def config(self):
        return RuleEngineConfig()

    def test_valid_rule(self, config):
        """Test a complete rule passes."""
        result = validate_rule(make_rule(), config)
        assert result.is_valid is True
        assert result.errors == []

    def test_missing_fields(self, config):
        """Test each required field is reported."""
        result = validate_rule(make_rule(id="", name="", pattern="", profile_id=""), config)
        assert result.is_valid is False
        assert "Rule ID is required" in result.errors
        assert "Rule name is required" in result.errors
        assert "Rule pattern is required" in result.errors
        assert "Profile ID is required" in result.errors

    def test_invalid_type(self, config):
        """Test unknown rule types are rejected."""
        rule = make_rule(type="glob")
        assert rule.type == "glob"
        result = validate_rule(rule, config)
        assert "Invalid rule type: glob" in result.errors

    def test_string_type_coerced(self):
        """Test known type strings become RuleType members."""
        assert make_rule(type="ip_range").type is RuleType.IP_RANGE

    def test_invalid_regex(self, config):
        """Test uncompilable regexes are rejected."""
        result = validate_rule(make_rule(type=RuleType.REGEX, pattern="[invalid"), config)
        assert result.is_valid is False
        assert result.errors[0].startswith("Invalid regex pattern: [invalid")

    @pytest.mark.parametrize("pattern", ["10.0.0.0/40", "10.0.0.300", "example.com", "1.1.1.1-x"])
    def test_invalid_ip_pattern(self, config, pattern):
        """Test malformed IP patterns are rejected."""
        result = validate_rule(make_rule(type=RuleType.IP_RANGE, pattern=pattern), config)
        assert f"Invalid IP range pattern: {pattern}" in result.errors

    @pytest.mark.parametrize("pattern", [",", "http,,https", "https, "])
    def test_empty_scheme_entry(self, config, pattern):
        """Test scheme lists with blank entries are rejected."""
        result = validate_rule(make_rule(type=RuleType.SCHEME, pattern=pattern), config)
        assert result.is_valid is False
        assert result.errors == ["Scheme list contains an empty entry"]

    def test_scheme_list(self, config):
        """Test a well-formed scheme list passes."""
        result = validate_rule(make_rule(type=RuleType.SCHEME, pattern="http, https"), config)
        assert result.is_valid is True

    def test_non_integer_priority(self, config):
        """Test priorities must be integers."""
        result = validate_rule(make_rule(priority="high"), config)
        assert result.is_valid is False

    def test_double_wildcard_warning(self, config):
        """Test '**' produces a warning but stays valid."""
        result = validate_rule(make_rule(type=RuleType.WILDCARD, pattern="**.example.com"), config)
        assert result.is_valid is True
        assert any("Double wildcards" in w for w in result.warnings)

    def test_scheme_prefix_warning(self, config):
        """Test a URL scheme on a domain pattern produces a warning."""
        result = validate_rule(make_rule(pattern="https://example.com"), config)
        assert result.is_valid is True
        assert any("URL scheme" in w for w in result.warnings)

    def test_condition_warnings(self, config):
        """Test malformed conditions warn without blocking."""
        rule = make_rule(
            conditions=[
                RuleCondition("time_range", {"start": "9am", "end": "17:00"}, True),
                RuleCondition("weather", {}),
            ]
        )
        result = validate_rule(rule, config)
        assert result.is_valid is True
        assert any("start must be HH:MM" in w for w in result.warnings)
        assert "Unknown condition type: weather" in result.warnings

    def test_capacity_warning(self):
        """Test reaching max_rules is advisory by default."""
        config = RuleEngineConfig(max_rules=2)
        result = validate_rule(make_rule(), config, rule_count=2)
        assert result.is_valid is True
        assert "Maximum number of rules (2) reached" in result.warnings

    def test_capacity_enforced(self):
        """Test enforce_max_rules makes the limit a hard cap."""
        config = RuleEngineConfig(max_rules=2, enforce_max_rules=True)
        result = validate_rule(make_rule(), config, rule_count=2)
        assert result.is_valid is False
        assert "Maximum number of rules (2) reached" in result.errors

    def test_custom_validators(self):
        """Test custom validators contribute errors, warnings and suggestions."""
        def no_direct(rule):
            if rule.profile_id == "direct":
                return RuleValidationResult(False, errors=["Direct profile not allowed"])
            return RuleValidationResult(True, suggestions=["Looks fine"])

        config = RuleEngineConfig(validators=[RuleValidator("no-direct", no_direct)])

        rejected = validate_rule(make_rule(profile_id="direct"), config)
        assert rejected.errors == ["Direct profile not allowed"]

        accepted = validate_rule(make_rule(), config)
        assert accepted.is_valid is True
        assert accepted.suggestions == ["Looks fine"]


class TestValidatePattern:
    """Tests for validate_pattern."""

    def test_domain_valid(self):
        """Test a plain domain."""
        result = validate_pattern(RuleType.DOMAIN, "example.com")
        assert result.is_valid is True
        assert result.warnings == []

    @pytest.mark.parametrize(
        "pattern,error",
        [
            ("", "Domain pattern cannot be empty"),
            ("exa mple.com", "Domain pattern contains invalid characters"),
            (".example.com", "Domain cannot start or end with a dot"),
            ("example..com", "Domain cannot contain consecutive dots"),
        ],
    )
    def test_domain_errors(self, pattern, error):
        """Test domain pattern errors."""
        assert error in validate_pattern(RuleType.DOMAIN, pattern).errors

    def test_domain_with_protocol(self):
        """Test protocol prefixes are flagged with a fix."""
        result = validate_pattern(RuleType.DOMAIN, "https://example.com")
        assert "Domain pattern should not include protocol" in result.warnings
        assert 'Use "example.com" instead' in result.suggestions

    def test_wildcard_match_all(self):
        """Test '*' is flagged as overly broad."""
        result = validate_pattern(RuleType.WILDCARD, "*")
        assert result.is_valid is True
        assert 'Pattern "*" matches all domains' in result.warnings

    def test_wildcard_without_wildcards(self):
        """Test a wildcard rule with no '*' suggests a domain rule."""
        result = validate_pattern(RuleType.WILDCARD, "example.com")
        assert "Wildcard pattern does not contain any wildcards" in result.warnings
        assert "Consider using domain rule type for exact matches" in result.suggestions

    def test_regex_invalid(self):
        """Test invalid regexes are errors."""
        result = validate_pattern(RuleType.REGEX, "[invalid")
        assert result.is_valid is False
        assert result.errors[0].startswith("Invalid regex:")

    def test_regex_unanchored(self):
        """Test unanchored regexes warn and suggest anchors."""
        result = validate_pattern(RuleType.REGEX, r"example\.com")
        assert result.is_valid is True
        assert any("unanchored" in w for w in result.warnings)
        assert "Consider using ^ and $ anchors for exact matching" in result.suggestions

    def test_regex_anchored(self):
        """Test a fully anchored regex has no anchor advice."""
        result = validate_pattern(RuleType.REGEX, r"^https://example\.com/$")
        assert result.warnings == []
        assert result.suggestions == []

    def test_regex_broad_and_backtracking(self):
        """Test broad patterns warn."""
        result = validate_pattern(RuleType.REGEX, "^a.*.*b$")
        assert "Pattern may be too broad - consider escaping dots" in result.warnings
        assert "Pattern may cause performance issues due to backtracking" in result.warnings

    def test_ip_range_errors(self):
        """Test IP pattern error messages."""
        assert "Invalid CIDR prefix (must be 0-32)" in validate_pattern(RuleType.IP_RANGE, "10.0.0.0/33").errors
        assert "Invalid IP address in CIDR notation" in validate_pattern(RuleType.IP_RANGE, "10.0.0/8").errors
        assert "Invalid start IP address" in validate_pattern(RuleType.IP_RANGE, "x-10.0.0.1").errors
        assert "Invalid end IP address" in validate_pattern(RuleType.IP_RANGE, "10.0.0.1-x").errors
        assert "Invalid IP address" in validate_pattern(RuleType.IP_RANGE, "10.0.0.256").errors

    def test_ip_range_reversed(self):
        """Test a range whose start is after its end."""
        result = validate_pattern(RuleType.IP_RANGE, "10.0.0.9-10.0.0.1")
        assert "Start IP must be less than or equal to end IP" in result.errors

    def test_ip_range_valid(self):
        """Test valid IP patterns."""
        for pattern in ("192.168.1.0/24", "10.0.0.1-10.0.0.100", "127.0.0.1"):
            assert validate_pattern(RuleType.IP_RANGE, pattern).is_valid

    def test_scheme(self):
        """Test scheme warnings and suggestions."""
        assert "Unknown scheme: gopher" in validate_pattern(RuleType.SCHEME, "https,gopher").warnings
        assert "Consider including both http and https" in validate_pattern(RuleType.SCHEME, "http").suggestions
        assert validate_pattern(RuleType.SCHEME, "http,,https").is_valid is False

    def test_accepts_type_string(self):
        """Test the rule type can be given as its string value."""
        assert validate_pattern("domain", "example.com").is_valid

    def test_unknown_type(self):
        """Test an unknown rule type is an error."""
        assert validate_pattern("glob", "*").errors == ["Invalid rule type: glob"]
