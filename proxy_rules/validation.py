"""Rule and pattern validation."""

import re

from proxy_rules.conditions import parse_time
from proxy_rules.matchers import compile_regex, is_valid_ip, ip_to_number, parse_ip_pattern
from proxy_rules.models import (
    CONDITION_TYPES,
    Rule,
    RuleEngineConfig,
    RuleType,
    RuleValidationResult,
)


KNOWN_SCHEMES = ("http", "https", "ftp", "ftps", "ws", "wss", "file")

_DOMAIN_CHARS = re.compile(r"^[a-zA-Z0-9.-]+$")
_PROTOCOL_PREFIX = re.compile(r"^https?://")


def validate_rule(
    rule: Rule,
    config: RuleEngineConfig,
    rule_count: int = 0,
) -> RuleValidationResult:
    """Validate a rule before it enters the store.

    ``rule_count`` is the number of rules already stored, not counting a
    rule with the same id.
    """
    errors: list[str] = []
    warnings: list[str] = []
    suggestions: list[str] = []

    if not rule.id:
        errors.append("Rule ID is required")
    if not rule.name:
        errors.append("Rule name is required")
    if not rule.pattern:
        errors.append("Rule pattern is required")
    if not rule.profile_id:
        errors.append("Profile ID is required")
    if not isinstance(rule.type, RuleType):
        errors.append(f"Invalid rule type: {rule.type}")
    if isinstance(rule.priority, bool) or not isinstance(rule.priority, int):
        errors.append(f"Rule priority must be an integer: {rule.priority!r}")

    if rule.pattern:
        if rule.type == RuleType.REGEX:
            try:
                compile_regex(rule.pattern)
            except re.error as e:
                errors.append(f"Invalid regex pattern: {rule.pattern} ({e})")
        elif rule.type == RuleType.IP_RANGE:
            if parse_ip_pattern(rule.pattern) is None:
                errors.append(f"Invalid IP range pattern: {rule.pattern}")
        elif rule.type in (RuleType.DOMAIN, RuleType.WILDCARD):
            if "://" in rule.pattern:
                warnings.append(f"Pattern should not include a URL scheme: {rule.pattern}")
            if rule.type == RuleType.WILDCARD and "**" in rule.pattern:
                warnings.append("Double wildcards (**) are simplified to single wildcards (*)")
        elif rule.type == RuleType.SCHEME:
            if any(not s.strip() for s in rule.pattern.split(",")):
                errors.append("Scheme list contains an empty entry")

    for condition in rule.conditions:
        if condition.type not in CONDITION_TYPES:
            warnings.append(f"Unknown condition type: {condition.type}")
        elif condition.type == "time_range":
            for key in ("start", "end"):
                try:
                    parse_time(condition.params.get(key))
                except ValueError:
                    warnings.append(
                        f"Time range {key} must be HH:MM, got {condition.params.get(key)!r}"
                    )

    if rule_count >= config.max_rules:
        message = f"Maximum number of rules ({config.max_rules}) reached"
        if config.enforce_max_rules:
            errors.append(message)
        else:
            warnings.append(message)

    for validator in config.validators:
        result = validator.validate(rule)
        errors.extend(result.errors)
        warnings.extend(result.warnings)
        suggestions.extend(result.suggestions)

    return RuleValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        suggestions=suggestions,
    )


def validate_pattern(rule_type: RuleType, pattern: str) -> RuleValidationResult:
    """Validate a pattern for a rule type, independent of any engine.

    Produces hard errors plus advice: warnings for likely mistakes and
    suggestions for better patterns.
    """
    errors: list[str] = []
    warnings: list[str] = []
    suggestions: list[str] = []

    validators = {
        RuleType.DOMAIN: _validate_domain,
        RuleType.WILDCARD: _validate_wildcard,
        RuleType.REGEX: _validate_regex,
        RuleType.IP_RANGE: _validate_ip_range,
        RuleType.SCHEME: _validate_scheme,
    }
    try:
        rule_type = RuleType(rule_type)
    except ValueError:
        errors.append(f"Invalid rule type: {rule_type}")
    else:
        validators[rule_type](pattern, errors, warnings, suggestions)

    return RuleValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        suggestions=suggestions,
    )


def _validate_domain(pattern, errors, warnings, suggestions) -> None:
    if not pattern:
        errors.append("Domain pattern cannot be empty")
        return

    if _PROTOCOL_PREFIX.match(pattern):
        warnings.append("Domain pattern should not include protocol")
        suggestions.append(f'Use "{_PROTOCOL_PREFIX.sub("", pattern)}" instead')
    elif not _DOMAIN_CHARS.match(pattern):
        errors.append("Domain pattern contains invalid characters")

    if pattern.startswith(".") or pattern.endswith("."):
        errors.append("Domain cannot start or end with a dot")
    if ".." in pattern:
        errors.append("Domain cannot contain consecutive dots")
    if "*" in pattern:
        suggestions.append("Use wildcard rule type for patterns with asterisks")


def _validate_wildcard(pattern, errors, warnings, suggestions) -> None:
    if not pattern:
        errors.append("Wildcard pattern cannot be empty")
        return

    if "*" not in pattern:
        warnings.append("Wildcard pattern does not contain any wildcards")
        suggestions.append("Consider using domain rule type for exact matches")
    if "**" in pattern:
        warnings.append("Double wildcards (**) are treated as single wildcards (*)")
    if pattern.strip("*") == "":
        warnings.append(f'Pattern "{pattern}" matches all domains')
    if _PROTOCOL_PREFIX.match(pattern):
        warnings.append("Wildcard pattern should not include protocol")


def _validate_regex(pattern, errors, warnings, suggestions) -> None:
    if not pattern:
        errors.append("Regex pattern cannot be empty")
        return

    try:
        compile_regex(pattern)
    except re.error as e:
        errors.append(f"Invalid regex: {e}")
        return

    if ".*" in pattern and "\\." not in pattern:
        warnings.append("Pattern may be too broad - consider escaping dots")
    if not pattern.startswith("^") and not pattern.endswith("$"):
        warnings.append("Pattern is unanchored and can match anywhere in the URL")
    if not pattern.startswith("^") or not pattern.endswith("$"):
        suggestions.append("Consider using ^ and $ anchors for exact matching")
    if ".*.*" in pattern or ".+.+" in pattern:
        warnings.append("Pattern may cause performance issues due to backtracking")


def _validate_ip_range(pattern, errors, warnings, suggestions) -> None:
    if not pattern:
        errors.append("IP range pattern cannot be empty")
        return

    if "/" in pattern:
        ip, _, prefix = pattern.partition("/")
        if not is_valid_ip(ip.strip()):
            errors.append("Invalid IP address in CIDR notation")
        prefix = prefix.strip()
        if not prefix.isdigit() or int(prefix) > 32:
            errors.append("Invalid CIDR prefix (must be 0-32)")
        elif int(prefix) == 0:
            warnings.append("CIDR prefix /0 matches every IPv4 address")
    elif "-" in pattern:
        parts = pattern.split("-")
        if len(parts) != 2:
            errors.append("IP range must have exactly one start and one end address")
            return
        start = ip_to_number(parts[0].strip())
        end = ip_to_number(parts[1].strip())
        if start is None:
            errors.append("Invalid start IP address")
        if end is None:
            errors.append("Invalid end IP address")
        if start is not None and end is not None and start > end:
            errors.append("Start IP must be less than or equal to end IP")
    elif not is_valid_ip(pattern.strip()):
        errors.append("Invalid IP address")


def _validate_scheme(pattern, errors, warnings, suggestions) -> None:
    if not pattern:
        errors.append("Scheme pattern cannot be empty")
        return

    schemes = [s.strip() for s in pattern.lower().split(",")]
    for scheme in schemes:
        if not scheme:
            errors.append("Scheme list contains an empty entry")
        elif scheme not in KNOWN_SCHEMES:
            warnings.append(f"Unknown scheme: {scheme}")

    if schemes == ["http"]:
        suggestions.append("Consider including both http and https")
