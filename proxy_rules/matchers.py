"""Pattern matchers, one per rule type.

Every matcher takes a pattern and parsed URL components and returns a
:class:`MatchOutcome`. Matchers never raise: a pattern that cannot be
compiled yields a non-match with ``error`` set.
"""

import ipaddress
import logging
import re
from functools import lru_cache
from typing import Callable, NamedTuple

from proxy_rules.models import RuleType, URLComponents


logger = logging.getLogger(__name__)


class MatchOutcome(NamedTuple):
    """Result of a single matcher call."""
    matched: bool
    confidence: float
    error: str | None = None


class IPPattern(NamedTuple):
    """An IP pattern as an inclusive numeric range."""
    kind: str  # "cidr", "range" or "exact"
    start: int
    end: int


NO_MATCH = MatchOutcome(False, 0.0)

_DOTTED_QUAD = re.compile(r"^([0-9]{1,3}\.){3}[0-9]{1,3}$")


def ip_to_number(ip: str) -> int | None:
    """Convert a dotted-quad IPv4 address to an int, or None if invalid.

    Octets may carry leading zeros and are read as decimal.
    """
    if not _DOTTED_QUAD.fullmatch(ip):
        return None
    octets = [int(part) for part in ip.split(".")]
    if any(octet > 255 for octet in octets):
        return None
    return int(ipaddress.IPv4Address(".".join(map(str, octets))))


def is_valid_ip(ip: str) -> bool:
    return ip_to_number(ip) is not None


@lru_cache(maxsize=512)
def parse_ip_pattern(pattern: str) -> IPPattern | None:
    """Parse CIDR (``a.b.c.d/n``), dash range (``start-end``) or exact IP."""
    pattern = pattern.strip()
    if "/" in pattern:
        ip, _, prefix = pattern.partition("/")
        network = ip_to_number(ip.strip())
        prefix = prefix.strip()
        if network is None or not prefix.isdigit() or int(prefix) > 32:
            return None
        size = 32 - int(prefix)
        start = (network >> size) << size
        return IPPattern("cidr", start, start + (1 << size) - 1)

    if "-" in pattern:
        parts = pattern.split("-")
        if len(parts) != 2:
            return None
        start = ip_to_number(parts[0].strip())
        end = ip_to_number(parts[1].strip())
        if start is None or end is None:
            return None
        return IPPattern("range", start, end)

    exact = ip_to_number(pattern)
    if exact is None:
        return None
    return IPPattern("exact", exact, exact)


@lru_cache(maxsize=512)
def wildcard_to_regex(pattern: str) -> re.Pattern:
    """Translate a ``*`` glob into an anchored, case-insensitive regex."""
    body = ".*".join(re.escape(part) for part in pattern.lower().split("*"))
    return re.compile(f"^{body}$")


@lru_cache(maxsize=512)
def compile_regex(pattern: str) -> re.Pattern:
    """Compile a user regex. Raises ``re.error`` for invalid patterns."""
    return re.compile(pattern)


def match_domain(pattern: str, components: URLComponents) -> MatchOutcome:
    """Exact hostname match, or any subdomain of the pattern."""
    hostname = components.hostname.lower()
    pattern = pattern.lower()

    if hostname == pattern:
        return MatchOutcome(True, 1.0)
    if hostname.endswith(f".{pattern}"):
        return MatchOutcome(True, 0.9)
    return NO_MATCH


def match_wildcard(pattern: str, components: URLComponents) -> MatchOutcome:
    """Glob match against the whole hostname; fewer wildcards score higher."""
    if not wildcard_to_regex(pattern).match(components.hostname.lower()):
        return NO_MATCH
    wildcards = pattern.count("*")
    return MatchOutcome(True, max(0.5, round(1.0 - wildcards * 0.1, 2)))


def match_regex(pattern: str, components: URLComponents) -> MatchOutcome:
    """Regex search over the full URL string."""
    try:
        regex = compile_regex(pattern)
    except re.error as e:
        logger.debug(f"Invalid regex pattern {pattern!r}: {e}")
        return MatchOutcome(False, 0.0, f"Invalid regex pattern: {pattern} ({e})")

    if regex.search(components.url):
        return MatchOutcome(True, 0.8)
    return NO_MATCH


def match_ip_range(pattern: str, components: URLComponents) -> MatchOutcome:
    """CIDR, dash range or exact IPv4 match. Non-IP hostnames never match."""
    ip = ip_to_number(components.hostname)
    if ip is None:
        return NO_MATCH

    parsed = parse_ip_pattern(pattern)
    if parsed is None:
        return MatchOutcome(False, 0.0, f"Invalid IP range pattern: {pattern}")

    if not parsed.start <= ip <= parsed.end:
        return NO_MATCH
    return MatchOutcome(True, 1.0 if parsed.kind == "exact" else 0.9)


def match_scheme(pattern: str, components: URLComponents) -> MatchOutcome:
    """Comma-separated list of acceptable protocols."""
    scheme = components.protocol.replace(":", "").lower()
    schemes = [p.strip() for p in pattern.lower().split(",") if p.strip()]
    if scheme and scheme in schemes:
        return MatchOutcome(True, 1.0)
    return NO_MATCH


Matcher = Callable[[str, URLComponents], MatchOutcome]

MATCHERS: dict[RuleType, Matcher] = {
    RuleType.DOMAIN: match_domain,
    RuleType.WILDCARD: match_wildcard,
    RuleType.REGEX: match_regex,
    RuleType.IP_RANGE: match_ip_range,
    RuleType.SCHEME: match_scheme,
}

MATCH_TYPES: dict[RuleType, str] = {
    RuleType.DOMAIN: "exact_domain",
    RuleType.WILDCARD: "wildcard",
    RuleType.REGEX: "regex",
    RuleType.IP_RANGE: "ip_range",
    RuleType.SCHEME: "scheme",
}
