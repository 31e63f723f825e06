"""Data types for the rule engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Callable, NamedTuple


class RuleType(str, Enum):
    """Supported strategies for matching URLs."""
    DOMAIN = "domain"
    WILDCARD = "wildcard"
    REGEX = "regex"
    IP_RANGE = "ip_range"
    SCHEME = "scheme"


class RulePriority(IntEnum):
    """Conventional priority bands. Any integer is accepted."""
    DEFAULT = 0
    LOW = 100
    NORMAL = 500
    HIGH = 800
    CRITICAL = 1000


class RuleCategory(str, Enum):
    """Categories for bundled and user rule sets."""
    DEVELOPMENT = "development"
    CORPORATE = "corporate"
    STREAMING = "streaming"
    SOCIAL_MEDIA = "social_media"
    PRIVACY = "privacy"
    CUSTOM = "custom"


CONDITION_TYPES = ("time_range", "day_of_week", "network", "custom")


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _format_datetime(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class RuleCondition:
    """Auxiliary condition gating a rule."""
    type: str
    params: dict[str, Any] = field(default_factory=dict)
    required: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "params": dict(self.params), "required": self.required}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RuleCondition":
        return cls(
            type=data.get("type", ""),
            params=dict(data.get("params") or {}),
            required=bool(data.get("required", False)),
        )


@dataclass
class RuleStats:
    """Usage counters, owned and updated by the engine."""
    match_count: int = 0
    last_matched: datetime | None = None
    avg_match_time: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_count": self.match_count,
            "last_matched": _format_datetime(self.last_matched),
            "avg_match_time": self.avg_match_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RuleStats":
        return cls(
            match_count=int(data.get("match_count", 0)),
            last_matched=_parse_datetime(data.get("last_matched")),
            avg_match_time=data.get("avg_match_time"),
        )


@dataclass
class Rule:
    """A routing directive mapping matching URLs to a proxy profile.

    ``type`` is coerced to :class:`RuleType` when given as a known string;
    unknown values are kept as-is so validation can report them.
    """
    id: str
    name: str
    type: RuleType
    pattern: str
    profile_id: str
    priority: int = RulePriority.NORMAL
    enabled: bool = True
    description: str | None = None
    tags: list[str] = field(default_factory=list)
    conditions: list[RuleCondition] = field(default_factory=list)
    stats: RuleStats | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.type, RuleType):
            try:
                self.type = RuleType(self.type)
            except ValueError:
                pass

    def to_dict(self) -> dict[str, Any]:
        """Serialize to plain data for JSON/YAML interchange."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value if isinstance(self.type, RuleType) else self.type,
            "pattern": self.pattern,
            "profile_id": self.profile_id,
            "priority": int(self.priority),
            "enabled": self.enabled,
        }
        if self.description:
            data["description"] = self.description
        if self.tags:
            data["tags"] = list(self.tags)
        if self.conditions:
            data["conditions"] = [c.to_dict() for c in self.conditions]
        if self.stats:
            data["stats"] = self.stats.to_dict()
        if self.created_at:
            data["created_at"] = _format_datetime(self.created_at)
        if self.updated_at:
            data["updated_at"] = _format_datetime(self.updated_at)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Rule":
        """Build a rule from plain data. Missing fields become empty values."""
        stats = data.get("stats")
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            type=data.get("type", ""),
            pattern=str(data.get("pattern", "")),
            profile_id=str(data.get("profile_id", "")),
            priority=int(data.get("priority", RulePriority.NORMAL)),
            enabled=bool(data.get("enabled", True)),
            description=data.get("description"),
            tags=list(data.get("tags") or []),
            conditions=[RuleCondition.from_dict(c) for c in data.get("conditions") or []],
            stats=RuleStats.from_dict(stats) if stats else None,
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


@dataclass
class RuleSet:
    """A named group of rules."""
    id: str
    name: str
    rules: list[Rule] = field(default_factory=list)
    enabled: bool = False
    description: str | None = None
    category: RuleCategory | None = None
    is_system: bool = False
    version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value if self.category else None,
            "enabled": self.enabled,
            "is_system": self.is_system,
            "version": self.version,
            "rules": [r.to_dict() for r in self.rules],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RuleSet":
        category = data.get("category")
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            rules=[Rule.from_dict(r) for r in data.get("rules") or []],
            enabled=bool(data.get("enabled", False)),
            description=data.get("description"),
            category=RuleCategory(category) if category else None,
            is_system=bool(data.get("is_system", False)),
            version=data.get("version"),
        )


@dataclass
class URLComponents:
    """A URL broken into the parts matchers look at."""
    url: str
    protocol: str
    hostname: str
    pathname: str
    port: str | None = None
    search: str | None = None
    hash: str | None = None
    domain_parts: list[str] = field(default_factory=list)


@dataclass
class RuleMatch:
    """Outcome of evaluating one rule against one URL."""
    matched: bool
    rule: Rule | None = None
    confidence: float = 0.0
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class RuleTestResult:
    """Result of testing a URL against every rule in the engine."""
    url: str
    url_components: URLComponents
    matches: list[RuleMatch]
    winning_rule: Rule | None
    recommended_profile_id: str | None
    execution_time: float
    timestamp: datetime


@dataclass
class RuleValidationResult:
    """Errors block a mutation; warnings and suggestions are advisory."""
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


class RuleValidator(NamedTuple):
    """A named, user-supplied rule check run by the engine on every mutation."""
    name: str
    validate: Callable[[Rule], RuleValidationResult]


class Diagnostic(NamedTuple):
    """A matching-time degradation reported instead of raised."""
    kind: str
    message: str
    rule_id: str | None = None


@dataclass
class RuleEngineConfig:
    """Tunables for :class:`proxy_rules.rules.RuleEngine`."""
    enable_cache: bool = True
    cache_ttl: int = 60000
    max_rules: int = 1000
    enforce_max_rules: bool = False
    enable_stats: bool = True
    debug: bool = False
    validators: list[RuleValidator] = field(default_factory=list)


@dataclass
class RuleExport:
    """Plain interchange document for a rule collection."""
    version: str
    exported_at: datetime
    rules: list[Rule]
    rule_sets: list[RuleSet] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "version": self.version,
            "exported_at": _format_datetime(self.exported_at),
            "rules": [r.to_dict() for r in self.rules],
        }
        if self.rule_sets:
            data["rule_sets"] = [s.to_dict() for s in self.rule_sets]
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RuleExport":
        return cls(
            version=str(data.get("version", "")),
            exported_at=_parse_datetime(data.get("exported_at")),
            rules=[Rule.from_dict(r) for r in data.get("rules") or []],
            rule_sets=[RuleSet.from_dict(s) for s in data.get("rule_sets") or []],
            metadata=dict(data.get("metadata") or {}),
        )
