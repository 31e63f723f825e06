"""Import and export of rule collections as JSON or YAML."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from proxy_rules.models import Rule, RuleExport, RuleSet


logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"
YAML_SUFFIXES = (".yaml", ".yml")


class RuleImportError(ValueError):
    """An interchange document could not be read."""


def export_rules(
    rules: list[Rule],
    rule_sets: list[RuleSet] | None = None,
    metadata: dict[str, Any] | None = None,
) -> RuleExport:
    return RuleExport(
        version=EXPORT_VERSION,
        exported_at=datetime.now(timezone.utc),
        rules=list(rules),
        rule_sets=list(rule_sets or []),
        metadata=dict(metadata or {}),
    )


def parse_export(data: Any) -> RuleExport:
    """Build a RuleExport from loaded JSON/YAML data.

    A bare list is accepted as a list of rules.
    """
    if isinstance(data, list):
        data = {"rules": data}
    if not isinstance(data, dict):
        raise RuleImportError(f"Expected a mapping or list, got {type(data).__name__}")
    try:
        return RuleExport.from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        raise RuleImportError(f"Malformed rule export: {e}") from e


def dump_export(export: RuleExport, path: Path) -> None:
    """Write an export, as YAML or JSON depending on the file suffix."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = export.to_dict()
    with open(path, "w") as f:
        if path.suffix.lower() in YAML_SUFFIXES:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(data, f, indent=2)
    logger.info(f"Exported {len(export.rules)} rules to {path}")


def load_export(path: Path) -> RuleExport:
    """Read an export written by :func:`dump_export` or by hand."""
    try:
        with open(path) as f:
            if path.suffix.lower() in YAML_SUFFIXES:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise RuleImportError(f"Invalid rules file {path}: {e}") from e

    if data is None:
        data = {"rules": []}
    return parse_export(data)
