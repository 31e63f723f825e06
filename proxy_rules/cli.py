"""proxy-rules CLI - test URLs and patterns against a rule set."""

import argparse
import json
import logging
import signal
import sys
from pathlib import Path
from typing import TextIO

import yaml

from proxy_rules import __version__
from proxy_rules.config import Config
from proxy_rules.defaults import get_all_default_rule_sets, get_default_rule_set_by_id
from proxy_rules.interchange import (
    YAML_SUFFIXES,
    RuleImportError,
    dump_export,
    export_rules,
    load_export,
)
from proxy_rules.models import Rule, RuleCategory, RuleTestResult, RuleType
from proxy_rules.rules import RuleEngine, RuleValidationError
from proxy_rules.tester import RuleTester, TestScenario
from proxy_rules.watcher import RulesFileWatcher


logger = logging.getLogger(__name__)


class RuleHost:
    """Owns an engine configured from the data directory."""

    def __init__(self, data_dir: Path | None = None, rules_file: Path | None = None):
        self.config = Config(data_dir)
        self.rules_file = rules_file or self.config.rules_file
        self.engine = RuleEngine(self.config.engine_config())
        self.tester = RuleTester(self.engine)
        self.watcher: RulesFileWatcher | None = None
        self._running = False

    def setup_logging(self, debug: bool = False) -> None:
        """Configure logging."""
        level_name = "DEBUG" if debug or self.config.debug else self.config.log_level
        log_level = getattr(logging, level_name.upper(), logging.INFO)
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            handlers=[
                logging.FileHandler(self.config.log_file),
                logging.StreamHandler(sys.stderr),
            ],
        )
        if debug:
            self.engine.config.debug = True

    def _default_rules(self) -> list[Rule]:
        rules = []
        for set_id in self.config.default_rule_sets:
            rule_set = get_default_rule_set_by_id(set_id)
            if rule_set is None:
                logger.warning(f"Unknown default rule set: {set_id}")
                continue
            rules.extend(r for r in rule_set.rules if r.enabled)
        return rules

    def load_rules(self) -> None:
        """Replace the engine's rules with the defaults plus the rules file."""
        rules = self._default_rules()
        if self.rules_file.exists():
            rules.extend(load_export(self.rules_file).rules)
        self.engine.replace_rules(rules)

    def _handle_rules_change(self, rules: list[Rule]) -> None:
        """Swap in rules read from the changed file, keeping the defaults."""
        try:
            self.engine.replace_rules(self._default_rules() + rules)
        except RuleValidationError as e:
            logger.error(f"Keeping previous rules: {e}")

    def watch(self, stream: TextIO, out: TextIO) -> None:
        """Resolve URLs from ``stream`` while hot-reloading the rules file."""
        self.watcher = RulesFileWatcher(self.rules_file, self._handle_rules_change)
        self.watcher.start()
        self._running = True
        try:
            for line in stream:
                if not self._running:
                    break
                url = line.strip()
                if url:
                    print(format_result(self.engine.test_url(url)), file=out, flush=True)
        except KeyboardInterrupt:
            logger.info("Received interrupt signal")
        finally:
            self.stop()

    def stop(self) -> None:
        self._running = False
        if self.watcher:
            self.watcher.stop()
            self.watcher = None


def format_result(result: RuleTestResult, show_all: bool = False) -> str:
    if result.winning_rule is None:
        line = f"{result.url} -> (no match)"
    else:
        line = f"{result.url} -> {result.recommended_profile_id} [{result.winning_rule.name}]"
    if show_all:
        for match in result.matches:
            line += (
                f"\n    {match.rule.priority:>5} {match.rule.name} "
                f"({match.details.get('match_type')}, confidence {match.confidence:.2f})"
            )
    return line


def _load_scenarios(path: Path) -> list[TestScenario]:
    with open(path) as f:
        if path.suffix.lower() in YAML_SUFFIXES:
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if isinstance(data, dict):
        data = data.get("scenarios", [])
    return [TestScenario.from_dict(item) for item in data or []]


def _cmd_test(host: RuleHost, args: argparse.Namespace) -> int:
    for url in args.urls:
        print(format_result(host.engine.test_url(url), show_all=args.all))
    return 0


def _cmd_validate(host: RuleHost, args: argparse.Namespace) -> int:
    result = host.tester.validate_pattern(RuleType(args.type), args.pattern)
    print("valid" if result.is_valid else "invalid")
    for label, messages in (
        ("error", result.errors),
        ("warning", result.warnings),
        ("suggestion", result.suggestions),
    ):
        for message in messages:
            print(f"  {label}: {message}")
    return 0 if result.is_valid else 1


def _cmd_examples(host: RuleHost, args: argparse.Namespace) -> int:
    for example in host.tester.get_pattern_examples(RuleType(args.type)):
        print(f"{example.pattern}  - {example.description}")
        for url in example.matching_urls:
            print(f"  + {url}")
        for url in example.non_matching_urls:
            print(f"  - {url}")
    return 0


def _cmd_batch(host: RuleHost, args: argparse.Namespace) -> int:
    batch = host.tester.run_batch_tests(_load_scenarios(args.scenarios))
    for item in batch.results:
        status = "PASS" if item.passed else "FAIL"
        line = f"{status} {item.scenario.name}"
        if item.failure_reason:
            line += f": {item.failure_reason}"
        print(line)
    print(f"{batch.passed}/{batch.total_tests} passed in {batch.execution_time:.1f} ms")
    return 0 if batch.failed == 0 else 1


def _cmd_export_defaults(host: RuleHost, args: argparse.Namespace) -> int:
    rule_sets = get_all_default_rule_sets()
    if args.category:
        wanted = {RuleCategory(c) for c in args.category}
        rule_sets = [s for s in rule_sets if s.category in wanted]
    rules = [r for s in rule_sets for r in s.rules]
    dump_export(export_rules(rules, rule_sets, {"source": "defaults"}), args.path)
    print(f"Wrote {len(rules)} rules to {args.path}")
    return 0


def _cmd_watch(host: RuleHost, args: argparse.Namespace) -> int:
    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        host.stop()
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)
    host.watch(sys.stdin, sys.stdout)
    return 0


def build_parser() -> argparse.ArgumentParser:
    types = [t.value for t in RuleType]
    parser = argparse.ArgumentParser(
        prog="proxy-rules", description="Pick a proxy profile for URLs using pattern rules"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Data directory (default: ~/.proxy-rules/)",
    )
    parser.add_argument(
        "--rules-file",
        type=Path,
        help="Rules file, JSON or YAML (default: <data-dir>/rules.yaml)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    test = sub.add_parser("test", help="Show the recommended profile for URLs")
    test.add_argument("urls", nargs="+")
    test.add_argument("--all", action="store_true", help="List every matching rule")
    test.set_defaults(func=_cmd_test)

    validate = sub.add_parser("validate", help="Validate a pattern for a rule type")
    validate.add_argument("type", choices=types)
    validate.add_argument("pattern")
    validate.set_defaults(func=_cmd_validate)

    examples = sub.add_parser("examples", help="Show example patterns for a rule type")
    examples.add_argument("type", choices=types)
    examples.set_defaults(func=_cmd_examples)

    batch = sub.add_parser("batch", help="Run expectation scenarios from a file")
    batch.add_argument("scenarios", type=Path)
    batch.set_defaults(func=_cmd_batch)

    export = sub.add_parser("export-defaults", help="Write bundled rule sets to a file")
    export.add_argument("path", type=Path)
    export.add_argument(
        "--category", action="append", choices=[c.value for c in RuleCategory]
    )
    export.set_defaults(func=_cmd_export_defaults)

    watch = sub.add_parser("watch", help="Resolve URLs from stdin, reloading rules on change")
    watch.set_defaults(func=_cmd_watch)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    host = RuleHost(args.data_dir, args.rules_file)
    host.setup_logging(args.debug)

    if args.func is not _cmd_export_defaults:
        try:
            host.load_rules()
        except (RuleValidationError, RuleImportError) as e:
            logger.error(f"Could not load rules: {e}")
            return 2

    return args.func(host, args)


if __name__ == "__main__":
    sys.exit(main())
