"""Evaluation of time, day and custom conditions attached to rules."""

import logging
from datetime import datetime
from typing import Any, Callable

from proxy_rules.models import RuleCondition


logger = logging.getLogger(__name__)

CustomHandler = Callable[[RuleCondition], bool]


def parse_time(value: Any) -> int:
    """Convert ``HH:MM`` to minutes since midnight. Raises ValueError."""
    hours, minutes = str(value).split(":")
    hours, minutes = int(hours), int(minutes)
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Time out of range: {value}")
    return hours * 60 + minutes


class ConditionEvaluator:
    """Gates rules on wall-clock conditions.

    The clock and the handler for ``custom`` conditions are injectable so
    hosts and tests control them. Without a handler, custom conditions pass.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] | None = None,
        custom_handler: CustomHandler | None = None,
    ):
        self.clock = clock or datetime.now
        self.custom_handler = custom_handler

    def passes(self, conditions: list[RuleCondition]) -> bool:
        """True unless a required condition evaluates to false."""
        for condition in conditions:
            if condition.required and not self.evaluate(condition):
                return False
        return True

    def evaluate(self, condition: RuleCondition) -> bool:
        """Evaluate a single condition. Malformed params evaluate to false."""
        try:
            if condition.type == "time_range":
                return self._check_time_range(condition.params)
            if condition.type == "day_of_week":
                return self._check_day_of_week(condition.params)
            if condition.type == "network":
                # No network-state source available; always passes
                return True
            if condition.type == "custom":
                return self._check_custom(condition)
        except (ValueError, TypeError, KeyError) as e:
            logger.debug(f"Malformed {condition.type} condition {condition.params}: {e}")
            return False
        return True

    def _check_time_range(self, params: dict[str, Any]) -> bool:
        now = self.clock()
        current = now.hour * 60 + now.minute
        start = parse_time(params["start"])
        end = parse_time(params["end"])

        if start <= end:
            return start <= current <= end
        # Wraps past midnight
        return current >= start or current <= end

    def _check_custom(self, condition: RuleCondition) -> bool:
        if self.custom_handler is None:
            return True
        try:
            return bool(self.custom_handler(condition))
        except Exception as e:
            logger.error(f"Custom condition handler failed for {condition.params}: {e}")
            return False

    def _check_day_of_week(self, params: dict[str, Any]) -> bool:
        # 0 = Sunday
        today = (self.clock().weekday() + 1) % 7
        return today in [int(d) for d in params.get("days") or []]
