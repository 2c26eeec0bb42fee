"""
Condition evaluation for alert rules.

Evaluation never raises: unknown operators and invalid regular expressions
simply do not match.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from intel.data.schema import ClusteredEvent

from .schema import AlertCondition, AlertRule, ExactCondition, NumericCondition, TextCondition

logger = logging.getLogger(__name__)


def evaluate_string(value: str, operator: str, compare_value: str, case_sensitive: bool = False) -> bool:
    """
    Compare value against compare_value with a string operator.

    Unless case_sensitive, both sides are lower-cased first; regex patterns
    instead match with re.IGNORECASE against the original value.
    """

    if operator == "regex":
        flags = 0 if case_sensitive else re.IGNORECASE
        try:
            return re.search(compare_value, value, flags) is not None
        except re.error as exc:
            logger.debug("Invalid regex %r in alert condition: %s", compare_value, exc)
            return False

    val = value if case_sensitive else value.lower()
    comp = compare_value if case_sensitive else compare_value.lower()

    if operator == "contains":
        return comp in val
    if operator == "equals":
        return val == comp
    if operator == "startsWith":
        return val.startswith(comp)
    if operator == "endsWith":
        return val.endswith(comp)
    return False


def evaluate_numeric(value: float, operator: str, compare_value: float) -> bool:
    if operator == "equals":
        return value == compare_value
    if operator == "greaterThan":
        return value > compare_value
    if operator == "lessThan":
        return value < compare_value
    return False


def _keyword_match(event: ClusteredEvent, keyword: str) -> bool:
    needle = keyword.lower()
    if needle in event.primary_title.lower():
        return True
    return any(needle in item.title.lower() for item in event.all_items)


def evaluate_condition(event: ClusteredEvent, condition: AlertCondition) -> bool:
    """Evaluate a single condition against an event."""

    if isinstance(condition, TextCondition):
        if condition.type == "keyword":
            return _keyword_match(event, condition.value)
        target: Optional[str]
        if condition.type == "title":
            target = event.primary_title
        elif condition.type == "source":
            target = event.primary_source
        else:
            target = event.velocity_level
        if target is None:
            return False
        return evaluate_string(target, condition.operator, condition.value, condition.case_sensitive)

    if isinstance(condition, ExactCondition):
        if event.threat is None:
            return False
        if condition.type == "threatLevel":
            return event.threat.level.value == condition.value
        return event.threat.category == condition.value

    if isinstance(condition, NumericCondition):
        return evaluate_numeric(float(event.source_count), condition.operator, condition.value)

    return False


def combine(matches: Iterable[bool], logic: str) -> bool:
    """ALL requires every match; ANY requires at least one."""
    if logic == "ALL":
        return all(matches)
    return any(matches)


def rule_matches(event: ClusteredEvent, rule: AlertRule) -> bool:
    return combine((evaluate_condition(event, c) for c in rule.conditions), rule.condition_logic)
