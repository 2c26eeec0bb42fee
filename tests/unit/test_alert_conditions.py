"""
Unit tests for alert condition evaluation.
"""

import pytest
from datetime import datetime, timezone

from pydantic import TypeAdapter, ValidationError

from intel.alerts.conditions import combine, evaluate_condition, evaluate_numeric, evaluate_string, rule_matches
from intel.alerts.schema import AlertCondition, AlertRule, ExactCondition, NumericCondition, TextCondition

CONDITION = TypeAdapter(AlertCondition)
T0 = datetime(2025, 3, 1, tzinfo=timezone.utc)


def _rule(conditions, logic="ALL"):
    return AlertRule(
        id="rule-1",
        name="test",
        conditions=[CONDITION.validate_python(c) for c in conditions],
        condition_logic=logic,
        created_at=T0,
        updated_at=T0,
    )


class TestStringOperators:
    """Test string comparison operators."""

    @pytest.mark.parametrize(
        "operator,compare,expected",
        [
            ("contains", "strike", True),
            ("equals", "missile strike on port", True),
            ("startsWith", "missile", True),
            ("endsWith", "port", True),
            ("endsWith", "missile", False),
            ("unknown", "missile", False),
        ],
    )
    def test_operators_case_insensitive(self, operator, compare, expected):
        assert evaluate_string("Missile Strike on Port", operator, compare) is expected

    def test_case_sensitive(self):
        assert evaluate_string("Missile Strike", "contains", "strike", case_sensitive=True) is False
        assert evaluate_string("Missile Strike", "contains", "Strike", case_sensitive=True) is True

    def test_regex(self):
        assert evaluate_string("Magnitude 7.2 quake", "regex", r"magnitude\s+[6-9]") is True
        assert evaluate_string("Magnitude 7.2 quake", "regex", r"magnitude\s+[6-9]", case_sensitive=True) is False

    def test_invalid_regex_does_not_match(self):
        assert evaluate_string("anything", "regex", "[unclosed") is False


class TestNumericOperators:
    """Test numeric comparison operators."""

    def test_operators(self):
        assert evaluate_numeric(5, "greaterThan", 3) is True
        assert evaluate_numeric(3, "greaterThan", 3) is False
        assert evaluate_numeric(2, "lessThan", 3) is True
        assert evaluate_numeric(3, "equals", 3) is True
        assert evaluate_numeric(3, "between", 3) is False


class TestConditions:
    """Test evaluation against event fields."""

    def test_condition_variants_parse(self):
        assert isinstance(CONDITION.validate_python({"type": "title", "value": "x"}), TextCondition)
        assert isinstance(CONDITION.validate_python({"type": "threatLevel", "value": "high"}), ExactCondition)
        numeric = CONDITION.validate_python({"type": "sourceCount", "operator": "greaterThan", "value": "3"})
        assert isinstance(numeric, NumericCondition)
        assert numeric.value == 3.0

    def test_unknown_condition_type_rejected(self):
        with pytest.raises(ValidationError):
            CONDITION.validate_python({"type": "country", "value": "x"})

    def test_title_and_source(self, make_event):
        event = make_event("a", title="Port closed after strike", sources=["Reuters"])
        assert evaluate_condition(event, CONDITION.validate_python({"type": "title", "value": "STRIKE"}))
        assert evaluate_condition(event, CONDITION.validate_python({"type": "source", "operator": "equals", "value": "reuters"}))

    def test_keyword_searches_items(self, make_event):
        event = make_event("a", title="Port closed", items=[{"title": "Dockworkers announce Strike"}])
        assert evaluate_condition(event, CONDITION.validate_python({"type": "keyword", "value": "strike"}))

    def test_velocity_requires_velocity(self, make_event):
        condition = CONDITION.validate_python({"type": "velocity", "operator": "equals", "value": "spike"})
        assert evaluate_condition(make_event("a", velocity="spike"), condition)
        assert not evaluate_condition(make_event("b"), condition)

    def test_threat_conditions_require_threat(self, make_event):
        level = CONDITION.validate_python({"type": "threatLevel", "value": "critical"})
        category = CONDITION.validate_python({"type": "category", "value": "conflict"})

        event = make_event("a", threat_level="critical", category="conflict")
        assert evaluate_condition(event, level)
        assert evaluate_condition(event, category)
        assert not evaluate_condition(make_event("b"), level)

    def test_source_count(self, make_event):
        condition = CONDITION.validate_python({"type": "sourceCount", "operator": "greaterThan", "value": 3})
        assert evaluate_condition(make_event("a", source_count=4), condition)
        assert not evaluate_condition(make_event("b", source_count=3), condition)


class TestRuleLogic:
    """Test ALL / ANY combination."""

    def test_combine(self):
        assert combine([True, True], "ALL") is True
        assert combine([True, False], "ALL") is False
        assert combine([True, False], "ANY") is True
        assert combine([], "ANY") is False

    def test_all_requires_every_condition(self, make_event):
        rule = _rule(
            [
                {"type": "threatLevel", "value": "critical"},
                {"type": "keyword", "value": "missile"},
            ]
        )
        assert rule_matches(make_event("a", title="Missile launch", threat_level="critical"), rule)
        assert not rule_matches(make_event("b", title="Missile launch", threat_level="high"), rule)

    def test_any_requires_one_condition(self, make_event):
        rule = _rule(
            [
                {"type": "threatLevel", "value": "critical"},
                {"type": "keyword", "value": "missile"},
            ],
            logic="ANY",
        )
        assert rule_matches(make_event("a", title="Missile launch", threat_level="low"), rule)
        assert not rule_matches(make_event("b", title="Trade talks"), rule)

    def test_invalid_regex_rule_does_not_match(self, make_event):
        rule = _rule([{"type": "title", "operator": "regex", "value": "(["}])
        assert not rule_matches(make_event("a"), rule)
