"""
Alert module: user-defined rules evaluated against clustered events.
"""

from .conditions import evaluate_condition, evaluate_numeric, evaluate_string, rule_matches
from .engine import AlertRuleEngine
from .schema import (
    AlertCondition,
    AlertRule,
    AlertRuleStorage,
    ExactCondition,
    NumericCondition,
    RuleActions,
    TextCondition,
)

__all__ = [
    "AlertRuleEngine",
    "AlertRule",
    "AlertCondition",
    "AlertRuleStorage",
    "TextCondition",
    "ExactCondition",
    "NumericCondition",
    "RuleActions",
    "evaluate_condition",
    "evaluate_string",
    "evaluate_numeric",
    "rule_matches",
]
