"""
Schema definitions for user-defined alert rules.

Conditions form a tagged union keyed by ``type``: each variant carries a
natively-typed comparison value (text for string operators, a number for
numeric operators), so no runtime coercion is needed at evaluation time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

StringOperator = Literal["contains", "equals", "startsWith", "endsWith", "regex"]
NumericOperator = Literal["equals", "greaterThan", "lessThan"]
ConditionLogic = Literal["ALL", "ANY"]


class TextCondition(BaseModel):
    """
    String comparison against an event field.

    - title / source: primary title / primary source
    - velocity: velocity level (never matches events without one)
    - keyword: case-insensitive substring of the title or any item title;
      the operator is ignored
    """

    type: Literal["title", "source", "velocity", "keyword"]
    operator: StringOperator = "contains"
    value: str
    case_sensitive: bool = False


class ExactCondition(BaseModel):
    """Exact match against the event's threat level or threat category."""

    type: Literal["threatLevel", "category"]
    operator: Literal["equals"] = "equals"
    value: str
    case_sensitive: bool = False


class NumericCondition(BaseModel):
    """Numeric comparison against the event's source count."""

    type: Literal["sourceCount"]
    operator: NumericOperator = "greaterThan"
    value: float
    case_sensitive: bool = False


AlertCondition = Annotated[
    Union[TextCondition, ExactCondition, NumericCondition],
    Field(discriminator="type"),
]


class RuleActions(BaseModel):
    """
    What the dashboard does when a rule fires.

    Fields:
    - notify: raise a user notification
    - highlight_color: optional colour for the event marker
    - extract_to_panel: optional panel the event is copied to
    """

    notify: bool = True
    highlight_color: Optional[str] = None
    extract_to_panel: Optional[str] = None


class AlertRule(BaseModel):
    """
    A user-defined alert rule.

    Fields:
    - id: unique identifier, generated on create and on import
    - name / description: display text
    - enabled: disabled rules are never evaluated
    - conditions: ordered conditions, combined under condition_logic
    - condition_logic: ALL (every condition) or ANY (at least one)
    - actions: notification and highlight settings
    - created_at / updated_at: lifecycle timestamps
    - last_triggered: time of the most recent recorded match
    - trigger_count: number of recorded matches (never decreases)
    """

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    enabled: bool = True
    conditions: List[AlertCondition] = Field(default_factory=list)
    condition_logic: ConditionLogic = "ALL"
    actions: RuleActions = Field(default_factory=RuleActions)
    created_at: datetime
    updated_at: datetime
    last_triggered: Optional[datetime] = None
    trigger_count: int = Field(0, ge=0)


class AlertRuleStorage(BaseModel):
    """Persisted form of the full rule set."""

    rules: List[AlertRule] = Field(default_factory=list)
    version: int = 1
    last_updated: int = Field(0, description="Epoch milliseconds of the last save")
