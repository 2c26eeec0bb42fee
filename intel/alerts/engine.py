"""
Alert rule engine.

Keeps an in-memory index of rules (id -> rule) backed by durable storage,
and evaluates clustered events against every enabled rule.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import uuid4

from pydantic import ValidationError

from intel.core.clock import Clock, SystemClock
from intel.core.config import AlertConfig, StorageConfig, config
from intel.core.exceptions import RuleImportError, StorageError
from intel.core.storage import KeyValueStore, MemoryStore
from intel.data.schema import ClusteredEvent

from .conditions import rule_matches
from .schema import AlertCondition, AlertRule, AlertRuleStorage, ConditionLogic, RuleActions

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = frozenset({"id", "created_at", "trigger_count"})


class AlertRuleEngine:
    """
    CRUD, evaluation and import/export of alert rules.

    Notes:
    - Evaluation is a pure read; matches are recorded separately through
      record_trigger, which is the only path that changes trigger counts.
    - Every mutation persists the full rule set; storage failures are
      logged and the in-memory index stays authoritative.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        clock: Optional[Clock] = None,
        alert_config: Optional[AlertConfig] = None,
        storage_config: Optional[StorageConfig] = None,
    ) -> None:
        self.store = store if store is not None else MemoryStore()
        self.clock = clock or SystemClock()
        self.config = alert_config or config.alerts
        self.rules_key = (storage_config or config.storage).alert_rules_key
        self._rules: Dict[str, AlertRule] = {}

    def initialize(self) -> None:
        """Load rules from storage; on failure start from an empty index."""
        try:
            stored = self.store.get(self.rules_key)
        except StorageError as exc:
            logger.warning("Failed to load alert rules from storage: %s", exc)
            self._rules = {}
            return
        if stored is None or not stored.data:
            return
        try:
            storage = AlertRuleStorage.model_validate(stored.data)
        except ValidationError as exc:
            logger.warning("Ignoring malformed alert rule storage: %s", exc)
            self._rules = {}
            return
        self._rules = {rule.id: rule for rule in storage.rules}
        logger.info("Loaded %d alert rules", len(self._rules))

    def list_rules(self) -> List[AlertRule]:
        return list(self._rules.values())

    def get(self, rule_id: str) -> Optional[AlertRule]:
        return self._rules.get(rule_id)

    def create(
        self,
        name: str,
        conditions: Sequence[AlertCondition],
        condition_logic: ConditionLogic = "ALL",
        description: Optional[str] = None,
        highlight_color: Optional[str] = None,
    ) -> AlertRule:
        now = self.clock.now()
        rule = AlertRule(
            id=self._new_id(),
            name=name,
            description=description,
            enabled=True,
            conditions=list(conditions),
            condition_logic=condition_logic,
            actions=RuleActions(notify=True, highlight_color=highlight_color),
            created_at=now,
            updated_at=now,
            trigger_count=0,
        )
        self._rules[rule.id] = rule
        self._save()
        return rule

    def update(self, rule_id: str, **updates: Any) -> Optional[AlertRule]:
        """Keyword form of update_fields."""
        return self.update_fields(rule_id, updates)

    def update_fields(self, rule_id: str, updates: Mapping[str, Any]) -> Optional[AlertRule]:
        """
        Merge updates into a rule and bump updated_at.

        id, created_at and trigger_count cannot be changed this way and are
        dropped if supplied. Raises pydantic.ValidationError for invalid
        field values; returns None for an unknown id.
        """

        rule = self._rules.get(rule_id)
        if rule is None:
            return None

        changes = {k: v for k, v in updates.items() if k not in IMMUTABLE_FIELDS}
        data = rule.model_dump()
        data.update(changes)
        data["updated_at"] = self.clock.now()
        updated = AlertRule.model_validate(data)

        self._rules[rule_id] = updated
        self._save()
        return updated

    def delete(self, rule_id: str) -> bool:
        removed = self._rules.pop(rule_id, None) is not None
        if removed:
            self._save()
        return removed

    def toggle(self, rule_id: str, enabled: bool) -> Optional[AlertRule]:
        return self.update(rule_id, enabled=enabled)

    def evaluate(self, event: ClusteredEvent) -> List[AlertRule]:
        """Return every enabled rule the event satisfies."""
        return [rule for rule in self._rules.values() if rule.enabled and rule_matches(event, rule)]

    def record_trigger(self, rule_id: str) -> None:
        rule = self._rules.get(rule_id)
        if rule is None:
            return
        rule.last_triggered = self.clock.now()
        rule.trigger_count += 1
        self._save()

    def export_all(self) -> str:
        payload = {
            "rules": [rule.model_dump(mode="json") for rule in self._rules.values()],
            "exported_at": self.clock.now().isoformat(),
        }
        return json.dumps(payload, indent=2)

    def import_all(self, json_text: str) -> int:
        """
        Import rules from an export, assigning fresh ids.

        Entries missing id, name or conditions, or failing validation, are
        skipped. Returns the number of rules imported (0 if the document
        itself is unusable).
        """

        try:
            entries = self._parse_export(json_text)
        except RuleImportError as exc:
            logger.warning("Failed to import alert rules: %s", exc)
            return 0

        imported = 0
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            if not (entry.get("id") and entry.get("name")) or entry.get("conditions") is None:
                continue
            data = dict(entry)
            data["id"] = self._new_id()
            try:
                rule = AlertRule.model_validate(data)
            except ValidationError as exc:
                logger.debug("Skipping invalid imported rule %r: %s", entry.get("name"), exc)
                continue
            self._rules[rule.id] = rule
            imported += 1

        self._save()
        return imported

    def _parse_export(self, json_text: str) -> List[Any]:
        try:
            parsed = json.loads(json_text)
        except (TypeError, ValueError) as exc:
            raise RuleImportError(f"Invalid JSON: {exc}") from exc
        if not isinstance(parsed, dict) or not isinstance(parsed.get("rules"), list):
            raise RuleImportError("Invalid rules format: expected array of rules")
        return parsed["rules"]

    def _new_id(self) -> str:
        millis = int(self.clock.now().timestamp() * 1000)
        return f"{self.config.rule_id_prefix}-{millis}-{uuid4().hex[:9]}"

    def _save(self) -> None:
        storage = AlertRuleStorage(
            rules=list(self._rules.values()),
            version=self.config.storage_version,
            last_updated=int(self.clock.now().timestamp() * 1000),
        )
        try:
            self.store.set(self.rules_key, storage.model_dump(mode="json"))
        except StorageError as exc:
            logger.warning("Failed to save alert rules to storage: %s", exc)
