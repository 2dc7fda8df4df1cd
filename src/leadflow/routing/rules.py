from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from leadflow.core.exceptions import NotFoundError, ValidationError
from leadflow.routing.models import AssignmentRule

if TYPE_CHECKING:
    from leadflow.storage.base import RuleStore

logger = structlog.get_logger(__name__)

_IMMUTABLE_FIELDS = frozenset({"id", "created_at", "created_by"})


class AssignmentRuleManager:
    """CRUD and ordering for :class:`AssignmentRule` definitions."""

    def __init__(self, store: RuleStore) -> None:
        self._store = store

    async def create_rule(self, rule: AssignmentRule | dict[str, Any]) -> AssignmentRule:
        if isinstance(rule, dict):
            rule = _validate(rule)
        await self._store.save_rule(rule)
        logger.info("assignment_rule_created", rule_id=rule.id, priority=rule.priority)
        return rule

    async def get_rule(self, rule_id: str) -> AssignmentRule:
        rule = await self._store.get_rule(rule_id)
        if rule is None:
            raise NotFoundError(f"Assignment rule {rule_id} not found", code="RULE_NOT_FOUND")
        return rule

    async def list_rules(self, *, is_active: bool | None = None) -> list[AssignmentRule]:
        """Rules ordered by priority, ties in creation order."""
        rules = await self._store.list_rules()
        if is_active is not None:
            rules = [r for r in rules if r.is_active == is_active]
        return sorted(rules, key=lambda r: r.priority)

    async def update_rule(self, rule_id: str, **changes: Any) -> AssignmentRule:
        """Apply ``changes`` and re-validate the whole rule.

        Raises:
            NotFoundError: If the rule does not exist.
            ValidationError: If a change names an immutable field or the
                result is not a valid rule.
        """
        blocked = _IMMUTABLE_FIELDS.intersection(changes)
        if blocked:
            raise ValidationError(
                "Cannot change immutable rule fields",
                errors=[f"{name} is immutable" for name in sorted(blocked)],
                code="IMMUTABLE_FIELD",
            )
        current = await self.get_rule(rule_id)
        data = current.model_dump()
        data.update(changes)
        updated = _validate(data)
        await self._store.save_rule(updated)
        logger.info("assignment_rule_updated", rule_id=rule_id, fields=sorted(changes))
        return updated

    async def activate_rule(self, rule_id: str) -> AssignmentRule:
        return await self.update_rule(rule_id, is_active=True)

    async def deactivate_rule(self, rule_id: str) -> AssignmentRule:
        return await self.update_rule(rule_id, is_active=False)

    async def reorder_rules(self, rule_ids: list[str]) -> list[AssignmentRule]:
        """Set each listed rule's priority to its 1-based position in ``rule_ids``.

        All ids are checked before anything is written.
        """
        if len(set(rule_ids)) != len(rule_ids):
            raise ValidationError("Duplicate rule ids in reorder request", code="DUPLICATE_RULE")
        rules = [await self.get_rule(rule_id) for rule_id in rule_ids]
        for position, rule in enumerate(rules, start=1):
            rule.priority = position
            await self._store.save_rule(rule)
        logger.info("assignment_rules_reordered", count=len(rules))
        return rules

    async def get_rule_statistics(self) -> dict[str, Any]:
        rules = await self._store.list_rules()
        active = sum(1 for r in rules if r.is_active)
        by_priority = Counter(r.priority for r in rules)
        return {
            "total_rules": len(rules),
            "active_rules": active,
            "inactive_rules": len(rules) - active,
            "rules_by_priority": dict(sorted(by_priority.items())),
        }


def _validate(data: dict[str, Any]) -> AssignmentRule:
    try:
        return AssignmentRule.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(
            "Invalid assignment rule",
            errors=[f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()],
            code="INVALID_RULE",
        ) from exc
