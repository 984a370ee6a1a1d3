"""Auto-category rule management.

CRUD, archive/restore, priority reordering, and JSON/CSV export and import of
a user's explicit rules. Matching itself lives in ``matching.py``.
"""

import csv
import io
from datetime import datetime, timezone

import structlog
from fastapi import HTTPException
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from autocat.core.exceptions import AlreadyExistsError, ForbiddenError, NotFoundError, ValidationError
from autocat.models.auto_category_rule import AutoCategoryRule
from autocat.schemas.auto_category_rule import (
    RuleCreate,
    RuleImportRequest,
    RuleReorderItem,
    RuleUpdate,
)
from autocat.services.repositories import CategoryRepository, RuleRepository

logger = structlog.get_logger()

CSV_HEADER = ["Pattern", "Category ID", "Priority"]


class RuleService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.rules = RuleRepository(db)
        self.categories = CategoryRepository(db)

    # ── CRUD ───────────────────────────────────────────

    async def list_rules(self, user_id: int, archived: bool | None = None) -> list[dict]:
        """List a user's rules in priority order, with category names."""
        rules = await self.rules.list_for_user(user_id, archived)
        names = await self.categories.names_by_id(list({rule.category_id for rule in rules}))
        return [self._rule_to_dict(rule, names.get(rule.category_id)) for rule in rules]

    async def get_rule(self, rule_id: int, user_id: int) -> dict:
        rule = await self._get_user_rule(rule_id, user_id)
        return await self._enriched(rule)

    async def create_rule(self, data: RuleCreate, user_id: int) -> dict:
        """Create a rule. Priorities are unique per user."""
        await self._check_category(data.category_id, user_id)
        await self._check_priority_free(user_id, data.priority)

        rule = AutoCategoryRule(
            user_id=user_id,
            pattern=data.pattern,
            category_id=data.category_id,
            priority=data.priority,
            is_active=True,
        )
        self.db.add(rule)
        await self.db.flush()
        await self.db.refresh(rule)
        logger.info("rule_created", user_id=user_id, rule_id=rule.id, priority=rule.priority)
        return await self._enriched(rule)

    async def update_rule(self, rule_id: int, data: RuleUpdate, user_id: int) -> dict:
        rule = await self._get_user_rule(rule_id, user_id)
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)

        if "category_id" in update_data:
            await self._check_category(update_data["category_id"], user_id)
        if "priority" in update_data:
            await self._check_priority_free(user_id, update_data["priority"], exclude_id=rule.id)

        for key, value in update_data.items():
            setattr(rule, key, value)
        await self.db.flush()
        await self.db.refresh(rule)
        return await self._enriched(rule)

    async def delete_rule(self, rule_id: int, user_id: int) -> None:
        rule = await self._get_user_rule(rule_id, user_id)
        await self.db.delete(rule)
        await self.db.flush()

    async def archive_rule(self, rule_id: int, user_id: int) -> dict:
        """Pause a rule without deleting it."""
        rule = await self._get_user_rule(rule_id, user_id)
        rule.is_active = False
        rule.archived_at = datetime.now(timezone.utc)
        await self.db.flush()
        await self.db.refresh(rule)
        return await self._enriched(rule)

    async def restore_rule(self, rule_id: int, user_id: int) -> dict:
        rule = await self._get_user_rule(rule_id, user_id)
        rule.is_active = True
        rule.archived_at = None
        await self.db.flush()
        await self.db.refresh(rule)
        return await self._enriched(rule)

    # ── Ordering ───────────────────────────────────────

    async def reorder(self, user_id: int, items: list[RuleReorderItem]) -> None:
        """Assign new priorities to several rules at once.

        Every rule is first parked on a negative priority, then moved to its
        final one, so no two rules share a priority at any point.
        """
        ids = [item.id for item in items]
        if len(set(ids)) != len(ids):
            raise ValidationError("A rule appears more than once")
        targets = [item.priority for item in items]
        if len(set(targets)) != len(targets):
            raise ValidationError("Target priorities must be unique")

        rules = {rule.id: rule for rule in await self.rules.get_many(ids)}
        for rule_id in ids:
            rule = rules.get(rule_id)
            if rule is None:
                raise NotFoundError("AutoCategoryRule", rule_id)
            if rule.user_id != user_id:
                raise ForbiddenError()

        for priority in targets:
            holder = await self.rules.find_by_priority(user_id, priority)
            if holder is not None and holder.id not in rules:
                raise AlreadyExistsError(f"Priority {priority} is used by a rule outside the reorder")

        async with self.db.begin_nested():
            for index, item in enumerate(items):
                await self.rules.set_priority(item.id, -(index + 1))
            for item in items:
                await self.rules.set_priority(item.id, item.priority)

        logger.info("rules_reordered", user_id=user_id, count=len(items))

    # ── Export / import ────────────────────────────────

    async def export_rules(self, user_id: int, fmt: str = "json") -> dict:
        """Active rules in priority order, as a list or as CSV text."""
        rules = await self.rules.active_for_matching(user_id)
        filename = f"auto-rules-{datetime.now(timezone.utc):%Y-%m-%d}.{fmt}"

        if fmt == "csv":
            buffer = io.StringIO()
            writer = csv.writer(buffer, lineterminator="\n")
            writer.writerow(CSV_HEADER)
            for rule in rules:
                writer.writerow([rule.pattern, rule.category_id, rule.priority])
            return {"data": buffer.getvalue(), "filename": filename}

        names = await self.categories.names_by_id(list({rule.category_id for rule in rules}))
        return {
            "data": [self._rule_to_dict(rule, names.get(rule.category_id)) for rule in rules],
            "filename": filename,
        }

    async def import_rules(self, user_id: int, request: RuleImportRequest) -> dict:
        """Import rules; duplicates (same pattern and category) are skipped or merged.

        Each row is applied in its own savepoint and a failing row is reported
        in ``errors`` without stopping the import.
        """
        imported = 0
        skipped = 0
        errors: list[str] = []

        for index, item in enumerate(request.rules):
            pattern = item.pattern.strip().lower()
            try:
                if not pattern:
                    raise ValidationError("Pattern must not be blank")
                async with self.db.begin_nested():
                    existing = await self.rules.find_by_pattern(user_id, pattern, item.category_id)
                    if existing and request.merge_strategy == "skip_duplicates":
                        skipped += 1
                        continue
                    if existing:
                        if item.priority is not None and item.priority != existing.priority:
                            await self._check_priority_free(user_id, item.priority, exclude_id=existing.id)
                            existing.priority = item.priority
                            await self.db.flush()
                    else:
                        priority = item.priority
                        if priority is None:
                            priority = await self.rules.max_priority(user_id) + 1
                        await self.create_rule(
                            RuleCreate(pattern=pattern, category_id=item.category_id, priority=priority),
                            user_id,
                        )
                    imported += 1
            except HTTPException as e:
                errors.append(f"Row {index}: {e.detail}")
            except SchemaValidationError as e:
                errors.append(f"Row {index}: {e.errors()[0]['msg']}")

        logger.info("rules_imported", user_id=user_id, imported=imported, skipped=skipped, errors=len(errors))
        return {"imported": imported, "skipped": skipped, "errors": errors}

    # ── Helpers ─────────────────────────────────────────

    @staticmethod
    def _rule_to_dict(rule: AutoCategoryRule, category_name: str | None) -> dict:
        return {
            "id": rule.id,
            "user_id": rule.user_id,
            "pattern": rule.pattern,
            "category_id": rule.category_id,
            "category_name": category_name,
            "priority": rule.priority,
            "is_active": rule.is_active,
            "archived_at": rule.archived_at,
            "created_at": rule.created_at,
            "updated_at": rule.updated_at,
        }

    async def _enriched(self, rule: AutoCategoryRule) -> dict:
        category = await self.categories.get(rule.category_id)
        return self._rule_to_dict(rule, category.name if category else None)

    async def _get_user_rule(self, rule_id: int, user_id: int) -> AutoCategoryRule:
        """Fetch a rule and verify ownership."""
        rule = await self.rules.get(rule_id)
        if not rule:
            raise NotFoundError("AutoCategoryRule", rule_id)
        if rule.user_id != user_id:
            raise ForbiddenError()
        return rule

    async def _check_category(self, category_id: int, user_id: int) -> None:
        category = await self.categories.get(category_id)
        if category is None or not category.is_visible_to(user_id):
            raise NotFoundError("Category", category_id)

    async def _check_priority_free(self, user_id: int, priority: int, exclude_id: int | None = None) -> None:
        if await self.rules.find_by_priority(user_id, priority, exclude_id=exclude_id):
            raise AlreadyExistsError(f"Priority {priority} is already used by another rule")
