"""Rule management tests: CRUD, ordering, export and import."""

import pytest
from pydantic import ValidationError as SchemaValidationError

from autocat.core.exceptions import AlreadyExistsError, ForbiddenError, NotFoundError, ValidationError
from autocat.schemas.auto_category_rule import (
    RuleCreate,
    RuleImportItem,
    RuleImportRequest,
    RuleReorderItem,
    RuleUpdate,
)
from autocat.services.rule_service import RuleService


def test_rule_pattern_is_normalized():
    assert RuleCreate(pattern="  Whole FOODS ", category_id=1, priority=1).pattern == "whole foods"
    with pytest.raises(SchemaValidationError):
        RuleCreate(pattern="   ", category_id=1, priority=1)
    with pytest.raises(SchemaValidationError):
        RuleCreate(pattern="amazon", category_id=1, priority=0)


@pytest.mark.asyncio
async def test_create_rule(session, user, make_category):
    category = await make_category("Shopping", user.id)
    rule = await RuleService(session).create_rule(
        RuleCreate(pattern="Amazon", category_id=category.id, priority=10), user.id
    )
    assert rule["pattern"] == "amazon"
    assert rule["priority"] == 10
    assert rule["category_name"] == "Shopping"
    assert rule["is_active"] is True
    assert rule["archived_at"] is None


@pytest.mark.asyncio
async def test_create_rule_with_system_category(session, user, make_category):
    category = await make_category("Transport", is_system=True)
    rule = await RuleService(session).create_rule(
        RuleCreate(pattern="sncf", category_id=category.id, priority=1), user.id
    )
    assert rule["category_id"] == category.id


@pytest.mark.asyncio
async def test_priority_is_unique_per_user(session, user, other_user, make_category):
    mine = await make_category("Mine", user.id)
    theirs = await make_category("Theirs", other_user.id)
    service = RuleService(session)
    await service.create_rule(RuleCreate(pattern="amazon", category_id=mine.id, priority=1), user.id)

    with pytest.raises(AlreadyExistsError):
        await service.create_rule(RuleCreate(pattern="ebay", category_id=mine.id, priority=1), user.id)
    # Another user may use the same priority.
    await service.create_rule(RuleCreate(pattern="ebay", category_id=theirs.id, priority=1), other_user.id)


@pytest.mark.asyncio
async def test_create_rule_with_foreign_category(session, user, other_user, make_category):
    theirs = await make_category("Theirs", other_user.id)
    with pytest.raises(NotFoundError):
        await RuleService(session).create_rule(
            RuleCreate(pattern="amazon", category_id=theirs.id, priority=1), user.id
        )


@pytest.mark.asyncio
async def test_rule_ownership(session, user, other_user, make_category, make_rule):
    category = await make_category("Theirs", other_user.id)
    rule = await make_rule(other_user.id, "amazon", category.id, priority=1)
    service = RuleService(session)

    with pytest.raises(ForbiddenError):
        await service.get_rule(rule.id, user.id)
    with pytest.raises(ForbiddenError):
        await service.delete_rule(rule.id, user.id)
    with pytest.raises(NotFoundError):
        await service.get_rule(9999, user.id)


@pytest.mark.asyncio
async def test_update_rule(session, user, make_category, make_rule):
    shopping = await make_category("Shopping", user.id)
    books = await make_category("Books", user.id)
    rule = await make_rule(user.id, "amazon", shopping.id, priority=1)
    await make_rule(user.id, "ebay", shopping.id, priority=2)
    service = RuleService(session)

    updated = await service.update_rule(
        rule.id, RuleUpdate(pattern="Amazon Books", category_id=books.id, priority=3), user.id
    )
    assert updated["pattern"] == "amazon books"
    assert updated["category_name"] == "Books"
    assert updated["priority"] == 3

    with pytest.raises(AlreadyExistsError):
        await service.update_rule(rule.id, RuleUpdate(priority=2), user.id)
    # Keeping its own priority is not a conflict.
    await service.update_rule(rule.id, RuleUpdate(priority=3), user.id)


@pytest.mark.asyncio
async def test_delete_rule_frees_priority(session, user, make_category, make_rule):
    category = await make_category("Shopping", user.id)
    rule = await make_rule(user.id, "amazon", category.id, priority=1)
    service = RuleService(session)

    await service.delete_rule(rule.id, user.id)

    assert await service.list_rules(user.id) == []
    created = await service.create_rule(RuleCreate(pattern="ebay", category_id=category.id, priority=1), user.id)
    assert created["priority"] == 1


@pytest.mark.asyncio
async def test_archive_and_restore(session, user, make_category, make_rule):
    category = await make_category("Shopping", user.id)
    rule = await make_rule(user.id, "amazon", category.id, priority=1)
    await make_rule(user.id, "ebay", category.id, priority=2)
    service = RuleService(session)

    archived = await service.archive_rule(rule.id, user.id)
    assert archived["is_active"] is False
    assert archived["archived_at"] is not None
    assert [r["pattern"] for r in await service.list_rules(user.id, archived=True)] == ["amazon"]
    assert [r["pattern"] for r in await service.list_rules(user.id, archived=False)] == ["ebay"]
    assert len(await service.list_rules(user.id)) == 2

    restored = await service.restore_rule(rule.id, user.id)
    assert restored["is_active"] is True
    assert restored["archived_at"] is None


# ── Ordering ───────────────────────────────────────


@pytest.mark.asyncio
async def test_reorder_swaps_priorities(session, user, make_category, make_rule):
    category = await make_category("Shopping", user.id)
    first = await make_rule(user.id, "amazon", category.id, priority=1)
    second = await make_rule(user.id, "ebay", category.id, priority=2)
    service = RuleService(session)

    await service.reorder(user.id, [
        RuleReorderItem(id=first.id, priority=2),
        RuleReorderItem(id=second.id, priority=1),
    ])

    rules = await service.list_rules(user.id)
    assert [(r["pattern"], r["priority"]) for r in rules] == [("ebay", 1), ("amazon", 2)]


@pytest.mark.asyncio
async def test_reorder_validation(session, user, other_user, make_category, make_rule):
    mine = await make_category("Mine", user.id)
    theirs = await make_category("Theirs", other_user.id)
    first = await make_rule(user.id, "amazon", mine.id, priority=1)
    second = await make_rule(user.id, "ebay", mine.id, priority=2)
    await make_rule(user.id, "fnac", mine.id, priority=3)
    foreign = await make_rule(other_user.id, "uber", theirs.id, priority=1)
    service = RuleService(session)

    with pytest.raises(ValidationError):
        await service.reorder(user.id, [
            RuleReorderItem(id=first.id, priority=5),
            RuleReorderItem(id=second.id, priority=5),
        ])
    with pytest.raises(ValidationError):
        await service.reorder(user.id, [
            RuleReorderItem(id=first.id, priority=5),
            RuleReorderItem(id=first.id, priority=6),
        ])
    with pytest.raises(ForbiddenError):
        await service.reorder(user.id, [RuleReorderItem(id=foreign.id, priority=9)])
    with pytest.raises(NotFoundError):
        await service.reorder(user.id, [RuleReorderItem(id=9999, priority=9)])
    with pytest.raises(AlreadyExistsError):
        await service.reorder(user.id, [RuleReorderItem(id=first.id, priority=3)])

    rules = await service.list_rules(user.id)
    assert [r["priority"] for r in rules] == [1, 2, 3]


# ── Export / import ────────────────────────────────


@pytest.mark.asyncio
async def test_export_csv(session, user, make_category, make_rule):
    category = await make_category("Shopping", user.id)
    await make_rule(user.id, "ebay", category.id, priority=2)
    await make_rule(user.id, "amazon", category.id, priority=1)
    await make_rule(user.id, "old", category.id, priority=3, archived=True)

    export = await RuleService(session).export_rules(user.id, "csv")

    assert export["filename"].startswith("auto-rules-")
    assert export["filename"].endswith(".csv")
    assert export["data"] == (
        "Pattern,Category ID,Priority\n"
        f"amazon,{category.id},1\n"
        f"ebay,{category.id},2\n"
    )


@pytest.mark.asyncio
async def test_export_json(session, user, make_category, make_rule):
    category = await make_category("Shopping", user.id)
    await make_rule(user.id, "amazon", category.id, priority=1)

    export = await RuleService(session).export_rules(user.id)

    assert export["filename"].endswith(".json")
    [rule] = export["data"]
    assert rule["pattern"] == "amazon"
    assert rule["category_name"] == "Shopping"


@pytest.mark.asyncio
async def test_import_skips_duplicates(session, user, make_category, make_rule):
    category = await make_category("Shopping", user.id)
    await make_rule(user.id, "amazon", category.id, priority=1)
    service = RuleService(session)

    result = await service.import_rules(user.id, RuleImportRequest(rules=[
        RuleImportItem(pattern="AMAZON", category_id=category.id, priority=7),
        RuleImportItem(pattern="uber", category_id=category.id),
    ]))

    assert result == {"imported": 1, "skipped": 1, "errors": []}
    rules = await service.list_rules(user.id)
    assert [(r["pattern"], r["priority"]) for r in rules] == [("amazon", 1), ("uber", 2)]


@pytest.mark.asyncio
async def test_import_merge_updates_priority(session, user, make_category, make_rule):
    category = await make_category("Shopping", user.id)
    await make_rule(user.id, "amazon", category.id, priority=1)
    service = RuleService(session)

    result = await service.import_rules(user.id, RuleImportRequest(
        rules=[RuleImportItem(pattern="amazon", category_id=category.id, priority=5)],
        merge_strategy="merge",
    ))

    assert result == {"imported": 1, "skipped": 0, "errors": []}
    [rule] = await service.list_rules(user.id)
    assert rule["priority"] == 5


@pytest.mark.asyncio
async def test_import_collects_row_errors(session, user, make_category, make_rule):
    category = await make_category("Shopping", user.id)
    await make_rule(user.id, "amazon", category.id, priority=1)
    service = RuleService(session)

    result = await service.import_rules(user.id, RuleImportRequest(rules=[
        RuleImportItem(pattern="ebay", category_id=9999),
        RuleImportItem(pattern="  ", category_id=category.id),
        RuleImportItem(pattern="fnac", category_id=category.id, priority=1),
        RuleImportItem(pattern="uber", category_id=category.id, priority=4),
    ]))

    assert result["imported"] == 1
    assert result["errors"] == [
        "Row 0: Category 9999 not found",
        "Row 1: Pattern must not be blank",
        "Row 2: Priority 1 is already used by another rule",
    ]
    assert [r["pattern"] for r in await service.list_rules(user.id)] == ["amazon", "uber"]
