"""Suggestion engine, auto-apply policy, overlap and coverage tests."""

from datetime import date

import pytest

from autocat.core.exceptions import ValidationError
from autocat.models import AUTO_APPLY_THRESHOLD_KEY, SuggestionSource
from autocat.services.categorization_service import OVERLAP_WARNING, CategorizationService
from autocat.services.repositories import SettingRepository


# ── Auto-apply policy ──────────────────────────────


@pytest.mark.asyncio
async def test_default_threshold_is_90(session):
    service = CategorizationService(session)
    assert await service.get_auto_apply_threshold() == 90
    assert await service.should_auto_apply(90) is True
    assert await service.should_auto_apply(89) is False


@pytest.mark.asyncio
async def test_injected_threshold_out_of_range(session):
    assert await CategorizationService(session, auto_apply_threshold=101).should_auto_apply(100) is False
    assert await CategorizationService(session, auto_apply_threshold=-1).should_auto_apply(0) is True


@pytest.mark.asyncio
async def test_threshold_change_applies_without_restart(session, session_factory):
    service = CategorizationService(session)
    assert await service.should_auto_apply(60) is False
    await session.commit()

    async with session_factory() as admin:
        await SettingRepository(admin).set_value(AUTO_APPLY_THRESHOLD_KEY, 50, value_type="integer")
        await admin.commit()

    assert await service.should_auto_apply(60) is True
    await session.commit()

    async with session_factory() as admin:
        await SettingRepository(admin).set_value(AUTO_APPLY_THRESHOLD_KEY, 70)
        await admin.commit()

    assert await service.should_auto_apply(60) is False


@pytest.mark.asyncio
async def test_unparsable_threshold_falls_back_to_default(session):
    await SettingRepository(session).set_value(AUTO_APPLY_THRESHOLD_KEY, "high", value_type="integer")
    assert await CategorizationService(session).get_auto_apply_threshold() == 90


# ── Suggestions ────────────────────────────────────


@pytest.mark.asyncio
async def test_rule_beats_learned_pattern(session, user, make_category, make_rule, make_pattern, make_transaction):
    shopping = await make_category("Shopping", user.id)
    books = await make_category("Books", user.id)
    await make_rule(user.id, "amazon", shopping.id, priority=1)
    await make_pattern(user.id, "amazon", books.id, confidence_score=95)
    txn = await make_transaction(user.id, "AMAZON Marketplace order")

    suggestion = await CategorizationService(session).suggest(txn)

    assert suggestion.suggested_category_id == shopping.id
    assert suggestion.confidence_score == 100
    assert suggestion.source == SuggestionSource.RULE_EXACT
    assert suggestion.should_auto_apply is True


@pytest.mark.asyncio
async def test_priority_order_decides_between_matching_rules(session, user, make_category, make_rule, make_transaction):
    groceries = await make_category("Groceries", user.id)
    food = await make_category("Food", user.id)
    await make_rule(user.id, "foods", food.id, priority=20)
    await make_rule(user.id, "whole foods", groceries.id, priority=10)
    txn = await make_transaction(user.id, "Whole Foods Store")

    suggestion = await CategorizationService(session).suggest(txn)
    assert suggestion.suggested_category_id == groceries.id


@pytest.mark.asyncio
async def test_inactive_and_archived_rules_are_ignored(session, user, make_category, make_rule, make_transaction):
    category = await make_category("Streaming", user.id)
    await make_rule(user.id, "netflix", category.id, priority=1, is_active=False)
    await make_rule(user.id, "netflix", category.id, priority=2, archived=True)
    txn = await make_transaction(user.id, "NETFLIX.COM")

    assert (await CategorizationService(session).suggest(txn)).is_empty


@pytest.mark.asyncio
async def test_learned_pattern_needs_75_confidence(session, user, make_category, make_pattern, make_transaction):
    coffee = await make_category("Coffee", user.id)
    await make_pattern(user.id, "starbucks", coffee.id, confidence_score=74)
    txn = await make_transaction(user.id, "STARBUCKS Paris")
    service = CategorizationService(session)

    assert (await service.suggest(txn)).is_empty

    await make_pattern(user.id, "paris", coffee.id, confidence_score=75)
    suggestion = await service.suggest(txn)
    assert suggestion.suggested_category_id == coffee.id
    assert suggestion.confidence_score == 75
    assert suggestion.matched_keywords == ["paris"]
    assert suggestion.source == SuggestionSource.LEARNED_KEYWORD
    assert suggestion.should_auto_apply is False


@pytest.mark.asyncio
async def test_disabled_pattern_is_ignored(session, user, make_category, make_pattern, make_transaction):
    coffee = await make_category("Coffee", user.id)
    await make_pattern(user.id, "starbucks", coffee.id, confidence_score=95, is_active=False)
    txn = await make_transaction(user.id, "STARBUCKS Paris")
    assert (await CategorizationService(session).suggest(txn)).is_empty


@pytest.mark.asyncio
async def test_blank_description_gives_empty_suggestion(session, user, make_category, make_rule, make_transaction):
    category = await make_category("Anything", user.id)
    await make_rule(user.id, " ", category.id, priority=1)
    service = CategorizationService(session)

    for description in (None, "", "   "):
        txn = await make_transaction(user.id, description)
        assert (await service.suggest(txn)).is_empty


@pytest.mark.asyncio
async def test_other_owners_rules_do_not_apply(session, user, other_user, make_category, make_rule, make_transaction):
    category = await make_category("Travel", other_user.id)
    await make_rule(other_user.id, "sncf", category.id, priority=1)
    txn = await make_transaction(user.id, "SNCF ticket")
    assert (await CategorizationService(session).suggest(txn)).is_empty


@pytest.mark.asyncio
async def test_log_suggestion_skips_empty(session, user, make_category, make_rule, make_transaction):
    category = await make_category("Streaming", user.id)
    await make_rule(user.id, "netflix", category.id, priority=1)
    service = CategorizationService(session)

    txn = await make_transaction(user.id, "NETFLIX.COM monthly")
    log = await service.log_suggestion(txn, await service.suggest(txn))
    assert log.id is not None
    assert log.source == "rule_exact"
    assert log.matched_keywords == ["netflix"]
    assert log.user_action is None

    unmatched = await make_transaction(user.id, "Corner bakery")
    assert await service.log_suggestion(unmatched, await service.suggest(unmatched)) is None


# ── Overlaps ───────────────────────────────────────


@pytest.mark.asyncio
async def test_detect_overlaps(session, user, make_category, make_rule):
    category = await make_category("Shopping", user.id)
    amazon = await make_rule(user.id, "amazon", category.id, priority=1)
    store = await make_rule(user.id, "amazon store", category.id, priority=2)
    await make_rule(user.id, "netflix", category.id, priority=3)
    await make_rule(user.id, "amazon prime", category.id, priority=4, archived=True)

    overlaps = await CategorizationService(session).detect_overlaps(user.id)

    assert len(overlaps) == 1
    overlap = overlaps[0]
    assert (overlap.rule_1_id, overlap.rule_2_id) == (amazon.id, store.id)
    assert (overlap.rule_1_priority, overlap.rule_2_priority) == (1, 2)
    assert overlap.warning == OVERLAP_WARNING


@pytest.mark.asyncio
async def test_no_overlaps_for_distinct_patterns(session, user, make_category, make_rule):
    category = await make_category("Shopping", user.id)
    await make_rule(user.id, "amazon", category.id, priority=1)
    await make_rule(user.id, "ebay", category.id, priority=2)
    assert await CategorizationService(session).detect_overlaps(user.id) == []


# ── Coverage ───────────────────────────────────────


@pytest.mark.asyncio
async def test_coverage_counts_matches(session, user, make_category, make_rule, make_transaction):
    shopping = await make_category("Shopping", user.id)
    await make_rule(user.id, "amazon", shopping.id, priority=1)

    for description in ("Amazon order 1", "AMAZON order 2", "amazon.fr refund", "Corner bakery", None):
        await make_transaction(user.id, description)
    # Outside the report: already categorized, deleted, or out of range.
    await make_transaction(user.id, "Amazon categorized", category_id=shopping.id)
    await make_transaction(user.id, "Amazon deleted", deleted=True)
    await make_transaction(user.id, "Amazon last year", txn_date=date(2025, 6, 1))

    report = await CategorizationService(session).test_coverage(user.id, date(2026, 1, 1), date(2026, 1, 31))

    assert report.total_uncategorized == 5
    assert report.would_be_categorized == 3
    assert report.coverage_percentage == 60
    assert len(report.by_category) == 1
    coverage = report.by_category[0]
    assert coverage.category_id == shopping.id
    assert coverage.category_name == "Shopping"
    assert coverage.count == 3
    assert coverage.average_confidence == 100
    assert coverage.source == SuggestionSource.RULE_EXACT
    assert report.uncovered_reasons == {"No matching pattern": 1, "Missing description": 1}


@pytest.mark.asyncio
async def test_coverage_blank_description_is_unmatched_not_missing(session, user, make_transaction):
    await make_transaction(user.id, "   ")
    await make_transaction(user.id, "")
    await make_transaction(user.id, None)

    report = await CategorizationService(session).test_coverage(user.id, date(2026, 1, 1), date(2026, 1, 31))

    assert report.would_be_categorized == 0
    assert report.uncovered_reasons == {"No matching pattern": 1, "Missing description": 2}


@pytest.mark.asyncio
async def test_coverage_percentage_is_truncated(session, user, make_category, make_rule, make_transaction):
    category = await make_category("Shopping", user.id)
    await make_rule(user.id, "amazon", category.id, priority=1)
    for description in ("Amazon", "Bakery", "Cinema"):
        await make_transaction(user.id, description)

    report = await CategorizationService(session).test_coverage(user.id, date(2026, 1, 1), date(2026, 1, 31))
    assert report.coverage_percentage == 33


@pytest.mark.asyncio
async def test_coverage_with_no_transactions(session, user):
    report = await CategorizationService(session).test_coverage(user.id, date(2026, 1, 1), date(2026, 1, 31))
    assert report.total_uncategorized == 0
    assert report.would_be_categorized == 0
    assert report.coverage_percentage == 0
    assert report.by_category == []
    assert report.uncovered_reasons == {}


@pytest.mark.asyncio
async def test_coverage_rejects_inverted_range(session, user):
    with pytest.raises(ValidationError):
        await CategorizationService(session).test_coverage(user.id, date(2026, 2, 1), date(2026, 1, 1))
