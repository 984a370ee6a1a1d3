"""Matching of descriptions against explicit rules and learned patterns.

Both matchers are pure: they receive rows already fetched by the repositories
and never touch the database.
"""

from collections.abc import Iterable

from autocat.models.auto_category_rule import AutoCategoryRule
from autocat.models.auto_category_suggestion_log import SuggestionSource
from autocat.models.learned_category_pattern import LearnedCategoryPattern
from autocat.schemas.categorization import Suggestion
from autocat.services.keywords import extract_keywords, keyword_matches

RULE_CONFIDENCE = 100


def match_rules(rules: Iterable[AutoCategoryRule], description: str) -> Suggestion:
    """Return a suggestion from the first rule whose pattern occurs in the description.

    ``rules`` must already be ordered by ascending priority.
    """
    for rule in rules:
        if rule.matches(description):
            return Suggestion(
                suggested_category_id=rule.category_id,
                confidence_score=RULE_CONFIDENCE,
                matched_keywords=[rule.pattern],
                source=SuggestionSource.RULE_EXACT,
            )
    return Suggestion.empty()


def match_learned_patterns(
    patterns: Iterable[LearnedCategoryPattern],
    description: str,
) -> Suggestion:
    """Return a suggestion from the highest-confidence learned pattern that matches.

    Patterns are grouped by category in the order they arrive. The reported
    keywords are the ones accumulated for the winning category at the moment
    its best confidence was recorded; later matches in that category that do
    not beat it are not added.
    """
    keywords = extract_keywords(description)
    if not keywords:
        return Suggestion.empty()

    by_category: dict[int, list[LearnedCategoryPattern]] = {}
    for pattern in patterns:
        by_category.setdefault(pattern.category_id, []).append(pattern)

    best_category: int | None = None
    best_confidence = 0
    matched_keywords: list[str] = []

    for category_id, category_patterns in by_category.items():
        category_keywords: list[str] = []
        for pattern in category_patterns:
            if not keyword_matches(pattern.keyword, keywords):
                continue
            category_keywords.append(pattern.keyword)
            if pattern.confidence_score > best_confidence:
                best_confidence = pattern.confidence_score
                best_category = category_id
                matched_keywords = list(category_keywords)

    if best_category is None:
        return Suggestion.empty()

    return Suggestion(
        suggested_category_id=best_category,
        confidence_score=best_confidence,
        matched_keywords=matched_keywords,
        source=SuggestionSource.LEARNED_KEYWORD,
    )
