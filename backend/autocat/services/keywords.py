"""Keyword extraction for learned-pattern matching.

Descriptions are reduced to a deduplicated list of lowercase significant words.
There is no stemming: "uber" and "ubers" are different keywords and only meet
through the loose substring test in ``keyword_matches``.
"""

import re

MIN_KEYWORD_LENGTH = 3

STOPWORDS = frozenset({
    "the", "and", "for", "with", "from", "to", "at", "in", "on", "over",
    "is", "are", "was", "were", "be", "been", "have", "has",
    "had", "do", "does", "did", "will", "would", "could", "should",
    "may", "might", "can", "a", "an", "or", "as", "by", "of", "this",
    "that", "these", "those", "i", "you", "he", "she", "it", "we", "they",
})

_NON_KEYWORD_CHARS = re.compile(r"[^\w\-]")


def extract_keywords(description: str | None) -> list[str]:
    """Return the significant words of a description, in first-seen order."""
    if not description:
        return []

    keywords: dict[str, None] = {}
    for word in description.lower().split():
        word = _NON_KEYWORD_CHARS.sub("", word)
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOPWORDS:
            keywords.setdefault(word, None)
    return list(keywords)


def keyword_matches(keyword: str, keywords: list[str]) -> bool:
    """True if ``keyword`` contains, or is contained in, any of ``keywords``."""
    keyword = keyword.lower()
    return any(keyword in candidate or candidate in keyword for candidate in keywords)
