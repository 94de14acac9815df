"""Lexical relevance scoring over a document's text fields."""

from dataclasses import dataclass
from typing import List, Optional

from docstore_search.storage.models import Document


# Per-field weights. Not derived from measurement; treat as tuning parameters.
FILENAME_WEIGHT = 0.4
TEXT_WEIGHT = 0.3
TAG_WEIGHT = 0.2
DEPARTMENT_WEIGHT = 0.1

MIN_TOKEN_LENGTH = 3


@dataclass(frozen=True)
class FieldWeights:
    filename: float = FILENAME_WEIGHT
    text: float = TEXT_WEIGHT
    tags: float = TAG_WEIGHT
    department: float = DEPARTMENT_WEIGHT


def tokenize_query(query: Optional[str]) -> List[str]:
    """Lowercase, split on whitespace, drop tokens of two characters or fewer."""
    if not query:
        return []
    return [token for token in query.lower().split() if len(token) >= MIN_TOKEN_LENGTH]


def _match_ratio(tokens: List[str], haystack: str) -> float:
    matches = sum(1 for token in tokens if token in haystack)
    return matches / len(tokens)


def keyword_score(
    document: Document,
    query: Optional[str],
    weights: FieldWeights = FieldWeights()
) -> float:
    """
    Score a document's lexical relevance to a query, in [0, 1].

    A token matches a field when it is a substring of the lowercased field.
    Extracted text and department are skipped when absent. A blank query
    scores 1.0; a query whose tokens are all too short scores 0.0.
    """
    if not query or not query.strip():
        return 1.0

    tokens = tokenize_query(query)
    if not tokens:
        return 0.0

    score = _match_ratio(tokens, document.filename.lower()) * weights.filename

    if document.extracted_text:
        score += _match_ratio(tokens, document.extracted_text.lower()) * weights.text

    lowered_tags = [tag.lower() for tag in document.tags]
    tag_matches = sum(1 for token in tokens if any(token in tag for tag in lowered_tags))
    score += (tag_matches / len(tokens)) * weights.tags

    if document.department:
        score += _match_ratio(tokens, document.department.lower()) * weights.department

    return min(score, 1.0)


def matches_whole_query(document: Document, query: Optional[str]) -> bool:
    """
    Containment match for queries that tokenize to nothing.

    True when filename, extracted text or department contains the whole
    lowercased query, or a tag equals it.
    """
    needle = (query or "").strip().lower()
    if not needle:
        return True

    if needle in document.filename.lower():
        return True
    if document.extracted_text and needle in document.extracted_text.lower():
        return True
    if document.department and needle in document.department.lower():
        return True
    return any(tag.lower() == needle for tag in document.tags)
