"""Keyword, contact-format and question-similarity matching.

Pure functions, no state. Used by flow triggers, condition operators,
lead capture and the knowledge-base ranker.
"""
import re
from typing import Iterable, List

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_PATTERN = re.compile(r'^[+]?[\d\s\-()]{10,}$')


def contains_keyword(message: str, keyword: str) -> bool:
    """Case-insensitive substring test."""
    return keyword.lower() in message.lower()


def split_keywords(keywords: str) -> List[str]:
    """Split a comma-separated keyword list, trimmed and lower-cased.

    Blank entries are dropped so that "a,,b" or a trailing comma cannot
    produce an empty keyword that matches every message.
    """
    return [k.strip().lower() for k in keywords.split(',') if k.strip()]


def matches_any_keyword(message: str, keywords: str) -> bool:
    message_lower = message.lower()
    return any(keyword in message_lower for keyword in split_keywords(keywords))


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value))


def is_valid_phone(value: str) -> bool:
    """At least 10 digit-ish characters (digits, spaces, dashes, parens), optional leading +."""
    return bool(PHONE_PATTERN.match(value))


def tokenize(text: str) -> List[str]:
    return text.lower().split()


def word_overlap_score(a: str, b: str) -> float:
    """Fraction of the tokens of `a` that fuzzily appear in `b`.

    A token of `a` counts as matched when it is a substring of some token of
    `b`, or some token of `b` is a substring of it.

    Args:
        a: Reference text (a knowledge-base question)
        b: Candidate text (the visitor's message)

    Returns:
        Score in [0, 1]; 0 when `a` has no tokens
    """
    a_tokens = tokenize(a)
    if not a_tokens:
        return 0.0

    b_tokens = tokenize(b)
    matched = [
        token for token in a_tokens
        if any(token in other or other in token for other in b_tokens)
    ]
    return len(matched) / len(a_tokens)


def keyword_hit_ratio(message: str, keywords: Iterable[str]) -> float:
    """Share of keywords found (case-insensitive substring) in the message; 0 with no keywords."""
    keywords = list(keywords)
    if not keywords:
        return 0.0

    message_lower = message.lower()
    hits = [keyword for keyword in keywords if keyword.lower() in message_lower]
    return len(hits) / max(1, len(keywords))
