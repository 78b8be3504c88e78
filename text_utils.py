"""Query normalization and guarded term matching shared by the pipeline stages."""

from __future__ import annotations

import re
from typing import Iterable

from entities import SHORT_TERM_ALLOWLIST

_NON_WORD = re.compile(r"[^\w\s]")

# Prefix matches only count between strings of at least this length, and only
# when the shorter string covers most of the longer one. Keeps "bank" from
# matching "bankruptcy" and "gold" from matching "goldman".
PREFIX_MIN_LENGTH = 4
PREFIX_MIN_COVERAGE = 0.8


def normalize_text(text: str | None) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace."""
    if not text:
        return ""
    return " ".join(_NON_WORD.sub(" ", text.lower()).split())


def extract_query_terms(query: str | None) -> list[str]:
    """Split a query into meaningful lowercase terms.

    Terms longer than two characters are kept, plus the short allow-list
    (``ai``, ``ev``, ``q1``..``q4``). Order and repeats are preserved.
    """
    return [
        term
        for term in normalize_text(query).split()
        if len(term) > 2 or term in SHORT_TERM_ALLOWLIST
    ]


def count_occurrences(term: str, text: str) -> int:
    """Count ``term`` in already-lowercased ``text``.

    Short allow-listed terms are counted as whole words only; "ai" would
    otherwise match inside "said" and "again".
    """
    if not term:
        return 0
    if len(term) <= 2:
        return len(re.findall(rf"\b{re.escape(term)}\b", text))
    return text.count(term)


def contains_term(term: str, text: str) -> bool:
    return count_occurrences(term, text) > 0


def terms_match(term: str, candidate: str) -> bool:
    """Exact match, or a prefix match between two long-enough strings where
    the shorter covers at least PREFIX_MIN_COVERAGE of the longer."""
    if term == candidate:
        return True
    shorter, longer = sorted((term, candidate), key=len)
    if len(shorter) < PREFIX_MIN_LENGTH:
        return False
    if not longer.startswith(shorter):
        return False
    return len(shorter) / len(longer) >= PREFIX_MIN_COVERAGE


def matching_terms(terms: Iterable[str], normalized_query: str, variant: str) -> list[str]:
    """Return the query terms (or the phrase itself) that hit ``variant``.

    Multi-word variants match when the phrase appears in the normalized query.
    """
    if " " in variant:
        return [variant] if f" {variant} " in f" {normalized_query} " else []
    return [term for term in terms if terms_match(term, variant)]
