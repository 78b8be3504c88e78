"""Keyword retrieval over the static corpus (no embeddings, no index)."""

from __future__ import annotations

import logging
from typing import Iterable

from corpus import Corpus, get_default_corpus
from entities import TICKER_ALIASES
from models import Document, ScoredDocument
from text_utils import count_occurrences, extract_query_terms

HEADLINE_BONUS_WEIGHT = 1

LOGGER = logging.getLogger(__name__)


def expand_terms(terms: Iterable[str]) -> list[str]:
    """Append each term's mapped ticker (lowercase) right after the term."""
    expanded: list[str] = []
    for term in terms:
        expanded.append(term)
        ticker = TICKER_ALIASES.get(term)
        if ticker:
            expanded.append(ticker.lower())
    return expanded


def score_document(document: Document, terms: Iterable[str]) -> int:
    """Term-frequency score: each hit in headline+body counts once and each
    hit in the headline counts once more."""
    full_text = document.text.lower()
    headline = document.headline.lower()

    score = 0
    for term in terms:
        hits = count_occurrences(term, full_text)
        if not hits:
            continue
        score += hits
        score += count_occurrences(term, headline) * HEADLINE_BONUS_WEIGHT
    return score


def retrieve(
    query: str,
    max_results: int,
    entity_filter: Iterable[str] | None = None,
    corpus: Corpus | None = None,
) -> list[ScoredDocument]:
    """Rank the corpus against ``query`` and return up to ``max_results`` hits.

    Highest score first; equal scores keep corpus order. A query with no
    usable terms returns an empty list. ``entity_filter`` accepts tickers or
    company names ("apple" filters on AAPL).
    """
    corpus = corpus if corpus is not None else get_default_corpus()
    terms = expand_terms(extract_query_terms(query))
    if not terms or max_results <= 0:
        LOGGER.info("Retrieval: query=%r has no usable terms", query)
        return []

    wanted = {
        TICKER_ALIASES.get(value.strip().lower(), value.strip()).upper()
        for value in entity_filter or ()
        if value and value.strip()
    }

    scored: list[ScoredDocument] = []
    for document in corpus:
        if wanted and not (document.entities & wanted):
            continue
        score = score_document(document, terms)
        if score > 0:
            scored.append(ScoredDocument(document=document, relevance_score=float(score)))

    # sorted() is stable, so ties stay in corpus order.
    ranked = sorted(scored, key=lambda item: item.relevance_score, reverse=True)[:max_results]

    LOGGER.info(
        "Retrieval: query=%r terms=%s entity_filter=%s matched=%s returned=%s",
        query,
        terms,
        sorted(wanted) or None,
        len(scored),
        len(ranked),
    )
    return ranked
