"""Near-duplicate removal using token-set Jaccard similarity."""

from __future__ import annotations

import logging
import os
import re
from typing import Sequence

from models import DeduplicationOutcome, DuplicateDocument, ScoredDocument

DEDUP_SIMILARITY_THRESHOLD = float(os.getenv("DEDUP_SIMILARITY_THRESHOLD", "0.6"))
DUPLICATE_REASON = "Similar content already included"

_PUNCTUATION = re.compile(r"[^\w\s]")

LOGGER = logging.getLogger(__name__)


def tokenize(text: str | None) -> frozenset[str]:
    """Lowercase word set with punctuation stripped and tokens of length <= 2 dropped."""
    if not text:
        return frozenset()
    return frozenset(
        word for word in _PUNCTUATION.sub("", text.lower()).split() if len(word) > 2
    )


def jaccard_similarity(text_a: str | None, text_b: str | None) -> float:
    """|A ∩ B| / |A ∪ B| over the two token sets; 0.0 when both are empty."""
    return _jaccard(tokenize(text_a), tokenize(text_b))


def _jaccard(tokens_a: frozenset[str], tokens_b: frozenset[str]) -> float:
    union = tokens_a | tokens_b
    if not union:
        return 0.0
    return len(tokens_a & tokens_b) / len(union)


def deduplicate(
    documents: Sequence[ScoredDocument],
    threshold: float = DEDUP_SIMILARITY_THRESHOLD,
) -> DeduplicationOutcome:
    """Split ``documents`` into kept and duplicate members.

    Documents are visited from most to least credible (stable on ties) and
    compared against everything kept so far, so the most trusted member of a
    near-duplicate cluster is the one that survives.
    """
    if not documents:
        return DeduplicationOutcome(unique=(), duplicates=())

    ordered = sorted(documents, key=lambda item: item.credibility_score, reverse=True)

    kept: list[tuple[ScoredDocument, frozenset[str]]] = []
    duplicates: list[DuplicateDocument] = []

    for item in ordered:
        tokens = tokenize(item.document.text)
        collision: tuple[str, float] | None = None
        for kept_item, kept_tokens in kept:
            similarity = _jaccard(tokens, kept_tokens)
            if similarity >= threshold:
                collision = (kept_item.doc_id, similarity)
                break

        if collision is None:
            kept.append((item, tokens))
        else:
            duplicates.append(
                DuplicateDocument(
                    scored=item,
                    reason=DUPLICATE_REASON,
                    matched_doc_id=collision[0],
                    similarity=round(collision[1], 4),
                )
            )

    unique = tuple(item for item, _ in kept)
    LOGGER.info(
        "Deduplication: %s documents -> %s unique, %s duplicates removed (threshold=%s)",
        len(documents),
        len(unique),
        len(duplicates),
        threshold,
    )
    return DeduplicationOutcome(unique=unique, duplicates=tuple(duplicates))


def similarity_matrix(documents: Sequence[ScoredDocument]) -> list[list[float]]:
    """Pairwise similarity of every document pair; the diagonal is 1.0."""
    token_sets = [tokenize(item.document.text) for item in documents]
    matrix: list[list[float]] = []
    for i, tokens_i in enumerate(token_sets):
        row = []
        for j, tokens_j in enumerate(token_sets):
            row.append(1.0 if i == j else _jaccard(tokens_i, tokens_j))
        matrix.append(row)
    return matrix
