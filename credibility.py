"""Source credibility scoring.

Every document gets a trust score from its provenance: a base score for its
source type, nudged by a small per-outlet reputation table. The score maps to
a display tier so the end user can see *why* a source was weighted the way
it was.

Tiers (by final score):
    HIGH        >= 0.90   company IR, filings, premium wire services
    MEDIUM      >= 0.70   major publications, analyst research
    LOW         >= 0.50   lower-tier outlets
    UNVERIFIED  <  0.50   social media, unclassified sources
"""

from __future__ import annotations

import logging
from dataclasses import replace
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from models import CredibilityAssessment, Document, ScoredDocument

MIN_SCORE = 0.1
MAX_SCORE = 1.0

BASE_SCORES: Mapping[str, float] = MappingProxyType({
    "official": 0.95,
    "major_publication": 0.85,
    "analyst": 0.75,
    "social_media": 0.40,
    "unknown": 0.30,
})

# Exact source name -> adjustment applied on top of the base score.
SOURCE_ADJUSTMENTS: Mapping[str, float] = MappingProxyType({
    "Bloomberg": 0.05,
    "Reuters": 0.05,
    "Financial Times": 0.05,
    "Apple Investor Relations": 0.05,
    "Microsoft Blog": 0.03,
    "NVIDIA Investor Relations": 0.05,
    "Tesla IR": 0.05,
    "TechCrunch": -0.10,
    "DigiTimes": -0.15,
    "Electrek": -0.05,
    "@elonmusk": 0.10,
    "@mingchikuo": 0.05,
    "Reddit r/teslamotors": -0.10,
})

TIER_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (0.90, "HIGH"),
    (0.70, "MEDIUM"),
    (0.50, "LOW"),
)
TIERS: tuple[str, ...] = ("HIGH", "MEDIUM", "LOW", "UNVERIFIED")

_EXPLANATIONS: Mapping[str, str] = MappingProxyType({
    "official": "Official company source ({source}) - highest reliability",
    "major_publication": "Major financial publication ({source}) - professionally verified",
    "analyst": "Professional analyst research ({source}) - expert opinion",
    "social_media": "Social media source ({source}) - requires verification",
    "unknown": "Unclassified source - credibility uncertain",
})

LOGGER = logging.getLogger(__name__)


def tier_for_score(score: float) -> str:
    for threshold, tier in TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return "UNVERIFIED"


def assess(document: Document) -> CredibilityAssessment:
    """Score a document from its source type and source name. Never raises."""
    source_type = document.source_type if document.source_type in BASE_SCORES else "unknown"
    adjustment = SOURCE_ADJUSTMENTS.get(document.source, 0.0)
    # Rounded so that e.g. 0.85 + 0.05 lands exactly on the 0.90 tier boundary.
    score = round(min(MAX_SCORE, max(MIN_SCORE, BASE_SCORES[source_type] + adjustment)), 4)

    return CredibilityAssessment(
        score=score,
        tier=tier_for_score(score),
        source_type=source_type,
        explanation=_EXPLANATIONS[source_type].format(source=document.source or "unnamed"),
    )


def filter_by_credibility(
    documents: Iterable[ScoredDocument], min_score: float
) -> list[ScoredDocument]:
    """Attach assessments and keep documents scoring at least ``min_score``.

    Input order is preserved; the input items are not modified.
    """
    assessed = [replace(item, credibility=assess(item.document)) for item in documents]
    kept = [item for item in assessed if item.credibility_score >= min_score]
    LOGGER.info(
        "Credibility: filtered %s -> %s documents (min_score=%s)",
        len(assessed),
        len(kept),
        min_score,
    )
    return kept


def sort_by_credibility(documents: Iterable[ScoredDocument]) -> list[ScoredDocument]:
    """Highest credibility first; ties keep their incoming order."""
    return sorted(documents, key=lambda item: item.credibility_score, reverse=True)


def credibility_breakdown(documents: Iterable[ScoredDocument]) -> dict[str, Any]:
    """Tier histogram and mean score for a document set."""
    items = list(documents)
    counts = {tier: 0 for tier in TIERS}
    for item in items:
        if item.credibility is not None:
            counts[item.credibility.tier] += 1

    scores = [item.credibility_score for item in items]
    average = sum(scores) / len(scores) if scores else 0.0

    return {
        "average_score": round(average, 4),
        "high_credibility_count": counts["HIGH"],
        "medium_credibility_count": counts["MEDIUM"],
        "low_credibility_count": counts["LOW"],
        "unverified_count": counts["UNVERIFIED"],
        "total_sources": len(items),
    }
