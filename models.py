"""Shared typed models for the evidence pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

SOURCE_TYPES: frozenset[str] = frozenset({
    "official",
    "major_publication",
    "analyst",
    "social_media",
    "unknown",
})


@dataclass(frozen=True, slots=True)
class Document:
    """Normalized corpus record. Owned by the static corpus and never mutated."""

    doc_id: str
    headline: str
    body: str
    source: str
    source_type: str
    entities: frozenset[str]
    sector: str | None
    published_at: datetime

    @property
    def text(self) -> str:
        return f"{self.headline} {self.body}"


@dataclass(frozen=True, slots=True)
class CredibilityAssessment:
    score: float
    tier: str  # HIGH | MEDIUM | LOW | UNVERIFIED
    source_type: str
    explanation: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ScoredDocument:
    """A corpus document as seen by one request: retrieval score plus, once
    the credibility stage has run, its assessment."""

    document: Document
    relevance_score: float
    credibility: CredibilityAssessment | None = None

    @property
    def doc_id(self) -> str:
        return self.document.doc_id

    @property
    def credibility_score(self) -> float:
        return self.credibility.score if self.credibility is not None else 0.0


@dataclass(frozen=True, slots=True)
class DuplicateDocument:
    scored: ScoredDocument
    reason: str
    matched_doc_id: str
    similarity: float
    status: str = "duplicate"


@dataclass(frozen=True, slots=True)
class DeduplicationOutcome:
    unique: tuple[ScoredDocument, ...]
    duplicates: tuple[DuplicateDocument, ...]


@dataclass(frozen=True, slots=True)
class DocumentRelevance:
    doc_id: str
    score: float


@dataclass(frozen=True, slots=True)
class RelevanceAssessment:
    """Guardrail verdict for a (query, final document set) pair."""

    is_relevant: bool
    reason: str
    query_terms: tuple[str, ...]
    matched_entities: tuple[str, ...] = ()
    off_topic_terms: tuple[str, ...] = ()
    topic_overlaps: tuple[str, ...] = ()
    doc_scores: tuple[DocumentRelevance, ...] = ()
    average_relevance: float = 0.0
    relevant_doc_count: int = 0
    total_doc_count: int = 0

    @property
    def has_known_entity(self) -> bool:
        return bool(self.matched_entities)

    @property
    def is_off_topic(self) -> bool:
        return bool(self.off_topic_terms)


@dataclass(slots=True)
class PipelineTelemetry:
    """Per-stage counts, filled in by the orchestrator as stages complete."""

    retrieved: int = 0
    after_credibility_filter: int = 0
    after_deduplication: int = 0
    duplicates_removed: int = 0
    final_sources_used: int = 0
    relevance_filtered: bool = False
    relevance_reason: str | None = None
    average_relevance_score: float | None = None
    filtered_out_reason: str | None = None
    processing_time_ms: float = 0.0
    used_mock_response: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
