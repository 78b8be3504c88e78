"""Pipeline orchestrator: retrieve -> credibility -> dedup -> guardrail -> summarize."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Mapping

from corpus import Corpus
from credibility import credibility_breakdown, filter_by_credibility, sort_by_credibility
from dedup import DEDUP_SIMILARITY_THRESHOLD, deduplicate
from models import PipelineTelemetry, ScoredDocument
from relevance import evaluate_relevance, not_relevant_analysis
from retrieval import retrieve
from summarizer import MockSummarizer, Summarizer, SummarizerError

DEFAULT_MAX_SOURCES = 8
DEFAULT_MIN_CREDIBILITY = 0.4
# Retrieve this many times the final cap to leave room for filtering losses.
RETRIEVAL_HEADROOM = 2

NO_CONTENT_MESSAGE = (
    "No relevant content found for this query. Try different keywords or company names."
)
BELOW_THRESHOLD_MESSAGE = (
    "Found content but all sources below credibility threshold. Try lowering min_credibility."
)

LOGGER = logging.getLogger(__name__)


class QueryValidationError(ValueError):
    """The query or its options were rejected before the pipeline ran."""


@dataclass(frozen=True, slots=True)
class AnalysisOptions:
    max_sources: int = DEFAULT_MAX_SOURCES
    min_credibility: float = DEFAULT_MIN_CREDIBILITY
    entity_filter: tuple[str, ...] = field(default_factory=tuple)
    use_mock: bool = False

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> AnalysisOptions:
        """Build options from a request-style mapping.

        Accepts snake_case keys and the camelCase names used by the web client
        (``maxSources``, ``minCredibility``, ``entityFilter``/``companies``,
        ``useMock``). Raises QueryValidationError on bad values.
        """
        raw = raw or {}
        if not isinstance(raw, Mapping):
            raise QueryValidationError("Options must be a mapping")

        max_sources = _first(raw, "max_sources", "maxSources", default=DEFAULT_MAX_SOURCES)
        min_credibility = _first(
            raw, "min_credibility", "minCredibility", default=DEFAULT_MIN_CREDIBILITY
        )
        entity_filter = _first(raw, "entity_filter", "entityFilter", "companies", default=())
        use_mock = _first(raw, "use_mock", "useMock", default=False)

        if isinstance(max_sources, bool) or not isinstance(max_sources, int) or max_sources < 1:
            raise QueryValidationError("max_sources must be a positive integer")
        if isinstance(min_credibility, bool) or not isinstance(min_credibility, (int, float)):
            raise QueryValidationError("min_credibility must be a number between 0 and 1")
        if not 0.0 <= float(min_credibility) <= 1.0:
            raise QueryValidationError("min_credibility must be a number between 0 and 1")
        if isinstance(entity_filter, str):
            entity_filter = [entity_filter]
        if not isinstance(entity_filter, (list, tuple)) or not all(
            isinstance(value, str) for value in entity_filter
        ):
            raise QueryValidationError("entity_filter must be a list of ticker strings")

        return cls(
            max_sources=max_sources,
            min_credibility=float(min_credibility),
            entity_filter=tuple(value.strip() for value in entity_filter if value.strip()),
            use_mock=bool(use_mock),
        )


def validate_query(query: Any) -> str:
    if not isinstance(query, str) or not query.strip():
        raise QueryValidationError("Query is required and must be a non-empty string")
    return query.strip()


class Pipeline:
    """Runs one query through every stage and assembles the result dict.

    Summarizers are injected; ``use_mock`` on the options picks the mock one.
    The corpus is shared read-only, so one Pipeline can serve many requests.
    """

    def __init__(
        self,
        corpus: Corpus,
        summarizer: Summarizer,
        mock_summarizer: Summarizer | None = None,
        dedup_threshold: float = DEDUP_SIMILARITY_THRESHOLD,
    ) -> None:
        self.corpus = corpus
        self.summarizer = summarizer
        self.mock_summarizer = mock_summarizer or MockSummarizer()
        self.dedup_threshold = dedup_threshold

    def analyze(
        self,
        query: Any,
        options: AnalysisOptions | Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Answer ``query`` from the corpus.

        Raises QueryValidationError for bad input. Empty retrieval, nothing
        credible and guardrail rejection are successful results carrying a
        message; a summarizer failure is a result with ``success=False``.
        """
        query = validate_query(query)
        if not isinstance(options, AnalysisOptions):
            options = AnalysisOptions.from_mapping(options)

        started = time.perf_counter()
        telemetry = PipelineTelemetry()
        LOGGER.info(
            "Analyze: query=%r max_sources=%s min_credibility=%s entity_filter=%s use_mock=%s",
            query,
            options.max_sources,
            options.min_credibility,
            list(options.entity_filter),
            options.use_mock,
        )

        retrieved = retrieve(
            query,
            max_results=options.max_sources * RETRIEVAL_HEADROOM,
            entity_filter=options.entity_filter,
            corpus=self.corpus,
        )
        telemetry.retrieved = len(retrieved)
        if not retrieved:
            return self._empty_result(query, NO_CONTENT_MESSAGE, telemetry, started)

        credible = filter_by_credibility(retrieved, options.min_credibility)
        telemetry.after_credibility_filter = len(credible)
        if not credible:
            telemetry.filtered_out_reason = (
                f"All {len(retrieved)} sources below {options.min_credibility} credibility"
            )
            return self._empty_result(query, BELOW_THRESHOLD_MESSAGE, telemetry, started)

        outcome = deduplicate(credible, threshold=self.dedup_threshold)
        telemetry.after_deduplication = len(outcome.unique)
        telemetry.duplicates_removed = len(outcome.duplicates)

        final_sources = sort_by_credibility(outcome.unique)[: options.max_sources]

        assessment = evaluate_relevance(query, final_sources)
        telemetry.average_relevance_score = assessment.average_relevance

        if not assessment.is_relevant:
            LOGGER.info("Analyze: relevance guardrail triggered: %s", assessment.reason)
            telemetry.relevance_filtered = True
            telemetry.relevance_reason = assessment.reason
            canned = not_relevant_analysis(query, assessment)
            return self._result(
                success=True,
                query=query,
                analysis=canned["analysis"],
                sources=[],
                breakdown=None,
                telemetry=telemetry,
                metadata=canned["metadata"],
                started=started,
            )

        breakdown = credibility_breakdown(final_sources)
        telemetry.final_sources_used = len(final_sources)
        telemetry.used_mock_response = options.use_mock
        summarizer = self.mock_summarizer if options.use_mock else self.summarizer

        try:
            summary = summarizer.summarize(query, final_sources, breakdown)
        except SummarizerError as exc:
            LOGGER.error("Analyze: summarizer failed for query=%r: %s", query, exc)
            return self._result(
                success=False,
                query=query,
                analysis=None,
                sources=[source_summary(item) for item in final_sources],
                breakdown=breakdown,
                telemetry=telemetry,
                started=started,
                error="Analysis failed",
                message=str(exc),
            )

        result = self._result(
            success=True,
            query=query,
            analysis=summary.analysis,
            sources=[source_summary(item) for item in final_sources],
            breakdown=breakdown,
            telemetry=telemetry,
            metadata={
                "model": summary.model,
                "is_mock": summary.is_mock,
                "documents_analyzed": len(final_sources),
                "matched_entities": list(assessment.matched_entities),
            },
            started=started,
        )
        LOGGER.info(
            "Analyze: complete in %.1fms pipeline=%s -> %s -> %s -> %s sources",
            telemetry.processing_time_ms,
            telemetry.retrieved,
            telemetry.after_credibility_filter,
            telemetry.after_deduplication,
            telemetry.final_sources_used,
        )
        return result

    def _empty_result(
        self, query: str, message: str, telemetry: PipelineTelemetry, started: float
    ) -> dict[str, Any]:
        LOGGER.info("Analyze: no sources for query=%r: %s", query, message)
        return self._result(
            success=True,
            query=query,
            analysis=None,
            sources=[],
            breakdown=None,
            telemetry=telemetry,
            started=started,
            message=message,
        )

    @staticmethod
    def _result(
        *,
        success: bool,
        query: str,
        analysis: dict[str, Any] | None,
        sources: list[dict[str, Any]],
        breakdown: dict[str, Any] | None,
        telemetry: PipelineTelemetry,
        started: float,
        metadata: dict[str, Any] | None = None,
        error: str | None = None,
        message: str | None = None,
    ) -> dict[str, Any]:
        telemetry.processing_time_ms = round((time.perf_counter() - started) * 1000, 2)
        return {
            "success": success,
            "query": query,
            "analysis": analysis,
            "message": message,
            "error": error,
            "sources": sources,
            "credibility_breakdown": breakdown,
            "pipeline": telemetry.to_dict(),
            "metadata": metadata,
            "timestamp": datetime.now(UTC).isoformat(),
        }


def source_summary(item: ScoredDocument) -> dict[str, Any]:
    """Public view of a final source; the body text is left out."""
    document = item.document
    return {
        "id": document.doc_id,
        "headline": document.headline,
        "source": document.source,
        "source_type": document.source_type,
        "credibility": item.credibility.to_dict() if item.credibility else None,
        "timestamp": document.published_at.isoformat(),
        "entities": sorted(document.entities),
        "sector": document.sector,
        "relevance_score": item.relevance_score,
    }


def _first(raw: Mapping[str, Any], *keys: str, default: Any) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default
