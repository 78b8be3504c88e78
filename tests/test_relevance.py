from datetime import UTC, datetime

import pytest

from credibility import assess
from models import Document, ScoredDocument
from relevance import (
    NO_DOCUMENTS_REASON,
    detect_known_entities,
    detect_off_topic_terms,
    evaluate_relevance,
    not_relevant_analysis,
    score_document_relevance,
)
from text_utils import extract_query_terms, normalize_text


def _scored(
    doc_id: str,
    headline: str,
    body: str = "",
    entities: tuple[str, ...] = (),
    sector: str | None = None,
) -> ScoredDocument:
    document = Document(
        doc_id=doc_id,
        headline=headline,
        body=body,
        source="Test Wire",
        source_type="major_publication",
        entities=frozenset(entities),
        sector=sector,
        published_at=datetime(2024, 11, 1, tzinfo=UTC),
    )
    return ScoredDocument(document=document, relevance_score=1.0, credibility=assess(document))


_APPLE_DOC = _scored(
    "aapl",
    "Apple reports Q4 earnings",
    "Apple posted record quarterly earnings as iPhone and Apple Watch sales grew.",
    entities=("AAPL",),
    sector="technology",
)


def test_empty_document_set_is_not_relevant() -> None:
    result = evaluate_relevance("Apple earnings Q4", [])

    assert result.is_relevant is False
    assert result.reason == NO_DOCUMENTS_REASON
    assert result.doc_scores == ()


def test_known_entity_query_is_relevant() -> None:
    result = evaluate_relevance("Apple earnings Q4", [_APPLE_DOC])

    assert result.is_relevant is True
    assert result.matched_entities == ("apple",)
    assert "apple" in result.reason
    assert result.query_terms == ("apple", "earnings", "q4")


def test_entity_match_beats_off_topic_indicator() -> None:
    result = evaluate_relevance("Apple luxury retail stores", [_APPLE_DOC])

    assert result.is_relevant is True
    assert result.matched_entities == ("apple",)
    # the off-topic check is skipped entirely once an entity matched
    assert result.off_topic_terms == ()


def test_off_topic_query_is_rejected_with_terms_in_reason() -> None:
    result = evaluate_relevance("luxury watch fashion trends", [_APPLE_DOC])

    assert result.is_relevant is False
    assert set(result.off_topic_terms) == {"luxury", "fashion"}
    assert "luxury" in result.reason
    assert "fashion" in result.reason


def test_document_tags_rescue_query_without_known_entity() -> None:
    doc = _scored(
        "chips",
        "Packaging capacity sold out",
        "Advanced packaging is booked through next year.",
        entities=("NVDA",),
        sector="semiconductors",
    )

    result = evaluate_relevance("semiconductor supply outlook", [doc])

    assert result.is_relevant is True
    assert result.matched_entities == ()
    assert result.topic_overlaps == ("semiconductors",)


def test_document_tags_beat_off_topic_indicator() -> None:
    doc = _scored("chips", "Packaging capacity", "", entities=("NVDA",), sector="semiconductors")

    result = evaluate_relevance("china semiconductors", [doc])

    assert result.is_relevant is True
    assert "semiconductors" in result.reason


def test_low_relevance_without_relevant_docs_is_insufficient() -> None:
    doc = _scored("w", "Weather today", "")

    result = evaluate_relevance("weather forecast tomorrow", [doc])

    assert result.is_relevant is False
    assert result.reason == "Insufficient relevant documents found"
    assert result.average_relevance == pytest.approx(0.1)


def test_mean_below_low_threshold_is_rejected() -> None:
    doc = _scored("w", "Weather forecast", "Rain expected.")

    # 3 of 5 terms appear in the text: 0.9 / 5 = 0.18
    result = evaluate_relevance("weather forecast rain snow hail", [doc])

    assert result.is_relevant is False
    assert result.reason == "Query does not match any known entities or topics in our dataset"
    assert result.average_relevance == pytest.approx(0.18)


def test_adequate_relevance_without_entities_is_accepted() -> None:
    doc = _scored("w", "The weather forecast calls for rain", "")

    result = evaluate_relevance("weather forecast", [doc])

    assert result.is_relevant is True
    assert result.reason == "Documents are relevant to query"
    assert result.relevant_doc_count == 0
    assert result.total_doc_count == 1


def test_document_score_is_capped_at_one() -> None:
    doc = _scored("ev", "EV makers", "Tesla leads the ev market.", entities=("EV",), sector="ev")

    # text 0.3 + entity tag 0.4 + sector 0.3 + tesla topic 0.2
    assert score_document_relevance(["ev"], doc) == 1.0


def test_document_score_is_zero_without_terms() -> None:
    assert score_document_relevance([], _APPLE_DOC) == 0.0


def test_document_scores_are_reported_per_document() -> None:
    other = _scored("tsla", "Tesla deliveries rise", "", entities=("TSLA",), sector="automotive")

    result = evaluate_relevance("Apple earnings Q4", [_APPLE_DOC, other])

    scores = {entry.doc_id: entry.score for entry in result.doc_scores}
    assert scores["aapl"] > scores["tsla"]
    assert all(0.0 <= score <= 1.0 for score in scores.values())


@pytest.mark.parametrize(
    ("query", "entity"),
    [
        ("apples and oranges", "apple"),
        ("what did tim cook say", "apple"),
        ("NVDA guidance", "nvidia"),
        ("machine learning budgets", "ai"),
        ("Teslas on the road", "tesla"),
    ],
)
def test_entity_variants(query: str, entity: str) -> None:
    assert entity in detect_known_entities(extract_query_terms(query), normalize_text(query))


@pytest.mark.parametrize("query", ["goldman sachs outlook", "bankruptcy filings", "capital markets"])
def test_off_topic_matching_ignores_substring_collisions(query: str) -> None:
    assert detect_off_topic_terms(extract_query_terms(query), normalize_text(query)) == []


def test_multi_word_off_topic_indicator() -> None:
    query = "Real estate prices"
    assert detect_off_topic_terms(extract_query_terms(query), normalize_text(query)) == ["real estate"]


def test_not_relevant_analysis_is_neutral_and_cites_reason() -> None:
    assessment = evaluate_relevance("luxury watch fashion trends", [_APPLE_DOC])

    canned = not_relevant_analysis("luxury watch fashion trends", assessment)

    analysis = canned["analysis"]
    assert analysis["sentiment"] == "NEUTRAL"
    assert analysis["sentiment_score"] == 0.0
    assert analysis["confidence"] == "RUMOR"
    assert analysis["confidence_explanation"] == assessment.reason
    assert analysis["sources_used"] == []
    assert "luxury watch fashion trends" in analysis["narrative"]
    assert canned["metadata"]["model"] == "RELEVANCE_GUARDRAIL"
    assert canned["metadata"]["relevance_filtered"] is True
