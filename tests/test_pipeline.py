from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest

from corpus import Corpus, load_corpus
from models import Document
from pipeline import (
    BELOW_THRESHOLD_MESSAGE,
    NO_CONTENT_MESSAGE,
    AnalysisOptions,
    Pipeline,
    QueryValidationError,
)
from summarizer import MockSummarizer, Summary, SummarizerError

_ANALYSIS = {
    "narrative": "Apple beat earnings expectations on services strength.",
    "sentiment": "POSITIVE",
    "sentiment_score": 0.6,
    "confidence": "CONFIRMED",
    "confidence_explanation": "Official results corroborated by a wire service.",
    "key_insights": ["Services revenue at a record", "iPhone demand steady"],
}


def _doc(
    doc_id: str,
    headline: str,
    body: str,
    source: str,
    source_type: str,
    entities: tuple[str, ...],
) -> Document:
    return Document(
        doc_id=doc_id,
        headline=headline,
        body=body,
        source=source,
        source_type=source_type,
        entities=frozenset(entities),
        sector="technology",
        published_at=datetime(2024, 11, 1, tzinfo=UTC),
    )


@pytest.fixture
def corpus() -> Corpus:
    return Corpus(documents=(
        _doc("kuo", "Apple Watch demand trends soft", "Premium watch orders cut.", "@mingchikuo", "social_media", ("AAPL",)),
        _doc("wire", "Apple shares climb after earnings beat", "Investors cheered margins.", "Reuters", "major_publication", ("AAPL",)),
        _doc("ir", "Apple reports Q4 earnings", "Revenue grew on services and iPhone demand.", "Company Newsroom", "official", ("AAPL",)),
        _doc("musk", "Tesla deliveries hit record", "Deliveries rose.", "@elonmusk", "social_media", ("TSLA",)),
    ))


@pytest.fixture
def summarizer() -> MagicMock:
    fake = MagicMock()
    fake.summarize.return_value = Summary(analysis=dict(_ANALYSIS), model="test-model")
    return fake


def test_supported_query_runs_every_stage(corpus: Corpus, summarizer: MagicMock) -> None:
    result = Pipeline(corpus=corpus, summarizer=summarizer).analyze("Apple earnings Q4")

    assert result["success"] is True
    assert result["analysis"] == _ANALYSIS
    assert summarizer.summarize.call_count == 1
    # highest credibility first
    assert [s["id"] for s in result["sources"]] == ["ir", "wire", "kuo"]
    assert all("body" not in s for s in result["sources"])
    assert result["sources"][0]["credibility"]["tier"] == "HIGH"
    assert result["credibility_breakdown"]["total_sources"] == 3
    assert result["metadata"]["model"] == "test-model"
    assert result["metadata"]["is_mock"] is False
    assert result["metadata"]["matched_entities"] == ["apple"]

    telemetry = result["pipeline"]
    assert telemetry["retrieved"] == 3
    assert telemetry["final_sources_used"] == 3
    assert telemetry["relevance_filtered"] is False
    assert telemetry["processing_time_ms"] >= 0


def test_summarizer_receives_final_sources_and_breakdown(corpus: Corpus, summarizer: MagicMock) -> None:
    Pipeline(corpus=corpus, summarizer=summarizer).analyze("Apple earnings Q4")

    query, documents, breakdown = summarizer.summarize.call_args.args
    assert query == "Apple earnings Q4"
    assert [d.doc_id for d in documents] == ["ir", "wire", "kuo"]
    assert all(d.credibility is not None for d in documents)
    assert breakdown["high_credibility_count"] == 2


def test_off_topic_query_is_answered_by_guardrail(corpus: Corpus, summarizer: MagicMock) -> None:
    result = Pipeline(corpus=corpus, summarizer=summarizer).analyze("luxury watch fashion trends")

    summarizer.summarize.assert_not_called()
    assert result["success"] is True
    assert result["sources"] == []
    assert result["credibility_breakdown"] is None
    assert result["analysis"]["sentiment"] == "NEUTRAL"
    assert result["analysis"]["confidence"] == "RUMOR"
    assert result["metadata"]["model"] == "RELEVANCE_GUARDRAIL"
    assert result["pipeline"]["relevance_filtered"] is True
    assert "luxury" in result["pipeline"]["relevance_reason"]


def test_no_content_is_a_successful_empty_result(corpus: Corpus, summarizer: MagicMock) -> None:
    result = Pipeline(corpus=corpus, summarizer=summarizer).analyze("zebra quilting patterns")

    summarizer.summarize.assert_not_called()
    assert result["success"] is True
    assert result["analysis"] is None
    assert result["sources"] == []
    assert result["message"] == NO_CONTENT_MESSAGE
    assert result["pipeline"]["retrieved"] == 0


def test_all_sources_below_threshold(corpus: Corpus, summarizer: MagicMock) -> None:
    result = Pipeline(corpus=corpus, summarizer=summarizer).analyze(
        "tesla deliveries", {"min_credibility": 0.99}
    )

    summarizer.summarize.assert_not_called()
    assert result["success"] is True
    assert result["analysis"] is None
    assert result["message"] == BELOW_THRESHOLD_MESSAGE
    assert result["pipeline"]["retrieved"] == 1
    assert result["pipeline"]["after_credibility_filter"] == 0
    assert result["pipeline"]["filtered_out_reason"] == "All 1 sources below 0.99 credibility"


def test_final_sources_respect_cap_and_threshold(summarizer: MagicMock) -> None:
    words = ["alpha", "bravo", "charlie", "delta", "echo", "foxtrot",
             "golf", "hotel", "india", "juliet", "kilo", "lima"]
    source_types = ["official", "analyst", "social_media", "major_publication"]
    corpus = Corpus(documents=tuple(
        _doc(f"n{i}", f"Nvidia {word}", "", f"Outlet {i}", source_types[i % 4], ("NVDA",))
        for i, word in enumerate(words)
    ))

    result = Pipeline(corpus=corpus, summarizer=summarizer).analyze(
        "nvidia", {"max_sources": 5, "min_credibility": 0.5}
    )

    telemetry = result["pipeline"]
    assert telemetry["retrieved"] == 10
    assert len(result["sources"]) == 5
    assert all(s["credibility"]["score"] >= 0.5 for s in result["sources"])
    scores = [s["credibility"]["score"] for s in result["sources"]]
    assert scores == sorted(scores, reverse=True)
    assert (
        telemetry["retrieved"]
        >= telemetry["after_credibility_filter"]
        >= telemetry["after_deduplication"]
        >= telemetry["final_sources_used"]
    )


def test_retrieval_headroom_is_twice_the_cap(corpus: Corpus, summarizer: MagicMock) -> None:
    with patch("pipeline.retrieve", return_value=[]) as retrieve_mock:
        Pipeline(corpus=corpus, summarizer=summarizer).analyze("apple", {"max_sources": 3})

    assert retrieve_mock.call_args.kwargs["max_results"] == 6
    assert retrieve_mock.call_args.kwargs["corpus"] is corpus


def test_near_duplicates_are_collapsed(summarizer: MagicMock) -> None:
    body = "Microsoft Azure revenue grew strongly this quarter on demand for cloud workloads"
    corpus = Corpus(documents=(
        _doc("copy", "Azure growth beats", f"{body} says blog", "Some Blog", "major_publication", ("MSFT",)),
        _doc("orig", "Azure growth beats", body, "Financial Times", "major_publication", ("MSFT",)),
    ))

    result = Pipeline(corpus=corpus, summarizer=summarizer).analyze("azure growth")

    assert [s["id"] for s in result["sources"]] == ["orig"]
    assert result["pipeline"]["duplicates_removed"] == 1
    assert result["pipeline"]["after_deduplication"] == 1


def test_summarizer_failure_is_reported(corpus: Corpus, summarizer: MagicMock) -> None:
    summarizer.summarize.side_effect = SummarizerError("boom")

    result = Pipeline(corpus=corpus, summarizer=summarizer).analyze("Apple earnings Q4")

    assert result["success"] is False
    assert result["error"] == "Analysis failed"
    assert result["message"] == "boom"
    assert result["analysis"] is None


def test_use_mock_bypasses_real_summarizer(corpus: Corpus, summarizer: MagicMock) -> None:
    result = Pipeline(corpus=corpus, summarizer=summarizer).analyze(
        "Apple earnings Q4", {"useMock": True}
    )

    summarizer.summarize.assert_not_called()
    assert result["metadata"]["model"] == MockSummarizer.model
    assert result["metadata"]["is_mock"] is True
    assert result["pipeline"]["used_mock_response"] is True


def test_entity_filter_restricts_documents(corpus: Corpus, summarizer: MagicMock) -> None:
    result = Pipeline(corpus=corpus, summarizer=summarizer).analyze(
        "apple tesla", {"companies": ["tsla"]}
    )

    assert [s["id"] for s in result["sources"]] == ["musk"]


@pytest.mark.parametrize("query", ["", "   ", None, 42])
def test_invalid_query_is_rejected(corpus: Corpus, summarizer: MagicMock, query: object) -> None:
    with pytest.raises(QueryValidationError):
        Pipeline(corpus=corpus, summarizer=summarizer).analyze(query)


@pytest.mark.parametrize(
    "raw",
    [
        {"max_sources": 0},
        {"max_sources": True},
        {"max_sources": 2.5},
        {"min_credibility": 1.5},
        {"min_credibility": "high"},
        {"entity_filter": [1, 2]},
    ],
)
def test_invalid_options_are_rejected(raw: dict) -> None:
    with pytest.raises(QueryValidationError):
        AnalysisOptions.from_mapping(raw)


def test_options_accept_camel_case_keys() -> None:
    options = AnalysisOptions.from_mapping(
        {"maxSources": 3, "minCredibility": 0.7, "entityFilter": ["AAPL"], "useMock": True}
    )

    assert options == AnalysisOptions(
        max_sources=3, min_credibility=0.7, entity_filter=("AAPL",), use_mock=True
    )


def test_bundled_corpus_drops_syndicated_copy() -> None:
    pipeline = Pipeline(corpus=load_corpus(), summarizer=MockSummarizer())

    result = pipeline.analyze("nvidia blackwell")

    ids = [s["id"] for s in result["sources"]]
    assert "nvda-002" in ids
    assert "nvda-003" not in ids
    assert result["pipeline"]["duplicates_removed"] >= 1


def test_bundled_corpus_rejects_fashion_query() -> None:
    pipeline = Pipeline(corpus=load_corpus(), summarizer=MockSummarizer())

    result = pipeline.analyze("luxury watch fashion trends")

    assert result["success"] is True
    assert result["pipeline"]["relevance_filtered"] is True
    assert result["sources"] == []


def test_bundled_corpus_answers_apple_earnings(summarizer: MagicMock) -> None:
    pipeline = Pipeline(corpus=load_corpus(), summarizer=summarizer)

    result = pipeline.analyze("Apple earnings Q4")

    assert summarizer.summarize.call_count == 1
    assert result["sources"][0]["id"] == "aapl-001"
    assert result["metadata"]["matched_entities"] == ["apple"]


def test_entity_filter_accepts_company_names(corpus: Corpus, summarizer: MagicMock) -> None:
    result = Pipeline(corpus=corpus, summarizer=summarizer).analyze(
        "apple tesla", {"companies": ["Tesla"]}
    )

    assert [s["id"] for s in result["sources"]] == ["musk"]
