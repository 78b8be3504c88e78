"""Summarizer collaborator: abstraction, mock, output parsing and provider factory.

The orchestrator depends only on the ``Summarizer`` protocol. Concrete
clients live in ``llm_client`` (OpenAI-compatible chat completions) and
``anthropic_client`` (Claude Messages API); both build the same grounded
prompt and hand the raw model text to ``parse_summary`` here.
"""

from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass
from json import JSONDecodeError
from typing import Any, Protocol, Sequence

from models import ScoredDocument

SUMMARIZER_PROVIDER = os.getenv("SUMMARIZER_PROVIDER", "openai")

SENTIMENTS: frozenset[str] = frozenset({"POSITIVE", "NEUTRAL", "NEGATIVE"})
CONFIDENCE_LEVELS: frozenset[str] = frozenset({"CONFIRMED", "EMERGING", "RUMOR"})
_REQUIRED_KEYS: frozenset[str] = frozenset({
    "narrative",
    "sentiment",
    "sentiment_score",
    "confidence",
    "confidence_explanation",
    "key_insights",
})
_MAX_INSIGHTS = 5

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a financial intelligence analyst.
You MUST ONLY use the information in the provided sources. Do NOT add external knowledge.
If the sources are insufficient, say so clearly in the narrative.
Respond ONLY with valid JSON following the schema below. No prose, no markdown.

Required JSON schema:
{
  "narrative": "<2-3 sentence market narrative>",
  "sentiment": "POSITIVE | NEUTRAL | NEGATIVE",
  "sentiment_score": <float between -1.0 and 1.0>,
  "confidence": "CONFIRMED | EMERGING | RUMOR",
  "confidence_explanation": "<1 sentence>",
  "key_insights": ["<3-4 short bullet strings>"]
}"""


class SummarizerError(RuntimeError):
    """The summarizer was unreachable or returned unusable output."""


@dataclass(frozen=True, slots=True)
class Summary:
    analysis: dict[str, Any]
    model: str
    is_mock: bool = False


class Summarizer(Protocol):
    def summarize(
        self,
        query: str,
        documents: Sequence[ScoredDocument],
        credibility_breakdown: dict[str, Any],
    ) -> Summary: ...


class MockSummarizer:
    """Canned result for environments without summarizer access."""

    model = "MOCK"

    def summarize(
        self,
        query: str,
        documents: Sequence[ScoredDocument],
        credibility_breakdown: dict[str, Any],
    ) -> Summary:
        LOGGER.info("Mock summarizer used for query=%r (%s documents)", query, len(documents))
        return Summary(
            analysis={
                "narrative": (
                    "Based on available sources, the market shows mixed but cautiously "
                    "optimistic signals."
                ),
                "sentiment": "POSITIVE",
                "sentiment_score": 0.7,
                "confidence": "EMERGING",
                "confidence_explanation": (
                    "The analysis is based on multiple credible sources, but long-term "
                    "impacts remain uncertain."
                ),
                "key_insights": [
                    "AI-related demand continues to drive market momentum",
                    "Earnings performance remains strong across major players",
                    "Regulatory risks exist but are currently manageable",
                ],
            },
            model=self.model,
            is_mock=True,
        )


def build_user_prompt(
    query: str,
    documents: Sequence[ScoredDocument],
    credibility_breakdown: dict[str, Any],
) -> str:
    """Grounding context: every source with its credibility, then the query."""
    sections = []
    for index, item in enumerate(documents, 1):
        document = item.document
        tier = item.credibility.tier if item.credibility else "UNVERIFIED"
        sections.append(
            f"Source {index} ({document.source}, {document.source_type}, "
            f"credibility {item.credibility_score:.2f} {tier}): {document.headline}\n"
            f"{document.body}"
        )

    return (
        f"CONTEXT:\n{chr(10).join(sections) if sections else 'No sources.'}\n\n"
        f"SOURCE CREDIBILITY: average={credibility_breakdown.get('average_score', 0.0)}, "
        f"high={credibility_breakdown.get('high_credibility_count', 0)}, "
        f"medium={credibility_breakdown.get('medium_credibility_count', 0)}, "
        f"low={credibility_breakdown.get('low_credibility_count', 0)}, "
        f"unverified={credibility_breakdown.get('unverified_count', 0)}\n\n"
        f"QUERY:\n{query}\n"
    )


def parse_summary(content: str | None) -> dict[str, Any]:
    """Parse model text into a validated, normalized analysis dict.

    Raises SummarizerError when the text holds no JSON object or the object
    does not match the schema. Nothing is invented to fill gaps.
    """
    if not content or not content.strip():
        raise SummarizerError("Summarizer returned an empty response")

    try:
        parsed = json.loads(content)
    except JSONDecodeError:
        parsed = _extract_first_json_object(content)

    if not isinstance(parsed, dict):
        raise SummarizerError("Expected JSON object from summarizer response")
    return normalize_analysis(parsed)


def normalize_analysis(raw: dict[str, Any]) -> dict[str, Any]:
    missing = _REQUIRED_KEYS - raw.keys()
    if missing:
        raise SummarizerError(f"Summarizer response missing keys: {sorted(missing)}")

    sentiment = str(raw["sentiment"]).strip().upper()
    if sentiment not in SENTIMENTS:
        raise SummarizerError(f"Unexpected sentiment label: {raw['sentiment']!r}")

    confidence = str(raw["confidence"]).strip().upper()
    if confidence not in CONFIDENCE_LEVELS:
        raise SummarizerError(f"Unexpected confidence label: {raw['confidence']!r}")

    if isinstance(raw["sentiment_score"], bool):
        raise SummarizerError(f"Non-numeric sentiment_score: {raw['sentiment_score']!r}")
    try:
        score = float(raw["sentiment_score"])
    except (TypeError, ValueError) as exc:
        raise SummarizerError(f"Non-numeric sentiment_score: {raw['sentiment_score']!r}") from exc
    if not math.isfinite(score):
        raise SummarizerError(f"Non-finite sentiment_score: {raw['sentiment_score']!r}")

    insights = raw["key_insights"]
    if not isinstance(insights, list):
        raise SummarizerError("key_insights must be a list")

    narrative = raw["narrative"].strip() if isinstance(raw["narrative"], str) else ""
    if not narrative:
        raise SummarizerError("Summarizer returned an empty narrative")

    return {
        "narrative": narrative,
        "sentiment": sentiment,
        "sentiment_score": max(-1.0, min(1.0, score)),
        "confidence": confidence,
        "confidence_explanation": str(raw["confidence_explanation"] or "").strip(),
        "key_insights": [
            item.strip() for item in insights if isinstance(item, str) and item.strip()
        ][:_MAX_INSIGHTS],
    }


def _extract_first_json_object(content: str) -> dict[str, Any]:
    """Extract the first decodable JSON object from an arbitrary string."""
    decoder = json.JSONDecoder()
    for index, char in enumerate(content):
        if char != "{":
            continue
        try:
            candidate, _ = decoder.raw_decode(content[index:])
        except JSONDecodeError:
            continue
        if isinstance(candidate, dict):
            return candidate
    raise SummarizerError("Could not extract valid JSON object from summarizer output")


def provider_api_key_env(provider: str) -> str:
    return "ANTHROPIC_API_KEY" if provider == "anthropic" else "OPENAI_API_KEY"


def build_summarizer(provider: str | None = None) -> Summarizer:
    """Construct the real summarizer client for ``provider``."""
    provider = (provider or SUMMARIZER_PROVIDER).strip().lower()
    if provider == "anthropic":
        from anthropic_client import ClaudeSummarizer  # noqa: PLC0415

        return ClaudeSummarizer()
    if provider == "openai":
        from llm_client import OpenAISummarizer  # noqa: PLC0415

        return OpenAISummarizer()
    raise ValueError(f"Unknown summarizer provider: {provider!r}")
