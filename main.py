"""CLI entrypoint for the market intelligence evidence pipeline."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any, TextIO

from dotenv import load_dotenv

from corpus import describe_corpus, get_default_corpus
from pipeline import AnalysisOptions, Pipeline, QueryValidationError
from summarizer import MockSummarizer, Summarizer, build_summarizer, provider_api_key_env
from trends import SentimentTrend


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(
        description="Answer a market-intelligence query from the curated corpus"
    )
    parser.add_argument("query", nargs="?", help="Free-text query, e.g. 'Apple earnings Q4'")
    parser.add_argument("--max-sources", type=int, default=8, help="Final cap on sources used")
    parser.add_argument(
        "--min-credibility",
        type=float,
        default=0.4,
        help="Minimum source credibility score (0-1)",
    )
    parser.add_argument(
        "--entity",
        action="append",
        default=[],
        help="Only consider documents tagged with this ticker (repeatable)",
    )
    parser.add_argument("--mock", action="store_true", help="Use the canned mock summarizer")
    parser.add_argument(
        "--provider",
        choices=["openai", "anthropic"],
        default=os.getenv("SUMMARIZER_PROVIDER", "openai"),
        help="Summarizer backend",
    )
    parser.add_argument(
        "--interactive",
        action="store_true",
        help="Read queries from stdin and track the session sentiment trend",
    )
    parser.add_argument("--sources", action="store_true", help="Print the corpus overview and exit")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def make_summarizer(provider: str, use_mock: bool = False) -> tuple[Summarizer, bool]:
    """Return the real summarizer, or the mock plus True when mock mode was
    requested or no API key is set."""
    if use_mock:
        return MockSummarizer(), True
    key_env = provider_api_key_env(provider)
    if not os.getenv(key_env):
        logging.warning("%s not set. LLM analysis will run in MOCK mode.", key_env)
        return MockSummarizer(), True
    return build_summarizer(provider), False


def run_query(pipeline: Pipeline, query: str, options: AnalysisOptions) -> dict[str, Any]:
    result = pipeline.analyze(query, options)
    logging.info(
        "Query done: success=%s sources=%s relevance_filtered=%s",
        result["success"],
        len(result["sources"]),
        result["pipeline"]["relevance_filtered"],
    )
    return result


def run_interactive(
    pipeline: Pipeline,
    options: AnalysisOptions,
    stdin: TextIO = sys.stdin,
    stdout: TextIO = sys.stdout,
) -> SentimentTrend:
    """Answer one query per input line until EOF or an empty line."""
    trend = SentimentTrend()
    for line in stdin:
        query = line.strip()
        if not query:
            break
        try:
            result = run_query(pipeline, query, options)
        except QueryValidationError as exc:
            print(f"Invalid query: {exc}", file=stdout)
            continue

        print(format_summary(result), file=stdout)
        if trend.record(query, result) is not None:
            history = ", ".join(f"{point.label}={point.score:+.2f}" for point in trend.points)
            print(f"Sentiment trend: {history} (avg {trend.average():+.2f})", file=stdout)
    return trend


def format_summary(result: dict[str, Any]) -> str:
    """Short human-readable rendering of a result."""
    analysis = result.get("analysis")
    if not result["success"]:
        return f"[error] {result.get('error')}: {result.get('message')}"
    if analysis is None:
        return f"[no sources] {result.get('message')}"

    lines = [
        f"{analysis['sentiment']} ({analysis['sentiment_score']:+.2f}) / {analysis['confidence']}",
        analysis["narrative"],
    ]
    lines.extend(f"  - {insight}" for insight in analysis.get("key_insights", []))
    for source in result["sources"]:
        credibility = source.get("credibility") or {}
        lines.append(
            f"  [{credibility.get('tier', '?')}] {source['source']}: {source['headline']}"
        )
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute the pipeline."""
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    corpus = get_default_corpus()
    if args.sources:
        print(json.dumps(describe_corpus(corpus), indent=2))
        return 0

    summarizer, forced_mock = make_summarizer(args.provider, use_mock=args.mock)
    pipeline = Pipeline(corpus=corpus, summarizer=summarizer)

    try:
        options = AnalysisOptions.from_mapping({
            "max_sources": args.max_sources,
            "min_credibility": args.min_credibility,
            "entity_filter": args.entity,
            "use_mock": args.mock or forced_mock,
        })
    except QueryValidationError as exc:
        logging.error("Invalid options: %s", exc)
        return 2

    if args.interactive:
        run_interactive(pipeline, options)
        return 0

    try:
        result = run_query(pipeline, args.query, options)
    except QueryValidationError as exc:
        logging.error("Invalid query: %s", exc)
        return 2

    print(json.dumps(result, indent=2))
    return 0 if result["success"] else 1


if __name__ == "__main__":
    sys.exit(main())
