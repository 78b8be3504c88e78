"""Static curated corpus: loading, normalization and lookups."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterator

from models import SOURCE_TYPES, Document

_DEFAULT_CORPUS_PATH = Path(__file__).resolve().parent / "data" / "financial_content.json"
CORPUS_PATH = os.getenv("CORPUS_PATH", str(_DEFAULT_CORPUS_PATH))

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Corpus:
    """Read-only, ordered collection of documents. Safe to share across requests."""

    documents: tuple[Document, ...]

    def __iter__(self) -> Iterator[Document]:
        return iter(self.documents)

    def __len__(self) -> int:
        return len(self.documents)

    def get(self, doc_id: str) -> Document | None:
        for document in self.documents:
            if document.doc_id == doc_id:
                return document
        return None


def load_corpus(path: str | Path | None = None) -> Corpus:
    """Read the corpus JSON file and normalize it into Documents."""
    corpus_path = Path(path or CORPUS_PATH)
    try:
        payload = json.loads(corpus_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise RuntimeError(f"Could not load corpus from {corpus_path}: {exc}") from exc

    documents = parse_documents_payload(payload)
    LOGGER.info("Loaded corpus: path=%s documents=%s", corpus_path, len(documents))
    return Corpus(documents=tuple(documents))


@lru_cache(maxsize=1)
def get_default_corpus() -> Corpus:
    """Load the configured corpus once per process."""
    return load_corpus()


def parse_documents_payload(payload: Any) -> list[Document]:
    """Parse a corpus payload (``{"articles": [...]}`` or a bare list).

    Records without an id or headline are skipped; missing optional fields
    fall back to empty values so later stages never see None.
    """
    if isinstance(payload, dict):
        items = payload.get("articles", payload.get("documents"))
    else:
        items = payload
    if not isinstance(items, list):
        raise RuntimeError("Unexpected corpus payload shape: expected a list of articles")

    parsed: list[Document] = []
    skipped = 0
    for item in items:
        if not isinstance(item, dict):
            skipped += 1
            continue

        doc_id = _as_str(item.get("id"))
        headline = _as_str(item.get("headline"))
        if not doc_id or not headline:
            skipped += 1
            continue

        parsed.append(
            Document(
                doc_id=doc_id,
                headline=headline,
                body=_as_str(item.get("body")) or _as_str(item.get("content")) or "",
                source=_as_str(item.get("source")) or "Unknown",
                source_type=_normalize_source_type(
                    item.get("source_type", item.get("sourceType"))
                ),
                entities=_parse_entities(item.get("entities", item.get("companies"))),
                sector=_as_str(item.get("sector")),
                published_at=_parse_datetime(
                    _as_str(item.get("published_at")) or _as_str(item.get("timestamp"))
                ),
            )
        )

    if skipped:
        LOGGER.warning("Corpus parse: skipped %s malformed records", skipped)
    return parsed


def documents_for_entity(ticker: str, corpus: Corpus) -> list[Document]:
    """All corpus documents tagged with ``ticker`` (case-insensitive)."""
    wanted = ticker.strip().upper()
    return [document for document in corpus if wanted in document.entities]


def describe_corpus(corpus: Corpus) -> dict[str, Any]:
    """Overview of what the corpus covers, for display and debugging."""
    documents = corpus.documents
    entities = sorted({entity for document in documents for entity in document.entities})
    source_types = sorted({document.source_type for document in documents})
    sectors = sorted({document.sector for document in documents if document.sector})

    date_range: dict[str, str] | None = None
    if documents:
        timestamps = [document.published_at for document in documents]
        date_range = {
            "earliest": min(timestamps).isoformat(),
            "latest": max(timestamps).isoformat(),
        }

    return {
        "total_documents": len(documents),
        "entities": entities,
        "source_types": source_types,
        "sectors": sectors,
        "date_range": date_range,
    }


def _normalize_source_type(raw: Any) -> str:
    value = _as_str(raw)
    if not value:
        return "unknown"
    value = value.lower().replace("-", "_").replace(" ", "_")
    return value if value in SOURCE_TYPES else "unknown"


def _parse_entities(raw: Any) -> frozenset[str]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return frozenset()
    return frozenset(value.strip().upper() for value in raw if isinstance(value, str) and value.strip())


def _parse_datetime(raw: str | None) -> datetime:
    # Missing or unparseable timestamps sort as the oldest possible record.
    fallback = datetime(1970, 1, 1, tzinfo=UTC)
    if not raw:
        return fallback

    value = raw.replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return fallback

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _as_str(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) and value.strip() else None
