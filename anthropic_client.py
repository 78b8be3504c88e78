"""Claude summarizer over the Anthropic Messages API."""

from __future__ import annotations

import logging
import os
from typing import Any, Sequence

import anthropic

from models import ScoredDocument
from summarizer import SYSTEM_PROMPT, Summary, SummarizerError, build_user_prompt, parse_summary

CLAUDE_MODEL = os.getenv("CLAUDE_MODEL", "claude-sonnet-4-5")
CLAUDE_MAX_TOKENS = int(os.getenv("CLAUDE_MAX_TOKENS", "1024"))

LOGGER = logging.getLogger(__name__)


class ClaudeSummarizer:
    """Single Messages API call per summary. The system prompt goes through
    the dedicated ``system=`` parameter."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = CLAUDE_MODEL,
        max_tokens: int = CLAUDE_MAX_TOKENS,
    ) -> None:
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self.model = model
        self.max_tokens = max_tokens

    def summarize(
        self,
        query: str,
        documents: Sequence[ScoredDocument],
        credibility_breakdown: dict[str, Any],
    ) -> Summary:
        if not self.api_key:
            raise SummarizerError("ANTHROPIC_API_KEY environment variable is required")

        LOGGER.debug("Calling Claude model=%s max_tokens=%s", self.model, self.max_tokens)
        client = anthropic.Anthropic(api_key=self.api_key)
        try:
            response = client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                system=SYSTEM_PROMPT,
                messages=[
                    {"role": "user", "content": build_user_prompt(query, documents, credibility_breakdown)},
                ],
            )
            content = "".join(
                block.text for block in response.content if getattr(block, "type", "text") == "text"
            )
        except Exception as exc:
            raise SummarizerError(f"Claude request failed: {exc}") from exc

        analysis = parse_summary(content)
        LOGGER.info(
            "Claude summary: sentiment=%s confidence=%s",
            analysis["sentiment"],
            analysis["confidence"],
        )
        return Summary(analysis=analysis, model=self.model)
