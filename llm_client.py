"""OpenAI-compatible chat-completions summarizer.

Works against OpenAI itself or any compatible endpoint (Groq, DeepSeek, a
local gateway) by pointing OPENAI_BASE_URL at it.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Sequence

from openai import OpenAI

from models import ScoredDocument
from summarizer import SYSTEM_PROMPT, Summary, SummarizerError, build_user_prompt, parse_summary

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4.1-mini")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL") or None
OPENAI_TEMPERATURE = float(os.getenv("OPENAI_TEMPERATURE", "0.3"))

LOGGER = logging.getLogger(__name__)


class OpenAISummarizer:
    """One chat-completions call per summary; failures are raised, not retried."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = OPENAI_MODEL,
        base_url: str | None = OPENAI_BASE_URL,
        temperature: float = OPENAI_TEMPERATURE,
    ) -> None:
        self.api_key = api_key or os.getenv("OPENAI_API_KEY")
        self.model = model
        self.base_url = base_url
        self.temperature = temperature

    def summarize(
        self,
        query: str,
        documents: Sequence[ScoredDocument],
        credibility_breakdown: dict[str, Any],
    ) -> Summary:
        if not self.api_key:
            raise SummarizerError("OPENAI_API_KEY environment variable is required")

        LOGGER.info(
            "Summarizing with OpenAI-compatible model=%s documents=%s", self.model, len(documents)
        )
        client = OpenAI(api_key=self.api_key, base_url=self.base_url)
        try:
            response = client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_prompt(query, documents, credibility_breakdown)},
                ],
            )
            content = response.choices[0].message.content
        except Exception as exc:
            raise SummarizerError(f"OpenAI request failed: {exc}") from exc

        analysis = parse_summary(content)
        LOGGER.info(
            "OpenAI summary: sentiment=%s confidence=%s",
            analysis["sentiment"],
            analysis["confidence"],
        )
        return Summary(analysis=analysis, model=self.model)
