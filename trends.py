"""In-memory sentiment trend for one interactive session. Never persisted."""

from __future__ import annotations

import os
from collections import deque
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

TREND_HISTORY_SIZE = int(os.getenv("TREND_HISTORY_SIZE", "10"))
_LABEL_MAX_LEN = 15


@dataclass(frozen=True, slots=True)
class TrendPoint:
    label: str
    score: float
    timestamp: datetime


class SentimentTrend:
    def __init__(self, max_points: int = TREND_HISTORY_SIZE) -> None:
        self._points: deque[TrendPoint] = deque(maxlen=max_points)

    def record(self, query: str, result: dict[str, Any]) -> TrendPoint | None:
        """Add a point when the result's analysis carries a sentiment score."""
        analysis = result.get("analysis") or {}
        score = analysis.get("sentiment_score")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            return None

        label = query if len(query) <= _LABEL_MAX_LEN else query[:_LABEL_MAX_LEN] + "..."
        point = TrendPoint(label=label, score=float(score), timestamp=datetime.now(UTC))
        self._points.append(point)
        return point

    @property
    def points(self) -> list[TrendPoint]:
        return list(self._points)

    def average(self) -> float | None:
        if not self._points:
            return None
        return sum(point.score for point in self._points) / len(self._points)

    def __len__(self) -> int:
        return len(self._points)
