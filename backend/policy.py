from __future__ import annotations

from typing import Optional

from models import DAY_MS, WEEK_MS
from model_router import ComplexityLevel

REVIEW_CONFIDENCE_THRESHOLD = 70
TREND_PERIODS = ("week", "month", "all")


def is_review_due(confidence: float, last_reviewed: int, now: int) -> bool:
    """
    A topic needs review when confidence is below 70 or it has not been
    touched for more than a week.
    """
    return float(confidence) < REVIEW_CONFIDENCE_THRESHOLD or (now - int(last_reviewed)) > WEEK_MS


def summary_complexity(content: str) -> ComplexityLevel:
    size = len(content or "")
    if size > 5000:
        return "complex"
    if size > 2000:
        return "medium"
    return "simple"


def wellness_complexity(message: str) -> ComplexityLevel:
    return "medium" if len(message or "") > 300 else "simple"


def digest_complexity(progress_count: int, exam_count: int, goal_count: int) -> ComplexityLevel:
    if progress_count > 15 or exam_count > 3 or goal_count > 5:
        return "medium"
    return "simple"


def trend_window_start(period: str, now: int) -> Optional[int]:
    """
    Start of the trend window in epoch ms, or None for all history.
    """
    if period == "week":
        return now - 7 * DAY_MS
    if period == "month":
        return now - 30 * DAY_MS
    if period == "all":
        return None
    raise ValueError(f"period must be one of {', '.join(TREND_PERIODS)}")
