from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from llm_models import GeneratedFlashcard

HIGH_RISK_DOMAINS = {"treatment", "emergency", "diagnosis"}
HIGH_RISK_COMPLEXITY = {"complex", "expert"}

REVIEW_NOTE = (
    "\n\n---\nNote: This information has been reviewed for accuracy. "
    "Please consult authoritative medical resources for clinical decision-making."
)

_HHMM = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")


def filter_flashcards(items: Any) -> List[Dict[str, str]]:
    """
    Keep only objects whose ``front`` and ``back`` are non-blank strings.
    """
    if not isinstance(items, list):
        return []
    cards: List[Dict[str, str]] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            card = GeneratedFlashcard.model_validate({"front": item.get("front"), "back": item.get("back")})
        except ValidationError:
            continue
        cards.append(card.model_dump())
    return cards


def needs_fact_check(domain: str, complexity: str) -> bool:
    return domain in HIGH_RISK_DOMAINS and complexity in HIGH_RISK_COMPLEXITY


def review_reports_issues(review_text: Optional[str]) -> bool:
    lowered = (review_text or "").lower()
    return "issue" in lowered and "no issues found" not in lowered


def apply_review_note(answer: str, review_text: Optional[str]) -> str:
    if review_reports_issues(review_text):
        return answer + REVIEW_NOTE
    return answer


def time_to_minutes(value: Any) -> Optional[int]:
    if not isinstance(value, str):
        return None
    match = _HHMM.match(value)
    if not match:
        return None
    return int(match.group(1)) * 60 + int(match.group(2))


def total_study_hours(daily_plans: List[Dict[str, Any]]) -> float:
    """Sum of session durations in hours, rounded to one decimal; unparseable times are skipped."""

    minutes = 0
    for day in daily_plans or []:
        for session in day.get("sessions") or []:
            start = time_to_minutes(session.get("start_time"))
            end = time_to_minutes(session.get("end_time"))
            if start is None or end is None:
                continue
            minutes += end - start
    return round(minutes / 60, 1)
