from __future__ import annotations

import math
import re
from typing import Any, Dict, Iterable, List

_SENTENCE_END = re.compile(r"[.!?]\s")

WORDS_PER_MINUTE = 200

COMMON_MEDICAL_TOPICS = (
    "cardiology", "neurology", "gastroenterology", "nephrology",
    "pulmonology", "endocrinology", "hematology", "oncology",
    "immunology", "rheumatology", "infectious disease", "pathology",
    "pharmacology", "anatomy", "physiology", "biochemistry",
    "microbiology", "pediatrics", "psychiatry", "orthopedics",
    "dermatology", "urology", "gynecology", "obstetrics",
    "ophthalmology", "otolaryngology", "radiology", "surgery",
)


def extract_title(content: str, max_length: int = 50) -> str:
    """First sentence of ``content``, truncated with an ellipsis past ``max_length``."""

    first = _SENTENCE_END.split((content or "").strip(), maxsplit=1)[0].strip()
    if len(first) <= max_length:
        return first
    return first[:max_length] + "..."


def reading_time_minutes(content: str) -> int:
    words = len((content or "").split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def extract_possible_tags(content: str) -> List[str]:
    lowered = (content or "").lower()
    return [topic for topic in COMMON_MEDICAL_TOPICS if topic in lowered]


def matches_any_term(query: str, *fields: str) -> bool:
    terms = [t for t in (query or "").lower().split() if t]
    if not terms:
        return False
    haystack = " ".join(f or "" for f in fields).lower()
    return any(term in haystack for term in terms)


def search_items(items: Iterable[Dict[str, Any]], field: str, term: str) -> List[Dict[str, Any]]:
    needle = (term or "").lower()
    return [item for item in items if needle in str(item.get(field) or "").lower()]
