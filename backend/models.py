from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


Priority = Literal["high", "medium", "low"]
Importance = Literal["major", "minor"]


class NoteModel(BaseModel):
    id: str
    user_id: str
    title: str
    content: str
    tags: List[str] = Field(default_factory=list)
    created_at: int


class FlashcardModel(BaseModel):
    id: str
    user_id: str
    front: str = Field(min_length=1)
    back: str = Field(min_length=1)
    category: str = ""
    last_reviewed: Optional[int] = None
    confidence: Optional[float] = None


class QuizQuestionModel(BaseModel):
    question: str
    options: List[str]
    correct_answer: int
    explanation: Optional[str] = None


class QuizModel(BaseModel):
    id: str
    user_id: str
    title: str
    questions: List[QuizQuestionModel]
    score: Optional[float] = None
    taken_at: Optional[int] = None
    difficulty: Optional[str] = None
    created_at: int


class BookmarkModel(BaseModel):
    id: str
    user_id: str
    note_id: str
    comment: Optional[str] = None
    created_at: int


class ProgressModel(BaseModel):
    """
    Self-reported mastery of one topic. Confidence is on a 0-100 scale.
    """

    id: str
    user_id: str
    topic: str
    confidence: float
    last_reviewed: int


class StudyGoalModel(BaseModel):
    id: str
    user_id: str
    title: str
    description: str = ""
    target_date: int
    topics: List[str] = Field(default_factory=list)
    priority: Priority = "medium"
    completed: bool = False
    created_at: int


class ExamDateModel(BaseModel):
    id: str
    user_id: str
    title: str
    description: str = ""
    date: int
    topics: List[str] = Field(default_factory=list)
    importance: Importance = "major"
    created_at: int


class StudySessionModel(BaseModel):
    start_time: str  # "09:00"
    end_time: str
    topic: str
    activity: str  # review, quiz, flashcards, ...
    description: Optional[str] = None
    completed: bool = False


class DailyPlanModel(BaseModel):
    day: str  # monday, tuesday, ...
    date: int
    sessions: List[StudySessionModel] = Field(default_factory=list)


class StudyPlanModel(BaseModel):
    id: str
    user_id: str
    title: str
    start_date: int
    end_date: int
    daily_plans: List[DailyPlanModel] = Field(default_factory=list)
    created_at: int


class WellnessCheckinModel(BaseModel):
    id: str
    user_id: str
    mood: str
    stress_level: int = Field(ge=1, le=10)
    message: str
    ai_response: str
    suggestions: List[str] = Field(default_factory=list)
    created_at: int


class ReviewTopicModel(BaseModel):
    topic: str
    reason: str = ""
    priority: Priority = "medium"


class SuggestedActivityModel(BaseModel):
    activity: str
    topic: str
    duration: int  # minutes


class DailyDigestModel(BaseModel):
    id: str
    user_id: str
    date: int
    summary: str
    review_topics: List[ReviewTopicModel] = Field(default_factory=list)
    suggested_activities: List[SuggestedActivityModel] = Field(default_factory=list)
    completed: bool = False
    created_at: int


class ConceptNode(BaseModel):
    """
    One medical concept. ``external_code`` carries a terminology code
    (e.g. SNOMED CT) when one is known.
    """

    id: str
    name: str
    category: str = ""
    description: str = ""
    external_code: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)


class ConceptEdge(BaseModel):
    id: str
    source_id: str
    target_id: str
    relationship_type: str
    properties: Dict[str, Any] = Field(default_factory=dict)


# -----------------------------
# Collections (single source of truth)
# -----------------------------
COL_USERS = "users"
COL_NOTES = "notes"
COL_FLASHCARDS = "flashcards"
COL_QUIZZES = "quizzes"
COL_BOOKMARKS = "bookmarks"
COL_PROGRESS = "progress"
COL_STUDY_GOALS = "study_goals"
COL_EXAM_DATES = "exam_dates"
COL_STUDY_PLANS = "study_plans"
COL_WELLNESS = "wellness_checkins"
COL_DAILY_DIGESTS = "daily_digests"
COL_CONCEPTS = "medical_concepts"
COL_RELATIONSHIPS = "concept_relationships"

DAY_MS = 24 * 60 * 60 * 1000
WEEK_MS = 7 * DAY_MS


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    return int(utcnow().timestamp() * 1000)


def ms_to_date_str(value: Any) -> str:
    """Render an epoch-millisecond timestamp as a UTC ``YYYY-MM-DD`` string."""

    try:
        ms = int(value)
    except (TypeError, ValueError):
        return ""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).date().isoformat()


def utc_day_bounds(ms: int) -> tuple[int, int]:
    """Return [start, end) of the UTC day containing ``ms``."""

    start = (int(ms) // DAY_MS) * DAY_MS
    return start, start + DAY_MS
