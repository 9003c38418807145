from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class GeneratedFlashcard(BaseModel):
    model_config = ConfigDict(strict=True, str_strip_whitespace=True)

    front: str = Field(min_length=1)
    back: str = Field(min_length=1)


class PlannedSession(BaseModel):
    start_time: str
    end_time: str
    topic: str
    activity: str
    description: Optional[str] = None
    completed: bool = False


class PlannedDay(BaseModel):
    day: str
    date: int
    sessions: List[PlannedSession] = Field(default_factory=list)


class StudyPlanDraft(BaseModel):
    title: str = Field(min_length=1)
    daily_plans: List[PlannedDay] = Field(default_factory=list)


class WellnessAnalysis(BaseModel):
    mood: str
    stress_level: int = Field(ge=1, le=10)
    analysis: str = ""
    response: str = Field(min_length=1)
    suggestions: List[str] = Field(default_factory=list)


class DigestReviewTopic(BaseModel):
    topic: str
    reason: str = ""
    priority: Literal["high", "medium", "low"] = "medium"


class DigestActivity(BaseModel):
    activity: str
    topic: str
    duration: int = Field(ge=0)


class DailyDigestDraft(BaseModel):
    summary: str = Field(min_length=1)
    review_topics: List[DigestReviewTopic] = Field(default_factory=list)
    suggested_activities: List[DigestActivity] = Field(default_factory=list)
