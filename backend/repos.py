# repos.py
from __future__ import annotations

import copy
import uuid
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from db import SupabaseClient
from models import (
    COL_BOOKMARKS,
    COL_DAILY_DIGESTS,
    COL_EXAM_DATES,
    COL_FLASHCARDS,
    COL_NOTES,
    COL_PROGRESS,
    COL_QUIZZES,
    COL_STUDY_GOALS,
    COL_STUDY_PLANS,
    COL_USERS,
    COL_WELLNESS,
    WEEK_MS,
    BookmarkModel,
    DailyDigestModel,
    ExamDateModel,
    FlashcardModel,
    NoteModel,
    ProgressModel,
    QuizModel,
    StudyGoalModel,
    StudyPlanModel,
    WellnessCheckinModel,
    now_ms,
    utc_day_bounds,
)
from policy import is_review_due, trend_window_start
from text_utils import extract_title, matches_any_term, search_items

DEV_USER_NAME = "Dr. Eniola (Dev)"
DEV_USER_EMAIL = "dev_user@example.com"


class NotFoundError(LookupError):
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


def _row_to_doc(row: Dict[str, Any]) -> Dict[str, Any]:
    return dict(row) if isinstance(row, dict) else {}


def _first(rows: Any) -> Optional[Dict[str, Any]]:
    if not rows:
        return None
    return _row_to_doc(rows[0])


def _only(values: Dict[str, Any], allowed: Iterable[str]) -> Dict[str, Any]:
    allowed_set = set(allowed)
    return {key: val for key, val in values.items() if key in allowed_set and val is not None}


def _get_by_id(db: SupabaseClient, table: str, row_id: str) -> Optional[Dict[str, Any]]:
    return _first(db.table(table).select(filters={"id": row_id}, limit=1))


def _require(db: SupabaseClient, table: str, row_id: str) -> Dict[str, Any]:
    doc = _get_by_id(db, table, row_id)
    if doc is None:
        raise NotFoundError(f"{table} record not found: {row_id}")
    return doc


def _update_by_id(db: SupabaseClient, table: str, row_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
    if not values:
        return _require(db, table, row_id)
    rows = db.table(table).update(values, filters={"id": row_id}, returning=True)
    if not rows:
        raise NotFoundError(f"{table} record not found: {row_id}")
    return _row_to_doc(rows[0])


def _delete_by_id(db: SupabaseClient, table: str, row_id: str) -> None:
    rows = db.table(table).delete(filters={"id": row_id}, returning=True)
    if not rows:
        raise NotFoundError(f"{table} record not found: {row_id}")


def _insert_validated(db: SupabaseClient, table: str, model: Any, row: Dict[str, Any]) -> Dict[str, Any]:
    payload = model.model_validate(row).model_dump()
    inserted = db.table(table).insert(payload)
    if inserted:
        return _row_to_doc(inserted[0])
    return payload


def _list_for_user(
    db: SupabaseClient,
    table: str,
    user_id: str,
    *,
    order: Optional[Any] = ("created_at", "desc"),
    limit: Optional[int] = None,
    **filters: Any,
) -> List[Dict[str, Any]]:
    rows = db.table(table).select(filters={"user_id": user_id, **filters}, order=order, limit=limit)
    return [_row_to_doc(row) for row in rows]


def _top_counts(values: Iterable[str], key: str, n: int = 5) -> List[Dict[str, Any]]:
    return [{key: value, "count": count} for value, count in Counter(values).most_common(n)]


@dataclass
class UserRepo:
    db: SupabaseClient

    def get(self, user_id: str) -> Optional[Dict[str, Any]]:
        return _get_by_id(self.db, COL_USERS, user_id)

    def create_dev_user(self) -> Dict[str, Any]:
        existing = _first(self.db.table(COL_USERS).select(filters={"is_anonymous": True}, limit=1))
        if existing:
            return existing
        row = {
            "id": _new_id(),
            "name": DEV_USER_NAME,
            "email": DEV_USER_EMAIL,
            "avatar_url": None,
            "is_anonymous": True,
        }
        inserted = self.db.table(COL_USERS).insert(row)
        return _row_to_doc(inserted[0]) if inserted else row

    def update_profile(
        self,
        user_id: str,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        values = _only({"name": name, "email": email, "avatar_url": avatar_url}, ("name", "email", "avatar_url"))
        return _update_by_id(self.db, COL_USERS, user_id, values)

    def profile_with_stats(self, user_id: str) -> Dict[str, Any]:
        user = self.get(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")

        def _count(table: str) -> int:
            _, total = self.db.table(table).select_with_count(filters={"user_id": user_id}, columns="id", limit=1)
            return int(total)

        user["stats"] = {
            "notes_count": _count(COL_NOTES),
            "flashcards_count": _count(COL_FLASHCARDS),
            "quizzes_count": _count(COL_QUIZZES),
            "bookmarks_count": _count(COL_BOOKMARKS),
            "wellness_checkins_count": _count(COL_WELLNESS),
        }
        return user


@dataclass
class NoteRepo:
    db: SupabaseClient

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_NOTES, user_id)

    def get(self, note_id: str) -> Optional[Dict[str, Any]]:
        return _get_by_id(self.db, COL_NOTES, note_id)

    def create(self, user_id: str, content: str, *, title: Optional[str] = None, tags: Optional[List[str]] = None) -> Dict[str, Any]:
        content = content or ""
        if not content.strip() and not (title or "").strip():
            raise ValueError("Note content is required")
        resolved_title = (title or "").strip() or extract_title(content) or "Untitled note"
        row = {
            "id": _new_id(),
            "user_id": user_id,
            "title": resolved_title,
            "content": content,
            "tags": list(tags or []),
            "created_at": now_ms(),
        }
        return _insert_validated(self.db, COL_NOTES, NoteModel, row)

    def update(
        self,
        note_id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        values = _only({"title": title, "content": content, "tags": tags}, ("title", "content", "tags"))
        return _update_by_id(self.db, COL_NOTES, note_id, values)

    def delete(self, note_id: str) -> None:
        _delete_by_id(self.db, COL_NOTES, note_id)

    def search(self, user_id: str, query: str) -> List[Dict[str, Any]]:
        return [
            note
            for note in self.list_for_user(user_id)
            if matches_any_term(query, note.get("title", ""), note.get("content", ""))
        ]

    def by_tag(self, user_id: str, tag: str) -> List[Dict[str, Any]]:
        return [note for note in self.list_for_user(user_id) if tag in (note.get("tags") or [])]


@dataclass
class FlashcardRepo:
    db: SupabaseClient

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_FLASHCARDS, user_id, order=("last_reviewed", "desc"))

    def by_category(self, user_id: str, category: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_FLASHCARDS, user_id, order=("last_reviewed", "desc"), category=category)

    def get(self, card_id: str) -> Optional[Dict[str, Any]]:
        return _get_by_id(self.db, COL_FLASHCARDS, card_id)

    def _card_row(self, user_id: str, front: str, back: str, category: str, now: int) -> Dict[str, Any]:
        return {
            "id": _new_id(),
            "user_id": user_id,
            "front": (front or "").strip(),
            "back": (back or "").strip(),
            "category": category or "",
            "last_reviewed": now,
            "confidence": 0,
        }

    def create(self, user_id: str, front: str, back: str, category: str = "") -> Dict[str, Any]:
        row = self._card_row(user_id, front, back, category, now_ms())
        return _insert_validated(self.db, COL_FLASHCARDS, FlashcardModel, row)

    def create_batch(self, user_id: str, cards: List[Dict[str, Any]], category: str = "") -> List[Dict[str, Any]]:
        now = now_ms()
        payload = [
            FlashcardModel.model_validate(
                self._card_row(user_id, card.get("front", ""), card.get("back", ""), card.get("category") or category, now)
            ).model_dump()
            for card in cards
        ]
        if not payload:
            return []
        inserted = self.db.table(COL_FLASHCARDS).insert(payload)
        return [_row_to_doc(row) for row in inserted] if inserted else payload

    def record_review(self, card_id: str, confidence: float) -> Dict[str, Any]:
        if not 0 <= float(confidence) <= 100:
            raise ValueError("confidence must be between 0 and 100")
        return _update_by_id(
            self.db,
            COL_FLASHCARDS,
            card_id,
            {"confidence": float(confidence), "last_reviewed": now_ms()},
        )

    def delete(self, card_id: str) -> None:
        _delete_by_id(self.db, COL_FLASHCARDS, card_id)

    def delete_category(self, user_id: str, category: str) -> int:
        rows = self.db.table(COL_FLASHCARDS).delete(filters={"user_id": user_id, "category": category}, returning=True)
        return len(rows or [])


@dataclass
class QuizRepo:
    db: SupabaseClient

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_QUIZZES, user_id)

    def get(self, quiz_id: str) -> Optional[Dict[str, Any]]:
        return _get_by_id(self.db, COL_QUIZZES, quiz_id)

    def create(
        self,
        user_id: str,
        title: str,
        questions: List[Dict[str, Any]],
        *,
        difficulty: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not questions:
            raise ValueError("A quiz needs at least one question")
        for question in questions:
            options = question.get("options") or []
            answer = question.get("correct_answer")
            if not isinstance(answer, int) or not 0 <= answer < len(options):
                raise ValueError(f"correct_answer out of range for question: {question.get('question')!r}")
        row = {
            "id": _new_id(),
            "user_id": user_id,
            "title": title,
            "questions": questions,
            "difficulty": difficulty,
            "created_at": now_ms(),
        }
        return _insert_validated(self.db, COL_QUIZZES, QuizModel, row)

    def record_score(self, quiz_id: str, score: float) -> Dict[str, Any]:
        return _update_by_id(self.db, COL_QUIZZES, quiz_id, {"score": score, "taken_at": now_ms()})

    def delete(self, quiz_id: str) -> None:
        _delete_by_id(self.db, COL_QUIZZES, quiz_id)

    def by_topic(self, user_id: str, topic: str) -> List[Dict[str, Any]]:
        return search_items(self.list_for_user(user_id), "title", topic)

    def completed(self, user_id: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_QUIZZES, user_id, order=("taken_at", "desc"), score=("not.is", None))

    def uncompleted(self, user_id: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_QUIZZES, user_id, score=("is", None))


@dataclass
class BookmarkRepo:
    db: SupabaseClient

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_BOOKMARKS, user_id)

    def get(self, bookmark_id: str) -> Optional[Dict[str, Any]]:
        return _get_by_id(self.db, COL_BOOKMARKS, bookmark_id)

    def list_with_notes(self, user_id: str) -> List[Dict[str, Any]]:
        bookmarks = self.list_for_user(user_id)
        note_ids = sorted({bm["note_id"] for bm in bookmarks if bm.get("note_id")})
        notes_by_id: Dict[str, Dict[str, Any]] = {}
        if note_ids:
            rows = self.db.table(COL_NOTES).select(filters={"id": ("in", note_ids)})
            notes_by_id = {row["id"]: _row_to_doc(row) for row in rows}
        return [{**bm, "note": notes_by_id.get(bm.get("note_id"))} for bm in bookmarks]

    def create(self, user_id: str, note_id: str, comment: Optional[str] = None) -> Dict[str, Any]:
        row = {
            "id": _new_id(),
            "user_id": user_id,
            "note_id": note_id,
            "comment": comment,
            "created_at": now_ms(),
        }
        return _insert_validated(self.db, COL_BOOKMARKS, BookmarkModel, row)

    def update_comment(self, bookmark_id: str, comment: Optional[str]) -> Dict[str, Any]:
        rows = self.db.table(COL_BOOKMARKS).update({"comment": comment}, filters={"id": bookmark_id}, returning=True)
        if not rows:
            raise NotFoundError(f"{COL_BOOKMARKS} record not found: {bookmark_id}")
        return _row_to_doc(rows[0])

    def delete(self, bookmark_id: str) -> None:
        _delete_by_id(self.db, COL_BOOKMARKS, bookmark_id)


@dataclass
class ProgressRepo:
    db: SupabaseClient

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_PROGRESS, user_id, order=("last_reviewed", "desc"))

    def get(self, progress_id: str) -> Optional[Dict[str, Any]]:
        return _get_by_id(self.db, COL_PROGRESS, progress_id)

    def get_by_topic(self, user_id: str, topic: str) -> Optional[Dict[str, Any]]:
        return _first(self.db.table(COL_PROGRESS).select(filters={"user_id": user_id, "topic": topic}, limit=1))

    def upsert(self, user_id: str, topic: str, confidence: float) -> Dict[str, Any]:
        if not 0 <= float(confidence) <= 100:
            raise ValueError("confidence must be between 0 and 100")
        now = now_ms()
        existing = self.get_by_topic(user_id, topic)
        if existing:
            return _update_by_id(
                self.db,
                COL_PROGRESS,
                existing["id"],
                {"confidence": float(confidence), "last_reviewed": now},
            )
        row = {
            "id": _new_id(),
            "user_id": user_id,
            "topic": topic,
            "confidence": float(confidence),
            "last_reviewed": now,
        }
        return _insert_validated(self.db, COL_PROGRESS, ProgressModel, row)

    def topics_for_review(self, user_id: str, *, now: Optional[int] = None) -> List[Dict[str, Any]]:
        now = now_ms() if now is None else now
        due = [
            row
            for row in self.list_for_user(user_id)
            if is_review_due(row.get("confidence") or 0, row.get("last_reviewed") or 0, now)
        ]
        return sorted(due, key=lambda row: float(row.get("confidence") or 0))

    def delete(self, progress_id: str) -> None:
        _delete_by_id(self.db, COL_PROGRESS, progress_id)


_GOAL_FIELDS = ("title", "description", "target_date", "topics", "priority", "completed")


@dataclass
class StudyGoalRepo:
    db: SupabaseClient

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_STUDY_GOALS, user_id)

    def get(self, goal_id: str) -> Optional[Dict[str, Any]]:
        return _get_by_id(self.db, COL_STUDY_GOALS, goal_id)

    def active(self, user_id: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_STUDY_GOALS, user_id, order=("target_date", "asc"), completed=False)

    def by_date_range(self, user_id: str, start: int, end: int) -> List[Dict[str, Any]]:
        return _list_for_user(
            self.db,
            COL_STUDY_GOALS,
            user_id,
            order=("target_date", "asc"),
            target_date=[("gte", int(start)), ("lte", int(end))],
        )

    def create(
        self,
        user_id: str,
        title: str,
        target_date: int,
        *,
        description: str = "",
        topics: Optional[List[str]] = None,
        priority: str = "medium",
    ) -> Dict[str, Any]:
        row = {
            "id": _new_id(),
            "user_id": user_id,
            "title": title,
            "description": description,
            "target_date": int(target_date),
            "topics": list(topics or []),
            "priority": priority,
            "completed": False,
            "created_at": now_ms(),
        }
        return _insert_validated(self.db, COL_STUDY_GOALS, StudyGoalModel, row)

    def update(self, goal_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        return _update_by_id(self.db, COL_STUDY_GOALS, goal_id, _only(changes, _GOAL_FIELDS))

    def toggle_completion(self, goal_id: str) -> Dict[str, Any]:
        goal = _require(self.db, COL_STUDY_GOALS, goal_id)
        return _update_by_id(self.db, COL_STUDY_GOALS, goal_id, {"completed": not bool(goal.get("completed"))})

    def delete(self, goal_id: str) -> None:
        _delete_by_id(self.db, COL_STUDY_GOALS, goal_id)


_EXAM_FIELDS = ("title", "description", "date", "topics", "importance")


@dataclass
class ExamDateRepo:
    db: SupabaseClient

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_EXAM_DATES, user_id, order=("date", "asc"))

    def get(self, exam_id: str) -> Optional[Dict[str, Any]]:
        return _get_by_id(self.db, COL_EXAM_DATES, exam_id)

    def upcoming(self, user_id: str, *, now: Optional[int] = None) -> List[Dict[str, Any]]:
        now = now_ms() if now is None else now
        return _list_for_user(self.db, COL_EXAM_DATES, user_id, order=("date", "asc"), date=("gte", now))

    def by_date_range(self, user_id: str, start: int, end: int) -> List[Dict[str, Any]]:
        return _list_for_user(
            self.db,
            COL_EXAM_DATES,
            user_id,
            order=("date", "asc"),
            date=[("gte", int(start)), ("lte", int(end))],
        )

    def by_importance(self, user_id: str, importance: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_EXAM_DATES, user_id, order=("date", "asc"), importance=importance)

    def create(
        self,
        user_id: str,
        title: str,
        date: int,
        *,
        description: str = "",
        topics: Optional[List[str]] = None,
        importance: str = "major",
    ) -> Dict[str, Any]:
        row = {
            "id": _new_id(),
            "user_id": user_id,
            "title": title,
            "description": description,
            "date": int(date),
            "topics": list(topics or []),
            "importance": importance,
            "created_at": now_ms(),
        }
        return _insert_validated(self.db, COL_EXAM_DATES, ExamDateModel, row)

    def update(self, exam_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        return _update_by_id(self.db, COL_EXAM_DATES, exam_id, _only(changes, _EXAM_FIELDS))

    def delete(self, exam_id: str) -> None:
        _delete_by_id(self.db, COL_EXAM_DATES, exam_id)


@dataclass
class StudyPlanRepo:
    db: SupabaseClient

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_STUDY_PLANS, user_id)

    def current(self, user_id: str, *, now: Optional[int] = None) -> Optional[Dict[str, Any]]:
        now = now_ms() if now is None else now
        rows = _list_for_user(
            self.db,
            COL_STUDY_PLANS,
            user_id,
            limit=1,
            start_date=("lte", now),
            end_date=("gte", now),
        )
        return rows[0] if rows else None

    def get(self, plan_id: str) -> Optional[Dict[str, Any]]:
        return _get_by_id(self.db, COL_STUDY_PLANS, plan_id)

    def create(
        self,
        user_id: str,
        title: str,
        start_date: int,
        end_date: int,
        daily_plans: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        if int(end_date) < int(start_date):
            raise ValueError("end_date must not be before start_date")
        row = {
            "id": _new_id(),
            "user_id": user_id,
            "title": title,
            "start_date": int(start_date),
            "end_date": int(end_date),
            "daily_plans": daily_plans,
            "created_at": now_ms(),
        }
        return _insert_validated(self.db, COL_STUDY_PLANS, StudyPlanModel, row)

    def set_session_completion(self, plan_id: str, day_index: int, session_index: int, completed: bool) -> Dict[str, Any]:
        plan = _require(self.db, COL_STUDY_PLANS, plan_id)
        daily_plans = copy.deepcopy(plan.get("daily_plans") or [])
        if not 0 <= day_index < len(daily_plans):
            raise ValueError(f"day_index out of range: {day_index}")
        sessions = daily_plans[day_index].get("sessions") or []
        if not 0 <= session_index < len(sessions):
            raise ValueError(f"session_index out of range: {session_index}")
        sessions[session_index]["completed"] = bool(completed)
        return _update_by_id(self.db, COL_STUDY_PLANS, plan_id, {"daily_plans": daily_plans})

    def recent_activity(self, user_id: str, *, now: Optional[int] = None) -> List[Dict[str, Any]]:
        now = now_ms() if now is None else now
        since = now - WEEK_MS
        activity: List[Dict[str, Any]] = []

        cards = _list_for_user(self.db, COL_FLASHCARDS, user_id, order=None, last_reviewed=("gte", since))
        for card in cards:
            activity.append(
                {
                    "type": "flashcard",
                    "topic": card.get("category") or "",
                    "timestamp": int(card.get("last_reviewed") or 0),
                    "details": f'Reviewed "{str(card.get("front") or "")[:30]}..."',
                }
            )

        quizzes = _list_for_user(self.db, COL_QUIZZES, user_id, order=None, taken_at=("gte", since))
        for quiz in quizzes:
            activity.append(
                {
                    "type": "quiz",
                    "topic": quiz.get("title") or "",
                    "timestamp": int(quiz.get("taken_at") or 0),
                    "details": f"Score: {quiz.get('score')}/{len(quiz.get('questions') or [])}",
                }
            )

        notes = _list_for_user(self.db, COL_NOTES, user_id, order=None, created_at=("gte", since))
        for note in notes:
            activity.append(
                {
                    "type": "note",
                    "topic": note.get("title") or "",
                    "timestamp": int(note.get("created_at") or 0),
                    "details": f'Created note: "{note.get("title") or ""}"',
                }
            )

        return sorted(activity, key=lambda item: item["timestamp"], reverse=True)

    def delete(self, plan_id: str) -> None:
        _delete_by_id(self.db, COL_STUDY_PLANS, plan_id)


@dataclass
class WellnessRepo:
    db: SupabaseClient

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_WELLNESS, user_id)

    def get(self, checkin_id: str) -> Optional[Dict[str, Any]]:
        return _get_by_id(self.db, COL_WELLNESS, checkin_id)

    def recent(self, user_id: str, *, now: Optional[int] = None) -> List[Dict[str, Any]]:
        now = now_ms() if now is None else now
        return _list_for_user(self.db, COL_WELLNESS, user_id, created_at=("gte", now - WEEK_MS))

    def by_mood(self, user_id: str, mood: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_WELLNESS, user_id, mood=mood)

    def by_stress_range(self, user_id: str, low: int, high: int) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_WELLNESS, user_id, stress_level=[("gte", int(low)), ("lte", int(high))])

    def create(
        self,
        user_id: str,
        *,
        mood: str,
        stress_level: int,
        message: str,
        ai_response: str,
        suggestions: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        row = {
            "id": _new_id(),
            "user_id": user_id,
            "mood": mood,
            "stress_level": int(stress_level),
            "message": message,
            "ai_response": ai_response,
            "suggestions": list(suggestions or []),
            "created_at": now_ms(),
        }
        return _insert_validated(self.db, COL_WELLNESS, WellnessCheckinModel, row)

    def trends(self, user_id: str, period: str = "week", *, now: Optional[int] = None) -> Dict[str, Any]:
        now = now_ms() if now is None else now
        start = trend_window_start(period, now)
        if start is None:
            checkins = self.list_for_user(user_id)
        else:
            checkins = _list_for_user(self.db, COL_WELLNESS, user_id, created_at=("gte", start))
        if not checkins:
            return {"average_stress_level": 0, "mood_distribution": {}, "checkin_count": 0, "period": period}
        total_stress = sum(int(c.get("stress_level") or 0) for c in checkins)
        return {
            "average_stress_level": total_stress / len(checkins),
            "mood_distribution": dict(Counter(str(c.get("mood") or "") for c in checkins)),
            "checkin_count": len(checkins),
            "period": period,
        }

    def frequent_suggestions(self, user_id: str) -> List[Dict[str, Any]]:
        suggestions = (s for c in self.list_for_user(user_id) for s in (c.get("suggestions") or []))
        return _top_counts(suggestions, "suggestion")

    def delete(self, checkin_id: str) -> None:
        _delete_by_id(self.db, COL_WELLNESS, checkin_id)


@dataclass
class DailyDigestRepo:
    db: SupabaseClient

    def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_DAILY_DIGESTS, user_id, order=("date", "desc"))

    def get(self, digest_id: str) -> Optional[Dict[str, Any]]:
        return _get_by_id(self.db, COL_DAILY_DIGESTS, digest_id)

    def today(self, user_id: str, *, now: Optional[int] = None) -> Optional[Dict[str, Any]]:
        start, end = utc_day_bounds(now_ms() if now is None else now)
        rows = _list_for_user(
            self.db,
            COL_DAILY_DIGESTS,
            user_id,
            order=("date", "desc"),
            limit=1,
            date=[("gte", start), ("lt", end)],
        )
        return rows[0] if rows else None

    def previous(self, user_id: str, *, limit: int = 7, now: Optional[int] = None) -> List[Dict[str, Any]]:
        start, _ = utc_day_bounds(now_ms() if now is None else now)
        return _list_for_user(
            self.db,
            COL_DAILY_DIGESTS,
            user_id,
            order=("date", "desc"),
            limit=limit,
            date=("lt", start),
        )

    def by_date_range(self, user_id: str, start: int, end: int) -> List[Dict[str, Any]]:
        return _list_for_user(
            self.db,
            COL_DAILY_DIGESTS,
            user_id,
            order=("date", "asc"),
            date=[("gte", int(start)), ("lte", int(end))],
        )

    def completed(self, user_id: str) -> List[Dict[str, Any]]:
        return _list_for_user(self.db, COL_DAILY_DIGESTS, user_id, order=("date", "desc"), completed=True)

    def create(
        self,
        user_id: str,
        *,
        summary: str,
        review_topics: Optional[List[Dict[str, Any]]] = None,
        suggested_activities: Optional[List[Dict[str, Any]]] = None,
        date: Optional[int] = None,
    ) -> Dict[str, Any]:
        now = now_ms()
        row = {
            "id": _new_id(),
            "user_id": user_id,
            "date": now if date is None else int(date),
            "summary": summary,
            "review_topics": list(review_topics or []),
            "suggested_activities": list(suggested_activities or []),
            "completed": False,
            "created_at": now,
        }
        return _insert_validated(self.db, COL_DAILY_DIGESTS, DailyDigestModel, row)

    def set_completion(self, digest_id: str, completed: bool) -> Dict[str, Any]:
        return _update_by_id(self.db, COL_DAILY_DIGESTS, digest_id, {"completed": bool(completed)})

    def most_common_topics(self, user_id: str) -> List[Dict[str, Any]]:
        topics = (
            str(topic.get("topic"))
            for digest in self.list_for_user(user_id)
            for topic in (digest.get("review_topics") or [])
            if isinstance(topic, dict) and topic.get("topic")
        )
        return _top_counts(topics, "topic")

    def delete(self, digest_id: str) -> None:
        _delete_by_id(self.db, COL_DAILY_DIGESTS, digest_id)
