from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import os
import time
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from db import SupabaseError, get_db, ping
from knowledge_graph import ConceptGraphRepo, CorruptPropertiesError, seed_concepts_if_missing
from literature import PubMedClient
from llm import LLMClient, LLMError, QuotaExhaustedError
from model_router import TASKS, classify_complexity, classify_domain, config_for
from models import now_ms
from repos import (
    BookmarkRepo,
    DailyDigestRepo,
    ExamDateRepo,
    FlashcardRepo,
    NoteRepo,
    NotFoundError,
    ProgressRepo,
    QuizRepo,
    StudyGoalRepo,
    StudyPlanRepo,
    UserRepo,
    WellnessRepo,
)
from study_ai import StudyAssistant
from text_utils import extract_possible_tags, reading_time_minutes

logger = logging.getLogger(__name__)

API_PREFIX = "/api"
_TRUTHY = {"1", "true", "yes", "on"}


def _error(message: str, status: int) -> Any:
    return jsonify({"error": message}), status


class AuthError(RuntimeError):
    pass


def _b64url_decode(segment: str) -> bytes:
    padded = segment + "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(padded.encode("utf-8"))


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _verify_supabase_jwt(token: str) -> Dict[str, Any]:
    secret = os.getenv("SUPABASE_JWT_SECRET")
    if not secret:
        raise AuthError("Missing SUPABASE_JWT_SECRET")

    parts = token.split(".")
    if len(parts) != 3:
        raise AuthError("Malformed JWT")

    try:
        header = json.loads(_b64url_decode(parts[0]).decode("utf-8"))
        payload = json.loads(_b64url_decode(parts[1]).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise AuthError("Invalid JWT encoding") from exc

    if header.get("alg") != "HS256":
        raise AuthError("Unsupported JWT alg")

    signing_input = f"{parts[0]}.{parts[1]}".encode("utf-8")
    expected_sig = hmac.new(secret.encode("utf-8"), signing_input, hashlib.sha256).digest()
    if not hmac.compare_digest(_b64url_encode(expected_sig), parts[2].rstrip("=")):
        raise AuthError("Invalid JWT signature")

    exp = payload.get("exp")
    if exp is not None:
        try:
            exp_val = int(exp)
        except (TypeError, ValueError):
            raise AuthError("Invalid JWT exp") from None
        if int(time.time()) >= exp_val:
            raise AuthError("JWT expired")

    aud = (os.getenv("SUPABASE_JWT_AUD") or "").strip()
    if aud:
        payload_aud = payload.get("aud")
        valid = aud in payload_aud if isinstance(payload_aud, list) else payload_aud == aud
        if not valid:
            raise AuthError("JWT aud mismatch")

    return payload


def _current_user_id() -> str:
    auth_header = request.headers.get("Authorization", "").strip()
    if auth_header.lower().startswith("bearer "):
        token = auth_header.split(None, 1)[1].strip() if " " in auth_header else ""
        if not token:
            raise AuthError("Missing bearer token")
        claims = _verify_supabase_jwt(token)
        user_id = str(claims.get("sub") or claims.get("user_id") or "").strip()
        if not user_id:
            raise AuthError("JWT missing user id")
        return user_id

    user_id = (request.headers.get("X-User-Id") or "").strip()
    if user_id:
        return user_id
    raise AuthError("Missing Authorization Bearer token or X-User-Id header")


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValueError("Invalid JSON body")
    return payload


def _require_str(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Missing {key}")
    return value.strip()


def _require_int(payload: Dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an integer") from None


def _int_arg(name: str, default: Optional[int] = None) -> Optional[int]:
    raw = request.args.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer") from None


def _flag_arg(name: str) -> bool:
    return request.args.get(name, "").strip().lower() in _TRUTHY


def _owned(doc: Optional[Dict[str, Any]], user_id: str, label: str) -> Dict[str, Any]:
    if not doc or str(doc.get("user_id")) != str(user_id):
        raise NotFoundError(f"{label} not found")
    return doc


def create_app(
    *,
    db: Optional[Any] = None,
    assistant: Optional[StudyAssistant] = None,
    init_db: bool = True,
    seed_concepts: bool = True,
) -> Flask:
    app = Flask(__name__)
    # Vercel env vars: set SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY, SUPABASE_JWT_SECRET,
    # OPENAI_API_KEY and optionally SUPABASE_JWT_AUD in Project Settings > Environment Variables.
    try:
        from flask_cors import CORS
    except ImportError:
        CORS = None
    if CORS:
        CORS(app, resources={r"/api/*": {"origins": "*"}})

    @app.errorhandler(AuthError)
    def _handle_auth_error(exc: AuthError) -> Any:
        return _error(str(exc), 401)

    @app.errorhandler(NotFoundError)
    def _handle_not_found(exc: NotFoundError) -> Any:
        return _error(str(exc), 404)

    @app.errorhandler(ValueError)
    def _handle_bad_request(exc: ValueError) -> Any:
        return _error(str(exc), 400)

    @app.errorhandler(SupabaseError)
    def _handle_supabase_error(exc: SupabaseError) -> Any:
        logger.error("Supabase error: %s", exc)
        return _error("Backend database is unavailable. Try again shortly.", 503)

    @app.errorhandler(CorruptPropertiesError)
    def _handle_corrupt_properties(exc: CorruptPropertiesError) -> Any:
        logger.error("Concept store data error: %s", exc)
        return _error("Stored concept data is corrupt.", 500)

    @app.errorhandler(QuotaExhaustedError)
    def _handle_quota(exc: QuotaExhaustedError) -> Any:
        return _error("AI quota exhausted. Try again later.", 429)

    @app.errorhandler(LLMError)
    def _handle_llm_error(exc: LLMError) -> Any:
        logger.error("LLM error: %s", exc)
        return _error(str(exc), 502)

    db = db if db is not None else get_db()
    if init_db:
        ping(db)
    if seed_concepts:
        seed_concepts_if_missing(db)

    if assistant is None:
        assistant = StudyAssistant(LLMClient(), PubMedClient())

    user_repo = UserRepo(db)
    note_repo = NoteRepo(db)
    flashcard_repo = FlashcardRepo(db)
    quiz_repo = QuizRepo(db)
    bookmark_repo = BookmarkRepo(db)
    progress_repo = ProgressRepo(db)
    goal_repo = StudyGoalRepo(db)
    exam_repo = ExamDateRepo(db)
    plan_repo = StudyPlanRepo(db)
    wellness_repo = WellnessRepo(db)
    digest_repo = DailyDigestRepo(db)
    concept_repo = ConceptGraphRepo(db)

    # -----------------------------
    # Health / users
    # -----------------------------
    @app.route(f"{API_PREFIX}/health", methods=["GET"])
    def health() -> Any:
        check = request.args.get("check", "").strip().lower()
        if check in {"supabase", "db"}:
            try:
                ping(db)
            except (SupabaseError, RuntimeError) as exc:
                return jsonify({"status": "error", "supabase": "error", "message": str(exc)}), 500
            return jsonify({"status": "ok", "supabase": "ok"})
        return jsonify({"status": "ok"})

    @app.route(f"{API_PREFIX}/me", methods=["GET"])
    def get_me() -> Any:
        return jsonify({"user": user_repo.profile_with_stats(_current_user_id())})

    @app.route(f"{API_PREFIX}/me", methods=["PATCH"])
    def update_me() -> Any:
        payload = _json_body()
        user = user_repo.update_profile(
            _current_user_id(),
            name=payload.get("name"),
            email=payload.get("email"),
            avatar_url=payload.get("avatar_url"),
        )
        return jsonify({"user": user})

    @app.route(f"{API_PREFIX}/dev-user", methods=["POST"])
    def dev_user() -> Any:
        return jsonify({"user": user_repo.create_dev_user()}), 201

    # -----------------------------
    # Notes
    # -----------------------------
    @app.route(f"{API_PREFIX}/notes", methods=["GET"])
    def list_notes() -> Any:
        user_id = _current_user_id()
        query = request.args.get("q", "").strip()
        tag = request.args.get("tag", "").strip()
        if query:
            notes = note_repo.search(user_id, query)
        elif tag:
            notes = note_repo.by_tag(user_id, tag)
        else:
            notes = note_repo.list_for_user(user_id)
        return jsonify({"notes": notes})

    @app.route(f"{API_PREFIX}/notes", methods=["POST"])
    def create_note() -> Any:
        user_id = _current_user_id()
        payload = _json_body()
        tags = payload.get("tags")
        if tags is not None and not isinstance(tags, list):
            raise ValueError("tags must be a list")
        note = note_repo.create(
            user_id,
            str(payload.get("content") or ""),
            title=payload.get("title"),
            tags=tags,
        )
        return jsonify({"note": note}), 201

    @app.route(f"{API_PREFIX}/notes/<note_id>", methods=["GET"])
    def get_note(note_id: str) -> Any:
        note = _owned(note_repo.get(note_id), _current_user_id(), "Note")
        content = note.get("content") or ""
        return jsonify(
            {
                "note": note,
                "reading_time_minutes": reading_time_minutes(content),
                "suggested_tags": extract_possible_tags(content),
            }
        )

    @app.route(f"{API_PREFIX}/notes/<note_id>", methods=["PATCH"])
    def update_note(note_id: str) -> Any:
        _owned(note_repo.get(note_id), _current_user_id(), "Note")
        payload = _json_body()
        note = note_repo.update(
            note_id,
            title=payload.get("title"),
            content=payload.get("content"),
            tags=payload.get("tags"),
        )
        return jsonify({"note": note})

    @app.route(f"{API_PREFIX}/notes/<note_id>", methods=["DELETE"])
    def delete_note(note_id: str) -> Any:
        _owned(note_repo.get(note_id), _current_user_id(), "Note")
        note_repo.delete(note_id)
        return jsonify({"deleted": True})

    # -----------------------------
    # Flashcards
    # -----------------------------
    @app.route(f"{API_PREFIX}/flashcards", methods=["GET"])
    def list_flashcards() -> Any:
        user_id = _current_user_id()
        category = request.args.get("category", "").strip()
        if category:
            cards = flashcard_repo.by_category(user_id, category)
        else:
            cards = flashcard_repo.list_for_user(user_id)
        return jsonify({"flashcards": cards})

    @app.route(f"{API_PREFIX}/flashcards", methods=["POST"])
    def create_flashcards() -> Any:
        user_id = _current_user_id()
        payload = _json_body()
        category = str(payload.get("category") or "")
        cards = payload.get("cards")
        if cards is not None:
            if not isinstance(cards, list):
                raise ValueError("cards must be a list")
            return jsonify({"flashcards": flashcard_repo.create_batch(user_id, cards, category)}), 201
        card = flashcard_repo.create(user_id, _require_str(payload, "front"), _require_str(payload, "back"), category)
        return jsonify({"flashcard": card}), 201

    @app.route(f"{API_PREFIX}/flashcards/<card_id>/review", methods=["POST"])
    def review_flashcard(card_id: str) -> Any:
        _owned(flashcard_repo.get(card_id), _current_user_id(), "Flashcard")
        payload = _json_body()
        confidence = payload.get("confidence")
        if not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
            raise ValueError("confidence must be a number")
        return jsonify({"flashcard": flashcard_repo.record_review(card_id, confidence)})

    @app.route(f"{API_PREFIX}/flashcards/<card_id>", methods=["DELETE"])
    def delete_flashcard(card_id: str) -> Any:
        _owned(flashcard_repo.get(card_id), _current_user_id(), "Flashcard")
        flashcard_repo.delete(card_id)
        return jsonify({"deleted": True})

    @app.route(f"{API_PREFIX}/flashcards/category/<category>", methods=["DELETE"])
    def delete_flashcard_category(category: str) -> Any:
        deleted = flashcard_repo.delete_category(_current_user_id(), category)
        return jsonify({"deleted": deleted})

    # -----------------------------
    # Quizzes
    # -----------------------------
    @app.route(f"{API_PREFIX}/quizzes", methods=["GET"])
    def list_quizzes() -> Any:
        user_id = _current_user_id()
        topic = request.args.get("topic", "").strip()
        status = request.args.get("status", "").strip().lower()
        if topic:
            quizzes = quiz_repo.by_topic(user_id, topic)
        elif status == "completed":
            quizzes = quiz_repo.completed(user_id)
        elif status == "uncompleted":
            quizzes = quiz_repo.uncompleted(user_id)
        elif status:
            raise ValueError('status must be one of "completed","uncompleted"')
        else:
            quizzes = quiz_repo.list_for_user(user_id)
        return jsonify({"quizzes": quizzes})

    @app.route(f"{API_PREFIX}/quizzes", methods=["POST"])
    def create_quiz() -> Any:
        user_id = _current_user_id()
        payload = _json_body()
        questions = payload.get("questions")
        if not isinstance(questions, list):
            raise ValueError("questions must be a list")
        quiz = quiz_repo.create(
            user_id,
            _require_str(payload, "title"),
            questions,
            difficulty=payload.get("difficulty"),
        )
        return jsonify({"quiz": quiz}), 201

    @app.route(f"{API_PREFIX}/quizzes/<quiz_id>", methods=["GET"])
    def get_quiz(quiz_id: str) -> Any:
        return jsonify({"quiz": _owned(quiz_repo.get(quiz_id), _current_user_id(), "Quiz")})

    @app.route(f"{API_PREFIX}/quizzes/<quiz_id>/score", methods=["POST"])
    def score_quiz(quiz_id: str) -> Any:
        _owned(quiz_repo.get(quiz_id), _current_user_id(), "Quiz")
        payload = _json_body()
        score = payload.get("score")
        if not isinstance(score, (int, float)) or isinstance(score, bool):
            raise ValueError("score must be a number")
        return jsonify({"quiz": quiz_repo.record_score(quiz_id, score)})

    @app.route(f"{API_PREFIX}/quizzes/<quiz_id>", methods=["DELETE"])
    def delete_quiz(quiz_id: str) -> Any:
        _owned(quiz_repo.get(quiz_id), _current_user_id(), "Quiz")
        quiz_repo.delete(quiz_id)
        return jsonify({"deleted": True})

    # -----------------------------
    # Bookmarks
    # -----------------------------
    @app.route(f"{API_PREFIX}/bookmarks", methods=["GET"])
    def list_bookmarks() -> Any:
        user_id = _current_user_id()
        if _flag_arg("with_notes"):
            return jsonify({"bookmarks": bookmark_repo.list_with_notes(user_id)})
        return jsonify({"bookmarks": bookmark_repo.list_for_user(user_id)})

    @app.route(f"{API_PREFIX}/bookmarks", methods=["POST"])
    def create_bookmark() -> Any:
        user_id = _current_user_id()
        payload = _json_body()
        note_id = _require_str(payload, "note_id")
        _owned(note_repo.get(note_id), user_id, "Note")
        bookmark = bookmark_repo.create(user_id, note_id, payload.get("comment"))
        return jsonify({"bookmark": bookmark}), 201

    @app.route(f"{API_PREFIX}/bookmarks/<bookmark_id>", methods=["PATCH"])
    def update_bookmark(bookmark_id: str) -> Any:
        _owned(bookmark_repo.get(bookmark_id), _current_user_id(), "Bookmark")
        payload = _json_body()
        return jsonify({"bookmark": bookmark_repo.update_comment(bookmark_id, payload.get("comment"))})

    @app.route(f"{API_PREFIX}/bookmarks/<bookmark_id>", methods=["DELETE"])
    def delete_bookmark(bookmark_id: str) -> Any:
        _owned(bookmark_repo.get(bookmark_id), _current_user_id(), "Bookmark")
        bookmark_repo.delete(bookmark_id)
        return jsonify({"deleted": True})

    # -----------------------------
    # Progress
    # -----------------------------
    @app.route(f"{API_PREFIX}/progress", methods=["GET"])
    def list_progress() -> Any:
        return jsonify({"progress": progress_repo.list_for_user(_current_user_id())})

    @app.route(f"{API_PREFIX}/progress", methods=["PUT"])
    def upsert_progress() -> Any:
        payload = _json_body()
        confidence = payload.get("confidence")
        if not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
            raise ValueError("confidence must be a number")
        row = progress_repo.upsert(_current_user_id(), _require_str(payload, "topic"), confidence)
        return jsonify({"progress": row})

    @app.route(f"{API_PREFIX}/progress/review", methods=["GET"])
    def progress_for_review() -> Any:
        return jsonify({"topics": progress_repo.topics_for_review(_current_user_id())})

    @app.route(f"{API_PREFIX}/progress/<progress_id>", methods=["DELETE"])
    def delete_progress(progress_id: str) -> Any:
        _owned(progress_repo.get(progress_id), _current_user_id(), "Progress")
        progress_repo.delete(progress_id)
        return jsonify({"deleted": True})

    # -----------------------------
    # Study goals
    # -----------------------------
    @app.route(f"{API_PREFIX}/goals", methods=["GET"])
    def list_goals() -> Any:
        user_id = _current_user_id()
        start, end = _int_arg("start"), _int_arg("end")
        if start is not None and end is not None:
            goals = goal_repo.by_date_range(user_id, start, end)
        elif request.args.get("status", "").strip().lower() == "active":
            goals = goal_repo.active(user_id)
        else:
            goals = goal_repo.list_for_user(user_id)
        return jsonify({"goals": goals})

    @app.route(f"{API_PREFIX}/goals", methods=["POST"])
    def create_goal() -> Any:
        payload = _json_body()
        goal = goal_repo.create(
            _current_user_id(),
            _require_str(payload, "title"),
            _require_int(payload, "target_date"),
            description=str(payload.get("description") or ""),
            topics=payload.get("topics"),
            priority=str(payload.get("priority") or "medium"),
        )
        return jsonify({"goal": goal}), 201

    @app.route(f"{API_PREFIX}/goals/<goal_id>", methods=["PATCH"])
    def update_goal(goal_id: str) -> Any:
        _owned(goal_repo.get(goal_id), _current_user_id(), "Goal")
        return jsonify({"goal": goal_repo.update(goal_id, _json_body())})

    @app.route(f"{API_PREFIX}/goals/<goal_id>/toggle", methods=["POST"])
    def toggle_goal(goal_id: str) -> Any:
        _owned(goal_repo.get(goal_id), _current_user_id(), "Goal")
        return jsonify({"goal": goal_repo.toggle_completion(goal_id)})

    @app.route(f"{API_PREFIX}/goals/<goal_id>", methods=["DELETE"])
    def delete_goal(goal_id: str) -> Any:
        _owned(goal_repo.get(goal_id), _current_user_id(), "Goal")
        goal_repo.delete(goal_id)
        return jsonify({"deleted": True})

    # -----------------------------
    # Exam dates
    # -----------------------------
    @app.route(f"{API_PREFIX}/exams", methods=["GET"])
    def list_exams() -> Any:
        user_id = _current_user_id()
        start, end = _int_arg("start"), _int_arg("end")
        importance = request.args.get("importance", "").strip()
        if start is not None and end is not None:
            exams = exam_repo.by_date_range(user_id, start, end)
        elif importance:
            exams = exam_repo.by_importance(user_id, importance)
        elif _flag_arg("upcoming"):
            exams = exam_repo.upcoming(user_id)
        else:
            exams = exam_repo.list_for_user(user_id)
        return jsonify({"exams": exams})

    @app.route(f"{API_PREFIX}/exams", methods=["POST"])
    def create_exam() -> Any:
        payload = _json_body()
        exam = exam_repo.create(
            _current_user_id(),
            _require_str(payload, "title"),
            _require_int(payload, "date"),
            description=str(payload.get("description") or ""),
            topics=payload.get("topics"),
            importance=str(payload.get("importance") or "major"),
        )
        return jsonify({"exam": exam}), 201

    @app.route(f"{API_PREFIX}/exams/<exam_id>", methods=["PATCH"])
    def update_exam(exam_id: str) -> Any:
        _owned(exam_repo.get(exam_id), _current_user_id(), "Exam")
        return jsonify({"exam": exam_repo.update(exam_id, _json_body())})

    @app.route(f"{API_PREFIX}/exams/<exam_id>", methods=["DELETE"])
    def delete_exam(exam_id: str) -> Any:
        _owned(exam_repo.get(exam_id), _current_user_id(), "Exam")
        exam_repo.delete(exam_id)
        return jsonify({"deleted": True})

    # -----------------------------
    # Study plans
    # -----------------------------
    @app.route(f"{API_PREFIX}/plans", methods=["GET"])
    def list_plans() -> Any:
        return jsonify({"plans": plan_repo.list_for_user(_current_user_id())})

    @app.route(f"{API_PREFIX}/plans/current", methods=["GET"])
    def current_plan() -> Any:
        return jsonify({"plan": plan_repo.current(_current_user_id())})

    @app.route(f"{API_PREFIX}/plans", methods=["POST"])
    def create_plan() -> Any:
        payload = _json_body()
        daily_plans = payload.get("daily_plans")
        if not isinstance(daily_plans, list):
            raise ValueError("daily_plans must be a list")
        plan = plan_repo.create(
            _current_user_id(),
            _require_str(payload, "title"),
            _require_int(payload, "start_date"),
            _require_int(payload, "end_date"),
            daily_plans,
        )
        return jsonify({"plan": plan}), 201

    @app.route(f"{API_PREFIX}/plans/<plan_id>", methods=["GET"])
    def get_plan(plan_id: str) -> Any:
        return jsonify({"plan": _owned(plan_repo.get(plan_id), _current_user_id(), "Plan")})

    @app.route(f"{API_PREFIX}/plans/<plan_id>/sessions", methods=["PATCH"])
    def update_plan_session(plan_id: str) -> Any:
        _owned(plan_repo.get(plan_id), _current_user_id(), "Plan")
        payload = _json_body()
        plan = plan_repo.set_session_completion(
            plan_id,
            _require_int(payload, "day_index"),
            _require_int(payload, "session_index"),
            bool(payload.get("completed", True)),
        )
        return jsonify({"plan": plan})

    @app.route(f"{API_PREFIX}/plans/<plan_id>", methods=["DELETE"])
    def delete_plan(plan_id: str) -> Any:
        _owned(plan_repo.get(plan_id), _current_user_id(), "Plan")
        plan_repo.delete(plan_id)
        return jsonify({"deleted": True})

    @app.route(f"{API_PREFIX}/activity/recent", methods=["GET"])
    def recent_activity() -> Any:
        return jsonify({"activity": plan_repo.recent_activity(_current_user_id())})

    # -----------------------------
    # Wellness
    # -----------------------------
    @app.route(f"{API_PREFIX}/wellness", methods=["GET"])
    def list_wellness() -> Any:
        user_id = _current_user_id()
        mood = request.args.get("mood", "").strip()
        low, high = _int_arg("min_stress"), _int_arg("max_stress")
        if mood:
            checkins = wellness_repo.by_mood(user_id, mood)
        elif low is not None or high is not None:
            checkins = wellness_repo.by_stress_range(user_id, low or 1, high or 10)
        elif _flag_arg("recent"):
            checkins = wellness_repo.recent(user_id)
        else:
            checkins = wellness_repo.list_for_user(user_id)
        return jsonify({"checkins": checkins})

    @app.route(f"{API_PREFIX}/wellness", methods=["POST"])
    def create_wellness() -> Any:
        payload = _json_body()
        checkin = wellness_repo.create(
            _current_user_id(),
            mood=_require_str(payload, "mood"),
            stress_level=_require_int(payload, "stress_level"),
            message=str(payload.get("message") or ""),
            ai_response=str(payload.get("ai_response") or ""),
            suggestions=payload.get("suggestions"),
        )
        return jsonify({"checkin": checkin}), 201

    @app.route(f"{API_PREFIX}/wellness/trends", methods=["GET"])
    def wellness_trends() -> Any:
        period = request.args.get("period", "week").strip().lower() or "week"
        return jsonify({"trends": wellness_repo.trends(_current_user_id(), period)})

    @app.route(f"{API_PREFIX}/wellness/suggestions", methods=["GET"])
    def wellness_suggestions() -> Any:
        return jsonify({"suggestions": wellness_repo.frequent_suggestions(_current_user_id())})

    @app.route(f"{API_PREFIX}/wellness/<checkin_id>", methods=["DELETE"])
    def delete_wellness(checkin_id: str) -> Any:
        _owned(wellness_repo.get(checkin_id), _current_user_id(), "Check-in")
        wellness_repo.delete(checkin_id)
        return jsonify({"deleted": True})

    # -----------------------------
    # Daily digests
    # -----------------------------
    @app.route(f"{API_PREFIX}/digests", methods=["GET"])
    def list_digests() -> Any:
        user_id = _current_user_id()
        start, end = _int_arg("start"), _int_arg("end")
        if start is not None and end is not None:
            digests = digest_repo.by_date_range(user_id, start, end)
        elif _flag_arg("completed"):
            digests = digest_repo.completed(user_id)
        else:
            digests = digest_repo.list_for_user(user_id)
        return jsonify({"digests": digests})

    @app.route(f"{API_PREFIX}/digests/today", methods=["GET"])
    def today_digest() -> Any:
        return jsonify({"digest": digest_repo.today(_current_user_id())})

    @app.route(f"{API_PREFIX}/digests/previous", methods=["GET"])
    def previous_digests() -> Any:
        limit = _int_arg("limit", 7)
        if limit is None or limit < 1:
            raise ValueError("limit must be >= 1")
        return jsonify({"digests": digest_repo.previous(_current_user_id(), limit=min(limit, 100))})

    @app.route(f"{API_PREFIX}/digests/topics", methods=["GET"])
    def digest_topics() -> Any:
        return jsonify({"topics": digest_repo.most_common_topics(_current_user_id())})

    @app.route(f"{API_PREFIX}/digests/<digest_id>/complete", methods=["POST"])
    def complete_digest(digest_id: str) -> Any:
        _owned(digest_repo.get(digest_id), _current_user_id(), "Digest")
        payload = _json_body()
        return jsonify({"digest": digest_repo.set_completion(digest_id, bool(payload.get("completed", True)))})

    @app.route(f"{API_PREFIX}/digests/<digest_id>", methods=["DELETE"])
    def delete_digest(digest_id: str) -> Any:
        _owned(digest_repo.get(digest_id), _current_user_id(), "Digest")
        digest_repo.delete(digest_id)
        return jsonify({"deleted": True})

    # -----------------------------
    # Concept graph
    # -----------------------------
    @app.route(f"{API_PREFIX}/concepts", methods=["GET"])
    def list_concepts() -> Any:
        category = request.args.get("category", "").strip() or None
        concepts = concept_repo.list_concepts(category=category)
        return jsonify({"concepts": [c.model_dump() for c in concepts]})

    @app.route(f"{API_PREFIX}/concepts", methods=["POST"])
    def create_concept() -> Any:
        _current_user_id()
        payload = _json_body()
        properties = payload.get("properties")
        if properties is not None and not isinstance(properties, dict):
            raise ValueError("properties must be an object")
        concept = concept_repo.add_concept(
            _require_str(payload, "name"),
            str(payload.get("category") or ""),
            str(payload.get("description") or ""),
            external_code=payload.get("external_code"),
            properties=properties,
        )
        return jsonify({"concept": concept.model_dump()}), 201

    @app.route(f"{API_PREFIX}/concepts/relationships", methods=["POST"])
    def create_relationship() -> Any:
        _current_user_id()
        payload = _json_body()
        source_id = _require_str(payload, "source_id")
        target_id = _require_str(payload, "target_id")
        for concept_id in (source_id, target_id):
            if concept_repo.get_by_id(concept_id) is None:
                raise NotFoundError(f"Concept not found: {concept_id}")
        properties = payload.get("properties")
        if properties is not None and not isinstance(properties, dict):
            raise ValueError("properties must be an object")
        edge = concept_repo.add_relationship(
            source_id,
            target_id,
            _require_str(payload, "relationship_type"),
            properties=properties,
        )
        return jsonify({"relationship": edge.model_dump()}), 201

    @app.route(f"{API_PREFIX}/concepts/graph", methods=["GET"])
    def concept_graph() -> Any:
        name = request.args.get("name", "").strip()
        if not name:
            raise ValueError("Missing name")
        depth = _int_arg("depth")
        return jsonify(concept_repo.concept_graph(name, depth).to_dict())

    # -----------------------------
    # Model routing preview
    # -----------------------------
    @app.route(f"{API_PREFIX}/route", methods=["POST"])
    def route_preview() -> Any:
        payload = _json_body()
        text = _require_str(payload, "text")
        task = str(payload.get("task") or "qa")
        if task not in TASKS:
            raise ValueError(f"task must be one of {', '.join(TASKS)}")
        complexity = classify_complexity(text)
        return jsonify(
            {
                "task": task,
                "complexity": complexity,
                "domain": classify_domain(text),
                "config": config_for(task, complexity).to_dict(),
            }
        )

    # -----------------------------
    # AI actions
    # -----------------------------
    @app.route(f"{API_PREFIX}/ai/ask", methods=["POST"])
    def ai_ask() -> Any:
        _current_user_id()
        payload = _json_body()
        return jsonify(assistant.ask_question(_require_str(payload, "question")))

    @app.route(f"{API_PREFIX}/ai/ask-image", methods=["POST"])
    def ai_ask_image() -> Any:
        _current_user_id()
        payload = _json_body()
        answer = assistant.ask_question_with_image(_require_str(payload, "question"), _require_str(payload, "image_url"))
        return jsonify({"answer": answer})

    @app.route(f"{API_PREFIX}/ai/analyze-image", methods=["POST"])
    def ai_analyze_image() -> Any:
        _current_user_id()
        payload = _json_body()
        analysis = assistant.analyze_medical_image(_require_str(payload, "image_url"), payload.get("prompt"))
        return jsonify({"analysis": analysis})

    @app.route(f"{API_PREFIX}/ai/flashcards", methods=["POST"])
    def ai_flashcards() -> Any:
        user_id = _current_user_id()
        payload = _json_body()
        topic = _require_str(payload, "topic")
        cards = assistant.generate_flashcards(topic, payload.get("content"))
        if payload.get("save") and cards:
            category = str(payload.get("category") or topic)
            return jsonify({"flashcards": flashcard_repo.create_batch(user_id, cards, category), "saved": True})
        return jsonify({"flashcards": cards, "saved": False})

    @app.route(f"{API_PREFIX}/ai/summarize", methods=["POST"])
    def ai_summarize() -> Any:
        _current_user_id()
        payload = _json_body()
        return jsonify({"summary": assistant.summarize_notes(_require_str(payload, "content"))})

    @app.route(f"{API_PREFIX}/ai/study-plan", methods=["POST"])
    def ai_study_plan() -> Any:
        user_id = _current_user_id()
        payload = _json_body()
        start_date = _require_int(payload, "start_date")
        end_date = _require_int(payload, "end_date")
        if end_date < start_date:
            raise ValueError("end_date must not be before start_date")
        preferences = payload.get("preferences") or {}
        if not isinstance(preferences, dict):
            raise ValueError("preferences must be an object")
        draft = assistant.generate_study_plan(
            start_date=start_date,
            end_date=end_date,
            goals=goal_repo.active(user_id),
            exams=exam_repo.upcoming(user_id),
            progress=progress_repo.list_for_user(user_id),
            preferences=preferences,
        )
        if payload.get("save", True):
            plan = plan_repo.create(user_id, draft["title"], start_date, end_date, draft["daily_plans"])
            return jsonify({"plan": plan, "saved": True}), 201
        return jsonify({"plan": draft, "saved": False})

    @app.route(f"{API_PREFIX}/ai/wellness", methods=["POST"])
    def ai_wellness() -> Any:
        user_id = _current_user_id()
        payload = _json_body()
        message = _require_str(payload, "message")
        previous = wellness_repo.recent(user_id)
        analysis = assistant.process_wellness_checkin(message, previous)
        checkin = wellness_repo.create(
            user_id,
            mood=analysis["mood"],
            stress_level=analysis["stress_level"],
            message=message,
            ai_response=analysis["response"],
            suggestions=analysis["suggestions"],
        )
        return jsonify({"checkin": checkin, "analysis": analysis["analysis"]}), 201

    @app.route(f"{API_PREFIX}/ai/daily-digest", methods=["POST"])
    def ai_daily_digest() -> Any:
        user_id = _current_user_id()
        payload = _json_body()
        available = payload.get("available_minutes")
        if available is not None:
            available = _require_int(payload, "available_minutes")
        today = now_ms()
        draft = assistant.generate_daily_digest(
            today=today,
            progress=progress_repo.list_for_user(user_id),
            exams=exam_repo.upcoming(user_id, now=today),
            goals=goal_repo.active(user_id),
            recent_activity=plan_repo.recent_activity(user_id, now=today),
            available_minutes=available,
        )
        digest = digest_repo.create(
            user_id,
            summary=draft["summary"],
            review_topics=draft["review_topics"],
            suggested_activities=draft["suggested_activities"],
            date=today,
        )
        return jsonify({"digest": digest}), 201

    @app.route(f"{API_PREFIX}/ai/verify", methods=["POST"])
    def ai_verify() -> Any:
        _current_user_id()
        payload = _json_body()
        return jsonify(assistant.verify_medical_facts(_require_str(payload, "text")))

    @app.route(f"{API_PREFIX}/ai/literature", methods=["POST"])
    def ai_literature() -> Any:
        _current_user_id()
        payload = _json_body()
        return jsonify(assistant.answer_with_literature(_require_str(payload, "question")))

    @app.route(f"{API_PREFIX}/ai/cite", methods=["POST"])
    def ai_cite() -> Any:
        _current_user_id()
        payload = _json_body()
        return jsonify(assistant.generate_with_citations(_require_str(payload, "question")))

    return app


def _configure_logging() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


if __name__ == "__main__":
    _configure_logging()
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")))
