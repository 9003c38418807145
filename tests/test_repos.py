import pytest

from models import COL_FLASHCARDS, COL_QUIZZES, DAY_MS, WEEK_MS
from repos import (
    DEV_USER_NAME,
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

NOW = 1_700_000_000_000
USER = "user-1"


def _question(answer=0):
    return {"question": "Most common cause of MI?", "options": ["CAD", "Vasospasm"], "correct_answer": answer}


class TestUsers:
    def test_dev_user_is_reused(self, db):
        repo = UserRepo(db)
        first = repo.create_dev_user()
        second = repo.create_dev_user()
        assert first["id"] == second["id"]
        assert first["name"] == DEV_USER_NAME

    def test_profile_with_stats_counts_owned_rows(self, db):
        users = UserRepo(db)
        user = users.create_dev_user()
        NoteRepo(db).create(user["id"], "First note.")
        NoteRepo(db).create("someone-else", "Other note.")
        FlashcardRepo(db).create(user["id"], "Q", "A")

        profile = users.profile_with_stats(user["id"])
        assert profile["stats"]["notes_count"] == 1
        assert profile["stats"]["flashcards_count"] == 1
        assert profile["stats"]["quizzes_count"] == 0

    def test_profile_of_unknown_user(self, db):
        with pytest.raises(NotFoundError):
            UserRepo(db).profile_with_stats("ghost")

    def test_update_profile_ignores_unset_fields(self, db):
        users = UserRepo(db)
        user = users.create_dev_user()
        updated = users.update_profile(user["id"], name="Dr. Ada")
        assert updated["name"] == "Dr. Ada"
        assert updated["email"] == user["email"]


class TestNotes:
    def test_title_defaults_to_first_sentence(self, db):
        note = NoteRepo(db).create(USER, "Heart failure basics. Preload and afterload.")
        assert note["title"] == "Heart failure basics"

    def test_empty_note_is_rejected(self, db):
        with pytest.raises(ValueError):
            NoteRepo(db).create(USER, "   ")

    def test_search_and_tags(self, db):
        repo = NoteRepo(db)
        repo.create(USER, "Renal physiology and the nephron.", tags=["renal"])
        repo.create(USER, "Cardiac cycle.", tags=["cardio"])
        repo.create("other", "Renal from another user.")

        assert [n["title"] for n in repo.search(USER, "nephron kidney")] == ["Renal physiology and the nephron."]
        assert [n["tags"] for n in repo.by_tag(USER, "cardio")] == [["cardio"]]

    def test_update_missing_note(self, db):
        with pytest.raises(NotFoundError):
            NoteRepo(db).update("missing", title="x")

    def test_delete_missing_note(self, db):
        with pytest.raises(NotFoundError):
            NoteRepo(db).delete("missing")


class TestFlashcards:
    def test_new_card_starts_unreviewed(self, db):
        card = FlashcardRepo(db).create(USER, "Q", "A", "cardio")
        assert card["confidence"] == 0
        assert card["last_reviewed"] is not None

    def test_record_review_bounds(self, db):
        repo = FlashcardRepo(db)
        card = repo.create(USER, "Q", "A")
        assert repo.record_review(card["id"], 80)["confidence"] == 80
        with pytest.raises(ValueError):
            repo.record_review(card["id"], 101)

    def test_batch_and_category_delete(self, db):
        repo = FlashcardRepo(db)
        repo.create_batch(USER, [{"front": "a", "back": "b"}, {"front": "c", "back": "d"}], "renal")
        repo.create(USER, "e", "f", "cardio")
        assert len(repo.by_category(USER, "renal")) == 2
        assert repo.delete_category(USER, "renal") == 2
        assert [c["category"] for c in repo.list_for_user(USER)] == ["cardio"]


class TestQuizzes:
    def test_answer_index_is_validated(self, db):
        with pytest.raises(ValueError):
            QuizRepo(db).create(USER, "Cardiology", [_question(answer=5)])

    def test_quiz_needs_questions(self, db):
        with pytest.raises(ValueError):
            QuizRepo(db).create(USER, "Cardiology", [])

    def test_completed_and_uncompleted(self, db):
        repo = QuizRepo(db)
        done = repo.create(USER, "Cardiology basics", [_question()])
        repo.create(USER, "Renal basics", [_question()])
        repo.record_score(done["id"], 1)

        assert [q["id"] for q in repo.completed(USER)] == [done["id"]]
        assert [q["title"] for q in repo.uncompleted(USER)] == ["Renal basics"]
        assert [q["title"] for q in repo.by_topic(USER, "cardio")] == ["Cardiology basics"]
        assert db.tables[COL_QUIZZES][0]["taken_at"] is not None


class TestBookmarks:
    def test_list_with_notes_joins_note(self, db):
        note = NoteRepo(db).create(USER, "Bookmarked note.")
        repo = BookmarkRepo(db)
        repo.create(USER, note["id"], "read again")
        repo.create(USER, "deleted-note")

        joined = {b["note_id"]: b["note"] for b in repo.list_with_notes(USER)}
        assert joined[note["id"]]["title"] == "Bookmarked note."
        assert joined["deleted-note"] is None

    def test_update_comment(self, db):
        repo = BookmarkRepo(db)
        bm = repo.create(USER, "n1")
        assert repo.update_comment(bm["id"], "new")["comment"] == "new"


class TestProgress:
    def test_upsert_updates_existing_topic(self, db):
        repo = ProgressRepo(db)
        first = repo.upsert(USER, "Renal", 40)
        second = repo.upsert(USER, "Renal", 85)
        assert first["id"] == second["id"]
        assert len(repo.list_for_user(USER)) == 1
        assert second["confidence"] == 85

    def test_topics_for_review_sorted_by_confidence(self, db):
        repo = ProgressRepo(db)
        for topic, conf, age in [("A", 90, 0), ("B", 60, 0), ("C", 30, 0), ("D", 95, 8 * DAY_MS)]:
            row = repo.upsert(USER, topic, conf)
            db.table("progress").update({"last_reviewed": NOW - age}, filters={"id": row["id"]})

        due = repo.topics_for_review(USER, now=NOW)
        assert [r["topic"] for r in due] == ["C", "B", "D"]


class TestGoalsAndExams:
    def test_goal_lifecycle(self, db):
        repo = StudyGoalRepo(db)
        goal = repo.create(USER, "Finish renal", NOW + DAY_MS, topics=["renal"], priority="high")
        assert [g["id"] for g in repo.active(USER)] == [goal["id"]]

        assert repo.toggle_completion(goal["id"])["completed"] is True
        assert repo.active(USER) == []
        assert repo.update(goal["id"], {"title": "Renal done", "user_id": "hijack"})["user_id"] == USER

    def test_goal_date_range_is_inclusive(self, db):
        repo = StudyGoalRepo(db)
        repo.create(USER, "early", NOW)
        repo.create(USER, "late", NOW + 2 * DAY_MS)
        repo.create(USER, "outside", NOW + 3 * DAY_MS)
        assert [g["title"] for g in repo.by_date_range(USER, NOW, NOW + 2 * DAY_MS)] == ["early", "late"]

    def test_invalid_priority_is_rejected(self, db):
        with pytest.raises(ValueError):
            StudyGoalRepo(db).create(USER, "x", NOW, priority="urgent")

    def test_upcoming_exams_are_ordered(self, db):
        repo = ExamDateRepo(db)
        repo.create(USER, "Past", NOW - DAY_MS)
        repo.create(USER, "Step 1", NOW + 10 * DAY_MS)
        repo.create(USER, "Shelf", NOW + 2 * DAY_MS, importance="minor")

        assert [e["title"] for e in repo.upcoming(USER, now=NOW)] == ["Shelf", "Step 1"]
        assert [e["title"] for e in repo.by_importance(USER, "minor")] == ["Shelf"]


class TestStudyPlans:
    def _plan(self, db):
        daily = [
            {
                "day": "monday",
                "date": NOW,
                "sessions": [{"start_time": "09:00", "end_time": "10:00", "topic": "Renal", "activity": "review"}],
            }
        ]
        return StudyPlanRepo(db).create(USER, "Week 1", NOW - DAY_MS, NOW + WEEK_MS, daily)

    def test_end_before_start_is_rejected(self, db):
        with pytest.raises(ValueError):
            StudyPlanRepo(db).create(USER, "bad", NOW, NOW - 1, [])

    def test_current_plan(self, db):
        plan = self._plan(db)
        repo = StudyPlanRepo(db)
        assert repo.current(USER, now=NOW)["id"] == plan["id"]
        assert repo.current(USER, now=NOW + 2 * WEEK_MS) is None

    def test_set_session_completion(self, db):
        plan = self._plan(db)
        repo = StudyPlanRepo(db)
        updated = repo.set_session_completion(plan["id"], 0, 0, True)
        assert updated["daily_plans"][0]["sessions"][0]["completed"] is True
        with pytest.raises(ValueError):
            repo.set_session_completion(plan["id"], 0, 3, True)

    def test_recent_activity_merges_sources_newest_first(self, db):
        cards = FlashcardRepo(db)
        card = cards.create(USER, "What does troponin indicate?", "Myocyte injury", "cardio")
        db.table(COL_FLASHCARDS).update({"last_reviewed": NOW - DAY_MS}, filters={"id": card["id"]})
        quiz = QuizRepo(db).create(USER, "Cardio quiz", [_question()])
        db.table(COL_QUIZZES).update({"score": 1, "taken_at": NOW - 2 * DAY_MS}, filters={"id": quiz["id"]})
        old = QuizRepo(db).create(USER, "Old quiz", [_question()])
        db.table(COL_QUIZZES).update({"score": 0, "taken_at": NOW - 2 * WEEK_MS}, filters={"id": old["id"]})

        activity = StudyPlanRepo(db).recent_activity(USER, now=NOW)
        assert [a["type"] for a in activity] == ["flashcard", "quiz"]
        assert activity[0]["details"] == 'Reviewed "What does troponin indicate?..."'
        assert activity[1]["details"] == "Score: 1/1"


class TestWellness:
    def _checkin(self, repo, mood, stress, suggestions=()):
        return repo.create(USER, mood=mood, stress_level=stress, message="m", ai_response="r", suggestions=list(suggestions))

    def test_trends(self, db):
        repo = WellnessRepo(db)
        self._checkin(repo, "stressed", 8)
        self._checkin(repo, "good", 2)
        self._checkin(repo, "stressed", 5)

        trends = repo.trends(USER, "week")
        assert trends["checkin_count"] == 3
        assert trends["average_stress_level"] == 5
        assert trends["mood_distribution"] == {"stressed": 2, "good": 1}

    def test_empty_trends(self, db):
        assert WellnessRepo(db).trends(USER, "all") == {
            "average_stress_level": 0,
            "mood_distribution": {},
            "checkin_count": 0,
            "period": "all",
        }

    def test_stress_level_is_bounded(self, db):
        with pytest.raises(ValueError):
            self._checkin(WellnessRepo(db), "sad", 11)

    def test_stress_range_and_suggestions(self, db):
        repo = WellnessRepo(db)
        self._checkin(repo, "okay", 3, ["walk", "sleep"])
        self._checkin(repo, "stressed", 7, ["walk"])
        assert [c["stress_level"] for c in repo.by_stress_range(USER, 5, 10)] == [7]
        assert repo.frequent_suggestions(USER)[0] == {"suggestion": "walk", "count": 2}


class TestDigests:
    def test_today_and_previous(self, db):
        repo = DailyDigestRepo(db)
        today = repo.create(USER, summary="Today", date=NOW)
        repo.create(USER, summary="Yesterday", date=NOW - DAY_MS)

        assert repo.today(USER, now=NOW)["id"] == today["id"]
        assert [d["summary"] for d in repo.previous(USER, now=NOW)] == ["Yesterday"]

    def test_completion_and_topics(self, db):
        repo = DailyDigestRepo(db)
        topics = [{"topic": "Renal", "reason": "low confidence", "priority": "high"}]
        digest = repo.create(USER, summary="s", review_topics=topics, date=NOW)
        repo.create(USER, summary="s2", review_topics=topics, date=NOW - DAY_MS)

        assert repo.set_completion(digest["id"], True)["completed"] is True
        assert [d["id"] for d in repo.completed(USER)] == [digest["id"]]
        assert repo.most_common_topics(USER) == [{"topic": "Renal", "count": 2}]
