import pytest

from guardrails import (
    REVIEW_NOTE,
    apply_review_note,
    filter_flashcards,
    needs_fact_check,
    total_study_hours,
)
from models import DAY_MS, WEEK_MS, ms_to_date_str, utc_day_bounds
from policy import digest_complexity, is_review_due, summary_complexity, trend_window_start, wellness_complexity
from text_utils import extract_possible_tags, extract_title, matches_any_term, reading_time_minutes, search_items

NOW = 1_700_000_000_000


class TestReviewPolicy:
    def test_low_confidence_is_due(self):
        assert is_review_due(69, NOW, NOW)

    def test_confident_and_recent_is_not_due(self):
        assert not is_review_due(70, NOW - DAY_MS, NOW)

    def test_stale_topic_is_due_even_when_confident(self):
        assert is_review_due(95, NOW - WEEK_MS - 1, NOW)

    def test_exactly_one_week_is_not_stale(self):
        assert not is_review_due(95, NOW - WEEK_MS, NOW)


class TestComplexityFromSize:
    def test_summary_thresholds(self):
        assert summary_complexity("x" * 2000) == "simple"
        assert summary_complexity("x" * 2001) == "medium"
        assert summary_complexity("x" * 5001) == "complex"

    def test_wellness_threshold(self):
        assert wellness_complexity("x" * 300) == "simple"
        assert wellness_complexity("x" * 301) == "medium"

    def test_digest_thresholds(self):
        assert digest_complexity(15, 3, 5) == "simple"
        assert digest_complexity(16, 0, 0) == "medium"
        assert digest_complexity(0, 4, 0) == "medium"
        assert digest_complexity(0, 0, 6) == "medium"


class TestTrendWindow:
    def test_week_and_month(self):
        assert trend_window_start("week", NOW) == NOW - 7 * DAY_MS
        assert trend_window_start("month", NOW) == NOW - 30 * DAY_MS

    def test_all_has_no_start(self):
        assert trend_window_start("all", NOW) is None

    def test_unknown_period_is_rejected(self):
        with pytest.raises(ValueError):
            trend_window_start("year", NOW)


class TestTextUtils:
    def test_title_is_first_sentence(self):
        assert extract_title("Beta blockers reduce mortality. They also slow the heart.") == (
            "Beta blockers reduce mortality"
        )

    def test_long_title_is_truncated(self):
        title = extract_title("a" * 80)
        assert title == "a" * 50 + "..."

    def test_reading_time_has_a_floor_of_one_minute(self):
        assert reading_time_minutes("") == 1
        assert reading_time_minutes("word " * 401) == 3

    def test_possible_tags(self):
        assert extract_possible_tags("Notes on Cardiology and renal pharmacology") == ["cardiology", "pharmacology"]

    def test_matches_any_term(self):
        assert matches_any_term("heart kidney", "Renal physiology", "the KIDNEY filters blood")
        assert not matches_any_term("   ", "anything")

    def test_search_items(self):
        items = [{"title": "Cardiology quiz"}, {"title": "Renal"}, {"title": None}]
        assert search_items(items, "title", "CARDIO") == [{"title": "Cardiology quiz"}]


class TestGuardrails:
    def test_flashcards_without_both_sides_are_dropped(self):
        raw = [
            {"front": " What is MI? ", "back": "Myocardial infarction"},
            {"front": "No back"},
            {"front": "   ", "back": "blank front"},
            {"front": 3, "back": "not a string"},
            "junk",
        ]
        assert filter_flashcards(raw) == [{"front": "What is MI?", "back": "Myocardial infarction"}]

    def test_filter_flashcards_rejects_non_list(self):
        assert filter_flashcards({"front": "a", "back": "b"}) == []

    def test_fact_check_only_for_high_risk_and_hard_questions(self):
        assert needs_fact_check("treatment", "complex")
        assert needs_fact_check("emergency", "expert")
        assert not needs_fact_check("treatment", "medium")
        assert not needs_fact_check("anatomy", "expert")

    def test_review_note_appended_only_when_issues_reported(self):
        assert apply_review_note("answer", "Issue: dose is wrong") == "answer" + REVIEW_NOTE
        assert apply_review_note("answer", "No issues found.") == "answer"
        assert apply_review_note("answer", None) == "answer"

    def test_total_study_hours(self):
        plans = [
            {"sessions": [{"start_time": "09:00", "end_time": "10:30"}, {"start_time": "bad", "end_time": "11:00"}]},
            {"sessions": [{"start_time": "14:00", "end_time": "15:00"}]},
        ]
        assert total_study_hours(plans) == 2.5


def test_day_bounds_and_date_rendering():
    start, end = utc_day_bounds(NOW)
    assert start <= NOW < end
    assert end - start == DAY_MS
    assert ms_to_date_str(start) == "2023-11-14"
    assert ms_to_date_str("not a number") == ""
