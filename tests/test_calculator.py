"""Tests for CourseCalculator: progress, scores, timeline and engagement."""

import random
from datetime import timedelta

import pytest

from backend.calculator import (
    CourseCalculator,
    aggregate_scores,
    calculate_engagement_metrics,
    calculate_learning_streak,
    calculate_progress,
    calculate_score_distribution,
    calculate_score_trend,
    calculate_study_sessions,
    generate_timeline_data,
)
from backend.config import VERB_COMPLETED, VERB_EXPERIENCED
from helpers import NOW, day


# ─────────────────────────────────────────────────────────────────
# Progress
# ─────────────────────────────────────────────────────────────────


class TestProgress:

    def test_counts_distinct_activities(self, make_statement):
        stmts = [make_statement(f"act-{i}", timestamp=day(i)) for i in range(1, 7)]
        stmts += [
            make_statement("act-1", verb=VERB_EXPERIENCED, role="video", timestamp=day(7)),
            make_statement("act-2", verb=VERB_EXPERIENCED, role="video", timestamp=day(7)),
            make_statement("act-7", verb=VERB_EXPERIENCED, role="video", timestamp=day(8)),
            make_statement("act-8", verb=VERB_EXPERIENCED, role="lesson", timestamp=day(8)),
        ]
        progress = calculate_progress(stmts)
        assert progress["completed"] == 6
        assert progress["total"] == 8
        assert progress["percentage"] == 75
        assert progress["remaining"] == 2

    def test_repeated_completions_count_once(self, make_statement):
        stmts = [make_statement("act-1", timestamp=day(1)), make_statement("act-1", timestamp=day(2))]
        progress = calculate_progress(stmts)
        assert progress["completed"] == 1
        assert progress["percentage"] == 100

    def test_percentage_rounds_half_up(self, make_statement):
        stmts = [make_statement("a", timestamp=day(1))]
        stmts += [make_statement(f"b{i}", verb=VERB_EXPERIENCED, timestamp=day(1)) for i in range(7)]
        # 1 of 8 -> 12.5%
        assert calculate_progress(stmts)["percentage"] == 13

    def test_module_completions_newest_first(self, make_statement):
        stmts = [
            make_statement("m1", timestamp=day(3), name="Module One"),
            make_statement("m2", timestamp=day(5), name="Module Two"),
            make_statement("q1", role="quiz", timestamp=day(6)),
        ]
        modules = calculate_progress(stmts)["module_completions"]
        assert [m["id"] for m in modules] == ["m2", "m1"]
        assert modules[0]["name"] == "Module Two"
        assert modules[0]["completed_at"] == "2024-01-05T10:00:00Z"
        assert modules[0]["actor"] == "Ada Lovelace"

    def test_last_activity_is_latest_regardless_of_order(self, make_statement):
        stmts = [
            make_statement("a", timestamp=day(2)),
            make_statement("b", timestamp=day(9)),
            make_statement("c", timestamp=day(4)),
        ]
        assert calculate_progress(stmts)["last_activity"] == "2024-01-09T10:00:00Z"

    def test_empty_input(self):
        progress = calculate_progress([])
        assert progress == {
            "completed": 0, "total": 0, "percentage": 0, "remaining": 0,
            "module_completions": [], "last_activity": None,
        }

    def test_percentage_invariants_on_random_input(self, make_statement):
        rng = random.Random(7)
        for _ in range(20):
            stmts = [
                make_statement(
                    f"act-{rng.randint(1, 6)}",
                    verb=rng.choice([VERB_COMPLETED, VERB_EXPERIENCED]),
                    timestamp=day(rng.randint(1, 20)),
                )
                for _ in range(rng.randint(1, 15))
            ]
            p = calculate_progress(stmts)
            assert 0 <= p["percentage"] <= 100
            assert p["completed"] <= p["total"]
            assert p["remaining"] == p["total"] - p["completed"]


# ─────────────────────────────────────────────────────────────────
# Scores
# ─────────────────────────────────────────────────────────────────


class TestScores:

    def test_canonical_record_is_latest_attempt(self, quiz):
        stmts = [
            quiz("q1", 0.6, day(1)),
            quiz("q1", 0.8, day(2)),
            quiz("q2", 0.9, day(3)),
        ]
        scores = aggregate_scores(stmts)
        by_id = {r["activity_id"]: r for r in scores["scores"]}
        assert by_id["q1"]["score"] == 80
        assert by_id["q1"]["attempts"] == 2
        assert by_id["q1"]["best_score"] == 80
        assert by_id["q1"]["first_attempt_time"] == "2024-01-01T10:00:00Z"
        assert by_id["q1"]["timestamp"] == "2024-01-02T10:00:00Z"
        assert scores["total_attempts"] == 3

    def test_latest_wins_even_when_lower(self, quiz):
        stmts = [quiz("q1", 0.95, day(1)), quiz("q1", 0.5, day(2))]
        record = aggregate_scores(stmts)["scores"][0]
        assert record["score"] == 50
        assert record["best_score"] == 95

    def test_summary_fields(self, quiz):
        stmts = [
            quiz("q1", 0.6, day(1)),
            quiz("q1", 0.8, day(2)),
            quiz("q2", 0.9, day(3)),
        ]
        scores = aggregate_scores(stmts)
        assert [r["activity_id"] for r in scores["scores"]] == ["q2", "q1"]
        assert scores["average"] == 85
        assert scores["highest"] == 90
        assert scores["lowest"] == 80
        assert scores["pass_rate"] == 100
        assert scores["trend"] == "improving"
        assert scores["distribution"] == {"A": 1, "B": 1, "C": 0, "D": 1, "F": 0}

    def test_pass_rate_uses_canonical_success(self, quiz):
        stmts = [
            quiz("q1", 0.9, day(1), success=True),
            quiz("q2", 0.4, day(2), success=False),
            quiz("q3", 0.75, day(3), success=True),
            quiz("q4", 0.65, day(4), success=False),
        ]
        assert aggregate_scores(stmts)["pass_rate"] == 50

    def test_declining_trend(self, quiz):
        stmts = [quiz("q1", 0.95, day(1)), quiz("q2", 0.9, day(2)), quiz("q3", 0.7, day(3)), quiz("q4", 0.6, day(4))]
        assert aggregate_scores(stmts)["trend"] == "declining"

    def test_single_record_is_stable(self, quiz):
        scores = aggregate_scores([quiz("q1", 0.2, day(1)), quiz("q1", 0.9, day(2))])
        assert scores["trend"] == "stable"

    def test_raw_score_fallback(self, make_statement):
        stmt = make_statement("a1", role="assignment", timestamp=day(1), raw=45, max_score=50)
        scores = aggregate_scores([stmt])
        assert scores["scores"][0]["score"] == 90
        assert scores["scores"][0]["raw_score"] == 45

    def test_no_scores_yields_zero_summary(self, make_statement):
        scores = aggregate_scores([make_statement("m1", timestamp=day(1))])
        assert scores["scores"] == []
        assert scores["average"] == 0
        assert scores["total_attempts"] == 0
        assert scores["trend"] == "stable"
        assert scores["distribution"] == {"A": 0, "B": 0, "C": 0, "D": 0, "F": 0}

    def test_outputs_are_plain_ints(self, quiz):
        scores = aggregate_scores([quiz("q1", 0.42, day(1)), quiz("q2", 0.87, day(2))])
        for key in ("average", "highest", "lowest", "total_attempts", "pass_rate"):
            assert type(scores[key]) is int
        assert type(scores["scores"][0]["score"]) is int


def test_score_distribution_bands():
    assert calculate_score_distribution([100, 90, 89, 80, 79, 70, 69, 60, 59, 0]) == {
        "A": 2, "B": 2, "C": 2, "D": 2, "F": 2,
    }


@pytest.mark.parametrize("values,expected", [
    ([], "stable"),
    ([50], "stable"),
    ([50, 56], "improving"),
    ([50, 55], "stable"),
    ([80, 70, 60], "declining"),
])
def test_score_trend(values, expected):
    assert calculate_score_trend(values) == expected


# ─────────────────────────────────────────────────────────────────
# Timeline
# ─────────────────────────────────────────────────────────────────


class TestTimeline:

    def test_buckets_by_utc_day(self, make_statement, quiz, video):
        stmts = [
            video("v1", "PT10M", day(2, 9)),
            quiz("q1", 0.8, day(2, 11)),
            make_statement("m1", timestamp=day(2, 12)),
            quiz("q2", 0.6, day(1, 15)),
        ]
        timeline = generate_timeline_data(stmts)
        assert [d["date"] for d in timeline] == ["2024-01-01", "2024-01-02"]

        second = timeline[1]
        assert second["total_activities"] == 3
        assert second["completions"] == 1
        assert second["scores"] == [80]
        assert second["average_score"] == 80
        assert second["video_time_seconds"] == 600
        assert second["video_time_formatted"] == "10m 0s"
        assert second["activity_type_counts"] == {"video": 1, "quiz": 1, "module": 1}
        assert [a["id"] for a in second["activities"]] == ["v1", "q1", "m1"]

    def test_activity_view_fields(self, quiz):
        view = generate_timeline_data([quiz("q1", 0.8, day(2))])[0]["activities"][0]
        assert view == {
            "id": "q1",
            "name": "q1",
            "verb": "scored",
            "type": "quiz",
            "timestamp": "2024-01-02T10:00:00Z",
            "success": True,
            "score": 80,
        }

    def test_day_without_scores_has_no_average(self, make_statement):
        timeline = generate_timeline_data([make_statement("m1", timestamp=day(3))])
        assert timeline[0]["average_score"] is None
        assert timeline[0]["scores"] == []

    def test_offset_timestamps_land_on_utc_date(self, make_statement):
        stmt = make_statement("m1", timestamp="2024-01-01T23:30:00-02:00")
        assert generate_timeline_data([stmt])[0]["date"] == "2024-01-02"

    def test_statements_without_timestamp_are_skipped(self, make_statement):
        stmts = [make_statement("m1"), make_statement("m2", timestamp="not a date")]
        assert generate_timeline_data(stmts) == []

    def test_sparse_days(self, make_statement):
        stmts = [make_statement("a", timestamp=day(1)), make_statement("b", timestamp=day(10))]
        assert len(generate_timeline_data(stmts)) == 2

    def test_video_time_ignores_non_video_durations(self, make_statement):
        stmt = make_statement("q1", role="quiz", timestamp=day(1), duration="PT30M")
        assert generate_timeline_data([stmt])[0]["video_time_seconds"] == 0


# ─────────────────────────────────────────────────────────────────
# Engagement
# ─────────────────────────────────────────────────────────────────


class TestStudySessions:

    def test_single_statement_session(self):
        sessions = calculate_study_sessions([day(1)])
        assert sessions == [{
            "start": "2024-01-01T10:00:00Z",
            "end": "2024-01-01T10:00:00Z",
            "activity_count": 1,
            "duration_seconds": 0,
        }]

    def test_gap_of_exactly_one_hour_extends_session(self):
        start = day(1)
        sessions = calculate_study_sessions([start, start + timedelta(hours=1)])
        assert len(sessions) == 1
        assert sessions[0]["duration_seconds"] == 3600
        assert sessions[0]["activity_count"] == 2

    def test_gap_over_one_hour_splits(self):
        start = day(1)
        sessions = calculate_study_sessions([start, start + timedelta(hours=1, milliseconds=1)])
        assert len(sessions) == 2

    def test_unsorted_input(self):
        stamps = [day(1, 11), day(1, 10), day(1, 10, 30), day(2, 10)]
        sessions = calculate_study_sessions(stamps)
        assert [s["activity_count"] for s in sessions] == [3, 1]
        assert sessions[0]["duration_seconds"] == 3600


class TestLearningStreak:

    def dates(self, *days):
        return [day(d).date() for d in days]

    def test_broken_streak_two_days_later(self):
        streak = calculate_learning_streak(self.dates(1, 2, 3, 10), day(12))
        assert streak == {"current": 0, "longest": 3, "total_days": 4}

    def test_last_active_yesterday_keeps_streak(self):
        streak = calculate_learning_streak(self.dates(1, 2, 3, 10), day(11))
        assert streak["current"] == 1
        assert streak["longest"] == 3

    def test_five_day_run_ending_today(self):
        streak = calculate_learning_streak(self.dates(1, 2, 3, 4, 5), day(5, 18))
        assert streak == {"current": 5, "longest": 5, "total_days": 5}

    def test_duplicates_collapse(self):
        streak = calculate_learning_streak(self.dates(1, 1, 2), day(2))
        assert streak["total_days"] == 2
        assert streak["current"] == 2

    def test_empty(self):
        assert calculate_learning_streak([], NOW) == {"current": 0, "longest": 0, "total_days": 0}


class TestEngagement:

    def test_engagement_metrics(self, make_statement, video, quiz):
        stmts = [
            video("v1", "PT30M", day(13, 9)),
            video("v2", "PT45M", day(13, 9, 40)),
            quiz("q1", 0.8, day(14, 10)),
            make_statement("m1", timestamp=day(15, 8)),
        ]
        metrics = calculate_engagement_metrics(stmts, NOW)
        assert metrics["total_video_time"] == 4500
        assert metrics["total_video_time_formatted"] == "1h 15m"
        assert metrics["video_interactions"] == 2
        assert metrics["session_count"] == 3
        assert metrics["longest_session"] == 2400
        assert metrics["average_session_length"] == 800
        assert metrics["current_streak"] == 3
        assert metrics["longest_streak"] == 3
        assert metrics["total_active_days"] == 3

    def test_empty_engagement(self):
        metrics = calculate_engagement_metrics([], NOW)
        assert metrics["total_video_time"] == 0
        assert metrics["study_sessions"] == []
        assert metrics["average_session_length"] == 0
        assert metrics["current_streak"] == 0


def test_compute_all_shares_one_frame(make_statement):
    calc = CourseCalculator([make_statement("m1", timestamp=day(14))])
    result = calc.compute_all(NOW)
    assert set(result) == {"progress", "scores", "timeline", "engagement"}
    assert calc.df is calc.df
