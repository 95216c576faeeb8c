"""Tests for chart projections."""

from datetime import datetime, timezone

import pytest

from backend.charts import (
    activity_variety,
    heatmap_level,
    transform_calendar_data,
    transform_distribution_chart,
    transform_engagement_radar,
    transform_heatmap_data,
    transform_progress_chart,
    transform_score_chart,
    transform_timeline_chart,
    weekday_profile,
)
from helpers import NOW


def bucket(date, total, completions=0, average=None, video="0s", types=None):
    return {
        "date": date,
        "total_activities": total,
        "completions": completions,
        "average_score": average,
        "video_time_formatted": video,
        "activity_type_counts": types or {},
    }


@pytest.mark.parametrize("count,level", [
    (0, 0), (1, 1), (2, 1), (3, 2), (5, 2), (6, 3), (10, 3), (11, 4),
])
def test_heatmap_level(count, level):
    assert heatmap_level(count) == level


def test_progress_chart():
    chart = transform_progress_chart({"completed": 6, "remaining": 2, "percentage": 75})
    assert chart == {"labels": ["Completed", "Remaining"], "values": [6, 2], "percentage": 75}


def test_score_chart_is_oldest_first():
    scores = {"scores": [
        {"activity": "Quiz 2", "score": 90, "timestamp": "2024-01-13T10:00:00Z"},
        {"activity": "Quiz 1", "score": 60, "timestamp": "2024-01-03T10:00:00Z"},
    ]}
    chart = transform_score_chart(scores)
    assert chart["values"] == [60, 90]
    assert chart["labels"] == ["Jan 3", "Jan 13"]
    assert chart["activities"] == ["Quiz 1", "Quiz 2"]


def test_timeline_chart_keeps_last_thirty():
    timeline = [bucket(f"2024-01-{d:02d}", d) for d in range(1, 32)]
    timeline += [bucket("2024-02-01", 40, completions=2)]
    chart = transform_timeline_chart(timeline)
    assert len(chart["dates"]) == 30
    assert chart["dates"][0] == "2024-01-03"
    assert chart["total_activities"][-1] == 40
    assert chart["completions"][-1] == 2
    assert chart["labels"][-1] == "Feb 1"


def test_distribution_chart():
    chart = transform_distribution_chart({"A": 1, "B": 0, "C": 2, "D": 0, "F": 1})
    assert chart == {"labels": ["A", "B", "C", "D", "F"], "values": [1, 0, 2, 0, 1]}


def test_engagement_radar_is_normalized():
    engagement = {"total_video_time": 3600, "session_count": 10, "current_streak": 3, "total_active_days": 50}
    timeline = [bucket("2024-01-01", 2, types={"video": 1, "quiz": 1}), bucket("2024-01-02", 1, types={"video": 1})]
    chart = transform_engagement_radar(engagement, timeline)
    assert chart["values"] == [50, 20, 10, 50, 40]
    assert len(chart["labels"]) == 5


def test_engagement_radar_caps_at_hundred():
    engagement = {"total_video_time": 72000, "session_count": 500, "current_streak": 90, "total_active_days": 400}
    assert transform_engagement_radar(engagement)["values"] == [100, 100, 100, 100, 0]


def test_activity_variety():
    timeline = [bucket("2024-01-01", 1, types={"video": 1}), bucket("2024-01-02", 2, types={"quiz": 1, "video": 1})]
    assert activity_variety(timeline) == 2


class TestHeatmap:

    def test_covers_trailing_year(self):
        points = transform_heatmap_data([], NOW)
        assert points[0]["date"] == "2023-01-15"
        assert points[-1]["date"] == "2024-01-15"
        assert len(points) == 366

    def test_counts_and_levels(self):
        timeline = [bucket("2024-01-10", 4), bucket("2024-01-14", 12)]
        points = {p["date"]: p for p in transform_heatmap_data(timeline, NOW)}
        assert points["2024-01-10"] == {"date": "2024-01-10", "count": 4, "level": 2}
        assert points["2024-01-14"]["level"] == 4
        assert points["2024-01-11"]["count"] == 0

    def test_leap_day(self):
        points = transform_heatmap_data([], datetime(2024, 2, 29, tzinfo=timezone.utc))
        assert points[0]["date"] == "2023-02-28"


def test_calendar_groups_by_month():
    timeline = [
        bucket("2024-01-30", 3, completions=1, average=80, video="5m 0s"),
        bucket("2024-02-02", 12),
    ]
    calendar = transform_calendar_data(timeline)
    assert list(calendar) == ["2024-01", "2024-02"]
    assert calendar["2024-01"]["month"] == "January 2024"
    assert calendar["2024-01"]["days"]["2024-01-30"] == {
        "activities": 3, "completions": 1, "average_score": 80, "video_time": "5m 0s", "level": 2,
    }
    assert calendar["2024-02"]["days"]["2024-02-02"]["level"] == 4


def test_weekday_profile():
    # 2024-01-01 is a Monday
    timeline = [bucket("2024-01-01", 3), bucket("2024-01-08", 2), bucket("2024-01-07", 1)]
    profile = weekday_profile(timeline)
    assert profile["Mon"] == 5
    assert profile["Sun"] == 1
    assert sum(profile.values()) == 6
