"""
Chart projections: rendering-ready views of the computed summaries.
Plain dicts of lists, consumed by frontend/figures.py.
"""

import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Iterable

import numpy as np
import pandas as pd

from backend.durations import parse_timestamp, round_half_up, utc_date

logger = logging.getLogger(__name__)

TIMELINE_WINDOW_DAYS = 30

# Radar reference maxima
MAX_VIDEO_SECONDS = 7200
MAX_SESSIONS = 50
MAX_STREAK_DAYS = 30
MAX_ACTIVE_DAYS = 100
MAX_ACTIVITY_TYPES = 5

RADAR_LABELS = [
    "Video Engagement",
    "Study Sessions",
    "Learning Streak",
    "Consistency",
    "Activity Variety",
]


def _short_label(day: date) -> str:
    return f"{day:%b} {day.day}"


def heatmap_level(count: int) -> int:
    """Intensity bucket 0-4 for a day's activity count."""
    if count <= 0:
        return 0
    if count <= 2:
        return 1
    if count <= 5:
        return 2
    if count <= 10:
        return 3
    return 4


def _normalized(value: float, maximum: float) -> int:
    return round_half_up(min(value / maximum * 100, 100))


# ─────────────────────────────────────────────
# PROJECTIONS
# ─────────────────────────────────────────────

def transform_progress_chart(progress: Dict) -> Dict:
    return {
        "labels": ["Completed", "Remaining"],
        "values": [progress["completed"], progress["remaining"]],
        "percentage": progress["percentage"],
    }


def transform_score_chart(scores: Dict) -> Dict:
    """Canonical score records oldest first; records without a timestamp lead."""
    records = list(reversed(scores.get("scores") or []))
    labels = []
    for r in records:
        ts = parse_timestamp(r.get("timestamp"))
        labels.append(_short_label(utc_date(ts)) if ts else r["activity"])
    return {
        "labels": labels,
        "activities": [r["activity"] for r in records],
        "values": [r["score"] for r in records],
    }


def transform_timeline_chart(timeline: List[Dict], window: int = TIMELINE_WINDOW_DAYS) -> Dict:
    recent = timeline[-window:]
    return {
        "dates": [day["date"] for day in recent],
        "labels": [_short_label(date.fromisoformat(day["date"])) for day in recent],
        "total_activities": [day["total_activities"] for day in recent],
        "completions": [day["completions"] for day in recent],
    }


def transform_distribution_chart(distribution: Dict[str, int]) -> Dict:
    return {"labels": list(distribution.keys()), "values": list(distribution.values())}


def activity_variety(timeline: Iterable[Dict]) -> int:
    """Distinct activity types seen across the timeline."""
    types = set()
    for day in timeline:
        types.update(day.get("activity_type_counts", {}).keys())
    return len(types)


def transform_engagement_radar(engagement: Dict, timeline: Optional[List[Dict]] = None) -> Dict:
    values = [
        _normalized(engagement["total_video_time"], MAX_VIDEO_SECONDS),
        _normalized(engagement["session_count"], MAX_SESSIONS),
        _normalized(engagement["current_streak"], MAX_STREAK_DAYS),
        _normalized(engagement["total_active_days"], MAX_ACTIVE_DAYS),
        _normalized(activity_variety(timeline or []), MAX_ACTIVITY_TYPES),
    ]
    return {"labels": list(RADAR_LABELS), "values": values}


def _year_before(day: date) -> date:
    try:
        return day.replace(year=day.year - 1)
    except ValueError:
        # Feb 29 -> Feb 28
        return day.replace(year=day.year - 1, day=day.day - 1)


def transform_heatmap_data(timeline: List[Dict], now: datetime) -> List[Dict]:
    """One point per day over the trailing year ending on the UTC date of `now`."""
    today = utc_date(now)
    counts = {day["date"]: day["total_activities"] for day in timeline}
    days = pd.date_range(_year_before(today), today, freq="D")
    return [
        {
            "date": key,
            "count": counts.get(key, 0),
            "level": heatmap_level(counts.get(key, 0)),
        }
        for key in days.strftime("%Y-%m-%d")
    ]


def transform_calendar_data(timeline: List[Dict]) -> Dict[str, Dict]:
    calendar: Dict[str, Dict] = {}
    for day in timeline:
        d = date.fromisoformat(day["date"])
        month_key = f"{d.year}-{d.month:02d}"
        month = calendar.setdefault(month_key, {"month": f"{d:%B} {d.year}", "days": {}})
        month["days"][day["date"]] = {
            "activities": day["total_activities"],
            "completions": day["completions"],
            "average_score": day["average_score"],
            "video_time": day["video_time_formatted"],
            "level": heatmap_level(day["total_activities"]),
        }
    return calendar


def weekday_profile(timeline: List[Dict]) -> Dict[str, int]:
    """Total activities per weekday (Mon..Sun), used for the habits chart."""
    names = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    totals = np.zeros(7, dtype=int)
    for day in timeline:
        totals[date.fromisoformat(day["date"]).weekday()] += day["total_activities"]
    return {name: int(total) for name, total in zip(names, totals)}


def build_charts(progress: Dict, scores: Dict, timeline: List[Dict],
                 engagement: Dict, now: datetime) -> Dict:
    charts = {
        "progress": transform_progress_chart(progress),
        "scores": transform_score_chart(scores),
        "timeline": transform_timeline_chart(timeline),
        "distribution": transform_distribution_chart(scores["distribution"]),
        "engagement": transform_engagement_radar(engagement, timeline),
        "heatmap": transform_heatmap_data(timeline, now),
        "calendar": transform_calendar_data(timeline),
        "weekdays": weekday_profile(timeline),
    }
    logger.debug(f"Built {len(charts)} chart projections")
    return charts
