"""
xAPI Learning Analytics - Course Calculator
Derives progress, scores, the daily timeline and engagement metrics from one
learner's statement snapshot.
"""

import logging
from datetime import date, datetime, timedelta
from typing import List, Dict, Optional, Any, Iterable, Union

import numpy as np
import pandas as pd

from backend.config import COURSERA_PROFILE, ProviderProfile
from backend.durations import format_duration, round_half_up, to_iso, utc_date
from backend.statements import StatementParser

logger = logging.getLogger(__name__)


SESSION_GAP_MINUTES = 60
TREND_THRESHOLD = 5

# (grade, lower bound); anything below the last bound is an F
GRADE_BANDS = (("A", 90), ("B", 80), ("C", 70), ("D", 60))

COLUMNS = [
    "position", "stmt_id", "actor_name", "verb_id", "verb_display",
    "activity_id", "activity_name", "activity_type", "type_label", "role",
    "timestamp", "score", "raw_score", "max_score", "success", "has_result",
    "duration_sec", "is_completion",
]


def _iso(ts) -> Optional[str]:
    if ts is None or pd.isna(ts):
        return None
    return to_iso(ts.to_pydatetime() if isinstance(ts, pd.Timestamp) else ts)


def _plain(value) -> Any:
    """numpy/pandas scalar -> plain Python value, NaN/None -> None."""
    if value is None:
        return None
    if isinstance(value, float) and np.isnan(value):
        return None
    if isinstance(value, np.generic):
        value = value.item()
        if isinstance(value, float) and np.isnan(value):
            return None
    return value


def _opt_bool(value) -> Optional[bool]:
    value = _plain(value)
    return None if value is None else bool(value)


def calculate_score_distribution(scores: Iterable[int]) -> Dict[str, int]:
    distribution = {grade: 0 for grade, _ in GRADE_BANDS}
    distribution["F"] = 0
    for score in scores:
        for grade, lower in GRADE_BANDS:
            if score >= lower:
                distribution[grade] += 1
                break
        else:
            distribution["F"] += 1
    return distribution


def calculate_score_trend(scores: List[float]) -> str:
    """Compare the mean of the later half of chronologically ordered scores with the earlier half."""
    if len(scores) < 2:
        return "stable"
    mid = len(scores) // 2
    difference = float(np.mean(scores[mid:])) - float(np.mean(scores[:mid]))
    if difference > TREND_THRESHOLD:
        return "improving"
    if difference < -TREND_THRESHOLD:
        return "declining"
    return "stable"


def calculate_study_sessions(timestamps: Iterable[datetime],
                             gap_minutes: int = SESSION_GAP_MINUTES) -> List[Dict]:
    """
    Cluster instants into sessions: a session keeps growing while each
    instant is at most `gap_minutes` after the previous one.
    """
    ordered = sorted(timestamps)
    if not ordered:
        return []
    gap = timedelta(minutes=gap_minutes)

    def close(start, end, count):
        return {
            "start": to_iso(start),
            "end": to_iso(end),
            "activity_count": count,
            "duration_seconds": int((end - start).total_seconds()),
        }

    sessions = []
    start = end = ordered[0]
    count = 1
    for ts in ordered[1:]:
        if ts - end <= gap:
            end = ts
            count += 1
        else:
            sessions.append(close(start, end, count))
            start = end = ts
            count = 1
    sessions.append(close(start, end, count))
    return sessions


def calculate_learning_streak(active_dates: Iterable[date], now: Union[datetime, date]) -> Dict[str, int]:
    """
    Longest and current runs of consecutive active days.
    The current streak only counts when the last active day is today or yesterday.
    """
    dates = sorted(set(active_dates))
    if not dates:
        return {"current": 0, "longest": 0, "total_days": 0}

    longest = run = 1
    for prev, curr in zip(dates, dates[1:]):
        if (curr - prev).days == 1:
            run += 1
        else:
            longest = max(longest, run)
            run = 1
    longest = max(longest, run)

    today = utc_date(now) if isinstance(now, datetime) else now
    current = 0
    if (today - dates[-1]).days <= 1:
        current = 1
        for i in range(len(dates) - 1, 0, -1):
            if (dates[i] - dates[i - 1]).days == 1:
                current += 1
            else:
                break

    return {"current": current, "longest": longest, "total_days": len(dates)}


class CourseCalculator:
    """
    Computes course analytics from a list of xAPI statements.
    The statement frame is built lazily and never mutated afterwards.
    """

    def __init__(self, statements: List[Dict], profile: Optional[ProviderProfile] = None):
        self.stmts = list(statements or [])
        self.profile = profile or COURSERA_PROFILE
        self._df: Optional[pd.DataFrame] = None

    def _build_df(self, stmts: List[Dict]) -> pd.DataFrame:
        rows = []
        for position, s in enumerate(stmts):
            verb_id = StatementParser.verb_id(s)
            activity_type = StatementParser.activity_type(s)
            rows.append({
                "position": position,
                "stmt_id": StatementParser.statement_id(s),
                "actor_name": StatementParser.actor_name(s),
                "verb_id": verb_id,
                "verb_display": StatementParser.verb_display(s),
                "activity_id": StatementParser.activity_id(s),
                "activity_name": StatementParser.activity_name(s),
                "activity_type": activity_type,
                "type_label": StatementParser.type_label(s),
                "role": self.profile.role_of(activity_type),
                "timestamp": StatementParser.timestamp(s),
                "score": StatementParser.score_percent(s),
                "raw_score": StatementParser.raw_score(s),
                "max_score": StatementParser.max_score(s),
                "success": StatementParser.success(s),
                "has_result": StatementParser.has_result(s),
                "duration_sec": StatementParser.duration_seconds(s),
                "is_completion": self.profile.is_completion(verb_id),
            })
        df = pd.DataFrame(rows, columns=COLUMNS)
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True, errors="coerce")
        df["score"] = pd.to_numeric(df["score"], errors="coerce")
        df["duration_sec"] = pd.to_numeric(df["duration_sec"], errors="coerce")
        df["is_completion"] = df["is_completion"].astype(bool)
        logger.debug(f"Built statement frame with {len(df)} rows")
        return df

    @property
    def df(self) -> pd.DataFrame:
        if self._df is None:
            self._df = self._build_df(self.stmts)
        return self._df

    def _dated(self) -> pd.DataFrame:
        """Statements carrying a usable timestamp, oldest first."""
        dated = self.df[self.df["timestamp"].notna()]
        return dated.sort_values(["timestamp", "position"])

    # ─────────────────────────────────────────────
    # PROGRESS
    # ─────────────────────────────────────────────

    def progress(self) -> Dict:
        df = self.df
        if df.empty:
            return {
                "completed": 0, "total": 0, "percentage": 0, "remaining": 0,
                "module_completions": [], "last_activity": None,
            }

        total = int(df["activity_id"].nunique())
        completions = df[df["is_completion"]]
        completed = int(completions["activity_id"].nunique())
        percentage = round_half_up(completed / total * 100) if total > 0 else 0

        modules = completions[completions["role"] == "module"].sort_values(
            ["timestamp", "position"], ascending=[False, True], na_position="last"
        )
        module_completions = [
            {
                "id": row.activity_id,
                "name": row.activity_name,
                "completed_at": _iso(row.timestamp),
                "actor": row.actor_name,
            }
            for row in modules.itertuples(index=False)
        ]

        return {
            "completed": completed,
            "total": total,
            "percentage": percentage,
            "remaining": total - completed,
            "module_completions": module_completions,
            "last_activity": _iso(df["timestamp"].max()),
        }

    # ─────────────────────────────────────────────
    # SCORES
    # ─────────────────────────────────────────────

    @staticmethod
    def _empty_scores() -> Dict:
        return {
            "scores": [],
            "average": 0,
            "highest": 0,
            "lowest": 0,
            "total_attempts": 0,
            "pass_rate": 0,
            "trend": "stable",
            "distribution": calculate_score_distribution([]),
        }

    def scores(self) -> Dict:
        df = self.df
        scored = df[df["score"].notna()] if not df.empty else df
        if scored.empty:
            return self._empty_scores()

        # Oldest attempt first; the last row of each activity is its latest attempt.
        ordered = scored.sort_values(["timestamp", "position"], na_position="first")
        grouped = ordered.groupby("activity_id", sort=False)
        stats = grouped.agg(
            attempts=("score", "size"),
            best_score=("score", "max"),
            first_attempt=("timestamp", "min"),
        )
        canonical = (
            grouped.tail(1)
            .set_index("activity_id")
            .join(stats)
            .sort_values(["timestamp", "position"], na_position="first")
            .reset_index()
        )

        records = [
            {
                "activity": row.activity_name,
                "activity_id": row.activity_id,
                "score": int(row.score),
                "raw_score": _plain(row.raw_score),
                "max_score": _plain(row.max_score),
                "success": _opt_bool(row.success),
                "timestamp": _iso(row.timestamp),
                "attempts": int(row.attempts),
                "best_score": int(row.best_score),
                "first_attempt_time": _iso(row.first_attempt),
            }
            for row in canonical.itertuples(index=False)
        ]

        values = [r["score"] for r in records]
        passed = sum(1 for r in records if r["success"] is True)

        return {
            "scores": list(reversed(records)),
            "average": round_half_up(float(np.mean(values))),
            "highest": max(values),
            "lowest": min(values),
            "total_attempts": int(len(scored)),
            "pass_rate": round_half_up(passed / len(records) * 100),
            "trend": calculate_score_trend(values),
            "distribution": calculate_score_distribution(int(s) for s in scored["score"]),
        }

    # ─────────────────────────────────────────────
    # TIMELINE
    # ─────────────────────────────────────────────

    @staticmethod
    def _activity_view(row) -> Dict:
        return {
            "id": row.activity_id,
            "name": row.activity_name,
            "verb": row.verb_display,
            "type": row.type_label,
            "timestamp": _iso(row.timestamp),
            "success": _opt_bool(row.success),
            "score": None if pd.isna(row.score) else int(row.score),
        }

    def timeline(self) -> List[Dict]:
        if self.df.empty:
            return []
        dated = self._dated()
        if dated.empty:
            return []
        dated = dated.assign(date=dated["timestamp"].dt.strftime("%Y-%m-%d"))

        days = []
        for day, group in dated.groupby("date", sort=True):
            scores = [int(s) for s in group["score"].dropna()]
            video = group[group["role"] == "video"]
            video_time = int(video["duration_sec"].fillna(0).sum())
            type_counts = group.groupby("type_label", sort=False).size()
            days.append({
                "date": day,
                "activities": [self._activity_view(row) for row in group.itertuples(index=False)],
                "total_activities": int(len(group)),
                "completions": int(group["is_completion"].sum()),
                "scores": scores,
                "video_time_seconds": video_time,
                "video_time_formatted": format_duration(video_time),
                "average_score": round_half_up(float(np.mean(scores))) if scores else None,
                "activity_type_counts": {str(k): int(v) for k, v in type_counts.items()},
            })
        logger.debug(f"Timeline: {len(days)} active days")
        return days

    # ─────────────────────────────────────────────
    # ENGAGEMENT
    # ─────────────────────────────────────────────

    def study_sessions(self) -> List[Dict]:
        if self.df.empty:
            return []
        return calculate_study_sessions(ts.to_pydatetime() for ts in self._dated()["timestamp"])

    def active_dates(self) -> List[date]:
        if self.df.empty:
            return []
        return sorted({ts.date() for ts in self.df["timestamp"].dropna()})

    def engagement(self, now: datetime) -> Dict:
        df = self.df
        video = df[df["role"] == "video"] if not df.empty else df
        total_video = int(video["duration_sec"].fillna(0).sum()) if not video.empty else 0

        sessions = self.study_sessions()
        durations = [s["duration_seconds"] for s in sessions]
        average = round_half_up(float(np.mean(durations))) if durations else 0
        longest = max(durations) if durations else 0
        streak = calculate_learning_streak(self.active_dates(), now)

        return {
            "total_video_time": total_video,
            "total_video_time_formatted": format_duration(total_video),
            "video_interactions": int(len(video)),
            "study_sessions": sessions,
            "session_count": len(sessions),
            "average_session_length": average,
            "average_session_length_formatted": format_duration(average),
            "longest_session": longest,
            "longest_session_formatted": format_duration(longest),
            "current_streak": streak["current"],
            "longest_streak": streak["longest"],
            "total_active_days": streak["total_days"],
        }

    def compute_all(self, now: datetime) -> Dict[str, Any]:
        return {
            "progress": self.progress(),
            "scores": self.scores(),
            "timeline": self.timeline(),
            "engagement": self.engagement(now),
        }


# ─────────────────────────────────────────────
# FUNCTIONAL ENTRY POINTS
# ─────────────────────────────────────────────

def calculate_progress(statements: List[Dict], profile: Optional[ProviderProfile] = None) -> Dict:
    return CourseCalculator(statements, profile).progress()


def aggregate_scores(statements: List[Dict], profile: Optional[ProviderProfile] = None) -> Dict:
    return CourseCalculator(statements, profile).scores()


def generate_timeline_data(statements: List[Dict], profile: Optional[ProviderProfile] = None) -> List[Dict]:
    return CourseCalculator(statements, profile).timeline()


def calculate_engagement_metrics(statements: List[Dict], now: datetime,
                                 profile: Optional[ProviderProfile] = None) -> Dict:
    return CourseCalculator(statements, profile).engagement(now)
