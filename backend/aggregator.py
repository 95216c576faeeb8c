"""
xAPI Learning Analytics - Dashboard Aggregator

Composes progress, scores, timeline and engagement into one dashboard
summary, then layers data-quality scoring, ranked insights, anomaly
detection and chart projections on top.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Optional, Any, Tuple

import numpy as np

from backend.anomalies import detect_anomalies
from backend.calculator import CourseCalculator
from backend.charts import build_charts
from backend.config import COURSERA_PROFILE, ProviderProfile
from backend.durations import days_between, format_duration, parse_timestamp, round_half_up, to_iso
from backend.statements import StatementParser
from backend.validator import (
    BUNDLE_COLLECTIONS,
    deduplicate_statements,
    validate_batch,
    validate_raw_bundle,
)

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}

PERIOD_DAYS = {"week": 7, "month": 30, "quarter": 90}

FRESH_DAYS = 7
FRESHNESS_PENALTY_PER_DAY = 10
COMPLETENESS_WARNING = 80


def _collection(bundle: Dict, section: str, key: str) -> List[Dict]:
    items = (bundle.get(section) or {}).get(key)
    return items if isinstance(items, list) else []


# ─────────────────────────────────────────────
# SUMMARY
# ─────────────────────────────────────────────

def create_dashboard_summary(raw_bundle: Dict, now: Optional[datetime] = None,
                             profile: Optional[ProviderProfile] = None,
                             strict: bool = False) -> Dict[str, Any]:
    """
    Build the full dashboard summary from a raw LRS bundle.

    Args:
        raw_bundle: {overview, modules{completed}, assessments{quizzes, assignments},
                     engagement{video_interactions}, ...}
        now: reference instant for freshness and streaks; the UTC clock when omitted
        profile: provider vocabulary, COURSERA_PROFILE by default
        strict: raise on the first malformed statement or bundle instead of skipping

    Raises:
        ValueError: strict mode only, for an invalid bundle
        StatementValidationError: strict mode only, for an invalid statement
    """
    now = parse_timestamp(now) if now is not None else datetime.now(timezone.utc)
    profile = profile or COURSERA_PROFILE

    bundle_check = validate_raw_bundle(raw_bundle)
    if not bundle_check["is_valid"]:
        if strict:
            raise ValueError(f"Invalid dashboard bundle: {'; '.join(bundle_check['errors'])}")
        logger.warning(f"Dashboard bundle problems: {bundle_check['errors']}")

    validated: Dict[Tuple[str, str], List[Dict]] = {}
    invalid = 0
    warnings = 0
    for section, key in BUNDLE_COLLECTIONS:
        batch = validate_batch(_collection(raw_bundle, section, key), strict=strict)
        validated[(section, key)] = batch["valid"]
        invalid += batch["invalid_count"]
        warnings += batch["warning_count"]

    pool = deduplicate_statements([s for items in validated.values() for s in items])
    assessments = deduplicate_statements(
        validated[("assessments", "quizzes")] + validated[("assessments", "assignments")]
    )

    calc = CourseCalculator(pool, profile)
    progress = calc.progress()
    timeline = calc.timeline()
    engagement = calc.engagement(now)
    scores = CourseCalculator(assessments, profile).scores()

    overview = dict(raw_bundle.get("overview") or {})
    overview.update({
        "last_updated": to_iso(now),
        "data_quality": assess_data_quality(pool, now),
        "total_statements": len(pool),
        "invalid_statements": invalid,
        "validation_warnings": warnings,
    })

    summary = {
        "overview": overview,
        "progress": progress,
        "scores": scores,
        "timeline": timeline,
        "engagement": engagement,
        "insights": generate_insights(progress, scores, engagement, timeline),
    }
    summary["anomalies"] = detect_anomalies(summary)
    summary["charts"] = build_charts(progress, scores, timeline, engagement, now)

    logger.info(
        f"Dashboard summary built: {len(pool)} statements, {invalid} skipped, "
        f"{len(summary['insights'])} insights"
    )
    return summary


# ─────────────────────────────────────────────
# INSIGHTS
# ─────────────────────────────────────────────

def _insight(type_: str, category: str, title: str, message: str, priority: str) -> Dict:
    return {"type": type_, "category": category, "title": title, "message": message, "priority": priority}


def generate_insights(progress: Dict, scores: Dict, engagement: Dict, timeline: List[Dict]) -> List[Dict]:
    """Rule-based insights, highest priority first; ties keep rule order."""
    insights = []

    if progress["percentage"] >= 80:
        insights.append(_insight(
            "success", "progress", "Excellent Progress!",
            f"You've completed {progress['percentage']}% of the course. Keep up the great work!",
            "high",
        ))
    elif progress["percentage"] < 30:
        insights.append(_insight(
            "warning", "progress", "Let's Get Moving",
            "Consider setting aside more time for learning to maintain steady progress.",
            "medium",
        ))

    if scores["trend"] == "improving":
        insights.append(_insight(
            "success", "performance", "Improving Performance",
            f"Your scores are trending upward! Average: {scores['average']}%",
            "high",
        ))
    elif scores["trend"] == "declining":
        insights.append(_insight(
            "warning", "performance", "Performance Dip",
            "Your recent scores are lower than before. Consider reviewing previous materials.",
            "high",
        ))

    streak = engagement["current_streak"]
    if streak >= 7:
        insights.append(_insight(
            "success", "engagement", "Amazing Streak!",
            f"{streak} days of consistent learning. You're on fire!",
            "high",
        ))
    elif streak == 0:
        insights.append(_insight(
            "info", "engagement", "Time to Resume",
            "Start a new learning streak today! Consistency is key to success.",
            "medium",
        ))

    recent = timeline[-7:]
    if recent:
        avg_daily = float(np.mean([day["total_activities"] for day in recent]))
        if avg_daily >= 5:
            insights.append(_insight(
                "success", "habits", "Great Study Habits",
                f"You're averaging {avg_daily:.1f} activities per day this week.",
                "medium",
            ))

    if engagement["total_video_time"] > 3600:
        insights.append(_insight(
            "info", "engagement", "Video Learner",
            f"You've watched {format_duration(engagement['total_video_time'])} of video content. "
            "Great visual learning!",
            "low",
        ))

    return sorted(insights, key=lambda i: -PRIORITY_ORDER[i["priority"]])


# ─────────────────────────────────────────────
# DATA QUALITY
# ─────────────────────────────────────────────

def assess_data_quality(statements: List[Dict], now: datetime) -> Dict:
    """
    completeness: share of statements carrying a result.
    freshness: 100 within a week of the latest activity, then 10 points
    off per extra day, never below 0.
    """
    issues: List[str] = []

    if not statements:
        return {
            "score": 0,
            "completeness": 0,
            "freshness": 0,
            "issues": ["No activity data available"],
        }

    freshness = 100.0
    stamps = [ts for ts in (StatementParser.timestamp(s) for s in statements) if ts is not None]
    if stamps:
        age_days = days_between(max(stamps), parse_timestamp(now))
        if age_days > FRESH_DAYS:
            freshness = max(0.0, 100 - (age_days - FRESH_DAYS) * FRESHNESS_PENALTY_PER_DAY)
            issues.append("Data is more than a week old")
    else:
        freshness = 0.0
        issues.append("No timestamped activity data")

    with_results = sum(1 for s in statements if StatementParser.has_result(s))
    completeness = with_results / len(statements) * 100
    if completeness < COMPLETENESS_WARNING:
        issues.append("Some activities missing result data")

    quality = {
        "score": round_half_up((completeness + freshness) / 2),
        "completeness": round_half_up(completeness),
        "freshness": round_half_up(freshness),
        "issues": issues,
    }
    if issues:
        logger.warning(f"Data quality issues: {issues}")
    return quality


# ─────────────────────────────────────────────
# PERIOD COMPARISON
# ─────────────────────────────────────────────

def calculate_period_metrics(statements: List[Dict], profile: Optional[ProviderProfile] = None) -> Dict:
    profile = profile or COURSERA_PROFILE
    completions = sum(1 for s in statements if profile.is_completion(StatementParser.verb_id(s)))
    scores = [p for p in (StatementParser.score_percent(s) for s in statements) if p is not None]
    days = {ts.date() for ts in (StatementParser.timestamp(s) for s in statements) if ts is not None}
    return {
        "total_activities": len(statements),
        "completions": completions,
        "average_score": round_half_up(float(np.mean(scores))) if scores else 0,
        "unique_days": len(days),
    }


def _change(current: int, previous: int) -> int:
    if previous == 0:
        return 100 if current > 0 else 0
    return round_half_up((current - previous) / previous * 100)


def calculate_changes(current: Dict, previous: Dict) -> Dict:
    return {key: _change(current[key], previous[key]) for key in
            ("total_activities", "completions", "average_score", "unique_days")}


def create_period_comparison(statements: List[Dict], now: datetime, period: str = "week",
                             profile: Optional[ProviderProfile] = None) -> Dict:
    """
    Compare the trailing period ending at `now` with the one before it.
    Statements without a timestamp belong to neither period.
    """
    if period not in PERIOD_DAYS:
        raise ValueError(f"Unknown period '{period}', expected one of {sorted(PERIOD_DAYS)}")

    now = parse_timestamp(now)
    length = timedelta(days=PERIOD_DAYS[period])
    current_start = now - length
    previous_start = now - 2 * length

    current, previous = [], []
    for s in statements:
        ts = StatementParser.timestamp(s)
        if ts is None:
            continue
        if ts >= current_start:
            current.append(s)
        elif ts >= previous_start:
            previous.append(s)

    current_metrics = calculate_period_metrics(current, profile)
    previous_metrics = calculate_period_metrics(previous, profile)
    return {
        "current": current_metrics,
        "previous": previous_metrics,
        "changes": calculate_changes(current_metrics, previous_metrics),
        "period": period,
    }
