"""
xAPI statement helpers: field extraction, a statement factory and
ready-made templates for the common course activities.
"""

import logging
import math
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Union, Mapping

from backend.config import (
    COURSERA_PROFILE,
    VERB_COMPLETED,
    VERB_EXPERIENCED,
    VERB_SCORED,
    ProviderProfile,
)
from backend.durations import encode_duration, parse_duration, parse_timestamp, round_half_up, to_iso

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en-US"


def _finite(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _localized(values: Optional[Mapping]) -> Optional[str]:
    if not isinstance(values, Mapping):
        return None
    return values.get("en-US") or values.get("en") or next(iter(values.values()), None)


class StatementParser:
    """Utility helpers to extract fields from xAPI statement dicts."""

    @staticmethod
    def statement_id(stmt: Dict) -> Optional[str]:
        return stmt.get("id") or None

    @staticmethod
    def actor_id(stmt: Dict) -> str:
        actor = stmt.get("actor") or {}
        mbox = actor.get("mbox", "")
        account = actor.get("account") or {}
        if mbox:
            return mbox
        return account.get("homePage", "") + "|" + account.get("name", "")

    @staticmethod
    def actor_name(stmt: Dict) -> str:
        return (stmt.get("actor") or {}).get("name") or StatementParser.actor_id(stmt)

    @staticmethod
    def verb_id(stmt: Dict) -> str:
        return (stmt.get("verb") or {}).get("id", "")

    @staticmethod
    def verb_display(stmt: Dict) -> str:
        label = _localized((stmt.get("verb") or {}).get("display"))
        if label:
            return label
        return StatementParser.verb_id(stmt).rstrip("/").split("/")[-1]

    @staticmethod
    def activity_id(stmt: Dict) -> str:
        return (stmt.get("object") or {}).get("id", "")

    @staticmethod
    def _definition(stmt: Dict) -> Dict:
        return (stmt.get("object") or {}).get("definition") or {}

    @staticmethod
    def activity_name(stmt: Dict, default: str = "Unknown Activity") -> str:
        return _localized(StatementParser._definition(stmt).get("name")) or default

    @staticmethod
    def activity_type(stmt: Dict) -> Optional[str]:
        return StatementParser._definition(stmt).get("type") or None

    @staticmethod
    def type_label(stmt: Dict) -> str:
        """Last path segment of the activity type URI ('video', 'quiz', ...)."""
        type_uri = StatementParser.activity_type(stmt)
        if not type_uri:
            return "activity"
        return type_uri.rstrip("/").split("/")[-1] or "activity"

    @staticmethod
    def timestamp(stmt: Dict) -> Optional[datetime]:
        return parse_timestamp(stmt.get("timestamp"))

    @staticmethod
    def _result(stmt: Dict) -> Dict:
        return stmt.get("result") or {}

    @staticmethod
    def has_result(stmt: Dict) -> bool:
        return bool(stmt.get("result"))

    @staticmethod
    def score_percent(stmt: Dict) -> Optional[int]:
        """Score as a whole percentage: round(scaled * 100), else derived from raw/min/max."""
        score = StatementParser._result(stmt).get("score")
        if not isinstance(score, Mapping):
            return None
        scaled = score.get("scaled")
        if _finite(scaled):
            return round_half_up(float(scaled) * 100)
        raw = score.get("raw")
        max_s = score.get("max")
        min_s = score.get("min", 0) or 0
        if _finite(raw) and _finite(max_s) and _finite(min_s) and max_s > min_s:
            return round_half_up((float(raw) - float(min_s)) / (float(max_s) - float(min_s)) * 100)
        return None

    @staticmethod
    def raw_score(stmt: Dict) -> Optional[float]:
        return (StatementParser._result(stmt).get("score") or {}).get("raw")

    @staticmethod
    def max_score(stmt: Dict) -> Optional[float]:
        return (StatementParser._result(stmt).get("score") or {}).get("max")

    @staticmethod
    def success(stmt: Dict) -> Optional[bool]:
        return StatementParser._result(stmt).get("success")

    @staticmethod
    def duration_seconds(stmt: Dict) -> Optional[int]:
        duration = StatementParser._result(stmt).get("duration")
        if not duration:
            return None
        return parse_duration(duration)


@dataclass(frozen=True)
class StatementOptions:
    actor_name: str
    actor_email: str
    verb_id: str
    verb_display: str
    activity_id: str
    activity_name: str
    activity_description: str = ""
    activity_type: Optional[str] = None
    score: Optional[float] = None
    max_score: float = 100
    min_score: float = 0
    success: Optional[bool] = None
    completion: Optional[bool] = None
    duration: Optional[Union[str, int, float]] = None
    timestamp: Optional[Union[datetime, str]] = None
    registration: Optional[str] = None
    statement_id: Optional[str] = None
    language: str = DEFAULT_LANGUAGE


def _mbox(email: str) -> str:
    return email if email.startswith("mailto:") else f"mailto:{email}"


def build_statement(options: StatementOptions) -> Dict:
    """
    Build a complete xAPI statement from a StatementOptions record.
    A statement id is generated when none is given; the timestamp is left
    unset when the options carry none.
    """
    lang = options.language
    definition: Dict = {
        "name": {lang: options.activity_name},
        "description": {lang: options.activity_description},
    }
    if options.activity_type:
        definition["type"] = options.activity_type

    statement: Dict = {
        "id": options.statement_id or str(uuid.uuid4()),
        "actor": {
            "name": options.actor_name,
            "mbox": _mbox(options.actor_email),
            "objectType": "Agent",
        },
        "verb": {"id": options.verb_id, "display": {lang: options.verb_display}},
        "object": {"id": options.activity_id, "definition": definition, "objectType": "Activity"},
    }

    result: Dict = {}
    if options.score is not None:
        span = options.max_score - options.min_score
        scaled = (options.score - options.min_score) / span if span > 0 else 0.0
        result["score"] = {
            "scaled": round(scaled, 4),
            "raw": options.score,
            "min": options.min_score,
            "max": options.max_score,
        }
    if options.success is not None:
        result["success"] = options.success
    if options.completion is not None:
        result["completion"] = options.completion
    if options.duration is not None:
        if isinstance(options.duration, str):
            result["duration"] = options.duration
        else:
            result["duration"] = encode_duration(options.duration)
    if result:
        statement["result"] = result

    if options.registration:
        statement["context"] = {"registration": options.registration}

    if options.timestamp is not None:
        ts = options.timestamp
        statement["timestamp"] = to_iso(ts) if isinstance(ts, datetime) else ts

    return statement


# ─────────────────────────────────────────────
# TEMPLATES
# ─────────────────────────────────────────────

def module_completed(actor: Mapping, module_id: str, module_name: str,
                     timestamp=None, profile: ProviderProfile = COURSERA_PROFILE,
                     statement_id: Optional[str] = None) -> Dict:
    return build_statement(StatementOptions(
        actor_name=actor["name"], actor_email=actor["email"],
        verb_id=VERB_COMPLETED, verb_display="completed",
        activity_id=module_id, activity_name=module_name,
        activity_description=f"Completed module: {module_name}",
        activity_type=profile.type_uri("module"),
        success=True, completion=True, timestamp=timestamp, statement_id=statement_id,
    ))


def quiz_scored(actor: Mapping, quiz_id: str, quiz_name: str, score: float,
                max_score: float = 100, timestamp=None, pass_ratio: float = 0.7,
                profile: ProviderProfile = COURSERA_PROFILE, statement_id: Optional[str] = None) -> Dict:
    return build_statement(StatementOptions(
        actor_name=actor["name"], actor_email=actor["email"],
        verb_id=VERB_SCORED, verb_display="scored",
        activity_id=quiz_id, activity_name=quiz_name,
        activity_description=f"Quiz: {quiz_name}",
        activity_type=profile.type_uri("quiz"),
        score=score, max_score=max_score,
        success=score >= max_score * pass_ratio, completion=True,
        timestamp=timestamp, statement_id=statement_id,
    ))


def assignment_scored(actor: Mapping, assignment_id: str, assignment_name: str, score: float,
                      max_score: float = 100, timestamp=None, pass_ratio: float = 0.7,
                      profile: ProviderProfile = COURSERA_PROFILE, statement_id: Optional[str] = None) -> Dict:
    return build_statement(StatementOptions(
        actor_name=actor["name"], actor_email=actor["email"],
        verb_id=VERB_SCORED, verb_display="scored",
        activity_id=assignment_id, activity_name=assignment_name,
        activity_description=f"Assignment: {assignment_name}",
        activity_type=profile.type_uri("assignment"),
        score=score, max_score=max_score,
        success=score >= max_score * pass_ratio, completion=True,
        timestamp=timestamp, statement_id=statement_id,
    ))


def video_watched(actor: Mapping, video_id: str, video_name: str, duration,
                  timestamp=None, profile: ProviderProfile = COURSERA_PROFILE,
                  statement_id: Optional[str] = None) -> Dict:
    return build_statement(StatementOptions(
        actor_name=actor["name"], actor_email=actor["email"],
        verb_id=VERB_EXPERIENCED, verb_display="experienced",
        activity_id=video_id, activity_name=video_name,
        activity_description=f"Video: {video_name}",
        activity_type=profile.type_uri("video"),
        completion=True, duration=duration, timestamp=timestamp, statement_id=statement_id,
    ))
