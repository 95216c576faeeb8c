"""Shared test fixtures for the learning insights backend."""

import pytest
from datetime import datetime

from backend.config import COURSERA_PROFILE, VERB_COMPLETED, VERB_EXPERIENCED, VERB_SCORED
from helpers import NOW, day, iso


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def learner():
    return {"name": "Ada Lovelace", "email": "ada@example.com"}


@pytest.fixture
def make_statement():
    """Factory for plain xAPI statement dicts using the Coursera vocabulary."""
    counter = {"n": 0}

    def _make(activity_id="course/module/1", verb=VERB_COMPLETED, role="module",
              timestamp=None, scaled=None, raw=None, max_score=None, success=None,
              duration=None, name=None, stmt_id=None):
        counter["n"] += 1
        definition = {"name": {"en-US": name or activity_id}}
        if role:
            definition["type"] = COURSERA_PROFILE.type_uri(role)
        stmt = {
            "id": stmt_id or f"stmt-{counter['n']}",
            "actor": {"name": "Ada Lovelace", "mbox": "mailto:ada@example.com"},
            "verb": {"id": verb, "display": {"en-US": verb.rsplit("/", 1)[-1]}},
            "object": {"id": activity_id, "definition": definition},
        }
        result = {}
        if scaled is not None or raw is not None:
            score = {}
            if scaled is not None:
                score["scaled"] = scaled
            if raw is not None:
                score["raw"] = raw
                score["min"] = 0
                score["max"] = max_score
            result["score"] = score
        if success is not None:
            result["success"] = success
        if duration is not None:
            result["duration"] = duration
        if result:
            stmt["result"] = result
        if timestamp is not None:
            stmt["timestamp"] = iso(timestamp) if isinstance(timestamp, datetime) else timestamp
        return stmt

    return _make


@pytest.fixture
def quiz(make_statement):
    def _quiz(activity_id, scaled, when, success=None):
        return make_statement(activity_id=activity_id, verb=VERB_SCORED, role="quiz",
                              timestamp=when, scaled=scaled,
                              success=scaled >= 0.7 if success is None else success)
    return _quiz


@pytest.fixture
def video(make_statement):
    def _video(activity_id, duration, when):
        return make_statement(activity_id=activity_id, verb=VERB_EXPERIENCED, role="video",
                              timestamp=when, duration=duration)
    return _video


@pytest.fixture
def raw_bundle(make_statement, quiz, video):
    """A small dashboard bundle spread over January 10-14, 2024."""
    return {
        "overview": {"course_id": "course", "user_email": "ada@example.com", "total_statements": 7},
        "modules": {"completed": [
            make_statement("course/module/1", timestamp=day(10, 11), name="Intro"),
            make_statement("course/module/2", timestamp=day(12, 11), name="Regression"),
        ]},
        "assessments": {
            "quizzes": [
                quiz("course/quiz/1", 0.6, day(10, 10)),
                quiz("course/quiz/2", 0.9, day(13, 10)),
            ],
            "assignments": [],
        },
        "engagement": {"video_interactions": [
            video("course/video/1", "PT20M", day(10, 9)),
            video("course/video/2", "PT40M", day(13, 9)),
            video("course/video/3", "PT10M", day(14, 9)),
        ]},
        "timeline": [],
    }
