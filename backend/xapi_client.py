"""
xAPI LRS REST API Client
─────────────────────────────────────────────────────────────────────────────
Standard xAPI LRS (ADL statement API):
    GET /statements?agent=...&activity=...&limit=N
    Response: { "statements": [...], "more": "/statements?..." }

Auth: Basic Auth or Bearer token.

get_dashboard_data() fetches one learner's statements for a course once and
splits them into the raw dashboard bundle consumed by backend.aggregator.
"""

import json
import logging
import random
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, List, Any
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from backend.config import COURSERA_PROFILE, LRSSettings, ProviderProfile
from backend.durations import parse_duration, parse_timestamp, to_iso
from backend.statements import (
    StatementParser,
    assignment_scored,
    module_completed,
    quiz_scored,
    video_watched,
)

logger = logging.getLogger(__name__)

XAPI_VERSION = "1.0.3"
DEFAULT_PAGE_SIZE = 200
DEFAULT_TIMEOUT = 30
MAX_STATEMENTS = 10_000
TIMELINE_LIMIT = 50
RATE_LIMIT_SLEEP = 0.1


# ─────────────────────────────────────────────
# BUNDLE ASSEMBLY
# ─────────────────────────────────────────────

def split_dashboard_bundle(statements: List[Dict], user_email: str, course_id: str,
                           profile: Optional[ProviderProfile] = None) -> Dict[str, Any]:
    """Split one learner's course statements into the raw dashboard bundle."""
    profile = profile or COURSERA_PROFILE

    def of_role(stmt, role):
        return profile.is_role(StatementParser.activity_type(stmt), role)

    def verb_in(stmt, verbs):
        return StatementParser.verb_id(stmt) in verbs

    modules = [s for s in statements if verb_in(s, profile.completion_verbs) and of_role(s, "module")]
    quizzes = [
        s for s in statements
        if verb_in(s, profile.score_verbs) and of_role(s, "quiz") and StatementParser.score_percent(s) is not None
    ]
    videos = [s for s in statements if verb_in(s, profile.video_verbs) and of_role(s, "video")]
    assignments = [
        s for s in statements
        if verb_in(s, profile.completion_verbs + profile.score_verbs) and of_role(s, "assignment")
    ]

    epoch = datetime.min.replace(tzinfo=timezone.utc)
    timeline = sorted(
        statements,
        key=lambda s: StatementParser.timestamp(s) or epoch,
        reverse=True,
    )

    return {
        "overview": {
            "total_statements": len(statements),
            "last_activity": timeline[0].get("timestamp") if timeline else None,
            "course_id": course_id,
            "user_email": user_email,
        },
        "modules": {
            "completed": modules,
            "completion_count": len(modules),
        },
        "assessments": {
            "quizzes": quizzes,
            "assignments": assignments,
            "total_assessments": len(quizzes) + len(assignments),
        },
        "engagement": {
            "video_interactions": videos,
            "total_video_time": sum(parse_duration((s.get("result") or {}).get("duration")) for s in videos),
        },
        "timeline": timeline[:TIMELINE_LIMIT],
    }


class XAPIClient:
    """Client for a standard xAPI LRS statements endpoint."""

    def __init__(
        self,
        endpoint: str,
        username: str = "",
        password: str = "",
        token: str = "",
        timeout: int = DEFAULT_TIMEOUT,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_retries: int = 3,
        rate_limit_sleep: float = RATE_LIMIT_SLEEP,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.username = username
        self.password = password
        self.token = token
        self.timeout = timeout
        self.page_size = page_size
        self.rate_limit_sleep = rate_limit_sleep

        self.session = requests.Session()
        retry = Retry(
            total=max_retries,
            backoff_factor=1.0,
            status_forcelist=[429, 500, 502, 503, 504],
            respect_retry_after_header=True,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)
        self.session.headers.update({
            "X-Experience-API-Version": XAPI_VERSION,
            "Accept": "application/json",
        })
        if self.token:
            self.session.headers["Authorization"] = f"Bearer {self.token}"
        elif self.username:
            self.session.auth = (self.username, self.password)

    @classmethod
    def from_settings(cls, settings: LRSSettings, **kwargs) -> "XAPIClient":
        return cls(
            endpoint=settings.endpoint,
            username=settings.username,
            password=settings.password,
            token=settings.token,
            **kwargs,
        )

    def _statements_url(self) -> str:
        if self.endpoint.endswith("statements"):
            return self.endpoint
        return self.endpoint + "/statements"

    def _resolve_more(self, more: str) -> str:
        if more.startswith("/"):
            parsed = urlparse(self.endpoint)
            return f"{parsed.scheme}://{parsed.netloc}{more}"
        return more

    def get_statements(
        self,
        agent_email: Optional[str] = None,
        activity_id: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        verb: Optional[str] = None,
        related_activities: bool = False,
        max_statements: int = MAX_STATEMENTS,
    ) -> Dict[str, Any]:
        """
        Fetch statements, following `more` links until exhausted or until
        `max_statements` is reached.

        Returns {"statements": [...], "has_more": bool}; has_more is True
        when the cap stopped paging before the LRS ran out of pages.
        """
        params: Dict[str, Any] = {"limit": self.page_size}
        if agent_email:
            params["agent"] = json.dumps({"mbox": f"mailto:{agent_email}", "objectType": "Agent"})
        if activity_id:
            params["activity"] = activity_id
        if related_activities:
            params["related_activities"] = "true"
        if since:
            params["since"] = to_iso(since)
        if until:
            params["until"] = to_iso(until)
        if verb:
            params["verb"] = verb

        all_statements: List[Dict] = []
        url: Optional[str] = self._statements_url()
        current_params: Optional[Dict] = params
        has_more = False

        while url:
            resp = self.session.get(url, params=current_params, timeout=self.timeout)
            resp.raise_for_status()
            body = resp.json()

            page = body.get("statements", [])
            all_statements.extend(page)
            more = body.get("more")
            url = self._resolve_more(more) if more else None
            current_params = None
            logger.debug(f"Fetched page of {len(page)} statements (total {len(all_statements)})")

            if not page:
                break
            if max_statements and len(all_statements) >= max_statements:
                has_more = url is not None or len(all_statements) > max_statements
                all_statements = all_statements[:max_statements]
                break

            if url:
                time.sleep(self.rate_limit_sleep)

        logger.info(f"Total fetched: {len(all_statements):,} statements")
        return {"statements": all_statements, "has_more": has_more}

    def get_dashboard_data(self, user_email: str, course_id: str,
                           profile: Optional[ProviderProfile] = None) -> Dict[str, Any]:
        """Fetch the learner's course statements once and split them into the raw bundle."""
        result = self.get_statements(agent_email=user_email, activity_id=course_id, related_activities=True)
        if result["has_more"]:
            logger.warning(f"Statement cap reached for {user_email}; dashboard uses a partial snapshot")
        return split_dashboard_bundle(result["statements"], user_email, course_id, profile)

    def ping(self) -> bool:
        try:
            resp = self.session.get(self._statements_url(), params={"limit": 1}, timeout=10)
            return resp.status_code in (200, 400)
        except requests.exceptions.RequestException as e:
            logger.warning(f"LRS ping failed: {e}")
            return False

    def get_lrs_info(self) -> Dict:
        return {
            "endpoint": self.endpoint,
            "connected": self.ping(),
            "auth": "bearer" if self.token else ("basic" if self.username else "none"),
        }


# ─────────────────────────────────────────────
# MOCK CLIENT
# ─────────────────────────────────────────────

MOCK_COURSE_ID = "https://www.coursera.org/learn/machine-learning"
MOCK_MODULES = [
    "Introduction to Machine Learning",
    "Linear Regression",
    "Logistic Regression",
    "Regularization",
    "Neural Networks",
    "Model Evaluation",
    "Support Vector Machines",
    "Unsupervised Learning",
]


class MockXAPIClient(XAPIClient):
    """
    Offline client producing a deterministic demo snapshot: the same seed
    and `now` always yield the same statements, ids included.
    """

    def __init__(self, seed: int = 42, now: Optional[datetime] = None,
                 user_name: str = "Demo Learner", user_email: str = "learner@example.com",
                 modules_completed: int = 6, profile: Optional[ProviderProfile] = None):
        self.endpoint = "mock://local"
        self.session = None
        self.username = ""
        self.password = ""
        self.token = ""
        self.timeout = 5
        self.page_size = DEFAULT_PAGE_SIZE
        self.rate_limit_sleep = 0
        self.seed = seed
        self.now = parse_timestamp(now) if now is not None else datetime.now(timezone.utc)
        self.user_name = user_name
        self.user_email = user_email
        self.modules_completed = min(modules_completed, len(MOCK_MODULES))
        self.profile = profile or COURSERA_PROFILE
        self._statements = self._generate()

    def _generate(self) -> List[Dict]:
        rng = random.Random(self.seed)
        actor = {"name": self.user_name, "email": self.user_email}
        profile = self.profile
        start = self.now - timedelta(days=3 * self.modules_completed + 1)
        statements = []

        def next_id() -> str:
            return str(uuid.UUID(int=rng.getrandbits(128), version=4))

        for i, title in enumerate(MOCK_MODULES[:self.modules_completed]):
            module_id = f"{MOCK_COURSE_ID}/module/{i + 1}"
            t = start + timedelta(days=3 * i, hours=rng.randint(8, 18), minutes=rng.randint(0, 59))

            for v in range(rng.randint(2, 4)):
                statements.append(video_watched(
                    actor, f"{module_id}/video/{v + 1}", f"{title} - Lecture {v + 1}",
                    rng.randint(300, 1500), timestamp=t, profile=profile, statement_id=next_id(),
                ))
                t += timedelta(minutes=rng.randint(10, 45))

            statements.append(quiz_scored(
                actor, f"{module_id}/quiz", f"{title} Quiz", rng.randint(55, 100),
                timestamp=t, profile=profile, statement_id=next_id(),
            ))
            t += timedelta(minutes=rng.randint(5, 30))

            if i % 2 == 1:
                statements.append(assignment_scored(
                    actor, f"{module_id}/assignment", f"{title} Assignment", rng.randint(60, 100),
                    timestamp=t + timedelta(days=1), profile=profile, statement_id=next_id(),
                ))

            statements.append(module_completed(actor, module_id, title, timestamp=t, profile=profile,
                                               statement_id=next_id()))

        logger.info(f"Generated {len(statements)} mock statements (seed={self.seed})")
        return statements

    def ping(self) -> bool:
        return True

    def get_lrs_info(self) -> Dict:
        return {
            "endpoint": "mock://local (demo data)",
            "connected": True,
            "auth": "none",
            "total_statements": len(self._statements),
        }

    def get_statements(
        self,
        agent_email: Optional[str] = None,
        activity_id: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        verb: Optional[str] = None,
        related_activities: bool = False,
        max_statements: int = MAX_STATEMENTS,
    ) -> Dict[str, Any]:
        since = parse_timestamp(since)
        until = parse_timestamp(until)
        selected = []
        for stmt in self._statements:
            ts = StatementParser.timestamp(stmt)
            if since and ts < since:
                continue
            if until and ts > until:
                continue
            if verb and StatementParser.verb_id(stmt) != verb:
                continue
            selected.append(stmt)
        return {
            "statements": [dict(s) for s in selected[:max_statements]],
            "has_more": len(selected) > max_statements,
        }
