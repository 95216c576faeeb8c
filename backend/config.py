"""
Provider vocabularies and connection settings.

A ProviderProfile lists the verb and activity-type URIs a content provider
uses, so the calculator never hard-codes one provider's vocabulary.
Profiles ship in config/providers.yaml; COURSERA_PROFILE is built in.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

ROOT = Path(__file__).parent.parent
DEFAULT_PROVIDERS_PATH = ROOT / "config" / "providers.yaml"
DEFAULT_CACHE_TTL = 300

VERB_COMPLETED = "http://adlnet.gov/expapi/verbs/completed"
VERB_EXPERIENCED = "http://adlnet.gov/expapi/verbs/experienced"
VERB_SCORED = "http://adlnet.gov/expapi/verbs/scored"
VERB_ANSWERED = "http://adlnet.gov/expapi/verbs/answered"
VERB_ATTEMPTED = "http://adlnet.gov/expapi/verbs/attempted"
VERB_PROGRESSED = "http://adlnet.gov/expapi/verbs/progressed"


@dataclass(frozen=True)
class ProviderProfile:
    name: str
    completion_verbs: Tuple[str, ...] = (VERB_COMPLETED,)
    score_verbs: Tuple[str, ...] = (VERB_SCORED, VERB_ANSWERED)
    video_verbs: Tuple[str, ...] = (VERB_EXPERIENCED,)
    activity_types: Dict[str, str] = field(default_factory=dict)

    def is_completion(self, verb_id: str) -> bool:
        return verb_id in self.completion_verbs

    def type_uri(self, role: str) -> Optional[str]:
        return self.activity_types.get(role)

    def role_of(self, type_uri: Optional[str]) -> Optional[str]:
        """Map an activity-type URI back to its role ('video', 'module', ...)."""
        if not type_uri:
            return None
        for role, uri in self.activity_types.items():
            if uri == type_uri:
                return role
        return None

    def is_role(self, type_uri: Optional[str], role: str) -> bool:
        uri = self.activity_types.get(role)
        return uri is not None and uri == type_uri

    @classmethod
    def from_dict(cls, name: str, data: Dict) -> "ProviderProfile":
        verbs = data.get("verbs", {})
        return cls(
            name=name,
            completion_verbs=tuple(verbs.get("completion", [VERB_COMPLETED])),
            score_verbs=tuple(verbs.get("score", [VERB_SCORED, VERB_ANSWERED])),
            video_verbs=tuple(verbs.get("video", [VERB_EXPERIENCED])),
            activity_types=dict(data.get("activity_types", {})),
        )


COURSERA_PROFILE = ProviderProfile(
    name="coursera",
    activity_types={
        "course": "http://coursera.org/xapi/activity-types/course",
        "module": "http://coursera.org/xapi/activity-types/module",
        "lesson": "http://coursera.org/xapi/activity-types/lesson",
        "video": "http://coursera.org/xapi/activity-types/video",
        "quiz": "http://coursera.org/xapi/activity-types/quiz",
        "assignment": "http://coursera.org/xapi/activity-types/assignment",
        "peer_review": "http://coursera.org/xapi/activity-types/peer-review",
    },
)


def load_provider_profiles(path: Optional[Path] = None) -> Dict[str, ProviderProfile]:
    """Read every provider profile from the YAML catalog."""
    catalog_path = Path(path) if path else DEFAULT_PROVIDERS_PATH
    with open(catalog_path, "r") as f:
        catalog = yaml.safe_load(f) or {}
    profiles = {
        name: ProviderProfile.from_dict(name, data or {})
        for name, data in catalog.get("providers", {}).items()
    }
    logger.info(f"Loaded {len(profiles)} provider profiles from {catalog_path}")
    return profiles


def get_provider_profile(name: str, path: Optional[Path] = None) -> ProviderProfile:
    profiles = load_provider_profiles(path) if (path or DEFAULT_PROVIDERS_PATH.exists()) else {}
    if name in profiles:
        return profiles[name]
    if name == COURSERA_PROFILE.name:
        return COURSERA_PROFILE
    raise KeyError(f"Unknown provider profile: {name}")


@dataclass(frozen=True)
class LRSSettings:
    endpoint: str = ""
    username: str = ""
    password: str = ""
    token: str = ""
    provider: str = COURSERA_PROFILE.name
    cache_ttl: int = DEFAULT_CACHE_TTL

    @property
    def is_configured(self) -> bool:
        return bool(self.endpoint and (self.token or (self.username and self.password)))

    @classmethod
    def from_env(cls) -> "LRSSettings":
        settings = cls(
            endpoint=os.getenv("LRS_ENDPOINT", "") or os.getenv("XAPI_ENDPOINT", ""),
            username=os.getenv("LRS_USERNAME", "") or os.getenv("XAPI_USERNAME", ""),
            password=os.getenv("LRS_PASSWORD", "") or os.getenv("XAPI_PASSWORD", ""),
            token=os.getenv("LRS_TOKEN", "") or os.getenv("XAPI_TOKEN", ""),
            provider=os.getenv("DASHBOARD_PROVIDER", COURSERA_PROFILE.name),
            cache_ttl=int(os.getenv("DASHBOARD_CACHE_TTL", str(DEFAULT_CACHE_TTL))),
        )
        if not settings.is_configured:
            logger.warning("LRS connection is not fully configured (endpoint and credentials)")
        return settings
