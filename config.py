from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Tuple

from models import CorpusItemSource


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [v.strip() for v in raw.split(",") if v.strip()]


@dataclass
class Settings:
    environment: str = os.getenv("ENVIRONMENT", "development")
    app_name: str = os.getenv("APP_NAME", "Corpus-Scheduler")
    app_version: str = os.getenv("APP_VERSION", os.getenv("GIT_SHA", "local"))
    user_agent: str = os.getenv("USER_AGENT", "CorpusScheduler/1.0 (+https://getpocket.com)")
    request_timeout: int = int(os.getenv("REQUEST_TIMEOUT", "15"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    dry_run: bool = _env_flag("DRY_RUN", "0")
    enable_scheduled_date_validation: bool = _env_flag("ENABLE_SCHEDULED_DATE_VALIDATION", "true")
    allowed_to_schedule: bool = _env_flag("ALLOWED_TO_SCHEDULE", "true")
    fail_message_on_candidate_error: bool = _env_flag("FAIL_MESSAGE_ON_CANDIDATE_ERROR", "0")
    allowed_scheduled_surfaces: List[str] = field(
        default_factory=lambda: _env_list("ALLOWED_SCHEDULED_SURFACES", "NEW_TAB_EN_US")
    )
    admin_api_uri: str = os.getenv("ADMIN_API_URI", "http://localhost:4027")
    admin_api_token: str = os.getenv("ADMIN_API_TOKEN", "")
    image_cache_url: str = os.getenv("IMAGE_CACHE_URL", "https://pocket-image-cache.com/x/")
    events_endpoint: str = os.getenv("EVENTS_ENDPOINT", "")
    events_schema: str = os.getenv(
        "EVENTS_SCHEMA", "iglu:com.pocket/object_update/jsonschema/1-0-17"
    )
    candidate_entity_schema: str = os.getenv(
        "CANDIDATE_ENTITY_SCHEMA", "iglu:com.pocket/scheduled_corpus_candidate/jsonschema/1-0-2"
    )

    @property
    def is_dev(self) -> bool:
        return self.environment == "development"


DEFAULT_MINOR_WORDS = "a an and at but by for in nor of on or the to up yet"


def load_minor_words() -> FrozenSet[str]:
    defaults = frozenset(DEFAULT_MINOR_WORDS.split())
    raw = os.getenv("MINOR_WORDS_JSON", "").strip()
    if not raw:
        return defaults
    try:
        payload = json.loads(raw)
    except ValueError:
        return defaults
    if not isinstance(payload, list):
        return defaults
    parsed = frozenset(str(v).strip().lower() for v in payload if str(v).strip())
    return parsed or defaults


MINOR_WORDS = load_minor_words()

WEEKDAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
    6: "Saturday",
    7: "Sunday",
}


@dataclass(frozen=True)
class CutoffRule:
    weekdays: Tuple[int, ...]  # ISO weekdays, Monday=1
    min_hours: int

    @property
    def label(self) -> str:
        first, last = WEEKDAY_NAMES[self.weekdays[0]], WEEKDAY_NAMES[self.weekdays[-1]]
        return first if first == last else f"{first} - {last}"


@dataclass(frozen=True)
class ScheduledSurface:
    guid: str
    name: str
    iana_timezone: str
    cutoff_rules: Tuple[CutoffRule, ...]
    publish_hour_local: int = 0
    sources: FrozenSet[CorpusItemSource] = frozenset(CorpusItemSource)

    @property
    def cutoff_hours_by_weekday(self) -> Dict[int, int]:
        return {day: rule.min_hours for rule in self.cutoff_rules for day in rule.weekdays}

    def rule_for(self, weekday: int) -> CutoffRule:
        for rule in self.cutoff_rules:
            if weekday in rule.weekdays:
                return rule
        raise KeyError(f"{self.guid} has no cutoff rule for weekday {weekday}")


EVERY_DAY_14H = (CutoffRule(weekdays=(1, 2, 3, 4, 5, 6, 7), min_hours=14),)
EN_US_CUTOFFS = (
    CutoffRule(weekdays=(1, 2, 3, 4, 5, 6), min_hours=14),
    CutoffRule(weekdays=(7,), min_hours=32),
)
# Monday is listed after Sunday so the label reads "Sunday - Monday".
DE_DE_CUTOFFS = (
    CutoffRule(weekdays=(2, 3, 4, 5, 6), min_hours=14),
    CutoffRule(weekdays=(7, 1), min_hours=12),
)

SCHEDULED_SURFACES: Tuple[ScheduledSurface, ...] = (
    ScheduledSurface(guid="NEW_TAB_EN_US", name="New Tab (en-US)", iana_timezone="America/New_York", cutoff_rules=EN_US_CUTOFFS),
    ScheduledSurface(guid="NEW_TAB_DE_DE", name="New Tab (de-DE)", iana_timezone="Europe/Berlin", cutoff_rules=DE_DE_CUTOFFS),
    ScheduledSurface(guid="NEW_TAB_EN_GB", name="New Tab (en-GB)", iana_timezone="Europe/London", cutoff_rules=EVERY_DAY_14H),
    ScheduledSurface(guid="NEW_TAB_FR_FR", name="New Tab (fr-FR)", iana_timezone="Europe/Paris", cutoff_rules=EVERY_DAY_14H),
    ScheduledSurface(guid="NEW_TAB_IT_IT", name="New Tab (it-IT)", iana_timezone="Europe/Rome", cutoff_rules=EVERY_DAY_14H),
    ScheduledSurface(guid="NEW_TAB_ES_ES", name="New Tab (es-ES)", iana_timezone="Europe/Madrid", cutoff_rules=EVERY_DAY_14H),
    ScheduledSurface(guid="NEW_TAB_EN_INTL", name="New Tab (en-INTL)", iana_timezone="Asia/Kolkata", cutoff_rules=EVERY_DAY_14H),
    ScheduledSurface(guid="POCKET_HITS_EN_US", name="Pocket Hits (en-US)", iana_timezone="America/New_York", cutoff_rules=EN_US_CUTOFFS),
    ScheduledSurface(guid="POCKET_HITS_DE_DE", name="Pocket Hits (de-DE)", iana_timezone="Europe/Berlin", cutoff_rules=DE_DE_CUTOFFS),
    ScheduledSurface(guid="SANDBOX", name="Sandbox", iana_timezone="America/New_York", cutoff_rules=EVERY_DAY_14H),
)

SURFACES_BY_GUID: Dict[str, ScheduledSurface] = {s.guid: s for s in SCHEDULED_SURFACES}
SURFACE_GUIDS: Tuple[str, ...] = tuple(sorted(SURFACES_BY_GUID))


def get_surface(guid: str) -> ScheduledSurface:
    try:
        return SURFACES_BY_GUID[guid]
    except KeyError:
        raise KeyError(f"unknown scheduled surface {guid!r}; expected one of {', '.join(SURFACE_GUIDS)}") from None
