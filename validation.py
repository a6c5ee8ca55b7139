from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from config import SURFACE_GUIDS, get_surface
from errors import StructuralError
from models import CorpusItemSource, CorpusLanguage, CuratedStatus, Topic


ROOT_PATH = "$input"
ISO_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


def _union(values) -> str:
    return "(" + " | ".join(f'"{v}"' for v in values) + ")"


TOPIC_VALUES = tuple(t.value for t in Topic)

EXPECTED_TYPES: Dict[str, str] = {
    "scheduled_corpus_candidate_id": "string",
    "scheduled_corpus_item": "ScheduledCorpusItem",
    "features": "ScheduledCorpusCandidateFeatures",
    "run_details": "ScheduledCorpusCandidateRunDetails",
    "url": 'string & Format<"url">',
    "status": _union(sorted(s.value for s in CuratedStatus)),
    "source": _union(sorted(s.value for s in CorpusItemSource)),
    "topic": "(" + " | ".join([f'"{t}"' for t in TOPIC_VALUES] + ['""']) + ")",
    "scheduled_date": "string",
    "scheduled_surface_guid": _union(SURFACE_GUIDS),
    "title": "(null | string)",
    "excerpt": "(null | string)",
    "language": "(" + " | ".join([f'"{c.value}"' for c in CorpusLanguage] + ["null"]) + ")",
    "image_url": "(null | string)",
    "authors": "(Array<string> | null)",
    "authors[]": "string",
    "rank": 'number & Type<"int64">',
    "score": "number",
    "data_source": "string",
    "ml_version": "string",
    "flow_name": "string",
    "run_id": "string",
}


class ScheduledCorpusItem(BaseModel):
    """ML payload for one item. Optional fields are nullable but must be present."""

    model_config = ConfigDict(frozen=True)

    url: str
    status: CuratedStatus
    source: CorpusItemSource
    topic: str
    scheduled_date: str
    scheduled_surface_guid: str
    title: Optional[str]
    excerpt: Optional[str]
    language: Optional[CorpusLanguage]
    image_url: Optional[str]
    authors: Optional[List[str]]

    @field_validator("url")
    @classmethod
    def check_http_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError("url must be http or https")
        return v

    @field_validator("topic")
    @classmethod
    def check_topic(cls, v: str) -> str:
        if v != "" and v not in TOPIC_VALUES:
            raise ValueError(f"unknown topic {v!r}")
        return v

    @field_validator("scheduled_surface_guid")
    @classmethod
    def check_surface(cls, v: str) -> str:
        if v not in SURFACE_GUIDS:
            raise ValueError(f"unknown scheduled surface {v!r}")
        return v


class ScheduledCorpusCandidateFeatures(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow", strict=True)

    rank: int
    score: float
    data_source: str
    ml_version: str

    @model_validator(mode="after")
    def check_extra_features(self):
        for key, value in (self.model_extra or {}).items():
            if isinstance(value, bool) or not isinstance(value, (str, int, float)):
                raise ValueError(f"feature {key} must be a string or number")
        return self


class ScheduledCorpusCandidateRunDetails(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    flow_name: str
    run_id: str


class ScheduledCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    scheduled_corpus_candidate_id: str
    scheduled_corpus_item: ScheduledCorpusItem
    features: ScheduledCorpusCandidateFeatures
    run_details: ScheduledCorpusCandidateRunDetails

    def telemetry_features(self) -> Dict[str, Any]:
        return self.features.model_dump()

    def telemetry_run_details(self) -> Dict[str, Any]:
        return self.run_details.model_dump()


def format_path(loc: Tuple[Union[str, int], ...]) -> str:
    path = ROOT_PATH
    for part in loc:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path


def expected_type(loc: Tuple[Union[str, int], ...]) -> str:
    names = [p for p in loc if isinstance(p, str)]
    if not names:
        return "ScheduledCandidate"
    key = names[-1]
    if loc and isinstance(loc[-1], int):
        key += "[]"
    return EXPECTED_TYPES.get(key, "unknown")


def _field_name(loc: Tuple[Union[str, int], ...]) -> str:
    names = [p for p in loc if isinstance(p, str)]
    return names[-1] if names else ""


def _candidate_id(raw: Any) -> str:
    if isinstance(raw, dict):
        value = raw.get("scheduled_corpus_candidate_id")
        return value if isinstance(value, str) else ""
    return ""


def structural_error_from(exc: ValidationError, candidate_id: str = "") -> StructuralError:
    errors = exc.errors()
    first = errors[0]
    # model-level validators report against the model itself
    loc = tuple(p for p in first["loc"] if p != "__root__")
    path = format_path(loc)
    expected = expected_type(loc)
    if first["type"] == "missing":
        message = f"missing required property {path}, expect to be {expected}"
    else:
        message = f"invalid type on {path}, expect to be {expected}"
    if len(errors) > 1:
        message += f" (and {len(errors) - 1} more)"
    return StructuralError(message, candidate_id=candidate_id, path=path, field=_field_name(loc), expected=expected)


def validate_structure(raw: Any) -> ScheduledCandidate:
    """Validate a decoded candidate record. Raises StructuralError naming the offending path."""
    candidate_id = _candidate_id(raw)
    try:
        return ScheduledCandidate.model_validate(raw)
    except ValidationError as exc:
        raise structural_error_from(exc, candidate_id) from exc


def validate_source(candidate: ScheduledCandidate, expected: CorpusItemSource = CorpusItemSource.ML) -> CorpusItemSource:
    item = candidate.scheduled_corpus_item
    source = item.source
    surface = get_surface(item.scheduled_surface_guid)
    if source != expected or source not in surface.sources:
        raise StructuralError(
            f"invalid source ({source.value}) for {candidate.scheduled_corpus_candidate_id}",
            candidate_id=candidate.scheduled_corpus_candidate_id,
            path=format_path(("scheduled_corpus_item", "source")),
            field="source",
            expected=f'"{expected.value}"',
        )
    return source


def validate_candidate(raw: Any, expected_source: CorpusItemSource = CorpusItemSource.ML) -> ScheduledCandidate:
    candidate = validate_structure(raw)
    validate_source(candidate, expected_source)
    return candidate


def parse_calendar_date(value: Any) -> Optional[date]:
    """Strict ``YYYY-MM-DD`` parse; anything else is None."""
    if not isinstance(value, str) or not ISO_DATE_RE.fullmatch(value):
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None


def validate_date_published(value: Optional[str]) -> Optional[str]:
    """Parser dates look like ``2024-02-27 00:00:00``; keep the YYYY-MM-DD part if it is a real date."""
    if not value:
        return None
    parsed = parse_calendar_date(value[:10])
    return parsed.isoformat() if parsed else None
