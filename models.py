from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class CorpusItemSource(str, Enum):
    PROSPECT = "PROSPECT"
    MANUAL = "MANUAL"
    BACKFILL = "BACKFILL"
    ML = "ML"


class CuratedStatus(str, Enum):
    RECOMMENDATION = "RECOMMENDATION"
    CORPUS = "CORPUS"


class CorpusLanguage(str, Enum):
    DE = "DE"
    EN = "EN"
    ES = "ES"
    FR = "FR"
    IT = "IT"


class Topic(str, Enum):
    BUSINESS = "BUSINESS"
    CAREER = "CAREER"
    CORONAVIRUS = "CORONAVIRUS"
    EDUCATION = "EDUCATION"
    ENTERTAINMENT = "ENTERTAINMENT"
    FOOD = "FOOD"
    GAMING = "GAMING"
    HEALTH_FITNESS = "HEALTH_FITNESS"
    HOME = "HOME"
    PARENTING = "PARENTING"
    PERSONAL_FINANCE = "PERSONAL_FINANCE"
    POLITICS = "POLITICS"
    SCIENCE = "SCIENCE"
    SELF_IMPROVEMENT = "SELF_IMPROVEMENT"
    SPORTS = "SPORTS"
    TECHNOLOGY = "TECHNOLOGY"
    TRAVEL = "TRAVEL"


@dataclass
class UrlMetadata:
    """Parser-side view of a URL. Every field is optional; authors is a csv string."""

    url: str = ""
    title: Optional[str] = None
    excerpt: Optional[str] = None
    image_url: Optional[str] = None
    publisher: Optional[str] = None
    language: Optional[str] = None
    authors: Optional[str] = None
    is_collection: Optional[bool] = None
    is_syndicated: Optional[bool] = None
    date_published: Optional[str] = None

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> "UrlMetadata":
        data = data or {}
        return cls(
            url=data.get("url") or "",
            title=data.get("title"),
            excerpt=data.get("excerpt"),
            image_url=data.get("imageUrl"),
            publisher=data.get("publisher"),
            language=data.get("language"),
            authors=data.get("authors"),
            is_collection=data.get("isCollection"),
            is_syndicated=data.get("isSyndicated"),
            date_published=data.get("datePublished"),
        )


@dataclass(frozen=True)
class ApprovedItemAuthor:
    name: str
    sort_order: int

    def to_api_input(self) -> Dict[str, Any]:
        return {"name": self.name, "sortOrder": self.sort_order}


@dataclass(frozen=True)
class ApprovedItem:
    url: str
    title: str
    excerpt: str
    status: CuratedStatus
    language: CorpusLanguage
    publisher: Optional[str]
    authors: List[ApprovedItemAuthor]
    image_url: str
    topic: str
    source: CorpusItemSource
    scheduled_source: CorpusItemSource
    scheduled_date: str
    scheduled_surface_guid: str
    is_collection: bool = False
    is_syndicated: bool = False
    is_time_sensitive: bool = False
    date_published: Optional[str] = None

    def to_api_input(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "url": self.url,
            "title": self.title,
            "excerpt": self.excerpt,
            "status": self.status.value,
            "language": self.language.value,
            "publisher": self.publisher,
            "authors": [a.to_api_input() for a in self.authors],
            "imageUrl": self.image_url,
            "topic": self.topic,
            "source": self.source.value,
            "scheduledSource": self.scheduled_source.value,
            "isCollection": self.is_collection,
            "isSyndicated": self.is_syndicated,
            "isTimeSensitive": self.is_time_sensitive,
            "scheduledDate": self.scheduled_date,
            "scheduledSurfaceGuid": self.scheduled_surface_guid,
        }
        if self.date_published:
            data["datePublished"] = self.date_published
        return data


@dataclass(frozen=True)
class ScheduledItemInput:
    approved_item_external_id: str
    scheduled_surface_guid: str
    scheduled_date: str
    source: CorpusItemSource

    def to_api_input(self) -> Dict[str, Any]:
        return {
            "approvedItemExternalId": self.approved_item_external_id,
            "scheduledSurfaceGuid": self.scheduled_surface_guid,
            "scheduledDate": self.scheduled_date,
            "source": self.source.value,
        }


@dataclass
class ScheduleOutcome:
    candidate_id: str
    status: str  # scheduled | already_scheduled | skipped | dry_run
    approved_corpus_item_external_id: Optional[str] = None
    scheduled_corpus_item_external_id: Optional[str] = None
    approved_item: Optional[ApprovedItem] = None
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "candidate_id": self.candidate_id,
            "status": self.status,
            "approved_corpus_item_external_id": self.approved_corpus_item_external_id,
            "scheduled_corpus_item_external_id": self.scheduled_corpus_item_external_id,
        }
        if self.approved_item is not None:
            out["approved_item"] = self.approved_item.to_api_input()
        if self.detail:
            out["detail"] = self.detail
        return out


@dataclass
class BatchFailure:
    record: Any
    error: Exception

    @property
    def record_id(self) -> str:
        if isinstance(self.record, dict):
            return str(self.record.get("scheduled_corpus_candidate_id") or "")
        return str(getattr(self.record, "scheduled_corpus_candidate_id", "") or "")

    def to_dict(self) -> Dict[str, Any]:
        to_dict = getattr(self.error, "to_dict", None)
        if callable(to_dict):
            return to_dict()
        return {"candidate_id": self.record_id, "error_type": type(self.error).__name__, "message": str(self.error)}


@dataclass
class BatchResult:
    succeeded: List[Any] = field(default_factory=list)
    failed: List[BatchFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed
