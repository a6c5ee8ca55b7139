from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from admin_api import AdminApiClient
from batch import process_batch
from config import Settings, get_surface
from errors import AdminApiError, CandidateErrorName, ReconciliationError, SchedulingError
from events import EventSink, error_entity, queue_event, success_entity
from models import BatchResult, ScheduleOutcome, UrlMetadata
from reconcile import ImageValidator, build_scheduled_item_input, reconcile
from scheduling import validate_scheduled_date
from validation import ScheduledCandidate, validate_candidate


logger = logging.getLogger(__name__)

MetadataLookup = Callable[[str], Optional[UrlMetadata]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CandidateScheduler:
    """Validates, enriches and schedules ML candidates one at a time.

    Every collaborator is passed in. ``admin_api`` may be None only for dry
    runs, in which case every URL is treated as new to the corpus.
    """

    def __init__(
        self,
        settings: Settings,
        admin_api: Optional[AdminApiClient],
        validate_image: ImageValidator,
        lookup_metadata: Optional[MetadataLookup] = None,
        emit_event: Optional[EventSink] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        if admin_api is None and not settings.dry_run:
            raise ValueError("admin_api is required unless settings.dry_run is set")
        if lookup_metadata is None and admin_api is None:
            raise ValueError("lookup_metadata is required without an admin_api")
        self.settings = settings
        self.admin_api = admin_api
        self.validate_image = validate_image
        self.lookup_metadata = lookup_metadata or admin_api.get_url_metadata
        self.emit_event = emit_event
        self.clock = clock

    def _emit(self, entity: Dict[str, Any]) -> None:
        queue_event(self.emit_event, entity, self.settings)

    def _metadata_for(self, url: str) -> UrlMetadata:
        try:
            metadata = self.lookup_metadata(url)
        except Exception as exc:
            # treated as "no metadata"; required fields may still resolve from ML
            logger.warning("metadata_lookup_failed url=%s error=%r", url, exc)
            return UrlMetadata(url=url)
        return metadata or UrlMetadata(url=url)

    def check_schedule(self, candidate: ScheduledCandidate) -> None:
        item = candidate.scheduled_corpus_item
        try:
            validate_scheduled_date(
                item.scheduled_date,
                get_surface(item.scheduled_surface_guid),
                now=self.clock(),
                candidate_id=candidate.scheduled_corpus_candidate_id,
            )
        except SchedulingError as exc:
            if exc.error_name:
                self._emit(error_entity(candidate, exc.error_name, exc.message))
            raise

    def surface_allowed(self, candidate: ScheduledCandidate) -> bool:
        if self.settings.is_dev:
            return True
        return candidate.scheduled_corpus_item.scheduled_surface_guid in self.settings.allowed_scheduled_surfaces

    def schedule_new_item(self, candidate: ScheduledCandidate) -> ScheduleOutcome:
        candidate_id = candidate.scheduled_corpus_candidate_id
        metadata = self._metadata_for(candidate.scheduled_corpus_item.url)
        try:
            approved = reconcile(candidate, metadata, self.validate_image)
        except ReconciliationError as exc:
            if exc.error_name:
                self._emit(error_entity(candidate, exc.error_name, exc.message))
            raise

        if self.settings.dry_run:
            logger.info("dry_run_new_item id=%s url=%s title=%r", candidate_id, approved.url, approved.title)
            return ScheduleOutcome(candidate_id=candidate_id, status="dry_run", approved_item=approved)

        created = self.admin_api.create_approved_corpus_item(approved)
        history = created.get("scheduledSurfaceHistory") or []
        # a brand new item has exactly one schedule entry
        scheduled_id = history[0].get("externalId") if history else None
        return ScheduleOutcome(
            candidate_id=candidate_id,
            status="scheduled",
            approved_corpus_item_external_id=created.get("externalId"),
            scheduled_corpus_item_external_id=scheduled_id,
            approved_item=approved,
        )

    def schedule_existing_item(self, candidate: ScheduledCandidate, approved_external_id: str) -> ScheduleOutcome:
        candidate_id = candidate.scheduled_corpus_candidate_id
        scheduled_input = build_scheduled_item_input(candidate, approved_external_id)
        if self.settings.dry_run:
            logger.info("dry_run_existing_item id=%s approved_id=%s", candidate_id, approved_external_id)
            return ScheduleOutcome(
                candidate_id=candidate_id,
                status="dry_run",
                approved_corpus_item_external_id=approved_external_id,
            )
        try:
            created = self.admin_api.create_scheduled_corpus_item(scheduled_input)
        except AdminApiError as exc:
            if not exc.is_already_scheduled:
                raise
            logger.info("candidate_already_scheduled id=%s approved_id=%s", candidate_id, approved_external_id)
            self._emit(error_entity(candidate, CandidateErrorName.ALREADY_SCHEDULED, exc.message))
            return ScheduleOutcome(
                candidate_id=candidate_id,
                status="already_scheduled",
                approved_corpus_item_external_id=approved_external_id,
                detail=exc.message,
            )
        return ScheduleOutcome(
            candidate_id=candidate_id,
            status="scheduled",
            approved_corpus_item_external_id=approved_external_id,
            scheduled_corpus_item_external_id=created.get("externalId"),
        )

    def schedule_candidate(self, raw: Any) -> ScheduleOutcome:
        candidate = validate_candidate(raw)
        candidate_id = candidate.scheduled_corpus_candidate_id
        item = candidate.scheduled_corpus_item

        if self.settings.enable_scheduled_date_validation:
            self.check_schedule(candidate)

        if not self.surface_allowed(candidate):
            logger.info("candidate_surface_not_allowed id=%s surface=%s", candidate_id, item.scheduled_surface_guid)
            return ScheduleOutcome(
                candidate_id=candidate_id,
                status="skipped",
                detail=f"cannot schedule candidate {candidate_id} for surface {item.scheduled_surface_guid}",
            )

        existing = self.admin_api.get_approved_corpus_item_by_url(item.url) if self.admin_api else None
        if existing:
            outcome = self.schedule_existing_item(candidate, existing.get("externalId") or "")
        else:
            outcome = self.schedule_new_item(candidate)

        if outcome.status == "scheduled":
            self._emit(
                success_entity(
                    candidate,
                    outcome.approved_corpus_item_external_id,
                    outcome.scheduled_corpus_item_external_id,
                )
            )
        logger.info(
            "candidate_done id=%s status=%s approved_id=%s scheduled_id=%s",
            candidate_id,
            outcome.status,
            outcome.approved_corpus_item_external_id,
            outcome.scheduled_corpus_item_external_id,
        )
        return outcome

    def process_candidates(self, candidates: List[Any]) -> BatchResult:
        return process_batch(candidates, self.schedule_candidate)

    def process_message(self, body: Union[str, bytes, Dict[str, Any]]) -> BatchResult:
        """Process one queue message body of the form ``{"candidates": [...]}``.

        A body that cannot be decoded, or that has no candidate list, raises
        ValueError: there is nothing to iterate, so the whole message fails.
        """
        payload = json.loads(body) if isinstance(body, (str, bytes)) else body
        if not isinstance(payload, dict) or not isinstance(payload.get("candidates"), list):
            raise ValueError("message body has no candidates list")
        return self.process_candidates(payload["candidates"])


def handle_queue_event(event: Dict[str, Any], scheduler: CandidateScheduler) -> Dict[str, List[Dict[str, str]]]:
    """Queue consumer entry point. Returns the partial batch response."""
    settings = scheduler.settings
    failures: List[Dict[str, str]] = []
    if not settings.allowed_to_schedule:
        logger.info("scheduling_disabled environment=%s", settings.environment)
        return {"batchItemFailures": failures}

    for record in event.get("Records") or []:
        message_id = str(record.get("messageId", ""))
        try:
            result = scheduler.process_message(record.get("body") or "")
        except Exception as exc:
            logger.warning("message_failed message_id=%s reason=%r", message_id, exc)
            failures.append({"itemIdentifier": message_id})
            continue
        if result.failed and settings.fail_message_on_candidate_error:
            failures.append({"itemIdentifier": message_id})
    return {"batchItemFailures": failures}
