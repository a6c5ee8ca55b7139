from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

import requests

from config import Settings
from errors import CandidateErrorName, TelemetryEmissionFailure
from validation import ScheduledCandidate


logger = logging.getLogger(__name__)

EVENT_TRIGGER = "scheduled_corpus_candidate_generated"
EVENT_OBJECT = "scheduled_corpus_candidate"

EventSink = Callable[[Dict[str, Any]], None]


def candidate_entity(
    candidate: ScheduledCandidate,
    error_name: Optional[CandidateErrorName] = None,
    error_description: Optional[str] = None,
    approved_corpus_item_external_id: Optional[str] = None,
    scheduled_corpus_item_external_id: Optional[str] = None,
) -> Dict[str, Any]:
    """scheduled_corpus_candidate entity; optional keys are left out when unset."""
    entity: Dict[str, Any] = {
        "scheduled_corpus_candidate_id": candidate.scheduled_corpus_candidate_id,
        "candidate_url": candidate.scheduled_corpus_item.url,
        "features": candidate.telemetry_features(),
        "run_details": candidate.telemetry_run_details(),
    }
    if approved_corpus_item_external_id:
        entity["approved_corpus_item_external_id"] = approved_corpus_item_external_id
    if scheduled_corpus_item_external_id:
        entity["scheduled_corpus_item_external_id"] = scheduled_corpus_item_external_id
    if error_name:
        entity["error_name"] = error_name.value
    if error_description:
        entity["error_description"] = error_description
    return entity


def success_entity(candidate: ScheduledCandidate, approved_id: Optional[str], scheduled_id: Optional[str]) -> Dict[str, Any]:
    return candidate_entity(
        candidate,
        approved_corpus_item_external_id=approved_id,
        scheduled_corpus_item_external_id=scheduled_id,
    )


def error_entity(candidate: ScheduledCandidate, error_name: CandidateErrorName, description: str) -> Dict[str, Any]:
    return candidate_entity(candidate, error_name=error_name, error_description=description)


def build_event(entity: Dict[str, Any], settings: Settings) -> Dict[str, Any]:
    return {
        "schema": settings.events_schema,
        "data": {"trigger": EVENT_TRIGGER, "object": EVENT_OBJECT},
        "contexts": [{"schema": settings.candidate_entity_schema, "data": entity}],
    }


class HttpEventSink:
    def __init__(self, session: requests.Session, settings: Settings):
        self.session = session
        self.settings = settings

    def __call__(self, event: Dict[str, Any]) -> None:
        try:
            r = self.session.post(self.settings.events_endpoint, json=event, timeout=self.settings.request_timeout)
            r.raise_for_status()
        except requests.RequestException as exc:
            raise TelemetryEmissionFailure(f"event post to {self.settings.events_endpoint} failed: {exc}") from exc


class CollectingEventSink:
    """Keeps events in memory; used for dry runs and when no endpoint is configured."""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    def __call__(self, event: Dict[str, Any]) -> None:
        self.events.append(event)


def queue_event(sink: Optional[EventSink], entity: Dict[str, Any], settings: Settings) -> bool:
    """Emit one candidate event. Emission problems are logged and never raised."""
    if sink is None:
        return False
    event = build_event(entity, settings)
    try:
        sink(event)
    except Exception as exc:
        # telemetry must not change the candidate's outcome
        logger.warning(
            "event_emit_failed id=%s error_name=%s error=%r",
            entity.get("scheduled_corpus_candidate_id"),
            entity.get("error_name"),
            exc,
        )
        return False
    logger.debug("event_queued id=%s error_name=%s", entity.get("scheduled_corpus_candidate_id"), entity.get("error_name"))
    return True
