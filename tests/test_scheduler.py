import json
from datetime import datetime, timezone

import pytest

from config import Settings
from errors import AdminApiError, ReconciliationError, SchedulingError, StructuralError
from events import CollectingEventSink
from fakes import make_candidate
from models import UrlMetadata
from scheduler import CandidateScheduler, handle_queue_event

NOW = datetime(2024, 1, 20, 12, 0, tzinfo=timezone.utc)


class FakeAdminApi:
    def __init__(self, existing=None, scheduled_error=None):
        self.existing = existing
        self.scheduled_error = scheduled_error
        self.calls = []

    def get_approved_corpus_item_by_url(self, url):
        self.calls.append(("get_approved", url))
        return self.existing

    def get_url_metadata(self, url):
        self.calls.append(("metadata", url))
        return UrlMetadata(url=url, publisher="POLITICO", authors="Rebecca Jennings", language="en")

    def create_approved_corpus_item(self, item):
        self.calls.append(("create_approved", item))
        return {"externalId": "approved-1", "scheduledSurfaceHistory": [{"externalId": "scheduled-1"}]}

    def create_scheduled_corpus_item(self, scheduled):
        self.calls.append(("create_scheduled", scheduled))
        if self.scheduled_error:
            raise self.scheduled_error
        return {"externalId": "scheduled-2"}


def make_settings(**overrides):
    s = Settings()
    s.environment = "development"
    s.dry_run = False
    s.enable_scheduled_date_validation = True
    s.allowed_to_schedule = True
    s.fail_message_on_candidate_error = False
    s.allowed_scheduled_surfaces = ["NEW_TAB_EN_US"]
    for k, v in overrides.items():
        setattr(s, k, v)
    return s


def make_scheduler(admin=None, image=lambda url: url, **settings_overrides):
    sink = CollectingEventSink()
    scheduler = CandidateScheduler(
        make_settings(**settings_overrides),
        admin if admin is not None else FakeAdminApi(),
        validate_image=image,
        emit_event=sink,
        clock=lambda: NOW,
    )
    return scheduler, sink


def entities(sink):
    return [e["contexts"][0]["data"] for e in sink.events]


def test_new_item_is_approved_and_scheduled():
    admin = FakeAdminApi()
    scheduler, sink = make_scheduler(admin)
    outcome = scheduler.schedule_candidate(make_candidate())

    assert outcome.status == "scheduled"
    assert outcome.approved_corpus_item_external_id == "approved-1"
    assert outcome.scheduled_corpus_item_external_id == "scheduled-1"
    assert [c[0] for c in admin.calls] == ["get_approved", "metadata", "create_approved"]
    created = admin.calls[-1][1]
    assert created.publisher == "POLITICO"
    assert created.title == "Romantic Norms Are in Flux. No Wonder Everyone’s Obsessed With Polyamory."

    (entity,) = entities(sink)
    assert entity["approved_corpus_item_external_id"] == "approved-1"
    assert entity["scheduled_corpus_item_external_id"] == "scheduled-1"
    assert "error_name" not in entity


def test_existing_item_is_only_scheduled():
    admin = FakeAdminApi(existing={"url": "https://fake-url.com", "externalId": "approved-0"})
    scheduler, sink = make_scheduler(admin)
    outcome = scheduler.schedule_candidate(make_candidate())

    assert outcome.status == "scheduled"
    assert outcome.scheduled_corpus_item_external_id == "scheduled-2"
    scheduled_input = admin.calls[-1][1]
    assert scheduled_input.approved_item_external_id == "approved-0"
    assert entities(sink)[0]["approved_corpus_item_external_id"] == "approved-0"


def test_already_scheduled_is_reported_not_failed():
    error = AdminApiError(
        "createScheduledCorpusItem failed: This story is already scheduled to appear on NEW_TAB_EN_US on Mar 27, 2024.",
        code="BAD_USER_INPUT",
    )
    admin = FakeAdminApi(existing={"externalId": "approved-0"}, scheduled_error=error)
    scheduler, sink = make_scheduler(admin)
    outcome = scheduler.schedule_candidate(make_candidate())

    assert outcome.status == "already_scheduled"
    (entity,) = entities(sink)
    assert entity["error_name"] == "ALREADY_SCHEDULED"
    assert "already scheduled" in entity["error_description"]


def test_other_admin_errors_fail_the_candidate():
    admin = FakeAdminApi(existing={"externalId": "approved-0"}, scheduled_error=AdminApiError("boom", code="INTERNAL"))
    scheduler, sink = make_scheduler(admin)
    result = scheduler.process_candidates([make_candidate()])
    assert isinstance(result.failed[0].error, AdminApiError)
    assert sink.events == []


def test_insufficient_lead_time_emits_event_and_fails():
    admin = FakeAdminApi()
    scheduler, sink = make_scheduler(admin)
    with pytest.raises(SchedulingError):
        scheduler.schedule_candidate(make_candidate(scheduled_date="2024-01-21"))
    assert admin.calls == []
    assert entities(sink)[0]["error_name"] == "INSUFFICIENT_TIME_BEFORE_SCHEDULED_DATE"


def test_date_check_can_be_bypassed():
    scheduler, _ = make_scheduler(enable_scheduled_date_validation=False)
    outcome = scheduler.schedule_candidate(make_candidate(scheduled_date="not-a-date"))
    assert outcome.status == "scheduled"


def test_surface_not_allowed_outside_development_is_skipped():
    admin = FakeAdminApi()
    scheduler, sink = make_scheduler(admin, environment="production")
    outcome = scheduler.schedule_candidate(make_candidate(scheduled_surface_guid="NEW_TAB_DE_DE", language="DE"))
    assert outcome.status == "skipped"
    assert admin.calls == []
    assert sink.events == []


def test_missing_image_emits_event():
    scheduler, sink = make_scheduler(image=lambda url: None)
    with pytest.raises(ReconciliationError) as err:
        scheduler.schedule_candidate(make_candidate())
    assert err.value.error_name.value == "MISSING_IMAGE"
    assert entities(sink)[0]["error_name"] == "MISSING_IMAGE"


def test_metadata_lookup_failure_is_not_fatal():
    def broken_lookup(url):
        raise ConnectionError("parser down")

    scheduler = CandidateScheduler(
        make_settings(), FakeAdminApi(), validate_image=lambda u: u, lookup_metadata=broken_lookup, clock=lambda: NOW
    )
    outcome = scheduler.schedule_candidate(make_candidate())
    assert outcome.status == "scheduled"
    assert outcome.approved_item.publisher is None


def test_structural_failure_touches_nothing():
    admin = FakeAdminApi()
    scheduler, sink = make_scheduler(admin)
    with pytest.raises(StructuralError):
        scheduler.schedule_candidate(make_candidate(source="MANUAL"))
    assert admin.calls == []
    assert sink.events == []


def test_dry_run_without_admin_api():
    lookup_calls = []

    def lookup(url):
        lookup_calls.append(url)
        return UrlMetadata(url=url, publisher="POLITICO")

    scheduler = CandidateScheduler(
        make_settings(dry_run=True), None, validate_image=lambda u: u, lookup_metadata=lookup, clock=lambda: NOW
    )
    outcome = scheduler.schedule_candidate(make_candidate())
    assert outcome.status == "dry_run"
    assert outcome.approved_item.publisher == "POLITICO"
    assert len(lookup_calls) == 1


def test_admin_api_required_for_real_runs():
    with pytest.raises(ValueError):
        CandidateScheduler(make_settings(), None, validate_image=lambda u: u, lookup_metadata=lambda u: None)


def test_batch_with_misspelled_surface():
    scheduler, _ = make_scheduler()
    result = scheduler.process_candidates(
        [make_candidate("first"), make_candidate("second", scheduled_surface_guid="NEW_TAB_EN_USA")]
    )
    assert [o.candidate_id for o in result.succeeded] == ["first"]
    assert result.failed[0].record_id == "second"
    assert "NEW_TAB_EN_US" in str(result.failed[0].error)


def test_process_message_rejects_bad_bodies():
    scheduler, _ = make_scheduler()
    with pytest.raises(ValueError):
        scheduler.process_message("{not json")
    with pytest.raises(ValueError):
        scheduler.process_message(json.dumps({"items": []}))


def test_queue_event_reports_only_broken_messages():
    scheduler, _ = make_scheduler()
    event = {
        "Records": [
            {"messageId": "m1", "body": json.dumps({"candidates": [make_candidate()]})},
            {"messageId": "m2", "body": "{not json"},
            {"messageId": "m3", "body": json.dumps({"candidates": [make_candidate(source="MANUAL")]})},
        ]
    }
    assert handle_queue_event(event, scheduler) == {"batchItemFailures": [{"itemIdentifier": "m2"}]}


def test_queue_event_can_fail_messages_with_candidate_errors():
    scheduler, _ = make_scheduler(fail_message_on_candidate_error=True)
    event = {"Records": [{"messageId": "m3", "body": json.dumps({"candidates": [make_candidate(source="MANUAL")]})}]}
    assert handle_queue_event(event, scheduler) == {"batchItemFailures": [{"itemIdentifier": "m3"}]}


def test_queue_event_does_nothing_when_scheduling_disabled():
    admin = FakeAdminApi()
    scheduler, _ = make_scheduler(admin, allowed_to_schedule=False)
    event = {"Records": [{"messageId": "m1", "body": json.dumps({"candidates": [make_candidate()]})}]}
    assert handle_queue_event(event, scheduler) == {"batchItemFailures": []}
    assert admin.calls == []
