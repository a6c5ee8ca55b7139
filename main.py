from __future__ import annotations

import argparse
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter

from admin_api import AdminApiClient
from config import Settings
from events import CollectingEventSink, HttpEventSink
from image_cache import image_validator
from log_config import configure_logging
from models import BatchResult
from parser_meta import html_metadata_lookup
from scheduler import CandidateScheduler, handle_queue_event


logger = logging.getLogger("corpus_scheduler")


def create_session(settings: Settings) -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": settings.user_agent})
    session.mount("http://", HTTPAdapter(pool_connections=20, pool_maxsize=20))
    session.mount("https://", HTTPAdapter(pool_connections=20, pool_maxsize=20))
    return session


def build_scheduler(settings: Settings, session: requests.Session, metadata_source: str = "admin") -> CandidateScheduler:
    admin_api: Optional[AdminApiClient] = None
    if not settings.dry_run or settings.admin_api_token:
        admin_api = AdminApiClient(session, settings)

    lookup = None
    if metadata_source == "html" or admin_api is None:
        lookup = html_metadata_lookup(session, settings)

    if settings.events_endpoint and not settings.dry_run:
        sink = HttpEventSink(session, settings)
    else:
        sink = CollectingEventSink()

    return CandidateScheduler(
        settings,
        admin_api,
        validate_image=image_validator(session, settings),
        lookup_metadata=lookup,
        emit_event=sink,
    )


def summarize(result: BatchResult) -> Dict[str, Any]:
    return {
        "succeeded": [o.to_dict() for o in result.succeeded],
        "failed": [f.to_dict() for f in result.failed],
    }


def load_candidates(payload: Any) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("candidates"), list):
        return payload["candidates"]
    raise SystemExit("input must be a candidate list or an object with a candidates list")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate and schedule ML corpus candidates")
    parser.add_argument("path", type=Path, help="JSON file: {candidates: [...]}, a list, or a queue event with Records")
    parser.add_argument("--dry-run", action="store_true", help="Validate and reconcile without writing to the admin API")
    parser.add_argument("--no-date-check", action="store_true", help="Skip the scheduled date lead-time check")
    parser.add_argument(
        "--metadata-source",
        choices=("admin", "html"),
        default="admin",
        help="Where fallback metadata comes from: the admin API parser or the page HTML",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = Settings()
    if args.dry_run:
        settings = replace(settings, dry_run=True)
    if args.no_date_check:
        settings = replace(settings, enable_scheduled_date_validation=False)
    configure_logging(settings.log_level)

    try:
        payload = json.loads(args.path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise SystemExit(f"cannot read {args.path}: {exc}")

    scheduler = build_scheduler(settings, create_session(settings), args.metadata_source)

    if isinstance(payload, dict) and "Records" in payload:
        response = handle_queue_event(payload, scheduler)
        print(json.dumps(response, indent=2))
        return 1 if response["batchItemFailures"] else 0

    result = scheduler.process_candidates(load_candidates(payload))
    print(json.dumps(summarize(result), indent=2, ensure_ascii=False))
    logger.info("run_done succeeded=%d failed=%d dry_run=%s", len(result.succeeded), len(result.failed), settings.dry_run)
    return 0 if result.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
