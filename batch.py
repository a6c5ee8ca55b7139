from __future__ import annotations

import logging
from typing import Any, Callable, Iterable

from models import BatchFailure, BatchResult


logger = logging.getLogger(__name__)


def process_batch(records: Iterable[Any], handler: Callable[[Any], Any]) -> BatchResult:
    """Run handler over each record; a failing record is recorded and the rest continue.

    Never raises for per-record problems. ``KeyboardInterrupt`` and friends are
    not ``Exception`` subclasses and still propagate.
    """
    result = BatchResult()
    for record in records:
        try:
            result.succeeded.append(handler(record))
        except Exception as exc:
            failure = BatchFailure(record=record, error=exc)
            details = failure.to_dict()
            logger.warning(
                "candidate_failed id=%s type=%s error_name=%s path=%s reason=%s",
                failure.record_id,
                type(exc).__name__,
                details.get("error_name"),
                details.get("path"),
                exc,
            )
            result.failed.append(failure)
    logger.info("batch_done succeeded=%d failed=%d", len(result.succeeded), len(result.failed))
    return result
