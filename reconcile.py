from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from errors import CandidateErrorName, ReconciliationError
from models import ApprovedItem, ApprovedItemAuthor, CorpusLanguage, ScheduledItemInput, UrlMetadata
from text_format import apply_ap_title_case, format_quotes_dashes_de, format_quotes_en
from validation import ScheduledCandidate, validate_date_published


logger = logging.getLogger(__name__)

ImageValidator = Callable[[str], Optional[str]]

ITEM_INPUT_PATH = "$input"


@dataclass(frozen=True)
class ResolvedFields:
    title: Optional[str] = None
    excerpt: Optional[str] = None
    language: Optional[CorpusLanguage] = None
    image_url: Optional[str] = None
    failed_field: str = ""
    failure_reason: str = ""
    error_name: Optional[CandidateErrorName] = None

    @property
    def ok(self) -> bool:
        return not self.failed_field


def map_authors(names: Iterable[str]) -> List[ApprovedItemAuthor]:
    cleaned = [n.strip() for n in names if n and n.strip()]
    return [ApprovedItemAuthor(name=name, sort_order=i) for i, name in enumerate(cleaned, start=1)]


def normalize_language(value: Optional[str]) -> Optional[CorpusLanguage]:
    """Parser languages arrive lower case; the corpus enum is upper case."""
    if not value:
        return None
    try:
        return CorpusLanguage(str(value).upper())
    except ValueError:
        return None


def format_title(title: str, language: CorpusLanguage) -> str:
    if language == CorpusLanguage.EN:
        return format_quotes_en(apply_ap_title_case(title)) or title
    if language == CorpusLanguage.DE:
        return format_quotes_dashes_de(title) or title
    return title


def format_excerpt(excerpt: str, language: CorpusLanguage) -> str:
    if language == CorpusLanguage.EN:
        return format_quotes_en(excerpt) or excerpt
    if language == CorpusLanguage.DE:
        return format_quotes_dashes_de(excerpt) or excerpt
    return excerpt


def resolve_fields(candidate: ScheduledCandidate, metadata: UrlMetadata, validate_image: ImageValidator) -> ResolvedFields:
    item = candidate.scheduled_corpus_item

    title = item.title or metadata.title
    if not title:
        return ResolvedFields(
            failed_field="title",
            failure_reason="no title from candidate or metadata",
            error_name=CandidateErrorName.MISSING_TITLE,
        )

    excerpt = item.excerpt or metadata.excerpt
    if not excerpt:
        return ResolvedFields(
            failed_field="excerpt",
            failure_reason="no excerpt from candidate or metadata",
            error_name=CandidateErrorName.MISSING_EXCERPT,
        )

    language = item.language or normalize_language(metadata.language)
    if language is None:
        return ResolvedFields(
            failed_field="language",
            failure_reason=f"no supported language (metadata language={metadata.language!r})",
        )

    image_url = item.image_url or metadata.image_url
    if not image_url:
        return ResolvedFields(
            failed_field="imageUrl",
            failure_reason="no image url from candidate or metadata",
            error_name=CandidateErrorName.MISSING_IMAGE,
        )
    validated = validate_image(image_url)
    if not validated:
        return ResolvedFields(
            failed_field="imageUrl",
            failure_reason=f"image failed validation: {image_url}",
            error_name=CandidateErrorName.MISSING_IMAGE,
        )

    return ResolvedFields(
        title=format_title(title, language),
        excerpt=format_excerpt(excerpt, language),
        language=language,
        image_url=validated,
    )


def resolve_authors(candidate: ScheduledCandidate, metadata: UrlMetadata) -> List[ApprovedItemAuthor]:
    # ML only sends the first author, the parser usually has all of them
    if metadata.authors:
        return map_authors(metadata.authors.split(","))
    if candidate.scheduled_corpus_item.authors:
        return map_authors(candidate.scheduled_corpus_item.authors)
    return []


def reconcile(candidate: ScheduledCandidate, metadata: UrlMetadata, validate_image: ImageValidator) -> ApprovedItem:
    """Merge ML and parser fields into the item sent to createApprovedCorpusItem."""
    candidate_id = candidate.scheduled_corpus_candidate_id
    item = candidate.scheduled_corpus_item

    fields = resolve_fields(candidate, metadata, validate_image)
    if not fields.ok:
        raise ReconciliationError(
            f"failed to map {candidate_id} to CreateApprovedCorpusItemApiInput. Reason: {fields.failure_reason}",
            candidate_id=candidate_id,
            path=f"{ITEM_INPUT_PATH}.{fields.failed_field}",
            field=fields.failed_field,
            error_name=fields.error_name,
        )

    date_published = validate_date_published(metadata.date_published)
    if metadata.date_published and not date_published:
        logger.warning("date_published_invalid id=%s value=%r", candidate_id, metadata.date_published)

    return ApprovedItem(
        url=item.url,
        title=fields.title,
        excerpt=fields.excerpt,
        status=item.status,
        language=fields.language,
        publisher=metadata.publisher,
        authors=resolve_authors(candidate, metadata),
        image_url=fields.image_url,
        topic=item.topic,
        source=item.source,
        scheduled_source=item.source,
        scheduled_date=item.scheduled_date,
        scheduled_surface_guid=item.scheduled_surface_guid,
        is_collection=bool(metadata.is_collection),
        is_syndicated=bool(metadata.is_syndicated),
        date_published=date_published,
    )


def build_scheduled_item_input(candidate: ScheduledCandidate, approved_item_external_id: str) -> ScheduledItemInput:
    if not approved_item_external_id:
        raise ReconciliationError(
            f"failed to create CreateScheduledItemInput for {candidate.scheduled_corpus_candidate_id}. "
            "Reason: missing approved item external id",
            candidate_id=candidate.scheduled_corpus_candidate_id,
            path=f"{ITEM_INPUT_PATH}.approvedItemExternalId",
            field="approvedItemExternalId",
        )
    item = candidate.scheduled_corpus_item
    return ScheduledItemInput(
        approved_item_external_id=approved_item_external_id,
        scheduled_surface_guid=item.scheduled_surface_guid,
        scheduled_date=item.scheduled_date,
        source=item.source,
    )
