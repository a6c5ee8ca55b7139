from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from config import Settings
from errors import AdminApiError
from models import ApprovedItem, ScheduledItemInput, UrlMetadata


logger = logging.getLogger(__name__)

GET_APPROVED_ITEM_BY_URL = """
query getApprovedCorpusItemByUrl($url: String!) {
  getApprovedCorpusItemByUrl(url: $url) {
    url
    externalId
  }
}"""

GET_URL_METADATA = """
query getUrlMetadata($url: String!) {
  getUrlMetadata(url: $url) {
    url
    title
    publisher
    datePublished
    language
    isSyndicated
    isCollection
    imageUrl
    excerpt
    authors
  }
}"""

CREATE_APPROVED_ITEM = """
mutation CreateApprovedCorpusItem($data: CreateApprovedCorpusItemInput!) {
  createApprovedCorpusItem(data: $data) {
    externalId
    url
    title
    scheduledSurfaceHistory {
      externalId
    }
  }
}"""

CREATE_SCHEDULED_ITEM = """
mutation CreateScheduledCorpusItem($data: CreateScheduledCorpusItemInput!) {
  createScheduledCorpusItem(data: $data) {
    externalId
    approvedItem {
      externalId
      url
      title
    }
  }
}"""


def graphql_headers(settings: Settings) -> Dict[str, str]:
    token = settings.admin_api_token
    if token and not token.lower().startswith("bearer "):
        token = f"Bearer {token}"
    return {
        "apollographql-client-name": settings.app_name,
        "apollographql-client-version": settings.app_version,
        "Content-Type": "application/json",
        "Authorization": token,
    }


class AdminApiClient:
    """Thin client for the curation admin GraphQL API."""

    def __init__(self, session: requests.Session, settings: Settings):
        self.session = session
        self.settings = settings

    def execute(self, operation: str, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        r = self.session.post(
            self.settings.admin_api_uri,
            headers=graphql_headers(self.settings),
            json={"query": query, "variables": variables},
            timeout=self.settings.request_timeout,
        )
        try:
            result = r.json()
        except ValueError:
            r.raise_for_status()
            raise AdminApiError(f"{operation} returned a non-JSON response (status {r.status_code})")

        errors = result.get("errors") or []
        if not result.get("data") and errors:
            first = errors[0] or {}
            code = str((first.get("extensions") or {}).get("code") or "")
            logger.warning("admin_api_error operation=%s code=%s message=%s", operation, code, first.get("message"))
            raise AdminApiError(f"{operation} failed: {first.get('message', '')}", code=code, errors=errors)
        if r.status_code >= 400:
            r.raise_for_status()
        data = result.get("data") or {}
        logger.debug("admin_api_ok operation=%s", operation)
        return data

    def get_approved_corpus_item_by_url(self, url: str) -> Optional[Dict[str, Any]]:
        data = self.execute("getApprovedCorpusItemByUrl", GET_APPROVED_ITEM_BY_URL, {"url": url})
        return data.get("getApprovedCorpusItemByUrl")

    def get_url_metadata(self, url: str) -> UrlMetadata:
        data = self.execute("getUrlMetadata", GET_URL_METADATA, {"url": url})
        return UrlMetadata.from_api(data.get("getUrlMetadata") or {"url": url})

    def create_approved_corpus_item(self, item: ApprovedItem) -> Dict[str, Any]:
        data = self.execute("createApprovedCorpusItem", CREATE_APPROVED_ITEM, {"data": item.to_api_input()})
        created = data.get("createApprovedCorpusItem")
        if not created:
            raise AdminApiError("createApprovedCorpusItem returned no item")
        return created

    def create_scheduled_corpus_item(self, scheduled: ScheduledItemInput) -> Dict[str, Any]:
        data = self.execute("createScheduledCorpusItem", CREATE_SCHEDULED_ITEM, {"data": scheduled.to_api_input()})
        created = data.get("createScheduledCorpusItem")
        if not created:
            raise AdminApiError("createScheduledCorpusItem returned no item")
        return created
