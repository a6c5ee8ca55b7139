from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

import requests
from bs4 import BeautifulSoup

from config import Settings
from models import UrlMetadata
from text_format import clean_text


logger = logging.getLogger(__name__)

AUTHOR_META_NAMES = {"author", "parsely-author", "byl", "sailthru.author"}
DESCRIPTION_META_NAMES = {"description", "twitter:description"}
PUBLISHED_META_KEYS = {"article:published_time", "datepublished", "pubdate", "parsely-pub-date"}
COLLECTION_TYPES = {"collectionpage", "itemlist"}


def _as_json(value: str):
    try:
        return json.loads(value)
    except ValueError:
        return None


def _meta_content(soup: BeautifulSoup, **attrs) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return clean_text(tag["content"])
    return ""


def _jsonld_items(soup: BeautifulSoup) -> Iterable[Dict[str, Any]]:
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = (script.string or script.get_text() or "").strip()
        data = _as_json(raw) if raw else None
        if data is None:
            continue
        if isinstance(data, dict) and isinstance(data.get("@graph"), list):
            data = data["@graph"]
        for item in data if isinstance(data, list) else [data]:
            if isinstance(item, dict):
                yield item


def _names(value: Any) -> List[str]:
    if isinstance(value, str):
        return [clean_text(value)]
    if isinstance(value, dict):
        return [clean_text(str(value.get("name", "")))]
    if isinstance(value, list):
        out: List[str] = []
        for v in value:
            out.extend(_names(v))
        return out
    return []


def _image(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, list) and value:
        return _image(value[0])
    if isinstance(value, dict) and value.get("url"):
        return str(value["url"])
    return ""


def _types(item: Dict[str, Any]) -> List[str]:
    at = item.get("@type")
    if isinstance(at, str):
        return [at.lower()]
    if isinstance(at, list):
        return [v.lower() for v in at if isinstance(v, str)]
    return []


def extract_url_metadata(url: str, html: str) -> UrlMetadata:
    """Metadata the parser would report for a page: og/meta tags first, then JSON-LD."""
    out = UrlMetadata(url=url)
    soup = BeautifulSoup(html, "lxml")

    out.title = _meta_content(soup, property="og:title") or None
    if not out.title and soup.title:
        out.title = clean_text(soup.title.get_text(" ")) or None
    out.excerpt = _meta_content(soup, property="og:description") or None
    out.image_url = _meta_content(soup, property="og:image") or None
    out.publisher = _meta_content(soup, property="og:site_name") or None

    html_tag = soup.find("html")
    lang = (html_tag.get("lang") or "") if html_tag else ""
    out.language = lang.split("-")[0].lower() or None

    authors: List[str] = []
    for m in soup.find_all("meta"):
        key = (m.get("name") or m.get("property") or "").lower()
        val = clean_text(m.get("content") or "")
        if not val:
            continue
        if key in AUTHOR_META_NAMES and val not in authors:
            authors.append(val)
        elif key in DESCRIPTION_META_NAMES and not out.excerpt:
            out.excerpt = val
        elif key in PUBLISHED_META_KEYS and not out.date_published:
            out.date_published = val

    for item in _jsonld_items(soup):
        types = _types(item)
        if COLLECTION_TYPES.intersection(types):
            out.is_collection = True
        if not out.title and item.get("headline"):
            out.title = clean_text(str(item["headline"]))
        if not out.excerpt and item.get("description"):
            out.excerpt = clean_text(str(item["description"]))
        if not out.image_url:
            out.image_url = _image(item.get("image")) or None
        if not out.publisher:
            out.publisher = next((n for n in _names(item.get("publisher")) if n), None)
        if not out.date_published and item.get("datePublished"):
            out.date_published = str(item["datePublished"])
        if not authors:
            authors = [n for n in _names(item.get("author")) if n]

    out.authors = ",".join(authors) or None
    return out


def fetch_url_metadata(url: str, session: requests.Session, settings: Settings) -> UrlMetadata:
    """GET the page and extract metadata. Network or parse failures yield empty metadata."""
    try:
        r = session.get(url, timeout=settings.request_timeout, allow_redirects=True)
        r.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("metadata_fetch_failed url=%s error=%r", url, exc)
        return UrlMetadata(url=url)
    content_type = r.headers.get("Content-Type", "")
    if "html" not in content_type:
        logger.warning("metadata_not_html url=%s content_type=%s", url, content_type)
        return UrlMetadata(url=url)
    return extract_url_metadata(url, r.text[:800_000])


def html_metadata_lookup(session: requests.Session, settings: Settings):
    def lookup(url: str) -> Optional[UrlMetadata]:
        return fetch_url_metadata(url, session, settings)

    return lookup
