from __future__ import annotations

import logging
from typing import Callable, Optional
from urllib.parse import quote

import requests

from config import Settings


logger = logging.getLogger(__name__)


def image_cache_url(image_url: str, prefix: str) -> str:
    return f"{prefix}{quote(image_url, safe='')}"


def validate_image_url(session: requests.Session, image_url: str, settings: Settings) -> Optional[str]:
    """Return image_url if the image proxy serves it as an image, else None."""
    if not image_url:
        return None
    url = image_cache_url(image_url, settings.image_cache_url)
    try:
        with session.get(url, timeout=settings.request_timeout, stream=True) as r:
            if not 200 <= r.status_code < 300:
                logger.info("image_rejected url=%s status=%s", image_url, r.status_code)
                return None
            content_type = r.headers.get("Content-Type", "")
            if not content_type.startswith("image/"):
                logger.info("image_rejected url=%s content_type=%s", image_url, content_type)
                return None
    except requests.RequestException as exc:
        logger.warning("image_check_failed url=%s error=%r", image_url, exc)
        return None
    return image_url


def image_validator(session: requests.Session, settings: Settings) -> Callable[[str], Optional[str]]:
    def validate(image_url: str) -> Optional[str]:
        return validate_image_url(session, image_url, settings)

    return validate
