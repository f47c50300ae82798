from __future__ import annotations

import logging

import requests
from pydantic import BaseModel

from config import settings

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


class FetchedPage(BaseModel):
    ok: bool
    status: int
    url: str
    html: str = ""


def _headers(url: str, attempt: int) -> dict[str, str]:
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7",
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
    }
    if attempt >= 2:
        headers["Referer"] = url
    return headers


def fetch_html(url: str, attempt: int = 1) -> FetchedPage:
    """GET a page the way a browser would. Never raises on network errors."""
    timeout_ms = settings.fetch_timeout_ms if attempt == 1 else settings.fetch_retry_timeout_ms
    try:
        resp = requests.get(
            url,
            headers=_headers(url, attempt),
            timeout=timeout_ms / 1000,
            allow_redirects=True,
        )
    except requests.RequestException as e:
        logger.warning("Fetch of %s failed (attempt %d): %s", url, attempt, e)
        return FetchedPage(ok=False, status=0, url=url)

    if not resp.ok:
        logger.warning("Fetch of %s returned HTTP %d (attempt %d)", url, resp.status_code, attempt)
        return FetchedPage(ok=False, status=resp.status_code, url=resp.url or url)

    return FetchedPage(ok=True, status=resp.status_code, url=resp.url or url, html=resp.text)
