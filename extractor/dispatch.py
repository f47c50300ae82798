from __future__ import annotations

import asyncio
import logging
import re
import time

from config import settings
from models import ExtractionResult
from extractor.browser_session import BrowserSession
from extractor.errors import ExtractionError
from extractor.generic import extract_booking_from_link
from extractor.iddas import (
    extract_iddas_booking,
    extract_iddas_booking_headless,
    is_iddas_link,
)
from extractor.llm_extractor import extract_with_llm

logger = logging.getLogger(__name__)

_HTTP_URL = re.compile(r"^https?://.+", re.IGNORECASE)


def llm_configured() -> bool:
    return bool(settings.firecrawl_api_key and settings.anthropic_api_key)


async def extract_from_url(
    url: str, *, headless_session: BrowserSession | None = None
) -> ExtractionResult:
    """Pick the extractor for ``url`` and run it.

    IDDAS pages use the dedicated parser (rendered by Playwright when a
    session is given); anything else goes to the LLM when Firecrawl and
    Anthropic keys are set, otherwise to the conservative regex extractor.
    """
    url = (url or "").strip()
    if not url:
        raise ExtractionError("URL é obrigatória")
    if not _HTTP_URL.match(url):
        raise ExtractionError("URL inválida")

    start = time.monotonic()
    if is_iddas_link(url):
        if headless_session is not None:
            result = await extract_iddas_booking_headless(url, headless_session)
        else:
            result = await asyncio.to_thread(extract_iddas_booking, url)
    elif llm_configured():
        result = await asyncio.to_thread(extract_with_llm, url)
    else:
        result = await asyncio.to_thread(extract_booking_from_link, url)

    result.duration_seconds = round(time.monotonic() - start, 2)
    logger.info(
        "Extracted %s via %s: %d passengers, %d flights, %d hotels, %d cars (%.1fs)",
        url, result.extractor, len(result.passengers), len(result.flights),
        len(result.hotels), len(result.car_rentals), result.duration_seconds,
    )
    return result
