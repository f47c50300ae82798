from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from typing import Callable

from models import BatchResult, ExtractionResult
from config import settings
from extractor.browser_session import BrowserSession
from extractor.dispatch import extract_from_url
from extractor.errors import ExtractionError
from extractor.iddas import is_iddas_link

logger = logging.getLogger(__name__)


def failed_result(url: str, error: Exception) -> ExtractionResult:
    message = error.message if isinstance(error, ExtractionError) else str(error)
    return ExtractionResult(source_url=url, errors=[message or error.__class__.__name__])


def summarize(results: list[ExtractionResult]) -> BatchResult:
    return BatchResult(
        total_links=len(results),
        extracted=sum(1 for r in results if not r.errors),
        failed_count=sum(1 for r in results if r.errors),
        flight_count=sum(len(r.flights) for r in results),
        hotel_count=sum(len(r.hotels) for r in results),
        passenger_count=sum(len(r.passengers) for r in results),
        results=results,
    )


async def run_batch(
    links: list[dict],
    max_concurrent: int | None = None,
    headless: bool = False,
    on_progress: Callable | None = None,
) -> BatchResult:
    """Extract a batch of reservation links with controlled concurrency.

    A failing link never stops the batch; its error lands in the result.
    """
    max_concurrent = max_concurrent or settings.max_concurrent_extractions
    semaphore = asyncio.Semaphore(max_concurrent)
    needs_browser = headless and any(is_iddas_link(link["url"]) for link in links)

    async with AsyncExitStack() as stack:
        session = None
        if needs_browser:
            session = await stack.enter_async_context(BrowserSession())

        async def extract_one(index: int, link: dict) -> ExtractionResult:
            async with semaphore:
                url = link["url"]
                if on_progress:
                    on_progress(index, url, "extracting")
                try:
                    result = await extract_from_url(url, headless_session=session)
                except Exception as e:
                    logger.warning("Extraction failed for %s: %s", url, e)
                    result = failed_result(url, e)
                if on_progress:
                    on_progress(index, url, "done")
                return result

        tasks = [extract_one(i, link) for i, link in enumerate(links)]
        results = await asyncio.gather(*tasks)

    return summarize(list(results))
