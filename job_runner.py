"""Background job execution: extracts batch links and writes results to DB."""
from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack

from config import settings
from extractor.browser_session import BrowserSession
from extractor.dispatch import extract_from_url
from extractor.iddas import is_iddas_link
from pipeline.batch_runner import failed_result
import db

logger = logging.getLogger(__name__)

# Track running tasks so they aren't garbage-collected
_tasks: dict[str, asyncio.Task] = {}


def launch_job(job_id: str, links: list[dict], headless: bool = False) -> None:
    """Fire-and-forget a background extraction job."""
    if job_id in _tasks:
        logger.warning("Job %s already running, ignoring duplicate launch", job_id)
        return
    task = asyncio.create_task(_run_job(job_id, links, headless))
    _tasks[job_id] = task
    task.add_done_callback(lambda _: _tasks.pop(job_id, None))


async def _run_job(job_id: str, links: list[dict], headless: bool) -> None:
    """Run every link of a job, writing each result to DB as it completes."""
    try:
        await db.set_job_status(job_id, "running")
        semaphore = asyncio.Semaphore(settings.max_concurrent_extractions)

        async with AsyncExitStack() as stack:
            session = None
            if headless and any(is_iddas_link(link["url"]) for link in links):
                session = await stack.enter_async_context(BrowserSession())

            async def extract_one(index: int, link: dict) -> None:
                async with semaphore:
                    url = link["url"]
                    await db.update_link_status(job_id, index, "extracting")
                    try:
                        result = await extract_from_url(url, headless_session=session)
                        failed = False
                    except Exception as e:
                        logger.warning("Extraction failed for %s: %s", url, e)
                        result = failed_result(url, e)
                        failed = True
                    await db.save_link_result(job_id, index, result.model_dump_json(), failed)

            await asyncio.gather(
                *(extract_one(i, link) for i, link in enumerate(links)),
                return_exceptions=True,
            )

        await db.set_job_status(job_id, "done")
        logger.info("Job %s completed", job_id)

    except Exception as e:
        logger.error("Job %s failed: %s", job_id, e)
        await db.set_job_status(job_id, "failed", str(e))
