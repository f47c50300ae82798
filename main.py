import asyncio
import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import Body, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse

from models import (
    BatchResult,
    Booking,
    BookingCreate,
    BookingUpdate,
    ExtractionResult,
    ExtractRequest,
    ImportRequest,
)
from config import settings
from extractor.browser_session import BrowserSession
from extractor.dispatch import extract_from_url
from extractor.errors import ExtractionError
from extractor.generic import extract_booking_from_link
from extractor.iddas import extract_iddas_booking, extract_iddas_booking_headless
from extractor.llm_extractor import extract_flights_from_image, extract_with_llm
from pipeline.booking_merge import apply_extraction, item_totals, new_booking
from pipeline.csv_processor import parse_links_csv, results_to_csv
from pipeline.normalize import normalize_payload
from pipeline.savings import monthly_report, report_filename, report_to_csv, savings
import db
from job_runner import launch_job

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("booking_extractor")


@asynccontextmanager
async def lifespan(app):
    await db.init_db()
    await db._recover_orphaned_jobs()
    yield


app = FastAPI(title="Booking Extractor", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def timing_and_errors(request: Request, call_next):
    start = time.time()
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        raise
    finally:
        dur_ms = int((time.time() - start) * 1000)
        logger.info("%s %s -> %dms", request.method, request.url.path, dur_ms)


@app.exception_handler(ExtractionError)
async def extraction_error_handler(request: Request, exc: ExtractionError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "error": exc.message})


def _ok(result: ExtractionResult) -> dict:
    return {"success": True, "data": result.model_dump(mode="json")}


async def _guarded(extraction) -> ExtractionResult:
    """Await an extraction; anything unexpected still gets the error envelope."""
    try:
        result = await extraction
    except ExtractionError:
        raise
    except Exception as e:
        logger.exception("Extraction failed")
        raise ExtractionError(str(e) or "Erro", status_code=500) from e
    return result


async def _extract_headless(url: str) -> ExtractionResult:
    async with BrowserSession() as browser:
        return await extract_from_url(url, headless_session=browser)


async def _extract_iddas_headless(url: str) -> ExtractionResult:
    async with BrowserSession() as browser:
        return await extract_iddas_booking_headless(url, browser)


async def _normalize(payload: Any) -> ExtractionResult:
    return normalize_payload(payload)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

@app.post("/extract")
async def extract(req: ExtractRequest):
    """Extract a reservation link with the best extractor for it."""
    if req.headless:
        return _ok(await _guarded(_extract_headless(req.url)))
    return _ok(await _guarded(extract_from_url(req.url)))


@app.post("/extract/iddas")
async def extract_iddas(req: ExtractRequest):
    if not req.url.strip():
        raise ExtractionError("Envie { url: string }")
    return _ok(await _guarded(asyncio.to_thread(extract_iddas_booking, req.url.strip())))


@app.post("/extract/iddas-headless")
async def extract_iddas_headless(req: ExtractRequest):
    if not req.url.strip():
        raise ExtractionError("Envie { url: string }")
    return _ok(await _guarded(_extract_iddas_headless(req.url.strip())))


@app.post("/extract/link")
async def extract_link(req: ExtractRequest):
    return _ok(await _guarded(asyncio.to_thread(extract_booking_from_link, req.url)))


@app.post("/extract/llm")
async def extract_llm(req: ExtractRequest):
    if not req.url.strip():
        raise ExtractionError("URL é obrigatória")
    return _ok(await _guarded(asyncio.to_thread(extract_with_llm, req.url.strip())))


@app.post("/extract/image")
async def extract_image(image: UploadFile = File(...)):
    """Flights from an uploaded screenshot of a booking confirmation."""
    data = await image.read()
    return _ok(await _guarded(asyncio.to_thread(
        extract_flights_from_image, data, image.content_type or "image/png"
    )))


@app.post("/normalize")
async def normalize(payload: Any = Body(...)):
    """Normalize any extractor payload (envelope or bare object)."""
    return _ok(await _guarded(_normalize(payload)))


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------

def _booking_view(booking: Booking) -> dict:
    amount, pct = savings(booking.total_paid, booking.total_original)
    return {
        "booking": booking.model_dump(mode="json"),
        "item_totals": item_totals(booking),
        "savings": amount,
        "savings_percentage": pct,
    }


async def _get_booking_or_404(booking_id: str) -> Booking:
    booking = await db.get_booking(booking_id)
    if not booking:
        raise HTTPException(404, "Booking not found")
    return booking


@app.post("/bookings", status_code=201)
async def create_booking(req: BookingCreate):
    try:
        booking = new_booking(
            req.company_id, req.url, req.title, req.extraction,
            req.total_paid, req.total_original,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    await db.create_booking(booking)
    return _booking_view(booking)


@app.get("/bookings")
async def list_bookings(
    company_id: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
):
    bookings = await db.list_bookings(company_id, year, month)
    return [b.model_dump(mode="json") for b in bookings]


@app.get("/bookings/{booking_id}")
async def get_booking(booking_id: str):
    return _booking_view(await _get_booking_or_404(booking_id))


@app.patch("/bookings/{booking_id}")
async def update_booking(booking_id: str, req: BookingUpdate):
    """Rename a booking and set its totals. Admin only."""
    booking = await _get_booking_or_404(booking_id)
    if not req.is_admin:
        raise HTTPException(403, "Somente o administrador pode editar esta reserva.")

    update: dict = {"updated_at": datetime.utcnow()}
    if "name" in req.model_fields_set:
        update["name"] = (req.name or "").strip() or "Reserva"
    for field in ("total_paid", "total_original"):
        if field in req.model_fields_set:
            value = getattr(req, field)
            if value is not None and value < 0:
                raise HTTPException(400, f"{field} must not be negative")
            update[field] = value

    booking = booking.model_copy(update=update)
    await db.update_booking(booking)
    return _booking_view(booking)


@app.post("/bookings/{booking_id}/import")
async def import_from_link(booking_id: str, req: Optional[ImportRequest] = None):
    """Re-extract the booking's saved link and merge the result into it."""
    req = req or ImportRequest()
    booking = await _get_booking_or_404(booking_id)
    if not booking.source_url:
        raise HTTPException(400, "Esta reserva não tem link salvo.")

    if req.headless:
        extraction = await _guarded(_extract_headless(booking.source_url))
    else:
        extraction = await _guarded(extract_from_url(booking.source_url))

    booking = apply_extraction(booking, extraction, req.is_admin)
    await db.update_booking(booking)
    return {"success": True, "data": _booking_view(booking)}


# ---------------------------------------------------------------------------
# Savings reports
# ---------------------------------------------------------------------------

@app.get("/reports/savings")
async def savings_report(year: int, month: int, company_id: Optional[str] = None):
    if not 1 <= month <= 12:
        raise HTTPException(400, "Mês inválido")
    bookings = await db.list_bookings(company_id, year, month)
    return monthly_report(bookings, year, month).model_dump(mode="json")


@app.get("/reports/savings.csv")
async def savings_report_csv(year: int, month: int, company_id: Optional[str] = None):
    if not 1 <= month <= 12:
        raise HTTPException(400, "Mês inválido")
    bookings = await db.list_bookings(company_id, year, month)
    report = monthly_report(bookings, year, month)
    return Response(
        content=report_to_csv(report),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{report_filename(year, month)}"'
        },
    )


# ---------------------------------------------------------------------------
# Batch jobs
# ---------------------------------------------------------------------------

@app.post("/scan")
async def start_scan(csv_file: UploadFile = File(...), headless: bool = Form(False)):
    """Upload a CSV of reservation links and extract them in the background."""
    content = await csv_file.read()
    links = parse_links_csv(content)

    if not links:
        raise HTTPException(400, "No valid links found in CSV")
    if len(links) > settings.max_links_per_batch:
        raise HTTPException(
            400,
            f"Maximum {settings.max_links_per_batch} links per batch",
        )

    job_id = uuid.uuid4().hex[:12]
    await db.create_job(job_id, links)
    launch_job(job_id, links, headless=headless)
    return {"job_id": job_id, "link_count": len(links)}


@app.get("/stream/{job_id}")
async def stream_progress(job_id: str):
    """SSE endpoint that polls DB for extraction progress."""

    async def event_generator():
        job = await db.get_job(job_id)
        if not job:
            yield _sse({"type": "error", "message": "Job not found"})
            return

        yield _sse({"type": "started", "total": job["total_links"]})

        sent_results: set[int] = set()
        sent_extracting: set[int] = set()

        while True:
            job = await db.get_job(job_id)
            links = await db.get_job_links(job_id)

            for link in links:
                if link["status"] == "extracting" and link["link_index"] not in sent_extracting:
                    sent_extracting.add(link["link_index"])
                    yield _sse({"type": "extracting", "index": link["link_index"], "url": link["url"]})

            for link in links:
                if link["link_index"] in sent_results:
                    continue
                if link["status"] in ("done", "error") and link["result_json"]:
                    sent_results.add(link["link_index"])
                    yield _sse(_result_event(link))

            if job and job["status"] in ("done", "failed"):
                yield _sse({
                    "type": "done",
                    "summary": {
                        "total": job["total_links"],
                        "processed": job["processed_count"],
                        "extracted": job["extracted_count"],
                        "failed": job["failed_count"],
                    },
                })
                return

            await asyncio.sleep(2)

    return StreamingResponse(
        event_generator(), media_type="text/event-stream"
    )


def _result_event(link: dict) -> dict:
    event = {"type": "result", "index": link["link_index"], "url": link["url"]}
    try:
        result = ExtractionResult.model_validate_json(link["result_json"])
    except ValueError:
        event.update({"title": "", "passengers": 0, "flights": 0, "hotels": 0,
                      "errors": ["Failed to parse result"]})
        return event
    event.update({
        "extractor": result.extractor,
        "title": result.suggested_title,
        "main_passenger": result.main_passenger_name,
        "total": result.total,
        "passengers": len(result.passengers),
        "flights": len(result.flights),
        "hotels": len(result.hotels),
        "duration": result.duration_seconds,
        "errors": result.errors,
    })
    return event


@app.get("/download/{job_id}")
async def download_csv(job_id: str):
    """Download results as CSV."""
    job = await db.get_job(job_id)
    if not job:
        raise HTTPException(404, "Job not found")

    result_jsons = await db.get_job_results_json(job_id)
    results = [ExtractionResult.model_validate_json(rj) for rj in result_jsons]

    batch = BatchResult(
        total_links=job["total_links"],
        extracted=job["extracted_count"],
        failed_count=job["failed_count"],
        flight_count=sum(len(r.flights) for r in results),
        hotel_count=sum(len(r.hotels) for r in results),
        passenger_count=sum(len(r.passengers) for r in results),
        results=results,
    )

    return Response(
        content=results_to_csv(batch),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename=extraction_{job_id}.csv"
        },
    )


@app.get("/api/jobs")
async def api_list_jobs():
    """List all jobs."""
    return await db.list_jobs()


@app.get("/api/jobs/{job_id}")
async def api_get_job(job_id: str):
    """Get job details with per-link results."""
    job = await db.get_job(job_id)
    if not job:
        raise HTTPException(404, "Job not found")
    links = await db.get_job_links(job_id)
    return {"job": job, "links": links}


def _sse(data: dict) -> str:
    return f"data: {json.dumps(data, ensure_ascii=False)}\n\n"
