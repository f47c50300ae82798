"""SQLite persistence layer for booking documents and extraction jobs."""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone

import aiosqlite

from config import settings
from models import Booking

_db_path: str = ""

# columns holding JSON lists of items
_LIST_COLUMNS = ("flights", "hotels", "car_rentals", "transfers", "passengers")


async def init_db() -> None:
    """Create tables if they don't exist. Call once at startup."""
    global _db_path
    _db_path = settings.db_path
    os.makedirs(os.path.dirname(_db_path) or ".", exist_ok=True)

    async with aiosqlite.connect(_db_path) as conn:
        await conn.executescript("""
            CREATE TABLE IF NOT EXISTS bookings (
                id TEXT PRIMARY KEY,
                company_id TEXT NOT NULL,
                name TEXT NOT NULL,
                source_url TEXT NOT NULL DEFAULT '',
                flights TEXT NOT NULL DEFAULT '[]',
                hotels TEXT NOT NULL DEFAULT '[]',
                car_rentals TEXT NOT NULL DEFAULT '[]',
                transfers TEXT NOT NULL DEFAULT '[]',
                passengers TEXT NOT NULL DEFAULT '[]',
                total_paid REAL,
                total_original REAL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_bookings_company_id
                ON bookings(company_id);

            CREATE TABLE IF NOT EXISTS jobs (
                id TEXT PRIMARY KEY,
                status TEXT NOT NULL DEFAULT 'pending',
                total_links INTEGER NOT NULL,
                processed_count INTEGER NOT NULL DEFAULT 0,
                extracted_count INTEGER NOT NULL DEFAULT 0,
                failed_count INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                error_message TEXT
            );

            CREATE TABLE IF NOT EXISTS job_links (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                job_id TEXT NOT NULL REFERENCES jobs(id),
                link_index INTEGER NOT NULL,
                url TEXT NOT NULL,
                company_id TEXT NOT NULL DEFAULT '',
                title TEXT NOT NULL DEFAULT '',
                status TEXT NOT NULL DEFAULT 'pending',
                result_json TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_job_links_job_id
                ON job_links(job_id);
        """)


async def _recover_orphaned_jobs() -> None:
    """A job still 'running' at startup lost its task when the server stopped."""
    async with aiosqlite.connect(_db_path) as conn:
        await conn.execute(
            "UPDATE jobs SET status = 'failed', error_message = 'Interrupted by server restart', updated_at = ? WHERE status = 'running'",
            (_now(),),
        )
        await conn.commit()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------

def _booking_to_row(b: Booking) -> tuple:
    lists = [
        json.dumps([item.model_dump(mode="json") for item in getattr(b, col)], ensure_ascii=False)
        for col in _LIST_COLUMNS
    ]
    return (
        b.id, b.company_id, b.name, b.source_url, *lists,
        b.total_paid, b.total_original,
        b.created_at.isoformat(), b.updated_at.isoformat(),
    )


def _row_to_booking(row: aiosqlite.Row) -> Booking:
    data = dict(row)
    for col in _LIST_COLUMNS:
        data[col] = json.loads(data[col] or "[]")
    return Booking.model_validate(data)


async def create_booking(booking: Booking) -> None:
    async with aiosqlite.connect(_db_path) as conn:
        await conn.execute(
            """INSERT INTO bookings (
                id, company_id, name, source_url,
                flights, hotels, car_rentals, transfers, passengers,
                total_paid, total_original, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            _booking_to_row(booking),
        )
        await conn.commit()


async def get_booking(booking_id: str) -> Booking | None:
    async with aiosqlite.connect(_db_path) as conn:
        conn.row_factory = aiosqlite.Row
        cursor = await conn.execute("SELECT * FROM bookings WHERE id = ?", (booking_id,))
        row = await cursor.fetchone()
        return _row_to_booking(row) if row else None


async def list_bookings(
    company_id: str | None = None,
    year: int | None = None,
    month: int | None = None,
) -> list[Booking]:
    """Bookings, newest first, optionally for one company and/or one month."""
    query = "SELECT * FROM bookings WHERE 1 = 1"
    params: list = []
    if company_id:
        query += " AND company_id = ?"
        params.append(company_id)
    if year and month:
        # created_at is ISO 8601, so the month is a string prefix
        query += " AND substr(created_at, 1, 7) = ?"
        params.append(f"{year:04d}-{month:02d}")
    query += " ORDER BY created_at DESC"

    async with aiosqlite.connect(_db_path) as conn:
        conn.row_factory = aiosqlite.Row
        cursor = await conn.execute(query, params)
        return [_row_to_booking(row) for row in await cursor.fetchall()]


async def update_booking(booking: Booking) -> None:
    """Overwrite every column of an existing booking."""
    row = _booking_to_row(booking)
    async with aiosqlite.connect(_db_path) as conn:
        await conn.execute(
            """UPDATE bookings SET
                company_id = ?, name = ?, source_url = ?,
                flights = ?, hotels = ?, car_rentals = ?, transfers = ?, passengers = ?,
                total_paid = ?, total_original = ?, created_at = ?, updated_at = ?
            WHERE id = ?""",
            (*row[1:], booking.id),
        )
        await conn.commit()


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

async def create_job(job_id: str, links: list[dict]) -> None:
    """Insert a new job and its link rows."""
    now = _now()
    async with aiosqlite.connect(_db_path) as conn:
        await conn.execute(
            "INSERT INTO jobs (id, status, total_links, created_at, updated_at) VALUES (?, 'pending', ?, ?, ?)",
            (job_id, len(links), now, now),
        )
        for i, link in enumerate(links):
            await conn.execute(
                "INSERT INTO job_links (job_id, link_index, url, company_id, title, status, created_at, updated_at) VALUES (?, ?, ?, ?, ?, 'pending', ?, ?)",
                (job_id, i, link["url"], link.get("company_id", ""), link.get("title", ""), now, now),
            )
        await conn.commit()


async def get_job(job_id: str) -> dict | None:
    """Job row as a dict, or None."""
    async with aiosqlite.connect(_db_path) as conn:
        conn.row_factory = aiosqlite.Row
        cursor = await conn.execute("SELECT * FROM jobs WHERE id = ?", (job_id,))
        row = await cursor.fetchone()
        return dict(row) if row else None


async def get_job_links(job_id: str) -> list[dict]:
    """Fetch all link rows for a job, ordered by index."""
    async with aiosqlite.connect(_db_path) as conn:
        conn.row_factory = aiosqlite.Row
        cursor = await conn.execute(
            "SELECT * FROM job_links WHERE job_id = ? ORDER BY link_index",
            (job_id,),
        )
        return [dict(row) for row in await cursor.fetchall()]


async def update_link_status(job_id: str, link_index: int, status: str) -> None:
    """Set a link's status (e.g. 'extracting')."""
    async with aiosqlite.connect(_db_path) as conn:
        await conn.execute(
            "UPDATE job_links SET status = ?, updated_at = ? WHERE job_id = ? AND link_index = ?",
            (status, _now(), job_id, link_index),
        )
        await conn.commit()


async def save_link_result(job_id: str, link_index: int, result_json: str, failed: bool) -> None:
    """Store a link result and update job counters."""
    now = _now()
    async with aiosqlite.connect(_db_path) as conn:
        await conn.execute(
            "UPDATE job_links SET status = ?, result_json = ?, updated_at = ? WHERE job_id = ? AND link_index = ?",
            ("error" if failed else "done", result_json, now, job_id, link_index),
        )
        await conn.execute(
            """UPDATE jobs SET
                processed_count = processed_count + 1,
                extracted_count = extracted_count + ?,
                failed_count = failed_count + ?,
                updated_at = ?
            WHERE id = ?""",
            (int(not failed), int(failed), now, job_id),
        )
        await conn.commit()


JOB_STATUSES = ("pending", "running", "done", "failed")


async def set_job_status(job_id: str, status: str, error_message: str | None = None) -> None:
    """Move a job to ``status``; ``error_message`` is only written when given."""
    if status not in JOB_STATUSES:
        raise ValueError(f"Unknown job status: {status}")
    query = "UPDATE jobs SET status = ?, updated_at = ?"
    params: list = [status, _now()]
    if error_message is not None:
        query += ", error_message = ?"
        params.append(error_message)
    query += " WHERE id = ?"
    params.append(job_id)

    async with aiosqlite.connect(_db_path) as conn:
        await conn.execute(query, params)
        await conn.commit()


async def list_jobs(limit: int = 50) -> list[dict]:
    """Jobs, newest first."""
    async with aiosqlite.connect(_db_path) as conn:
        conn.row_factory = aiosqlite.Row
        cursor = await conn.execute(
            "SELECT * FROM jobs ORDER BY created_at DESC LIMIT ?",
            (limit,),
        )
        return [dict(row) for row in await cursor.fetchall()]


async def get_job_results_json(job_id: str) -> list[str]:
    """Stored ExtractionResult JSON of every finished link, in link order."""
    async with aiosqlite.connect(_db_path) as conn:
        cursor = await conn.execute(
            "SELECT result_json FROM job_links WHERE job_id = ? AND result_json IS NOT NULL ORDER BY link_index",
            (job_id,),
        )
        return [row[0] for row in await cursor.fetchall()]
