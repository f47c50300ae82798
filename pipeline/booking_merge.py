"""Merge extraction results into the booking document.

A booking is one JSON document per trip: item lists (flights, hotels, car
rentals, transfers, passengers) plus the two totals used for savings.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from models import Booking, ExtractionResult

LIST_FIELDS = ("flights", "hotels", "car_rentals", "transfers", "passengers")


def new_booking(
    company_id: str,
    url: str,
    title: str,
    extraction: ExtractionResult | None,
    total_paid: float | None,
    total_original: float | None,
) -> Booking:
    """Build a new booking from an extraction and the admin-entered totals.

    Raises ``ValueError`` when a total is missing or not positive.
    """
    if not company_id:
        raise ValueError("Selecione a empresa")
    if total_paid is None or total_paid <= 0:
        raise ValueError("Valor pago obrigatório: informe o valor que foi pago pela reserva.")
    if total_original is None or total_original <= 0:
        raise ValueError("Valor na cia obrigatório: informe o valor que estaria na companhia aérea.")

    extraction = extraction or ExtractionResult()
    return Booking(
        id=uuid.uuid4().hex[:12],
        company_id=company_id,
        name=(title or extraction.suggested_title or "Nova Reserva").strip(),
        source_url=url or extraction.source_url,
        flights=extraction.flights,
        hotels=extraction.hotels,
        car_rentals=extraction.car_rentals,
        transfers=extraction.transfers,
        passengers=extraction.passengers,
        total_paid=total_paid,
        total_original=total_original,
    )


def apply_extraction(booking: Booking, extraction: ExtractionResult, is_admin: bool) -> Booking:
    """Return ``booking`` updated with a fresh extraction of its link.

    Lists the extraction did not find are kept. Only admins may overwrite
    the totals, and only when the page showed one.
    """
    update: dict = {
        "name": extraction.suggested_title or booking.name,
        "updated_at": datetime.utcnow(),
    }
    if is_admin and extraction.total is not None:
        update["total_paid"] = extraction.total
        update["total_original"] = extraction.total

    for field in LIST_FIELDS:
        items = getattr(extraction, field)
        if items:
            update[field] = items

    return booking.model_copy(update=update)


def item_totals(booking: Booking) -> dict[str, float]:
    """Sums of the per-item prices; flights use the airline price as original."""
    paid = 0.0
    original = 0.0
    for f in booking.flights:
        paid += f.price_paid
        original += f.price_airline
    for item in (*booking.hotels, *booking.car_rentals, *booking.transfers):
        paid += item.price_paid
        original += item.price_original
    return {"paid": round(paid, 2), "original": round(original, 2)}
