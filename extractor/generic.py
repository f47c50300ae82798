from __future__ import annotations

import time

from models import ExtractionResult, Flight, Hotel
from extractor.errors import ExtractionError
from extractor.flights import match_all_flights
from extractor.hotels import extract_hotel_block
from extractor.iddas import is_iddas_link
from extractor.page_fetcher import fetch_html
from extractor.passengers import extract_passengers_simple, reserved_by
from extractor.text import html_to_text


def suggested_title(flights: list[Flight], hotels: list[Hotel]) -> str:
    if flights:
        f = flights[0]
        route = " → ".join(p for p in (f.origin_code or f.origin, f.destination_code or f.destination) if p)
        return " ".join(p for p in (route, f"({f.departure_date})" if f.departure_date else "") if p)
    if hotels:
        h = hotels[0]
        dates = " a ".join(d for d in (h.check_in, h.check_out) if d)
        return " ".join(p for p in (h.hotel_name or "Hospedagem", f"({dates})" if dates else "") if p)
    return ""


def extract_booking_from_link(url: str) -> ExtractionResult:
    """Conservative extraction for any non-IDDAS reservation page."""
    url = (url or "").strip()
    if not url:
        raise ExtractionError("URL é obrigatória")
    if is_iddas_link(url):
        raise ExtractionError(
            "Link do IDDAS detectado. Use a função extract-iddas-booking para melhores resultados."
        )

    start = time.monotonic()
    fetched = fetch_html(url)
    if not fetched.ok:
        raise ExtractionError(f"Não foi possível acessar a página (HTTP {fetched.status}).")

    text = html_to_text(fetched.html)
    passengers = extract_passengers_simple(text)
    main_passenger = (passengers[0].full_name if passengers else "").strip() or reserved_by(text)

    flights = match_all_flights(text, main_passenger)
    hotels = extract_hotel_block(text, main_passenger)

    return ExtractionResult(
        source_url=url,
        extractor="generic",
        suggested_title=suggested_title(flights, hotels),
        main_passenger_name=main_passenger,
        passengers=passengers,
        flights=flights,
        hotels=hotels,
        duration_seconds=round(time.monotonic() - start, 2),
    )
