"""IDDAS reservation pages (``agencia.iddas.com.br/reserva/...``).

The page is fetched over plain HTTP (or rendered by Playwright), flattened
to text twice, once from the parsed tree and once from the raw markup, and
the better passenger extraction of the two is kept. The passenger banner
in the DOM is then merged in, since it carries names the text loses.
"""
from __future__ import annotations

import logging
import re
import time

from bs4 import BeautifulSoup

from config import settings
from models import ExtractionResult, Passenger
from extractor.browser_session import BrowserSession, render_page_html
from extractor.cars import match_all_cars
from extractor.errors import ExtractionError
from extractor.flights import match_all_flights
from extractor.hotels import (
    backfill_hotel_dates,
    dedupe_hotels,
    match_all_hotels,
    match_all_hotels_from_dom,
)
from extractor.page_fetcher import fetch_html
from extractor.passengers import (
    choose_passengers,
    expected_passenger_count,
    extract_passengers,
    extract_passengers_from_dom,
    merge_passengers,
    reserved_by,
)
from extractor.text import (
    dom_text_with_newlines,
    html_to_text,
    normalize_text,
    parse_html,
    parse_money_brl,
)

logger = logging.getLogger(__name__)

IDDAS_LINK = re.compile(r"agencia\.iddas\.com\.br/reserva/", re.IGNORECASE)


def is_iddas_link(url: str) -> bool:
    return bool(IDDAS_LINK.search(url or ""))


class ParsedPage:
    """One IDDAS page after parsing: text, tree and chosen passengers."""

    def __init__(
        self,
        text: str,
        soup: BeautifulSoup,
        passengers: list[Passenger],
        expected_count: int | None,
    ):
        self.text = text
        self.soup = soup
        self.passengers = passengers
        self.expected_count = expected_count

    @property
    def incomplete(self) -> bool:
        """Aggressively cached pages sometimes come back truncated."""
        if len(self.text) < settings.min_page_text_chars:
            return True
        if not self.passengers:
            return True
        return self.expected_count is not None and len(self.passengers) < self.expected_count


def parse_iddas_html(html: str) -> ParsedPage:
    soup = parse_html(html)
    text = normalize_text(dom_text_with_newlines(soup))
    text_from_html = html_to_text(html)

    from_dom_text = extract_passengers(text)
    from_raw_html = extract_passengers(text_from_html) if text_from_html else []
    expected = expected_passenger_count(text)
    if expected is None:
        expected = expected_passenger_count(text_from_html)

    passengers = choose_passengers(from_dom_text, from_raw_html, expected)

    banner = extract_passengers_from_dom(soup)
    if banner:
        passengers = merge_passengers(passengers, banner)

    return ParsedPage(text, soup, passengers, expected)


def build_iddas_result(page: ParsedPage, url: str, extractor: str = "iddas") -> ExtractionResult:
    """Turn a parsed page into an extraction result."""
    # the main passenger is always the first real passenger, never the buyer
    main_passenger = page.passengers[0].full_name if page.passengers else ""

    flights = match_all_flights(page.text, main_passenger)
    hotels = dedupe_hotels([
        *match_all_hotels_from_dom(page.soup),
        *match_all_hotels(page.text),
    ])
    hotels = backfill_hotel_dates(hotels, flights)

    if flights:
        first = flights[0]
        title = f"{first.origin_code} à {first.destination_code} ({first.departure_date or 'sem data'})"
    else:
        title = "Reserva (link)"

    return ExtractionResult(
        source_url=url,
        extractor=extractor,
        total=parse_money_brl(page.text),
        suggested_title=title,
        main_passenger_name=main_passenger,
        reserved_by=reserved_by(page.text),
        passengers=page.passengers,
        flights=flights,
        hotels=hotels,
        car_rentals=match_all_cars(page.text),
    )


def extract_iddas_booking(url: str) -> ExtractionResult:
    """Fetch and parse an IDDAS page over HTTP, retrying incomplete pages.

    Blocking; call through ``asyncio.to_thread`` from async code.
    """
    start = time.monotonic()
    page: ParsedPage | None = None
    attempts = max(1, settings.fetch_attempts)

    for attempt in range(1, attempts + 1):
        fetched = fetch_html(url, attempt)
        if not fetched.ok:
            if attempt == attempts and page is None:
                raise ExtractionError(f"Falha ao buscar URL ({fetched.status})")
            continue

        page = parse_iddas_html(fetched.html)
        if not page.incomplete:
            break
        logger.info(
            "IDDAS page looks incomplete (attempt %d): %d chars, %d passengers, expected %s",
            attempt, len(page.text), len(page.passengers), page.expected_count,
        )

    if page is None or not page.text:
        raise ExtractionError("Falha ao processar HTML")

    result = build_iddas_result(page, url)
    result.duration_seconds = round(time.monotonic() - start, 2)
    return result


async def extract_iddas_booking_headless(url: str, session: BrowserSession) -> ExtractionResult:
    """Same parse as :func:`extract_iddas_booking` on the rendered page."""
    start = time.monotonic()
    html = await render_page_html(session, url)
    page = parse_iddas_html(html)
    if not page.text:
        raise ExtractionError("Falha ao processar HTML")

    result = build_iddas_result(page, url, extractor="iddas_headless")
    result.duration_seconds = round(time.monotonic() - start, 2)
    return result
