from __future__ import annotations

import re
from datetime import timedelta

from bs4 import BeautifulSoup, Tag

from models import Flight, Hotel
from extractor.text import (
    clean_spaces,
    format_br_date,
    parse_br_date,
    parse_money_brl,
)

I = re.IGNORECASE

HOTEL_LABEL = re.compile(r"\b(Hotel|Hospedagem)\b[:\t -]*([^\n\r]+)?", I)
CITY = re.compile(r"Cidade[:\s]*([A-ZÀ-Ÿa-zà-ÿ\- ]{2,80})", I)
CHECK_IN = re.compile(r"Check[- ]?in[:\s]*([0-3]?\d/[01]?\d/\d{4})", I)
CHECK_OUT = re.compile(r"Check[- ]?out[:\s]*([0-3]?\d/[01]?\d/\d{4})", I)
# Booking codes are upper case and carry a digit; "Reserva confirmada" is not one.
CODE = r"((?=[A-Z\-]*\d)[A-Z0-9\-]{4,20})\b"
CONFIRMATION = re.compile(r"(?i:Confirmação|Confirmacao|Código|Reserva)[:\s]*" + CODE)
DATE_BR = re.compile(r"\b\d{2}/\d{2}/\d{4}\b")


def _first(pattern: re.Pattern, text: str, group: int = 1) -> str:
    m = pattern.search(text)
    return m.group(group).strip() if m else ""


def _hotel_key(h: Hotel) -> str:
    return h.locator or f"{h.hotel_name}|{h.check_in}|{h.check_out}"


def match_all_hotels(page_text: str) -> list[Hotel]:
    """Every ``Hotel``/``Hospedagem`` label with the fields found around it."""
    hotels: list[Hotel] = []
    for m in HOTEL_LABEL.finditer(page_text or ""):
        chunk = page_text[max(0, m.start() - 200): m.start() + 600]
        hotels.append(Hotel(
            hotel_name=clean_spaces(m.group(2) or ""),
            city=_first(CITY, chunk),
            check_in=_first(CHECK_IN, chunk),
            check_out=_first(CHECK_OUT, chunk),
            locator=_first(CONFIRMATION, chunk),
            total=parse_money_brl(chunk),
        ))
    return hotels


def _row_container(badge: Tag) -> Tag | None:
    node = badge
    while node is not None and node.name not in ("body", "[document]"):
        classes = node.get("class") or []
        if "row" in classes and "mb-1" in classes:
            return node
        node = node.parent
    return None


def match_all_hotels_from_dom(soup: BeautifulSoup) -> list[Hotel]:
    """IDDAS hotel rows, anchored on the reservation-number badge."""
    results: list[Hotel] = []
    for badge in soup.select("span.badge"):
        title = (badge.get("data-bs-original-title") or "").lower()
        code = clean_spaces(badge.get_text(" "))
        if "reserva" not in title or "hosped" not in title or not code:
            continue

        row = _row_container(badge)
        if row is None:
            continue

        name_el = row.select_one("h6.hDescricao")
        raw_name = clean_spaces(name_el.get_text(" ")) if name_el else ""
        name = clean_spaces(raw_name.replace("★", " ")) or raw_name

        addr_el = row.select_one('a[href*="google.com/maps"]')
        address = clean_spaces(addr_el.get_text(" ")) if addr_el else ""

        # "DD/MM/YYYY 14h -> DD/MM/YYYY"
        dates = DATE_BR.findall(clean_spaces(row.get_text(" ")))
        check_in = format_br_date(parse_br_date(dates[0])) if dates else ""
        check_out = format_br_date(parse_br_date(dates[1])) if len(dates) > 1 else ""

        results.append(Hotel(
            hotel_name=name or "Hospedagem",
            locator=code,
            address=address,
            check_in=check_in,
            check_out=check_out,
        ))
    return dedupe_hotels(results)


def extract_hotel_block(page_text: str, guest_name: str = "") -> list[Hotel]:
    """Conservative single-hotel extractor over the ``Hospedagem`` block."""
    m = re.search(r"Hospedagem[\s\S]{0,2000}", page_text or "", I)
    if not m:
        return []
    block = m.group(0)

    name = clean_spaces(_first(re.compile(r"Hotel\s*[:\-]?\s*([^\n]{3,120})", I), block))
    code = _first(re.compile(r"(?i:Confirma[cç][aã]o|Reserva|Localizador)\s*[:\-]?\s*" + CODE), block)
    check_in = _first(re.compile(r"Check-?in\s*[:\s]*([0-3]\d/[0-1]\d/\d{4})", I), block)
    check_out = _first(re.compile(r"Check-?out\s*[:\s]*([0-3]\d/[0-1]\d/\d{4})", I), block)
    if not name and not check_in and not check_out and not code:
        return []

    return [Hotel(
        hotel_name=name,
        address=clean_spaces(_first(re.compile(r"Endere[cç]o\s*[:\-]?\s*([^\n]{3,200})", I), block)),
        city=clean_spaces(_first(re.compile(r"Cidade\s*[:\-]?\s*([^\n]{2,120})", I), block)),
        check_in=check_in,
        check_out=check_out,
        locator=clean_spaces(code),
        guest_name=guest_name,
    )]


def dedupe_hotels(hotels: list[Hotel]) -> list[Hotel]:
    """Drop repeated hotels; a later duplicate only fills empty fields."""
    by_key: dict[str, Hotel] = {}
    for h in hotels:
        if not (h.hotel_name or h.locator or h.check_in or h.check_out):
            continue
        key = _hotel_key(h)
        existing = by_key.get(key)
        if existing is None:
            by_key[key] = h.model_copy()
            continue
        _fill_empty(existing, h)

    # a bare "Hospedagem" label repeats the stay of the named hotel below it
    kept: list[Hotel] = []
    for h in by_key.values():
        if not h.hotel_name and not h.locator:
            named = next((
                other for other in by_key.values()
                if other.hotel_name and (other.check_in, other.check_out) == (h.check_in, h.check_out)
            ), None)
            if named is not None:
                _fill_empty(named, h)
                continue
        kept.append(h)
    return kept


def _fill_empty(existing: Hotel, h: Hotel) -> None:
    for field in ("hotel_name", "address", "city", "check_in", "check_out", "guest_name"):
        if not getattr(existing, field) and getattr(h, field):
            setattr(existing, field, getattr(h, field))
    if existing.total is None and h.total is not None:
        existing.total = h.total


def backfill_hotel_dates(hotels: list[Hotel], flights: list[Flight]) -> list[Hotel]:
    """Fill missing check-in/out from the first and last flight departures.

    A stay that would start and end on the same day is pushed to one night.
    """
    departures = sorted(
        d for d in (parse_br_date(f.departure_date) for f in flights) if d
    )
    first = departures[0] if departures else None
    last = departures[-1] if departures else None

    out: list[Hotel] = []
    for h in hotels:
        ci = parse_br_date(h.check_in)
        co = parse_br_date(h.check_out)

        if first and last:
            if ci is None and co is None:
                ci, co = first, last
            elif ci is not None and co is None:
                co = last
            elif co is not None and ci is None:
                ci = first
            if ci and co and ci == co:
                co = co + timedelta(days=1)

        nights = (co - ci).days if ci and co and co > ci else h.nights
        out.append(h.model_copy(update={
            "check_in": format_br_date(ci),
            "check_out": format_br_date(co),
            "nights": nights,
        }))
    return out
