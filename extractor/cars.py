from __future__ import annotations

import re

from models import CarRental
from extractor.hotels import CODE
from extractor.text import clean_spaces

I = re.IGNORECASE

CAR_LABEL = re.compile(r"\b(Locadora|Aluguel|Retirada|Devolu[cç][aã]o)\b[:\t -]*([^\n\r]+)?", I)
COMPANY = re.compile(r"Locadora[: \t]*([A-ZÀ-Ÿa-zà-ÿ0-9\- ]{2,80})", I)
PICKUP = re.compile(r"Retirada[:\s]*([0-3]?\d/[01]?\d/\d{4}(?:\s+\d{2}:?\d{2})?)", I)
DROPOFF = re.compile(r"Devolu[cç][aã]o[:\s]*([0-3]?\d/[01]?\d/\d{4}(?:\s+\d{2}:?\d{2})?)", I)
CONFIRMATION = re.compile(r"(?i:Confirmação|Confirmacao|Código)[:\s]*" + CODE)
CATEGORY = re.compile(r"Categoria[: \t]*([A-Z0-9\- ]{2,40})", I)
DRIVER = re.compile(r"Motorista[: \t]*([A-ZÀ-Ÿa-zà-ÿ ]{2,80})", I)


def _first(pattern: re.Pattern, text: str, group: int = 1) -> str:
    m = pattern.search(text)
    return clean_spaces(m.group(group)) if m else ""


def split_date_time(value: str) -> tuple[str, str]:
    """``"10/03/2025 14:30"`` -> ``("10/03/2025", "14:30")``."""
    parts = (value or "").split()
    if not parts:
        return "", ""
    time = parts[1] if len(parts) > 1 else ""
    if len(time) == 4 and ":" not in time:
        time = f"{time[:2]}:{time[2:]}"
    return parts[0], time


def _car_key(c: CarRental) -> str:
    return c.locator or f"{c.company}|{c.pickup_date}|{c.return_date}"


def match_all_cars(page_text: str) -> list[CarRental]:
    """Car rentals found around ``Locadora``/``Retirada``/``Devolução`` labels.

    Several labels usually point at the same rental, so entries are merged
    by confirmation code (or company and dates) and empty ones dropped.
    """
    by_key: dict[str, CarRental] = {}
    for m in CAR_LABEL.finditer(page_text or ""):
        chunk = page_text[max(0, m.start() - 200): m.start() + 600]

        pickup_date, pickup_time = split_date_time(_first(PICKUP, chunk))
        return_date, return_time = split_date_time(_first(DROPOFF, chunk))
        car = CarRental(
            company=_first(COMPANY, chunk),
            pickup_date=pickup_date,
            pickup_time=pickup_time,
            return_date=return_date,
            return_time=return_time,
            locator=_first(CONFIRMATION, chunk),
            category=_first(CATEGORY, chunk),
            driver_name=_first(DRIVER, chunk),
        )
        if not (car.company or car.pickup_date or car.return_date or car.locator):
            continue

        key = _car_key(car)
        existing = by_key.get(key)
        if existing is None:
            by_key[key] = car
            continue
        for field in CarRental.model_fields:
            if not getattr(existing, field) and getattr(car, field):
                setattr(existing, field, getattr(car, field))

    return list(by_key.values())
