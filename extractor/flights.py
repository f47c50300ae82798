from __future__ import annotations

import re

from models import Airline, Flight, FlightType

I = re.IGNORECASE

FLIGHT_HEADER = re.compile(r"Voo de\s+(.+?)\s+\(([A-Z]{3})\)\s+para\s+(.+?)\s+\(([A-Z]{3})\)")
DEPARTURE = re.compile(r"Partida\s+(\d{2}/\d{2}/\d{4})\s+(\d{2}h\d{2})", I)
ARRIVAL = re.compile(r"Chegada\s+(\d{2}/\d{2}/\d{4})\s+(\d{2}h\d{2})", I)
FLIGHT_NUMBER = re.compile(r"Voo\s+(\d{3,4})", I)
LOCATOR = re.compile(r"Localizador\s+([A-Z0-9]{5,8})", I)
# Unlabelled locator: an upper-case token with a digit, or 6+ letters
LOCATOR_FALLBACK = re.compile(r"\b(?=[A-Z]*\d)[A-Z0-9]{5,8}\b|\b[A-Z]{6}\b")
STOPS = re.compile(r"(\d+)\s+parada", I)


def infer_airline(block: str) -> str:
    b = (block or "").upper()
    for airline in (Airline.GOL, Airline.LATAM, Airline.AZUL):
        if airline.value in b:
            return airline.value
    return ""


def _stops(block: str) -> int:
    if re.search(r"Voo direto", block, I):
        return 0
    m = STOPS.search(block)
    return int(m.group(1)) if m else 0


def match_all_flights(page_text: str, main_passenger_name: str = "") -> list[Flight]:
    """One flight per ``Voo de CITY (AAA) para CITY (BBB)`` header.

    Each header opens a block that runs until the next header; the block
    holds the departure, arrival, flight number and locator.
    """
    headers = list(FLIGHT_HEADER.finditer(page_text or ""))
    flights: list[Flight] = []
    last_airline = ""

    for i, header in enumerate(headers):
        end = headers[i + 1].start() if i + 1 < len(headers) else len(page_text)
        block = page_text[header.start():end]

        dep = DEPARTURE.search(block)
        arr = ARRIVAL.search(block)
        number = FLIGHT_NUMBER.search(block)
        loc = LOCATOR.search(block)
        if loc:
            locator = loc.group(1)
        else:
            # skip the header itself so airport codes and city names are not taken
            fallback = LOCATOR_FALLBACK.search(block, header.end() - header.start())
            locator = fallback.group(0) if fallback else ""

        airline = infer_airline(block) or last_airline
        if airline:
            last_airline = airline

        flight_number = number.group(1) if number else ""
        flights.append(Flight(
            id=f"{locator or 'NOLOC'}:{flight_number or 'NOVOO'}:{i}",
            airline=airline,
            flight_number=flight_number,
            origin=header.group(1).strip(),
            origin_code=header.group(2).strip(),
            destination=header.group(3).strip(),
            destination_code=header.group(4).strip(),
            departure_date=dep.group(1) if dep else "",
            departure_time=dep.group(2) if dep else "",
            arrival_date=arr.group(1) if arr else "",
            arrival_time=arr.group(2) if arr else "",
            locator=locator,
            passenger_name=main_passenger_name or "",
            type=FlightType.OUTBOUND if i == 0 else FlightType.RETURN,
            stops=_stops(block),
        ))

    return flights
