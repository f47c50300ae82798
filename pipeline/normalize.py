"""Normalize the result shapes produced by the different extractors.

Extractors (and older stored payloads) disagree on envelopes and key
style: ``{success, data}`` or a bare object, camelCase or snake_case,
``carRentals`` or ``cars``. Everything is mapped onto ``ExtractionResult``.
"""
from __future__ import annotations

import re
from typing import Any

from models import (
    CarRental,
    ExtractionResult,
    Flight,
    FlightType,
    Hotel,
    Passenger,
    Transfer,
)
from extractor.cars import split_date_time
from extractor.errors import ExtractionError
from extractor.flights import infer_airline
from extractor.passengers import looks_like_company_name
from extractor.text import br_to_iso, clean_spaces, only_digits

_RESERVED_BY_PREFIX = re.compile(r"^\s*Reservado\s+por\s+", re.IGNORECASE)


def _pick(d: dict, *keys: str, default: Any = "") -> Any:
    """First non-empty value among ``keys``."""
    for key in keys:
        value = d.get(key)
        if value not in (None, ""):
            return value
    return default


def _str(d: dict, *keys: str) -> str:
    value = _pick(d, *keys)
    return clean_spaces(str(value)) if value is not None else ""


def to_float(value: Any) -> float:
    """``1234.5``, ``"1234.50"`` and ``"R$ 1.234,50"`` all become ``1234.5``;
    ``"R$ 1.234"`` is ``1234.0``."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    s = re.sub(r"[^\d,.\-]", "", str(value))
    if "," in s:
        s = s.replace(".", "").replace(",", ".")
    elif re.fullmatch(r"-?\d{1,3}(?:\.\d{3})+", s):
        # "R$ 1.234": dots grouping thousands
        s = s.replace(".", "")
    try:
        return float(s)
    except ValueError:
        return 0.0


def to_int(value: Any) -> int:
    return int(to_float(value))


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "sim", "yes", "1")
    return bool(value)


def _list(value: Any) -> list:
    if isinstance(value, list):
        return value
    if isinstance(value, dict) and isinstance(value.get("data"), list):
        return value["data"]
    return []


_CONTENT_KEYS = ("passengers", "flights", "hotels", "carRentals", "car_rentals", "cars", "transfers")


def unwrap_envelope(raw: Any) -> dict:
    """Strip up to three ``{success, data}`` layers (or bare ``{data}`` layers)."""
    payload = raw if isinstance(raw, dict) else {}
    for _ in range(3):
        if payload.get("success") is False:
            raise ExtractionError(str(payload.get("error") or "Falha na extração"))
        inner = payload.get("data")
        if not isinstance(inner, dict):
            break
        if "success" in payload or not any(k in payload for k in _CONTENT_KEYS):
            payload = inner
            continue
        break
    return payload


def passenger_name(p: dict) -> str:
    raw = _str(p, "fullName", "full_name", "name", "nome", "passengerName", "passenger_name")
    return _RESERVED_BY_PREFIX.sub("", raw).strip()


def normalize_passengers(raw: list) -> list[Passenger]:
    out: list[Passenger] = []
    seen: set[str] = set()
    for p in raw:
        if not isinstance(p, dict):
            continue
        name = passenger_name(p)
        cpf = only_digits(str(p.get("cpf") or ""))
        if not name and not cpf:
            continue
        # the buyer company shows up as a passenger in some payloads
        if looks_like_company_name(name) and len(cpf) != 11:
            continue

        key = f"cpf:{cpf}" if len(cpf) == 11 else f"name:{name.lower()}"
        if key in seen:
            continue
        seen.add(key)

        birth = _str(p, "birthDate", "birth_date", "nascimento")
        out.append(Passenger(
            full_name=name,
            birth_date=br_to_iso(birth) or birth,
            cpf=cpf,
            phone=_str(p, "phone", "telefone"),
            email=_str(p, "email"),
            passport=_str(p, "passport", "passaporte"),
            passport_expiry=_str(p, "passportExpiry", "passport_expiry"),
        ))
    return out


def _flight_type(value: Any, index: int) -> FlightType:
    if isinstance(value, FlightType):
        return value
    try:
        return FlightType(str(value).lower())
    except ValueError:
        return FlightType.OUTBOUND if index == 0 else FlightType.RETURN


def normalize_flights(raw: list) -> list[Flight]:
    flights: list[Flight] = []
    for i, f in enumerate(x for x in raw if isinstance(x, dict)):
        airline_raw = _str(f, "airline", "companhia")
        flights.append(Flight(
            id=_str(f, "id"),
            locator=_str(f, "locator", "localizador"),
            purchase_number=_str(f, "purchaseNumber", "purchase_number"),
            airline=infer_airline(airline_raw) or airline_raw.upper(),
            flight_number=_str(f, "flightNumber", "flight_number"),
            origin=_str(f, "origin"),
            origin_code=_str(f, "originCode", "origin_code").upper(),
            destination=_str(f, "destination"),
            destination_code=_str(f, "destinationCode", "destination_code").upper(),
            departure_date=_str(f, "departureDate", "departure_date"),
            departure_time=_str(f, "departureTime", "departure_time"),
            arrival_date=_str(f, "arrivalDate", "arrival_date"),
            arrival_time=_str(f, "arrivalTime", "arrival_time"),
            duration=_str(f, "duration"),
            stops=to_int(f.get("stops")),
            passenger_name=_str(f, "passengerName", "passenger_name"),
            type=_flight_type(f.get("type"), i),
            price_paid=to_float(_pick(f, "pricePaid", "price_paid", default=0)),
            price_airline=to_float(_pick(f, "priceAirline", "price_airline", default=0)),
            checked_in=to_bool(_pick(f, "checkedIn", "checked_in", default=False)),
        ))
    return flights


def normalize_hotels(raw: list) -> list[Hotel]:
    hotels: list[Hotel] = []
    for h in raw:
        if not isinstance(h, dict):
            continue
        total = _pick(h, "total", default=None)
        hotels.append(Hotel(
            locator=_str(h, "locator", "confirmationCode", "confirmation_code"),
            hotel_name=_str(h, "hotelName", "hotel_name", "name"),
            address=_str(h, "address", "endereco"),
            city=_str(h, "city", "cidade"),
            check_in=_str(h, "checkIn", "check_in"),
            check_out=_str(h, "checkOut", "check_out"),
            nights=to_int(_pick(h, "nights", "diarias", default=0)),
            rooms=to_int(_pick(h, "rooms", default=0)),
            breakfast=to_bool(_pick(h, "breakfast", default=False)),
            guest_name=_str(h, "guestName", "guest_name"),
            total=to_float(total) if total is not None else None,
            price_paid=to_float(_pick(h, "pricePaid", "price_paid", default=0)),
            price_original=to_float(_pick(h, "priceOriginal", "price_original", default=0)),
        ))
    return hotels


def normalize_cars(raw: list) -> list[CarRental]:
    cars: list[CarRental] = []
    for c in raw:
        if not isinstance(c, dict):
            continue
        pickup_date, pickup_time = split_date_time(_str(c, "pickupDateTime", "pickup_date_time"))
        return_date, return_time = split_date_time(_str(c, "dropoffDateTime", "return_date_time"))
        cars.append(CarRental(
            locator=_str(c, "locator", "confirmationCode", "confirmation_code"),
            company=_str(c, "company", "locadora"),
            car_model=_str(c, "carModel", "car_model"),
            category=_str(c, "category", "categoria"),
            pickup_location=_str(c, "pickupLocation", "pickup_location"),
            pickup_date=_str(c, "pickupDate", "pickup_date") or pickup_date,
            pickup_time=_str(c, "pickupTime", "pickup_time") or pickup_time,
            return_location=_str(c, "returnLocation", "return_location", "dropoffLocation"),
            return_date=_str(c, "returnDate", "return_date") or return_date,
            return_time=_str(c, "returnTime", "return_time") or return_time,
            driver_name=_str(c, "driverName", "driver_name"),
            price_paid=to_float(_pick(c, "pricePaid", "price_paid", default=0)),
            price_original=to_float(_pick(c, "priceOriginal", "price_original", default=0)),
        ))
    return cars


def normalize_transfers(raw: list) -> list[Transfer]:
    return [
        Transfer(
            locator=_str(t, "locator"),
            type=_str(t, "type"),
            origin=_str(t, "origin"),
            destination=_str(t, "destination"),
            date=_str(t, "date"),
            time=_str(t, "time"),
            passenger_name=_str(t, "passengerName", "passenger_name"),
            vehicle_type=_str(t, "vehicleType", "vehicle_type"),
            price_paid=to_float(_pick(t, "pricePaid", "price_paid", default=0)),
            price_original=to_float(_pick(t, "priceOriginal", "price_original", default=0)),
        )
        for t in raw
        if isinstance(t, dict)
    ]


def normalize_payload(raw: Any, source_url: str = "", extractor: str = "") -> ExtractionResult:
    """Map any extractor payload onto an ``ExtractionResult``.

    Raises ``ExtractionError`` when the envelope reports a failure.
    """
    payload = unwrap_envelope(raw)

    passengers = normalize_passengers(_list(payload.get("passengers")))
    main_passenger = passengers[0].full_name if passengers else ""
    total = _pick(payload, "total", default=None)

    return ExtractionResult(
        source_url=source_url or _str(payload, "sourceUrl", "source_url"),
        extractor=extractor or _str(payload, "extractor"),
        total=to_float(total) if total is not None else None,
        suggested_title=_str(payload, "suggestedTitle", "suggested_title"),
        main_passenger_name=main_passenger or _str(payload, "mainPassengerName", "main_passenger_name"),
        reserved_by=_str(payload, "reservedBy", "reserved_by"),
        passengers=passengers,
        flights=normalize_flights(_list(payload.get("flights"))),
        hotels=normalize_hotels(_list(payload.get("hotels"))),
        car_rentals=normalize_cars(_list(_pick(payload, "carRentals", "car_rentals", "cars", default=[]))),
        transfers=normalize_transfers(_list(payload.get("transfers"))),
        errors=[str(e) for e in _list(payload.get("errors"))],
    )
