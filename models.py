from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class Airline(str, Enum):
    LATAM = "LATAM"
    GOL = "GOL"
    AZUL = "AZUL"


class FlightType(str, Enum):
    OUTBOUND = "outbound"
    RETURN = "return"
    INTERNAL = "internal"


class Passenger(BaseModel):
    full_name: str = ""
    birth_date: str = ""      # YYYY-MM-DD
    cpf: str = ""             # 11 digits
    phone: str = ""
    email: str = ""
    passport: str = ""
    passport_expiry: str = ""


class Flight(BaseModel):
    id: str = ""
    locator: str = ""
    purchase_number: str = ""
    airline: str = ""         # one of Airline, or "" when unknown
    flight_number: str = ""
    origin: str = ""
    origin_code: str = ""
    destination: str = ""
    destination_code: str = ""
    departure_date: str = ""  # DD/MM/YYYY
    departure_time: str = ""
    arrival_date: str = ""
    arrival_time: str = ""
    duration: str = ""
    stops: int = 0
    passenger_name: str = ""
    type: FlightType = FlightType.OUTBOUND
    price_paid: float = 0.0
    price_airline: float = 0.0
    checked_in: bool = False


class Hotel(BaseModel):
    locator: str = ""         # confirmation code
    hotel_name: str = ""
    address: str = ""
    city: str = ""
    check_in: str = ""        # DD/MM/YYYY
    check_out: str = ""
    nights: int = 0
    rooms: int = 0
    breakfast: bool = False
    guest_name: str = ""
    total: Optional[float] = None
    price_paid: float = 0.0
    price_original: float = 0.0


class CarRental(BaseModel):
    locator: str = ""
    company: str = ""
    car_model: str = ""
    category: str = ""
    pickup_location: str = ""
    pickup_date: str = ""
    pickup_time: str = ""
    return_location: str = ""
    return_date: str = ""
    return_time: str = ""
    driver_name: str = ""
    price_paid: float = 0.0
    price_original: float = 0.0


class Transfer(BaseModel):
    locator: str = ""
    type: str = ""            # e.g. "aeroporto", "hotel"
    origin: str = ""
    destination: str = ""
    date: str = ""
    time: str = ""
    passenger_name: str = ""
    vehicle_type: str = ""
    price_paid: float = 0.0
    price_original: float = 0.0


class ExtractionResult(BaseModel):
    source_url: str = ""
    extractor: str = ""       # "iddas", "iddas_headless", "generic", "llm", "image"
    extracted_at: datetime = Field(default_factory=datetime.utcnow)

    total: Optional[float] = None
    suggested_title: str = ""
    main_passenger_name: str = ""
    reserved_by: str = ""

    passengers: list[Passenger] = []
    flights: list[Flight] = []
    hotels: list[Hotel] = []
    car_rentals: list[CarRental] = []
    transfers: list[Transfer] = []

    errors: list[str] = []
    duration_seconds: float = 0.0


class Booking(BaseModel):
    id: str
    company_id: str
    name: str = "Nova Reserva"
    source_url: str = ""

    flights: list[Flight] = []
    hotels: list[Hotel] = []
    car_rentals: list[CarRental] = []
    transfers: list[Transfer] = []
    passengers: list[Passenger] = []

    total_paid: Optional[float] = None
    total_original: Optional[float] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class SavingsLine(BaseModel):
    booking_id: str
    name: str
    total_paid: float = 0.0
    total_original: float = 0.0
    savings: float = 0.0
    created_at: datetime


class SavingsReport(BaseModel):
    year: int
    month: int
    lines: list[SavingsLine] = []
    total_paid: float = 0.0
    total_original: float = 0.0
    total_savings: float = 0.0
    savings_percentage: float = 0.0


class BatchResult(BaseModel):
    total_links: int
    extracted: int
    failed_count: int = 0
    flight_count: int = 0
    hotel_count: int = 0
    passenger_count: int = 0
    results: list[ExtractionResult]
    scan_date: datetime = Field(default_factory=datetime.utcnow)


class ExtractRequest(BaseModel):
    url: str = ""
    headless: bool = False


class BookingCreate(BaseModel):
    company_id: str
    url: str = ""
    title: str = ""
    extraction: Optional[ExtractionResult] = None
    total_paid: Optional[float] = None
    total_original: Optional[float] = None


class BookingUpdate(BaseModel):
    name: Optional[str] = None
    total_paid: Optional[float] = None
    total_original: Optional[float] = None
    is_admin: bool = False


class ImportRequest(BaseModel):
    is_admin: bool = False
    headless: bool = False
