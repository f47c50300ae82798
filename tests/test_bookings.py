import csv
import io
from datetime import datetime

import pytest

from models import Booking, ExtractionResult, Flight, Hotel, Passenger
from pipeline.booking_merge import apply_extraction, item_totals, new_booking
from pipeline.savings import monthly_report, report_filename, report_to_csv, savings


def _extraction(**kwargs) -> ExtractionResult:
    defaults = dict(
        source_url="https://agencia.iddas.com.br/reserva/1",
        suggested_title="REC à GRU (10/03/2025)",
        passengers=[Passenger(full_name="Ana Souza", cpf="11144477735")],
        flights=[Flight(locator="ABC123", price_paid=700, price_airline=900)],
    )
    defaults.update(kwargs)
    return ExtractionResult(**defaults)


def test_new_booking_requires_company_and_totals():
    with pytest.raises(ValueError, match="Selecione a empresa"):
        new_booking("", "", "", None, 10, 20)
    with pytest.raises(ValueError, match="Valor pago obrigatório"):
        new_booking("acme", "", "", None, None, 20)
    with pytest.raises(ValueError, match="Valor pago obrigatório"):
        new_booking("acme", "", "", None, 0, 20)
    with pytest.raises(ValueError, match="Valor na cia obrigatório"):
        new_booking("acme", "", "", None, 10, -1)


def test_new_booking_from_extraction():
    booking = new_booking("acme", "", "", _extraction(), 800.0, 1000.0)

    assert len(booking.id) == 12
    assert booking.name == "REC à GRU (10/03/2025)"
    assert booking.source_url == "https://agencia.iddas.com.br/reserva/1"
    assert booking.flights[0].locator == "ABC123"
    assert booking.passengers[0].full_name == "Ana Souza"

    manual = new_booking("acme", "https://x.example.com", "Viagem SP", None, 800.0, 1000.0)
    assert manual.name == "Viagem SP"
    assert manual.flights == []


def test_apply_extraction_keeps_lists_it_did_not_find():
    booking = Booking(
        id="b1",
        company_id="acme",
        name="Antiga",
        hotels=[Hotel(hotel_name="Mar Azul")],
        total_paid=800.0,
        total_original=1000.0,
    )
    updated = apply_extraction(booking, _extraction(total=1234.5), is_admin=False)

    assert updated.name == "REC à GRU (10/03/2025)"
    assert updated.flights[0].locator == "ABC123"
    assert updated.hotels[0].hotel_name == "Mar Azul"
    assert (updated.total_paid, updated.total_original) == (800.0, 1000.0)
    assert booking.flights == []


def test_apply_extraction_admin_totals():
    booking = Booking(id="b1", company_id="acme", total_paid=800.0, total_original=1000.0)

    updated = apply_extraction(booking, _extraction(total=1234.5), is_admin=True)
    assert (updated.total_paid, updated.total_original) == (1234.5, 1234.5)

    untouched = apply_extraction(booking, _extraction(total=None, suggested_title=""), is_admin=True)
    assert (untouched.total_paid, untouched.total_original) == (800.0, 1000.0)
    assert untouched.name == "Nova Reserva"


def test_item_totals():
    booking = Booking(
        id="b1",
        company_id="acme",
        flights=[Flight(price_paid=700, price_airline=900), Flight(price_paid=100.1, price_airline=150)],
        hotels=[Hotel(price_paid=300, price_original=350.25)],
    )
    assert item_totals(booking) == {"paid": 1100.1, "original": 1400.25}


def test_savings():
    assert savings(800, 1000) == (200.0, 20.0)
    assert savings(1000, 0) == (-1000.0, 0.0)
    assert savings(None, None) == (0.0, 0.0)


def _booking(id, name, paid, original, created_at):
    return Booking(
        id=id, company_id="acme", name=name,
        total_paid=paid, total_original=original, created_at=created_at,
    )


def test_monthly_report():
    bookings = [
        _booking("a", "Primeira", 800.0, 1000.0, datetime(2025, 3, 2, 9, 0)),
        _booking("b", "Segunda", 450.0, 500.0, datetime(2025, 3, 20, 15, 30)),
        _booking("c", "Abril", 100.0, 900.0, datetime(2025, 4, 1, 8, 0)),
        _booking("d", "Sem valores", None, None, datetime(2025, 3, 5, 8, 0)),
    ]
    report = monthly_report(bookings, 2025, 3)

    assert [line.booking_id for line in report.lines] == ["b", "d", "a"]
    assert report.total_paid == 1250.0
    assert report.total_original == 1500.0
    assert report.total_savings == 250.0
    assert report.savings_percentage == 16.7

    with pytest.raises(ValueError, match="Mês inválido"):
        monthly_report(bookings, 2025, 13)


def test_report_csv():
    report = monthly_report(
        [_booking("a", "REC à GRU", 800.0, 1000.0, datetime(2025, 3, 10, 12, 0))], 2025, 3
    )
    assert report_to_csv(report) == (
        "Reserva;Valor Pago;Valor Original;Economia;Data\n"
        "REC à GRU;800.00;1000.00;200.00;10/03/2025\n"
        "\n"
        "TOTAIS;800.00;1000.00;200.00;\n"
        "Economia (%);20.0%;;;\n"
    )
    assert report_filename(2025, 3) == "relatorio-economia-Março-2025.csv"


def test_report_csv_quotes_names_with_separators():
    report = monthly_report(
        [_booking("a", "Hotel Ibis; Centro", 800.0, 1000.0, datetime(2025, 3, 10, 12, 0))], 2025, 3
    )
    rows = list(csv.reader(io.StringIO(report_to_csv(report)), delimiter=";"))

    assert rows[1] == ["Hotel Ibis; Centro", "800.00", "1000.00", "200.00", "10/03/2025"]
