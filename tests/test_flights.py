from extractor.flights import infer_airline, match_all_flights
from models import FlightType

ROUND_TRIP = """Voo de Recife (REC) para São Paulo (GRU)
GOL Voo 1234 - Voo direto
Partida 10/03/2025 08h30
Chegada 10/03/2025 11h45
Localizador ABC123
Voo de São Paulo (GRU) para Recife (REC)
Voo 4321 - 1 parada
Partida 15/03/2025 18h00
Chegada 15/03/2025 21h10
Localizador XYZ789
"""


def test_round_trip_blocks():
    flights = match_all_flights(ROUND_TRIP, "JOAO CARLOS DA SILVA")
    assert len(flights) == 2

    outbound, back = flights
    assert outbound.id == "ABC123:1234:0"
    assert outbound.type == FlightType.OUTBOUND
    assert (outbound.origin, outbound.origin_code) == ("Recife", "REC")
    assert (outbound.destination, outbound.destination_code) == ("São Paulo", "GRU")
    assert outbound.departure_date == "10/03/2025"
    assert outbound.departure_time == "08h30"
    assert outbound.arrival_time == "11h45"
    assert outbound.stops == 0
    assert outbound.passenger_name == "JOAO CARLOS DA SILVA"

    assert back.id == "XYZ789:4321:1"
    assert back.type == FlightType.RETURN
    assert back.stops == 1
    # the airline is only printed on the first block
    assert back.airline == "GOL"


def test_unlabelled_locator_and_airline():
    text = "Voo de Natal (NAT) para Recife (REC)\nAzul Voo 4455\nReserva K7PQ2L\n"
    [flight] = match_all_flights(text)

    assert flight.locator == "K7PQ2L"
    assert flight.airline == "AZUL"
    assert flight.flight_number == "4455"
    assert flight.departure_date == ""


def test_no_headers_no_flights():
    assert match_all_flights("Hospedagem\nHotel Mar Azul") == []
    assert match_all_flights("") == []


def test_infer_airline():
    assert infer_airline("operado por latam airlines") == "LATAM"
    assert infer_airline("Cia: Gol Linhas Aereas") == "GOL"
    assert infer_airline("TAP Air Portugal") == ""
