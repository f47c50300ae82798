import time

from extractor.passengers import (
    choose_passengers,
    expected_passenger_count,
    extract_passengers,
    extract_passengers_from_dom,
    extract_passengers_simple,
    is_clean_name,
    is_probably_person_name,
    looks_like_company_name,
    merge_passengers,
    reserved_by,
    sanitize_passenger_name,
)
from extractor.text import parse_html
from models import Passenger

INLINE_LAYOUT = """Reservado por ACME VIAGENS LTDA
Passageiros: 2 Adultos
JOAO CARLOS DA SILVA, 01/02/1980, CPF 123.456.789-09, (81) 99999-8888, joao@example.com
MARIA OLIVEIRA SANTOS, 15/07/1985, CPF 987.654.321-00, (81) 98888-7777, maria@example.com
Voo de Recife (REC) para São Paulo (GRU)
"""

TWO_LINE_LAYOUT = """Passageiros Identificados
ANA PAULA FERREIRA
CPF: 111.444.777-35 Nasc: 10/03/1990
Hospedagem
Hotel Mar Azul
"""


def test_inline_layout_reads_every_field():
    passengers = extract_passengers(INLINE_LAYOUT)

    assert [p.full_name for p in passengers] == ["JOAO CARLOS DA SILVA", "MARIA OLIVEIRA SANTOS"]
    joao, maria = passengers
    assert joao.cpf == "12345678909"
    assert joao.birth_date == "1980-02-01"
    assert joao.phone == "(81) 99999-8888"
    assert joao.email == "joao@example.com"
    assert maria.cpf == "98765432100"
    assert maria.email == "maria@example.com"


def test_name_on_its_own_line_above_cpf():
    passengers = extract_passengers(TWO_LINE_LAYOUT)

    assert len(passengers) == 1
    assert passengers[0].full_name == "ANA PAULA FERREIRA"
    assert passengers[0].cpf == "11144477735"
    assert passengers[0].birth_date == "1990-03-10"


def test_company_is_never_a_passenger():
    text = "Passageiros\nACME VIAGENS LTDA, 01/02/1980, CPF 123.456.789-09\n"
    assert extract_passengers(text) == []


def test_reserved_by_and_expected_count():
    assert reserved_by(INLINE_LAYOUT) == "ACME VIAGENS LTDA"
    assert expected_passenger_count(INLINE_LAYOUT) == 2
    assert expected_passenger_count("Passageiros Identificados") is None


def test_company_detection_matches_whole_tokens():
    assert looks_like_company_name("ACME VIAGENS LTDA")
    assert looks_like_company_name("Transportes Brasil S.A.")
    assert looks_like_company_name("Reservado por Fulano")
    assert not looks_like_company_name("JOSE SANTOS")
    assert not looks_like_company_name("Mariana Mesquita")


def test_person_name_heuristics():
    assert is_probably_person_name("Ana Souza")
    assert is_probably_person_name("Bernardo")
    assert not is_probably_person_name("Adultos")
    assert not is_probably_person_name("Passageiros: 2 Adultos")
    assert not is_probably_person_name("Ana")
    assert sanitize_passenger_name("  JOAO  SILVA (BR4BET) ") == "JOAO SILVA"


def test_dom_banner_fixes_label_names():
    soup = parse_html(
        '<p class="fs-6"><span class="fw-semibold">JOAO CARLOS DA SILVA (BR4BET)</span>'
        " - 01/02/1980 - CPF 123.456.789-09</p>"
        '<p class="fs-6">sem documento</p>'
    )
    dom = extract_passengers_from_dom(soup)
    assert len(dom) == 1
    assert dom[0].cpf == "12345678909"
    assert dom[0].birth_date == "1980-02-01"

    text_side = [Passenger(full_name="Adultos", cpf="123.456.789-09", phone="81999998888")]
    merged = merge_passengers(text_side, dom)
    assert len(merged) == 1
    assert merged[0].full_name == "JOAO CARLOS DA SILVA"
    assert merged[0].birth_date == "1980-02-01"
    assert merged[0].phone == "81999998888"


def test_choose_prefers_the_extraction_meeting_the_expected_count():
    one = [Passenger(full_name="Ana Souza", cpf="1", birth_date="1990-01-01")]
    two = [Passenger(full_name="Ana", cpf="1"), Passenger(full_name="Bia", cpf="2")]

    assert choose_passengers(one, two, None) is two
    assert choose_passengers(one, [], None) is one
    assert choose_passengers(two, one, 2) is two


def test_simple_extractor_for_generic_pages():
    text = (
        "Confirmação da reserva\n"
        "Nome: Carlos Eduardo Lima CPF: 529.982.247-25 Nasc: 03/04/1975\n"
        "Ana Souza\n"
        "CPF 111.444.777-35\n"
    )
    passengers = extract_passengers_simple(text)

    assert [(p.full_name, p.cpf, p.birth_date) for p in passengers] == [
        ("Carlos Eduardo Lima", "52998224725", "1975-04-03"),
        ("Ana Souza", "11144477735", ""),
    ]


def test_banner_lines_keep_only_the_name():
    text = (
        "Passageiros: 2 Adultos\n"
        "JOAO CARLOS DA SILVA (BR4BET) - 01/02/1980 - CPF 123.456.789-09\n"
        "MARIA OLIVEIRA SANTOS - 15/07/1985 - CPF 987.654.321-00\n"
    )
    passengers = extract_passengers(text)

    assert [p.full_name for p in passengers] == ["JOAO CARLOS DA SILVA", "MARIA OLIVEIRA SANTOS"]


def test_dom_name_replaces_a_polluted_text_name():
    text_side = [Passenger(full_name="JOAO CARLOS DA SILVA (BR4BET) - 01/02/1980 -", cpf="12345678909")]
    dom = [Passenger(full_name="JOAO CARLOS DA SILVA (BR4BET)", cpf="12345678909", birth_date="1980-02-01")]

    [merged] = merge_passengers(text_side, dom)
    assert merged.full_name == "JOAO CARLOS DA SILVA"
    assert merged.birth_date == "1980-02-01"


def test_clean_name_check():
    assert is_clean_name("JOAO CARLOS DA SILVA")
    assert is_clean_name("Ana D'Ávila")
    assert not is_clean_name("JOAO CARLOS DA SILVA (BR4BET)")
    assert not is_clean_name("JOAO SILVA - 01/02/1980 -")
    assert not is_clean_name("Documento:")


def test_name_found_before_an_unlabelled_cpf():
    text = "Passageiros\nBEATRIZ MENDES ROCHA 529 982 247 25 Nasc: 03/04/1975\n"
    passengers = extract_passengers(text)

    assert [(p.full_name, p.cpf, p.birth_date) for p in passengers] == [
        ("BEATRIZ MENDES ROCHA", "52998224725", "1975-04-03"),
    ]


def test_nameless_cpf_is_kept_when_a_count_is_announced():
    block = (
        "JOAO CARLOS DA SILVA, 01/02/1980, CPF 123.456.789-09\n"
        "CPF: 987.654.321-00 (81) 98888-7777\n"
    )

    passengers = extract_passengers("Passageiros: 2 Adultos\n" + block)
    assert [(p.full_name, p.cpf) for p in passengers] == [
        ("JOAO CARLOS DA SILVA", "12345678909"),
        ("", "98765432100"),
    ]
    assert passengers[1].phone == "(81) 98888-7777"

    passengers = extract_passengers("Passageiros\n" + block)
    assert [p.cpf for p in passengers] == ["12345678909"]


def test_one_word_name_is_completed_from_another_mention_of_the_cpf():
    text = (
        "Passageiros\n"
        "Bernardo\n"
        "529.982.247-25\n"
        "Titular: BERNARDO COSTA LIMA, CPF 529/982/247/25\n"
    )
    passengers = extract_passengers(text)

    assert [(p.full_name, p.cpf) for p in passengers] == [("BERNARDO COSTA LIMA", "52998224725")]


def test_long_pages_stay_fast():
    filler = " ".join(f"Palavra{chr(65 + i % 26)}" for i in range(15000))
    text = filler + "\n" + "=" * 200 + "\nJOAO CARLOS DA SILVA CPF: 123.456.789-09\n"

    start = time.perf_counter()
    passengers = extract_passengers(text)

    assert time.perf_counter() - start < 5
    assert [p.full_name for p in passengers] == ["JOAO CARLOS DA SILVA"]
