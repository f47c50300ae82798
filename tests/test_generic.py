import pytest

from config import settings
from extractor import dispatch, generic
from extractor.errors import ExtractionError
from extractor.page_fetcher import FetchedPage
from models import ExtractionResult, Flight, Hotel

CONFIRMATION_PAGE = """
<html><body>
<h1>Confirmação da reserva</h1>
<p>Passageiro: Carlos Eduardo Lima CPF: 529.982.247-25</p>
<div>Voo de Recife (REC) para Natal (NAT)</div>
<div>Partida 20/04/2025 07h15</div>
<div>Localizador QWE123</div>
</body></html>
"""


def _serve(monkeypatch, page: FetchedPage):
    monkeypatch.setattr(generic, "fetch_html", lambda url, attempt=1: page)


def test_generic_page(monkeypatch):
    url = "https://viagens.example.com/voucher/1"
    _serve(monkeypatch, FetchedPage(ok=True, status=200, url=url, html=CONFIRMATION_PAGE))
    result = generic.extract_booking_from_link(url)

    assert result.extractor == "generic"
    assert [(p.full_name, p.cpf) for p in result.passengers] == [("Carlos Eduardo Lima", "52998224725")]
    assert result.main_passenger_name == "Carlos Eduardo Lima"
    assert len(result.flights) == 1
    assert result.flights[0].locator == "QWE123"
    assert result.suggested_title == "REC → NAT (20/04/2025)"
    assert result.hotels == []


def test_generic_rejects_iddas_and_empty_urls():
    with pytest.raises(ExtractionError, match="URL é obrigatória"):
        generic.extract_booking_from_link("  ")
    with pytest.raises(ExtractionError, match="Link do IDDAS detectado"):
        generic.extract_booking_from_link("https://agencia.iddas.com.br/reserva/1")


def test_generic_http_error(monkeypatch):
    _serve(monkeypatch, FetchedPage(ok=False, status=404, url="https://x.example.com"))
    with pytest.raises(ExtractionError, match=r"HTTP 404"):
        generic.extract_booking_from_link("https://x.example.com")


def test_suggested_title():
    assert generic.suggested_title([], []) == ""
    assert generic.suggested_title([Flight(origin="Recife", destination="Natal")], []) == "Recife → Natal"
    hotel = Hotel(hotel_name="Mar Azul", check_in="10/03/2025", check_out="12/03/2025")
    assert generic.suggested_title([], [hotel]) == "Mar Azul (10/03/2025 a 12/03/2025)"


@pytest.fixture
def routes(monkeypatch):
    """Replace every extractor with one that records its name."""
    called = []

    def make(name):
        def fake(url, *args):
            called.append(name)
            return ExtractionResult(source_url=url, extractor=name)
        return fake

    async def fake_headless(url, session):
        called.append("iddas_headless")
        return ExtractionResult(source_url=url, extractor="iddas_headless")

    monkeypatch.setattr(dispatch, "extract_iddas_booking", make("iddas"))
    monkeypatch.setattr(dispatch, "extract_iddas_booking_headless", fake_headless)
    monkeypatch.setattr(dispatch, "extract_with_llm", make("llm"))
    monkeypatch.setattr(dispatch, "extract_booking_from_link", make("generic"))
    monkeypatch.setattr(settings, "firecrawl_api_key", "")
    monkeypatch.setattr(settings, "anthropic_api_key", "")
    return called


async def test_dispatch_validates_urls(routes):
    with pytest.raises(ExtractionError, match="URL é obrigatória"):
        await dispatch.extract_from_url("")
    with pytest.raises(ExtractionError, match="URL inválida"):
        await dispatch.extract_from_url("agencia.iddas.com.br/reserva/1")
    with pytest.raises(ExtractionError, match="URL inválida"):
        await dispatch.extract_from_url("ftp://files.example.com/reserva")
    assert routes == []


async def test_dispatch_routes(routes, monkeypatch):
    iddas_url = "https://agencia.iddas.com.br/reserva/1"

    assert (await dispatch.extract_from_url(iddas_url)).extractor == "iddas"
    assert (await dispatch.extract_from_url(iddas_url, headless_session=object())).extractor == "iddas_headless"
    assert (await dispatch.extract_from_url("https://other.example.com/r")).extractor == "generic"

    monkeypatch.setattr(settings, "firecrawl_api_key", "fc-key")
    monkeypatch.setattr(settings, "anthropic_api_key", "sk-key")
    assert dispatch.llm_configured()
    assert (await dispatch.extract_from_url("https://other.example.com/r")).extractor == "llm"
    # IDDAS links never go to the LLM
    assert (await dispatch.extract_from_url(iddas_url)).extractor == "iddas"

    assert routes == ["iddas", "iddas_headless", "generic", "llm", "iddas"]
