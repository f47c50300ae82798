from types import SimpleNamespace

import anthropic
import firecrawl
import httpx
import pytest

from config import settings
from extractor import llm_extractor
from extractor.errors import ExtractionError


class FakeMessages:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.fixture
def claude(monkeypatch):
    """Install a fake Anthropic client; set ``.outcome`` to a message or an error."""
    messages = FakeMessages(None)
    monkeypatch.setattr(settings, "anthropic_api_key", "sk-test")
    monkeypatch.setattr(anthropic, "Anthropic", lambda api_key: SimpleNamespace(messages=messages))
    return messages


@pytest.fixture
def scraped(monkeypatch):
    class FakeFirecrawl:
        def __init__(self, api_key):
            self.api_key = api_key

        def scrape(self, url, **kwargs):
            return SimpleNamespace(markdown="# Reserva\nVoo 1234", html="<p>Voo 1234</p>")

    monkeypatch.setattr(settings, "firecrawl_api_key", "fc-test")
    monkeypatch.setattr(firecrawl, "Firecrawl", FakeFirecrawl)


def _tool_message(name, data):
    return SimpleNamespace(content=[
        SimpleNamespace(type="text", text="ok"),
        SimpleNamespace(type="tool_use", name=name, input=data),
    ])


def _status_error(cls, status):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return cls("error", response=httpx.Response(status, request=request), body=None)


def test_extract_with_llm(claude, scraped):
    claude.outcome = _tool_message("extract_booking", {
        "suggestedTitle": "REC → GRU",
        "passengers": [{"fullName": "Ana Souza", "cpf": "11144477735", "birthDate": "1990-03-10"}],
        "flights": [{"flightNumber": "1234", "airline": "LATAM"}],
        "hotels": [],
        "carRentals": [],
        "transfers": [{"type": "aeroporto", "origin": "GRU", "destination": "Hotel"}],
    })

    result = llm_extractor.extract_with_llm("https://x.example.com/r/1")

    assert result.extractor == "llm"
    assert result.source_url == "https://x.example.com/r/1"
    assert result.main_passenger_name == "Ana Souza"
    assert result.flights[0].airline == "LATAM"
    assert result.transfers[0].type == "aeroporto"

    [call] = claude.calls
    assert call["tool_choice"] == {"type": "tool", "name": "extract_booking"}
    assert "# Reserva" in call["messages"][0]["content"]


def test_scrape_requires_key(monkeypatch):
    monkeypatch.setattr(settings, "firecrawl_api_key", "")
    with pytest.raises(ExtractionError) as exc:
        llm_extractor.scrape_page("https://x.example.com")
    assert exc.value.status_code == 500


def test_rate_limit(claude, scraped):
    claude.outcome = _status_error(anthropic.RateLimitError, 429)
    with pytest.raises(ExtractionError) as exc:
        llm_extractor.extract_with_llm("https://x.example.com")
    assert exc.value.status_code == 429
    assert "Limite de requisições" in exc.value.message


def test_payment_required(claude, scraped):
    claude.outcome = _status_error(anthropic.APIStatusError, 402)
    with pytest.raises(ExtractionError) as exc:
        llm_extractor.extract_with_llm("https://x.example.com")
    assert exc.value.status_code == 402


def test_no_tool_call(claude, scraped):
    claude.outcome = SimpleNamespace(content=[SimpleNamespace(type="text", text="não sei")])
    with pytest.raises(ExtractionError, match="Não foi possível extrair dados da página"):
        llm_extractor.extract_with_llm("https://x.example.com")


def test_flights_from_image(claude):
    claude.outcome = _tool_message("extract_flights", {
        "flights": [
            {"flightNumber": "3010", "originCode": "REC", "destinationCode": "GRU"},
            {"flightNumber": "3011", "originCode": "GRU", "destinationCode": "REC"},
        ],
    })

    result = llm_extractor.extract_flights_from_image(b"\x89PNG fake", "image/png")

    assert result.extractor == "image"
    assert [f.type.value for f in result.flights] == ["outbound", "return"]
    image_block = claude.calls[0]["messages"][0]["content"][0]
    assert image_block["source"]["media_type"] == "image/png"


def test_image_required():
    with pytest.raises(ExtractionError, match="Imagem é obrigatória"):
        llm_extractor.extract_flights_from_image(b"")
