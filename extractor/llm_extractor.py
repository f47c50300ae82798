"""Firecrawl + Claude structured extraction.

The page is scraped with Firecrawl and handed to Claude with a single
forced tool, so the answer always arrives as tool input that matches the
booking schema instead of free text that has to be parsed.
"""
from __future__ import annotations

import base64
import logging
import time

from config import settings
from models import ExtractionResult
from extractor.errors import ExtractionError
from pipeline.normalize import normalize_payload

logger = logging.getLogger(__name__)

BOOKING_PROMPT = """Você é um extrator de dados de reservas de agências de viagem. Analise o conteúdo da página e extraia TODOS os produtos encontrados: voos, hotéis, aluguéis de carro e transfers.

IMPORTANTE: Também extraia os DADOS DOS PASSAGEIROS/FUNCIONÁRIOS. Eles geralmente aparecem no formato:
NOME COMPLETO, DATA DE NASCIMENTO, CPF, passaporte XX11111, TELEFONE, E-MAIL

Para PASSAGEIROS, extraia sempre nome completo, data de nascimento (YYYY-MM-DD) e CPF (apenas os 11 dígitos).
Passaporte, telefone e e-mail são opcionais: use string vazia quando não houver.
SEMPRE inclua TODOS os passageiros que tenham pelo menos NOME, CPF e DATA DE NASCIMENTO.
A empresa que fez a reserva ("Reservado por") NÃO é passageiro.

Datas de voos, hotéis, carros e transfers no formato DD/MM/YYYY e horários no formato HH:mm.
Para voos, 'outbound' é ida e 'return' é volta; stops é o número de paradas (0 para voo direto).

Também extraia um título sugerido para a reserva baseado no destino/período.
Se não conseguir extrair algum campo, use string vazia ou 0 para números."""

IMAGE_PROMPT = """Você é um extrator de dados de reservas de voo. Analise a imagem e extraia TODAS as informações de voo encontradas (pode haver voo de ida e volta).
Datas no formato DD/MM/YYYY, horários no formato HH:mm, duração no formato XXhYY.
Identifique a companhia aérea pelo logo ou nome (Azul, LATAM, GOL).
Se não conseguir extrair algum campo, use string vazia ou 0 para números."""


def _strings(*names: str) -> dict:
    return {name: {"type": "string"} for name in names}


FLIGHT_SCHEMA = {
    "type": "object",
    "properties": {
        **_strings(
            "locator", "purchaseNumber", "airline", "flightNumber",
            "origin", "originCode", "destination", "destinationCode",
            "departureDate", "departureTime", "arrivalDate", "arrivalTime",
            "duration", "passengerName",
        ),
        "stops": {"type": "number"},
        "type": {"type": "string", "enum": ["outbound", "return", "internal"]},
    },
}

BOOKING_TOOL = {
    "name": "extract_booking",
    "description": "Extrai todos os dados de uma reserva completa incluindo passageiros",
    "input_schema": {
        "type": "object",
        "properties": {
            "suggestedTitle": {"type": "string", "description": "Título sugerido para a reserva"},
            "mainPassengerName": {"type": "string", "description": "Nome do passageiro principal"},
            "passengers": {
                "type": "array",
                "description": "Lista de passageiros/funcionários encontrados na reserva",
                "items": {
                    "type": "object",
                    "properties": {
                        "fullName": {"type": "string", "description": "Nome completo do passageiro"},
                        "birthDate": {"type": "string", "description": "Data de nascimento (YYYY-MM-DD)"},
                        "cpf": {"type": "string", "description": "CPF apenas números"},
                        "passport": {"type": "string", "description": "Número do passaporte"},
                        "passportExpiry": {"type": "string", "description": "Validade do passaporte (YYYY-MM-DD)"},
                        "phone": {"type": "string", "description": "Telefone com DDD"},
                        "email": {"type": "string", "description": "E-mail"},
                    },
                    "required": ["fullName"],
                },
            },
            "flights": {"type": "array", "items": FLIGHT_SCHEMA},
            "hotels": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        **_strings("locator", "hotelName", "checkIn", "checkOut", "guestName"),
                        "nights": {"type": "number"},
                        "rooms": {"type": "number"},
                        "breakfast": {"type": "boolean"},
                    },
                },
            },
            "carRentals": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": _strings(
                        "locator", "company", "carModel", "pickupLocation",
                        "pickupDate", "pickupTime", "returnLocation",
                        "returnDate", "returnTime", "driverName",
                    ),
                },
            },
            "transfers": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": _strings(
                        "locator", "type", "origin", "destination",
                        "date", "time", "passengerName", "vehicleType",
                    ),
                },
            },
        },
        "required": ["flights", "hotels", "carRentals", "transfers", "passengers"],
    },
}

FLIGHTS_TOOL = {
    "name": "extract_flights",
    "description": "Extrai dados de voos de uma imagem de reserva",
    "input_schema": {
        "type": "object",
        "properties": {"flights": {"type": "array", "items": FLIGHT_SCHEMA}},
        "required": ["flights"],
    },
}


def scrape_page(url: str) -> tuple[str, str]:
    """Scrape a URL with Firecrawl; returns ``(markdown, html)``."""
    from firecrawl import Firecrawl

    if not settings.firecrawl_api_key:
        raise ExtractionError("Firecrawl não está configurado", 500)

    app = Firecrawl(api_key=settings.firecrawl_api_key)
    try:
        doc = app.scrape(
            url,
            formats=["markdown", "html"],
            only_main_content=True,
            wait_for=settings.firecrawl_wait_ms,
        )
    except Exception as e:
        logger.warning("Firecrawl scrape failed for %s: %s", url, e)
        raise ExtractionError(f"Erro ao acessar a página: {e}", 502) from e

    markdown = (doc.markdown or "") if doc else ""
    html = (doc.html or "") if doc else ""
    if not markdown and not html:
        raise ExtractionError("Não foi possível extrair conteúdo da página")
    return markdown, html


def _call_tool(system: str, content: list | str, tool: dict, failure_message: str) -> dict:
    """Run one forced tool call and return the tool input."""
    import anthropic

    if not settings.anthropic_api_key:
        raise ExtractionError("ANTHROPIC_API_KEY não está configurada", 500)

    client = anthropic.Anthropic(api_key=settings.anthropic_api_key)
    try:
        message = client.messages.create(
            model=settings.llm_model,
            max_tokens=settings.llm_max_tokens,
            system=system,
            tools=[tool],
            tool_choice={"type": "tool", "name": tool["name"]},
            messages=[{"role": "user", "content": content}],
        )
    except anthropic.RateLimitError as e:
        raise ExtractionError(
            "Limite de requisições atingido. Tente novamente em alguns segundos.", 429
        ) from e
    except anthropic.APIStatusError as e:
        if e.status_code == 402:
            raise ExtractionError("Créditos insuficientes. Por favor, adicione créditos.", 402) from e
        logger.warning("Anthropic API error %s: %s", e.status_code, e)
        raise ExtractionError(failure_message, 500) from e
    except anthropic.APIConnectionError as e:
        logger.warning("Anthropic API unreachable: %s", e)
        raise ExtractionError(failure_message, 500) from e

    for block in message.content:
        if block.type == "tool_use" and block.name == tool["name"]:
            return dict(block.input)

    raise ExtractionError("Não foi possível extrair dados da página")


def extract_with_llm(url: str) -> ExtractionResult:
    """Scrape ``url`` and extract the whole booking with one tool call.

    Blocking; call through ``asyncio.to_thread`` from async code.
    """
    start = time.monotonic()
    markdown, html = scrape_page(url)
    logger.info("Scraped %s: %d chars of markdown", url, len(markdown))

    user_text = (
        "Extraia todos os dados de reserva (voos, hotéis, carros, transfers) desta página:"
        f"\n\n{markdown}\n\nHTML:\n{html[:settings.llm_html_chars]}"
    )
    data = _call_tool(BOOKING_PROMPT, user_text, BOOKING_TOOL, "Erro ao processar dados da página")

    result = normalize_payload(data, source_url=url, extractor="llm")
    result.duration_seconds = round(time.monotonic() - start, 2)
    return result


def extract_flights_from_image(image: bytes, mime_type: str = "image/png") -> ExtractionResult:
    """Flights from a screenshot of a booking confirmation."""
    if not image:
        raise ExtractionError("Imagem é obrigatória")

    start = time.monotonic()
    content = [
        {
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": mime_type or "image/png",
                "data": base64.standard_b64encode(image).decode("ascii"),
            },
        },
        {"type": "text", "text": "Extraia todos os dados de voo desta imagem de confirmação de reserva."},
    ]
    data = _call_tool(IMAGE_PROMPT, content, FLIGHTS_TOOL, "Erro ao processar imagem")

    result = normalize_payload(data, extractor="image")
    result.duration_seconds = round(time.monotonic() - start, 2)
    return result
