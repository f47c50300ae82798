from datetime import date

from extractor.text import (
    br_to_iso,
    dom_text_with_newlines,
    html_to_text,
    normalize_text,
    parse_br_date,
    parse_html,
    parse_money_brl,
    strip_invisible,
)


def test_normalize_text_collapses_whitespace_and_invisible_chars():
    raw = "  JOAO\u00a0DA\u200b SILVA \r\n\n\n\n  CPF   123  "
    assert normalize_text(raw) == "JOAO DA SILVA\n\nCPF 123"


def test_strip_invisible_keeps_newlines():
    assert strip_invisible("a\u00a0b\ufeff\r\nc") == "a b\nc"


def test_html_to_text_puts_blocks_on_their_own_lines():
    html = "<div>Passageiros</div><p>ANA &amp; BIA<br>CPF 1</p><script>ignored()</script>"
    assert html_to_text(html) == "Passageiros\n\nANA & BIA\nCPF 1"


def test_dom_text_skips_scripts_and_breaks_blocks():
    soup = parse_html("<body><div>Um</div><span>dois</span><script>tres</script><p>quatro</p></body>")
    text = normalize_text(dom_text_with_newlines(soup))
    assert text == "Um\ndois\nquatro"


def test_parse_money_brl():
    assert parse_money_brl("Total: R$ 1.234,56 pago") == 1234.56
    assert parse_money_brl("r$99,90") == 99.9
    assert parse_money_brl("sem valor") is None


def test_br_dates():
    assert br_to_iso("31/12/2024") == "2024-12-31"
    assert br_to_iso("2024-12-31") == ""
    assert parse_br_date("05/03/2025") == date(2025, 3, 5)
    assert parse_br_date("31/02/2025") is None
    assert parse_br_date(None) is None
