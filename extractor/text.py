"""Text helpers shared by every page extractor.

Reservation pages are parsed as plain text, so the way HTML is flattened
matters: passenger lines must stay on their own lines, and invisible
characters must not split the tokens the regexes look for.
"""
from __future__ import annotations

import html as html_lib
import re
from datetime import date, datetime

from bs4 import BeautifulSoup, Comment, Doctype, NavigableString, Tag

BLOCK_TAGS = {
    "p", "div", "section", "article", "header", "footer", "main", "br",
    "li", "ul", "ol", "table", "thead", "tbody", "tfoot", "tr", "td", "th",
    "h1", "h2", "h3", "h4", "h5", "h6",
}
SKIP_TAGS = {"script", "style", "noscript", "template"}

_ZERO_WIDTH = re.compile("[\u200b-\u200d\ufeff]")
_BR_DATE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
_MONEY_BRL = re.compile(r"R\$\s*([\d.]+,\d{2})", re.IGNORECASE)


def normalize_text(s: str) -> str:
    s = (s or "").replace("\u00a0", " ")
    s = _ZERO_WIDTH.sub("", s)
    s = re.sub(r"[ \t]+", " ", s)
    s = s.replace("\r", "")
    s = re.sub(r" *\n *", "\n", s)
    s = re.sub(r"\n{3,}", "\n\n", s)
    return s.strip()


def html_to_text(html: str) -> str:
    """Flatten raw HTML with regexes only.

    Used next to the DOM walk: some layouts hide parts of the passenger
    block from the parsed tree but not from the markup.
    """
    without_scripts = re.sub(r"<script[\s\S]*?</script>", " ", html or "", flags=re.IGNORECASE)
    without_scripts = re.sub(r"<style[\s\S]*?</style>", " ", without_scripts, flags=re.IGNORECASE)

    with_newlines = re.sub(r"<br\s*/?>", "\n", without_scripts, flags=re.IGNORECASE)
    with_newlines = re.sub(
        r"</(div|p|li|tr|table|section|article|header|footer|main|h\d)\s*>",
        "\n",
        with_newlines,
        flags=re.IGNORECASE,
    )
    with_newlines = re.sub(
        r"<(div|p|li|tr|table|section|article|header|footer|main|h\d)\b[^>]*>",
        "\n",
        with_newlines,
        flags=re.IGNORECASE,
    )

    stripped = re.sub(r"<[^>]+>", " ", with_newlines)
    return normalize_text(html_lib.unescape(stripped))


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def dom_text_with_newlines(soup: BeautifulSoup) -> str:
    """Text of the document body with a newline around every block element."""
    root = soup.body or soup
    parts: list[str] = []

    def walk(node) -> None:
        if isinstance(node, (Comment, Doctype)):
            return
        if isinstance(node, NavigableString):
            parts.append(str(node))
            return
        if isinstance(node, Tag):
            if node.name in SKIP_TAGS:
                return
            block = node.name in BLOCK_TAGS
            if block:
                parts.append("\n")
            for child in node.children:
                walk(child)
            if block:
                parts.append("\n")

    walk(root)
    return "".join(parts)


def parse_money_brl(text: str) -> float | None:
    """First ``R$ 1.234,56`` amount in the text."""
    m = _MONEY_BRL.search(text or "")
    if not m:
        return None
    try:
        return float(m.group(1).replace(".", "").replace(",", "."))
    except ValueError:
        return None


def br_to_iso(dmy: str) -> str:
    """``31/12/2024`` -> ``2024-12-31``; anything else -> ``""``."""
    m = _BR_DATE.match((dmy or "").strip())
    if not m:
        return ""
    return f"{m.group(3)}-{m.group(2)}-{m.group(1)}"


def parse_br_date(dmy: str | None) -> date | None:
    s = (dmy or "").strip()
    if not _BR_DATE.match(s):
        return None
    try:
        return datetime.strptime(s, "%d/%m/%Y").date()
    except ValueError:
        return None


def format_br_date(d: date | None) -> str:
    return d.strftime("%d/%m/%Y") if d else ""


def clean_spaces(s: str) -> str:
    return re.sub(r"\s+", " ", s or "").strip()


def only_digits(s: str) -> str:
    return re.sub(r"\D", "", s or "")


def strip_invisible(s: str) -> str:
    """NBSP to space, zero-width characters and carriage returns removed."""
    s = (s or "").replace("\u00a0", " ")
    return _ZERO_WIDTH.sub("", s).replace("\r", "")
