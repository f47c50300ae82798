from __future__ import annotations

import csv
import io

from models import BatchResult


URL_ALIASES = [
    "url", "link", "reservation url", "booking url", "reserva", "link da reserva",
    "site", "website",
]
COMPANY_ALIASES = [
    "company_id", "company", "empresa", "cliente", "company id",
]
TITLE_ALIASES = [
    "title", "name", "titulo", "título", "nome", "reserva nome",
]


def _find_column(fieldnames: list[str], aliases: list[str]) -> str | None:
    """Find the first matching column name from a list of aliases."""
    for alias in aliases:
        if alias in fieldnames:
            return alias
    return None


def parse_links_csv(content: str | bytes) -> list[dict]:
    """Parse a CSV of reservation links with flexible column names.

    A file with a single unnamed column is read as one URL per line.
    """
    if isinstance(content, bytes):
        content = content.decode("utf-8-sig")  # Handle BOM

    sample = content[:2048]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=",;\t")
    except csv.Error:
        dialect = csv.excel

    reader = csv.DictReader(io.StringIO(content), dialect=dialect)
    if reader.fieldnames:
        reader.fieldnames = [f.strip().lower() for f in reader.fieldnames]
    fieldnames = reader.fieldnames or []

    url_col = _find_column(fieldnames, URL_ALIASES)
    company_col = _find_column(fieldnames, COMPANY_ALIASES)
    title_col = _find_column(fieldnames, TITLE_ALIASES)

    rows: list[tuple[str, str, str]] = []
    if url_col is None:
        # headerless file: every non-empty line is a link
        for line in content.splitlines():
            first = line.strip().split(dialect.delimiter)[0].strip()
            if "." in first:
                rows.append((first, "", ""))
    else:
        for row in reader:
            rows.append((
                (row.get(url_col) or "").strip(),
                (row.get(company_col) or "").strip() if company_col else "",
                (row.get(title_col) or "").strip() if title_col else "",
            ))

    links = []
    for url, company_id, title in rows:
        if not url:
            continue
        if not url.startswith(("http://", "https://")):
            url = f"https://{url}"
        links.append({"url": url, "company_id": company_id, "title": title})
    return links


def results_to_csv(batch: BatchResult) -> str:
    """Convert batch results to CSV string, one row per link."""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([
        "source_url",
        "extractor",
        "suggested_title",
        "main_passenger_name",
        "reserved_by",
        "total",
        "passenger_count",
        "flight_count",
        "hotel_count",
        "car_rental_count",
        "locators",
        "duration_seconds",
        "errors",
    ])

    for r in batch.results:
        locators = sorted({f.locator for f in r.flights if f.locator})
        writer.writerow([
            r.source_url,
            r.extractor,
            r.suggested_title,
            r.main_passenger_name,
            r.reserved_by,
            f"{r.total:.2f}" if r.total is not None else "",
            len(r.passengers),
            len(r.flights),
            len(r.hotels),
            len(r.car_rentals),
            "; ".join(locators),
            f"{r.duration_seconds:.1f}",
            "; ".join(r.errors) if r.errors else "",
        ])

    return output.getvalue()
