import argparse
import asyncio
import logging
import os
import sys

from config import settings
from extractor.browser_session import BrowserSession
from extractor.dispatch import extract_from_url
from extractor.errors import ExtractionError
from extractor.iddas import build_iddas_result, parse_iddas_html
from pipeline.batch_runner import run_batch
from pipeline.csv_processor import parse_links_csv, results_to_csv


async def _extract_one(url: str, headless: bool):
    if headless:
        async with BrowserSession() as browser:
            return await extract_from_url(url, headless_session=browser)
    return await extract_from_url(url)


def main():
    parser = argparse.ArgumentParser(
        prog="booking-extractor",
        description="Extract passengers, flights, hotels and car rentals from reservation pages",
    )
    parser.add_argument(
        "target", nargs="?",
        help="Reservation URL, or path to a CSV of links (columns: url; optional: company, title)",
    )
    parser.add_argument(
        "--html", help="Parse a saved IDDAS reservation page instead of fetching one"
    )
    parser.add_argument(
        "--headless", action="store_true",
        help="Render IDDAS pages with Playwright instead of plain HTTP",
    )
    parser.add_argument(
        "-o", "--output", default="results.csv", help="Output CSV path (batch mode)"
    )
    parser.add_argument(
        "-c", "--concurrent", type=int, default=settings.max_concurrent_extractions,
        help="Max concurrent extractions",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log extractor details"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if args.html:
        with open(args.html, "r", encoding="utf-8") as f:
            page = parse_iddas_html(f.read())
        result = build_iddas_result(page, args.target or "")
        print(result.model_dump_json(indent=2))
        return

    if not args.target:
        parser.error("Provide a reservation URL, a CSV file, or --html")
        return

    if not os.path.isfile(args.target):
        url = args.target
        if not url.startswith(("http://", "https://")):
            url = f"https://{url}"
        try:
            result = asyncio.run(_extract_one(url, args.headless))
        except ExtractionError as e:
            print(f"Error: {e.message}", file=sys.stderr)
            sys.exit(1)
        print(result.model_dump_json(indent=2))
        return

    with open(args.target, "r", encoding="utf-8-sig") as f:
        links = parse_links_csv(f.read())

    if not links:
        print("No valid links found.")
        sys.exit(1)

    total = len(links)
    print(f"Extracting {total} reservation links...\n")

    def progress(index, url, status):
        if status == "extracting":
            print(f"  [{index + 1}/{total}] Extracting: {url}")
        elif status == "done":
            print(f"  [{index + 1}/{total}] Done: {url}")

    batch = asyncio.run(
        run_batch(
            links,
            max_concurrent=args.concurrent,
            headless=args.headless,
            on_progress=progress,
        )
    )

    with open(args.output, "w", encoding="utf-8", newline="") as f:
        f.write(results_to_csv(batch))

    print(f"\n{'=' * 50}")
    print(f"Results saved to {args.output}")
    print(f"  Total links:   {batch.total_links}")
    print(f"  Extracted:     {batch.extracted}")
    print(f"  Failed:        {batch.failed_count}")
    print(f"  Passengers:    {batch.passenger_count}")
    print(f"  Flights:       {batch.flight_count}")
    print(f"  Hotels:        {batch.hotel_count}")
    print(f"{'=' * 50}")

    for r in batch.results:
        status = "FAILED" if r.errors else "OK"
        line = f"  {status:8s} | {r.source_url} | {r.suggested_title}"
        if r.errors:
            line += f" | {'; '.join(r.errors)}"
        print(line)


if __name__ == "__main__":
    main()
