import json
import sys

import pytest

import cli
from extractor.errors import ExtractionError
from models import ExtractionResult
from pipeline.batch_runner import summarize


def test_saved_page(tmp_path, monkeypatch, capsys, iddas_html):
    page = tmp_path / "reserva.html"
    page.write_text(iddas_html, encoding="utf-8")
    monkeypatch.setattr(sys, "argv", ["booking-extractor", "--html", str(page)])

    cli.main()

    result = json.loads(capsys.readouterr().out)
    assert result["reserved_by"] == "ACME VIAGENS LTDA"
    assert len(result["passengers"]) == 2


def test_single_url_error_exits(monkeypatch, capsys):
    async def failing(url, headless):
        raise ExtractionError("URL inválida")

    monkeypatch.setattr(cli, "_extract_one", failing)
    monkeypatch.setattr(sys, "argv", ["booking-extractor", "https://x.example.com/r"])

    with pytest.raises(SystemExit) as exc:
        cli.main()
    assert exc.value.code == 1
    assert "URL inválida" in capsys.readouterr().err


def test_batch_writes_csv(tmp_path, monkeypatch, capsys):
    links = tmp_path / "links.csv"
    links.write_text("url\nhttps://a.example.com\nhttps://b.example.com\n", encoding="utf-8")
    output = tmp_path / "out.csv"

    async def fake_batch(links, max_concurrent=None, headless=False, on_progress=None):
        return summarize([ExtractionResult(source_url=link["url"], extractor="generic") for link in links])

    monkeypatch.setattr(cli, "run_batch", fake_batch)
    monkeypatch.setattr(sys, "argv", ["booking-extractor", str(links), "-o", str(output)])

    cli.main()

    assert len(output.read_text(encoding="utf-8").strip().splitlines()) == 3
    assert "Extracted:     2" in capsys.readouterr().out
