import pytest

from config import settings
import db

IDDAS_HTML = """
<html><head><title>Reserva</title><script>var x = "CPF 000.000.000-00";</script></head>
<body>
<div class="header">Reservado por ACME VIAGENS LTDA</div>
<div>Total da reserva: R$ 3.250,90</div>
<div>Passageiros: 2 Adultos</div>
<p>JOAO CARLOS DA SILVA, 01/02/1980, CPF 123.456.789-09, (81) 99999-8888, joao@example.com</p>
<p>MARIA OLIVEIRA SANTOS, 15/07/1985, CPF 987.654.321-00</p>
<div>Voo de Recife (REC) para São Paulo (GRU)</div>
<div>GOL Voo 1234</div>
<div>Partida 10/03/2025 08h30</div>
<div>Chegada 10/03/2025 11h45</div>
<div>Localizador ABC123</div>
<div>Voo de São Paulo (GRU) para Recife (REC)</div>
<div>Voo 4321</div>
<div>Partida 15/03/2025 18h00</div>
<div>Chegada 15/03/2025 21h10</div>
<div>Localizador XYZ789</div>
</body></html>
"""


@pytest.fixture
def iddas_html() -> str:
    return IDDAS_HTML


@pytest.fixture
async def temp_db(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "db_path", str(tmp_path / "bookings.db"))
    await db.init_db()
    yield db
