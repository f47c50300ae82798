from __future__ import annotations

import csv
import io

from models import Booking, SavingsLine, SavingsReport

MONTHS_PT = [
    "Janeiro", "Fevereiro", "Março", "Abril", "Maio", "Junho",
    "Julho", "Agosto", "Setembro", "Outubro", "Novembro", "Dezembro",
]


def savings(paid: float | None, original: float | None) -> tuple[float, float]:
    """``(amount saved, percentage of the original price)``."""
    paid = paid or 0.0
    original = original or 0.0
    amount = original - paid
    pct = round(amount / original * 100, 1) if original > 0 else 0.0
    return round(amount, 2), pct


def monthly_report(bookings: list[Booking], year: int, month: int) -> SavingsReport:
    """Bookings created in the given month, newest first, with totals."""
    if not 1 <= month <= 12:
        raise ValueError("Mês inválido")

    selected = [b for b in bookings if b.created_at.year == year and b.created_at.month == month]
    selected.sort(key=lambda b: b.created_at, reverse=True)

    lines = []
    for b in selected:
        amount, _ = savings(b.total_paid, b.total_original)
        lines.append(SavingsLine(
            booking_id=b.id,
            name=b.name,
            total_paid=b.total_paid or 0.0,
            total_original=b.total_original or 0.0,
            savings=amount,
            created_at=b.created_at,
        ))

    total_paid = sum(line.total_paid for line in lines)
    total_original = sum(line.total_original for line in lines)
    total_savings, pct = savings(total_paid, total_original)
    return SavingsReport(
        year=year,
        month=month,
        lines=lines,
        total_paid=round(total_paid, 2),
        total_original=round(total_original, 2),
        total_savings=total_savings,
        savings_percentage=pct,
    )


def report_to_csv(report: SavingsReport) -> str:
    """Semicolon-separated export, as spreadsheet tools in pt-BR expect."""
    output = io.StringIO()
    writer = csv.writer(output, delimiter=";", lineterminator="\n")
    rows = [["Reserva", "Valor Pago", "Valor Original", "Economia", "Data"]]
    for line in report.lines:
        rows.append([
            line.name,
            f"{line.total_paid:.2f}",
            f"{line.total_original:.2f}",
            f"{line.savings:.2f}",
            line.created_at.strftime("%d/%m/%Y"),
        ])
    rows.append([])
    rows.append([
        "TOTAIS",
        f"{report.total_paid:.2f}",
        f"{report.total_original:.2f}",
        f"{report.total_savings:.2f}",
        "",
    ])
    rows.append(["Economia (%)", f"{report.savings_percentage:.1f}%", "", "", ""])
    writer.writerows(rows)
    return output.getvalue()


def report_filename(year: int, month: int) -> str:
    return f"relatorio-economia-{MONTHS_PT[month - 1]}-{year}.csv"
