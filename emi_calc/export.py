"""Export helpers for amortization schedules.

Schedules can be written to JSON, CSV, an Excel workbook (via ``openpyxl``)
or a printable PDF report (via ``reportlab``), optionally embedding a stacked
bar chart rendered with ``matplotlib``. Every exporter receives the finished
schedule together with the loan parameters it was generated from; nothing is
kept between calls.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from datetime import date
from pathlib import Path
from typing import IO, Any, BinaryIO, Dict, List, Optional, Union

from matplotlib.figure import Figure
from openpyxl import Workbook
from openpyxl.styles import Font
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .data_models import LoanInput, PeriodRow
from .engine import chart_series, summarize_schedule
from .formatter import format_currency, format_period_label

logger = logging.getLogger(__name__)

SCHEDULE_HEADERS = [
    "Month",
    "Date",
    "EMI",
    "Principal",
    "Interest",
    "Rate (%)",
    "Bulk Payment",
    "Balance",
    "Total Payment",
]

PDF_TABLE_HEADERS = ["#", "Date", "EMI", "Principal", "Interest", "Balance"]

HEADER_COLOR = colors.HexColor("#6366f1")
PRINCIPAL_COLOR = "#6366f1"
INTEREST_COLOR = "#ec4899"


class ExportError(Exception):
    """Raised when a schedule cannot be exported."""


def _require_rows(schedule: List[PeriodRow]) -> None:
    if not schedule:
        raise ExportError("No data to export.")


def _input_summary(loan: LoanInput, currency: str) -> List[List[Any]]:
    return [
        ["Loan Amount", loan.principal],
        ["Interest Rate", f"{loan.annual_rate}%"],
        ["Duration", f"{loan.years:g} Years"],
        ["Start Date", loan.start_date.isoformat()],
        ["Currency", currency.upper()],
    ]


def _row_values(row: PeriodRow) -> List[Any]:
    return [
        row.month,
        row.date.isoformat(),
        row.installment,
        row.principal_component,
        row.interest_component,
        row.annual_rate,
        row.lump_sum,
        row.balance,
        row.total_payment,
    ]


def schedule_to_dict(schedule: List[PeriodRow], loan: LoanInput, currency: str) -> Dict[str, Any]:
    """Convert inputs, summary and schedule into JSON-serialisable data."""
    _require_rows(schedule)
    summary = summarize_schedule(schedule)
    return {
        "inputs": {
            "principal": loan.principal,
            "annual_rate": loan.annual_rate,
            "years": loan.years,
            "start_date": loan.start_date.isoformat(),
            "currency": currency.upper(),
        },
        "summary": {
            "first_installment": summary.first_installment,
            "total_interest": summary.total_interest,
            "total_principal": summary.total_principal,
            "total_payment": summary.total_payment,
            "total_lump_sum": summary.total_lump_sum,
            "payoff_date": summary.payoff_date.isoformat(),
            "payments_made": summary.payments_made,
        },
        "schedule": [
            {
                "month": row.month,
                "date": row.date.isoformat(),
                "installment": row.installment,
                "principal": row.principal_component,
                "interest": row.interest_component,
                "lump_sum": row.lump_sum,
                "balance": row.balance,
                "annual_rate": row.annual_rate,
            }
            for row in schedule
        ],
    }


def export_to_json(path: Path, schedule: List[PeriodRow], loan: LoanInput, currency: str) -> None:
    """Export inputs, summary and schedule to a JSON file."""
    data = schedule_to_dict(schedule, loan, currency)
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    logger.info("Schedule exported to %s", path)


def write_csv(stream: IO[str], schedule: List[PeriodRow]) -> None:
    """Write the schedule as CSV to an open text stream."""
    _require_rows(schedule)
    writer = csv.writer(stream)
    writer.writerow(SCHEDULE_HEADERS)
    for row in schedule:
        writer.writerow(_row_values(row))


def export_to_csv(path: Path, schedule: List[PeriodRow]) -> None:
    """Export the schedule to a CSV file."""
    _require_rows(schedule)
    with path.open("w", newline="", encoding="utf-8") as f:
        write_csv(f, schedule)
    logger.info("Schedule exported to %s", path)


def build_workbook(schedule: List[PeriodRow], loan: LoanInput, currency: str) -> Workbook:
    """Build a workbook with a summary sheet and a detail sheet."""
    _require_rows(schedule)
    summary = summarize_schedule(schedule)
    wb = Workbook()

    ws_summary = wb.active
    ws_summary.title = "Summary"
    ws_summary.append(["Item", "Value"])
    for item in _input_summary(loan, currency):
        ws_summary.append(item)
    ws_summary.append(["Monthly EMI", summary.first_installment])
    ws_summary.append(["Total Interest", summary.total_interest])
    ws_summary.append(["Total Payment", summary.total_payment])
    ws_summary.append(["Payoff Date", summary.payoff_date.isoformat()])

    ws = wb.create_sheet("Amortization Schedule")
    ws.append(SCHEDULE_HEADERS)
    for row in schedule:
        ws.append(_row_values(row))

    for sheet in (ws_summary, ws):
        for cell in sheet[1]:
            cell.font = Font(bold=True)
    ws.freeze_panes = "A2"
    return wb


def export_to_excel(path: Path, schedule: List[PeriodRow], loan: LoanInput, currency: str) -> None:
    """Export the schedule to an ``.xlsx`` workbook."""
    wb = build_workbook(schedule, loan, currency)
    wb.save(path)
    logger.info("Schedule exported to %s", path)


def render_chart_png(schedule: List[PeriodRow]) -> bytes:
    """Render principal vs. interest as a stacked bar chart and return PNG bytes."""
    labels, principal, interest = chart_series(schedule)
    fig = Figure(figsize=(8, 3.5), dpi=100)
    ax = fig.add_subplot(1, 1, 1)
    positions = range(len(labels))
    ax.bar(positions, principal, color=PRINCIPAL_COLOR, label="Principal Paid")
    ax.bar(positions, interest, bottom=principal, color=INTEREST_COLOR, label="Interest Paid")
    step = max(1, len(labels) // 12)
    ax.set_xticks(list(positions)[::step])
    ax.set_xticklabels(labels[::step], rotation=45, ha="right", fontsize=7)
    ax.legend(fontsize=8)
    fig.tight_layout()
    buffer = io.BytesIO()
    fig.savefig(buffer, format="png")
    return buffer.getvalue()


def _chart_flowable(chart_png: bytes, width: float) -> Image:
    reader = ImageReader(io.BytesIO(chart_png))
    img_width, img_height = reader.getSize()
    return Image(io.BytesIO(chart_png), width=width, height=img_height * width / img_width)


def build_pdf_story(
    schedule: List[PeriodRow], loan: LoanInput, currency: str, chart_png: Optional[bytes] = None
) -> List[Any]:
    """Return the reportlab flowables making up the printable report."""
    _require_rows(schedule)
    styles = getSampleStyleSheet()
    story: List[Any] = [
        Paragraph("Loan Amortization Report", styles["Title"]),
        Paragraph(f"Generated on: {date.today().isoformat()}", styles["Normal"]),
        Spacer(1, 6 * mm),
        Paragraph("Loan Details", styles["Heading2"]),
    ]
    details = [
        f"Loan Amount: {format_currency(loan.principal, currency)}",
        f"Interest Rate: {loan.annual_rate}%",
        f"Duration: {loan.years:g} Years",
        f"Start Date: {loan.start_date.isoformat()}",
        f"Currency: {currency.upper()}",
    ]
    story.extend(Paragraph(line, styles["Normal"]) for line in details)
    story.append(Spacer(1, 6 * mm))

    if chart_png:
        try:
            story.append(_chart_flowable(chart_png, 180 * mm))
        except OSError as exc:
            logger.warning("Could not embed chart image: %s", exc)
            story.append(Paragraph("(Chart could not be captured)", styles["Italic"]))
        story.append(Spacer(1, 6 * mm))

    body = [PDF_TABLE_HEADERS]
    for row in schedule:
        body.append(
            [
                str(row.month),
                format_period_label(row.date),
                format_currency(row.installment, currency),
                format_currency(row.principal_component, currency),
                format_currency(row.interest_component, currency),
                format_currency(row.balance, currency),
            ]
        )
    table = Table(body, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("ALIGN", (2, 1), (-1, -1), "RIGHT"),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f1f5f9")]),
            ]
        )
    )
    story.append(table)
    return story


def write_pdf(
    target: Union[str, BinaryIO],
    schedule: List[PeriodRow],
    loan: LoanInput,
    currency: str,
    chart_png: Optional[bytes] = None,
) -> None:
    """Write the PDF report to a filename or a binary stream."""
    story = build_pdf_story(schedule, loan, currency, chart_png)
    doc = SimpleDocTemplate(
        target,
        pagesize=A4,
        leftMargin=15 * mm,
        rightMargin=15 * mm,
        topMargin=15 * mm,
        bottomMargin=15 * mm,
        title="Loan Amortization Report",
    )
    doc.build(story)


def export_to_pdf(
    path: Path,
    schedule: List[PeriodRow],
    loan: LoanInput,
    currency: str,
    chart_png: Optional[bytes] = None,
) -> None:
    """Write a printable PDF report with summary, optional chart and table."""
    write_pdf(str(path), schedule, loan, currency, chart_png)
    logger.info("Report exported to %s", path)


def export_schedule(
    path: Path,
    schedule: List[PeriodRow],
    loan: LoanInput,
    currency: str,
    include_chart: bool = True,
) -> None:
    """Export to the format implied by the file suffix."""
    suffix = path.suffix.lower()
    if suffix == ".json":
        export_to_json(path, schedule, loan, currency)
    elif suffix == ".csv":
        export_to_csv(path, schedule)
    elif suffix == ".xlsx":
        export_to_excel(path, schedule, loan, currency)
    elif suffix == ".pdf":
        _require_rows(schedule)
        chart_png = render_chart_png(schedule) if include_chart else None
        export_to_pdf(path, schedule, loan, currency, chart_png)
    else:
        raise ExportError(f"Unsupported output format: {suffix or path.name}; use .json, .csv, .xlsx or .pdf")
