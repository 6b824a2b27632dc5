import io
import json
import logging
import os

from flask import Flask, Response, render_template, request, send_file

from emi_calc.data_models import LoanInput, ScheduleEvent
from emi_calc.engine import chart_series, generate_schedule, summarize_schedule
from emi_calc.export import ExportError, build_workbook, render_chart_png, schedule_to_dict, write_csv, write_pdf
from emi_calc.formatter import format_currency, format_period_label, format_rate
from emi_calc.utils import parse_amount, parse_iso_date, parse_number, parse_percent

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["ASSET_VERSION"] = os.environ.get("ASSET_VERSION", "1")
app.config["DEFAULT_CURRENCY"] = os.environ.get("EMI_CALC_DEFAULT_CURRENCY", "USD").upper()
app.config["PREVIEW_ROWS"] = int(os.environ.get("EMI_CALC_PREVIEW_ROWS", "120"))

CURRENCY_OPTIONS = {
    "USD": "US dollar",
    "EUR": "Euro",
    "GBP": "British pound",
    "INR": "Indian rupee",
    "JPY": "Japanese yen",
    "PLN": "Polish zloty",
}

EXPORT_MIMETYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pdf": "application/pdf",
    "csv": "text/csv",
    "json": "application/json",
}


def _normalized_currency(form) -> str:
    code = form.get("currency", app.config["DEFAULT_CURRENCY"]).upper()
    return code if code in CURRENCY_OPTIONS else app.config["DEFAULT_CURRENCY"]


def parse_form_list(value: str) -> list[str]:
    """Parse a comma or newline separated list of entries from a form field.

    Returns a list of trimmed strings, skipping any empty entries.
    """
    if not value:
        return []
    parts = [p.strip() for p in value.replace("\n", ",").split(",")]
    return [p for p in parts if p]


def _parse_form_events(form) -> list[ScheduleEvent]:
    events = []
    for item in parse_form_list(form.get("payments", "")):
        day, _, amount_str = item.partition(":")
        amount = parse_amount(amount_str)
        if amount <= 0:
            raise ValueError(f"Payment amount must be positive: {item}")
        events.append(ScheduleEvent(date=parse_iso_date(day), amount=amount))
    for item in parse_form_list(form.get("rate_changes", "")):
        day, _, rate_str = item.partition(":")
        new_rate = parse_percent(rate_str)
        if new_rate < 0:
            raise ValueError(f"Rate must not be negative: {item}")
        events.append(ScheduleEvent(date=parse_iso_date(day), new_rate=new_rate))
    return events


def _form_to_input(form) -> tuple[LoanInput, list[ScheduleEvent]]:
    """Validate the submitted form and build the engine inputs.

    Raises ``ValueError`` with a user-facing message for missing or invalid
    values.
    """
    principal_raw = form.get("principal", "").strip()
    rate_raw = form.get("rate", "").strip()
    years_raw = form.get("years", "").strip()
    start_raw = form.get("start_date", "").strip()
    if not (principal_raw and rate_raw and years_raw and start_raw):
        raise ValueError("Please fill in all required fields.")
    principal = parse_amount(principal_raw)
    rate = parse_percent(rate_raw)
    years = parse_number(years_raw)
    if principal <= 0 or rate < 0 or years <= 0:
        raise ValueError("Values must be positive.")
    loan = LoanInput(principal=principal, annual_rate=rate, years=years, start_date=parse_iso_date(start_raw))
    if loan.total_months < 1:
        raise ValueError("Duration must be at least one month.")
    return loan, _parse_form_events(form)


def _serialize_chart(schedule) -> dict:
    labels, principal, interest = chart_series(schedule)
    return {"labels": labels, "principal": principal, "interest": interest}


@app.template_filter("money")
def _money_filter(amount, currency):
    return format_currency(amount, currency)


@app.template_filter("period")
def _period_filter(value):
    return format_period_label(value)


@app.template_filter("rate")
def _rate_filter(value):
    return format_rate(value)


@app.route("/", methods=["GET", "POST"])
def index():
    summary = None
    schedule = None
    error = None
    truncated = 0
    chart_payload = "null"
    show_full_schedule = False
    currency_code = app.config["DEFAULT_CURRENCY"]

    if request.method == "POST":
        currency_code = _normalized_currency(request.form)
        show_full_schedule = request.form.get("show_full_schedule") == "1"
        try:
            loan, events = _form_to_input(request.form)
            full_schedule = generate_schedule(loan, events)
            summary = summarize_schedule(full_schedule)
            chart_payload = json.dumps(_serialize_chart(full_schedule))
            schedule = full_schedule
            preview_rows = app.config["PREVIEW_ROWS"]
            if not show_full_schedule and len(full_schedule) > preview_rows:
                truncated = len(full_schedule) - preview_rows
                schedule = full_schedule[:preview_rows]
        except ValueError as exc:
            error = str(exc)

    return render_template(
        "index.html",
        form=request.form,
        summary=summary,
        schedule=schedule,
        truncated=truncated,
        show_full_schedule=show_full_schedule,
        error=error,
        currency_code=currency_code,
        currency_options=CURRENCY_OPTIONS,
        chart_payload=chart_payload,
        asset_version=app.config["ASSET_VERSION"],
    )


@app.post("/export/<fmt>")
def export(fmt: str):
    if fmt not in EXPORT_MIMETYPES:
        return Response(f"Unsupported export format: {fmt}", status=404, mimetype="text/plain")
    currency_code = _normalized_currency(request.form)
    try:
        loan, events = _form_to_input(request.form)
    except ValueError as exc:
        return Response(str(exc), status=400, mimetype="text/plain")
    schedule = generate_schedule(loan, events)

    buffer = io.BytesIO()
    try:
        if fmt == "xlsx":
            build_workbook(schedule, loan, currency_code).save(buffer)
        elif fmt == "pdf":
            chart_png = render_chart_png(schedule) if schedule else None
            write_pdf(buffer, schedule, loan, currency_code, chart_png)
        elif fmt == "csv":
            text = io.StringIO(newline="")
            write_csv(text, schedule)
            buffer.write(text.getvalue().encode("utf-8"))
        else:
            buffer.write(json.dumps(schedule_to_dict(schedule, loan, currency_code), indent=2).encode("utf-8"))
    except ExportError as exc:
        return Response(str(exc), status=400, mimetype="text/plain")
    buffer.seek(0)
    logger.info("Serving %s export with %d rows", fmt, len(schedule))
    return send_file(
        buffer,
        mimetype=EXPORT_MIMETYPES[fmt],
        as_attachment=True,
        download_name=f"Loan_Amortization.{fmt}",
    )


if __name__ == "__main__":
    print("Starting EMI Calculator web app...")
    app.run(host="0.0.0.0", port=8710, debug=True)
