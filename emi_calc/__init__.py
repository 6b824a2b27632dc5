"""EMI loan calculator: amortization schedules with lump sums and rate changes."""

from .data_models import LoanInput, PeriodRow, ScheduleEvent, ScheduleSummary
from .engine import calculate_installment, generate_schedule, generate_schedule_from_strings, summarize_schedule
from .formatter import format_currency

__all__ = [
    "LoanInput",
    "PeriodRow",
    "ScheduleEvent",
    "ScheduleSummary",
    "calculate_installment",
    "format_currency",
    "generate_schedule",
    "generate_schedule_from_strings",
    "summarize_schedule",
]
