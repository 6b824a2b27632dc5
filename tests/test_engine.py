from datetime import date

import pytest

from emi_calc.data_models import LoanInput, ScheduleEvent
from emi_calc.engine import (
    PAYOFF_TOLERANCE,
    calculate_installment,
    chart_series,
    generate_schedule,
    generate_schedule_from_strings,
    summarize_schedule,
    yearly_totals,
)


class TestCalculateInstallment:
    def test_standard_loan(self):
        """100K at 10% over 12 months."""
        assert calculate_installment(100000, 0.10 / 12, 12) == pytest.approx(8791.59, abs=0.005)

    def test_zero_rate_is_straight_line(self):
        assert calculate_installment(12000, 0, 12) == 1000

    def test_no_remaining_months_returns_balance(self):
        assert calculate_installment(5432.1, 0.01, 0) == 5432.1
        assert calculate_installment(5432.1, 0.01, -3) == 5432.1

    def test_single_month_pays_balance_plus_interest(self):
        assert calculate_installment(1000, 0.01, 1) == pytest.approx(1010)


class TestScheduleWithoutEvents:
    def test_end_to_end_one_year(self, one_year_loan):
        schedule = generate_schedule(one_year_loan, [])
        assert len(schedule) == 12
        assert schedule[0].annual_rate == 10
        assert schedule[-1].balance <= PAYOFF_TOLERANCE
        assert sum(row.principal_component for row in schedule) == pytest.approx(100000, abs=0.01)

    def test_first_row(self, one_year_loan):
        first = generate_schedule(one_year_loan)[0]
        assert first.month == 1
        assert first.date == date(2024, 2, 1)
        assert first.interest_component == pytest.approx(100000 * 0.10 / 12)
        assert first.installment == pytest.approx(8791.59, abs=0.005)
        assert first.lump_sum == 0

    def test_rows_are_consecutive_months(self, one_year_loan):
        schedule = generate_schedule(one_year_loan)
        assert [row.month for row in schedule] == list(range(1, 13))
        assert schedule[-1].date == date(2025, 1, 1)

    @pytest.mark.parametrize("years", [0.5, 1, 2.5, 5, 30])
    @pytest.mark.parametrize("rate", [0, 3.5, 10, 24])
    def test_terminates_after_nominal_duration(self, years, rate):
        loan = LoanInput(principal=250000, annual_rate=rate, years=years, start_date=date(2020, 3, 15))
        schedule = generate_schedule(loan)
        assert len(schedule) == round(years * 12)
        assert schedule[-1].balance <= PAYOFF_TOLERANCE

    def test_zero_rate_straight_line(self):
        loan = LoanInput(principal=12000, annual_rate=0, years=1, start_date=date(2024, 1, 1))
        schedule = generate_schedule(loan)
        assert len(schedule) == 12
        for row in schedule:
            assert row.installment == pytest.approx(1000)
            assert row.interest_component == 0
        assert schedule[-1].balance == 0

    def test_month_end_start_date_clamps(self):
        loan = LoanInput(principal=3000, annual_rate=0, years=0.25, start_date=date(2024, 1, 31))
        schedule = generate_schedule(loan)
        assert [row.date for row in schedule] == [date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


class TestScheduleInvariants:
    @pytest.fixture
    def busy_schedule(self, thirty_year_loan):
        events = [
            ScheduleEvent(date=date(2026, 5, 10), amount=25000),
            ScheduleEvent(date=date(2028, 1, 1), new_rate=8.25),
            ScheduleEvent(date=date(2030, 7, 1), amount=40000, new_rate=6.0),
            ScheduleEvent(date=date(2035, 2, 14), amount=15000),
        ]
        return generate_schedule(thirty_year_loan, events)

    def test_balance_never_increases(self, busy_schedule):
        for i in range(1, len(busy_schedule)):
            assert busy_schedule[i].balance <= busy_schedule[i - 1].balance

    def test_components_sum_to_installment(self, busy_schedule):
        for row in busy_schedule:
            assert row.principal_component + row.interest_component == pytest.approx(row.installment, rel=1e-6)

    def test_interest_is_charged_on_reduced_balance(self, busy_schedule):
        previous_balance = 300000.0
        for row in busy_schedule:
            balance_before = previous_balance - row.lump_sum
            assert row.interest_component == pytest.approx(balance_before * row.annual_rate / 1200)
            assert row.balance == pytest.approx(max(balance_before - row.principal_component, 0), abs=1e-6)
            assert row.balance >= 0
            previous_balance = row.balance

    def test_paid_off(self, busy_schedule):
        assert busy_schedule[-1].balance <= PAYOFF_TOLERANCE
        assert len(busy_schedule) <= 360


class TestLumpSums:
    def test_end_to_end_lump_sum(self, one_year_loan):
        events = [ScheduleEvent(date=date(2024, 6, 1), amount=20000)]
        schedule = generate_schedule(one_year_loan, events)
        by_date = {row.date: row for row in schedule}
        assert by_date[date(2024, 6, 1)].lump_sum == 20000
        assert len(schedule) <= 12
        assert schedule[-1].balance <= PAYOFF_TOLERANCE

    def test_event_on_period_boundary_belongs_to_that_period(self, one_year_loan):
        schedule = generate_schedule(one_year_loan, [ScheduleEvent(date=date(2024, 3, 1), amount=1000)])
        assert schedule[1].date == date(2024, 3, 1)
        assert schedule[1].lump_sum == 1000
        assert schedule[2].lump_sum == 0

    def test_event_mid_period_goes_to_next_period_end(self, one_year_loan):
        schedule = generate_schedule(one_year_loan, [ScheduleEvent(date=date(2024, 3, 2), amount=1000)])
        assert schedule[1].lump_sum == 0
        assert schedule[2].lump_sum == 1000

    def test_installment_reamortized_from_next_period(self, one_year_loan):
        baseline = generate_schedule(one_year_loan)
        schedule = generate_schedule(one_year_loan, [ScheduleEvent(date=date(2024, 6, 1), amount=20000)])
        lump_row = schedule[4]
        assert lump_row.lump_sum == 20000
        # The period of the lump sum keeps the old installment.
        assert lump_row.installment == pytest.approx(baseline[4].installment)
        expected = calculate_installment(lump_row.balance, 0.10 / 12, 12 - 5)
        for row in schedule[5:]:
            assert row.installment == pytest.approx(expected)
        assert len(schedule) == 12

    def test_lump_sum_reduces_interest_of_same_period(self, one_year_loan):
        schedule = generate_schedule(one_year_loan, [ScheduleEvent(date=date(2024, 2, 1), amount=50000)])
        assert schedule[0].interest_component == pytest.approx(50000 * 0.10 / 12)

    def test_full_early_payoff(self, one_year_loan):
        baseline = generate_schedule(one_year_loan)
        outstanding = baseline[1].balance
        schedule = generate_schedule(one_year_loan, [ScheduleEvent(date=date(2024, 4, 1), amount=outstanding)])
        assert len(schedule) == 3
        assert schedule[2].lump_sum == outstanding
        assert schedule[2].balance == 0
        assert schedule[2].installment == 0
        assert schedule[2].interest_component == 0

    def test_oversized_lump_sum_is_clamped_to_balance(self, one_year_loan):
        baseline = generate_schedule(one_year_loan)
        schedule = generate_schedule(one_year_loan, [ScheduleEvent(date=date(2024, 4, 1), amount=10 ** 9)])
        assert len(schedule) == 3
        assert schedule[2].lump_sum == pytest.approx(baseline[1].balance)
        assert schedule[2].balance == 0

    def test_lump_sums_in_same_window_are_summed(self, one_year_loan):
        events = [
            ScheduleEvent(date=date(2024, 6, 1), amount=5000),
            ScheduleEvent(date=date(2024, 5, 20), amount=3000),
            ScheduleEvent(date=date(2024, 6, 1), amount=2000),
        ]
        schedule = generate_schedule(one_year_loan, events)
        assert schedule[4].lump_sum == 10000
        assert sum(row.lump_sum for row in schedule) == 10000

    def test_final_period_does_not_overpay(self, one_year_loan):
        # A lump sum leaving a small balance means the re-amortized installment
        # would overpay unless the last row is capped at balance plus interest.
        baseline = generate_schedule(one_year_loan)
        amount = baseline[9].balance - 100
        schedule = generate_schedule(one_year_loan, [ScheduleEvent(date=date(2024, 12, 1), amount=amount)])
        last = schedule[-1]
        assert last.balance == 0 or last.balance <= PAYOFF_TOLERANCE
        assert last.installment <= baseline[-1].installment
        for row in schedule:
            assert row.principal_component >= 0


class TestRateChanges:
    def test_rate_change_takes_effect_in_its_period(self, two_year_loan):
        baseline = generate_schedule(two_year_loan)
        schedule = generate_schedule(two_year_loan, [ScheduleEvent(date=date(2024, 4, 1), new_rate=12)])
        assert [row.annual_rate for row in schedule[:2]] == [10, 10]
        assert all(row.annual_rate == 12 for row in schedule[2:])
        assert schedule[1].installment == pytest.approx(baseline[1].installment)
        expected = calculate_installment(schedule[1].balance, 0.12 / 12, 24 - 3 + 1)
        assert schedule[2].installment == pytest.approx(expected)
        assert schedule[2].interest_component == pytest.approx(schedule[1].balance * 0.01)
        assert len(schedule) == 24
        assert schedule[-1].balance <= PAYOFF_TOLERANCE

    def test_only_rate_changes(self, two_year_loan):
        events = [
            ScheduleEvent(date=date(2024, 7, 1), new_rate=0),
            ScheduleEvent(date=date(2024, 3, 1), new_rate=14),
        ]
        schedule = generate_schedule(two_year_loan, events)
        assert schedule[0].annual_rate == 10
        assert schedule[1].annual_rate == 14
        assert schedule[5].annual_rate == 0
        assert schedule[5].interest_component == 0
        straight = schedule[4].balance / (24 - 6 + 1)
        for row in schedule[5:]:
            assert row.installment == pytest.approx(straight)
        assert sum(row.lump_sum for row in schedule) == 0
        assert schedule[-1].balance <= PAYOFF_TOLERANCE

    def test_last_rate_change_in_window_wins(self, two_year_loan):
        events = [
            ScheduleEvent(date=date(2024, 5, 20), new_rate=11),
            ScheduleEvent(date=date(2024, 5, 15), new_rate=9),
        ]
        schedule = generate_schedule(two_year_loan, events)
        assert schedule[4].annual_rate == 11
        assert schedule[5].annual_rate == 11

    def test_same_date_rate_changes_keep_input_order(self, two_year_loan):
        events = [
            ScheduleEvent(date=date(2024, 5, 15), new_rate=9),
            ScheduleEvent(date=date(2024, 5, 15), new_rate=7),
        ]
        schedule = generate_schedule(two_year_loan, events)
        assert schedule[4].annual_rate == 7

    def test_lump_sum_and_rate_change_in_same_window(self, two_year_loan):
        events = [
            ScheduleEvent(date=date(2024, 4, 1), amount=10000),
            ScheduleEvent(date=date(2024, 3, 20), new_rate=8),
        ]
        schedule = generate_schedule(two_year_loan, events)
        row = schedule[2]
        assert row.lump_sum == 10000
        assert row.annual_rate == 8
        reduced = schedule[1].balance - 10000
        expected = calculate_installment(reduced, 0.08 / 12, 24 - 3 + 1)
        assert row.installment == pytest.approx(expected)
        # No second re-amortization after the row is emitted.
        assert schedule[3].installment == pytest.approx(expected)
        assert len(schedule) == 24

    def test_combined_event_on_one_record(self, two_year_loan):
        combined = generate_schedule(
            two_year_loan, [ScheduleEvent(date=date(2024, 4, 1), amount=10000, new_rate=8)]
        )
        split = generate_schedule(
            two_year_loan,
            [ScheduleEvent(date=date(2024, 4, 1), amount=10000), ScheduleEvent(date=date(2024, 4, 1), new_rate=8)],
        )
        assert combined == split


class TestEventBoundaries:
    def test_event_on_start_date_is_never_applied(self, one_year_loan):
        baseline = generate_schedule(one_year_loan)
        events = [
            ScheduleEvent(date=date(2024, 1, 1), amount=5000),
            ScheduleEvent(date=date(2024, 1, 1), new_rate=2),
        ]
        assert generate_schedule(one_year_loan, events) == baseline

    def test_events_outside_the_term_are_ignored(self, one_year_loan):
        baseline = generate_schedule(one_year_loan)
        events = [
            ScheduleEvent(date=date(2023, 6, 1), amount=5000),
            ScheduleEvent(date=date(2025, 1, 2), new_rate=2),
        ]
        assert generate_schedule(one_year_loan, events) == baseline

    def test_events_are_not_mutated_and_calls_are_independent(self, one_year_loan):
        events = [
            ScheduleEvent(date=date(2024, 9, 1), amount=1000),
            ScheduleEvent(date=date(2024, 3, 1), new_rate=12),
        ]
        snapshot = list(events)
        first = generate_schedule(one_year_loan, events)
        second = generate_schedule(one_year_loan, events)
        assert events == snapshot
        assert first == second

    def test_accepts_any_iterable(self, one_year_loan):
        events = (e for e in [ScheduleEvent(date=date(2024, 6, 1), amount=20000)])
        assert generate_schedule(one_year_loan, events)[4].lump_sum == 20000


class TestScheduleFromStrings:
    def test_end_to_end(self):
        schedule = generate_schedule_from_strings(100000, 10, 1, "2024-01-01", [])
        assert len(schedule) == 12
        assert schedule[-1].balance <= PAYOFF_TOLERANCE

    def test_event_mappings(self):
        schedule = generate_schedule_from_strings(
            100000,
            10,
            2,
            "2024-01-01",
            [{"date": "2024-06-01", "amount": 20000}, {"date": "2024-04-01", "newRate": 12}, {"date": "2024-09-01", "new_rate": 9}],
        )
        assert schedule[2].annual_rate == 12
        assert schedule[4].lump_sum == 20000
        assert schedule[7].annual_rate == 9

    def test_invalid_date(self):
        with pytest.raises(ValueError):
            generate_schedule_from_strings(100000, 10, 1, "01/01/2024", [])


class TestSummary:
    def test_empty_schedule(self):
        assert summarize_schedule([]) is None

    def test_totals(self, one_year_loan):
        schedule = generate_schedule(one_year_loan, [ScheduleEvent(date=date(2024, 6, 1), amount=20000)])
        summary = summarize_schedule(schedule)
        assert summary.first_installment == schedule[0].installment
        assert summary.total_interest == pytest.approx(sum(r.interest_component for r in schedule))
        assert summary.total_lump_sum == 20000
        assert summary.total_principal == pytest.approx(100000, abs=0.01)
        assert summary.total_payment == pytest.approx(summary.total_principal + summary.total_interest)
        assert summary.payoff_date == schedule[-1].date
        assert summary.payments_made == len(schedule)


class TestChartSeries:
    def test_per_period_for_short_schedules(self, one_year_loan):
        schedule = generate_schedule(one_year_loan, [ScheduleEvent(date=date(2024, 6, 1), amount=20000)])
        labels, principal, interest = chart_series(schedule)
        assert len(labels) == 12
        assert labels[0] == "Feb 2024"
        assert principal[4] == pytest.approx(schedule[4].principal_component + 20000)
        assert interest[0] == pytest.approx(schedule[0].interest_component)

    def test_aggregated_by_year_for_long_schedules(self, thirty_year_loan):
        schedule = generate_schedule(thirty_year_loan)
        labels, principal, interest = chart_series(schedule)
        assert labels[0] == "2024"
        assert labels[-1] == "2054"
        assert len(labels) == 31
        assert sum(principal) == pytest.approx(300000, abs=0.01)
        assert sum(interest) == pytest.approx(sum(r.interest_component for r in schedule))

    def test_yearly_totals(self, one_year_loan):
        totals = yearly_totals(generate_schedule(one_year_loan))
        assert list(totals) == [2024, 2025]
        assert totals[2025]["interest"] > 0
