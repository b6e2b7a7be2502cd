"""Unit tests for due date advancing and lateness"""

from dataclasses import replace
from datetime import date
from loan_core.domain.models import PaymentFrequency
from loan_core.domain.schedule import is_late, next_due_date, next_due_date_iso


def test_monthly_clamps_to_end_of_short_month():
    assert next_due_date(date(2024, 1, 31), PaymentFrequency.MONTHLY) == date(2024, 2, 29)
    assert next_due_date(date(2023, 1, 31), PaymentFrequency.MONTHLY) == date(2023, 2, 28)


def test_fixed_day_offsets():
    start = date(2024, 2, 25)

    assert next_due_date(start, PaymentFrequency.DAILY) == date(2024, 2, 26)
    assert next_due_date(start, PaymentFrequency.WEEKLY) == date(2024, 3, 3)
    assert next_due_date(start, PaymentFrequency.BIWEEKLY) == date(2024, 3, 11)


def test_string_start_is_a_calendar_date():
    """A timestamp string keeps its calendar day"""
    assert next_due_date("2024-03-31T23:30:00-05:00", PaymentFrequency.MONTHLY) == date(2024, 4, 30)
    assert next_due_date_iso("2024-12-31", PaymentFrequency.DAILY) == "2025-01-01"


def test_late_when_due_date_passed_with_balance(borrower):
    client = replace(borrower, next_payment_date=date(2024, 3, 10))

    assert is_late(client, 800_000, date(2024, 3, 15)) is True
    assert is_late(client, 0, date(2024, 3, 15)) is False
    assert is_late(client, 800_000, date(2024, 3, 10)) is False


def test_not_late_without_due_date(borrower):
    assert is_late(borrower, 800_000, date(2024, 3, 15)) is False
