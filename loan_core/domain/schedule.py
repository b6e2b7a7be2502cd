"""Payment schedule: next due date and lateness"""

from datetime import date, timedelta
from typing import Optional
from dateutil.relativedelta import relativedelta
from loan_core.domain.models import Client, PaymentFrequency
from loan_core.utils.date_utils import parse_date

# Calendar offsets between collections. BIWEEKLY is 15 days (twice a month),
# MONTHLY is a calendar month clamped to the last day of short months.
DUE_DATE_OFFSETS = {
    PaymentFrequency.DAILY: timedelta(days=1),
    PaymentFrequency.WEEKLY: timedelta(days=7),
    PaymentFrequency.BIWEEKLY: timedelta(days=15),
    PaymentFrequency.MONTHLY: relativedelta(months=1),
}


def next_due_date(start: date | str, frequency: PaymentFrequency) -> date:
    """
    Next installment due date after start.

    The start is handled as a plain calendar date, so the result can never
    drift to a neighbouring day because of a timezone offset.

    Example:
        2024-01-31 MONTHLY → 2024-02-29
    """
    return parse_date(start) + DUE_DATE_OFFSETS[PaymentFrequency(frequency)]


def next_due_date_iso(start: date | str, frequency: PaymentFrequency) -> str:
    """next_due_date emitted as YYYY-MM-DD"""
    return next_due_date(start, frequency).isoformat()


def is_late(client: Client, balance: int, today: date) -> bool:
    """Client missed the last due date and still owes money"""
    due: Optional[date] = client.next_payment_date
    return due is not None and due < today and balance > 0
