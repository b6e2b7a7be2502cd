"""Loan amortization: installment quota, total interest and installment split"""

from typing import Dict, Optional
from loan_core.domain.models import (
    InstallmentSplit,
    InterestMethod,
    LoanProjection,
    PaymentFrequency,
)
from loan_core.domain.exceptions import InvalidLoanTerms
from loan_core.utils.money import round_currency

# Payments per month. DAILY uses a 30-day commercial month for rate purposes,
# while the schedule advancer moves due dates by real calendar days.
PERIODS_PER_MONTH: Dict[PaymentFrequency, int] = {
    PaymentFrequency.MONTHLY: 1,
    PaymentFrequency.BIWEEKLY: 2,
    PaymentFrequency.WEEKLY: 4,
    PaymentFrequency.DAILY: 30,
}


def periodic_rate(monthly_rate: float, frequency: PaymentFrequency) -> float:
    """Monthly nominal percent converted to a per-installment fraction"""
    return (monthly_rate / 100) / PERIODS_PER_MONTH[PaymentFrequency(frequency)]


def project_loan(
    principal: int,
    monthly_rate: float,
    term_months: int,
    frequency: PaymentFrequency,
    method: InterestMethod,
) -> Optional[LoanProjection]:
    """
    Simulate a loan before it is committed.

    FIXED charges flat interest on the original principal and spreads it
    evenly over every installment. DIMINISHING uses the annuity formula on
    the declining balance.

    Args:
        principal: Amount lent, whole currency units
        monthly_rate: Monthly nominal rate in percent (10 means 10%/month)
        term_months: Loan duration in months
        frequency: Installment frequency
        method: Interest method

    Returns:
        LoanProjection with rounded amounts, or None when principal <= 0

    Raises:
        InvalidLoanTerms: term shorter than one month or negative rate

    Example:
        1.000.000 at 10% for 1 month, MONTHLY, FIXED
        → quota 1.100.000, total interest 100.000, 1 installment
    """
    if principal is None or principal <= 0:
        return None
    if term_months < 1:
        raise InvalidLoanTerms(f"Loan term must be at least one month, got {term_months}")
    if monthly_rate < 0:
        raise InvalidLoanTerms(f"Interest rate cannot be negative, got {monthly_rate}")

    frequency = PaymentFrequency(frequency)
    method = InterestMethod(method)

    total_installments = term_months * PERIODS_PER_MONTH[frequency]
    rate = periodic_rate(monthly_rate, frequency)

    if method == InterestMethod.FIXED:
        total_interest = principal * (monthly_rate / 100) * term_months
        quota = (principal + total_interest) / total_installments
        first_period_interest = total_interest / total_installments
    elif rate > 0:
        growth = (1 + rate) ** total_installments
        quota = principal * (rate * growth) / (growth - 1)
        total_interest = quota * total_installments - principal
        first_period_interest = principal * rate
    else:
        quota = principal / total_installments
        total_interest = 0
        first_period_interest = 0

    return LoanProjection(
        quota=round_currency(quota),
        total_interest=round_currency(total_interest),
        total_installments=total_installments,
        first_period_interest=round_currency(first_period_interest),
    )


def simulate_refinance(
    current_debt: int,
    new_money: int,
    monthly_rate: float,
    term_months: int,
    frequency: PaymentFrequency,
    method: InterestMethod,
) -> Optional[LoanProjection]:
    """
    Project the loan that results from lending new money on top of open debt.

    Without new money there is nothing to refinance and no projection.
    """
    if new_money is None or new_money <= 0:
        return None
    total_new_debt = current_debt + new_money if current_debt > 0 else new_money
    return project_loan(total_new_debt, monthly_rate, term_months, frequency, method)


def split_installment(
    balance: int,
    monthly_rate: float,
    frequency: PaymentFrequency,
    quota: int,
) -> InstallmentSplit:
    """
    Suggest how the next collection splits between interest and capital.

    Interest accrues on the outstanding balance for one period; the rest of
    the quota goes to capital.
    """
    interest = round_currency(balance * periodic_rate(monthly_rate, frequency))
    capital = max(0, quota - interest) if quota and quota > 0 else 0
    return InstallmentSplit(capital=capital, interest=interest, total=capital + interest)
