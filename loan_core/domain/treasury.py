"""Treasury reconciliation: bank and cash balances moved by ledger entries"""

from dataclasses import replace
from datetime import date
from typing import Optional
from loan_core.domain.models import (
    BankAccount,
    Transaction,
    TransactionType,
    TreasuryMovement,
    TreasuryMovementType,
    new_id,
)
from loan_core.domain.exceptions import InsufficientTreasuryFunds, InvalidLoanTerms

OUTGOING_TYPES = {TransactionType.DISBURSEMENT, TransactionType.REFINANCE}
INCOMING_TYPES = {
    TransactionType.PAYMENT_CAPITAL,
    TransactionType.PAYMENT_INTEREST,
    TransactionType.SETTLEMENT,
}


def require_funds(account: BankAccount, amount: int) -> None:
    """
    Refuse to release more money than the account holds.

    Raises:
        InsufficientTreasuryFunds: balance < amount
    """
    if account.balance < amount:
        raise InsufficientTreasuryFunds(account.id, amount, account.balance)


def treasury_effect(transaction: Transaction) -> int:
    """
    Signed change a ledger entry causes on its bank account.

    Disbursements leave treasury; collections bring in capital plus interest,
    since interest is cash received too. Redirection legs never touch
    treasury, nor does any entry without a bank account.
    """
    if not transaction.bank_account_id:
        return 0
    if transaction.type in OUTGOING_TYPES:
        return -transaction.amount
    if transaction.type in INCOMING_TYPES:
        return transaction.amount + transaction.interest_paid
    return 0


def apply_to_account(account: BankAccount, transaction: Transaction) -> BankAccount:
    """Account after the transaction's cash movement"""
    delta = treasury_effect(transaction)
    if delta < 0:
        require_funds(account, -delta)
    return replace(account, balance=account.balance + delta)


def reverse_on_account(account: BankAccount, transaction: Transaction) -> BankAccount:
    """
    Undo a transaction's cash movement, used when it is edited or deleted.

    Reversing a collection takes money back out of the account, so the
    funds guard applies to it as well.
    """
    delta = -treasury_effect(transaction)
    if delta < 0:
        require_funds(account, -delta)
    return replace(account, balance=account.balance + delta)


def rebook_on_account(account: BankAccount, original: Transaction, edited: Transaction) -> BankAccount:
    """
    Account after an edited transaction replaces its original.

    Only the net change is guarded, so cash withdrawn since the original
    was booked does not block edits that leave the account non-negative.
    """
    delta = treasury_effect(edited) - treasury_effect(original)
    if delta < 0:
        require_funds(account, -delta)
    return replace(account, balance=account.balance + delta)


def record_movement(
    account: BankAccount,
    movement_type: TreasuryMovementType,
    amount: int,
    on_date: date,
    notes: str = "",
    client_id: Optional[str] = None,
    redirection_id: Optional[str] = None,
) -> tuple[BankAccount, TreasuryMovement]:
    """
    Deposit into or withdraw from a treasury account.

    Returns: (updated account, movement record)

    Raises:
        InvalidLoanTerms: amount <= 0
        InsufficientTreasuryFunds: withdrawal above the balance
    """
    if amount <= 0:
        raise InvalidLoanTerms(f"Movement amount must be positive, got {amount}")

    movement_type = TreasuryMovementType(movement_type)
    if movement_type == TreasuryMovementType.WITHDRAWAL:
        require_funds(account, amount)
        delta = -amount
    else:
        delta = amount

    movement = TreasuryMovement(
        id=new_id(),
        bank_account_id=account.id,
        type=movement_type,
        amount=amount,
        date=on_date,
        notes=notes,
        client_id=client_id,
        redirection_id=redirection_id,
    )
    return replace(account, balance=account.balance + delta), movement
