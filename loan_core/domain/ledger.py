"""Transaction ledger - the single place where balance_after is computed"""

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Optional
from loan_core.domain.models import (
    BankAccount,
    Client,
    ClientSummary,
    DisbursementEvent,
    LedgerEvent,
    PaymentEvent,
    RedirectionEvent,
    SettlementEvent,
    Transaction,
    TransactionType,
    new_id,
)
from loan_core.domain.exceptions import (
    BankAccountNotFound,
    ChainIntegrityViolation,
    InvalidLoanTerms,
    OverpaymentRejected,
)
from loan_core.domain.treasury import OUTGOING_TYPES, require_funds

# Effect of each transaction type on the client's previous balance.
# Interest never moves the balance; it is tracked for profitability only.
BALANCE_EFFECTS: Dict[TransactionType, Callable[[int, int], int]] = {
    TransactionType.DISBURSEMENT: lambda balance, amount: balance + amount,
    TransactionType.REFINANCE: lambda balance, amount: balance + amount,
    TransactionType.PAYMENT_CAPITAL: lambda balance, amount: balance - amount,
    TransactionType.PAYMENT_INTEREST: lambda balance, amount: balance,
    TransactionType.REDIRECT_OUT: lambda balance, amount: balance - amount,
    TransactionType.REDIRECT_IN: lambda balance, amount: balance + amount,
    TransactionType.SETTLEMENT: lambda balance, amount: 0,
}

REDUCING_TYPES = {TransactionType.PAYMENT_CAPITAL, TransactionType.REDIRECT_OUT}

# Only new debt may open a chain
OPENING_TYPES = {
    TransactionType.DISBURSEMENT,
    TransactionType.REFINANCE,
    TransactionType.REDIRECT_IN,
}

DISBURSED_TYPES = {
    TransactionType.DISBURSEMENT,
    TransactionType.REFINANCE,
    TransactionType.REDIRECT_IN,
}


@dataclass(frozen=True)
class _Entry:
    """Flat view of an event, once its transaction type is known"""

    type: TransactionType
    amount: int
    interest: int = 0
    bank_account_id: Optional[str] = None
    related_client_id: Optional[str] = None
    redirection_id: Optional[str] = None


def apply_balance(previous: int, transaction_type: TransactionType, amount: int) -> int:
    """Balance after applying one entry to the previous balance"""
    return BALANCE_EFFECTS[TransactionType(transaction_type)](previous, amount)


def chain_order_key(transaction: Transaction) -> tuple:
    """Date first, then creation time for same-day entries, then id as tie-breaker"""
    return (transaction.date, transaction.created_at, transaction.id)


def chain_tail(transactions: Iterable[Transaction]) -> Optional[Transaction]:
    """Latest entry of a chain, or None when empty"""
    return max(transactions, key=chain_order_key, default=None)


def current_balance(transactions: Iterable[Transaction]) -> int:
    tail = chain_tail(transactions)
    return tail.balance_after if tail else 0


def event_from_fields(
    transaction_type: TransactionType,
    amount: int,
    interest_paid: int = 0,
    related_client_id: Optional[str] = None,
    bank_account_id: Optional[str] = None,
    redirection_id: Optional[str] = None,
) -> LedgerEvent:
    """Build the typed event for a flat (type, amount, interest, ...) form submission"""
    transaction_type = TransactionType(transaction_type)

    if transaction_type in (TransactionType.DISBURSEMENT, TransactionType.REFINANCE):
        return DisbursementEvent(amount=amount, bank_account_id=bank_account_id)
    if transaction_type in (TransactionType.PAYMENT_CAPITAL, TransactionType.PAYMENT_INTEREST):
        capital = amount if transaction_type == TransactionType.PAYMENT_CAPITAL else 0
        interest = interest_paid or (amount if transaction_type == TransactionType.PAYMENT_INTEREST else 0)
        return PaymentEvent(capital=capital, interest=interest, bank_account_id=bank_account_id)
    if transaction_type in (TransactionType.REDIRECT_IN, TransactionType.REDIRECT_OUT):
        return RedirectionEvent(
            incoming=transaction_type == TransactionType.REDIRECT_IN,
            amount=amount,
            related_client_id=related_client_id,
            redirection_id=redirection_id,
            interest=interest_paid,
        )
    return SettlementEvent(amount=amount, interest=interest_paid, bank_account_id=bank_account_id)


def _resolve_event(event: LedgerEvent, previous_balance: int) -> _Entry:
    """Map an event onto its transaction type, validating its amounts"""
    if isinstance(event, DisbursementEvent):
        if event.amount <= 0:
            raise InvalidLoanTerms(f"Disbursement must be positive, got {event.amount}")
        transaction_type = TransactionType.REFINANCE if previous_balance > 0 else TransactionType.DISBURSEMENT
        return _Entry(transaction_type, event.amount, bank_account_id=event.bank_account_id)

    if isinstance(event, PaymentEvent):
        if event.capital < 0 or event.interest < 0 or event.capital + event.interest == 0:
            raise InvalidLoanTerms("Payment needs a positive capital or interest amount")
        transaction_type = TransactionType.PAYMENT_CAPITAL if event.capital > 0 else TransactionType.PAYMENT_INTEREST
        return _Entry(transaction_type, event.capital, event.interest, bank_account_id=event.bank_account_id)

    if isinstance(event, RedirectionEvent):
        if event.amount <= 0 or event.interest < 0:
            raise InvalidLoanTerms(f"Redirected amount must be positive, got {event.amount}")
        return _Entry(
            TransactionType.REDIRECT_IN if event.incoming else TransactionType.REDIRECT_OUT,
            event.amount,
            event.interest,
            related_client_id=event.related_client_id,
            redirection_id=event.redirection_id,
        )

    if isinstance(event, SettlementEvent):
        if event.amount < 0 or event.interest < 0:
            raise InvalidLoanTerms("Settlement amounts cannot be negative")
        # Without an explicit amount the whole outstanding balance is closed
        return _Entry(
            TransactionType.SETTLEMENT,
            event.amount or previous_balance,
            event.interest,
            bank_account_id=event.bank_account_id,
        )

    raise TypeError(f"Unsupported ledger event: {event!r}")


def append_transaction(
    client: Client,
    prior_tail: Optional[Transaction],
    event: LedgerEvent,
    on_date: date,
    account: Optional[BankAccount] = None,
    notes: str = "",
    receipt_url: Optional[str] = None,
    transaction_id: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> Transaction:
    """
    Validate an event against the client's chain and build its ledger entry.

    Nothing is produced when validation fails, so a rejected write never
    leaves a partial ledger state behind.

    Args:
        client: Owner of the chain
        prior_tail: Latest transaction of the client's chain (None if empty)
        event: What happened
        on_date: Transaction date
        account: Bank account named by the event, needed for the funds check

    Raises:
        ChainIntegrityViolation: tail of another client, date before the tail,
            or a debt-reducing entry on a client without a chain
        OverpaymentRejected: capital reduction above the outstanding balance
        InsufficientTreasuryFunds: outgoing money above the account balance
        BankAccountNotFound: event names an account that was not supplied
        InvalidLoanTerms: non-positive amounts
    """
    if prior_tail is not None and prior_tail.client_id != client.id:
        raise ChainIntegrityViolation(
            f"Chain tail {prior_tail.id} belongs to client {prior_tail.client_id}, not {client.id}"
        )
    if prior_tail is not None and on_date < prior_tail.date:
        raise ChainIntegrityViolation(
            f"Transaction dated {on_date} precedes the chain tail dated {prior_tail.date}"
        )

    previous = prior_tail.balance_after if prior_tail else 0
    entry = _resolve_event(event, previous)

    if prior_tail is None and entry.type not in OPENING_TYPES:
        raise ChainIntegrityViolation(f"Client {client.id} has no ledger chain to apply {entry.type.value} to")
    if entry.type in REDUCING_TYPES and entry.amount > previous:
        raise OverpaymentRejected(entry.amount, previous)

    if entry.bank_account_id:
        if account is None or account.id != entry.bank_account_id:
            raise BankAccountNotFound(f"Bank account {entry.bank_account_id} was not supplied")
        if entry.type in OUTGOING_TYPES:
            require_funds(account, entry.amount)

    return Transaction(
        id=transaction_id or new_id(),
        client_id=client.id,
        date=on_date,
        type=entry.type,
        amount=entry.amount,
        interest_paid=entry.interest,
        capital_paid=entry.amount if entry.type == TransactionType.PAYMENT_CAPITAL else 0,
        balance_after=apply_balance(previous, entry.type, entry.amount),
        bank_account_id=entry.bank_account_id,
        related_client_id=entry.related_client_id,
        redirection_id=entry.redirection_id,
        receipt_url=receipt_url,
        notes=notes,
        created_at=created_at or datetime.utcnow(),
    )


def recompute_chain(client_id: str, transactions: Iterable[Transaction]) -> List[Transaction]:
    """
    Re-walk a client's chain and rewrite every balance_after.

    Must run after any edit or delete. Replaying it on its own output
    returns the same chain.

    Raises:
        ChainIntegrityViolation: a transaction of another client, or a step
            that would leave a negative balance
    """
    ordered = sorted(transactions, key=chain_order_key)
    balance = 0
    rebuilt = []

    for txn in ordered:
        if txn.client_id != client_id:
            raise ChainIntegrityViolation(f"Transaction {txn.id} belongs to client {txn.client_id}, not {client_id}")
        if txn.type in REDUCING_TYPES and txn.amount > balance:
            raise ChainIntegrityViolation(
                f"Transaction {txn.id} reduces {txn.amount} from a balance of {balance} on {txn.date}"
            )
        balance = apply_balance(balance, txn.type, txn.amount)
        rebuilt.append(txn if txn.balance_after == balance else replace(txn, balance_after=balance))

    return rebuilt


def summarize_client(transactions: Iterable[Transaction]) -> ClientSummary:
    """Interest earned, capital returned and money lent over a client's chain"""
    chain = list(transactions)
    return ClientSummary(
        current_balance=current_balance(chain),
        total_disbursed=sum(t.amount for t in chain if t.type in DISBURSED_TYPES),
        capital_returned=sum(t.capital_paid for t in chain),
        interest_earned=sum(t.interest_paid for t in chain),
        transaction_count=len(chain),
    )
